"""Step outputs for the GitHub Actions runner."""

import logging
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class OutputSink:
    """Appends ``name=value`` lines to the runner's ``GITHUB_OUTPUT`` file.

    Without a file the values are only logged. The runner keeps the last
    value written for each name.
    """

    path: Path | None = None

    def write(self, name: str, value: str) -> None:
        """Publish a single output value."""
        log.debug("Output %s=%s", name, value)
        if self.path is None:
            return
        with self.path.open("a", encoding="utf-8") as f:
            f.write(f"{name}={value}\n")
