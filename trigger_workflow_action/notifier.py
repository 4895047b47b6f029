"""Posting of the downstream run link as a comment."""

import logging
from dataclasses import dataclass, field

import aiohttp
from pydantic import SecretStr

log = logging.getLogger(__name__)


class NotificationError(Exception):
    """Raised when the downstream comment cannot be posted."""


@dataclass(frozen=True, kw_only=True)
class Notifier:
    """Comments the triggered run's URL on an issue or pull request."""

    url: str
    token: SecretStr | None = field(default=None, repr=False)
    session: aiohttp.ClientSession = field(repr=False)

    async def post(self, run_url: str) -> None:
        """Post the comment.

        Raises:
            NotificationError: If the request fails or is rejected

        """
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.token is not None:
            headers["Authorization"] = f"Bearer {self.token.get_secret_value()}"
        payload = {"body": f"Running downstream job at {run_url}"}

        try:
            async with self.session.post(
                self.url, headers=headers, json=payload
            ) as response:
                if not 200 <= response.status < 300:
                    text = await response.text()
                    raise NotificationError(f"{response.status} {text}")
        except aiohttp.ClientError as exc:
            raise NotificationError(str(exc)) from exc
        except TimeoutError as exc:
            raise NotificationError("Timed out posting the comment") from exc

    async def notify(self, run_url: str) -> None:
        """Post the comment, logging instead of raising on failure."""
        try:
            await self.post(run_url)
        except NotificationError as exc:
            log.error("Failed to comment to %s: %s", self.url, exc)
            return
        log.info("Commented downstream run link to %s", self.url)
