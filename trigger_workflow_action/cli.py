"""CLI entry point for the trigger workflow action."""

import argparse
import asyncio
import logging
import os
import sys
from collections.abc import Mapping

from trigger_workflow_action.client import ApiError
from trigger_workflow_action.clock import Clock, Sleep, utc_now
from trigger_workflow_action.config import USAGE_DOCS, ConfigError, resolve_config
from trigger_workflow_action.credentials import AuthError
from trigger_workflow_action.orchestrator import WorkflowOrchestrator
from trigger_workflow_action.outputs import OutputSink


def log_usage(log: logging.Logger) -> None:
    """Log the example workflow snippet shown after input errors."""
    for line in USAGE_DOCS.splitlines():
        log.error("%s", line)


async def run(
    env: Mapping[str, str],
    *,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = utc_now,
) -> int:
    """Run the action with inputs taken from ``env`` and return the exit code."""
    log = logging.getLogger("trigger_workflow_action")

    try:
        config = resolve_config(env)
    except ConfigError as exc:
        log.error("Error: %s", exc)
        log_usage(log)
        return 1

    log.info(
        "Target: owner=%s, repo=%s, workflow=%s, ref=%s, auth=%s",
        config.owner,
        config.repo,
        config.workflow_file_name,
        config.ref,
        "token" if config.github_token is not None else "app",
    )

    outputs = OutputSink(path=config.output_path)
    try:
        async with WorkflowOrchestrator.from_config(
            config, outputs, sleep=sleep, clock=clock
        ) as orchestrator:
            return await orchestrator.run()
    except AuthError as exc:
        log.error("Authentication failed: %s", exc)
    except ApiError as exc:
        log.error("%s", exc)
    except TimeoutError as exc:
        log.error("Timed out: %s", exc)
    return 1


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description=(
            "Trigger a workflow in another repository and wait for the result. "
            "Inputs are read from INPUT_* environment variables."
        )
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    exit_code = asyncio.run(run(os.environ))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
