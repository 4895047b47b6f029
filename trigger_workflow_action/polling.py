"""Sleep-based polling with proactive credential refresh."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from trigger_workflow_action.clock import Clock, Sleep, utc_now
from trigger_workflow_action.credentials import Credential, CredentialStore

log = logging.getLogger(__name__)

REFRESH_MARGIN = timedelta(minutes=5)


@dataclass(frozen=True, kw_only=True)
class Deadline:
    """Point in time after which a polling loop gives up."""

    timeout: float
    expires_at: datetime | None
    clock: Clock = utc_now

    def expired(self) -> bool:
        """Whether the deadline has passed. Never true without a timeout."""
        return self.expires_at is not None and self.clock() >= self.expires_at

    def check(self, what: str) -> None:
        """Raise if the deadline has passed.

        Raises:
            TimeoutError: If the deadline has passed

        """
        if self.expired():
            raise TimeoutError(f"{what} did not happen within {self.timeout} seconds")


@dataclass(frozen=True, kw_only=True)
class Poller:
    """Waits between polls and keeps app credentials fresh.

    Both ``sleep`` and ``clock`` can be replaced for deterministic tests.
    """

    interval: float
    credentials: CredentialStore
    sleep: Sleep = asyncio.sleep
    clock: Clock = utc_now

    async def wait(self, interval: float | None = None) -> Credential:
        """Sleep, then re-issue the credential if it is close to expiring.

        A refresh happens when the credential would expire before the next
        poll plus a safety margin, so callers never use an expired token.

        Returns:
            The credential to use for the next API call

        """
        seconds = self.interval if interval is None else interval
        log.info("Sleeping for %s seconds", seconds)
        await self.sleep(seconds)

        horizon = self.clock() + timedelta(seconds=self.interval) + REFRESH_MARGIN
        if self.credentials.needs_refresh(horizon):
            log.info(
                "Current time is within 5 minutes + wait_interval of the app token "
                "expiration, getting a new app token"
            )
            await self.credentials.refresh()
            log.info("New app token retrieved, carrying on")

        return self.credentials.current

    def deadline(self, timeout: float) -> Deadline:
        """Start a deadline ``timeout`` seconds from now; ``0`` means none."""
        expires_at = self.clock() + timedelta(seconds=timeout) if timeout > 0 else None
        return Deadline(timeout=timeout, expires_at=expires_at, clock=self.clock)
