"""Time sources shared by the poller and the credential providers."""

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

type Clock = Callable[[], datetime]
type Sleep = Callable[[float], Awaitable[None]]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
