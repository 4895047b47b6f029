"""Tests for poller and credential refresh."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import ClassVar

import pytest
from pydantic import SecretStr

from trigger_workflow_action.credentials import (
    Credential,
    CredentialProvider,
    CredentialStore,
    StaticTokenProvider,
)
from trigger_workflow_action.polling import Poller
from trigger_workflow_action.testing.fakes import FakeClock

EXPIRES_AT = datetime(2099, 1, 1, 13, 0, 0, tzinfo=timezone.utc)


@dataclass(kw_only=True)
class CountingAppProvider(CredentialProvider):
    """Provider that issues numbered tokens with a fixed expiry."""

    refreshable: ClassVar[bool] = True

    expires_at: datetime = EXPIRES_AT
    issued: int = field(default=0)

    async def issue(self) -> Credential:
        """Issue the next numbered token."""
        self.issued += 1
        return Credential(
            token=SecretStr(f"token-{self.issued}"), expires_at=self.expires_at
        )


async def make_poller(
    clock: FakeClock, provider: CredentialProvider, interval: float = 60
) -> Poller:
    """Create a poller with an opened credential store."""
    credentials = CredentialStore(provider=provider)
    await credentials.refresh()
    return Poller(
        interval=interval, credentials=credentials, sleep=clock.sleep, clock=clock
    )


class TestWait:
    """Tests for Poller.wait."""

    async def test_sleeps_for_configured_interval(self, clock: FakeClock) -> None:
        """Sleeps the configured interval unless overridden."""
        poller = await make_poller(
            clock, StaticTokenProvider(token=SecretStr("static")), interval=10
        )

        await poller.wait()
        await poller.wait(3)

        assert clock.sleeps == [10, 3]

    async def test_never_refreshes_static_token(self, clock: FakeClock) -> None:
        """Static tokens are returned unchanged."""
        poller = await make_poller(clock, StaticTokenProvider(token=SecretStr("s")))

        credential = await poller.wait()

        assert credential.token.get_secret_value() == "s"

    async def test_refreshes_token_close_to_expiry(self, clock: FakeClock) -> None:
        """A poll 30s before expiry re-issues the token before returning."""
        provider = CountingAppProvider()
        poller = await make_poller(clock, provider, interval=60)
        clock.now = EXPIRES_AT - timedelta(seconds=90)

        credential = await poller.wait()

        assert clock.now == EXPIRES_AT - timedelta(seconds=30)
        assert provider.issued == 2
        assert credential.token.get_secret_value() == "token-2"
        assert poller.credentials.token == "token-2"

    async def test_keeps_token_far_from_expiry(self, clock: FakeClock) -> None:
        """A poll 1000s before expiry keeps the current token."""
        provider = CountingAppProvider()
        poller = await make_poller(clock, provider, interval=60)
        clock.now = EXPIRES_AT - timedelta(seconds=1060)

        credential = await poller.wait()

        assert provider.issued == 1
        assert credential.token.get_secret_value() == "token-1"

    async def test_includes_safety_margin(self, clock: FakeClock) -> None:
        """Refreshes within five minutes plus one interval of expiry."""
        provider = CountingAppProvider()
        poller = await make_poller(clock, provider, interval=60)

        clock.now = EXPIRES_AT - timedelta(seconds=60 + 300 + 60 + 1)
        await poller.wait()
        assert provider.issued == 1

        clock.now = EXPIRES_AT - timedelta(seconds=60 + 300 + 60)
        await poller.wait()
        assert provider.issued == 2


class TestDeadline:
    """Tests for Poller.deadline."""

    async def test_expires_after_timeout(self, clock: FakeClock) -> None:
        """Raises TimeoutError once the timeout has elapsed."""
        poller = await make_poller(
            clock, StaticTokenProvider(token=SecretStr("s")), interval=10
        )
        deadline = poller.deadline(25)

        await poller.wait()
        await poller.wait()
        deadline.check("A new workflow run")

        await poller.wait()
        with pytest.raises(TimeoutError, match="did not happen within 25 seconds"):
            deadline.check("A new workflow run")

    async def test_zero_timeout_never_expires(self, clock: FakeClock) -> None:
        """A zero timeout disables the deadline."""
        poller = await make_poller(clock, StaticTokenProvider(token=SecretStr("s")))
        deadline = poller.deadline(0)

        clock.now += timedelta(days=30)

        assert not deadline.expired()


class TestCredentialStore:
    """Tests for CredentialStore."""

    def test_raises_before_first_refresh(self) -> None:
        """Accessing the token before issuing one is a programming error."""
        store = CredentialStore(provider=StaticTokenProvider(token=SecretStr("s")))

        with pytest.raises(RuntimeError, match="No credential issued"):
            _ = store.token

    async def test_refresh_overwrites_credential(self) -> None:
        """Each refresh replaces the held credential."""
        provider = CountingAppProvider()
        store = CredentialStore(provider=provider)

        await store.refresh()
        await store.refresh()

        assert store.token == "token-2"
        assert store.current.expires_at == EXPIRES_AT

    async def test_needs_refresh_at_expiry(self) -> None:
        """Credentials need refreshing at or after their expiry."""
        store = CredentialStore(provider=CountingAppProvider())
        await store.refresh()

        assert not store.needs_refresh(EXPIRES_AT - timedelta(seconds=1))
        assert store.needs_refresh(EXPIRES_AT)
