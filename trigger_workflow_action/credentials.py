"""Bearer credentials for the GitHub API."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, ClassVar

import aiohttp
import jwt
from pydantic import SecretStr, ValidationError

from trigger_workflow_action.clock import Clock, utc_now
from trigger_workflow_action.config import ActionConfig, AppAuthConfig
from trigger_workflow_action.models.github import InstallationToken

log = logging.getLogger(__name__)

# GitHub rejects app JWTs issued in the future or valid for more than 10 minutes
JWT_BACKDATE = timedelta(seconds=60)
JWT_LIFETIME = timedelta(minutes=9)


class AuthError(Exception):
    """Raised when an app installation token cannot be issued."""


@dataclass(frozen=True, kw_only=True)
class Credential:
    """Bearer token with an optional expiration instant."""

    token: SecretStr
    expires_at: datetime | None = None


class CredentialProvider(ABC):
    """Source of bearer credentials."""

    refreshable: ClassVar[bool] = False

    @abstractmethod
    async def issue(self) -> Credential:
        """Issue a credential.

        Raises:
            AuthError: If no credential could be obtained

        """


@dataclass(frozen=True, kw_only=True)
class StaticTokenProvider(CredentialProvider):
    """Provider for a personal or workflow token that never expires."""

    token: SecretStr = field(repr=False)

    async def issue(self) -> Credential:
        """Return the configured token."""
        return Credential(token=self.token)


@dataclass(frozen=True, kw_only=True)
class AppTokenProvider(CredentialProvider):
    """Provider issuing short-lived GitHub App installation tokens."""

    refreshable: ClassVar[bool] = True

    app: AppAuthConfig
    api_url: str
    session: aiohttp.ClientSession = field(repr=False)
    clock: Clock = utc_now

    def create_jwt(self) -> str:
        """Sign the app assertion used to request installation tokens."""
        now = self.clock()
        claims = {
            "iat": int((now - JWT_BACKDATE).timestamp()),
            "exp": int((now + JWT_LIFETIME).timestamp()),
            "iss": self.app.app_id,
        }
        try:
            return jwt.encode(
                claims, self.app.private_key.get_secret_value(), algorithm="RS256"
            )
        except (ValueError, TypeError, jwt.PyJWTError) as exc:
            raise AuthError(f"Invalid GitHub App private key: {exc}") from exc

    async def issue(self) -> Credential:
        """Request a new installation token for the configured app."""
        url = (
            f"{self.api_url}/app/installations/{self.app.installation_id}"
            "/access_tokens"
        )
        headers = {
            "Authorization": f"Bearer {self.create_jwt()}",
            "Accept": "application/vnd.github+json",
        }

        log.info("Getting app token for installation %s", self.app.installation_id)
        try:
            async with self.session.post(url, headers=headers) as response:
                if response.status != 201:
                    text = await response.text()
                    raise AuthError(
                        f"Failed to get app token: {response.status} {text}"
                    )
                data: Any = await response.json()
        except aiohttp.ClientError as exc:
            raise AuthError(f"Failed to get app token: {exc}") from exc

        try:
            installation_token = InstallationToken.model_validate(data)
        except ValidationError as exc:
            raise AuthError(f"Unexpected app token response: {exc}") from exc

        log.info(
            "App token retrieved, expires at %s",
            installation_token.expires_at.isoformat(),
        )
        return Credential(
            token=installation_token.token,
            expires_at=installation_token.expires_at,
        )


@dataclass(kw_only=True)
class CredentialStore:
    """Holder of the current credential for one action invocation.

    The API client reads the token from here on every call, and the poller
    replaces it when it is about to expire.
    """

    provider: CredentialProvider
    _current: Credential | None = field(default=None, init=False, repr=False)

    @property
    def current(self) -> Credential:
        """The credential issued by the last refresh."""
        if self._current is None:
            raise RuntimeError("No credential issued yet, call refresh() first")
        return self._current

    @property
    def token(self) -> str:
        """Plain bearer token of the current credential."""
        return self.current.token.get_secret_value()

    @property
    def refreshable(self) -> bool:
        """Whether the provider can re-issue credentials."""
        return self.provider.refreshable

    async def refresh(self) -> Credential:
        """Issue a credential and replace the held one."""
        self._current = await self.provider.issue()
        return self._current

    def needs_refresh(self, at: datetime) -> bool:
        """Whether the current credential expires at or before ``at``."""
        if not self.refreshable or self._current is None:
            return False
        expires_at = self._current.expires_at
        return expires_at is not None and at >= expires_at


def credential_provider_for(
    config: ActionConfig,
    session: aiohttp.ClientSession,
    clock: Clock = utc_now,
) -> CredentialProvider:
    """Select the credential provider matching the configured auth mode."""
    if config.github_token is not None:
        return StaticTokenProvider(token=config.github_token)
    if config.app is None:
        raise AuthError("Neither a token nor GitHub App credentials are configured")
    return AppTokenProvider(
        app=config.app, api_url=config.api_url, session=session, clock=clock
    )
