"""Authenticated client for a repository's GitHub Actions API."""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from pydantic import ValidationError

from trigger_workflow_action.credentials import CredentialStore
from trigger_workflow_action.models.base import Model

log = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.github.v3+json"
SERVER_ERROR_MESSAGE = '"Server Error"'


class ApiError(Exception):
    """Raised when a GitHub API call fails."""

    def __init__(self, path: str, status: int | None, body: str) -> None:
        self.path = path
        self.status = status
        self.body = body
        super().__init__(f"API call failed: path={path} status={status} body={body}")

    @property
    def transient(self) -> bool:
        """Whether the failure is a server-side error worth retrying."""
        if self.status is not None and self.status >= 500:
            return True
        return SERVER_ERROR_MESSAGE in self.body


@dataclass(frozen=True, kw_only=True)
class GitHubClient:
    """Client scoped to ``/repos/{owner}/{repo}/actions``.

    The bearer token is read from the credential store on every call so that
    refreshed app tokens are picked up without rebuilding the session.
    """

    api_url: str
    owner: str
    repo: str
    credentials: CredentialStore
    session: aiohttp.ClientSession = field(repr=False)

    @property
    def base_url(self) -> str:
        """Root URL of the repository's Actions API."""
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/actions"

    async def call(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Perform an API call and return the decoded JSON response.

        Args:
            path: Path relative to the repository's Actions API
            method: HTTP method
            body: JSON-serialisable request body
            params: Query string parameters

        Returns:
            Decoded JSON, or None when the response has no body

        Raises:
            ApiError: On transport failure, a non-2xx response or a body that
                is not JSON

        """
        headers = {
            "Authorization": f"Bearer {self.credentials.token}",
            "Accept": ACCEPT_HEADER,
            "Content-Type": "application/json",
        }
        url = f"{self.base_url}/{path}"

        try:
            async with self.session.request(
                method, url, headers=headers, json=body, params=params
            ) as response:
                text = await response.text()
                status = response.status
        except aiohttp.ClientError as exc:
            log_failure(path, str(exc))
            raise ApiError(path, None, str(exc)) from exc

        if not 200 <= status < 300:
            log_failure(path, text)
            raise ApiError(path, status, text)

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            log_failure(path, text)
            raise ApiError(path, status, text) from exc


def log_failure(path: str, response: str) -> None:
    log.error("api failed:")
    log.error("path: %s", path)
    log.error("response: %s", response)


def validate_response[M: Model](model: type[M], path: str, data: Any) -> M:
    """Validate a decoded response, reporting a mismatch as an ApiError."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        body = json.dumps(data)
        log_failure(path, body)
        raise ApiError(path, None, f"Unexpected response: {body}") from exc
