"""Resolution of action inputs into a validated configuration."""

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr, ValidationError, field_validator

from trigger_workflow_action.models.base import Model

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_SERVER_URL = "https://github.com"

USAGE_DOCS = """\
You can use this Github Action with:
- uses: octo-org/trigger-workflow-action@main
  with:
    owner: octo-org
    repo: myrepo
    github_token: ${{ secrets.GITHUB_PERSONAL_ACCESS_TOKEN }}
    workflow_file_name: main.yaml"""

INPUT_NAMES = (
    "owner",
    "repo",
    "workflow_file_name",
    "github_token",
    "github_app_id",
    "github_app_installation_id",
    "github_app_private_key",
    "github_user",
    "ref",
    "wait_interval",
    "client_payload",
    "propagate_failure",
    "trigger_workflow",
    "wait_workflow",
    "comment_downstream_url",
    "comment_github_token",
    "trigger_timeout",
    "wait_timeout",
)

REQUIRED_INPUTS = {
    "owner": "Owner",
    "repo": "Repo",
    "workflow_file_name": "Workflow File Name",
}

APP_INPUTS = ("github_app_id", "github_app_installation_id", "github_app_private_key")


class ConfigError(Exception):
    """Raised when the action inputs are missing or invalid."""


class AppAuthConfig(Model):
    """Credentials for issuing GitHub App installation tokens."""

    app_id: str
    installation_id: str
    private_key: SecretStr


class ActionConfig(Model):
    """Validated action configuration."""

    owner: str
    repo: str
    workflow_file_name: str
    github_token: SecretStr | None = None
    app: AppAuthConfig | None = None
    github_user: str | None = None
    ref: str = "main"
    wait_interval: float = Field(default=10, gt=0)
    client_payload: dict[str, Any] = Field(default_factory=dict)
    propagate_failure: bool = True
    trigger_workflow: bool = True
    wait_workflow: bool = True
    comment_downstream_url: str | None = None
    comment_github_token: SecretStr | None = None
    # Seconds; 0 disables the deadline
    trigger_timeout: float = Field(default=600, ge=0)
    wait_timeout: float = Field(default=0, ge=0)
    api_url: str = DEFAULT_API_URL
    server_url: str = DEFAULT_SERVER_URL
    output_path: Path | None = None

    @field_validator("client_payload", mode="before")
    @classmethod
    def decode_payload(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return value

    @field_validator("api_url", "server_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def comment_token(self) -> SecretStr | None:
        """Token used for the downstream comment, falling back to the main token."""
        return self.comment_github_token or self.github_token


def resolve_config(env: Mapping[str, str]) -> ActionConfig:
    """Build the action configuration from ``INPUT_*`` environment variables.

    Empty values are treated as not provided so that the defaults apply.

    Raises:
        ConfigError: If a required input is missing, authentication is
            incomplete or a value cannot be parsed

    """
    inputs: dict[str, Any] = {}
    for name in INPUT_NAMES:
        if value := env.get(f"INPUT_{name.upper()}", "").strip():
            inputs[name] = value

    for name, label in REQUIRED_INPUTS.items():
        if name not in inputs:
            raise ConfigError(f"{label} is a required argument.")

    app_values = {name: inputs.pop(name) for name in APP_INPUTS if name in inputs}
    if "github_token" not in inputs:
        if not app_values:
            raise ConfigError(
                "Github token or App information is required. "
                "The token requires at least Actions permissions."
            )
        if missing := [name for name in APP_INPUTS if name not in app_values]:
            raise ConfigError(
                f"Github App authentication is missing: {', '.join(missing)}"
            )
        inputs["app"] = {
            "app_id": app_values["github_app_id"],
            "installation_id": app_values["github_app_installation_id"],
            "private_key": app_values["github_app_private_key"],
        }

    inputs["api_url"] = env.get("API_URL") or DEFAULT_API_URL
    inputs["server_url"] = env.get("SERVER_URL") or DEFAULT_SERVER_URL
    if output_path := env.get("GITHUB_OUTPUT"):
        inputs["output_path"] = output_path

    try:
        return ActionConfig.model_validate(inputs)
    except ValidationError as exc:
        raise ConfigError(format_validation_error(exc)) from exc


def format_validation_error(exc: ValidationError) -> str:
    """Render pydantic errors as a single line naming the offending inputs."""
    details = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return "Invalid input: " + "; ".join(details)
