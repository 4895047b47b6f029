"""Pydantic models for GitHub Actions API responses."""

from collections.abc import Sequence
from datetime import datetime
from typing import Literal

from pydantic import SecretStr

from trigger_workflow_action.models.base import Model

type WorkflowStatus = Literal[
    "requested",
    "queued",
    "pending",
    "waiting",
    "in_progress",
    "completed",
    "action_required",
]

type WorkflowConclusion = Literal[
    "success",
    "failure",
    "cancelled",
    "timed_out",
    "action_required",
    "neutral",
    "skipped",
    "stale",
    "startup_failure",
]


class WorkflowRun(Model):
    """A workflow run from GitHub Actions API."""

    id: int
    status: WorkflowStatus
    conclusion: WorkflowConclusion | None = None
    html_url: str | None = None


class WorkflowRunsResponse(Model):
    """Response from list workflow runs API."""

    workflow_runs: Sequence[WorkflowRun]


class InstallationToken(Model):
    """Response from the app installation access token API."""

    token: SecretStr
    expires_at: datetime
