"""Lookup of recent workflow_dispatch runs for a workflow."""

import logging
from dataclasses import dataclass
from datetime import datetime

from trigger_workflow_action.client import GitHubClient, validate_response
from trigger_workflow_action.models.github import WorkflowRunsResponse

log = logging.getLogger(__name__)

type RunIdSet = tuple[str, ...]

PER_PAGE = 100


def new_run_ids(old_runs: RunIdSet, new_runs: RunIdSet) -> RunIdSet:
    """Return the run ids present in ``new_runs`` but not in ``old_runs``."""
    known = set(old_runs)
    return tuple(sorted(run_id for run_id in set(new_runs) if run_id not in known))


@dataclass(frozen=True, kw_only=True)
class RunLocator:
    """Lists the ids of runs created by workflow dispatches."""

    client: GitHubClient
    workflow_file_name: str
    actor: str | None = None

    async def list_runs(self, since: datetime) -> RunIdSet:
        """List ids of dispatch runs created at or after ``since``.

        Only the first page of 100 runs is read. Ids are returned as strings
        sorted ascending so that successive listings compare deterministically.
        """
        params = {
            "event": "workflow_dispatch",
            "created": f">={since.strftime('%Y-%m-%dT%H:%M:%SZ')}",
            "per_page": str(PER_PAGE),
        }
        if self.actor:
            params["actor"] = self.actor

        log.info("Getting workflow runs using query: %s", params)
        path = f"workflows/{self.workflow_file_name}/runs"
        data = await self.client.call(path, params=params)
        runs_response = validate_response(WorkflowRunsResponse, path, data)

        return tuple(sorted(str(run.id) for run in runs_response.workflow_runs))
