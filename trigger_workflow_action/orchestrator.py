"""Triggering of a remote workflow and waiting for its runs to finish."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import timedelta

import aiohttp

from trigger_workflow_action.client import ApiError, GitHubClient, validate_response
from trigger_workflow_action.clock import Clock, Sleep, utc_now
from trigger_workflow_action.config import ActionConfig
from trigger_workflow_action.credentials import (
    CredentialStore,
    credential_provider_for,
)
from trigger_workflow_action.locator import RunIdSet, RunLocator, new_run_ids
from trigger_workflow_action.models.github import WorkflowRun
from trigger_workflow_action.models.result import RunOutcome
from trigger_workflow_action.notifier import Notifier
from trigger_workflow_action.outputs import OutputSink
from trigger_workflow_action.polling import Poller

log = logging.getLogger(__name__)

# Runs are listed from slightly before the dispatch to tolerate clock skew
CLOCK_SKEW_TOLERANCE = timedelta(seconds=120)


@dataclass(frozen=True, kw_only=True)
class WorkflowOrchestrator:
    """Dispatches a workflow, finds the runs it created and waits on them."""

    config: ActionConfig
    client: GitHubClient
    locator: RunLocator
    poller: Poller
    outputs: OutputSink
    notifier: Notifier | None = field(default=None)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls,
        config: ActionConfig,
        outputs: OutputSink,
        *,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utc_now,
    ) -> AsyncGenerator["WorkflowOrchestrator", None]:
        """Create an orchestrator with a managed session and a first credential.

        Raises:
            AuthError: If the first app token cannot be issued

        """
        async with aiohttp.ClientSession() as session:
            credentials = CredentialStore(
                provider=credential_provider_for(config, session, clock)
            )
            await credentials.refresh()

            client = GitHubClient(
                api_url=config.api_url,
                owner=config.owner,
                repo=config.repo,
                credentials=credentials,
                session=session,
            )
            notifier = None
            if config.comment_downstream_url:
                notifier = Notifier(
                    url=config.comment_downstream_url,
                    token=config.comment_token,
                    session=session,
                )

            yield cls(
                config=config,
                client=client,
                locator=RunLocator(
                    client=client,
                    workflow_file_name=config.workflow_file_name,
                    actor=config.github_user,
                ),
                poller=Poller(
                    interval=config.wait_interval,
                    credentials=credentials,
                    sleep=sleep,
                    clock=clock,
                ),
                outputs=outputs,
                notifier=notifier,
            )

    async def run(self) -> int:
        """Trigger and/or wait according to the configuration.

        Returns:
            Process exit code: 1 when a run did not succeed and failures are
            propagated, otherwise 0

        """
        run_ids: RunIdSet = ()
        if self.config.trigger_workflow:
            run_ids = await self.trigger()
        else:
            log.info("Skipping triggering the workflow.")

        if not self.config.wait_workflow:
            log.info("Skipping waiting for workflow.")
            return 0

        if not run_ids:
            log.info("No workflow runs to wait for.")
            return 0

        for run_id in run_ids:
            outcome = await self.wait_for_completion(run_id)
            if (exit_code := self.evaluate(outcome)) != 0:
                return exit_code
        return 0

    async def trigger(self) -> RunIdSet:
        """Dispatch the workflow and return the ids of the runs it created.

        More than one id is returned when other dispatches raced with ours.

        Raises:
            ApiError: If the dispatch or a listing fails permanently
            TimeoutError: If no new run shows up within ``trigger_timeout``

        """
        since = self.poller.clock() - CLOCK_SKEW_TOLERANCE
        old_runs = await self._retry_transient(lambda: self.locator.list_runs(since))

        path = f"workflows/{self.config.workflow_file_name}/dispatches"
        body = {"ref": self.config.ref, "inputs": self.config.client_payload}
        log.info("Triggering workflow:")
        log.info("  %s", path)
        log.info("  %s", json.dumps(body))
        try:
            await self.client.call(path, method="POST", body=body)
        except ApiError as exc:
            if not exc.transient:
                raise
            log.warning("Server error while dispatching, looking for the run anyway")

        deadline = self.poller.deadline(self.config.trigger_timeout)
        triggered: RunIdSet = ()
        while not triggered:
            await self.poller.wait()
            deadline.check("A new workflow run")
            try:
                new_runs = await self.locator.list_runs(since)
            except ApiError as exc:
                if not exc.transient:
                    raise
                log.warning("Server error - trying again")
                continue
            triggered = new_run_ids(old_runs, new_runs)

        log.info("Triggered workflow run(s): %s", ", ".join(triggered))
        return triggered

    async def wait_for_completion(self, run_id: str) -> RunOutcome:
        """Poll a run until it completes and publish its conclusion.

        Raises:
            ApiError: If fetching the run fails permanently
            TimeoutError: If the run is still going after ``wait_timeout``

        """
        url = (
            f"{self.config.server_url}/{self.config.owner}/{self.config.repo}"
            f"/actions/runs/{run_id}"
        )
        log.info("Waiting for workflow to finish:")
        log.info("The workflow id is [%s].", run_id)
        log.info("The workflow logs can be found at %s", url)
        self.outputs.write("workflow_id", run_id)
        self.outputs.write("workflow_url", url)

        if self.notifier is not None:
            await self.notifier.notify(url)

        deadline = self.poller.deadline(self.config.wait_timeout)
        run_path = f"runs/{run_id}"
        run: WorkflowRun | None = None
        while run is None or (run.conclusion is None and run.status != "completed"):
            await self.poller.wait()
            deadline.check(f"Completion of workflow run {run_id}")
            try:
                data = await self.client.call(run_path)
            except ApiError as exc:
                if not exc.transient:
                    raise
                log.warning("Server error - trying again")
                continue
            run = validate_response(WorkflowRun, run_path, data)

            log.info("Checking conclusion [%s]", run.conclusion)
            log.info("Checking status [%s]", run.status)
            self.outputs.write("conclusion", run.conclusion or "null")

        return RunOutcome(
            run_id=run_id, url=url, status=run.status, conclusion=run.conclusion
        )

    def evaluate(self, outcome: RunOutcome) -> int:
        """Turn a run outcome into an exit code."""
        if outcome.succeeded:
            log.info("Yes, success")
            return 0

        log.warning("Conclusion is not success, it's [%s].", outcome.conclusion)
        if self.config.propagate_failure:
            log.error("Propagating failure to upstream job")
            return 1
        return 0

    async def _retry_transient[T](self, call: Callable[[], Awaitable[T]]) -> T:
        """Repeat ``call`` on the poll cadence while it fails transiently."""
        while True:
            try:
                return await call()
            except ApiError as exc:
                if not exc.transient:
                    raise
                log.warning("Server error - trying again")
            await self.poller.wait()
