"""Models for the outcome of a triggered workflow run."""

from dataclasses import dataclass

from trigger_workflow_action.models.github import WorkflowConclusion, WorkflowStatus


@dataclass(frozen=True, kw_only=True)
class RunOutcome:
    """Last observed state of a workflow run once polling stopped."""

    run_id: str
    url: str
    status: WorkflowStatus | None
    conclusion: WorkflowConclusion | None

    @property
    def succeeded(self) -> bool:
        """Whether the run completed with a success conclusion."""
        return self.status == "completed" and self.conclusion == "success"
