"""
WorkflowExecution: state, history and results of one workflow run.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .manifest import Manifest
from .outcomes import TransformResult, WorkflowState, WorkflowVerdict
from .validation_report import ValidationReport


class StateTransition(BaseModel):
    state: WorkflowState
    entered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WorkflowExecution(BaseModel):
    """
    One execution of the ingestion workflow for a manifest.

    Attributes:
        execution_id: Unique execution name
        manifest: The batch being ingested
        state: Current state
        history: Every state entered, in order
        report: Validation report (set once Validate ran)
        results: Transform results by branch
        verdict: Final verdict (set once a terminal state is reached)
    """

    execution_id: str = Field(default_factory=lambda: f"manifest-{uuid.uuid4().hex[:12]}")
    manifest: Manifest
    state: WorkflowState = WorkflowState.START
    history: list[StateTransition] = Field(
        default_factory=lambda: [StateTransition(state=WorkflowState.START)]
    )
    report: ValidationReport | None = None
    results: dict[str, TransformResult] = Field(default_factory=dict)
    verdict: WorkflowVerdict | None = None

    def transition(self, state: WorkflowState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"execution already finished in state {self.state.value}")
        self.state = state
        self.history.append(StateTransition(state=state))

    @property
    def states(self) -> list[WorkflowState]:
        return [step.state for step in self.history]

    def to_dict(self) -> dict[str, Any]:
        """Render the execution output."""
        output: dict[str, Any] = {
            "executionId": self.execution_id,
            "state": self.state.value,
            "history": [step.state.value for step in self.history],
            "manifestKey": self.manifest.manifest_key,
        }
        if self.report is not None:
            output["validation"] = self.report.to_response()
        if self.results:
            output["results"] = {branch: result.to_response() for branch, result in self.results.items()}
        if self.verdict is not None:
            output["verdict"] = self.verdict.to_dict()
        return output
