"""
Outcome models for writes, transform branches and workflow executions.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

Branch = Literal["zone", "station", "metric"]


class BatchWriteOutcome(BaseModel):
    """
    Result of one batch write call, accumulated across chunks.

    Items that exhausted their retries are counted once in
    ``failed_count`` and listed in ``unprocessed_items``.
    """

    success_count: int = Field(0, ge=0)
    failed_count: int = Field(0, ge=0)
    unprocessed_items: list[dict[str, Any]] = Field(default_factory=list)

    def __add__(self, other: "BatchWriteOutcome") -> "BatchWriteOutcome":
        return BatchWriteOutcome(
            success_count=self.success_count + other.success_count,
            failed_count=self.failed_count + other.failed_count,
            unprocessed_items=[*self.unprocessed_items, *other.unprocessed_items],
        )

    @property
    def total(self) -> int:
        return self.success_count + self.failed_count


class MetricResult(BaseModel):
    """Per-metric-file sub-result inside the metric branch."""

    metric: str
    success: bool
    data_points: int = 0
    rows_read: int = 0
    error: str | None = None


class TransformResult(BaseModel):
    """
    Outcome of one transform branch.

    Attributes:
        branch: zone, station or metric
        success: Branch-level success flag
        message: Summary line
        stats: Counters (records, skipped rows, writes)
        unprocessed_items: Items that could not be written
        error: Failure reason when the branch aborted
        metric_results: Per-metric sub-results (metric branch only)
    """

    branch: Branch
    success: bool
    message: str = ""
    stats: dict[str, int] = Field(default_factory=dict)
    unprocessed_items: list[dict[str, Any]] = Field(default_factory=list)
    error: str | None = None
    metric_results: list[MetricResult] = Field(default_factory=list)

    @property
    def status_code(self) -> int:
        return 200 if self.success else 500

    def to_response(self) -> dict[str, Any]:
        """Render the transform invocation contract."""
        response: dict[str, Any] = {
            "statusCode": self.status_code,
            "success": self.success,
            "message": self.message,
            "stats": dict(self.stats),
            "unprocessedItems": list(self.unprocessed_items),
        }
        if self.error:
            response["error"] = self.error
        if self.metric_results:
            response["metrics"] = [result.model_dump(exclude_none=True) for result in self.metric_results]
        return response


class WorkflowState(str, Enum):
    START = "Start"
    VALIDATE = "Validate"
    VALIDATION_FAILED = "ValidationFailed"
    PARALLEL_TRANSFORM = "ParallelTransform"
    EVALUATE = "Evaluate"
    COMPLETE = "Complete"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowState.VALIDATION_FAILED, WorkflowState.COMPLETE, WorkflowState.FAILED)


class MetricSuccessPolicy(str, Enum):
    """How the metric branch counts towards the workflow verdict."""

    STRICT = "strict"    # every metric file must succeed
    PARTIAL = "partial"  # at least one metric file must succeed
    IGNORE = "ignore"    # metric branch does not affect the verdict


class WorkflowVerdict(BaseModel):
    """
    Final decision of one workflow execution.

    Branch flags are None when the branch never ran (validation failed).
    """

    state: WorkflowState
    zone_success: bool | None = None
    station_success: bool | None = None
    metric_success: bool | None = None
    failed_branches: list[Branch] = Field(default_factory=list)
    error: str | None = None
    cause: str | None = None

    @property
    def success(self) -> bool:
        return self.state == WorkflowState.COMPLETE

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "success": self.success,
            "zoneInfoSuccess": self.zone_success,
            "stationInfoSuccess": self.station_success,
            "stationDataSuccess": self.metric_success,
            "failedBranches": list(self.failed_branches),
            "error": self.error,
            "cause": self.cause,
        }
