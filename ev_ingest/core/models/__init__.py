"""
Core data models for the EV charging ingestion pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .execution import StateTransition, WorkflowExecution
from .manifest import Manifest
from .outcomes import (
    BatchWriteOutcome,
    MetricResult,
    MetricSuccessPolicy,
    TransformResult,
    WorkflowState,
    WorkflowVerdict,
)
from .records import StationRecord, ZoneMetricRecord, ZoneRecord, zone_id_for
from .rows import InvalidRow
from .validation_report import (
    FileValidationResult,
    TimeRange,
    ValidationIssue,
    ValidationReport,
    ValidationSummary,
)

__all__ = [
    "Manifest",
    "WorkflowExecution",
    "StateTransition",
    "ZoneRecord",
    "StationRecord",
    "ZoneMetricRecord",
    "zone_id_for",
    "InvalidRow",
    "ValidationIssue",
    "ValidationReport",
    "ValidationSummary",
    "FileValidationResult",
    "TimeRange",
    "BatchWriteOutcome",
    "MetricResult",
    "TransformResult",
    "MetricSuccessPolicy",
    "WorkflowState",
    "WorkflowVerdict",
]
