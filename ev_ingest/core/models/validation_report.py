"""
ValidationReport and its parts (ephemeral, returned to the caller, never persisted).
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ValidationIssue(BaseModel):
    """
    A single error or warning.

    Attributes:
        code: Issue code (e.g. MissingColumns, OutOfBounds); severity is
            decided by the rule that raised it, not by the code
        message: Human readable description
        file: Owning file name (attached when merged into a report)
        row: 1-based row number, header counted as row 1
        field_name: Named column of a master-file check
        column: Metric file column (TAZID header)
        details: Extra context (missing columns, samples, counts)
    """

    model_config = ConfigDict(populate_by_name=True)

    code: str
    message: str
    file: str | None = None
    row: int | None = None
    field_name: str | None = Field(None, alias="field")
    column: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    def with_file(self, file: str) -> "ValidationIssue":
        return self.model_copy(update={"file": file})

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TimeRange(BaseModel):
    """Earliest and latest timestamp seen."""

    earliest: datetime | None = None
    latest: datetime | None = None

    def update(self, ts: datetime) -> None:
        if self.earliest is None or ts < self.earliest:
            self.earliest = ts
        if self.latest is None or ts > self.latest:
            self.latest = ts

    def merge(self, other: "TimeRange") -> None:
        for ts in (other.earliest, other.latest):
            if ts is not None:
                self.update(ts)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "earliest": self.earliest.isoformat() if self.earliest else None,
            "latest": self.latest.isoformat() if self.latest else None,
        }


class FileValidationResult(BaseModel):
    """Outcome of validating one file, before it is merged into the report."""

    file: str
    kind: Literal["station_information", "metric"]
    is_valid: bool = True
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    station_ids: set[int] = Field(default_factory=set)
    tazids: set[int] = Field(default_factory=set)
    tazid_to_stations: dict[int, list[int]] = Field(default_factory=dict)
    time_range: TimeRange = Field(default_factory=TimeRange)
    row_count: int = 0

    def error(self, code: str, message: str, **kwargs: Any) -> None:
        """Record an error and mark the file invalid."""
        self.errors.append(ValidationIssue(code=code, message=message, **kwargs))
        self.is_valid = False

    def warning(self, code: str, message: str, **kwargs: Any) -> None:
        self.warnings.append(ValidationIssue(code=code, message=message, **kwargs))


class ValidationSummary(BaseModel):
    total_files: int = 0
    validated_files: int = 0
    station_ids: set[int] = Field(default_factory=set)
    tazids: set[int] = Field(default_factory=set)
    tazid_to_stations: dict[int, list[int]] = Field(default_factory=dict)
    time_range: TimeRange = Field(default_factory=TimeRange)


class ValidationReport(BaseModel):
    """
    Aggregated result of one validation run.

    ``is_valid`` is the AND of every file's validity; warnings never
    change it.
    """

    is_valid: bool = True
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)

    def add_error(self, code: str, message: str, file: str | None = None, **kwargs: Any) -> None:
        self.errors.append(ValidationIssue(code=code, message=message, file=file, **kwargs))
        self.is_valid = False

    def add_warning(self, code: str, message: str, file: str | None = None, **kwargs: Any) -> None:
        self.warnings.append(ValidationIssue(code=code, message=message, file=file, **kwargs))

    def merge(self, result: FileValidationResult) -> None:
        """
        Fold one file's result into the report.

        Attaches the owning file name to every error and warning.

        Args:
            result: Per-file validation result
        """
        if not result.is_valid:
            self.is_valid = False

        self.errors.extend(issue.with_file(result.file) for issue in result.errors)
        self.warnings.extend(issue.with_file(result.file) for issue in result.warnings)

        self.summary.station_ids.update(result.station_ids)
        self.summary.tazids.update(result.tazids)
        self.summary.time_range.merge(result.time_range)
        self.summary.validated_files += 1

    def to_response(self) -> dict[str, Any]:
        """Render the validator invocation contract (JSON serializable)."""
        summary = self.summary
        return {
            "statusCode": 200 if self.is_valid else 400,
            "isValid": self.is_valid,
            "summary": {
                "totalFiles": summary.total_files,
                "validatedFiles": summary.validated_files,
                "stationIds": sorted(summary.station_ids),
                "tazids": sorted(summary.tazids),
                "tazidToStations": {
                    str(tazid): stations
                    for tazid, stations in sorted(summary.tazid_to_stations.items())
                },
                "timeRange": summary.time_range.to_dict(),
                "totalStations": len(summary.station_ids),
                "totalTazids": len(summary.tazids),
                "errorCount": len(self.errors),
                "warningCount": len(self.warnings),
            },
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
        }
