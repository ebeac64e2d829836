"""
Schema and cross-file validation of an ingestion batch.

Validates the master station file first, then every metric time-series
file, then checks TAZIDs across files. Always returns a report; read
failures become file-level errors.
"""

from itertools import islice
from typing import Sequence

from ev_ingest.batch.readers import CSVReader
from ev_ingest.core.config import PipelineConfig
from ev_ingest.core.errors import DecodeError, SourceUnavailable
from ev_ingest.core.models import FileValidationResult, ValidationReport
from ev_ingest.core.rules import RuleConfigBuilder, RuleEngine
from ev_ingest.core.validators import parse_int
from ev_ingest.observability import metrics
from ev_ingest.observability.logger import get_logger

logger = get_logger(__name__)

# Number of sample TAZIDs listed in cross-file warnings
CROSS_CHECK_SAMPLES = 10


def file_name(key: str) -> str:
    return key.rsplit("/", 1)[-1]


class CsvValidator:
    """
    Validates the station master file and the metric files of a manifest.

    Flow:
    1. Locate station_information.csv (missing => invalid, stop)
    2. Validate its columns and rows, build TAZID -> [station_id]
    3. Stop if the master file is invalid
    4. Validate each metric file on a bounded sample
    5. Cross-check TAZIDs between metric files and the master file
    """

    def __init__(self, reader: CSVReader, config: PipelineConfig | None = None):
        """
        Initialize validator.

        Args:
            reader: CSV reader bound to the manifest's blob store
            config: Pipeline configuration
        """
        self.reader = reader
        self.config = config or PipelineConfig()

        self.station_engine = RuleEngine(self.config.station_rule_list())
        self.time_engine = RuleEngine(
            RuleConfigBuilder().add_required_field("time").add_timestamp("time").build()
        )
        self.cell_engine = RuleEngine(
            RuleConfigBuilder()
            .add_numeric("value")
            .add_range("value", min_value=0, severity="warning", code="NegativeValue")
            .build()
        )

    def validate(self, files: Sequence[str]) -> ValidationReport:
        """
        Validate all files of one batch.

        Args:
            files: File keys from the manifest

        Returns:
            ValidationReport
        """
        report = ValidationReport()
        report.summary.total_files = len(files)

        station_key = next((f for f in files if f.endswith(self.config.station_file)), None)
        if station_key is None:
            report.add_error(
                "MissingRequiredFile",
                "Required file not found in manifest",
                file=self.config.station_file,
            )
            return self._finish(report)

        logger.info("Validating master station file", extra={"key": station_key})
        station_result = self.validate_station_file(station_key)
        report.merge(station_result)

        if not station_result.is_valid:
            logger.warning(
                "Master station file invalid; skipping metric files",
                extra={"error_count": len(station_result.errors)},
            )
            return self._finish(report)

        report.summary.tazid_to_stations = station_result.tazid_to_stations
        master_tazids = set(station_result.tazid_to_stations)
        logger.info(
            f"Found {len(station_result.station_ids)} stations across {len(master_tazids)} TAZIDs"
        )

        metric_files = [f for f in files if f"{self.config.metric_dir}/" in f]
        expected = len(self.config.expected_metric_files)
        if len(metric_files) != expected:
            found = {file_name(f) for f in metric_files}
            report.add_warning(
                "UnexpectedFileCount",
                f"Expected {expected} {self.config.metric_dir} files, found {len(metric_files)}",
                details={
                    "files": list(metric_files),
                    "missing": [f for f in self.config.expected_metric_files if f not in found],
                },
            )

        for key in metric_files:
            logger.info("Validating metric file", extra={"key": key})
            report.merge(self.validate_metric_file(key, master_tazids))

        self._cross_check(report, master_tazids)
        return self._finish(report)

    def validate_station_file(self, key: str) -> FileValidationResult:
        """
        Validate station_information.csv.

        Checks required columns, then every row: station_id required,
        numeric and unique; TAZID required and numeric; coordinates numeric
        (outside the bounding box is a warning); counts non-negative ints.
        """
        result = FileValidationResult(file=file_name(key), kind="station_information")

        try:
            columns, rows = self.reader.read_all(key)
        except (SourceUnavailable, DecodeError) as e:
            result.error(type(e).__name__, f"Failed to parse file: {e.message}")
            return result

        if not rows:
            result.error("EmptyFile", "File is empty")
            return result

        missing = [col for col in self.config.station_required_columns if col not in columns]
        if missing:
            result.error(
                "MissingColumns",
                "Missing required columns",
                details={"missing": missing, "found": columns},
            )
            return result

        for index, row in enumerate(rows):
            row_num = index + 2  # header is row 1
            check = self.station_engine.validate_row(row)

            for e in check.errors:
                result.error(e.code, e.message, row=row_num, field_name=e.field_name)
            for w in check.warnings:
                result.warning(w.code, w.message, row=row_num, field_name=w.field_name)

            station_id = check.value("station_id")
            if station_id is not None:
                if station_id in result.station_ids:
                    result.error(
                        "DuplicateKey",
                        f"Duplicate station_id: {station_id}",
                        row=row_num,
                        field_name="station_id",
                    )
                    continue
                result.station_ids.add(station_id)

            tazid = check.value("TAZID")
            if tazid is not None and station_id is not None:
                result.tazid_to_stations.setdefault(tazid, []).append(station_id)

        result.row_count = len(rows)
        logger.info(
            "Station information validated",
            extra={
                "stations": len(result.station_ids),
                "tazids": len(result.tazid_to_stations),
                "valid": result.is_valid,
            },
        )
        return result

    def validate_metric_file(self, key: str, master_tazids: set[int]) -> FileValidationResult:
        """
        Validate one wide metric file (``time`` column + one column per TAZID).

        Only the first ``sample_rows`` rows and ``sample_columns`` TAZID
        columns are checked; the rest of the file is only counted.
        """
        result = FileValidationResult(file=file_name(key), kind="metric")

        try:
            rows = self.reader.read(key, header=False)
            header = next(rows, None)
            sample = list(islice(rows, self.config.sample_rows))
            remaining = sum(1 for _ in rows)
        except (SourceUnavailable, DecodeError) as e:
            result.error(type(e).__name__, f"Failed to parse file: {e.message}")
            return result

        result.row_count = len(sample) + remaining

        if header is None or not sample:
            result.error("EmptyFile", "File is empty")
            return result

        time_index = next((i for i, col in enumerate(header) if col.strip().lower() == "time"), None)
        if time_index is None:
            result.error(
                "MissingColumns",
                'Required "time" column not found',
                details={"missing": ["time"], "found": header[:10], "hint": "Check for BOM or encoding issues"},
            )
            return result
        if time_index != 0:
            # the metric transform reads the timestamp from the first column
            result.error(
                "MissingColumns",
                f'"time" must be the first column (found at position {time_index + 1})',
                details={"missing": ["time"], "found": header[:10]},
            )
            return result

        tazid_columns = [(i, col) for i, col in enumerate(header) if i != time_index]
        if not tazid_columns:
            result.error("MissingColumns", "No TAZID columns found", details={"found": header})
            return result

        for _, col in tazid_columns:
            try:
                tazid = parse_int(col)
            except ValueError:
                result.warning(
                    "InvalidTazidColumn",
                    "Column name is not a valid TAZID (expected numeric)",
                    column=col,
                )
                continue
            result.tazids.add(tazid)
            if tazid not in master_tazids:
                result.warning(
                    "UnknownTazid",
                    f"TAZID {tazid} not found in {self.config.station_file}",
                    column=col,
                    details={"tazid": tazid},
                )

        checked_columns = tazid_columns[: self.config.sample_columns]
        for index, fields in enumerate(sample):
            row_num = index + 2
            time_value = fields[time_index] if time_index < len(fields) else None
            time_check = self.time_engine.validate_row({"time": time_value})
            for e in time_check.errors:
                result.error(e.code, e.message, row=row_num, field_name="time")
            if time_check.passed:
                result.time_range.update(time_check.value("time"))

            for col_index, col in checked_columns:
                value = fields[col_index] if col_index < len(fields) else ""
                if not value:
                    # empty cell means no data for that hour/zone
                    continue
                cell_check = self.cell_engine.validate_row({"value": value})
                for e in cell_check.errors:
                    result.error(e.code, e.message, row=row_num, column=col)
                for w in cell_check.warnings:
                    result.warning(w.code, f"Negative value found: {value}", row=row_num, column=col)

        logger.info(
            "Metric file validated",
            extra={
                "file_name": result.file,
                "tazids": len(result.tazids),
                "rows": result.row_count,
                "valid": result.is_valid,
            },
        )
        return result

    def _cross_check(self, report: ValidationReport, master_tazids: set[int]) -> None:
        metric_tazids = report.summary.tazids

        orphans = sorted(metric_tazids - master_tazids)
        if orphans:
            report.add_warning(
                "OrphanTazids",
                f"TAZIDs found in {self.config.metric_dir} files but not in {self.config.station_file}",
                details={"count": len(orphans), "samples": orphans[:CROSS_CHECK_SAMPLES]},
            )

        unused = sorted(master_tazids - metric_tazids)
        if unused:
            report.add_warning(
                "UnusedTazids",
                f"TAZIDs in {self.config.station_file} but not found in any {self.config.metric_dir} file",
                details={"count": len(unused), "samples": unused[:CROSS_CHECK_SAMPLES]},
            )

        logger.info(
            f"Cross-validation: {len(master_tazids)} master TAZIDs, {len(metric_tazids)} in metric files"
        )

    def _finish(self, report: ValidationReport) -> ValidationReport:
        metrics.record_validation(
            report.is_valid,
            [issue.code for issue in report.errors],
            [issue.code for issue in report.warnings],
        )
        logger.info(
            "Validation complete",
            extra={
                "is_valid": report.is_valid,
                "error_count": len(report.errors),
                "warning_count": len(report.warnings),
                "total_stations": len(report.summary.station_ids),
            },
        )
        return report
