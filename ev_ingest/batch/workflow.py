"""
Ingestion workflow orchestration.

Start -> Validate -> (ValidationFailed | ParallelTransform) -> Evaluate
-> (Complete | Failed)

Coordinates the flow: validate -> zone/station/metric transforms in
parallel -> aggregate into one verdict. No branch is ever retried here;
the batch writer already retries individual writes.
"""

import contextvars
import time
from concurrent.futures import ThreadPoolExecutor

from ev_ingest.batch.readers import CSVReader
from ev_ingest.batch.transforms import MetricTransform, StationTransform, ZoneTransform
from ev_ingest.batch.validation import CsvValidator
from ev_ingest.batch.writers import BatchWriter
from ev_ingest.core.config import PipelineConfig
from ev_ingest.core.models import (
    Manifest,
    MetricSuccessPolicy,
    TransformResult,
    WorkflowExecution,
    WorkflowState,
    WorkflowVerdict,
)
from ev_ingest.core.models.outcomes import Branch
from ev_ingest.observability import metrics
from ev_ingest.observability.logger import bind_execution, get_logger, log_operation
from ev_ingest.store.blob_store import BlobStore
from ev_ingest.store.keyed_store import KeyedStore

logger = get_logger(__name__)

BRANCHES: tuple[Branch, ...] = ("zone", "station", "metric")


def metric_branch_succeeded(result: TransformResult, policy: MetricSuccessPolicy) -> bool:
    """
    Decide the metric branch flag under a success policy.

    Args:
        result: Metric branch result
        policy: strict (all metric files), partial (at least one) or ignore

    Returns:
        Whether the metric branch counts as successful
    """
    if policy == MetricSuccessPolicy.PARTIAL:
        return result.success or any(r.success for r in result.metric_results)
    return result.success and all(r.success for r in result.metric_results)


def evaluate(results: dict[str, TransformResult], policy: MetricSuccessPolicy) -> WorkflowVerdict:
    """
    Aggregate the three branch results into a verdict.

    Under the ``ignore`` policy the metric flag is still reported but does
    not affect the final state.
    """
    flags = {
        "zone": results["zone"].success,
        "station": results["station"].success,
        "metric": metric_branch_succeeded(results["metric"], policy),
    }
    counted = [b for b in BRANCHES if not (b == "metric" and policy == MetricSuccessPolicy.IGNORE)]
    failed = [b for b in counted if not flags[b]]

    if not failed:
        return WorkflowVerdict(
            state=WorkflowState.COMPLETE,
            zone_success=flags["zone"],
            station_success=flags["station"],
            metric_success=flags["metric"],
        )

    cause = "; ".join(f"{b}: {results[b].error or results[b].message}" for b in failed)
    return WorkflowVerdict(
        state=WorkflowState.FAILED,
        zone_success=flags["zone"],
        station_success=flags["station"],
        metric_success=flags["metric"],
        failed_branches=failed,
        error="BranchFailed",
        cause=cause,
    )


class IngestionWorkflow:
    """
    Runs one manifest through validation and the three transforms.

    Store handles are passed in; the workflow never creates clients.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        keyed_store: KeyedStore,
        config: PipelineConfig | None = None,
        writer: BatchWriter | None = None,
    ):
        """
        Initialize workflow.

        Args:
            blob_store: Store holding the manifest's files
            keyed_store: Store the records are written to
            config: Pipeline configuration
            writer: Batch writer shared by all branches (built from config if None)
        """
        self.config = config or PipelineConfig()
        self.blob_store = blob_store
        self.keyed_store = keyed_store
        self.reader = CSVReader(blob_store)
        self.writer = writer or BatchWriter(
            keyed_store,
            batch_size=self.config.batch_size,
            max_retries=self.config.max_retries,
            base_delay=self.config.base_delay_seconds,
        )
        self.validator = CsvValidator(self.reader, self.config)

    def transforms(self, manifest: Manifest) -> dict[str, ZoneTransform | StationTransform | MetricTransform]:
        return {
            "zone": ZoneTransform(self.reader, self.writer, self.config),
            "station": StationTransform(self.reader, self.writer, self.config),
            "metric": MetricTransform(self.reader, self.writer, self.config, manifest.metrics or None),
        }

    def run(self, manifest: Manifest) -> WorkflowExecution:
        """
        Execute the workflow to a terminal state.

        Args:
            manifest: Batch to ingest

        Returns:
            WorkflowExecution with history, report, results and verdict
        """
        execution = WorkflowExecution(manifest=manifest)
        with bind_execution(execution.execution_id):
            return self._execute(execution)

    def _execute(self, execution: WorkflowExecution) -> WorkflowExecution:
        manifest = execution.manifest
        started = time.perf_counter()
        logger.info(
            "Starting workflow execution",
            extra={
                "manifest_key": manifest.manifest_key,
                "file_count": len(manifest.files),
                "state_machine": self.config.state_machine_arn,
            },
        )

        execution.transition(WorkflowState.VALIDATE)
        try:
            with log_operation("Validate", logger=logger):
                report = self.validator.validate(manifest.files)
        except Exception as e:
            execution.transition(WorkflowState.FAILED)
            execution.verdict = WorkflowVerdict(
                state=WorkflowState.FAILED,
                error=type(e).__name__,
                cause=f"validation step raised: {e}",
            )
            return self._finish(execution, started)
        execution.report = report

        if not report.is_valid:
            execution.transition(WorkflowState.VALIDATION_FAILED)
            execution.verdict = WorkflowVerdict(
                state=WorkflowState.VALIDATION_FAILED,
                error="ValidationFailed",
                cause=f"CSV validation failed with {len(report.errors)} errors",
            )
            return self._finish(execution, started)

        execution.transition(WorkflowState.PARALLEL_TRANSFORM)
        execution.results = self.run_transforms(manifest)

        execution.transition(WorkflowState.EVALUATE)
        verdict = evaluate(execution.results, self.config.metric_success_policy)
        execution.transition(verdict.state)
        execution.verdict = verdict
        return self._finish(execution, started)

    def run_transforms(self, manifest: Manifest) -> dict[str, TransformResult]:
        """
        Run the three branches concurrently and wait for all of them.

        An exception escaping a branch becomes a failed result for that
        branch; the other branches are unaffected.
        """
        branches = self.transforms(manifest)
        results: dict[str, TransformResult] = {}

        with ThreadPoolExecutor(max_workers=len(branches), thread_name_prefix="branch") as pool:
            futures = {
                name: pool.submit(contextvars.copy_context().run, transform.run)
                for name, transform in branches.items()
            }

            for name, future in futures.items():
                try:
                    results[name] = future.result()
                except Exception as e:
                    logger.exception(f"Branch {name} raised", extra={"branch": name})
                    results[name] = TransformResult(
                        branch=name,
                        success=False,
                        message=f"{name} branch raised {type(e).__name__}",
                        error=f"{type(e).__name__}: {e}",
                    )

        for name, result in results.items():
            logger.info(
                f"Branch {name}: {'success' if result.success else 'failure'}",
                extra={"branch": name, "stats": result.stats},
            )
        return results

    def _finish(self, execution: WorkflowExecution, started: float) -> WorkflowExecution:
        metrics.record_verdict(execution.state.value)
        log = logger.info if execution.state == WorkflowState.COMPLETE else logger.error
        log(
            f"Workflow finished: {execution.state.value}",
            extra={
                "failed_branches": execution.verdict.failed_branches if execution.verdict else [],
                "cause": execution.verdict.cause if execution.verdict else None,
                "duration_seconds": round(time.perf_counter() - started, 3),
            },
        )
        return execution
