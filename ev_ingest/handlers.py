"""
Invocation entry points.

Each handler takes the event payload of its contract and returns a plain
dict. Store handles and configuration can be passed explicitly; by
default they are built from the environment.
"""

from typing import Any
from urllib.parse import unquote_plus

from ev_ingest.batch.readers import CSVReader
from ev_ingest.batch.transforms import MetricTransform, StationTransform, ZoneTransform
from ev_ingest.batch.validation import CsvValidator
from ev_ingest.batch.workflow import IngestionWorkflow
from ev_ingest.batch.writers import BatchWriter
from ev_ingest.core.config import PipelineConfig
from ev_ingest.core.errors import ConfigurationError, IngestionError
from ev_ingest.core.models import Manifest, TransformResult
from ev_ingest.observability.logger import get_logger
from ev_ingest.store import BlobStore, DynamoDBKeyedStore, KeyedStore, S3BlobStore

logger = get_logger(__name__)

MANIFEST_SUFFIX = "_manifest.json"


def key_schema(config: PipelineConfig) -> dict[str, tuple[str, ...]]:
    """Primary key attributes of every destination."""
    return {
        config.tables.zone: ("ZoneId",),
        config.tables.station: ("StationId",),
        config.tables.metric: ("ZoneId", "Timestamp"),
    }


def build_blob_store(config: PipelineConfig, bucket: str | None) -> BlobStore:
    bucket = bucket or config.bucket
    if not bucket:
        raise ConfigurationError("No bucket given and BUCKET_NAME is not set")
    return S3BlobStore(bucket, region=config.region, endpoint_url=config.endpoint_url)


def build_keyed_store(config: PipelineConfig) -> KeyedStore:
    return DynamoDBKeyedStore(region=config.region, endpoint_url=config.endpoint_url)


def build_writer(keyed_store: KeyedStore, config: PipelineConfig) -> BatchWriter:
    return BatchWriter(
        keyed_store,
        batch_size=config.batch_size,
        max_retries=config.max_retries,
        base_delay=config.base_delay_seconds,
    )


def validate_handler(
    event: dict[str, Any],
    context: Any = None,
    *,
    config: PipelineConfig | None = None,
    blob_store: BlobStore | None = None,
) -> dict[str, Any]:
    """
    Validate the files of one batch.

    Event: ``{bucket, files}``. Returns ``{statusCode, isValid, summary,
    errors, warnings}``.
    """
    config = config or PipelineConfig.load()
    blob_store = blob_store or build_blob_store(config, event.get("bucket"))
    files = list(event.get("files") or [])

    logger.info(f"Validating {len(files)} files", extra={"bucket": event.get("bucket")})
    report = CsvValidator(CSVReader(blob_store), config).validate(files)
    return report.to_response()


def _run_transform(factory, branch: str, event: dict[str, Any], config, blob_store, keyed_store) -> dict[str, Any]:
    config = config or PipelineConfig.load()
    try:
        blob_store = blob_store or build_blob_store(config, event.get("bucketName"))
        keyed_store = keyed_store or build_keyed_store(config)
    except IngestionError as e:
        logger.error(f"Cannot start {branch} transform: {e}")
        return TransformResult(branch=branch, success=False, message=f"Failed to start {branch} transform", error=str(e)).to_response()

    transform = factory(CSVReader(blob_store), build_writer(keyed_store, config), config)
    return transform.run().to_response()


def transform_zone_handler(
    event: dict[str, Any],
    context: Any = None,
    *,
    config: PipelineConfig | None = None,
    blob_store: BlobStore | None = None,
    keyed_store: KeyedStore | None = None,
) -> dict[str, Any]:
    """Event: ``{bucketName}``."""
    return _run_transform(ZoneTransform, "zone", event, config, blob_store, keyed_store)


def transform_station_handler(
    event: dict[str, Any],
    context: Any = None,
    *,
    config: PipelineConfig | None = None,
    blob_store: BlobStore | None = None,
    keyed_store: KeyedStore | None = None,
) -> dict[str, Any]:
    """Event: ``{bucketName}``."""
    return _run_transform(StationTransform, "station", event, config, blob_store, keyed_store)


def transform_metric_handler(
    event: dict[str, Any],
    context: Any = None,
    *,
    config: PipelineConfig | None = None,
    blob_store: BlobStore | None = None,
    keyed_store: KeyedStore | None = None,
) -> dict[str, Any]:
    """
    Event: ``{bucketName}`` for every configured metric, ``{bucketName,
    metric}`` for a single one, or ``{bucketName, metrics}`` for a list.
    """
    if event.get("metric"):
        metric_names = [event["metric"]]
    else:
        metric_names = list(event.get("metrics") or []) or None

    def factory(reader, writer, cfg):
        return MetricTransform(reader, writer, cfg, metric_names)

    return _run_transform(factory, "metric", event, config, blob_store, keyed_store)


def workflow_handler(
    event: dict[str, Any],
    context: Any = None,
    *,
    config: PipelineConfig | None = None,
    blob_store: BlobStore | None = None,
    keyed_store: KeyedStore | None = None,
) -> dict[str, Any]:
    """
    Run the full workflow for a trigger payload.

    Event: ``{bucket, manifestKey, files, counts, metrics}``.
    """
    config = config or PipelineConfig.load()
    manifest = Manifest.from_trigger(event)
    blob_store = blob_store or build_blob_store(config, manifest.bucket)
    keyed_store = keyed_store or build_keyed_store(config)

    workflow = IngestionWorkflow(blob_store, keyed_store, config, writer=build_writer(keyed_store, config))
    return workflow.run(manifest).to_dict()


def manifest_trigger_handler(
    event: dict[str, Any],
    context: Any = None,
    *,
    config: PipelineConfig | None = None,
    blob_store: BlobStore | None = None,
    keyed_store: KeyedStore | None = None,
) -> dict[str, Any]:
    """
    React to blob-created notifications.

    Every ``*_manifest.json`` key is loaded and run through the workflow;
    other keys are skipped.

    Raises:
        SourceUnavailable: If a manifest cannot be fetched
        DecodeError: If a manifest is not valid JSON
    """
    config = config or PipelineConfig.load()
    executions = []

    for record in event.get("Records") or []:
        key = unquote_plus(record["s3"]["object"]["key"])
        if not key.endswith(MANIFEST_SUFFIX):
            logger.info(f"Skipping non-manifest file: {key}")
            continue

        bucket = config.bucket or record["s3"].get("bucket", {}).get("name")
        store = blob_store or build_blob_store(config, bucket)
        logger.info(f"Processing manifest: {key}", extra={"bucket": bucket})

        manifest = Manifest.from_blob(store, key, bucket)
        logger.info(f"Manifest contains {manifest.counts.get('totalFiles', len(manifest.files))} files")

        trigger = manifest.to_trigger(metrics=config.metrics)
        executions.append(
            workflow_handler(trigger, config=config, blob_store=store, keyed_store=keyed_store)
        )

    return {
        "statusCode": 200,
        "body": "Manifest processed successfully",
        "executions": executions,
    }
