"""
Command-line interface for the ingestion workflow.

Usage:
    ev-ingest run [--local-dir DIR | --bucket NAME] [--manifest KEY | --files KEY ...]
    ev-ingest validate [--local-dir DIR | --bucket NAME] [--manifest KEY | --files KEY ...]
"""

import argparse
import json
import sys

from ev_ingest.batch.readers import CSVReader
from ev_ingest.batch.validation import CsvValidator
from ev_ingest.batch.workflow import IngestionWorkflow
from ev_ingest.core.config import PipelineConfig
from ev_ingest.core.errors import ConfigurationError, IngestionError
from ev_ingest.core.models import Manifest, MetricSuccessPolicy, WorkflowState
from ev_ingest.handlers import build_blob_store, build_keyed_store, build_writer, key_schema
from ev_ingest.observability.logger import ROOT_LOGGER_NAME, get_logger, setup_logger
from ev_ingest.observability.metrics import start_metrics_server
from ev_ingest.store import InMemoryKeyedStore, LocalBlobStore

logger = get_logger(__name__)

LOCAL_BUCKET = "local"


def load_config(args) -> PipelineConfig:
    config = PipelineConfig.load(args.config)
    updates = {}
    if args.bucket:
        updates["bucket"] = args.bucket
    if getattr(args, "policy", None):
        updates["metric_success_policy"] = MetricSuccessPolicy(args.policy)
    return config.model_copy(update=updates) if updates else config


def resolve_manifest(args, config: PipelineConfig, blob_store) -> Manifest:
    """
    Build the manifest from --manifest, --files, or every key under the data prefix.
    """
    bucket = LOCAL_BUCKET if args.local_dir else config.bucket
    if args.manifest:
        return Manifest.from_blob(blob_store, args.manifest, bucket)

    files = args.files or [
        key for key in blob_store.list_keys(config.data_prefix) if key.endswith(".csv")
    ]
    if not files:
        raise ConfigurationError(f"No CSV files found under {config.data_prefix}")
    return Manifest(bucket=bucket, files=tuple(files), counts={"totalFiles": len(files)})


def open_stores(args, config: PipelineConfig):
    if args.local_dir:
        logger.info(f"DRY RUN MODE: reading {args.local_dir}, writing to an in-memory store")
        return LocalBlobStore(args.local_dir), InMemoryKeyedStore(key_schema(config))
    return build_blob_store(config, config.bucket), build_keyed_store(config)


def run_command(args) -> int:
    """
    Execute the full workflow.

    Returns:
        Exit code (0 when the execution completed)
    """
    config = load_config(args)
    blob_store, keyed_store = open_stores(args, config)
    manifest = resolve_manifest(args, config, blob_store)

    logger.info(f"Running workflow for {len(manifest.files)} files")
    workflow = IngestionWorkflow(blob_store, keyed_store, config, writer=build_writer(keyed_store, config))
    execution = workflow.run(manifest)

    print(json.dumps(execution.to_dict(), indent=2, default=str))

    if isinstance(keyed_store, InMemoryKeyedStore):
        for table in key_schema(config):
            logger.info(f"{table}: {keyed_store.count(table)} items")

    return 0 if execution.state == WorkflowState.COMPLETE else 1


def validate_command(args) -> int:
    """
    Validate only and print the report.

    Returns:
        Exit code (0 when the batch is valid)
    """
    config = load_config(args)
    blob_store, _ = open_stores(args, config)
    manifest = resolve_manifest(args, config, blob_store)

    report = CsvValidator(CSVReader(blob_store), config).validate(manifest.files)
    print(json.dumps(report.to_response(), indent=2, default=str))
    return 0 if report.is_valid else 1


def add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--local-dir",
        help="Read files from a local directory and write to an in-memory store (dry run)"
    )
    parser.add_argument(
        "--bucket",
        help="Blob store bucket (default: BUCKET_NAME)"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--manifest",
        help="Key of a _manifest.json document"
    )
    source.add_argument(
        "--files",
        nargs="+",
        help="File keys to ingest (default: every CSV under the data prefix)"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to pipeline YAML file (default: PIPELINE_CONFIG or config/pipeline.yaml)"
    )


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="EV charging CSV ingestion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dry run against a local copy of the data
  ev-ingest run --local-dir ./data

  # Run a manifest already uploaded to the bucket
  ev-ingest run --bucket ev-data --manifest urban-ev-data/_manifest.json

  # Validate only
  ev-ingest validate --local-dir ./data
        """
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while running"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Validate, transform and load a batch")
    add_source_arguments(run_parser)
    run_parser.add_argument(
        "--policy",
        choices=[p.value for p in MetricSuccessPolicy],
        help="Metric success policy (default: METRIC_SUCCESS_POLICY or strict)"
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a batch without writing")
    add_source_arguments(validate_parser)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.log_level:
        setup_logger(ROOT_LOGGER_NAME, level=args.log_level)
    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    try:
        if args.command == "run":
            return run_command(args)
        return validate_command(args)
    except IngestionError as e:
        logger.error(f"Error during ingestion: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
