"""
Pipeline configuration.

Settings come from a YAML file (``config/pipeline.yaml`` by default, or
``PIPELINE_CONFIG``) overlaid with environment variables. A ``.env`` file
is loaded first when present.
"""

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from ev_ingest.core.errors import ConfigurationError
from ev_ingest.core.models.outcomes import MetricSuccessPolicy
from ev_ingest.core.rules import RuleConfigBuilder, RuleConfigLoader

DEFAULT_CONFIG_PATH = "config/pipeline.yaml"

# DynamoDB BatchWriteItem limit
MAX_BATCH_SIZE = 25

# Environment variable -> dotted config path
ENV_OVERRIDES = {
    "BUCKET_NAME": "bucket",
    "DATA_PREFIX": "data_prefix",
    "ZONE_INFO_TABLE_NAME": "tables.zone",
    "STATION_INFO_TABLE_NAME": "tables.station",
    "STATION_DATA_TABLE_NAME": "tables.metric",
    "STATE_MACHINE_ARN": "state_machine_arn",
    "AWS_REGION": "region",
    "AWS_ENDPOINT_URL": "endpoint_url",
    "METRIC_SUCCESS_POLICY": "metric_success_policy",
    "MAX_ROWS_PER_FILE": "max_rows_per_file",
    "METRIC_CONCURRENCY": "metric_concurrency",
}

STATION_REQUIRED_COLUMNS = [
    "station_id",
    "longitude",
    "latitude",
    "slow_count",
    "fast_count",
    "charge_count",
    "TAZID",
]


class GeoBounds(BaseModel):
    """Expected coordinate box (Hong Kong / Shenzhen by default)."""

    lat_min: float = 22.0
    lat_max: float = 23.0
    lon_min: float = 113.0
    lon_max: float = 115.0


class TableNames(BaseModel):
    zone: str = "Zone_Information"
    station: str = "Station_Information"
    metric: str = "Station_Data"


class PipelineConfig(BaseModel):
    """
    All tunables of the pipeline.

    Attributes:
        bucket: Blob store bucket (BUCKET_NAME)
        data_prefix: Key prefix of the raw files
        tables: Keyed store destinations
        geo_bounds: Bounding box for the latitude/longitude warnings
        station_rules: Column rules for the master station file
        expected_metric_files: Metric files the validator expects
        metrics: Metrics folded by the metric transform, in merge order
        sample_rows: Metric rows validated per file
        sample_columns: TAZID columns validated per metric row
        max_rows_per_file: Data rows transformed per metric file
        metric_concurrency: Parallel metric file reads
        batch_size: Items per bulk put
        max_retries: Retries per chunk
        base_delay_seconds: First backoff delay; doubles per attempt
        metric_success_policy: How the metric branch counts in the verdict
    """

    bucket: str | None = None
    data_prefix: str = "urban-ev-data"
    zone_file: str = "zone-information.csv"
    station_file: str = "station_information.csv"
    metric_dir: str = "charge_1hour"
    tables: TableNames = Field(default_factory=TableNames)

    geo_bounds: GeoBounds = Field(default_factory=GeoBounds)
    station_required_columns: list[str] = Field(default_factory=lambda: list(STATION_REQUIRED_COLUMNS))
    station_rules: list[dict[str, Any]] = Field(default_factory=list)
    expected_metric_files: list[str] = Field(
        default_factory=lambda: [
            "duration.csv",
            "e_price.csv",
            "occupancy.csv",
            "s_price.csv",
            "volume-11kw.csv",
            "volume.csv",
        ]
    )
    sample_rows: int = Field(100, ge=1)
    sample_columns: int = Field(10, ge=1)

    metrics: list[str] = Field(
        default_factory=lambda: ["duration", "e_price", "occupancy", "s_price", "volume-11kw"]
    )
    max_rows_per_file: int = Field(10, ge=1)
    metric_concurrency: int = Field(4, ge=1)

    batch_size: int = Field(MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE)
    max_retries: int = Field(3, ge=0)
    base_delay_seconds: float = Field(0.1, ge=0.0)

    metric_success_policy: MetricSuccessPolicy = MetricSuccessPolicy.STRICT

    region: str | None = None
    endpoint_url: str | None = None
    state_machine_arn: str | None = None

    @field_validator("data_prefix")
    @classmethod
    def strip_prefix(cls, v: str) -> str:
        return v.strip("/")

    def key(self, name: str) -> str:
        """Blob key of a file under the data prefix."""
        return f"{self.data_prefix}/{name}" if self.data_prefix else name

    @property
    def zone_key(self) -> str:
        return self.key(self.zone_file)

    @property
    def station_key(self) -> str:
        return self.key(self.station_file)

    def metric_key(self, metric: str) -> str:
        return self.key(f"{self.metric_dir}/{metric}.csv")

    def station_rule_list(self) -> list[dict[str, Any]]:
        """Configured station rules, or the defaults derived from geo_bounds."""
        if self.station_rules:
            return self.station_rules
        return default_station_rules(self.geo_bounds)

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "PipelineConfig":
        """
        Load configuration from YAML and environment.

        Args:
            path: YAML file (defaults to PIPELINE_CONFIG or config/pipeline.yaml)
            env: Environment mapping (defaults to os.environ after loading .env)

        Returns:
            PipelineConfig

        Raises:
            ConfigurationError: If the YAML or an override is invalid
        """
        if env is None:
            load_dotenv()
            env = os.environ

        config_path = Path(path or env.get("PIPELINE_CONFIG", DEFAULT_CONFIG_PATH))
        data: dict[str, Any] = {}
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(f"{config_path}: top level must be a mapping")
            station_section = data.pop("station_information", None) or {}
            if "rules" in station_section:
                data["station_rules"] = RuleConfigLoader(config_path, section="station_information").load_rules()
            if "required_columns" in station_section:
                data["station_required_columns"] = station_section["required_columns"]
        elif path is not None:
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        for env_name, dotted in ENV_OVERRIDES.items():
            value = env.get(env_name)
            if value:
                _set_dotted(data, dotted, value)

        try:
            return cls.model_validate(data)
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"Invalid pipeline configuration: {e}") from e


def _set_dotted(data: dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    target = data
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def default_station_rules(bounds: GeoBounds) -> list[dict[str, Any]]:
    """Column rules for station_information.csv."""
    builder = (
        RuleConfigBuilder()
        .add_required_field("station_id")
        .add_numeric("station_id", "int")
        .add_required_field("TAZID")
        .add_numeric("TAZID", "int")
        .add_required_field("latitude")
        .add_numeric("latitude")
        .add_range("latitude", bounds.lat_min, bounds.lat_max, severity="warning", code="OutOfBounds")
        .add_required_field("longitude")
        .add_numeric("longitude")
        .add_range("longitude", bounds.lon_min, bounds.lon_max, severity="warning", code="OutOfBounds")
    )
    for count_field in ("slow_count", "fast_count", "charge_count"):
        builder.add_required_field(count_field)
        builder.add_numeric(count_field, "int")
        builder.add_range(count_field, min_value=0, code="NegativeValue")
    return builder.build()
