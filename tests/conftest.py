"""
Pytest configuration and fixtures for ev_ingest tests

This module provides shared fixtures for unit, integration, and E2E tests:
a local blob store populated with a small but complete batch, an
in-memory keyed store, and scripted keyed store doubles.
"""
import json
from pathlib import Path
from typing import Any, Callable

import pytest

from ev_ingest.core.config import PipelineConfig
from ev_ingest.core.errors import TransportError
from ev_ingest.core.models import Manifest
from ev_ingest.handlers import key_schema
from ev_ingest.store import InMemoryKeyedStore, LocalBlobStore


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests over a local blob store and in-memory keyed store"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests through the handlers and the CLI"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# SAMPLE DATA
# =======================

PREFIX = "urban-ev-data"

ZONE_CSV = """TAZID,latitude,longitude,charge_count,area,perimeter
102,22.5431,114.0579,12,1.5,5.2
104,22.5512,114.0621,8,,
105,22.6000,114.1000,3,2.0,6.0
"""

STATION_CSV = """station_id,longitude,latitude,slow_count,fast_count,charge_count,TAZID
1001,114.0579,22.5431,4,2,6,102
1002,114.0601,22.5440,0,3,3,102
1003,114.0621,22.5512,2,2,4,104
1004,114.1000,22.6000,1,0,1,105
"""

METRIC_CSVS = {
    "duration": """time,102,104,105
2022-09-01 00:00:00,5.0,,1.0
2022-09-01 01:00:00,,7.5,2.0
""",
    "e_price": """time,102,104,105
2022-09-01 00:00:00,1.2,0.9,
2022-09-01 01:00:00,1.1,1.0,
""",
    "occupancy": """time,102,104,105
2022-09-01 00:00:00,0.5,0.25,0.75
2022-09-01 01:00:00,0.5,,
""",
    "s_price": """time,102,104,105
2022-09-01 00:00:00,0.8,0.6,
2022-09-01 01:00:00,0.9,,
""",
    "volume-11kw": """time,102,104,105
2022-09-01 00:00:00,10.0,,
2022-09-01 01:00:00,12.0,4.0,
""",
    "volume": """time,102,104,105
2022-09-01 00:00:00,20.0,8.0,3.0
2022-09-01 01:00:00,22.0,9.0,4.0
""",
}


def write_blob(root: Path, key: str, content: str | bytes) -> Path:
    """Write a blob under a local store root, creating parent directories."""
    path = root / key
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


def batch_files() -> list[str]:
    """Keys of a complete batch, in upload order."""
    return [
        f"{PREFIX}/zone-information.csv",
        f"{PREFIX}/station_information.csv",
        *[f"{PREFIX}/charge_1hour/{metric}.csv" for metric in METRIC_CSVS],
    ]


# =======================
# STORE FIXTURES
# =======================

@pytest.fixture
def data_dir(tmp_path) -> Path:
    """
    Local blob store root holding one complete batch

    Returns:
        Directory path
    """
    root = tmp_path / "bucket"
    write_blob(root, f"{PREFIX}/zone-information.csv", ZONE_CSV)
    write_blob(root, f"{PREFIX}/station_information.csv", STATION_CSV)
    for metric, content in METRIC_CSVS.items():
        write_blob(root, f"{PREFIX}/charge_1hour/{metric}.csv", content)
    return root


@pytest.fixture
def blob_store(data_dir) -> LocalBlobStore:
    return LocalBlobStore(data_dir)


@pytest.fixture
def config() -> PipelineConfig:
    """Default configuration with no backoff delay"""
    return PipelineConfig(bucket="test-bucket", base_delay_seconds=0.0)


@pytest.fixture
def keyed_store(config) -> InMemoryKeyedStore:
    return InMemoryKeyedStore(key_schema(config))


@pytest.fixture
def manifest() -> Manifest:
    files = batch_files()
    return Manifest(
        bucket="test-bucket",
        files=tuple(files),
        manifest_key=f"{PREFIX}/_manifest.json",
        counts={"totalFiles": len(files)},
    )


@pytest.fixture
def manifest_document() -> Callable[[Path], str]:
    """Write a _manifest.json for the sample batch and return its key"""
    def _write(root: Path) -> str:
        key = f"{PREFIX}/_manifest.json"
        files = batch_files()
        document = {
            "files": files,
            "counts": {"totalFiles": len(files), "totalSizeBytes": 1024},
            "createdAt": "2024-01-01T00:00:00+00:00",
            "metadata": [{"key": f, "size": 128} for f in files],
        }
        write_blob(root, key, json.dumps(document))
        return key

    return _write


# =======================
# KEYED STORE DOUBLES
# =======================

class ScriptedKeyedStore:
    """
    Keyed store double that replays a script of responses, one per call.

    Script entries:
    - "ok": accept every item
    - int n: return the last n items as unprocessed
    - "all": return every item as unprocessed
    - "error": raise TransportError

    Once the script is exhausted every call is accepted.
    """

    def __init__(self, script: list[Any] | None = None):
        self.script = list(script or [])
        self.calls: list[list[dict[str, Any]]] = []
        self.accepted: list[dict[str, Any]] = []

    def batch_put(self, destination: str, items):
        items = list(items)
        self.calls.append(items)
        action = self.script.pop(0) if self.script else "ok"

        if action == "error":
            raise TransportError("ServiceUnavailable: simulated transport failure")
        if action == "all":
            return items
        if isinstance(action, int) and action > 0:
            self.accepted.extend(items[:-action])
            return items[-action:]
        self.accepted.extend(items)
        return []

    def get_item(self, destination: str, key):
        return None


class ThrottlingKeyedStore(InMemoryKeyedStore):
    """In-memory store that leaves the last item of every first attempt unprocessed"""

    def __init__(self, key_schema):
        super().__init__(key_schema)
        self.calls = 0
        self._throttle_next = True

    def batch_put(self, destination, items):
        self.calls += 1
        items = list(items)
        if self._throttle_next and len(items) > 1:
            self._throttle_next = False
            super().batch_put(destination, items[:-1])
            return items[-1:]
        self._throttle_next = True
        return super().batch_put(destination, items)


@pytest.fixture
def scripted_store() -> Callable[..., ScriptedKeyedStore]:
    return ScriptedKeyedStore


@pytest.fixture
def no_sleep() -> list[float]:
    """Collects requested backoff delays instead of sleeping"""
    return []


@pytest.fixture
def throttling_store(config) -> ThrottlingKeyedStore:
    return ThrottlingKeyedStore(key_schema(config))


@pytest.fixture
def write_file() -> Callable[[Path, str, str | bytes], Path]:
    """Helper writing (or overwriting) a blob under a local store root"""
    return write_blob


@pytest.fixture
def files() -> list[str]:
    return batch_files()
