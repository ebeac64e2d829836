"""
Integration tests for the ingestion workflow.

Runs the full validate -> transform -> write flow over a local blob store
and an in-memory keyed store.
"""

import pytest

from ev_ingest.batch.workflow import IngestionWorkflow
from ev_ingest.batch.writers import BatchWriter
from ev_ingest.core.models import WorkflowState

T0 = "2022-09-01 00:00:00"
T1 = "2022-09-01 01:00:00"


@pytest.mark.integration
def test_full_batch_loads_every_table(blob_store, keyed_store, config, manifest):
    """
    Test a clean batch is validated and loaded into the three tables.

    Steps:
    1. Run the workflow for the sample manifest
    2. Verify zone, station and metric items
    3. Verify merged metric attributes
    """
    execution = IngestionWorkflow(blob_store, keyed_store, config).run(manifest)

    assert execution.state == WorkflowState.COMPLETE
    output = execution.to_dict()
    assert output["validation"]["isValid"] is True
    assert output["results"]["zone"]["stats"]["totalZones"] == 3
    assert output["results"]["station"]["stats"]["totalStations"] == 4
    assert output["results"]["metric"]["stats"]["totalDataPoints"] == 6
    assert output["verdict"]["failedBranches"] == []

    zone = keyed_store.get_item("Zone_Information", {"ZoneId": "ZONE#102"})
    assert zone["Area"] == 1.5
    assert len(zone["Geohash"]) == 7

    station = keyed_store.get_item("Station_Information", {"StationId": 1002})
    assert station["TotalChargers"] == 3
    assert station["TAZID"] == 102

    metric_items = {(item["ZoneId"], item["Timestamp"]): item for item in keyed_store.items("Station_Data")}
    assert metric_items[("ZONE#104", T0)]["total_price"] == pytest.approx(1.5)
    assert metric_items[("ZONE#102", T1)]["total_price"] == pytest.approx(2.0)
    assert metric_items[("ZONE#104", T1)]["e_price"] == 1.0
    assert metric_items[("ZONE#105", T0)] == {
        "ZoneId": "ZONE#105",
        "Timestamp": T0,
        "TAZID": 105,
        "duration": 1.0,
        "occupancy": 0.75,
    }
    assert all("volume-11kw" not in item for item in metric_items.values())


@pytest.mark.integration
def test_rerun_is_idempotent(blob_store, keyed_store, config, manifest):
    """Test running the same manifest twice leaves the same items"""
    workflow = IngestionWorkflow(blob_store, keyed_store, config)

    workflow.run(manifest)
    first = sorted(keyed_store.items("Station_Data"), key=lambda i: (i["ZoneId"], i["Timestamp"]))
    second_execution = workflow.run(manifest)
    second = sorted(keyed_store.items("Station_Data"), key=lambda i: (i["ZoneId"], i["Timestamp"]))

    assert second_execution.state == WorkflowState.COMPLETE
    assert first == second
    assert keyed_store.count("Zone_Information") == 3
    assert keyed_store.count("Station_Information") == 4


@pytest.mark.integration
def test_throttled_store_still_completes(blob_store, throttling_store, config, manifest, no_sleep):
    """Test unprocessed items are retried until every item lands"""
    writer = BatchWriter(throttling_store, base_delay=0.1, sleep=no_sleep.append)

    execution = IngestionWorkflow(blob_store, throttling_store, config, writer=writer).run(manifest)

    assert execution.state == WorkflowState.COMPLETE
    assert throttling_store.count("Zone_Information") == 3
    assert throttling_store.count("Station_Information") == 4
    assert throttling_store.count("Station_Data") == 6
    assert execution.results["metric"].stats["failedWrites"] == 0
    assert no_sleep
    assert set(no_sleep) == {0.1}


@pytest.mark.integration
def test_invalid_rows_in_master_file_stop_the_run(blob_store, keyed_store, config, manifest, data_dir, write_file):
    write_file(
        data_dir,
        "urban-ev-data/station_information.csv",
        "station_id,longitude,latitude,slow_count,fast_count,charge_count,TAZID\n"
        "1001,114.0579,22.5431,4,2,6,102\n"
        "1001,114.0601,22.5440,0,3,3,102\n",
    )

    execution = IngestionWorkflow(blob_store, keyed_store, config).run(manifest)

    assert execution.state == WorkflowState.VALIDATION_FAILED
    assert [e["code"] for e in execution.to_dict()["validation"]["errors"]] == ["DuplicateKey"]
    assert keyed_store.count("Station_Information") == 0
