"""
Unit tests for the blob and keyed store adapters.

The AWS-backed adapters run against botocore's Stubber; no network calls
are made.
"""

import io

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from ev_ingest.batch.readers import CSVReader
from ev_ingest.core.errors import SourceUnavailable, TransportError
from ev_ingest.store import DynamoDBKeyedStore, InMemoryKeyedStore, LocalBlobStore, S3BlobStore


def aws_client(service):
    return boto3.client(
        service,
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def streaming_body(data: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(data), len(data))


@pytest.mark.unit
class TestLocalBlobStore:
    """Tests for LocalBlobStore"""

    def test_list_keys_under_prefix(self, blob_store):
        keys = blob_store.list_keys("urban-ev-data/charge_1hour")

        assert len(keys) == 6
        assert "urban-ev-data/charge_1hour/volume-11kw.csv" in keys

    def test_list_keys_missing_prefix(self, tmp_path):
        assert LocalBlobStore(tmp_path).list_keys("nothing/here") == []

    def test_read_bytes_missing(self, tmp_path):
        with pytest.raises(SourceUnavailable):
            LocalBlobStore(tmp_path).read_bytes("missing.csv")


@pytest.mark.unit
class TestInMemoryKeyedStore:
    """Tests for InMemoryKeyedStore"""

    def test_put_overwrites_by_key(self):
        store = InMemoryKeyedStore({"Station_Data": ("ZoneId", "Timestamp")})
        first = {"ZoneId": "ZONE#1", "Timestamp": "t0", "duration": 1.0}
        second = {"ZoneId": "ZONE#1", "Timestamp": "t0", "duration": 2.0}

        assert store.batch_put("Station_Data", [first]) == []
        store.batch_put("Station_Data", [second])

        assert store.count("Station_Data") == 1
        assert store.get_item("Station_Data", {"ZoneId": "ZONE#1", "Timestamp": "t0"})["duration"] == 2.0

    def test_unknown_destination(self):
        store = InMemoryKeyedStore({"Zone_Information": ("ZoneId",)})

        with pytest.raises(TransportError, match="ResourceNotFoundException"):
            store.batch_put("Nope", [{"ZoneId": "ZONE#1"}])

    def test_missing_key_attribute(self):
        store = InMemoryKeyedStore({"Zone_Information": ("ZoneId",)})

        with pytest.raises(TransportError, match="ValidationException"):
            store.batch_put("Zone_Information", [{"TAZID": 1}])

    def test_repeated_key_in_one_put(self):
        store = InMemoryKeyedStore({"Zone_Information": ("ZoneId",)})

        with pytest.raises(TransportError, match="duplicates"):
            store.batch_put("Zone_Information", [{"ZoneId": "ZONE#1", "v": 1}, {"ZoneId": "ZONE#1", "v": 2}])

        assert store.count("Zone_Information") == 0

    def test_bulk_limit(self):
        store = InMemoryKeyedStore({"Zone_Information": ("ZoneId",)})
        items = [{"ZoneId": f"ZONE#{i}"} for i in range(26)]

        with pytest.raises(ValueError):
            store.batch_put("Zone_Information", items)


@pytest.mark.unit
class TestDynamoDBKeyedStore:
    """Tests for DynamoDBKeyedStore"""

    def test_items_marshalled_with_decimals(self):
        client = aws_client("dynamodb")
        store = DynamoDBKeyedStore(client=client)
        item = {"ZoneId": "ZONE#102", "TAZID": 102, "Latitude": 22.5431, "Area": None}

        with Stubber(client) as stubber:
            stubber.add_response(
                "batch_write_item",
                {"UnprocessedItems": {}},
                {
                    "RequestItems": {
                        "Zone_Information": [
                            {
                                "PutRequest": {
                                    "Item": {
                                        "ZoneId": {"S": "ZONE#102"},
                                        "TAZID": {"N": "102"},
                                        "Latitude": {"N": "22.5431"},
                                    }
                                }
                            }
                        ]
                    }
                },
            )

            assert store.batch_put("Zone_Information", [item]) == []
            stubber.assert_no_pending_responses()

    def test_unprocessed_items_unmarshalled(self):
        client = aws_client("dynamodb")
        store = DynamoDBKeyedStore(client=client)
        item = {"ZoneId": "ZONE#102", "Timestamp": "t0", "TAZID": 102, "duration": 5.0}

        with Stubber(client) as stubber:
            stubber.add_response(
                "batch_write_item",
                {
                    "UnprocessedItems": {
                        "Station_Data": [
                            {
                                "PutRequest": {
                                    "Item": {
                                        "ZoneId": {"S": "ZONE#102"},
                                        "Timestamp": {"S": "t0"},
                                        "TAZID": {"N": "102"},
                                        "duration": {"N": "5.0"},
                                    }
                                }
                            }
                        ]
                    }
                },
            )

            unprocessed = store.batch_put("Station_Data", [item])

        assert unprocessed == [item]
        assert isinstance(unprocessed[0]["TAZID"], int)
        assert isinstance(unprocessed[0]["duration"], float)

    def test_client_error_becomes_transport_error(self):
        client = aws_client("dynamodb")
        store = DynamoDBKeyedStore(client=client)

        with Stubber(client) as stubber:
            stubber.add_client_error(
                "batch_write_item",
                service_error_code="ProvisionedThroughputExceededException",
                service_message="Rate exceeded",
                http_status_code=400,
            )

            with pytest.raises(TransportError, match="ProvisionedThroughputExceededException: Rate exceeded"):
                store.batch_put("Zone_Information", [{"ZoneId": "ZONE#1"}])

    def test_empty_put_makes_no_request(self):
        client = aws_client("dynamodb")
        store = DynamoDBKeyedStore(client=client)

        with Stubber(client):
            assert store.batch_put("Zone_Information", []) == []


@pytest.mark.unit
class TestS3BlobStore:
    """Tests for S3BlobStore"""

    def test_read_bytes(self):
        client = aws_client("s3")
        store = S3BlobStore("ev-data", client=client)

        with Stubber(client) as stubber:
            stubber.add_response(
                "get_object",
                {"Body": streaming_body(b'{"files": []}')},
                {"Bucket": "ev-data", "Key": "urban-ev-data/_manifest.json"},
            )

            assert store.read_bytes("urban-ev-data/_manifest.json") == b'{"files": []}'

    def test_csv_rows_streamed_from_object(self):
        client = aws_client("s3")
        data = b"time,102\n2022-09-01 00:00:00,5.0\n"

        with Stubber(client) as stubber:
            stubber.add_response(
                "get_object",
                {"Body": streaming_body(data)},
                {"Bucket": "ev-data", "Key": "m.csv"},
            )

            rows = list(CSVReader(S3BlobStore("ev-data", client=client)).read("m.csv"))

        assert rows == [{"time": "2022-09-01 00:00:00", "102": "5.0"}]

    def test_missing_object(self):
        client = aws_client("s3")
        store = S3BlobStore("ev-data", client=client)

        with Stubber(client) as stubber:
            stubber.add_client_error(
                "get_object",
                service_error_code="NoSuchKey",
                service_message="The specified key does not exist.",
                http_status_code=404,
            )

            with pytest.raises(SourceUnavailable) as exc_info:
                store.open("missing.csv")

        assert exc_info.value.key == "s3://ev-data/missing.csv"
        assert exc_info.value.message.startswith("NoSuchKey")

    def test_list_keys(self):
        client = aws_client("s3")
        store = S3BlobStore("ev-data", client=client)

        with Stubber(client) as stubber:
            stubber.add_response(
                "list_objects_v2",
                {
                    "Contents": [
                        {"Key": "urban-ev-data/station_information.csv"},
                        {"Key": "urban-ev-data/zone-information.csv"},
                    ],
                    "IsTruncated": False,
                },
                {"Bucket": "ev-data", "Prefix": "urban-ev-data/"},
            )

            keys = store.list_keys("urban-ev-data/")

        assert keys == ["urban-ev-data/station_information.csv", "urban-ev-data/zone-information.csv"]
