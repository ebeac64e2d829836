"""
Keyed store adapters.

A keyed store accepts bulk put requests of at most ``MAX_BATCH_ITEMS``
items and answers with the subset it did not process, instead of failing
the whole request. Puts overwrite by primary key.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Any, Protocol, Sequence

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from ev_ingest.core.errors import TransportError

MAX_BATCH_ITEMS = 25


class KeyedStore(Protocol):
    def batch_put(self, destination: str, items: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Put up to MAX_BATCH_ITEMS items.

        Returns:
            Items the store left unprocessed (empty when all were accepted)

        Raises:
            TransportError: If the request itself failed
        """
        ...

    def get_item(self, destination: str, key: dict[str, Any]) -> dict[str, Any] | None:
        ...


def _check_batch(items: Sequence[dict[str, Any]]) -> None:
    if len(items) > MAX_BATCH_ITEMS:
        raise ValueError(f"bulk put accepts at most {MAX_BATCH_ITEMS} items, got {len(items)}")


class InMemoryKeyedStore:
    """
    Thread-safe in-process keyed store, used for dry runs and tests.

    Args:
        key_schema: destination -> primary key attribute names
    """

    def __init__(self, key_schema: dict[str, tuple[str, ...]]) -> None:
        self.key_schema = key_schema
        self._tables: dict[str, dict[tuple, dict[str, Any]]] = {name: {} for name in key_schema}
        self._lock = threading.Lock()

    def _key_of(self, destination: str, item: dict[str, Any]) -> tuple:
        try:
            attributes = self.key_schema[destination]
        except KeyError:
            raise TransportError(f"ResourceNotFoundException: unknown destination {destination}") from None
        try:
            return tuple(item[attr] for attr in attributes)
        except KeyError as e:
            raise TransportError(f"ValidationException: item is missing key attribute {e}") from None

    def batch_put(self, destination: str, items: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        _check_batch(items)
        keyed = [(self._key_of(destination, item), item) for item in items]
        if len({key for key, _ in keyed}) < len(keyed):
            raise TransportError("ValidationException: provided list of item keys contains duplicates")
        with self._lock:
            table = self._tables[destination]
            for key, item in keyed:
                table[key] = dict(item)
        return []

    def get_item(self, destination: str, key: dict[str, Any]) -> dict[str, Any] | None:
        lookup = self._key_of(destination, key)
        with self._lock:
            item = self._tables[destination].get(lookup)
        return dict(item) if item is not None else None

    def items(self, destination: str) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(item) for item in self._tables.get(destination, {}).values()]

    def count(self, destination: str) -> int:
        with self._lock:
            return len(self._tables.get(destination, {}))


class DynamoDBKeyedStore:
    """
    Keyed store backed by DynamoDB BatchWriteItem.

    Floats are sent as Decimal; unprocessed items are converted back to
    plain Python values before they are returned.
    """

    def __init__(
        self,
        client: Any | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        if client is None:
            import boto3

            client = boto3.client("dynamodb", region_name=region, endpoint_url=endpoint_url)
        self._client = client
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def _marshall(self, item: dict[str, Any]) -> dict[str, Any]:
        return {
            name: self._serializer.serialize(_to_dynamo_value(value))
            for name, value in item.items()
            if value is not None
        }

    def _unmarshall(self, item: dict[str, Any]) -> dict[str, Any]:
        return {name: _from_dynamo_value(self._deserializer.deserialize(value)) for name, value in item.items()}

    def batch_put(self, destination: str, items: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        _check_batch(items)
        if not items:
            return []

        request_items = {
            destination: [{"PutRequest": {"Item": self._marshall(item)}} for item in items]
        }
        try:
            response = self._client.batch_write_item(RequestItems=request_items)
        except ClientError as e:
            error = e.response.get("Error", {})
            raise TransportError(f"{error.get('Code', 'ClientError')}: {error.get('Message', str(e))}") from e
        except BotoCoreError as e:
            raise TransportError(str(e)) from e

        unprocessed = response.get("UnprocessedItems", {}).get(destination, [])
        return [self._unmarshall(request["PutRequest"]["Item"]) for request in unprocessed if "PutRequest" in request]

    def get_item(self, destination: str, key: dict[str, Any]) -> dict[str, Any] | None:
        try:
            response = self._client.get_item(TableName=destination, Key=self._marshall(key))
        except ClientError as e:
            raise TransportError(str(e)) from e
        item = response.get("Item")
        return self._unmarshall(item) if item else None


def _to_dynamo_value(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    return value


def _from_dynamo_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        # Decimal("5") came from an int, Decimal("5.0") from a float
        if value.as_tuple().exponent >= 0:
            return int(value)
        return float(value)
    return value
