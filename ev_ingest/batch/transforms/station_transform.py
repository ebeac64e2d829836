"""
Station transform: station_information.csv -> StationRecord items.
"""

from typing import Any

import pygeohash
from pydantic import ValidationError

from ev_ingest.core.models import InvalidRow, StationRecord
from ev_ingest.core.validators import parse_float, parse_int

from .base import BaseTransform, parse_field
from .zone_transform import GEOHASH_PRECISION


def parse_count(value: Any) -> int:
    """Charger counts default to 0 when the cell is empty."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    return parse_int(value)


def parse_station_row(row: dict[str, str], row_number: int) -> StationRecord | InvalidRow:
    """
    Parse one station row.

    station_id, latitude, longitude and TAZID are required. Empty
    slow/fast counts are 0; non-numeric or negative counts reject the row.
    TotalChargers is derived by the record.
    """
    try:
        station_id = parse_field(row, "station_id", parse_int)
        latitude = parse_field(row, "latitude", parse_float)
        longitude = parse_field(row, "longitude", parse_float)
        tazid = parse_field(row, "TAZID", parse_int)

        return StationRecord(
            station_id=station_id,
            latitude=latitude,
            longitude=longitude,
            slow_count=parse_field(row, "slow_count", parse_count),
            fast_count=parse_field(row, "fast_count", parse_count),
            tazid=tazid,
            geohash=pygeohash.encode(latitude, longitude, precision=GEOHASH_PRECISION),
        )
    except (ValueError, ValidationError) as e:
        return InvalidRow(row_number=row_number, reason=str(e), raw=row)


class StationTransform(BaseTransform):
    branch = "station"
    label = "station information"
    total_key = "totalStations"

    @property
    def source_key(self) -> str:
        return self.config.station_key

    @property
    def destination(self) -> str:
        return self.config.tables.station

    def parse_row(self, row: dict[str, str], row_number: int) -> StationRecord | InvalidRow:
        return parse_station_row(row, row_number)
