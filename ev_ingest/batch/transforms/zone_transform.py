"""
Zone transform: zone-information.csv -> ZoneRecord items.
"""

from typing import Any

import pygeohash
from pydantic import ValidationError

from ev_ingest.core.models import InvalidRow, ZoneRecord, zone_id_for
from ev_ingest.core.validators import parse_float, parse_int

from .base import BaseTransform, parse_field

GEOHASH_PRECISION = 7


def optional_float(value: Any) -> float | None:
    """Parse an optional cell; empty or unparsable cells become None."""
    try:
        return parse_float(value)
    except ValueError:
        return None


def parse_zone_row(row: dict[str, str], row_number: int) -> ZoneRecord | InvalidRow:
    """
    Parse one zone row.

    TAZID, latitude, longitude and charge_count are required; area and
    perimeter are optional.

    Args:
        row: Header -> value
        row_number: 1-based line number (header is line 1)

    Returns:
        ZoneRecord, or InvalidRow with the reason
    """
    try:
        tazid = parse_field(row, "TAZID", parse_int)
        latitude = parse_field(row, "latitude", parse_float)
        longitude = parse_field(row, "longitude", parse_float)
        charge_count = parse_field(row, "charge_count", parse_int)

        return ZoneRecord(
            zone_id=zone_id_for(tazid),
            tazid=tazid,
            latitude=latitude,
            longitude=longitude,
            charge_count=charge_count,
            area=optional_float(row.get("area")),
            perimeter=optional_float(row.get("perimeter")),
            geohash=pygeohash.encode(latitude, longitude, precision=GEOHASH_PRECISION),
        )
    except (ValueError, ValidationError) as e:
        return InvalidRow(row_number=row_number, reason=str(e), raw=row)


class ZoneTransform(BaseTransform):
    branch = "zone"
    label = "zone information"
    total_key = "totalZones"

    @property
    def source_key(self) -> str:
        return self.config.zone_key

    @property
    def destination(self) -> str:
        return self.config.tables.zone

    def parse_row(self, row: dict[str, str], row_number: int) -> ZoneRecord | InvalidRow:
        return parse_zone_row(row, row_number)
