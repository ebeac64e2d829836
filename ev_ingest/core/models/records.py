"""
Keyed records written to the key-value store.

Attribute aliases are the stored attribute names; Python attributes are
snake_case. `to_item()` renders the store item, `key()` its primary key.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

ZONE_ID_PREFIX = "ZONE#"


def zone_id_for(tazid: int) -> str:
    """Build the zone partition key for a TAZID."""
    return f"{ZONE_ID_PREFIX}{tazid}"


class ZoneRecord(BaseModel):
    """
    One traffic analysis zone.

    Attributes:
        zone_id: Primary key, ``ZONE#<tazid>``
        tazid: Traffic analysis zone ID
        latitude: Zone centroid latitude
        longitude: Zone centroid longitude
        charge_count: Number of chargers in the zone
        area: Zone area (optional in the source file)
        perimeter: Zone perimeter (optional in the source file)
        geohash: 7-character geohash of the centroid
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    zone_id: str = Field(..., alias="ZoneId", pattern=r"^ZONE#-?\d+$")
    tazid: int = Field(..., alias="TAZID")
    latitude: float = Field(..., alias="Latitude", allow_inf_nan=False)
    longitude: float = Field(..., alias="Longitude", allow_inf_nan=False)
    charge_count: int = Field(..., alias="ChargeCount")
    area: float | None = Field(None, alias="Area", allow_inf_nan=False)
    perimeter: float | None = Field(None, alias="Perimeter", allow_inf_nan=False)
    geohash: str = Field(..., alias="Geohash", min_length=7, max_length=7)

    def key(self) -> dict[str, Any]:
        return {"ZoneId": self.zone_id}

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class StationRecord(BaseModel):
    """
    One charging station.

    ``TotalChargers`` is always derived from the slow and fast counts.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    station_id: int = Field(..., alias="StationId")
    latitude: float = Field(..., alias="Latitude", allow_inf_nan=False)
    longitude: float = Field(..., alias="Longitude", allow_inf_nan=False)
    slow_count: int = Field(0, alias="SlowCount", ge=0)
    fast_count: int = Field(0, alias="FastCount", ge=0)
    tazid: int = Field(..., alias="TAZID")
    geohash: str = Field(..., alias="Geohash", min_length=1)

    @computed_field(alias="TotalChargers")
    @property
    def total_chargers(self) -> int:
        return self.slow_count + self.fast_count

    def key(self) -> dict[str, Any]:
        return {"StationId": self.station_id}

    def to_item(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ZoneMetricRecord(BaseModel):
    """
    Hourly metrics for one zone, identified by (ZoneId, Timestamp).

    Each metric is stored as its own attribute on the item, so several
    metric files contribute to the same record.
    """

    model_config = ConfigDict(populate_by_name=True)

    zone_id: str = Field(..., alias="ZoneId", pattern=r"^ZONE#-?\d+$")
    timestamp: str = Field(..., alias="Timestamp", min_length=1)
    tazid: int = Field(..., alias="TAZID")
    metrics: dict[str, float] = Field(default_factory=dict)

    def key(self) -> dict[str, Any]:
        return {"ZoneId": self.zone_id, "Timestamp": self.timestamp}

    def to_item(self) -> dict[str, Any]:
        item: dict[str, Any] = {
            "ZoneId": self.zone_id,
            "Timestamp": self.timestamp,
            "TAZID": self.tazid,
        }
        item.update(self.metrics)
        return item
