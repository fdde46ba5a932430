from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Dict, Iterable, Mapping, Set

from .errors import DataIntegrityError, InsufficientDataError


@dataclass(frozen=True)
class HourlyRecord:
    """Consumption, spot price and reference profile weight for one clock hour."""

    timestamp: datetime
    consumption_kwh: float
    spot_price: float
    profile_weight: float

    @property
    def cost(self) -> float:
        return self.consumption_kwh * self.spot_price

    def validate(self) -> None:
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise DataIntegrityError(
                f"Timestamp {self.timestamp.isoformat()} has no timezone.",
                record=self,
                field="timestamp",
            )
        if self.timestamp.minute or self.timestamp.second or self.timestamp.microsecond:
            raise DataIntegrityError(
                f"Timestamp {self.timestamp.isoformat()} is not on a whole hour.",
                record=self,
                field="timestamp",
            )
        for field, value in (
            ("consumption_kwh", self.consumption_kwh),
            ("spot_price", self.spot_price),
            ("profile_weight", self.profile_weight),
        ):
            if not math.isfinite(value) or value < 0:
                raise DataIntegrityError(
                    f"Invalid {field} {value!r} at {self.timestamp.isoformat()}.",
                    record=self,
                    field=field,
                )


@dataclass(frozen=True)
class Day:
    """Both cost models for one calendar day.

    ``actual_kwh_price`` is ``None`` when nothing was consumed that day.
    """

    start_time: datetime
    consumption_kwh: float
    total_cost: float
    potential_cost: float
    actual_kwh_price: float | None

    @property
    def has_data(self) -> bool:
        return self.actual_kwh_price is not None

    @property
    def potential_kwh_price(self) -> float | None:
        if not self.has_data:
            return None
        return self.potential_cost / self.consumption_kwh

    @property
    def savings(self) -> float:
        return self.potential_cost - self.total_cost

    def require_kwh_price(self) -> float:
        if self.actual_kwh_price is None:
            raise InsufficientDataError(self)
        return self.actual_kwh_price


@dataclass(frozen=True)
class ProfileSeries:
    """Lookup table for profile weights keyed by hour timestamp."""

    weights: Dict[datetime, float]

    def get(self, timestamp: datetime) -> float | None:
        return self.weights.get(_utc(timestamp))

    def __len__(self) -> int:
        return len(self.weights)

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Mapping[str, object]],
        timestamp_key: str = "timestamp",
        weight_key: str = "profile_weight",
    ) -> "ProfileSeries":
        return cls(
            {_utc(ensure_datetime(row[timestamp_key])): float(row[weight_key]) for row in rows}
        )

    @classmethod
    def from_load_rows(
        cls,
        rows: Iterable[Mapping[str, object]],
        timestamp_key: str = "timestamp",
        value_key: str = "value",
    ) -> "ProfileSeries":
        """Turn absolute reference-load values into weights summing to 1 per day."""

        loads: Dict[date, Dict[datetime, float]] = defaultdict(dict)
        for row in rows:
            timestamp = ensure_datetime(row[timestamp_key])
            loads[timestamp.date()][_utc(timestamp)] = float(row[value_key])

        weights: Dict[datetime, float] = {}
        for day_loads in loads.values():
            day_total = math.fsum(day_loads.values())
            for timestamp, load in day_loads.items():
                weights[timestamp] = load / day_total if day_total else 0.0
        return cls(weights)


def ensure_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise TypeError(f"Unsupported timestamp type: {type(value)!r}")


def _utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        raise DataIntegrityError(
            f"Profile timestamp {timestamp.isoformat()} has no timezone.", field="timestamp"
        )
    return timestamp.astimezone(timezone.utc)


def localize(timestamp: datetime, zone: tzinfo, seen: Set[datetime]) -> datetime:
    """Attach ``zone`` to a naive wall-clock time read in file order.

    The second occurrence of a wall time that the zone repeats (the autumn
    DST hour) is placed on the later offset.
    """

    if timestamp.tzinfo is not None:
        return timestamp
    localized = timestamp.replace(tzinfo=zone)
    if timestamp in seen and localized.utcoffset() != localized.replace(fold=1).utcoffset():
        localized = localized.replace(fold=1)
    seen.add(timestamp)
    return localized
