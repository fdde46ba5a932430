from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List

from .errors import DataIntegrityError
from .models import Day, HourlyRecord


@dataclass
class _DayAccumulator:
    records: List[HourlyRecord] = field(default_factory=list)

    def build(self) -> Day:
        hours = sorted(self.records, key=_instant)
        first = hours[0].timestamp
        consumption = math.fsum(record.consumption_kwh for record in hours)
        total_cost = math.fsum(record.cost for record in hours)

        weight_total = math.fsum(record.profile_weight for record in hours)
        if weight_total == 0:
            raise DataIntegrityError(
                f"Profile weights for {first.date().isoformat()} sum to zero.",
                record=hours[0],
                field="profile_weight",
            )
        # Weights are renormalised so partial days still redistribute the whole day.
        profiled_price = (
            math.fsum(record.profile_weight * record.spot_price for record in hours)
            / weight_total
        )

        return Day(
            start_time=datetime.combine(first.date(), time(0), tzinfo=first.tzinfo),
            consumption_kwh=consumption,
            total_cost=total_cost,
            potential_cost=consumption * profiled_price,
            actual_kwh_price=total_cost / consumption if consumption > 0 else None,
        )


def aggregate_by_day(records: Iterable[HourlyRecord]) -> List[Day]:
    """Group hourly records into calendar days, ascending by start time.

    Days are keyed on the local date of each timestamp in its own timezone.
    Dates absent from the input produce no ``Day``. Any invalid record fails
    the whole call with ``DataIntegrityError``.
    """

    seen: Dict[datetime, HourlyRecord] = {}
    for record in records:
        record.validate()
        instant = _instant(record)
        if instant in seen:
            raise DataIntegrityError(
                f"Duplicate hour {record.timestamp.isoformat()}.",
                record=record,
                field="timestamp",
            )
        seen[instant] = record

    groups: Dict[date, _DayAccumulator] = {}
    for record in seen.values():
        groups.setdefault(record.timestamp.date(), _DayAccumulator()).records.append(record)

    days = [groups[key].build() for key in sorted(groups)]
    # Mixed offsets can order local dates differently from their midnights.
    return sorted(days, key=lambda day: day.start_time)


def _instant(record: HourlyRecord) -> datetime:
    # Same-zone comparisons ignore ``fold``, so repeated DST hours compare in UTC.
    return record.timestamp.astimezone(timezone.utc)
