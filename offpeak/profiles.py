from __future__ import annotations

import csv
import io
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Mapping
from zoneinfo import ZoneInfo

from .errors import DataIntegrityError
from .models import HourlyRecord, ProfileSeries, ensure_datetime, localize

DEFAULT_TIMEZONE = "Europe/Stockholm"

_TIMESTAMP_FORMATS = [
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H",
    "%d/%m/%Y %H:%M",
    "%d-%m-%Y %H:%M",
]


def read_profile_from_csv(
    path: str | Path,
    timezone: str = DEFAULT_TIMEZONE,
) -> ProfileSeries:
    """Read a reference consumption profile download from disk."""

    text = Path(path).read_text(encoding="utf-8-sig")
    return read_profile_from_text(text, timezone=timezone)


def read_profile_from_text(text: str, timezone: str = DEFAULT_TIMEZONE) -> ProfileSeries:
    """Parse a delimited hourly reference-load listing into per-day weights.

    Each data line holds a timestamp and a load value. Header and metadata
    lines are skipped. Naive timestamps are placed in ``timezone``.
    """

    tzinfo = ZoneInfo(timezone)
    delimiter = ";" if ";" in text else ","
    rows = []
    seen: set[datetime] = set()
    for cells in csv.reader(io.StringIO(text), delimiter=delimiter):
        if len(cells) < 2:
            continue
        timestamp = _parse_timestamp(cells[0].strip())
        if timestamp is None:
            continue
        rows.append(
            {"timestamp": localize(timestamp, tzinfo, seen), "value": _parse_float(cells[1])}
        )
    return ProfileSeries.from_load_rows(rows)


def build_hourly_records(
    nodes: Iterable[Mapping[str, object]],
    profile: ProfileSeries,
    timestamp_key: str = "from",
    consumption_key: str = "consumption",
    price_key: str = "unitPrice",
) -> List[HourlyRecord]:
    """Join hourly consumption nodes from the data provider with a profile."""

    records: List[HourlyRecord] = []
    for node in nodes:
        if node.get(consumption_key) is None:
            continue
        timestamp = ensure_datetime(node[timestamp_key])
        weight = profile.get(timestamp)
        if weight is None:
            raise DataIntegrityError(
                f"Missing profile weight for {timestamp.isoformat()}.",
                field="profile_weight",
            )
        records.append(
            HourlyRecord(
                timestamp=timestamp,
                consumption_kwh=float(node[consumption_key]),
                spot_price=float(node[price_key]),
                profile_weight=weight,
            )
        )
    return records


def _parse_timestamp(raw: str) -> datetime | None:
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        pass
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def _parse_float(raw: str) -> float:
    return float(raw.strip().replace(" ", "").replace(",", "."))
