from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from offpeak.models import HourlyRecord  # noqa: E402

STOCKHOLM = ZoneInfo("Europe/Stockholm")


@pytest.fixture
def make_record():
    def _make(day: int, hour: int, consumption: float, price: float, weight: float):
        return HourlyRecord(
            timestamp=datetime(2024, 1, day, hour, tzinfo=STOCKHOLM),
            consumption_kwh=consumption,
            spot_price=price,
            profile_weight=weight,
        )

    return _make
