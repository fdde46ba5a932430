from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from offpeak.errors import DataIntegrityError
from offpeak.models import ProfileSeries
from offpeak.profiles import build_hourly_records, read_profile_from_csv, read_profile_from_text

STOCKHOLM = ZoneInfo("Europe/Stockholm")

PROFILE_TEXT = """Period;Load (MWh)
2024-01-01 00:00;1,5
2024-01-01 01:00;0,5
2024-01-02 00:00;2,0
"""


def test_profile_text_becomes_daily_weights():
    profile = read_profile_from_text(PROFILE_TEXT)

    assert len(profile) == 3
    assert profile.get(datetime(2024, 1, 1, 0, tzinfo=STOCKHOLM)) == pytest.approx(0.75)
    assert profile.get(datetime(2024, 1, 1, 1, tzinfo=STOCKHOLM)) == pytest.approx(0.25)
    assert profile.get(datetime(2024, 1, 2, 0, tzinfo=STOCKHOLM)) == pytest.approx(1.0)


def test_profile_lookup_matches_same_instant_in_utc():
    profile = read_profile_from_text(PROFILE_TEXT)

    assert profile.get(datetime(2023, 12, 31, 23, tzinfo=timezone.utc)) == pytest.approx(0.75)


def test_profile_from_csv_file(tmp_path):
    path = tmp_path / "profile.csv"
    path.write_text("timestamp,value\n2024-01-01T00:00:00+01:00,3\n2024-01-01T01:00:00+01:00,1\n")

    profile = read_profile_from_csv(path)

    assert profile.get(datetime(2024, 1, 1, 1, tzinfo=STOCKHOLM)) == pytest.approx(0.25)


def test_profile_rows_keep_given_weights():
    profile = ProfileSeries.from_rows(
        [{"timestamp": "2024-01-01T00:00:00+01:00", "profile_weight": "0.04"}]
    )

    assert profile.get(datetime(2024, 1, 1, tzinfo=STOCKHOLM)) == pytest.approx(0.04)


def test_nodes_are_joined_with_profile():
    profile = read_profile_from_text(PROFILE_TEXT)
    nodes = [
        {"from": "2024-01-01T00:00:00+01:00", "consumption": 2.0, "unitPrice": 1.0},
        {"from": "2024-01-01T01:00:00+01:00", "consumption": 1.0, "unitPrice": 2.0},
        {"from": "2024-01-01T02:00:00+01:00", "consumption": None, "unitPrice": 1.5},
    ]

    records = build_hourly_records(nodes, profile)

    assert [record.profile_weight for record in records] == [
        pytest.approx(0.75),
        pytest.approx(0.25),
    ]
    assert records[1].spot_price == 2.0


def test_missing_profile_weight_is_an_integrity_error():
    profile = read_profile_from_text(PROFILE_TEXT)
    nodes = [{"from": "2024-01-03T00:00:00+01:00", "consumption": 1.0, "unitPrice": 1.0}]

    with pytest.raises(DataIntegrityError) as excinfo:
        build_hourly_records(nodes, profile)

    assert excinfo.value.field == "profile_weight"
