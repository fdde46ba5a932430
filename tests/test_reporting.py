from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from offpeak.models import Day
from offpeak.reporting import (
    ReportContext,
    build_chart_series,
    build_report,
    build_savings_report,
)

STOCKHOLM = ZoneInfo("Europe/Stockholm")


def _day(day: int, consumption: float, total: float, potential: float) -> Day:
    return Day(
        start_time=datetime(2024, 2, day, tzinfo=STOCKHOLM),
        consumption_kwh=consumption,
        total_cost=total,
        potential_cost=potential,
        actual_kwh_price=total / consumption if consumption else None,
    )


def test_summary_is_a_fold_over_days():
    days = [_day(1, 10.0, 12.0, 15.0), _day(2, 0.0, 0.0, 0.0), _day(4, 5.0, 8.0, 7.0)]

    report = build_savings_report(days, currency="SEK")

    assert report.days_count == 3
    assert report.consumption_kwh == pytest.approx(15.0)
    assert report.total_cost == pytest.approx(20.0)
    assert report.potential_cost == pytest.approx(22.0)
    assert report.savings == pytest.approx(2.0)
    assert report.savings_pct == pytest.approx(2.0 / 22.0 * 100)
    assert report.saved
    assert "save money" in report.verdict


def test_paying_more_gives_the_other_verdict():
    report = build_savings_report([_day(1, 10.0, 15.0, 12.0), _day(2, 4.0, 4.0, 4.0)])

    assert not report.saved
    assert report.savings == pytest.approx(-3.0)
    assert "You paid more during the last 2 days" in report.verdict


def test_empty_window_has_zero_percentage():
    report = build_savings_report([])

    assert report.total_cost == 0
    assert report.savings_pct == 0.0


def test_chart_series_marks_days_without_data():
    chart = build_chart_series([_day(1, 4.0, 4.0, 6.0), _day(3, 0.0, 0.0, 0.0)])

    assert chart.labels == ["01/02", "03/02"]
    assert chart.consumption_kwh == [4.0, 0.0]
    assert chart.paid_kwh_price == [pytest.approx(1.0), None]
    assert chart.profiled_kwh_price == [pytest.approx(1.5), None]


def test_report_is_skipped_without_data():
    def _records():
        raise AssertionError("records must not be read")
        yield  # pragma: no cover

    assert build_report(_records(), ReportContext(data_available=False)) is None


def test_report_uses_context_currency(make_record):
    records = [make_record(1, 0, 2.0, 1.0, 0.5), make_record(1, 1, 1.0, 2.0, 0.5)]

    report = build_report(records, ReportContext(currency="NOK"))

    assert report is not None
    assert report.summary.currency == "NOK"
    assert report.summary.total_cost == pytest.approx(4.0)
    assert report.summary.potential_cost == pytest.approx(4.5)
    assert report.summary.saved
    assert report.chart.labels == ["01/01"]
