from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .aggregates import aggregate_by_day
from .models import Day, HourlyRecord


@dataclass(frozen=True)
class ReportContext:
    """Per-request state the report is built for."""

    currency: str = "SEK"
    data_available: bool = True


@dataclass(frozen=True)
class SavingsReport:
    currency: str
    days_count: int
    consumption_kwh: float
    total_cost: float
    potential_cost: float
    savings: float
    savings_pct: float

    @property
    def saved(self) -> bool:
        return self.total_cost < self.potential_cost

    @property
    def verdict(self) -> str:
        if self.saved:
            return "It seems you save money by using off-peak electricity, nice."
        return (
            f"You paid more during the last {self.days_count} days than you would have "
            "if you had a contract with daily spot-price. This can be due to using energy "
            "consuming appliances during peak hours, and not using a significant amount "
            "of energy during off-peak hours."
        )


@dataclass(frozen=True)
class ChartSeries:
    labels: List[str]
    consumption_kwh: List[float]
    paid_kwh_price: List[float | None]
    profiled_kwh_price: List[float | None]


@dataclass(frozen=True)
class Report:
    days: List[Day]
    summary: SavingsReport
    chart: ChartSeries


def build_savings_report(days: Sequence[Day], currency: str = "SEK") -> SavingsReport:
    """Fold per-day figures into window totals.

    Totals are sums of ``Day`` fields only, so they always agree with the
    per-day chart.
    """

    consumption = math.fsum(day.consumption_kwh for day in days)
    total = math.fsum(day.total_cost for day in days)
    potential = math.fsum(day.potential_cost for day in days)
    savings = potential - total
    return SavingsReport(
        currency=currency,
        days_count=len(days),
        consumption_kwh=consumption,
        total_cost=total,
        potential_cost=potential,
        savings=savings,
        savings_pct=_savings_pct(potential, savings),
    )


def build_chart_series(days: Iterable[Day]) -> ChartSeries:
    days_list = list(days)
    return ChartSeries(
        labels=[day.start_time.strftime("%d/%m") for day in days_list],
        consumption_kwh=[day.consumption_kwh for day in days_list],
        paid_kwh_price=[day.actual_kwh_price for day in days_list],
        profiled_kwh_price=[day.potential_kwh_price for day in days_list],
    )


def build_report(records: Iterable[HourlyRecord], context: ReportContext) -> Report | None:
    """Aggregate records and build summary and chart data for one view.

    Returns ``None`` without touching the records when the context has no
    data available.
    """

    if not context.data_available:
        return None
    days = aggregate_by_day(records)
    return Report(
        days=days,
        summary=build_savings_report(days, currency=context.currency),
        chart=build_chart_series(days),
    )


def _savings_pct(potential: float, savings: float) -> float:
    if potential == 0:
        return 0.0
    return (savings / potential) * 100.0
