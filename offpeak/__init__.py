"""Hourly spot-price versus profiled-price cost comparison per calendar day."""

from .aggregates import aggregate_by_day
from .errors import DataIntegrityError, InsufficientDataError
from .models import Day, HourlyRecord, ProfileSeries
from .profiles import build_hourly_records, read_profile_from_csv, read_profile_from_text
from .reporting import (
    ReportContext,
    SavingsReport,
    build_chart_series,
    build_report,
    build_savings_report,
)

__all__ = [
    "aggregate_by_day",
    "build_chart_series",
    "build_hourly_records",
    "build_report",
    "build_savings_report",
    "DataIntegrityError",
    "Day",
    "HourlyRecord",
    "InsufficientDataError",
    "ProfileSeries",
    "read_profile_from_csv",
    "read_profile_from_text",
    "ReportContext",
    "SavingsReport",
]
