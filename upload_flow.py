from __future__ import annotations

import csv
import datetime as dt
import io
import logging
import zipfile
from dataclasses import dataclass
from zoneinfo import ZoneInfo

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from offpeak.errors import DataIntegrityError
from offpeak.models import HourlyRecord, ProfileSeries, localize

logger = logging.getLogger(__name__)

TIMESTAMP_HEADERS = ["timestamp", "from", "time", "datetime", "hour"]
CONSUMPTION_HEADERS = ["consumption", "consumption_kwh", "kwh", "usage"]
PRICE_HEADERS = ["spot_price", "unitprice", "unit_price", "price"]
WEIGHT_HEADERS = ["profile_weight", "weight", "profile"]


@dataclass(frozen=True)
class ParsingError:
    code: str
    message: str
    row: int | None = None


class UploadValidationError(Exception):
    def __init__(self, errors: list[ParsingError]) -> None:
        super().__init__("Upload validation failed")
        self.errors = errors

    def user_messages(self) -> list[dict[str, str | int]]:
        return [
            {
                "code": error.code,
                "message": error.message,
                "row": error.row or 0,
            }
            for error in self.errors
        ]


@dataclass(frozen=True)
class UploadRow:
    timestamp: dt.datetime
    consumption_kwh: float
    spot_price: float
    profile_weight: float | None


@dataclass(frozen=True)
class ParsedUpload:
    timezone: str
    rows: list[UploadRow]

    @property
    def has_profile(self) -> bool:
        return all(row.profile_weight is not None for row in self.rows)

    def to_records(self, profile: ProfileSeries | None = None) -> list[HourlyRecord]:
        """Build engine records, taking weights from ``profile`` when given."""

        records = []
        for row in self.rows:
            weight = profile.get(row.timestamp) if profile is not None else row.profile_weight
            if weight is None:
                raise DataIntegrityError(
                    f"Missing profile weight for {row.timestamp.isoformat()}.",
                    field="profile_weight",
                )
            records.append(
                HourlyRecord(
                    timestamp=row.timestamp,
                    consumption_kwh=row.consumption_kwh,
                    spot_price=row.spot_price,
                    profile_weight=weight,
                )
            )
        return records


def parse_hourly_upload(
    file_bytes: bytes,
    original_filename: str,
    timezone: str = "Europe/Stockholm",
) -> ParsedUpload:
    tzinfo = ZoneInfo(timezone)
    errors: list[ParsingError] = []
    suffix = original_filename.rsplit(".", 1)[-1].lower() if "." in original_filename else ""

    if suffix == "csv":
        rows = _parse_csv(file_bytes, tzinfo, errors)
    elif suffix in {"xlsx", "xlsm"}:
        rows = _parse_xlsx(file_bytes, tzinfo, errors)
    else:
        errors.append(
            ParsingError(
                code="unsupported_format",
                message="Only CSV or Excel (.xlsx) files are supported.",
            )
        )
        rows = []

    if not errors:
        _validate_hours(rows, errors)
    if errors:
        logger.warning("Rejected upload %s with %d errors", original_filename, len(errors))
        raise UploadValidationError(errors)

    return ParsedUpload(timezone=timezone, rows=rows)


def _parse_csv(
    file_bytes: bytes,
    tzinfo: ZoneInfo,
    errors: list[ParsingError],
) -> list[UploadRow]:
    try:
        text = file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        errors.append(ParsingError(code="invalid_encoding", message="CSV file is not UTF-8."))
        return []
    first_line = text.split("\n", 1)[0]
    delimiter = ";" if ";" in first_line else ","
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    table = [tuple(cells) for cells in reader if any(cell.strip() for cell in cells)]
    if not table:
        errors.append(ParsingError(code="missing_header", message="CSV file has no header row."))
        return []
    return _parse_table(table, tzinfo, errors)


def _parse_xlsx(
    file_bytes: bytes,
    tzinfo: ZoneInfo,
    errors: list[ParsingError],
) -> list[UploadRow]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError):
        errors.append(
            ParsingError(code="invalid_file", message="File is not a valid Excel workbook.")
        )
        return []
    try:
        table = list(workbook.active.iter_rows(values_only=True))
    finally:
        workbook.close()
    if not table:
        errors.append(ParsingError(code="empty_file", message="Excel file contains no data."))
        return []
    return _parse_table(table, tzinfo, errors)


def _parse_table(
    table: list[tuple[object, ...]],
    tzinfo: ZoneInfo,
    errors: list[ParsingError],
) -> list[UploadRow]:
    header = [str(cell).strip() if cell is not None else "" for cell in table[0]]
    timestamp_index = _find_header(header, TIMESTAMP_HEADERS)
    consumption_index = _find_header(header, CONSUMPTION_HEADERS)
    price_index = _find_header(header, PRICE_HEADERS)
    weight_index = _find_header(header, WEIGHT_HEADERS)

    if timestamp_index is None or consumption_index is None or price_index is None:
        errors.append(
            ParsingError(
                code="missing_columns",
                message="Expected columns timestamp, consumption and price.",
            )
        )
        return []

    rows: list[UploadRow] = []
    seen: set[dt.datetime] = set()
    for index, row in enumerate(table[1:], start=2):
        timestamp = _parse_timestamp(
            _cell_to_str(row, timestamp_index), tzinfo, seen, index, errors
        )
        consumption = _parse_float(_cell_to_str(row, consumption_index), index, errors)
        price = _parse_float(_cell_to_str(row, price_index), index, errors)
        weight = None
        if weight_index is not None:
            weight = _parse_float(_cell_to_str(row, weight_index), index, errors)
        if timestamp is None or consumption is None or price is None:
            continue
        if weight_index is not None and weight is None:
            continue
        rows.append(
            UploadRow(
                timestamp=timestamp,
                consumption_kwh=consumption,
                spot_price=price,
                profile_weight=weight,
            )
        )
    return rows


def _parse_timestamp(
    raw: str,
    tzinfo: ZoneInfo,
    seen: set[dt.datetime],
    row: int,
    errors: list[ParsingError],
) -> dt.datetime | None:
    if not raw:
        errors.append(
            ParsingError(code="missing_timestamp", message="Empty timestamp found.", row=row)
        )
        return None
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        parsed = _parse_datetime_fallback(raw)
        if parsed is None:
            errors.append(
                ParsingError(
                    code="invalid_timestamp",
                    message=f"Invalid timestamp: {raw}.",
                    row=row,
                )
            )
            return None
    return localize(parsed, tzinfo, seen)


def _parse_datetime_fallback(raw: str) -> dt.datetime | None:
    formats = [
        "%Y-%m-%d %H:%M",
        "%Y-%m-%d %H:%M:%S",
        "%d/%m/%Y %H:%M",
        "%d-%m-%Y %H:%M",
        "%d/%m/%Y %H:%M:%S",
        "%d-%m-%Y %H:%M:%S",
    ]
    for fmt in formats:
        try:
            return dt.datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def _parse_float(raw: str, row: int, errors: list[ParsingError]) -> float | None:
    cleaned = raw.replace(" ", "").replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        errors.append(
            ParsingError(
                code="invalid_value",
                message=f"Invalid value: {raw!r}.",
                row=row,
            )
        )
        return None


def _find_header(header: list[str], candidates: list[str]) -> int | None:
    lowered = {name.lower(): index for index, name in enumerate(header) if name}
    for candidate in candidates:
        if candidate in lowered:
            return lowered[candidate]
    return None


def _cell_to_str(row: tuple[object, ...], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    if isinstance(value, dt.datetime):
        return value.isoformat()
    return str(value).strip()


def _validate_hours(rows: list[UploadRow], errors: list[ParsingError]) -> None:
    if not rows:
        errors.append(ParsingError(code="empty_data", message="No hourly values found."))
        return

    seen: set[dt.datetime] = set()
    for row in rows:
        instant = row.timestamp.astimezone(dt.timezone.utc)
        if instant in seen:
            errors.append(
                ParsingError(
                    code="duplicate_interval",
                    message=f"Duplicate hour found: {row.timestamp.isoformat()}.",
                )
            )
        seen.add(instant)

    for row in rows:
        timestamp = row.timestamp
        if timestamp.minute or timestamp.second:
            errors.append(
                ParsingError(
                    code="invalid_interval",
                    message=f"Timestamp is not on a whole hour: {timestamp.isoformat()}.",
                )
            )
            break
