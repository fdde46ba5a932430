from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import Flask, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from offpeak.errors import DataIntegrityError
from offpeak.models import Day, HourlyRecord, ProfileSeries
from offpeak.profiles import build_hourly_records, read_profile_from_text
from offpeak.reporting import Report, ReportContext, build_report
from upload_flow import UploadValidationError, parse_hourly_upload

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = os.environ.get("OFFPEAK_TIMEZONE", "Europe/Stockholm")
DEFAULT_CURRENCY = os.environ.get("OFFPEAK_CURRENCY", "SEK")
MAX_UPLOAD_MB = int(os.environ.get("OFFPEAK_MAX_UPLOAD_MB", "10"))

app = Flask(__name__, static_folder=None)
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_MB * 1024 * 1024
app.config["DEFAULT_TIMEZONE"] = DEFAULT_TIMEZONE
app.config["DEFAULT_CURRENCY"] = DEFAULT_CURRENCY


@app.get("/healthz")
def healthz() -> object:
    return "OK"


@app.post("/api/v1/report")
def report() -> object:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Expected a JSON object."}), 400
    currency = str(payload.get("currency") or app.config["DEFAULT_CURRENCY"])

    try:
        if "records" in payload:
            records = [_record_from_json(item) for item in payload["records"]]
        elif "nodes" in payload and "profile" in payload:
            profile = ProfileSeries.from_load_rows(payload["profile"])
            records = build_hourly_records(payload["nodes"], profile)
        else:
            return jsonify({"error": "Expected 'records', or 'nodes' with 'profile'."}), 400
    except DataIntegrityError as exc:
        return _integrity_response(exc)
    except (KeyError, TypeError, ValueError) as exc:
        return jsonify({"error": f"Malformed record: {exc}"}), 400

    return _report_response(records, currency)


@app.post("/api/v1/upload")
def upload() -> object:
    if "file" not in request.files:
        return jsonify({"error": "No file received."}), 400
    file = request.files["file"]
    if not file.filename:
        return jsonify({"error": "File name is missing."}), 400

    try:
        timezone_name = _parse_timezone(request.form.get("timezone"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    currency = request.form.get("currency", "").strip() or app.config["DEFAULT_CURRENCY"]

    try:
        parsed = parse_hourly_upload(file.read(), file.filename, timezone=timezone_name)
    except UploadValidationError as exc:
        return jsonify({"error": "Upload validation failed.", "details": exc.user_messages()}), 422

    if "profile" not in request.files and not parsed.has_profile:
        return jsonify({"error": "Upload has no profile weights and no profile file."}), 400

    try:
        profile = None
        if "profile" in request.files:
            profile_text = request.files["profile"].read().decode("utf-8-sig")
            profile = read_profile_from_text(profile_text, timezone=timezone_name)
        records = parsed.to_records(profile)
    except DataIntegrityError as exc:
        return _integrity_response(exc)
    except (UnicodeDecodeError, ValueError) as exc:
        return jsonify({"error": f"Invalid profile file: {exc}"}), 400
    return _report_response(records, currency)


@app.errorhandler(RequestEntityTooLarge)
def handle_file_too_large(_: RequestEntityTooLarge) -> object:
    return (
        jsonify({"error": f"File is too large. At most {MAX_UPLOAD_MB} MB allowed."}),
        413,
    )


def _report_response(records: list[HourlyRecord], currency: str) -> object:
    context = ReportContext(currency=currency, data_available=bool(records))
    try:
        built = build_report(records, context)
    except DataIntegrityError as exc:
        return _integrity_response(exc)
    if built is None:
        return jsonify({"error": "No data available for the requested period."}), 404
    return jsonify(_format_report(built))


def _integrity_response(exc: DataIntegrityError) -> object:
    logger.warning("Rejected records: %s", exc)
    return jsonify({"error": "Data integrity check failed.", "details": exc.details()}), 422


def _record_from_json(item: Mapping[str, Any]) -> HourlyRecord:
    return HourlyRecord(
        timestamp=datetime.fromisoformat(str(item["timestamp"])),
        consumption_kwh=float(item["consumption"]),
        spot_price=float(item["spot_price"]),
        profile_weight=float(item["profile_weight"]),
    )


def _parse_timezone(value: str | None) -> str:
    timezone_name = (value or "").strip() or app.config["DEFAULT_TIMEZONE"]
    try:
        ZoneInfo(timezone_name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError("Unknown timezone given.") from exc
    return timezone_name


def _format_day(day: Day) -> dict[str, object]:
    return {
        "start_time": day.start_time.isoformat(),
        "consumption_kwh": round(day.consumption_kwh, 3),
        "total_cost": round(day.total_cost, 2),
        "potential_cost": round(day.potential_cost, 2),
        "actual_kwh_price": (
            round(day.actual_kwh_price, 4) if day.actual_kwh_price is not None else None
        ),
    }


def _format_report(built: Report) -> dict[str, object]:
    summary = built.summary
    return {
        "days": [_format_day(day) for day in built.days],
        "summary": {
            "currency": summary.currency,
            "days": summary.days_count,
            "consumption_kwh": round(summary.consumption_kwh, 1),
            "total_cost": round(summary.total_cost, 2),
            "potential_cost": round(summary.potential_cost, 2),
            "savings": round(summary.savings, 2),
            "savings_pct": round(summary.savings_pct, 1),
            "saved": summary.saved,
            "verdict": summary.verdict,
        },
        "chart": {
            "labels": built.chart.labels,
            "consumption_kwh": built.chart.consumption_kwh,
            "paid_kwh_price": built.chart.paid_kwh_price,
            "profiled_kwh_price": built.chart.profiled_kwh_price,
        },
    }


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", "8080")))
