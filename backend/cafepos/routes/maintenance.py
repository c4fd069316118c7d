# Overview: Flask API routes that trigger the bulk maintenance runs.

"""
Maintenance API Routes

WHY: Backfill, daily stats and category tagging are run by an operator
after data problems are found. They return the RunReport as-is: a run that
stops part-way is a normal outcome and says how far it got.

An ABORTED run answers 503 (the database kept failing); the body still
carries the report.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import categorization_service, reconciliation_service, stats_service
from ..services.batching import STATUS_ABORTED
from ..time_utils import parse_iso_datetime
from ..validation import ValidationError


maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")


def _positive_int(data: dict, key: str):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{key} must be a positive integer")
    return value


def _run_options(data: dict) -> dict:
    return {
        "page_size": _positive_int(data, "page_size"),
        "batch_size": _positive_int(data, "batch_size"),
    }


def _report_response(report):
    status = 503 if report.status == STATUS_ABORTED else 200
    return jsonify({"report": report.to_dict()}), status


@maintenance_bp.post("/backfill")
def backfill_route():
    """
    Recompute the payment split of closed shifts.

    Request body (all optional):
    {
        "start": "2024-01-01T00:00:00Z",
        "end": "2024-02-01T00:00:00Z",
        "page_size": 500,
        "batch_size": 400
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        try:
            start = parse_iso_datetime(data.get("start"))
            end = parse_iso_datetime(data.get("end"))
        except (ValueError, AttributeError):
            raise ValidationError("start and end must be ISO-8601 datetimes")

        report = reconciliation_service.backfill_shift_totals(start=start, end=end, **_run_options(data))
        return _report_response(report)

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Backfill failed")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.post("/daily-stats")
def daily_stats_route():
    """Rebuild stats_daily from the full transaction history."""
    try:
        data = request.get_json(silent=True) or {}
        report = stats_service.rebuild_daily_stats(**_run_options(data))
        return _report_response(report)

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Daily stats rebuild failed")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.post("/tag-categories")
def tag_categories_route():
    """Tag untagged transactions with Revenue/OPEX/CAPEX."""
    try:
        data = request.get_json(silent=True) or {}
        report = categorization_service.tag_financial_categories(**_run_options(data))
        return _report_response(report)

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Category tagging failed")
        return jsonify({"error": "Internal server error"}), 500
