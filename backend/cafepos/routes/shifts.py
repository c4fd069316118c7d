# Overview: Flask API routes for shift lifecycle, close-out reconciliation and audits.

"""
Shift API Routes

WHY: Clock-in, clock-out and the cash count at end of day. Closing a shift
is where every transaction of the shift is turned into the stored
cash/GCash/receivables split.

DESIGN:
- Shift lifecycle: open -> close (totals frozen once closed)
- Close accepts the rental figure as cents (pc_rental_total_cents) or as
  typed by the operator in pesos (pc_rental_total)
- Audit is read-only
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import audit_service, shift_service
from ..services.concurrency import PersistenceError
from ..services.shift_service import ShiftError
from ..validation import ConflictError


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


# =============================================================================
# SHIFT LIFECYCLE
# =============================================================================

@shifts_bp.post("/")
@shifts_bp.post("")
def open_shift_route():
    """
    Open (clock in) a shift.

    Request body:
    {
        "staff_email": "ana@cafe.ph",
        "shift_period": "Morning"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        shift = shift_service.open_shift(
            data.get("staff_email"),
            data.get("shift_period"),
        )
        return jsonify({"shift": shift.to_dict()}), 201

    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        current_app.logger.error("Failed to open shift: %s", e)
        return jsonify({"error": "Database unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/<int:shift_id>")
def get_shift_route(shift_id: int):
    """Shift with its reconciliation (persisted when closed, live preview when open)."""
    try:
        shift = shift_service.get_shift(shift_id)
        result = shift_service.get_reconciliation(shift_id)
        return jsonify({"shift": shift.to_dict(), "reconciliation": result.to_dict()}), 200

    except ShiftError as e:
        return jsonify({"error": str(e)}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/close")
def close_shift_route(shift_id: int):
    """
    Close a shift and persist its reconciliation.

    Request body (one of):
    {
        "pc_rental_total_cents": 150000
    }
    {
        "pc_rental_total": "1500.00"
    }

    Closing an already closed shift returns the stored result unchanged.
    """
    try:
        data = request.get_json(silent=True) or {}
        if "pc_rental_total_cents" in data:
            entered = data.get("pc_rental_total_cents")
        else:
            entered = data.get("pc_rental_total")

        result = shift_service.close_shift(shift_id, entered)
        shift = shift_service.get_shift(shift_id)
        return jsonify({"shift": shift.to_dict(), "reconciliation": result.to_dict()}), 200

    except ShiftError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        current_app.logger.error("Failed to close shift %s: %s", shift_id, e)
        return jsonify({"error": "Database unavailable; the shift is still open, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/force-end")
def force_end_shift_route(shift_id: int):
    """End an abandoned shift without reconciling it."""
    try:
        shift = shift_service.force_end_shift(shift_id)
        current_app.logger.warning("Shift %s force-ended without reconciliation", shift_id)
        return jsonify({"shift": shift.to_dict()}), 200

    except ShiftError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PersistenceError as e:
        current_app.logger.error("Failed to end shift %s: %s", shift_id, e)
        return jsonify({"error": "Database unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to force-end shift")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# AUDIT & CONSOLIDATION
# =============================================================================

@shifts_bp.get("/<int:shift_id>/audit")
def audit_shift_route(shift_id: int):
    """Replay the legacy list/detail classifications for one shift. Read-only."""
    try:
        report = audit_service.audit_shift(shift_id)
        return jsonify(report.to_dict()), 200

    except ShiftError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to audit shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/consolidate")
def consolidate_shift_route(shift_id: int):
    """
    Count the drawer and verify GCash receipts.

    Request body:
    {
        "denominations": {"bill_1000": 2, "bill_100": 5, "coin_5": 4},
        "gcash_statuses": {"17": "Verified", "18": "Pending"}  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        summary = shift_service.consolidate_shift(
            shift_id,
            data.get("denominations") or {},
            data.get("gcash_statuses"),
        )
        return jsonify({"consolidation": summary}), 200

    except ShiftError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        current_app.logger.error("Failed to consolidate shift %s: %s", shift_id, e)
        return jsonify({"error": "Database unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to consolidate shift")
        return jsonify({"error": "Internal server error"}), 500
