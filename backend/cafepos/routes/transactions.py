# Overview: Flask API routes for recording, correcting and soft-deleting transactions.

from flask import Blueprint, request, jsonify, current_app

from ..services import transaction_service
from ..services.concurrency import PersistenceError
from ..services.transaction_service import TransactionError
from ..validation import ConflictError


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("/")
@transactions_bp.post("")
def create_transaction_route():
    """
    Record a transaction.

    Request body:
    {
        "shift_id": 3,
        "item": "Coffee",
        "quantity": 2,
        "unit_price_cents": 5000,
        "payment_method": "GCash"  (optional, default Cash)
    }
    """
    try:
        data = request.get_json(silent=True)
        tx = transaction_service.record_transaction(data)
        return jsonify({"transaction": tx.to_dict()}), 201

    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        current_app.logger.error("Failed to record transaction: %s", e)
        return jsonify({"error": "Database unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.patch("/<int:tx_id>")
def edit_transaction_route(tx_id: int):
    """
    Correct amount, date or notes.

    Request body:
    {
        "actor": "admin@cafe.ph",
        "reason": "Wrong price",
        "changes": {"total_cents": 4500},
        "correct_closed": true  (admin correction of a closed shift)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        tx = transaction_service.edit_transaction(
            tx_id,
            data.get("changes") or {},
            actor=data.get("actor"),
            reason=data.get("reason"),
            correct_closed=data.get("correct_closed") is True,
        )
        return jsonify({"transaction": tx.to_dict()}), 200

    except TransactionError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        current_app.logger.error("Failed to edit transaction %s: %s", tx_id, e)
        return jsonify({"error": "Database unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to edit transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:tx_id>")
def delete_transaction_route(tx_id: int):
    """Soft delete. Body: {"actor": "...", "reason": "...", "correct_closed": false}"""
    try:
        data = request.get_json(silent=True) or {}
        tx = transaction_service.soft_delete_transaction(
            tx_id,
            actor=data.get("actor"),
            reason=data.get("reason"),
            correct_closed=data.get("correct_closed") is True,
        )
        return jsonify({"transaction": tx.to_dict()}), 200

    except TransactionError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceError as e:
        current_app.logger.error("Failed to delete transaction %s: %s", tx_id, e)
        return jsonify({"error": "Database unavailable, try again"}), 503
    except Exception:
        current_app.logger.exception("Failed to delete transaction")
        return jsonify({"error": "Internal server error"}), 500
