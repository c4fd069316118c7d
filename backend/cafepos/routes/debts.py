# Overview: Flask API routes for customer debt balances.

from flask import Blueprint, request, jsonify, current_app

from ..services import debt_service


debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.get("/")
@debts_bp.get("")
def list_outstanding_route():
    """
    Customers with an outstanding balance, largest first.

    Query params:
      min_balance_cents (optional, default 100)
    """
    try:
        min_balance = request.args.get("min_balance_cents", default=debt_service.MIN_OUTSTANDING_CENTS, type=int)
        if min_balance < 0:
            return jsonify({"error": "min_balance_cents must be a non-negative integer"}), 400

        balances = debt_service.outstanding_debts(min_balance_cents=min_balance)
        return jsonify({
            "debts": [b.to_dict() for b in balances],
            "total_outstanding_cents": sum(b.balance_cents for b in balances),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list outstanding debts")
        return jsonify({"error": "Internal server error"}), 500


@debts_bp.get("/<customer_id>")
def customer_balance_route(customer_id: str):
    try:
        balance = debt_service.customer_debt_balance(customer_id)
        return jsonify({"debt": balance.to_dict()}), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to read debt balance for %s", customer_id)
        return jsonify({"error": "Internal server error"}), 500
