# Overview: Flask API routes for payment modes and their balances.

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service, settlement_service
from ..validation import ValidationFailure, parse_optional_int


payment_modes_bp = Blueprint("payment_modes", __name__, url_prefix="/api/payment-modes")


@payment_modes_bp.get("/")
def list_payment_modes_route():
    """Every mode of the business with its balance (receipts minus payments)."""
    try:
        business_id = parse_optional_int(request.args.get("business_id"), "business_id")
        balances = settlement_service.mode_balances(business_id)
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    return jsonify({
        "items": [{"mode": mode, "balance_cents": cents} for mode, cents in balances.items()],
    })


@payment_modes_bp.post("/")
def add_payment_mode_route():
    data = request.get_json(silent=True) or {}
    try:
        business_id = parse_optional_int(data.get("business_id"), "business_id")
        mode = catalog_service.add_payment_mode(business_id, data.get("name"))
        return jsonify({"payment_mode": mode.to_dict()}), 201
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to add payment mode")
        return jsonify({"error": "Internal server error"}), 500
