# Overview: Flask API routes for receipts and payments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import settlement_service
from ..services.settlement_service import TransactionNotFound
from ..services.operation_log_service import StoreWriteFailure
from ..validation import ValidationFailure, parse_optional_int


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _business_id(data: dict | None = None):
    raw = (data or {}).get("business_id", request.args.get("business_id"))
    business_id = parse_optional_int(raw, "business_id")
    if business_id is None:
        raise ValidationFailure("business_id is required", "business_id")
    return business_id


@transactions_bp.post("/")
def record_transaction_route():
    """
    Record a receipt or payment.

    Request body:
    {
        "business_id": 1,
        "type": "RECEIPT",
        "amount_cents": 2500,
        "mode": "CASH",
        "date": "2024-01-12",      (optional, today)
        "document_id": 10,         (optional; re-derives the document's status)
        "party_id": 7,             (optional)
        "description": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        txn = settlement_service.record_transaction(
            _business_id(data),
            amount_cents=data.get("amount_cents"),
            type=data.get("type"),
            mode=data.get("mode"),
            date=data.get("date"),
            party_id=data.get("party_id"),
            document_id=data.get("document_id"),
            description=data.get("description"),
        )
        return jsonify({"transaction": txn.to_dict()}), 201
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except StoreWriteFailure as e:
        current_app.logger.error("transaction write failed: %s", e)
        return jsonify({"error": "Store write failed", "failure": e.to_dict()}), 500
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("/")
def list_transactions_route():
    try:
        business_id = _business_id()
        document_id = parse_optional_int(request.args.get("document_id"), "document_id")
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400

    rows = settlement_service.list_transactions(
        business_id,
        document_id=document_id,
        mode=request.args.get("mode"),
    )
    return jsonify({"items": [t.to_dict() for t in rows], "count": len(rows)})


@transactions_bp.put("/<int:transaction_id>")
def update_transaction_route(transaction_id: int):
    data = request.get_json(silent=True) or {}
    changes = {k: v for k, v in data.items() if k != "business_id"}
    try:
        txn = settlement_service.update_transaction(_business_id(data), transaction_id, changes)
        return jsonify({"transaction": txn.to_dict()})
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except TransactionNotFound as e:
        return jsonify({"error": str(e)}), 404
    except StoreWriteFailure as e:
        current_app.logger.error("transaction write failed: %s", e)
        return jsonify({"error": "Store write failed", "failure": e.to_dict()}), 500
    except Exception:
        current_app.logger.exception("Failed to update transaction %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>")
def delete_transaction_route(transaction_id: int):
    try:
        settlement_service.delete_transaction(_business_id(), transaction_id)
        return jsonify({"deleted": transaction_id})
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except TransactionNotFound as e:
        return jsonify({"error": str(e)}), 404
    except StoreWriteFailure as e:
        current_app.logger.error("transaction write failed: %s", e)
        return jsonify({"error": "Store write failed", "failure": e.to_dict()}), 500
    except Exception:
        current_app.logger.exception("Failed to delete transaction %s", transaction_id)
        return jsonify({"error": "Internal server error"}), 500
