# Overview: Flask API routes for invoices and bills; parses input and returns JSON responses.

"""
Document Routes

Create, edit and delete sales invoices and purchase bills. Every request
names its business explicitly (business_id in the body or query string).

A failed store step returns 500 with the operation id and the steps that
had already committed, so a client can tell what was partially applied.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import document_service
from ..services.document_service import DocumentNotFound
from ..services.operation_log_service import StoreWriteFailure
from ..validation import ValidationFailure, parse_optional_int


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


def _business_id(data: dict | None = None):
    raw = (data or {}).get("business_id", request.args.get("business_id"))
    business_id = parse_optional_int(raw, "business_id")
    if business_id is None:
        raise ValidationFailure("business_id is required", "business_id")
    return business_id


def _validation_error(e: ValidationFailure):
    return jsonify({"error": str(e), "field": e.field}), 400


def _store_failure(e: StoreWriteFailure):
    current_app.logger.error("document operation failed: %s", e)
    return jsonify({"error": "Store write failed", "failure": e.to_dict()}), 500


# =============================================================================
# WRITES
# =============================================================================

@documents_bp.post("/")
def create_document_route():
    """
    Create a document.

    Request body:
    {
        "business_id": 1,
        "kind": "SALE",
        "date": "2024-01-10",
        "party_id": 7,                      (optional, walk-in when omitted)
        "document_number": "INV-0042",      (optional, allocated when omitted)
        "discount": {"value": 10, "type": "percent"},
        "invoice_tax_percent": 0,
        "line_items": [{"item_id": 3, "quantity": 2, "rate_cents": 500, "tax_percent": 5}],
        "settlement": {"amount_cents": 1000, "mode": "CASH"}   (optional)
    }

    Returns:
        201: Document created
        400: Invalid input (nothing written)
        500: A store step failed; body describes the partial application
    """
    data = request.get_json(silent=True) or {}
    try:
        result = document_service.create_document(
            _business_id(data),
            data,
            data.get("line_items"),
            settlement=data.get("settlement"),
        )
        return jsonify(result.to_dict()), 201
    except ValidationFailure as e:
        return _validation_error(e)
    except StoreWriteFailure as e:
        return _store_failure(e)
    except Exception:
        current_app.logger.exception("Failed to create document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.put("/<int:document_id>")
def update_document_route(document_id: int):
    """Replace header and lines. Settlement is re-derived, never sent."""
    data = request.get_json(silent=True) or {}
    try:
        result = document_service.update_document(
            _business_id(data),
            document_id,
            data,
            data.get("line_items"),
        )
        return jsonify(result.to_dict())
    except ValidationFailure as e:
        return _validation_error(e)
    except DocumentNotFound as e:
        return jsonify({"error": str(e)}), 404
    except StoreWriteFailure as e:
        return _store_failure(e)
    except Exception:
        current_app.logger.exception("Failed to update document %s", document_id)
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.delete("/<int:document_id>")
def delete_document_route(document_id: int):
    try:
        result = document_service.delete_document(_business_id(), document_id)
        return jsonify(result.to_dict())
    except ValidationFailure as e:
        return _validation_error(e)
    except DocumentNotFound as e:
        return jsonify({"error": str(e)}), 404
    except StoreWriteFailure as e:
        return _store_failure(e)
    except Exception:
        current_app.logger.exception("Failed to delete document %s", document_id)
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.post("/preview")
def preview_totals_route():
    """Totals for an unsaved document. No writes."""
    data = request.get_json(silent=True) or {}
    try:
        totals = document_service.preview_totals(
            data.get("line_items"),
            discount=data.get("discount"),
            invoice_tax_percent=data.get("invoice_tax_percent"),
        )
        return jsonify({"totals": totals.to_dict()})
    except ValidationFailure as e:
        return _validation_error(e)


# =============================================================================
# READS
# =============================================================================

@documents_bp.get("/")
def list_documents_route():
    try:
        documents = document_service.list_documents(
            _business_id(),
            kind=request.args.get("kind"),
            status=request.args.get("status"),
        )
    except ValidationFailure as e:
        return _validation_error(e)
    except ValueError:
        return jsonify({"error": "kind must be SALE or PURCHASE; status UNPAID, PARTIAL or PAID"}), 400
    return jsonify({"items": [d.to_dict() for d in documents], "count": len(documents)})


@documents_bp.get("/<int:document_id>")
def get_document_route(document_id: int):
    try:
        document, lines, transactions = document_service.get_document(_business_id(), document_id)
    except ValidationFailure as e:
        return _validation_error(e)
    except DocumentNotFound as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({
        "document": document.to_dict(),
        "lines": [line.to_dict() for line in lines],
        "transactions": [t.to_dict() for t in transactions],
    })
