# Overview: Flask API routes for businesses, parties and items.

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service, settlement_service, stock_service
from ..services.catalog_service import CatalogError
from ..validation import ValidationFailure, parse_cents, parse_optional_int


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


# =============================================================================
# BUSINESSES
# =============================================================================

@catalog_bp.post("/businesses/")
def create_business_route():
    data = request.get_json(silent=True) or {}
    try:
        business = catalog_service.create_business(data.get("name"), code=data.get("code"))
        return jsonify({"business": business.to_dict()}), 201
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to create business")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/businesses/")
def list_businesses_route():
    return jsonify({"items": [b.to_dict() for b in catalog_service.list_businesses()]})


# =============================================================================
# PARTIES
# =============================================================================

@catalog_bp.post("/parties/")
def create_party_route():
    """
    Request body:
    {"business_id": 1, "name": "Acme", "type": "CUSTOMER", "phone": "...", "opening_balance_cents": 0}
    """
    data = request.get_json(silent=True) or {}
    try:
        party = catalog_service.create_party(
            parse_optional_int(data.get("business_id"), "business_id"),
            data.get("name"),
            party_type=data.get("type") or "CUSTOMER",
            phone=data.get("phone"),
            opening_balance_cents=parse_cents(data.get("opening_balance_cents"), "opening_balance_cents", default=0),
        )
        return jsonify({"party": party.to_dict()}), 201
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to create party")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/parties/")
def list_parties_route():
    try:
        business_id = catalog_service.require_business(
            parse_optional_int(request.args.get("business_id"), "business_id")).id
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    parties = catalog_service.list_parties(business_id, party_type=request.args.get("type"))
    return jsonify({"items": [p.to_dict() for p in parties]})


@catalog_bp.get("/parties/<int:party_id>/ledger")
def party_ledger_route(party_id: int):
    """Opening balance, then the party's documents and transactions with a running balance."""
    try:
        business_id = catalog_service.require_business(
            parse_optional_int(request.args.get("business_id"), "business_id")).id
        ledger = settlement_service.party_ledger(business_id, party_id)
        return jsonify(ledger.to_dict())
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404


# =============================================================================
# ITEMS
# =============================================================================

@catalog_bp.post("/items/")
def create_item_route():
    """
    Request body:
    {
        "business_id": 1,
        "name": "Widget",
        "unit": "pcs",
        "stock_quantity": 10,
        "min_stock": 2,
        "selling_price_cents": 500,
        "purchase_price_cents": 300
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        selling = data.get("selling_price_cents")
        purchase = data.get("purchase_price_cents")
        item = catalog_service.create_item(
            parse_optional_int(data.get("business_id"), "business_id"),
            data.get("name"),
            unit=data.get("unit"),
            stock_quantity=data.get("stock_quantity"),
            min_stock=data.get("min_stock"),
            selling_price_cents=parse_cents(selling, "selling_price_cents") if selling is not None else None,
            purchase_price_cents=parse_cents(purchase, "purchase_price_cents") if purchase is not None else None,
        )
        return jsonify({"item": item.to_dict()}), 201
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/items/")
def list_items_route():
    try:
        business_id = catalog_service.require_business(
            parse_optional_int(request.args.get("business_id"), "business_id")).id
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    return jsonify({"items": [i.to_dict() for i in catalog_service.list_items(business_id)]})


@catalog_bp.get("/items/low-stock")
def low_stock_route():
    try:
        business_id = catalog_service.require_business(
            parse_optional_int(request.args.get("business_id"), "business_id")).id
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    return jsonify({"items": [i.to_dict() for i in stock_service.list_low_stock(business_id)]})


@catalog_bp.delete("/items/<int:item_id>")
def delete_item_route(item_id: int):
    """Lines already referencing the item keep its id; later stock moves skip it."""
    try:
        business_id = catalog_service.require_business(
            parse_optional_int(request.args.get("business_id"), "business_id")).id
        catalog_service.delete_item(business_id, item_id)
        return jsonify({"deleted": item_id})
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    except CatalogError as e:
        return jsonify({"error": str(e)}), 404
