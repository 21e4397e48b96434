# Overview: Flask API routes for the operation step log.

"""
Operation Log Routes

Read-only view of the intent records left by document and transaction
writes. An operation still IN_PROGRESS, or FAILED with committed steps,
is a document that was partially applied.
"""

from flask import Blueprint, request, jsonify

from ..services import operation_log_service
from ..validation import ValidationFailure, parse_optional_int


operations_bp = Blueprint("operations", __name__, url_prefix="/api/operations")


@operations_bp.get("/")
def list_operations_route():
    try:
        business_id = parse_optional_int(request.args.get("business_id"), "business_id")
    except ValidationFailure as e:
        return jsonify({"error": str(e), "field": e.field}), 400
    if business_id is None:
        return jsonify({"error": "business_id is required", "field": "business_id"}), 400

    limit = request.args.get("limit", default=50, type=int)
    limit = max(1, min(limit, 500))
    status = request.args.get("status")

    ops = operation_log_service.list_operations(
        business_id,
        status=status.upper() if status else None,
        limit=limit,
    )
    return jsonify({"items": [op.to_dict() for op in ops], "limit": limit})


@operations_bp.get("/<int:operation_id>")
def get_operation_route(operation_id: int):
    op = operation_log_service.get_operation(operation_id)
    if op is None:
        return jsonify({"error": "Operation not found"}), 404
    return jsonify({"operation": op.to_dict(include_steps=True)})
