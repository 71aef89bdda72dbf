# Overview: Flask API routes for checkout; parses input and returns JSON responses.

# backend/app/routes/sales.py
"""Sales API routes (tenant-scoped)"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..responses import respond
from ..services import sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/")
@require_tenant
def create_sale_route():
    """
    Process a checkout.

    Body: items[], payment_method/installments/card_machine_id (legacy single
    payment) or payments[], optional customer_id, carrier_id,
    shipping_cost_cents, shipping_status, freight_paid_by, event_id, date.
    """
    try:
        data = request.get_json() or {}
        outcome = sales_service.create_sale(data)
        return respond(outcome, 201)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@require_tenant
def list_sales_route():
    try:
        limit = request.args.get("limit", 100, type=int)
        return jsonify({"sales": sales_service.list_sales(g.tenant_id, limit=limit)}), 200
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_tenant
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.tenant_id, sale_id)
        if not sale:
            return jsonify({"error": "Sale not found"}), 404
        return jsonify({"sale": sale}), 200
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_tenant
def delete_sale_route(sale_id: int):
    """Hard reversal of a sale (stock restored, transactions removed)."""
    try:
        return respond(sales_service.delete_sale(g.tenant_id, sale_id))
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
