# Overview: Flask API routes for the ledger and purchase invoices; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..responses import respond
from ..services import purchase_invoice_service, transaction_service


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


# =============================================================================
# TRANSACTIONS
# =============================================================================

@finance_bp.post("/transactions")
@require_tenant
def create_transaction_route():
    try:
        data = request.get_json() or {}
        return respond(transaction_service.create_transaction(g.tenant_id, g.user_id, data), 201)
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.post("/transactions/<int:transaction_id>/confirm")
@require_tenant
def confirm_transaction_route(transaction_id: int):
    try:
        data = request.get_json(silent=True) or {}
        return respond(
            transaction_service.confirm_payment(
                g.tenant_id, transaction_id, data.get("financial_account_id")
            )
        )
    except Exception:
        current_app.logger.exception("Failed to confirm transaction")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.delete("/transactions/<int:transaction_id>")
@require_tenant
def delete_transaction_route(transaction_id: int):
    try:
        return respond(transaction_service.delete_transaction(g.tenant_id, transaction_id))
    except Exception:
        current_app.logger.exception("Failed to delete transaction")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/receivables")
@require_tenant
def receivables_route():
    try:
        return jsonify({"transactions": transaction_service.list_receivables(g.tenant_id)}), 200
    except Exception:
        current_app.logger.exception("Failed to list receivables")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/payables")
@require_tenant
def payables_route():
    try:
        return jsonify({"transactions": transaction_service.list_payables(g.tenant_id)}), 200
    except Exception:
        current_app.logger.exception("Failed to list payables")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PURCHASE INVOICES
# =============================================================================

@finance_bp.get("/purchase-invoices")
@require_tenant
def list_invoices_route():
    try:
        invoices = purchase_invoice_service.list_purchase_invoices(g.tenant_id)
        return jsonify({"invoices": invoices}), 200
    except Exception:
        current_app.logger.exception("Failed to list purchase invoices")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.post("/purchase-invoices")
@require_tenant
def create_invoice_route():
    """Receive goods (stock entries, landed cost, payable)."""
    try:
        data = request.get_json() or {}
        return respond(
            purchase_invoice_service.create_purchase_invoice(g.tenant_id, g.user_id, data), 201
        )
    except Exception:
        current_app.logger.exception("Failed to create purchase invoice")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.delete("/purchase-invoices/<int:invoice_id>")
@require_tenant
def delete_invoice_route(invoice_id: int):
    try:
        return respond(purchase_invoice_service.delete_purchase_invoice(g.tenant_id, invoice_id))
    except Exception:
        current_app.logger.exception("Failed to delete purchase invoice")
        return jsonify({"error": "Internal server error"}), 500
