# Overview: Flask API routes for card machines and fee schedules; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant
from ..responses import respond
from ..services import card_machine_service


card_machines_bp = Blueprint("card_machines", __name__, url_prefix="/api/card-machines")


@card_machines_bp.get("/")
@require_tenant
def list_machines_route():
    try:
        return jsonify({"machines": card_machine_service.list_card_machines(g.tenant_id)}), 200
    except Exception:
        current_app.logger.exception("Failed to list card machines")
        return jsonify({"error": "Internal server error"}), 500


@card_machines_bp.post("/")
@require_tenant
def create_machine_route():
    """Create a machine; omitting rates seeds the default fee schedule."""
    try:
        data = request.get_json() or {}
        return respond(card_machine_service.create_card_machine(g.tenant_id, data), 201)
    except Exception:
        current_app.logger.exception("Failed to create card machine")
        return jsonify({"error": "Internal server error"}), 500


@card_machines_bp.get("/<int:machine_id>")
@require_tenant
def get_machine_route(machine_id: int):
    try:
        machine = card_machine_service.get_card_machine(g.tenant_id, machine_id)
        if not machine:
            return jsonify({"error": "Card machine not found"}), 404
        return jsonify({"machine": machine}), 200
    except Exception:
        current_app.logger.exception("Failed to get card machine")
        return jsonify({"error": "Internal server error"}), 500


@card_machines_bp.put("/<int:machine_id>")
@require_tenant
def update_machine_route(machine_id: int):
    try:
        data = request.get_json() or {}
        return respond(card_machine_service.update_card_machine(g.tenant_id, machine_id, data))
    except Exception:
        current_app.logger.exception("Failed to update card machine")
        return jsonify({"error": "Internal server error"}), 500


@card_machines_bp.delete("/<int:machine_id>")
@require_tenant
def delete_machine_route(machine_id: int):
    try:
        return respond(card_machine_service.delete_card_machine(g.tenant_id, machine_id))
    except Exception:
        current_app.logger.exception("Failed to delete card machine")
        return jsonify({"error": "Internal server error"}), 500
