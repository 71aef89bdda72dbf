# Overview: Flask API routes for agenda events; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from app.time_utils import parse_iso_datetime
from ..decorators import require_tenant
from ..responses import respond
from ..services import agenda_service


agenda_bp = Blueprint("agenda", __name__, url_prefix="/api/agenda")


@agenda_bp.get("/")
@require_tenant
def list_events_route():
    """List events, optionally within ?start=&end= (ISO-8601)."""
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "Invalid date range"}), 400

    try:
        events = agenda_service.list_agenda_events(g.tenant_id, start=start, end=end)
        return jsonify({"events": events}), 200
    except Exception:
        current_app.logger.exception("Failed to list agenda events")
        return jsonify({"error": "Internal server error"}), 500


@agenda_bp.post("/")
@require_tenant
def create_event_route():
    try:
        data = request.get_json() or {}
        return respond(agenda_service.create_agenda_event(g.tenant_id, g.user_id, data), 201)
    except Exception:
        current_app.logger.exception("Failed to create agenda event")
        return jsonify({"error": "Internal server error"}), 500


@agenda_bp.get("/due")
@require_tenant
def due_events_route():
    """Started, unacted events; projects each into the notification inbox."""
    try:
        return jsonify({"events": agenda_service.list_due_events(g.tenant_id)}), 200
    except Exception:
        current_app.logger.exception("Failed to list due events")
        return jsonify({"error": "Internal server error"}), 500


@agenda_bp.get("/<int:event_id>")
@require_tenant
def get_event_route(event_id: int):
    try:
        event = agenda_service.get_agenda_event(g.tenant_id, event_id)
        if not event:
            return jsonify({"error": "Event not found"}), 404
        return jsonify({"event": event}), 200
    except Exception:
        current_app.logger.exception("Failed to get agenda event")
        return jsonify({"error": "Internal server error"}), 500


@agenda_bp.put("/<int:event_id>")
@require_tenant
def update_event_route(event_id: int):
    try:
        data = request.get_json() or {}
        return respond(agenda_service.update_agenda_event(g.tenant_id, g.user_id, event_id, data))
    except Exception:
        current_app.logger.exception("Failed to update agenda event")
        return jsonify({"error": "Internal server error"}), 500


@agenda_bp.delete("/<int:event_id>")
@require_tenant
def cancel_event_route(event_id: int):
    """Cancel and delete an event with its provisional entries."""
    try:
        return respond(agenda_service.cancel_agenda_event(g.tenant_id, event_id))
    except Exception:
        current_app.logger.exception("Failed to cancel agenda event")
        return jsonify({"error": "Internal server error"}), 500


@agenda_bp.post("/<int:event_id>/attendance")
@require_tenant
def attendance_route(event_id: int):
    try:
        data = request.get_json() or {}
        status = data.get("status")
        if not status:
            return jsonify({"error": "status required"}), 400
        return respond(agenda_service.update_attendance_status(g.tenant_id, event_id, status))
    except Exception:
        current_app.logger.exception("Failed to update attendance")
        return jsonify({"error": "Internal server error"}), 500


@agenda_bp.post("/<int:event_id>/confirm")
@require_tenant
def confirm_route(event_id: int):
    """Settle the event's pending receivable."""
    try:
        data = request.get_json(silent=True) or {}
        account_id = data.get("financial_account_id")
        if account_id not in (None, ""):
            try:
                account_id = int(account_id)
            except (TypeError, ValueError):
                return jsonify({"error": "financial_account_id must be an integer"}), 400
        else:
            account_id = None
        return respond(agenda_service.confirm_event_attendance(g.tenant_id, event_id, account_id))
    except Exception:
        current_app.logger.exception("Failed to confirm attendance")
        return jsonify({"error": "Internal server error"}), 500
