# Overview: Flask API routes for the notification inbox; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from app.time_utils import parse_iso_datetime
from ..decorators import require_tenant
from ..responses import respond
from ..services import notification_service, reconciliation_service


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _day_arg():
    raw = request.args.get("date")
    return parse_iso_datetime(raw) if raw else None


@notifications_bp.get("/")
@require_tenant
def list_notifications_route():
    """Inbox listing. Query: ?status=PENDING|...|ALL&date=YYYY-MM-DD"""
    try:
        day = _day_arg()
    except ValueError:
        return jsonify({"error": "Invalid date"}), 400

    try:
        status = request.args.get("status")
        rows = notification_service.list_notifications(g.tenant_id, status=status, day=day)
        return jsonify({"notifications": rows}), 200
    except Exception:
        current_app.logger.exception("Failed to list notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/payment-alerts")
@require_tenant
def payment_alerts_route():
    try:
        return jsonify({"alerts": notification_service.get_payment_alerts(g.tenant_id)}), 200
    except Exception:
        current_app.logger.exception("Failed to list payment alerts")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/summary")
@require_tenant
def daily_summary_route():
    try:
        day = _day_arg()
    except ValueError:
        return jsonify({"error": "Invalid date"}), 400

    try:
        summary = notification_service.get_daily_summary(g.tenant_id, day)
        return jsonify({"summary": summary}), 200
    except Exception:
        current_app.logger.exception("Failed to build daily summary")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.post("/reconcile")
@require_tenant
def reconcile_route():
    try:
        updated = reconciliation_service.reconcile(g.tenant_id)
        return jsonify({"success": True, "updated": updated}), 200
    except Exception:
        current_app.logger.exception("Failed to reconcile notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.post("/<int:notification_id>/dismiss")
@require_tenant
def dismiss_route(notification_id: int):
    try:
        return respond(notification_service.dismiss_notification(g.tenant_id, notification_id))
    except Exception:
        current_app.logger.exception("Failed to dismiss notification")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.delete("/<int:notification_id>")
@require_tenant
def delete_route(notification_id: int):
    try:
        return respond(notification_service.delete_notification(g.tenant_id, notification_id))
    except Exception:
        current_app.logger.exception("Failed to delete notification")
        return jsonify({"error": "Internal server error"}), 500
