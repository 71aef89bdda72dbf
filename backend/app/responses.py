# Overview: JSON rendering of service Outcomes for API routes.

from flask import jsonify

from .services.outcome import Outcome


def respond(outcome: Outcome, success_status: int = 200):
    """Render an Outcome as (json, status); failures carry their mapped status."""
    if outcome.success:
        return jsonify(outcome.to_dict()), success_status
    return jsonify(outcome.to_dict()), outcome.http_status
