# Overview: Fire-and-forget cache invalidation hook for affected views.

from __future__ import annotations

from flask import current_app, has_app_context

from .observability import record_recoverable

PATH_AGENDA = "agenda"
PATH_TRANSACTIONS = "finance/transactions"
PATH_RECEIVABLES = "finance/receivables"
PATH_PAYABLES = "finance/payables"
PATH_SALES = "sales"
PATH_PRODUCTS = "products"
PATH_NOTIFICATIONS = "notifications"
PATH_CARD_MACHINES = "card-machines"
PATH_PURCHASES = "purchases"


def revalidate(*paths: str) -> None:
    """Notify the configured hook that views under `paths` are stale."""
    if not paths or not has_app_context():
        return
    hook = current_app.config.get("REVALIDATE_HOOK")
    if hook is None:
        current_app.logger.debug("Revalidate %s", ", ".join(paths))
        return
    try:
        hook(list(paths))
    except Exception as exc:
        record_recoverable("revalidate", exc, paths=",".join(paths))
