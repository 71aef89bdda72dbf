# Overview: Single side channel for best-effort failures.

from __future__ import annotations

import logging

from flask import current_app, has_app_context

from .outcome import Outcome

_fallback_logger = logging.getLogger("app.best_effort")


def _logger() -> logging.Logger:
    if has_app_context():
        return current_app.logger
    return _fallback_logger


def record_recoverable(step: str, exc: BaseException | None = None, message: str | None = None, **context) -> Outcome:
    """
    Log a failed best-effort step and return it as a recoverable Outcome.

    Every "nice to have" side effect (customer auto-linking, reconciliation
    row updates, alert cleanup, revalidation) reports here instead of
    failing the primary operation.
    """
    message = message or (str(exc) if exc is not None else "step skipped")
    ctx = " ".join(f"{k}={v}" for k, v in sorted(context.items()))
    _logger().warning(
        "Best-effort step %s failed: %s%s",
        step,
        message,
        f" ({ctx})" if ctx else "",
        exc_info=exc if exc is not None else None,
    )
    return Outcome.recoverable(step, message, details=context)
