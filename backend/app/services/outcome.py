# Overview: Discriminated result type returned by every public service operation.

"""
Outcome

WHY: Public service operations never raise past their boundary. Each returns
an Outcome that routes (and any other caller) can render without knowing
which exception types a service uses internally.

KINDS:
- ok: operation succeeded; optional value/payload and folded-in warnings
- recoverable: a best-effort step failed; the primary operation is unaffected
- fatal: the operation failed and nothing was written

Failure reasons map to HTTP status codes for the JSON surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


KIND_OK = "ok"
KIND_RECOVERABLE = "recoverable"
KIND_FATAL = "fatal"

REASON_VALIDATION = "validation"
REASON_NOT_FOUND = "not_found"
REASON_UNAUTHORIZED = "unauthorized"
REASON_CONFLICT = "conflict"
REASON_INTERNAL = "internal"

_HTTP_STATUS = {
    REASON_VALIDATION: 400,
    REASON_NOT_FOUND: 404,
    REASON_UNAUTHORIZED: 401,
    REASON_CONFLICT: 409,
    REASON_INTERNAL: 500,
}


@dataclass(frozen=True)
class Outcome:
    kind: str
    value: Any = None
    payload: dict = field(default_factory=dict)
    reason: str | None = None
    error: str | None = None
    details: dict = field(default_factory=dict)
    step: str | None = None
    warnings: tuple["Outcome", ...] = ()

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def ok(cls, value: Any = None, *, warnings=(), **payload) -> "Outcome":
        return cls(kind=KIND_OK, value=value, payload=payload, warnings=tuple(warnings))

    @classmethod
    def fail(cls, error: str, *, reason: str = REASON_VALIDATION, details: dict | None = None) -> "Outcome":
        return cls(kind=KIND_FATAL, reason=reason, error=error, details=details or {})

    @classmethod
    def unauthorized(cls) -> "Outcome":
        return cls.fail("Unauthorized", reason=REASON_UNAUTHORIZED)

    @classmethod
    def not_found(cls, error: str) -> "Outcome":
        return cls.fail(error, reason=REASON_NOT_FOUND)

    @classmethod
    def internal(cls, error: str) -> "Outcome":
        return cls.fail(error, reason=REASON_INTERNAL)

    @classmethod
    def recoverable(cls, step: str, error: str, details: dict | None = None) -> "Outcome":
        return cls(kind=KIND_RECOVERABLE, step=step, error=error, details=details or {})

    # ------------------------------------------------------------------
    # Inspection / rendering
    # ------------------------------------------------------------------

    @property
    def success(self) -> bool:
        return self.kind == KIND_OK

    @property
    def http_status(self) -> int:
        if self.kind != KIND_FATAL:
            return 200
        return _HTTP_STATUS.get(self.reason or REASON_INTERNAL, 500)

    def with_warning(self, warning: "Outcome | None") -> "Outcome":
        if warning is None or warning.kind != KIND_RECOVERABLE:
            return self
        return Outcome(
            kind=self.kind,
            value=self.value,
            payload=self.payload,
            reason=self.reason,
            error=self.error,
            details=self.details,
            step=self.step,
            warnings=self.warnings + (warning,),
        )

    def to_dict(self) -> dict:
        if self.kind == KIND_FATAL:
            body = {"error": self.error}
            if self.details:
                body["details"] = self.details
            return body

        body: dict = {"success": True}
        body.update(self.payload)
        if self.warnings:
            body["warnings"] = [
                {"step": w.step, "error": w.error} for w in self.warnings
            ]
        return body
