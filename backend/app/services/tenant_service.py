"""
Tenant Service: request-scoped tenant context

WHY: Every query is scoped by tenant. The tenant/user pair is resolved once
per request (see decorators.require_tenant) and read back here, so services
never touch request headers.

SECURITY INVARIANTS:
1. Every guarded request has g.tenant_id set to an active tenant
2. Services take tenant_id explicitly and short-circuit when it is missing
3. Lookups by id always filter by tenant_id; foreign rows read as "not found"
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import g, has_request_context

from ..extensions import db
from ..models import Tenant


class TenantAccessError(Exception):
    """Raised when the tenant context cannot be established."""
    pass


@dataclass(frozen=True)
class TenantInfo:
    user_id: int | None
    tenant_id: int | None


def get_tenant_info() -> TenantInfo:
    """Tenant/user pair for the current request (both None outside one)."""
    if not has_request_context():
        return TenantInfo(user_id=None, tenant_id=None)
    return TenantInfo(
        user_id=getattr(g, "user_id", None),
        tenant_id=getattr(g, "tenant_id", None),
    )


def resolve_tenant(raw_tenant_id, raw_user_id=None) -> TenantInfo:
    """
    Validate raw identifiers (e.g. from headers) against the tenants table.

    Raises TenantAccessError for missing, malformed, unknown or inactive tenants.
    """
    try:
        tenant_id = int(raw_tenant_id)
    except (TypeError, ValueError):
        raise TenantAccessError("Tenant context not established")

    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant or not tenant.is_active:
        raise TenantAccessError("Tenant not found")

    user_id = None
    if raw_user_id not in (None, ""):
        try:
            user_id = int(raw_user_id)
        except (TypeError, ValueError):
            raise TenantAccessError("Invalid user id")

    return TenantInfo(user_id=user_id, tenant_id=tenant.id)
