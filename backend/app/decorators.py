# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, jsonify, request

from .services.tenant_service import TenantAccessError, resolve_tenant


def require_tenant(f):
    """
    Establish tenant context for the request.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.tenant_id: The active tenant (isolation boundary) - REQUIRED
    - g.user_id: The acting user, when the caller identifies one

    SECURITY: Returns 401 if:
    - No tenant header
    - Tenant id malformed, unknown or deactivated
    - User id malformed
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_header = current_app.config.get("TENANT_HEADER", "X-Tenant-Id")
        user_header = current_app.config.get("USER_HEADER", "X-User-Id")

        try:
            info = resolve_tenant(
                request.headers.get(tenant_header),
                request.headers.get(user_header),
            )
        except TenantAccessError:
            return jsonify({"error": "Unauthorized"}), 401

        g.tenant_id = info.tenant_id
        g.user_id = info.user_id

        return f(*args, **kwargs)

    return decorated_function
