# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import Unauthorized
from .extensions import db
from .models import Tenant, User


def _header_int(name: str) -> int | None:
    value = request.headers.get(name, "").strip()
    if not value.isdigit():
        return None
    return int(value)


def require_context(f):
    """
    Establish tenant and operator context for a request.

    Authentication itself lives upstream (gateway/session layer); it forwards
    the resolved identity as X-Tenant-ID and X-User-ID headers.

    Sets the following Flask g attributes:
    - g.current_user: the active User
    - g.tenant_id: the tenant (REQUIRED on every query)
    - g.location_id: the user's assigned location (None = tenant default)

    Returns 401 when either header is missing or does not resolve to an
    active user of an active tenant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_id = _header_int("X-Tenant-ID")
        user_id = _header_int("X-User-ID")
        if tenant_id is None or user_id is None:
            return jsonify(Unauthorized().to_dict()), 401

        user = (
            db.session.query(User)
            .join(Tenant, Tenant.id == User.tenant_id)
            .filter(
                User.id == user_id,
                User.tenant_id == tenant_id,
                User.is_active.is_(True),
                Tenant.is_active.is_(True),
            )
            .first()
        )
        if user is None:
            return jsonify(Unauthorized().to_dict()), 401

        g.current_user = user
        g.tenant_id = tenant_id
        g.location_id = user.location_id

        return f(*args, **kwargs)

    return decorated_function
