# estate_api/common/auth.py
from __future__ import annotations

from functools import wraps

from flask import g, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity

from estate_api.common.http import fail
from estate_api.common.tenant import resolve_tenant, EDIT_ROLES, MANAGE_ROLES
from estate_api.extensions import db
from estate_api.models.user import User


def current_user_id() -> int | None:
    ident = get_jwt_identity()
    try:
        return int(ident)
    except (TypeError, ValueError):
        return None


def requires_org_role(*roles: str):
    """
    Require a JWT and membership in the requested organization.

    - No roles given: any accepted member passes (read access, viewers included).
    - Roles given: the member's role must be one of them.

    On success the resolved TenantContext is stored on ``g.tenant``.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            uid = current_user_id()
            if uid is None:
                return fail("Unauthorized", status=401)

            user = db.session.get(User, uid)
            if not user or user.status != "active":
                return fail("Unauthorized", status=401)

            ctx = resolve_tenant(uid)
            if ctx is None:
                return fail("No organization access", status=403, code="auth.no_organization")

            if roles and ctx.role not in roles:
                current_app.logger.warning(
                    "org role deny user=%s org=%s role=%s needs=%s",
                    uid, ctx.organization_id, ctx.role, ",".join(roles),
                )
                return fail("Forbidden", status=403, code="auth.forbidden")

            g.tenant = ctx
            return fn(*args, **kwargs)
        return inner
    return outer


# common shorthands
can_read = requires_org_role()
can_edit = requires_org_role(*EDIT_ROLES)
can_manage = requires_org_role(*MANAGE_ROLES)
