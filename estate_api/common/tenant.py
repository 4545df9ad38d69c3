# estate_api/common/tenant.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import g, request

from estate_api.extensions import db
from estate_api.models.organization import OrganizationMember

EDIT_ROLES = ("owner", "admin", "manager")
MANAGE_ROLES = ("owner", "admin")


@dataclass(frozen=True)
class TenantContext:
    """
    Organization the current request acts on, plus the caller's role in it.
    Handlers pass ``ctx.organization_id`` into every query; nothing reads a
    global "current organization".
    """
    organization_id: int
    user_id: int
    role: str

    @property
    def can_edit(self) -> bool:
        return self.role in EDIT_ROLES

    @property
    def can_manage_members(self) -> bool:
        return self.role in MANAGE_ROLES

    @property
    def can_delete(self) -> bool:
        return self.role in MANAGE_ROLES

    @property
    def is_owner(self) -> bool:
        return self.role == "owner"

    def permissions(self) -> dict:
        return {
            "can_edit": self.can_edit,
            "can_manage_members": self.can_manage_members,
            "can_delete": self.can_delete,
            "is_owner": self.is_owner,
        }


def _requested_org_id() -> Optional[int]:
    raw = request.headers.get("X-Organization-Id") or request.args.get("organization_id")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def resolve_tenant(user_id: int) -> Optional[TenantContext]:
    """
    Pick the organization for this request:
      1) X-Organization-Id header / ?organization_id, if the user is an accepted member
      2) otherwise the user's first accepted membership
    Returns None when the user belongs to no organization.
    """
    q = OrganizationMember.query.filter(
        OrganizationMember.user_id == user_id,
        OrganizationMember.accepted_at.isnot(None),
    )
    wanted = _requested_org_id()
    if wanted is not None:
        m = q.filter(OrganizationMember.organization_id == wanted).first()
    else:
        m = q.order_by(OrganizationMember.id.asc()).first()
    if not m:
        return None
    return TenantContext(organization_id=m.organization_id, user_id=user_id, role=m.role)


def current_tenant() -> TenantContext:
    """The TenantContext set by ``requires_org_role``."""
    return g.tenant
