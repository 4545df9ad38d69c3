import logging
import uuid
from datetime import datetime, timedelta

from flask import Blueprint, current_app
from flask_jwt_extended import jwt_required

from estate_api.blueprints.auth_v1 import create_organization_for
from estate_api.common.auth import can_read, can_manage, current_user_id
from estate_api.common.errors import APIError, not_found
from estate_api.common.http import ok, fail
from estate_api.common.parse import json_body
from estate_api.common.tenant import current_tenant
from estate_api.extensions import db
from estate_api.models.organization import ORG_ROLES, Invitation, Organization, OrganizationMember
from estate_api.models.user import User

log = logging.getLogger(__name__)

bp = Blueprint("organizations", __name__, url_prefix="/api/v1/organizations")


def _org_row(o: Organization, role=None):
    d = {
        "id": o.id,
        "name": o.name,
        "slug": o.slug,
        "created_at": o.created_at.isoformat() if o.created_at else None,
    }
    if role is not None:
        d["role"] = role
    return d


def _member_row(m: OrganizationMember):
    u = m.user
    return {
        "id": m.id,
        "user_id": m.user_id,
        "email": u.email if u else None,
        "full_name": u.full_name if u else None,
        "role": m.role,
        "invited_at": m.invited_at.isoformat() if m.invited_at else None,
        "accepted_at": m.accepted_at.isoformat() if m.accepted_at else None,
    }


def _invite_row(i: Invitation, with_token=False):
    d = {
        "id": i.id,
        "organization_id": i.organization_id,
        "organization_name": i.organization.name if i.organization else None,
        "email": i.email,
        "role": i.role,
        "expires_at": i.expires_at.isoformat() if i.expires_at else None,
        "accepted_at": i.accepted_at.isoformat() if i.accepted_at else None,
    }
    if with_token:
        d["token"] = i.token
    return d


def _role_or_422(raw):
    role = (raw or "").strip().lower()
    if role not in ORG_ROLES:
        raise APIError("INVALID_ROLE", f"role must be one of {', '.join(ORG_ROLES)}", 422)
    return role


# ---------- my organizations ----------

@bp.get("")
@jwt_required()
def list_mine():
    uid = current_user_id()
    ms = (
        OrganizationMember.query
        .filter(OrganizationMember.user_id == uid, OrganizationMember.accepted_at.isnot(None))
        .order_by(OrganizationMember.id.asc())
        .all()
    )
    return ok([_org_row(m.organization, m.role) for m in ms])


@bp.post("")
@jwt_required()
def create_org():
    data = json_body()
    name = (data.get("name") or "").strip()
    if not name:
        return fail("name is required", 422)
    user = db.session.get(User, current_user_id())
    if not user:
        return fail("Unauthorized", 401)
    org = create_organization_for(user, name)
    db.session.commit()
    log.info("organization created id=%s owner=%s", org.id, user.id)
    return ok(_org_row(org, "owner"), 201)


# ---------- current organization ----------

@bp.get("/current")
@can_read
def get_current():
    ctx = current_tenant()
    org = db.session.get(Organization, ctx.organization_id)
    data = _org_row(org, ctx.role)
    data["permissions"] = ctx.permissions()
    return ok(data)


@bp.put("/current")
@can_manage
def update_current():
    ctx = current_tenant()
    org = db.session.get(Organization, ctx.organization_id)
    data = json_body()
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return fail("name cannot be empty", 422)
        org.name = name
    db.session.commit()
    return ok(_org_row(org, ctx.role))


# ---------- members ----------

@bp.get("/current/members")
@can_read
def list_members():
    ctx = current_tenant()
    ms = (
        OrganizationMember.query
        .filter(OrganizationMember.organization_id == ctx.organization_id)
        .order_by(OrganizationMember.id.asc())
        .all()
    )
    return ok([_member_row(m) for m in ms])


def _member_or_404(ctx, member_id):
    m = OrganizationMember.query.filter_by(id=member_id, organization_id=ctx.organization_id).first()
    if not m:
        raise not_found("Member")
    return m


@bp.put("/current/members/<int:member_id>")
@can_manage
def update_member(member_id: int):
    ctx = current_tenant()
    m = _member_or_404(ctx, member_id)
    role = _role_or_422(json_body().get("role"))
    if m.role == "owner" and not ctx.is_owner:
        return fail("Only the owner can change the owner's role", 403)
    if role == "owner" and not ctx.is_owner:
        return fail("Only the owner can grant ownership", 403)
    if m.user_id == ctx.user_id and m.role == "owner" and role != "owner":
        return fail("Transfer ownership before changing your own role", 422)
    m.role = role
    db.session.commit()
    return ok(_member_row(m))


@bp.delete("/current/members/<int:member_id>")
@can_manage
def remove_member(member_id: int):
    ctx = current_tenant()
    m = _member_or_404(ctx, member_id)
    if m.user_id == ctx.user_id:
        return fail("You cannot remove yourself", 422)
    if m.role == "owner":
        return fail("The owner cannot be removed", 422)
    db.session.delete(m)
    db.session.commit()
    log.info("member removed org=%s user=%s by=%s", ctx.organization_id, m.user_id, ctx.user_id)
    return ok({"id": member_id, "deleted": True})


# ---------- invitations ----------

@bp.get("/current/invitations")
@can_manage
def list_invitations():
    ctx = current_tenant()
    now = datetime.utcnow()
    rows = (
        Invitation.query
        .filter(
            Invitation.organization_id == ctx.organization_id,
            Invitation.accepted_at.is_(None),
            Invitation.expires_at > now,
        )
        .order_by(Invitation.created_at.desc())
        .all()
    )
    return ok([_invite_row(i, with_token=True) for i in rows])


@bp.post("/current/invitations")
@can_manage
def create_invitation():
    ctx = current_tenant()
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    if "@" not in email:
        return fail("valid email is required", 422)
    role = _role_or_422(data.get("role") or "viewer")
    if role == "owner":
        return fail("Invitations cannot grant ownership", 422)

    existing = (
        OrganizationMember.query
        .join(User, User.id == OrganizationMember.user_id)
        .filter(OrganizationMember.organization_id == ctx.organization_id, User.email == email)
        .first()
    )
    if existing:
        return fail("User is already a member", 409)

    ttl = int(current_app.config.get("INVITATION_TTL_DAYS", 7))
    inv = Invitation(
        organization_id=ctx.organization_id,
        email=email,
        role=role,
        token=uuid.uuid4().hex,
        expires_at=datetime.utcnow() + timedelta(days=ttl),
        invited_by=ctx.user_id,
    )
    db.session.add(inv)
    db.session.commit()
    log.info("invitation created org=%s email=%s role=%s", ctx.organization_id, email, role)
    return ok(_invite_row(inv, with_token=True), 201)


@bp.delete("/current/invitations/<int:invitation_id>")
@can_manage
def delete_invitation(invitation_id: int):
    ctx = current_tenant()
    inv = Invitation.query.filter_by(id=invitation_id, organization_id=ctx.organization_id).first()
    if not inv:
        raise not_found("Invitation")
    db.session.delete(inv)
    db.session.commit()
    return ok({"id": invitation_id, "deleted": True})


def _invitation_by_token(token: str) -> Invitation:
    inv = Invitation.query.filter_by(token=token).first()
    if not inv:
        raise not_found("Invitation")
    return inv


@bp.get("/invitations/<token>")
def preview_invitation(token: str):
    inv = _invitation_by_token(token)
    data = _invite_row(inv)
    data["pending"] = inv.is_pending()
    return ok(data)


@bp.post("/invitations/<token>/accept")
@jwt_required()
def accept_invitation(token: str):
    inv = _invitation_by_token(token)
    if inv.accepted_at is not None:
        return fail("Invitation already accepted", 409, code="INVITATION_USED")
    if inv.expires_at <= datetime.utcnow():
        return fail("Invitation expired", 410, code="INVITATION_EXPIRED")

    user = db.session.get(User, current_user_id())
    if not user:
        return fail("Unauthorized", 401)
    if user.email.lower() != inv.email.lower():
        return fail("Invitation was sent to a different email", 403, code="INVITATION_EMAIL_MISMATCH")

    now = datetime.utcnow()
    m = OrganizationMember.query.filter_by(organization_id=inv.organization_id, user_id=user.id).first()
    if m is not None and m.accepted_at is not None:
        # an existing role is never changed by an invitation
        return fail("Already a member of this organization", 409, code="ALREADY_MEMBER")
    if m is None:
        m = OrganizationMember(organization_id=inv.organization_id, user_id=user.id, invited_at=inv.created_at)
        db.session.add(m)
    m.role = inv.role
    m.accepted_at = now
    inv.accepted_at = now
    db.session.commit()
    log.info("invitation accepted org=%s user=%s", inv.organization_id, user.id)
    return ok(_org_row(inv.organization, m.role))
