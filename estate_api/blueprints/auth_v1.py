import re
from datetime import datetime

from flask import Blueprint
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required, get_jwt_identity
)
from estate_api.common.http import ok, fail
from estate_api.common.parse import json_body
from estate_api.extensions import db
from estate_api.models.organization import Organization, OrganizationMember
from estate_api.models.user import User

bp = Blueprint("auth_v1", __name__, url_prefix="/api/v1/auth")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD = 6


def _user_payload(u: User):
    orgs = (
        OrganizationMember.query
        .filter(OrganizationMember.user_id == u.id, OrganizationMember.accepted_at.isnot(None))
        .order_by(OrganizationMember.id.asc())
        .all()
    )
    return {
        "id": u.id,
        "email": u.email,
        "full_name": u.full_name,
        "organizations": [
            {"organization_id": m.organization_id, "organization_name": m.organization.name, "role": m.role}
            for m in orgs
        ],
    }


def _tokens(u: User):
    add_claims = {"email": u.email, "name": u.full_name}
    access = create_access_token(identity=str(u.id), additional_claims=add_claims)
    refresh = create_refresh_token(identity=str(u.id))
    return access, refresh


def unique_slug(name: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-") or "org"
    slug, n = base, 1
    while Organization.query.filter_by(slug=slug).first():
        n += 1
        slug = f"{base}-{n}"
    return slug


def create_organization_for(user: User, name: str) -> Organization:
    org = Organization(name=name.strip(), slug=unique_slug(name))
    db.session.add(org)
    db.session.flush()
    now = datetime.utcnow()
    db.session.add(OrganizationMember(
        organization_id=org.id, user_id=user.id, role="owner", invited_at=now, accepted_at=now,
    ))
    return org


@bp.post("/register")
def register():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    full_name = (data.get("full_name") or "").strip()
    org_name = (data.get("organization_name") or "").strip() or "My Organization"

    if not EMAIL_RE.match(email):
        return fail("valid email is required", 422)
    if len(password) < MIN_PASSWORD:
        return fail(f"password must be at least {MIN_PASSWORD} characters", 422)
    if not full_name:
        return fail("full_name is required", 422)
    if User.query.filter_by(email=email).first():
        return fail("email already registered", 409)

    u = User(email=email, full_name=full_name, status="active")
    u.set_password(password)
    db.session.add(u)
    db.session.flush()
    create_organization_for(u, org_name)
    db.session.commit()

    access, refresh = _tokens(u)
    return ok({"access": access, "refresh": refresh, "user": _user_payload(u)}, 201)


@bp.post("/login")
def login():
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    u = User.query.filter_by(email=email).first()
    if not u or not u.check_password(password):
        return fail("Invalid credentials", 401)
    if u.status != "active":
        return fail("Account disabled", 403)

    access, refresh = _tokens(u)
    return ok({"access": access, "refresh": refresh, "user": _user_payload(u)})


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    uid = get_jwt_identity()
    u = db.session.get(User, int(uid)) if uid else None
    if not u:
        return fail("User not found", 404)
    access, _ = _tokens(u)
    return ok({"access": access})


@bp.get("/me")
@jwt_required()
def me():
    uid = get_jwt_identity()
    u = db.session.get(User, int(uid)) if uid else None
    if not u:
        return fail("User not found", 404)
    return ok(_user_payload(u))
