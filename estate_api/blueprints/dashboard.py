from flask import Blueprint, request

from estate_api.common.auth import can_read
from estate_api.common.http import ok, fail
from estate_api.common.tenant import current_tenant
from estate_api.services.finance_service import (
    RANGE_DAYS,
    financial_overview,
    harvest_trends as _harvest_trends,
    local_today,
    overview as _overview,
    section_cards,
)

bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/dashboard")


@bp.get("/cards")
@can_read
def cards():
    return ok(section_cards(current_tenant().organization_id, local_today()))


@bp.get("/financial")
@can_read
def financial():
    key = request.args.get("range", "30d")
    if key not in RANGE_DAYS:
        return fail(f"range must be one of {', '.join(RANGE_DAYS)}", 422)
    return ok(financial_overview(current_tenant().organization_id, local_today(), key))


@bp.get("/harvest-trends")
@can_read
def harvest_trends():
    try:
        days = int(request.args.get("days", 7))
    except ValueError:
        return fail("days must be integer", 422)
    if not 1 <= days <= 90:
        return fail("days must be between 1 and 90", 422)
    return ok(_harvest_trends(current_tenant().organization_id, local_today(), days))


@bp.get("/overview")
@can_read
def overview():
    return ok(_overview(current_tenant().organization_id, local_today()))
