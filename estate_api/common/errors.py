# estate_api/common/errors.py
from flask import Blueprint, current_app
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError

from estate_api.common.http import fail
from estate_api.extensions import db
from estate_api.services.payroll_policy import InvalidInput

bp_errors = Blueprint("errors", __name__)


class APIError(Exception):
    """Error raised from handlers/services and rendered as the failure envelope."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


def not_found(what: str) -> APIError:
    return APIError("NOT_FOUND", f"{what} not found", 404)


@bp_errors.app_errorhandler(APIError)
def _api_error(e: APIError):
    return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

@bp_errors.app_errorhandler(InvalidInput)
def _invalid_input(e: InvalidInput):
    return fail(message=str(e), status=422, code="INVALID_INPUT", detail={"field": e.field} if e.field else None)

@bp_errors.app_errorhandler(HTTPException)
def _http(e: HTTPException):
    return fail(message=e.description or "HTTP error", status=e.code or 400)

@bp_errors.app_errorhandler(IntegrityError)
def _integrity(e: IntegrityError):
    db.session.rollback()
    # 409 for unique/FK violations
    return fail(message="Conflict / integrity error", status=409, code="CONSTRAINT_ERROR",
                detail=str(e.orig) if getattr(e, "orig", None) else str(e))

@bp_errors.app_errorhandler(Exception)
def _unhandled(e: Exception):
    current_app.logger.exception("Unhandled error: %s", e)
    return fail(message="Internal Server Error", status=500)
