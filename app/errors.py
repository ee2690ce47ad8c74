import logging
from flask import Blueprint
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException
from app.utils.responses import error, validation_error_response

errors_bp = Blueprint("errors_bp", __name__)


class AppError(Exception):
    """Base for errors the API reports to the caller as-is."""

    status = 400
    code = "error"

    def __init__(self, message=None, code=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code


class ValidationError(AppError):
    status = 400
    code = "validation_error"


class NotFoundError(AppError):
    status = 404
    code = "not_found"


class ConflictError(AppError):
    status = 409
    code = "conflict"


class AlreadyVotedError(ConflictError):
    code = "already_voted"


class AlreadyInWishlistError(ConflictError):
    code = "already_in_wishlist"


class RecipientNotFoundError(AppError):
    """No e-mail address could be resolved for an order. Not retryable."""

    status = 422
    code = "no_recipient"


class TransientError(AppError):
    status = 503
    code = "transient"


@errors_bp.app_errorhandler(AppError)
def handle_app_error(e):
    return error(e.message, status=e.status, code=e.code)


@errors_bp.app_errorhandler(SchemaValidationError)
def handle_schema_error(e):
    return validation_error_response(e.errors(include_url=False, include_context=False))


@errors_bp.app_errorhandler(OperationalError)
def handle_operational_error(e):
    logging.warning("Database unavailable: %s", e.orig if hasattr(e, "orig") else e)
    return error(
        "Service temporarily unavailable, please retry.",
        status=TransientError.status,
        code=TransientError.code,
    )


@errors_bp.app_errorhandler(HTTPException)
def handle_http_exception(e):
    msg = e.description or getattr(e, "name", "HTTP Error")
    return error(msg, status=e.code, code=e.code)


@errors_bp.app_errorhandler(Exception)
def handle_unexpected_exception(e):
    logging.exception("Unhandled exception")
    return error(
        "An unexpected error occurred. Please try again later.",
        status=500,
        code=500,
    )
