# Overview: Maps service-layer exceptions to JSON error responses for all blueprints.

from __future__ import annotations

from flask import current_app, jsonify

from ..services.auth_service import PasswordValidationError, UserValidationError
from ..services.lifecycle_service import InvalidTransition, ItemsNotPicked, Unauthorized
from ..services.order_service import (
    OrderNotFound,
    OrderTransitionError,
    OrderConflictError,
    OrderPersistenceError,
)
from ..services.permission_service import PermissionDeniedError
from ..services.scope_service import ScopeDenied
from ..validation import ValidationError, ConflictError


# Lifecycle rejection -> HTTP status
TRANSITION_STATUS = {
    InvalidTransition: 400,
    Unauthorized: 403,
    ItemsNotPicked: 409,
}


def _body(message: str, code: str, **extra) -> dict:
    body = {"error": message, "code": code}
    body.update(extra)
    return body


def json_error(exc: Exception, *, action: str = "handle request"):
    """
    Translate a service exception into (response, status).

    Anything unrecognised is logged with its traceback and returned as 500.
    """
    if isinstance(exc, OrderTransitionError):
        status = TRANSITION_STATUS.get(type(exc.error), 400)
        extra = {}
        if isinstance(exc.error, ItemsNotPicked):
            extra["unpicked_parts"] = list(exc.error.unpicked_parts)
        return jsonify(_body(exc.error.message, exc.code, **extra)), status
    if isinstance(exc, (ValidationError, UserValidationError, PasswordValidationError)):
        return jsonify(_body(str(exc), "VALIDATION_ERROR")), 400
    if isinstance(exc, PermissionDeniedError):
        return jsonify(_body(str(exc), "PERMISSION_DENIED")), 403
    if isinstance(exc, ScopeDenied):
        return jsonify(_body(str(exc), "SCOPE_DENIED")), 403
    if isinstance(exc, OrderNotFound):
        return jsonify(_body(str(exc), "NOT_FOUND")), 404
    if isinstance(exc, OrderConflictError):
        return jsonify(_body(str(exc), "STATUS_CONFLICT")), 409
    if isinstance(exc, ConflictError):
        return jsonify(_body(str(exc), "CONFLICT")), 409
    if isinstance(exc, OrderPersistenceError):
        return jsonify(_body(str(exc), "PERSISTENCE_FAILED", retryable=True)), 503

    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
