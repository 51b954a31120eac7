"""
Domain error taxonomy and the JSON error boundary.

Repository/service code raises the typed errors below; the handlers registered by
`register_error_handlers` translate them into the response envelope. Unexpected
exceptions are logged server-side and surface as an opaque 500.
"""

from __future__ import annotations

from flask import Flask, g, jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException


class DomainError(Exception):
    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str, *, error: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error


class ValidationError(DomainError):
    status_code = 400
    error = "Validation failed"


class AuthenticationError(DomainError):
    status_code = 401
    error = "Authentication required"


class AuthorizationError(DomainError):
    status_code = 403
    error = "Insufficient permissions"


class NotFoundError(DomainError):
    # Also used when a row exists but lies outside the caller's scope.
    status_code = 404
    error = "Not found"


class ConflictError(DomainError):
    status_code = 409
    error = "Conflict"


def error_envelope(message: str, error: str, status_code: int):
    return jsonify({"success": False, "message": message, "error": error}), status_code


def _rollback_request_session() -> None:
    s = getattr(g, "db_session", None)
    if s is not None:
        s.rollback()


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):  # type: ignore[no-redef]
        _rollback_request_session()
        if e.status_code >= 500:
            app.logger.error("Domain error (request_id=%s): %s", getattr(g, "request_id", None), e.message)
        elif isinstance(e, AuthorizationError):
            identity = getattr(g, "identity", None)
            app.logger.warning(
                "403 forbidden (request_id=%s) user=%s required_role=%s",
                getattr(g, "request_id", None),
                identity.username if identity else None,
                getattr(g, "missing_role", None),
            )
        else:
            app.logger.info("%s (request_id=%s): %s", type(e).__name__, getattr(g, "request_id", None), e.message)
        return error_envelope(e.message, e.error, e.status_code)

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):  # type: ignore[no-redef]
        # Unique/FK violations that slipped past the service-level checks (concurrent writers).
        _rollback_request_session()
        app.logger.warning("IntegrityError (request_id=%s): %s", getattr(g, "request_id", None), e.orig)
        return error_envelope("The request conflicts with existing data.", "Conflict", 409)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        return error_envelope(e.description or e.name, e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):  # type: ignore[no-redef]
        _rollback_request_session()
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return error_envelope("Internal server error.", "Internal server error", 500)
