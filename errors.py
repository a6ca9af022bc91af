"""Error types shared by the services and blueprints.

Views raise these; ``register_error_handlers`` turns them into
``{"error": ...}`` JSON responses with the matching status code.
"""

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class QuotaExceededError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class PersistenceError(AppError):
    status_code = 500


class ConfigurationError(AppError):
    status_code = 500


class UpstreamServiceError(AppError):
    """A collaborator (language model, billing API) answered with a failure."""
    status_code = 502


def upstream_error_from_response(response, fallback_message):
    """Build an UpstreamServiceError from a ``requests`` response.

    Uses the upstream ``error``/``message`` field when the body is JSON,
    otherwise falls back to the status line plus raw text.
    """
    status = response.status_code if response.status_code >= 400 else 502
    try:
        data = response.json()
    except ValueError:
        text = (response.text or "").strip()
        message = f"Server error: {response.status_code} {response.reason or ''}".rstrip()
        if text:
            message = f"{message}. {text[:500]}"
        return UpstreamServiceError(message, status_code=status)

    message = fallback_message
    if isinstance(data, dict) and isinstance(data.get("error") or data.get("message"), str):
        message = data.get("error") or data.get("message")
    return UpstreamServiceError(message, status_code=status, details=data)


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def _handle_app_error(e):
        if e.status_code >= 500:
            app.logger.error("%s: %s", type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _handle_db_error(e):
        app.logger.exception("Database error")
        return jsonify({"error": "Database error", "details": str(e.__class__.__name__)}), 500

    @app.errorhandler(HTTPException)
    def _handle_http_error(e):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def _handle_unexpected(e):
        app.logger.exception("Unhandled error")
        return jsonify({"error": str(e) or "Unknown error"}), 500
