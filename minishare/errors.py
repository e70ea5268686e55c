"""
Error taxonomy and the JSON error handlers that render it.

Service code raises ``AppError`` subclasses; the handlers registered here turn
them into ``{"error": {"code", "message", "details"?}}`` responses so every
endpoint fails the same way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class AppError(Exception):
    message: str
    code: str = "APP_ERROR"
    http_status: int = 500
    details: Dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(AppError):
    def __init__(self, message: str = "Validation failed", details: Dict[str, Any] | None = None):
        super().__init__(message=message, code="VALIDATION_ERROR", http_status=422, details=details or {})


class UnauthenticatedError(AppError):
    def __init__(self, message: str = "Authentication required", details: Dict[str, Any] | None = None):
        super().__init__(message=message, code="UNAUTHENTICATED", http_status=401, details=details or {})


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Access denied", details: Dict[str, Any] | None = None):
        super().__init__(message=message, code="UNAUTHORIZED", http_status=403, details=details or {})


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found", details: Dict[str, Any] | None = None):
        super().__init__(message=message, code="NOT_FOUND", http_status=404, details=details or {})


class InvariantViolation(AppError):
    """A caller broke an internal contract. Never caused by user input."""

    def __init__(self, message: str = "Invariant violated", details: Dict[str, Any] | None = None):
        super().__init__(message=message, code="INVARIANT_VIOLATION", http_status=500, details=details or {})


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(error: AppError) -> Tuple[Any, int]:
        if isinstance(error, InvariantViolation):
            logger.error("Invariant violation: %s details=%s", error.message, error.details)
            # Internal detail stays in the log
            return _json_error(error.code, "An unexpected error occurred.", error.http_status)
        return _json_error(error.code, error.message, error.http_status, error.details)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException) -> Tuple[Any, int]:
        code = (error.name or "http_error").lower().replace(" ", "_")
        return _json_error(code, error.description or error.name, error.code or 500)

    @app.errorhandler(Exception)
    def handle_exception(error: Exception) -> Tuple[Any, int]:
        if app.config.get("DEBUG") and not app.config.get("TESTING"):
            raise error
        logger.exception("Unhandled error: %s", error)
        return _json_error("internal_server_error", "An unexpected error occurred.", 500)


def _json_error(code: str, message: str, status: int, details: Dict[str, Any] | None = None) -> Tuple[Any, int]:
    payload: Dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return jsonify(payload), status
