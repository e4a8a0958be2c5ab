# discovery/core/errors.py
from __future__ import annotations
from functools import wraps
from typing import Type

from pydantic import ValidationError as DocumentShapeError
from pymongo.errors import PyMongoError

MAX_DIAGNOSTIC_LEN = 200


def short_diagnostic(exc: BaseException, limit: int = MAX_DIAGNOSTIC_LEN) -> str:
    """One-line, truncated description of an exception, safe to return to callers."""
    text = " ".join(str(exc).split()) or exc.__class__.__name__
    return text if len(text) <= limit else text[:limit] + "…"


class DiscoveryError(Exception):
    """Base class; every subclass maps to one failed-envelope status."""

    status_code: int = 500
    default_message: str = "Discovery request failed"

    def __init__(self, message: str | None = None, *, diagnostic: str | None = None):
        self.message = message or self.default_message
        self.diagnostic = diagnostic
        super().__init__(self.message)


class ValidationError(DiscoveryError):
    status_code = 400
    default_message = "Invalid request parameters"


class AuthenticationRequiredError(DiscoveryError):
    status_code = 401
    default_message = "Authentication required"


class NotFoundError(DiscoveryError):
    status_code = 404
    default_message = "Product not found or inactive"


class InvalidStateError(DiscoveryError):
    status_code = 409
    default_message = "Product is in a state that does not allow this operation"


class BackendUnavailableError(DiscoveryError):
    status_code = 503
    default_message = "Search index unavailable"


class IndexSchemaError(DiscoveryError):
    status_code = 503
    default_message = "Search index schema could not be created"


class StoreError(DiscoveryError):
    status_code = 500
    default_message = "Record store failure"


def translate_driver_errors(target: Type[DiscoveryError]):
    """
    Decorator for async repository methods: re-raise driver errors, and stored
    documents that don't fit the models, as `target`.
    """
    def decorator(fn):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except (PyMongoError, DocumentShapeError) as e:
                raise target(diagnostic=short_diagnostic(e)) from e
        return wrapper
    return decorator
