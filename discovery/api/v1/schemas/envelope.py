# discovery/api/v1/schemas/envelope.py
from typing import Any, Optional

from pydantic import BaseModel


class Envelope(BaseModel):
    """Uniform response body: {success, data?, message?, error?}."""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None


def _body(**fields) -> dict:
    # absent keys stay absent instead of serializing as null
    env = Envelope(**{k: v for k, v in fields.items() if v is not None})
    return env.model_dump(include=set(env.model_fields_set))


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    return _body(success=True, data=data, message=message)


def failed(message: str, error: Optional[str] = None) -> dict:
    return _body(success=False, message=message, error=error)
