"""Tracionar — Domain error → HTTP mapping."""

from typing import Dict, Tuple, Type

from fastapi import HTTPException

from app.core.errors import (
    CredentialError,
    ExternalAPIError,
    GenerationError,
    GenerationNotConfiguredError,
    NotFoundError,
    PersistenceError,
    TracionarError,
    ValidationError,
)

# Most specific class first
STATUS_MAP: Tuple[Tuple[Type[TracionarError], int, str], ...] = (
    (ValidationError, 400, "VALIDATION_ERROR"),
    (NotFoundError, 404, "NOT_FOUND"),
    (CredentialError, 401, "CREDENTIAL_ERROR"),
    (ExternalAPIError, 502, "EXTERNAL_API_ERROR"),
    (GenerationNotConfiguredError, 503, "AI_NOT_CONFIGURED"),
    (GenerationError, 502, "AI_GENERATION_ERROR"),
    (PersistenceError, 500, "PERSISTENCE_ERROR"),
)


def to_http(error: TracionarError) -> HTTPException:
    status_code, code = 500, "INTERNAL_ERROR"
    for cls, status, name in STATUS_MAP:
        if isinstance(error, cls):
            status_code, code = status, name
            break
    detail: Dict = {"error": error.message, "code": code}
    if error.details:
        detail["details"] = error.details
    return HTTPException(status_code=status_code, detail=detail)
