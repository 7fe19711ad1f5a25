"""
UserMgmt Backend — Error Translator
=====================================

What:  Maps any exception raised inside a chain to (status, envelope).
Why:   One function owns the wire shape of every failure, so clients can
       rely on it regardless of which step or handler failed.
How:   Classify the error into (kind, status, message), then wrap it with the
       request's correlation id.

Envelope:
    {
        "error": {
            "kind": "csrf/invalid",
            "message": "CSRF token header is missing",
            "correlationId": "0c6f1f0e-..."
        }
    }

Classification:
    PipelineError with a known kind   → its kind and status
    PipelineError with unknown kind   → server/internal_error, 500
    pydantic.ValidationError          → validation/invalid_body, 400
    anything else                     → server/internal_error, 500

Unclassified errors keep their original message unless
EXPOSE_INTERNAL_ERROR_MESSAGES is false. Stack traces never enter the
envelope. translate() is total: if classification itself fails, the
generic internal error is returned.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from usermgmt.config import settings
from usermgmt.exceptions import ERROR_STATUS, ErrorKind, PipelineError

logger = logging.getLogger(__name__)

GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred"


def _summarize_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors()[:5]:
        location = ".".join(str(p) for p in error.get("loc", ())) or "body"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "Request body failed validation: " + "; ".join(parts)


def _internal_message(exc: BaseException, expose: bool) -> str:
    if not expose:
        return GENERIC_INTERNAL_MESSAGE
    return str(exc) or GENERIC_INTERNAL_MESSAGE


def classify(
    exc: BaseException, expose_internal: Optional[bool] = None
) -> Tuple[ErrorKind, int, str]:
    """Return (kind, status, message) for an exception."""
    expose = settings.expose_internal_error_messages if expose_internal is None else expose_internal

    if isinstance(exc, PipelineError):
        try:
            kind = ErrorKind(exc.kind)
        except ValueError:
            logger.warning("Unrecognized error kind %r; translating as internal error", exc.kind)
            return ErrorKind.INTERNAL, 500, _internal_message(exc, expose)
        if kind is ErrorKind.INTERNAL:
            return kind, ERROR_STATUS[kind], _internal_message(exc, expose)
        return kind, ERROR_STATUS[kind], exc.message

    if isinstance(exc, PydanticValidationError):
        kind = ErrorKind.INVALID_BODY
        return kind, ERROR_STATUS[kind], _summarize_validation_error(exc)

    return ErrorKind.INTERNAL, ERROR_STATUS[ErrorKind.INTERNAL], _internal_message(exc, expose)


def translate(
    exc: BaseException,
    correlation_id: Optional[str],
    expose_internal: Optional[bool] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    Translate an exception into a status code and the JSON error envelope.

    Never raises.
    """
    try:
        kind, status, message = classify(exc, expose_internal)
    except Exception:  # classification must not take the response down with it
        logger.exception("Error translation failed")
        kind, status, message = ErrorKind.INTERNAL, 500, GENERIC_INTERNAL_MESSAGE

    return status, {
        "error": {
            "kind": kind.value,
            "message": message,
            "correlationId": correlation_id,
        }
    }
