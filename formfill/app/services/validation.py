"""Request body validation for the generate-fill endpoints."""

import json

from pydantic import ValidationError

from formfill.app.core.logging import get_logger
from formfill.app.exceptions import InputValidationError
from formfill.app.schemas import GenerateFillRequest

logger = get_logger(__name__)


def _format_errors(exc: ValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "body"
        messages.append(f"{loc}: {err['msg']}")
    return ", ".join(messages)


def validate_request(
    raw_body: bytes,
    max_fields: int = 50,
    max_request_size: int = 1024 * 1024,
) -> GenerateFillRequest:
    """Parse and validate a raw request body.

    Raises:
        InputValidationError: If the body is too large, is not JSON or does
            not describe 1..max_fields valid fields
    """
    if len(raw_body) > max_request_size:
        logger.warning(f"Request size exceeds limit: {len(raw_body)} > {max_request_size} bytes")
        raise InputValidationError(
            f"Request body too large. Maximum size: {max_request_size} bytes"
        )

    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError):
        logger.warning("Failed to parse request body as JSON")
        raise InputValidationError("Invalid JSON in request body") from None

    try:
        return GenerateFillRequest.model_validate(data, context={"max_fields": max_fields})
    except ValidationError as e:
        message = _format_errors(e)
        logger.warning(f"Request validation failed: {message}")
        raise InputValidationError(f"Validation error: {message}") from None
