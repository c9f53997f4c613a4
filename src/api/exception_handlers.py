"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from events.exceptions import EventsError
from events.service.ticket_ids import TicketIdGenerationError

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    json_payload = None
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            json_payload = obfuscate(orjson.loads(request.body))
        except (orjson.JSONDecodeError, AttributeError, TypeError):  # pragma: no cover
            json_payload = None
    logger.exception(
        "INTERNAL_SERVER_ERROR",
        path=f"{request.method} {request.path}",
        headers=obfuscate(dict(request.headers)),
        query=obfuscate(request.GET.dict()),
        json_payload=json_payload,
    )
    data = {"detail": "Internal Server Error."}
    is_staff = getattr(request, "user", None) and request.user.is_staff
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a model validation error.

    Field errors are keyed by field name; errors not tied to a field land under ``__all__``.
    """
    logger.warning("VALIDATION_ERROR", path=request.path, error=str(exc))
    if hasattr(exc, "error_dict"):
        errors = {k: [msg for error in v for msg in error] for k, v in exc.error_dict.items()}
    else:
        errors = {"__all__": list(exc.messages)}
    return Response(status=400, data={"errors": errors})


def handle_events_error(request: HttpRequest, exc: EventsError | t.Type[EventsError]) -> Response:
    """Map a domain error onto its status code."""
    assert isinstance(exc, EventsError)
    logger.info("domain_error", path=request.path, code=exc.code, status_code=exc.status_code)
    return Response(status=exc.status_code, data=exc.as_payload())


def handle_ticket_id_generation_error(
    request: HttpRequest, exc: TicketIdGenerationError | t.Type[TicketIdGenerationError]
) -> Response:
    """Handle running out of ticket id attempts."""
    logger.error("ticket_id_generation_failed", path=request.path)
    return Response(status=503, data={"detail": "Could not issue a ticket right now. Please try again."})


SENSITIVE_KEYS = {"password", "token", "authorization", "payment_receipt", "contact_number"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    if not isinstance(data, dict):
        return data
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
