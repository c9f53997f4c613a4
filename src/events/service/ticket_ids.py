"""Human-facing ticket identifiers.

A ticket id is 6 random bytes rendered as 12 upper-case hex characters, e.g. ``9F3A0C71B2E4``.
"""

import secrets

import structlog
from django.conf import settings

from events.models import Registration

logger = structlog.get_logger(__name__)

TICKET_ID_BYTES = 6
TICKET_ID_LENGTH = TICKET_ID_BYTES * 2


class TicketIdGenerationError(Exception):
    """Raised when no unused ticket id could be found."""


def new_ticket_id() -> str:
    """Return a random ticket id without checking it against the database."""
    return secrets.token_hex(TICKET_ID_BYTES).upper()


def normalize_ticket_id(ticket_id: str) -> str:
    """Canonical form of a ticket id typed or scanned by a person."""
    return ticket_id.strip().upper()


def generate_ticket_id(max_attempts: int | None = None) -> str:
    """Return a ticket id not used by any registration.

    The unique index on ``Registration.ticket_id`` remains the final guard.

    Raises:
        TicketIdGenerationError: If every attempt collided.
    """
    attempts = max_attempts or settings.TICKET_ID_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        candidate = new_ticket_id()
        if not Registration.objects.filter(ticket_id=candidate).exists():
            return candidate
        logger.warning("ticket_id_collision", attempt=attempt)
    raise TicketIdGenerationError(f"Could not generate a unique ticket id after {attempts} attempts.")
