"""Ticket verification, attendance marking and participant cancellation."""

import typing as t
from datetime import datetime
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from accounts.models import FelicityUser
from events.exceptions import (
    AttendanceAlreadyMarkedError,
    CancellationNotAllowedError,
    NotRegistrationOwnerError,
    RegistrationCancelledError,
    RegistrationNotFoundError,
    StateConflictError,
)
from events.models import Registration

from . import capacity, ensure_can_manage_event, ticket_ids

logger = structlog.get_logger(__name__)


def get_registration_by_ticket(ticket_id: str) -> Registration:
    """Look up a registration by its human-facing ticket id."""
    try:
        return Registration.objects.full().get(ticket_id=ticket_ids.normalize_ticket_id(ticket_id))
    except Registration.DoesNotExist as e:
        raise RegistrationNotFoundError(str(_("Invalid ticket."))) from e


def verify_ticket(ticket_id: str, viewer: t.Any) -> Registration:
    """Return the registration behind a scanned ticket, for the event's organizer or an admin."""
    registration = get_registration_by_ticket(ticket_id)
    ensure_can_manage_event(registration.event, viewer)
    return registration


def mark_attended(ticket_id: str, marker: t.Any, now: datetime | None = None) -> Registration:
    """Check the ticket holder in.

    Raises:
        RegistrationNotFoundError: If no registration has this ticket id.
        NotEventOrganizerError: If the marker may not manage the event.
        AttendanceAlreadyMarkedError: If the holder was already checked in.
        RegistrationCancelledError: If the registration was cancelled.
        StateConflictError: If the payment has not been approved yet.
    """
    with transaction.atomic():
        registration = (
            Registration.objects.select_for_update()
            .select_related("event", "event__organizer", "participant")
            .filter(ticket_id=ticket_ids.normalize_ticket_id(ticket_id))
            .first()
        )
        if registration is None:
            raise RegistrationNotFoundError(str(_("Invalid ticket.")))
        ensure_can_manage_event(registration.event, marker)

        if registration.status == Registration.Status.ATTENDED:
            raise AttendanceAlreadyMarkedError()
        if registration.status == Registration.Status.CANCELLED:
            raise RegistrationCancelledError()
        if registration.payment_status != Registration.PaymentStatus.COMPLETED:
            raise StateConflictError(str(_("This ticket is pending payment confirmation.")))

        registration.status = Registration.Status.ATTENDED
        registration.attendance_date = now or timezone.now()
        registration.checked_in_by = marker
        registration.save(update_fields=["status", "attendance_date", "checked_in_by", "updated_at"])

    logger.info(
        "attendance_marked",
        registration_id=str(registration.pk),
        event_id=str(registration.event_id),
        marker_id=str(marker.pk),
    )
    return registration


def cancel_registration(
    registration_id: UUID | str,
    participant: FelicityUser,
    *,
    reason: str = "",
    now: datetime | None = None,
) -> Registration:
    """Cancel the participant's registration before the event starts.

    The slot is released and the record deleted, which also frees the participant to
    register again. Units of a completed merchandise purchase go back to stock. The returned
    instance is no longer in the database.

    Raises:
        RegistrationNotFoundError: If the registration does not exist.
        NotRegistrationOwnerError: If the registration belongs to someone else.
        RegistrationCancelledError: If the registration is already cancelled.
        CancellationNotAllowedError: If the event has already started.
    """
    now = now or timezone.now()
    event_id = Registration.objects.filter(pk=registration_id).values_list("event_id", flat=True).first()
    if event_id is None:
        raise RegistrationNotFoundError()

    with transaction.atomic():
        event = capacity.lock_event(event_id)
        registration = Registration.objects.select_for_update().filter(pk=registration_id).first()
        if registration is None:
            raise RegistrationNotFoundError()
        registration.event = event
        if registration.participant_id != participant.pk:
            raise NotRegistrationOwnerError()
        if registration.status == Registration.Status.CANCELLED:
            raise RegistrationCancelledError()
        if event.start_date <= now:
            raise CancellationNotAllowedError()

        capacity.release(event)
        if event.is_merchandise and registration.payment_status == Registration.PaymentStatus.COMPLETED:
            capacity.restock(event, registration.quantity)

        registration.status = Registration.Status.CANCELLED
        registration.cancellation_date = now
        registration.cancellation_reason = (reason or "").strip()
        registration_pk = registration.pk
        registration.delete()
        registration.pk = registration_pk

    logger.info(
        "registration_cancelled",
        registration_id=str(registration_pk),
        event_id=str(event.pk),
        current_registrations=event.current_registrations,
    )
    return registration
