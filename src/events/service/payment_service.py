"""Organizer review of paid registrations.

Paid merchandise does not hold stock while its payment is pending. Approval re-checks and
consumes the stock under the event lock, so when two pending purchases compete for the last
units only the first approval succeeds and the other registration stays pending.
"""

import typing as t
from datetime import datetime
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from events.exceptions import (
    AlreadyApprovedError,
    PaymentNotPendingError,
    RegistrationCancelledError,
    RegistrationNotFoundError,
    RejectionCommentRequiredError,
)
from events.models import Registration

from . import capacity, ensure_can_manage_event, ticket_delivery

logger = structlog.get_logger(__name__)


def _lock_for_review(registration_id: UUID | str, reviewer: t.Any) -> Registration:
    """Lock the event first, then the registration. Must run inside ``transaction.atomic``."""
    event_id = Registration.objects.filter(pk=registration_id).values_list("event_id", flat=True).first()
    if event_id is None:
        raise RegistrationNotFoundError()
    event = capacity.lock_event(event_id)
    ensure_can_manage_event(event, reviewer)
    registration = (
        Registration.objects.select_for_update().select_related("participant").filter(pk=registration_id).first()
    )
    if registration is None:
        raise RegistrationNotFoundError()
    registration.event = event
    if registration.status == Registration.Status.CANCELLED:
        raise RegistrationCancelledError()
    return registration


def approve_payment(registration_id: UUID | str, reviewer: t.Any, now: datetime | None = None) -> Registration:
    """Approve a pending payment and issue the ticket.

    Raises:
        RegistrationNotFoundError: If the registration does not exist.
        NotEventOrganizerError: If the reviewer may not manage the event.
        AlreadyApprovedError: If the payment is already completed.
        PaymentNotPendingError: If the payment was rejected or refunded.
        StockError: If the merchandise stock no longer covers the purchase.
    """
    with transaction.atomic():
        registration = _lock_for_review(registration_id, reviewer)
        if registration.payment_status == Registration.PaymentStatus.COMPLETED:
            raise AlreadyApprovedError()
        if registration.payment_status != Registration.PaymentStatus.PENDING:
            raise PaymentNotPendingError()
        if registration.event.is_merchandise:
            capacity.consume_stock(registration.event, registration.quantity)

        registration.payment_status = Registration.PaymentStatus.COMPLETED
        registration.payment_reviewed_at = now or timezone.now()
        registration.payment_reviewed_by = reviewer
        registration.save(
            update_fields=["payment_status", "payment_reviewed_at", "payment_reviewed_by", "updated_at"]
        )

    logger.info(
        "payment_approved",
        registration_id=str(registration.pk),
        event_id=str(registration.event_id),
        reviewer_id=str(reviewer.pk),
        amount=str(registration.payment_amount),
    )
    ticket_delivery.confirm_payment_ticket(registration)
    return registration


def reject_payment(
    registration_id: UUID | str, reviewer: t.Any, comment: str, now: datetime | None = None
) -> Registration:
    """Reject a pending payment.

    Counters are left alone: the registration keeps its slot until the participant cancels,
    and pending merchandise never took stock.

    Raises:
        RejectionCommentRequiredError: If the comment is blank.
        RegistrationNotFoundError: If the registration does not exist.
        NotEventOrganizerError: If the reviewer may not manage the event.
        PaymentNotPendingError: If the payment is not pending.
    """
    comment = (comment or "").strip()
    if not comment:
        raise RejectionCommentRequiredError()

    with transaction.atomic():
        registration = _lock_for_review(registration_id, reviewer)
        if registration.payment_status != Registration.PaymentStatus.PENDING:
            raise PaymentNotPendingError()
        registration.payment_status = Registration.PaymentStatus.FAILED
        registration.payment_rejection_comment = comment
        registration.payment_reviewed_at = now or timezone.now()
        registration.payment_reviewed_by = reviewer
        registration.save(
            update_fields=[
                "payment_status",
                "payment_rejection_comment",
                "payment_reviewed_at",
                "payment_reviewed_by",
                "updated_at",
            ]
        )

    logger.info(
        "payment_rejected",
        registration_id=str(registration.pk),
        event_id=str(registration.event_id),
        reviewer_id=str(reviewer.pk),
    )
    return registration
