import typing as t
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from accounts.models import FelicityUser
from events.exceptions import (
    AlreadyRegisteredError,
    InvalidFormAnswerError,
    InvalidSelectionError,
    MissingFormFieldError,
    PaymentReceiptRequiredError,
)
from events.models import CustomFormAdapter, Event, ItemDetails, Registration

from . import capacity, ticket_delivery, ticket_ids

logger = structlog.get_logger(__name__)


@dataclass
class RegistrationOutcome:
    registration: Registration
    is_paid: bool
    message: str
    stock_remaining: int | None = None


def _is_blank(value: t.Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return not value
    return False


class RegistrationWorkflow:
    """Registers a participant for an event or sells them merchandise.

    Every precondition is checked while holding the event row lock, so the duplicate check,
    the capacity reservation and the registration insert happen as one unit per event.
    """

    def __init__(self, *, event_id: UUID | str, participant: FelicityUser) -> None:
        """Initialize the workflow."""
        self.event_id = event_id
        self.participant = participant

    def register(
        self,
        *,
        form_data: dict[str, t.Any] | None = None,
        payment_receipt: str | None = None,
        quantity: int = 1,
        selected_variant: str | None = None,
        selected_size: str | None = None,
        selected_color: str | None = None,
        now: datetime | None = None,
    ) -> RegistrationOutcome:
        """Run the registration.

        Raises:
            EventNotFoundError: If the event does not exist.
            RegistrationClosedError: If the event is unpublished or the deadline passed.
            CapacityExceededError: If the registration limit is reached.
            AlreadyRegisteredError: If the participant already holds an active registration.
            MissingFormFieldError: If required custom form answers are missing.
            InvalidFormAnswerError: If an answer breaks its question's options or validation rules.
            StockError: If the merchandise quantity cannot be sold.
            InvalidSelectionError: If the chosen variant, size or color does not exist.
            PaymentReceiptRequiredError: If the event costs money and no receipt was given.
        """
        now = now or timezone.now()
        with transaction.atomic():
            event = capacity.lock_event(self.event_id)
            capacity.check_registration_open(event, now)
            self._ensure_not_registered(event)

            if event.is_merchandise:
                capacity.check_stock(event, quantity)
                variant, size, color = self._validate_selection(event, selected_variant, selected_size, selected_color)
                entry = {
                    "quantity": quantity,
                    "selected_variant": variant,
                    "selected_size": size,
                    "selected_color": color,
                }
                amount_due = event.registration_fee * quantity
            else:
                entry = self._validate_answers(event, form_data or {})
                amount_due = event.registration_fee

            if amount_due > 0 and _is_blank(payment_receipt):
                raise PaymentReceiptRequiredError()

            is_paid = amount_due > 0
            registration = self._create_registration(
                event,
                form_data=entry,
                amount_due=amount_due,
                payment_receipt=payment_receipt if is_paid else None,
                now=now,
            )
            capacity.reserve(event)
            if event.is_merchandise and not is_paid:
                capacity.consume_stock(event, quantity)

        logger.info(
            "registration_created",
            registration_id=str(registration.pk),
            event_id=str(event.pk),
            event_type=event.event_type,
            payment_status=registration.payment_status,
            quantity=quantity if event.is_merchandise else None,
        )

        if not is_paid:
            ticket_delivery.issue_ticket(registration)

        return RegistrationOutcome(
            registration=registration,
            is_paid=is_paid,
            message=self._message(event, is_paid),
            stock_remaining=event.stock_quantity if event.is_merchandise else None,
        )

    def _ensure_not_registered(self, event: Event) -> None:
        if Registration.objects.active().filter(event=event, participant=self.participant).exists():
            raise AlreadyRegisteredError()

    def _validate_answers(self, event: Event, form_data: dict[str, t.Any]) -> dict[str, t.Any]:
        fields = CustomFormAdapter.validate_python(event.custom_form)
        missing = [field.label for field in fields if field.required and _is_blank(form_data.get(field.label))]
        if missing:
            raise MissingFormFieldError(missing_fields=missing)
        invalid = [
            field.label
            for field in fields
            if not _is_blank(form_data.get(field.label)) and not field.accepts(form_data[field.label])
        ]
        if invalid:
            raise InvalidFormAnswerError(invalid_fields=invalid)
        return form_data

    def _validate_selection(
        self, event: Event, variant: str | None, size: str | None, color: str | None
    ) -> tuple[str | None, str | None, str | None]:
        details = ItemDetails.model_validate(event.item_details)
        if variant and details.variants and variant not in details.variant_names():
            raise InvalidSelectionError(str(_("Unknown variant: {variant}.")).format(variant=variant))
        if size and details.sizes and size not in details.sizes:
            raise InvalidSelectionError(str(_("Unknown size: {size}.")).format(size=size))
        if color and details.colors and color not in details.colors:
            raise InvalidSelectionError(str(_("Unknown color: {color}.")).format(color=color))
        return variant or None, size or None, color or None

    def _create_registration(
        self,
        event: Event,
        *,
        form_data: dict[str, t.Any],
        amount_due: Decimal,
        payment_receipt: str | None,
        now: datetime,
    ) -> Registration:
        registration = Registration(
            participant=self.participant,
            event=event,
            ticket_id=ticket_ids.generate_ticket_id(),
            form_data=form_data,
            registration_date=now,
            payment_amount=amount_due,
            payment_receipt=payment_receipt,
            payment_status=(
                Registration.PaymentStatus.PENDING if amount_due > 0 else Registration.PaymentStatus.COMPLETED
            ),
        )
        try:
            with transaction.atomic():
                registration.save()
        except (IntegrityError, ValidationError) as e:
            if Registration.objects.active().filter(event=event, participant=self.participant).exists():
                raise AlreadyRegisteredError() from e
            raise
        return registration

    @staticmethod
    def _message(event: Event, is_paid: bool) -> str:
        if is_paid:
            return str(
                _(
                    "Registration submitted! Your payment is under review. "
                    "You will receive your ticket once the organizer approves it."
                )
            )
        if event.is_merchandise:
            return str(_("Purchase successful! Your ticket has been sent to your email."))
        return str(_("Registration successful! Your ticket has been sent to your email."))


def register(event_id: UUID | str, participant: FelicityUser, **kwargs: t.Any) -> RegistrationOutcome:
    """Shortcut for ``RegistrationWorkflow(...).register(...)``."""
    return RegistrationWorkflow(event_id=event_id, participant=participant).register(**kwargs)
