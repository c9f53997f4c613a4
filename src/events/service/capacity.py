"""Registration-limit and stock accounting.

All counter writes are single conditional UPDATEs, and every caller holds the event row lock
taken by ``lock_event``. Registering, approving and cancelling therefore share one
serialization domain per event.
"""

from datetime import datetime
from uuid import UUID

import structlog
from django.db.models import F
from django.utils import timezone

from events.exceptions import (
    DeadlinePassedError,
    EventNotFoundError,
    FullCapacityError,
    InsufficientStockError,
    InvalidQuantityError,
    NotPublishedError,
    OutOfStockError,
    PurchaseLimitExceededError,
)
from events.models import Event

logger = structlog.get_logger(__name__)


def lock_event(event_id: UUID | str) -> Event:
    """Fetch the event and lock its row until the surrounding transaction ends.

    Must be called inside ``transaction.atomic``.
    """
    try:
        return Event.objects.select_for_update().get(pk=event_id)
    except Event.DoesNotExist as e:
        raise EventNotFoundError() from e


def check_registration_open(event: Event, now: datetime | None = None) -> None:
    """Raise if the event is not accepting registrations right now."""
    now = now or timezone.now()
    if not event.is_published:
        raise NotPublishedError()
    if now > event.registration_deadline:
        raise DeadlinePassedError()
    if event.registration_limit is not None and event.current_registrations >= event.registration_limit:
        raise FullCapacityError()


def check_stock(event: Event, requested_qty: int) -> None:
    """Raise if ``requested_qty`` units cannot be sold to one participant."""
    if requested_qty < 1:
        raise InvalidQuantityError()
    stock = event.stock_quantity or 0
    if stock <= 0:
        raise OutOfStockError()
    if event.purchase_limit_per_participant is not None and requested_qty > event.purchase_limit_per_participant:
        raise PurchaseLimitExceededError(limit=event.purchase_limit_per_participant)
    if requested_qty > stock:
        raise InsufficientStockError(available=stock)


def reserve(event: Event) -> None:
    """Take one registration slot.

    Raises:
        FullCapacityError: If the limit has been reached in the meantime.
    """
    queryset = Event.objects.filter(pk=event.pk)
    if event.registration_limit is not None:
        queryset = queryset.filter(current_registrations__lt=F("registration_limit"))
    if not queryset.update(current_registrations=F("current_registrations") + 1):
        raise FullCapacityError()
    event.refresh_from_db(fields=["current_registrations"])


def release(event: Event) -> None:
    """Give back one registration slot. The counter never drops below zero."""
    released = Event.objects.filter(pk=event.pk, current_registrations__gt=0).update(
        current_registrations=F("current_registrations") - 1
    )
    if not released:
        logger.warning("release_on_empty_counter", event_id=str(event.pk))
    event.refresh_from_db(fields=["current_registrations"])


def consume_stock(event: Event, quantity: int) -> None:
    """Take ``quantity`` units out of stock.

    Raises:
        InvalidQuantityError: If the quantity is below one.
        OutOfStockError: If nothing is left.
        InsufficientStockError: If fewer than ``quantity`` units are left.
    """
    if quantity < 1:
        raise InvalidQuantityError()
    consumed = Event.objects.filter(pk=event.pk, stock_quantity__gte=quantity).update(
        stock_quantity=F("stock_quantity") - quantity
    )
    event.refresh_from_db(fields=["stock_quantity"])
    if not consumed:
        available = event.stock_quantity or 0
        if available <= 0:
            raise OutOfStockError()
        raise InsufficientStockError(available=available)


def restock(event: Event, quantity: int) -> None:
    """Return ``quantity`` units to stock."""
    Event.objects.filter(pk=event.pk, stock_quantity__isnull=False).update(
        stock_quantity=F("stock_quantity") + quantity
    )
    event.refresh_from_db(fields=["stock_quantity"])
