import typing as t
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import QuerySet

from accounts.models import FelicityUser
from events.exceptions import EventDeletionNotAllowedError, EventNotFoundError, RoleNotAllowedError
from events.models import Event, Registration

from . import can_manage_event, capacity, ensure_can_manage_event
from .lifecycle import announce_publication

logger = structlog.get_logger(__name__)

EVENT_CREATOR_ROLES = frozenset({FelicityUser.Role.ORGANIZER, FelicityUser.Role.ADMIN})


@transaction.atomic
def create_event(organizer: FelicityUser, payload: dict[str, t.Any]) -> Event:
    """Create an event owned by ``organizer``. Events start as drafts unless published right away.

    Raises:
        RoleNotAllowedError: If the user is not an organizer or admin.
        django.core.exceptions.ValidationError: If the event is invalid.
    """
    if organizer.role not in EVENT_CREATOR_ROLES and not organizer.is_superuser:
        raise RoleNotAllowedError()
    data = {key: value for key, value in payload.items() if key not in ("organizer", "current_registrations")}
    event = Event(organizer=organizer, **data)
    event.save()
    if event.is_published:
        announce_publication(event)
    logger.info("event_created", event_id=str(event.pk), event_type=event.event_type, published=event.is_published)
    return event


def get_event_for_viewer(event_id: UUID | str, user: t.Any) -> Event:
    """Published events are public; drafts are only visible to whoever manages them."""
    event = Event.objects.with_organizer().filter(pk=event_id).first()
    if event is None or not (event.is_published or can_manage_event(event, user)):
        raise EventNotFoundError()
    return event


def get_managed_event(event_id: UUID | str, user: t.Any) -> Event:
    """Fetch an event the user manages."""
    event = Event.objects.with_organizer().filter(pk=event_id).first()
    if event is None:
        raise EventNotFoundError()
    ensure_can_manage_event(event, user)
    return event


def delete_event(event_id: UUID | str, actor: t.Any) -> None:
    """Delete an event that nobody holds an active registration for.

    Raises:
        EventNotFoundError: If the event does not exist.
        NotEventOrganizerError: If the actor may not manage the event.
        EventDeletionNotAllowedError: If active registrations exist.
    """
    with transaction.atomic():
        event = capacity.lock_event(event_id)
        ensure_can_manage_event(event, actor)
        if event.registrations.active().exists():
            raise EventDeletionNotAllowedError()
        event.registrations.all().delete()
        event.delete()
    logger.info("event_deleted", event_id=str(event_id))


def published_events() -> QuerySet[Event]:
    """Events participants can browse."""
    return Event.objects.published().with_organizer()


def organizer_events(user: t.Any) -> QuerySet[Event]:
    """Events the user manages, drafts included."""
    return Event.objects.for_organizer(user).with_organizer().order_by("-created_at")


def participant_registrations(participant: FelicityUser) -> QuerySet[Registration]:
    """The participant's registrations, newest first."""
    return Registration.objects.full().filter(participant=participant)


def event_registrations(event_id: UUID | str, user: t.Any) -> QuerySet[Registration]:
    """Registrations of an event, for its organizer or an admin."""
    event = get_managed_event(event_id, user)
    return Registration.objects.full().filter(event=event)
