"""Event lifecycle classification and edit authorization.

Which fields an organizer may change depends on where the event is in its lifecycle:

- draft: everything, except that the registration form is frozen once anyone registered.
- published: description, registration deadline, registration limit and the publish flag.
- ongoing and completed: the publish flag, alone.

``organizer`` and ``current_registrations`` are never taken from the client.
"""

import typing as t
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from common.tasks import dispatch_on_commit
from events.exceptions import EditNotAllowedError, FormLockedError
from events.models import Event
from events.models.event_payloads import normalize_custom_form

from . import capacity, ensure_can_manage_event

logger = structlog.get_logger(__name__)

Status = Event.LifecycleStatus

SYSTEM_MANAGED_FIELDS = frozenset(
    {"id", "organizer", "organizer_id", "current_registrations", "created_at", "updated_at"}
)

EDITABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "event_type",
        "category",
        "eligibility",
        "venue",
        "image_url",
        "tags",
        "start_date",
        "end_date",
        "registration_deadline",
        "registration_fee",
        "registration_limit",
        "custom_form",
        "item_details",
        "stock_quantity",
        "purchase_limit_per_participant",
        "is_published",
    }
)

PUBLISHED_EDITABLE_FIELDS = frozenset({"description", "registration_deadline", "registration_limit", "is_published"})
STARTED_EDITABLE_FIELDS = frozenset({"is_published"})

MERCHANDISE_ONLY_FIELDS = ("item_details", "stock_quantity", "purchase_limit_per_participant")


@dataclass
class EditOutcome:
    event: Event
    just_published: bool
    applied_fields: list[str] = field(default_factory=list)


def classify(event: Event, now: datetime | None = None) -> Event.LifecycleStatus:
    """Place the event in its lifecycle bucket."""
    now = now or timezone.now()
    if not event.is_published:
        return Status.DRAFT
    if now < event.start_date:
        return Status.PUBLISHED
    if now <= event.end_date:
        return Status.ONGOING
    return Status.COMPLETED


def authorize_edit(event: Event, requested: t.Mapping[str, t.Any], now: datetime | None = None) -> dict[str, t.Any]:
    """Return the subset of ``requested`` that may be applied to ``event``.

    System-managed fields are dropped silently. Anything else the lifecycle status forbids
    rejects the whole request.

    Raises:
        EditNotAllowedError: If a requested field is not editable in the current status.
        FormLockedError: If a draft with registrations would get a different form.
    """
    changes = {key: value for key, value in requested.items() if key not in SYSTEM_MANAGED_FIELDS}
    status = classify(event, now)

    if status == Status.DRAFT:
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise EditNotAllowedError(rejected_fields=unknown, lifecycle_status=status)
        if _alters_custom_form(event, changes) and event.registrations.active().exists():
            raise FormLockedError()
        return changes

    allowed = PUBLISHED_EDITABLE_FIELDS if status == Status.PUBLISHED else STARTED_EDITABLE_FIELDS
    rejected = sorted(set(changes) - allowed)
    if rejected or (status != Status.PUBLISHED and not changes):
        raise EditNotAllowedError(rejected_fields=rejected, lifecycle_status=status)
    return changes


def _alters_custom_form(event: Event, changes: t.Mapping[str, t.Any]) -> bool:
    if "custom_form" in changes:
        try:
            return normalize_custom_form(changes["custom_form"]) != event.custom_form
        except ValueError:
            return True
    # switching to merchandise drops the form
    return changes.get("event_type", event.event_type) == Event.EventType.MERCHANDISE and bool(event.custom_form)


def _reset_variant_fields(event: Event, changes: dict[str, t.Any]) -> None:
    """Clear the payload of the type the event is switching away from."""
    if changes["event_type"] == Event.EventType.MERCHANDISE:
        changes.setdefault("custom_form", [])
    else:
        for name in MERCHANDISE_ONLY_FIELDS:
            changes.setdefault(name, None)


def announce_publication(event: Event) -> None:
    """Alert the organizer's webhook once the publishing transaction commits."""
    from events import tasks

    dispatch_on_commit(tasks.notify_organizer_of_publish, event_id=str(event.pk))


def _apply(event: Event, changes: dict[str, t.Any]) -> EditOutcome:
    was_published = event.is_published
    if "event_type" in changes and changes["event_type"] != event.event_type:
        _reset_variant_fields(event, changes)
    for name, value in changes.items():
        setattr(event, name, value)
    event.save()
    just_published = not was_published and event.is_published
    if just_published:
        announce_publication(event)
    return EditOutcome(event=event, just_published=just_published, applied_fields=sorted(changes))


def update_event(
    event_id: UUID | str, actor: t.Any, requested: t.Mapping[str, t.Any], now: datetime | None = None
) -> EditOutcome:
    """Apply an organizer edit, all or nothing.

    Raises:
        EventNotFoundError: If the event does not exist.
        NotEventOrganizerError: If the actor may not manage the event.
        EditNotAllowedError: See ``authorize_edit``.
        FormLockedError: See ``authorize_edit``.
        django.core.exceptions.ValidationError: If the edited event is invalid.
    """
    with transaction.atomic():
        event = capacity.lock_event(event_id)
        ensure_can_manage_event(event, actor)
        changes = authorize_edit(event, requested, now)
        outcome = _apply(event, changes)
    logger.info(
        "event_updated",
        event_id=str(event.pk),
        fields=outcome.applied_fields,
        just_published=outcome.just_published,
    )
    return outcome


def toggle_publish(event_id: UUID | str, actor: t.Any) -> EditOutcome:
    """Flip the publish flag, which every lifecycle status allows."""
    with transaction.atomic():
        event = capacity.lock_event(event_id)
        ensure_can_manage_event(event, actor)
        outcome = _apply(event, {"is_published": not event.is_published})
    logger.info("event_publish_toggled", event_id=str(event.pk), is_published=outcome.event.is_published)
    return outcome
