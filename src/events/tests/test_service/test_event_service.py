import typing as t
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.utils import timezone

from accounts.models import FelicityUser
from events.exceptions import (
    EventDeletionNotAllowedError,
    EventNotFoundError,
    NotEventOrganizerError,
    RoleNotAllowedError,
)
from events.models import Event
from events.service import attendance_service, event_service, registration_service

pytestmark = pytest.mark.django_db


def _payload(**overrides: t.Any) -> dict[str, t.Any]:
    start = timezone.now() + timedelta(days=10)
    payload = {
        "name": "Battle of Bands",
        "description": "Open stage for college bands.",
        "category": Event.Category.MUSIC,
        "start_date": start,
        "end_date": start + timedelta(hours=5),
        "registration_deadline": start - timedelta(days=2),
    }
    payload.update(overrides)
    return payload


class TestCreateEvent:
    def test_creates_a_draft(self, organizer: FelicityUser) -> None:
        event = event_service.create_event(organizer, _payload())
        assert event.organizer == organizer
        assert event.is_published is False
        assert event.current_registrations == 0

    def test_client_cannot_set_organizer_or_counter(
        self, organizer: FelicityUser, other_organizer: FelicityUser
    ) -> None:
        event = event_service.create_event(
            organizer, _payload(organizer=other_organizer, current_registrations=50)
        )
        assert event.organizer == organizer
        assert event.current_registrations == 0

    def test_participants_cannot_create(self, participant: FelicityUser) -> None:
        with pytest.raises(RoleNotAllowedError):
            event_service.create_event(participant, _payload())

    def test_admin_can_create(self, admin_user: FelicityUser) -> None:
        assert event_service.create_event(admin_user, _payload()).organizer == admin_user

    def test_invalid_dates(self, organizer: FelicityUser) -> None:
        start = timezone.now() + timedelta(days=10)
        with pytest.raises(ValidationError):
            event_service.create_event(organizer, _payload(start_date=start, end_date=start - timedelta(hours=1)))

    @patch("events.service.event_service.announce_publication")
    def test_published_on_creation_is_announced(self, mock_announce: MagicMock, organizer: FelicityUser) -> None:
        event = event_service.create_event(organizer, _payload(is_published=True))
        mock_announce.assert_called_once_with(event)


class TestVisibility:
    def test_published_event_is_public(self, free_event: Event) -> None:
        assert event_service.get_event_for_viewer(free_event.pk, AnonymousUser()) == free_event

    def test_draft_hidden_from_others(
        self, event_factory: t.Callable[..., Event], participant: FelicityUser, other_organizer: FelicityUser
    ) -> None:
        draft = event_factory(is_published=False)
        for viewer in (AnonymousUser(), participant, other_organizer):
            with pytest.raises(EventNotFoundError):
                event_service.get_event_for_viewer(draft.pk, viewer)

    def test_draft_visible_to_organizer_and_admin(
        self, event_factory: t.Callable[..., Event], organizer: FelicityUser, admin_user: FelicityUser
    ) -> None:
        draft = event_factory(is_published=False)
        assert event_service.get_event_for_viewer(draft.pk, organizer) == draft
        assert event_service.get_event_for_viewer(draft.pk, admin_user) == draft

    def test_published_events_excludes_drafts(
        self, event_factory: t.Callable[..., Event], free_event: Event
    ) -> None:
        event_factory(is_published=False)
        assert list(event_service.published_events()) == [free_event]


class TestDeleteEvent:
    def test_delete_without_registrations(self, free_event: Event, organizer: FelicityUser) -> None:
        event_service.delete_event(free_event.pk, organizer)
        assert not Event.objects.filter(pk=free_event.pk).exists()

    def test_active_registrations_block_deletion(
        self, free_event: Event, organizer: FelicityUser, participant: FelicityUser
    ) -> None:
        registration_service.register(free_event.pk, participant, form_data={"Team name": "A"})
        with pytest.raises(EventDeletionNotAllowedError):
            event_service.delete_event(free_event.pk, organizer)

    def test_deletion_allowed_after_cancellation(
        self, free_event: Event, organizer: FelicityUser, participant: FelicityUser
    ) -> None:
        outcome = registration_service.register(free_event.pk, participant, form_data={"Team name": "A"})
        attendance_service.cancel_registration(outcome.registration.pk, participant)
        event_service.delete_event(free_event.pk, organizer)
        assert not Event.objects.filter(pk=free_event.pk).exists()

    def test_other_organizer_cannot_delete(self, free_event: Event, other_organizer: FelicityUser) -> None:
        with pytest.raises(NotEventOrganizerError):
            event_service.delete_event(free_event.pk, other_organizer)


def test_event_registrations_requires_manager(
    free_event: Event, participant: FelicityUser, organizer: FelicityUser, other_organizer: FelicityUser
) -> None:
    registration_service.register(free_event.pk, participant, form_data={"Team name": "A"})
    assert event_service.event_registrations(free_event.pk, organizer).count() == 1
    with pytest.raises(NotEventOrganizerError):
        event_service.event_registrations(free_event.pk, other_organizer)
