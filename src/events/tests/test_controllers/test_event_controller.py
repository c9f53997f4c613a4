import typing as t
from datetime import timedelta
from unittest.mock import MagicMock, patch

import orjson
import pytest
from django.test.client import Client
from django.urls import reverse
from django.utils import timezone

from accounts.models import FelicityUser
from events.models import Event, Registration

pytestmark = pytest.mark.django_db


def _create_payload(**overrides: t.Any) -> dict[str, t.Any]:
    start = timezone.now() + timedelta(days=14)
    payload: dict[str, t.Any] = {
        "name": "Robotics Workshop",
        "description": "Build a line follower in an afternoon.",
        "category": "technical",
        "venue": "H-105",
        "tags": ["robots", "hardware"],
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=4)).isoformat(),
        "registration_deadline": (start - timedelta(days=1)).isoformat(),
        "registration_limit": 40,
        "custom_form": [{"label": "Roll number", "field_type": "text", "required": True}],
    }
    payload.update(overrides)
    return payload


def _create(client: Client, payload: dict[str, t.Any]) -> t.Any:
    return client.post(reverse("api:create_event"), data=orjson.dumps(payload), content_type="application/json")


class TestCreateEvent:
    def test_organizer_creates_draft(self, organizer_client: Client, organizer: FelicityUser) -> None:
        response = _create(organizer_client, _create_payload())

        assert response.status_code == 201, response.content
        data = response.json()
        assert data["lifecycle_status"] == "draft"
        assert data["organizer"]["id"] == str(organizer.pk)
        assert data["organizer"]["display_name"] == "Cyclorama"
        assert data["custom_form"][0]["label"] == "Roll number"
        assert data["current_registrations"] == 0
        assert Event.objects.get(pk=data["id"]).organizer == organizer

    def test_merchandise_event(self, organizer_client: Client) -> None:
        payload = _create_payload(
            event_type="merchandise",
            custom_form=[],
            registration_fee="450.00",
            item_details={"sizes": ["S", "M"], "colors": ["Navy"]},
            stock_quantity=100,
            purchase_limit_per_participant=2,
        )
        response = _create(organizer_client, payload)

        assert response.status_code == 201, response.content
        data = response.json()
        assert data["event_type"] == "merchandise"
        assert data["item_details"]["sizes"] == ["S", "M"]
        assert data["stock_quantity"] == 100

    def test_merchandise_without_stock_is_rejected(self, organizer_client: Client) -> None:
        payload = _create_payload(event_type="merchandise", custom_form=[], item_details={"sizes": ["M"]})
        response = _create(organizer_client, payload)

        assert response.status_code == 400
        assert "stock_quantity" in response.json()["errors"]

    def test_participant_is_forbidden(self, participant_client: Client) -> None:
        response = _create(participant_client, _create_payload())
        assert response.status_code == 403

    def test_anonymous_is_unauthorized(self, client: Client) -> None:
        response = _create(client, _create_payload())
        assert response.status_code == 401

    @patch("events.tasks.notify_organizer_of_publish")
    def test_publishing_on_create_alerts_webhook(
        self, mock_task: MagicMock, organizer_client: Client, django_capture_on_commit_callbacks: t.Any
    ) -> None:
        with django_capture_on_commit_callbacks(execute=True):
            response = _create(organizer_client, _create_payload(is_published=True))
        assert response.status_code == 201
        mock_task.delay.assert_called_once_with(event_id=response.json()["id"])


class TestListEvents:
    def test_public_list_hides_drafts_and_past_events(
        self, client: Client, free_event: Event, event_factory: t.Callable[..., Event]
    ) -> None:
        event_factory(name="Secret", is_published=False)
        past_start = timezone.now() - timedelta(days=30)
        event_factory(name="Last year", start_date=past_start)

        response = client.get(reverse("api:list_public_events"))

        assert response.status_code == 200
        names = [event["name"] for event in response.json()["results"]]
        assert names == [free_event.name]

    def test_public_list_includes_past_on_request(
        self, client: Client, free_event: Event, event_factory: t.Callable[..., Event]
    ) -> None:
        event_factory(name="Last year", start_date=timezone.now() - timedelta(days=30))
        response = client.get(reverse("api:list_public_events"), {"include_past": True})
        assert response.json()["count"] == 2

    def test_filter_and_search(
        self, client: Client, free_event: Event, merchandise_event: Event, paid_event: Event
    ) -> None:
        response = client.get(reverse("api:list_public_events"), {"event_type": "merchandise"})
        assert [e["id"] for e in response.json()["results"]] == [str(merchandise_event.pk)]

        response = client.get(reverse("api:list_public_events"), {"search": "dance"})
        assert [e["id"] for e in response.json()["results"]] == [str(paid_event.pk)]

    def test_my_events(
        self,
        organizer_client: Client,
        other_organizer_client: Client,
        free_event: Event,
        event_factory: t.Callable[..., Event],
    ) -> None:
        draft = event_factory(name="Draft", is_published=False)

        response = organizer_client.get(reverse("api:list_my_events"))
        assert response.status_code == 200
        assert {e["id"] for e in response.json()["results"]} == {str(free_event.pk), str(draft.pk)}

        response = other_organizer_client.get(reverse("api:list_my_events"))
        assert response.json()["count"] == 0

    def test_my_events_forbidden_for_participants(self, participant_client: Client) -> None:
        assert participant_client.get(reverse("api:list_my_events")).status_code == 403


class TestGetEvent:
    def test_published_event_for_anonymous(self, client: Client, free_event: Event) -> None:
        response = client.get(reverse("api:get_event", kwargs={"event_id": free_event.pk}))
        assert response.status_code == 200
        data = response.json()
        assert data["lifecycle_status"] == "published"
        assert data["remaining_capacity"] == 2
        assert len(data["custom_form"]) == 2

    def test_draft_is_404_for_others(
        self, client: Client, participant_client: Client, event_factory: t.Callable[..., Event]
    ) -> None:
        draft = event_factory(is_published=False)
        url = reverse("api:get_event", kwargs={"event_id": draft.pk})
        assert client.get(url).status_code == 404
        assert participant_client.get(url).status_code == 404

    def test_draft_visible_to_its_organizer(
        self, organizer_client: Client, event_factory: t.Callable[..., Event]
    ) -> None:
        draft = event_factory(is_published=False)
        response = organizer_client.get(reverse("api:get_event", kwargs={"event_id": draft.pk}))
        assert response.status_code == 200
        assert response.json()["lifecycle_status"] == "draft"


class TestUpdateEvent:
    def test_published_event_allows_description(self, organizer_client: Client, free_event: Event) -> None:
        response = organizer_client.put(
            reverse("api:update_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({"description": "Now with pizza."}),
            content_type="application/json",
        )
        assert response.status_code == 200, response.content
        data = response.json()
        assert data["event"]["description"] == "Now with pizza."
        assert data["just_published"] is False

    def test_published_event_rejects_name(self, organizer_client: Client, free_event: Event) -> None:
        response = organizer_client.put(
            reverse("api:update_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({"name": "Renamed", "description": "Also this"}),
            content_type="application/json",
        )
        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "edit_not_allowed"
        assert data["rejected_fields"] == ["name"]
        assert data["lifecycle_status"] == "published"
        free_event.refresh_from_db()
        assert free_event.description != "Also this"

    def test_form_locked_after_registration(
        self,
        organizer_client: Client,
        event_factory: t.Callable[..., Event],
        participant: FelicityUser,
    ) -> None:
        draft = event_factory(is_published=False, custom_form=[{"label": "Team"}])
        Registration.objects.create(participant=participant, event=draft, ticket_id="AAAAAAAAAAAA")
        response = organizer_client.put(
            reverse("api:update_event", kwargs={"event_id": draft.pk}),
            data=orjson.dumps({"custom_form": [{"label": "Team", "required": True}]}),
            content_type="application/json",
        )
        assert response.status_code == 409
        assert response.json()["code"] == "form_locked"

    def test_draft_publish_via_edit(self, organizer_client: Client, event_factory: t.Callable[..., Event]) -> None:
        draft = event_factory(is_published=False)
        with patch("events.service.lifecycle.announce_publication"):
            response = organizer_client.put(
                reverse("api:update_event", kwargs={"event_id": draft.pk}),
                data=orjson.dumps({"is_published": True, "venue": "Amphitheatre"}),
                content_type="application/json",
            )
        assert response.status_code == 200
        data = response.json()
        assert data["just_published"] is True
        assert data["event"]["venue"] == "Amphitheatre"

    def test_other_organizer_forbidden(self, other_organizer_client: Client, free_event: Event) -> None:
        response = other_organizer_client.put(
            reverse("api:update_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({"description": "Hijacked"}),
            content_type="application/json",
        )
        assert response.status_code == 403
        assert response.json()["code"] == "not_event_organizer"


class TestPublishAndDelete:
    def test_toggle_publish(self, organizer_client: Client, free_event: Event) -> None:
        response = organizer_client.put(reverse("api:toggle_publish", kwargs={"event_id": free_event.pk}))
        assert response.status_code == 200
        assert response.json()["event"]["is_published"] is False

    def test_delete(self, organizer_client: Client, free_event: Event) -> None:
        response = organizer_client.delete(reverse("api:delete_event", kwargs={"event_id": free_event.pk}))
        assert response.status_code == 204
        assert not Event.objects.filter(pk=free_event.pk).exists()

    def test_delete_with_registrations(
        self, organizer_client: Client, free_event: Event, participant: FelicityUser
    ) -> None:
        Registration.objects.create(participant=participant, event=free_event, ticket_id="AAAAAAAAAAAA")
        response = organizer_client.delete(reverse("api:delete_event", kwargs={"event_id": free_event.pk}))
        assert response.status_code == 409
        assert Event.objects.filter(pk=free_event.pk).exists()


class TestRegisterEndpoint:
    def test_free_registration_returns_ticket(self, participant_client: Client, free_event: Event) -> None:
        response = participant_client.post(
            reverse("api:register_for_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({"form_data": {"Team name": "Owls"}}),
            content_type="application/json",
        )
        assert response.status_code == 201, response.content
        data = response.json()
        assert data["is_paid"] is False
        assert data["ticket_id"] == data["registration"]["ticket_id"]
        assert data["registration"]["event"]["id"] == str(free_event.pk)

    def test_paid_registration_has_no_ticket_yet(self, participant_client: Client, paid_event: Event) -> None:
        response = participant_client.post(
            reverse("api:register_for_event", kwargs={"event_id": paid_event.pk}),
            data=orjson.dumps({"payment_receipt": "https://receipts.test/1.png"}),
            content_type="application/json",
        )
        assert response.status_code == 201
        data = response.json()
        assert data["is_paid"] is True
        assert data["ticket_id"] is None
        assert data["registration"]["payment_status"] == "pending"

    def test_missing_form_field(self, participant_client: Client, free_event: Event) -> None:
        response = participant_client.post(
            reverse("api:register_for_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({"form_data": {}}),
            content_type="application/json",
        )
        assert response.status_code == 400
        assert response.json()["missing_fields"] == ["Team name"]

    def test_invalid_form_answer(self, participant_client: Client, free_event: Event) -> None:
        response = participant_client.post(
            reverse("api:register_for_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({"form_data": {"Team name": "Rockets", "T-shirt size": "XXL"}}),
            content_type="application/json",
        )
        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "invalid_form_answer"
        assert data["invalid_fields"] == ["T-shirt size"]

    def test_merchandise_purchase_reports_stock(self, participant_client: Client, merchandise_event: Event) -> None:
        response = participant_client.post(
            reverse("api:register_for_event", kwargs={"event_id": merchandise_event.pk}),
            data=orjson.dumps({"quantity": 2, "selected_size": "L"}),
            content_type="application/json",
        )
        assert response.status_code == 201
        assert response.json()["stock_remaining"] == 3

    def test_purchase_limit_is_conflict(self, participant_client: Client, merchandise_event: Event) -> None:
        response = participant_client.post(
            reverse("api:register_for_event", kwargs={"event_id": merchandise_event.pk}),
            data=orjson.dumps({"quantity": 4}),
            content_type="application/json",
        )
        assert response.status_code == 409
        assert response.json()["code"] == "purchase_limit_exceeded"

    def test_organizers_cannot_register(self, organizer_client: Client, free_event: Event) -> None:
        response = organizer_client.post(
            reverse("api:register_for_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({"form_data": {"Team name": "Staff"}}),
            content_type="application/json",
        )
        assert response.status_code == 403

    def test_unknown_event(self, participant_client: Client) -> None:
        response = participant_client.post(
            reverse("api:register_for_event", kwargs={"event_id": "7d3e1c1e-0000-4000-8000-000000000000"}),
            data=orjson.dumps({}),
            content_type="application/json",
        )
        assert response.status_code == 404
