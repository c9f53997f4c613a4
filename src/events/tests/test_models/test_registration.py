import pytest
from django.core.exceptions import ValidationError

from accounts.models import FelicityUser
from events.models import Event, Registration

pytestmark = pytest.mark.django_db


def test_one_active_registration_per_participant(free_event: Event, participant: FelicityUser) -> None:
    Registration.objects.create(participant=participant, event=free_event, ticket_id="AAAAAAAAAAAA")
    with pytest.raises(ValidationError):
        Registration.objects.create(participant=participant, event=free_event, ticket_id="BBBBBBBBBBBB")


def test_cancelled_registration_does_not_block(free_event: Event, participant: FelicityUser) -> None:
    Registration.objects.create(
        participant=participant, event=free_event, ticket_id="AAAAAAAAAAAA", status=Registration.Status.CANCELLED
    )
    Registration.objects.create(participant=participant, event=free_event, ticket_id="BBBBBBBBBBBB")
    assert Registration.objects.active().count() == 1


def test_ticket_ids_are_unique(free_event: Event, participant: FelicityUser, other_participant: FelicityUser) -> None:
    Registration.objects.create(participant=participant, event=free_event, ticket_id="AAAAAAAAAAAA")
    with pytest.raises(ValidationError):
        Registration.objects.create(participant=other_participant, event=free_event, ticket_id="AAAAAAAAAAAA")


def test_quantity_defaults_to_one(free_event: Event, participant: FelicityUser) -> None:
    registration = Registration(participant=participant, event=free_event, form_data={"Team name": "x"})
    assert registration.quantity == 1
    registration.form_data = {"quantity": 3}
    assert registration.quantity == 3


def test_has_ticket_follows_payment(free_event: Event, participant: FelicityUser) -> None:
    registration = Registration(participant=participant, event=free_event)
    assert not registration.has_ticket
    registration.payment_status = Registration.PaymentStatus.COMPLETED
    assert registration.has_ticket
