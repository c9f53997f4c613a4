from unittest.mock import patch

import pytest

from accounts.models import FelicityUser
from events.models import Event, Registration
from events.service import ticket_ids

pytestmark = pytest.mark.django_db


def test_new_ticket_id_format() -> None:
    ticket_id = ticket_ids.new_ticket_id()
    assert len(ticket_id) == ticket_ids.TICKET_ID_LENGTH
    assert ticket_id == ticket_id.upper()
    int(ticket_id, 16)


def test_normalize_ticket_id() -> None:
    assert ticket_ids.normalize_ticket_id("  9f3a0c71b2e4\n") == "9F3A0C71B2E4"


def test_collision_is_retried(free_event: Event, participant: FelicityUser) -> None:
    Registration.objects.create(participant=participant, event=free_event, ticket_id="AAAAAAAAAAAA")
    with patch.object(ticket_ids, "new_ticket_id", side_effect=["AAAAAAAAAAAA", "BBBBBBBBBBBB"]):
        assert ticket_ids.generate_ticket_id() == "BBBBBBBBBBBB"


def test_gives_up_after_max_attempts(free_event: Event, participant: FelicityUser) -> None:
    Registration.objects.create(participant=participant, event=free_event, ticket_id="AAAAAAAAAAAA")
    with (
        patch.object(ticket_ids, "new_ticket_id", return_value="AAAAAAAAAAAA") as mock_new,
        pytest.raises(ticket_ids.TicketIdGenerationError),
    ):
        ticket_ids.generate_ticket_id(max_attempts=3)
    assert mock_new.call_count == 3
