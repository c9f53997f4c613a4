import secrets
import string
import typing as t
from datetime import datetime, timedelta
from decimal import Decimal

import faker
import pytest
from django.core.cache import cache
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken
from pytest import MonkeyPatch

from accounts.models import FelicityUser
from events.models import Event
from felicity import celery_app


@pytest.fixture(autouse=True)
def increase_rate_limit(monkeypatch: MonkeyPatch) -> None:
    """Raise the throttle rates so tests are never rate limited."""
    for throttle in ("AnonDefaultThrottle", "UserDefaultThrottle", "WriteThrottle", "RegistrationThrottle"):
        monkeypatch.setattr(f"common.throttling.{throttle}.rate", "10000/min")


@pytest.fixture(autouse=True)
def clear_cache() -> None:
    """Throttle history lives in the cache."""
    cache.clear()


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    celery_app.conf.task_always_eager = True
    celery_app.conf.task_eager_propagates = True


@pytest.fixture(autouse=True)
def locmem_email(settings: t.Any) -> None:
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"


@pytest.fixture
def eager_task_retries(settings: t.Any) -> None:
    """Let eager tasks run their Celery retries in-process.

    With eager propagation on, ``self.retry()`` surfaces as a ``Retry`` exception at the caller
    instead of re-running the task.
    """
    settings.CELERY_TASK_EAGER_PROPAGATES = False
    celery_app.conf.task_eager_propagates = False


class FelicityUserFactory:
    """Factory for creating FelicityUser instances for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> FelicityUser:
        username = kwargs.pop("username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(8)))
        email = kwargs.pop("email", f"{username}@felicity.test")
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        return FelicityUser.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            **kwargs,
        )

    def __call__(self, **kwargs: t.Any) -> FelicityUser:
        return self.create_user(**kwargs)


@pytest.fixture
def felicity_user_factory() -> FelicityUserFactory:
    return FelicityUserFactory()


@pytest.fixture
def participant(felicity_user_factory: FelicityUserFactory) -> FelicityUser:
    return felicity_user_factory(
        username="participant",
        role=FelicityUser.Role.PARTICIPANT,
        participant_type=FelicityUser.ParticipantType.IIIT,
        college_name="IIIT Hyderabad",
    )


@pytest.fixture
def other_participant(felicity_user_factory: FelicityUserFactory) -> FelicityUser:
    return felicity_user_factory(
        username="other_participant",
        role=FelicityUser.Role.PARTICIPANT,
        participant_type=FelicityUser.ParticipantType.NON_IIIT,
    )


@pytest.fixture
def organizer(felicity_user_factory: FelicityUserFactory) -> FelicityUser:
    return felicity_user_factory(username="organizer", role=FelicityUser.Role.ORGANIZER, organizer_name="Cyclorama")


@pytest.fixture
def other_organizer(felicity_user_factory: FelicityUserFactory) -> FelicityUser:
    return felicity_user_factory(
        username="other_organizer", role=FelicityUser.Role.ORGANIZER, organizer_name="Music Club"
    )


@pytest.fixture
def admin_user(felicity_user_factory: FelicityUserFactory) -> FelicityUser:
    return felicity_user_factory(username="admin", role=FelicityUser.Role.ADMIN)


def _client_for(user: FelicityUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def participant_client(participant: FelicityUser) -> Client:
    """API client for a participant."""
    return _client_for(participant)


@pytest.fixture
def other_participant_client(other_participant: FelicityUser) -> Client:
    """API client for a second participant."""
    return _client_for(other_participant)


@pytest.fixture
def organizer_client(organizer: FelicityUser) -> Client:
    """API client for the organizer owning the test events."""
    return _client_for(organizer)


@pytest.fixture
def other_organizer_client(other_organizer: FelicityUser) -> Client:
    """API client for an organizer who owns none of the test events."""
    return _client_for(other_organizer)


@pytest.fixture
def admin_client_jwt(admin_user: FelicityUser) -> Client:
    """API client for an admin."""
    return _client_for(admin_user)


@pytest.fixture
def next_week() -> datetime:
    return timezone.now() + timedelta(days=7)


@pytest.fixture
def event_factory(organizer: FelicityUser, next_week: datetime) -> t.Callable[..., Event]:
    """Create events that are open for registration unless told otherwise."""

    def _create(**kwargs: t.Any) -> Event:
        start = kwargs.pop("start_date", next_week)
        defaults: dict[str, t.Any] = {
            "name": "Hackathon",
            "description": "Twenty-four hours of building things.",
            "organizer": organizer,
            "start_date": start,
            "end_date": start + timedelta(hours=24),
            "registration_deadline": start - timedelta(days=1),
            "is_published": True,
        }
        defaults.update(kwargs)
        return Event.objects.create(**defaults)

    return _create


@pytest.fixture
def free_event(event_factory: t.Callable[..., Event]) -> Event:
    return event_factory(
        registration_limit=2,
        custom_form=[
            {"label": "Team name", "field_type": "text", "required": True},
            {"label": "T-shirt size", "field_type": "select", "required": False, "options": ["S", "M", "L"]},
        ],
    )


@pytest.fixture
def paid_event(event_factory: t.Callable[..., Event]) -> Event:
    return event_factory(name="Dance Workshop", registration_fee=Decimal("200.00"), registration_limit=10)


@pytest.fixture
def merchandise_event(event_factory: t.Callable[..., Event]) -> Event:
    return event_factory(
        name="Felicity Hoodie",
        event_type=Event.EventType.MERCHANDISE,
        item_details={"sizes": ["S", "M", "L"], "colors": ["Black"], "variants": []},
        stock_quantity=5,
        purchase_limit_per_participant=3,
    )


@pytest.fixture
def paid_merchandise_event(event_factory: t.Callable[..., Event]) -> Event:
    return event_factory(
        name="Felicity Tee",
        event_type=Event.EventType.MERCHANDISE,
        registration_fee=Decimal("300.00"),
        item_details={"sizes": ["M", "L"], "colors": [], "variants": [{"name": "Classic", "price": None}]},
        stock_quantity=3,
        purchase_limit_per_participant=3,
    )
