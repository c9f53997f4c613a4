from datetime import datetime

from django.db.models import Q
from django.utils import timezone
from ninja import Field, FilterSchema

from events.models import Event, Registration


class EventFilterSchema(FilterSchema):
    event_type: Event.EventType | None = None
    category: Event.Category | None = None
    eligibility: Event.Eligibility | None = None
    starts_after: datetime | None = Field(None, q="start_date__gte")  # type: ignore[call-overload]
    starts_before: datetime | None = Field(None, q="start_date__lte")  # type: ignore[call-overload]
    include_past: bool = False

    def filter_include_past(self, include_past: bool) -> Q:
        """Hide finished events unless asked for."""
        if include_past:
            return Q()
        return Q(end_date__gte=timezone.now())


class MyRegistrationFilterSchema(FilterSchema):
    status: Registration.Status | None = None
    upcoming: bool = False
    past: bool = False

    def filter_upcoming(self, upcoming: bool) -> Q:
        """Registrations for events that have not started."""
        if upcoming:
            return Q(event__start_date__gte=timezone.now())
        return Q()

    def filter_past(self, past: bool) -> Q:
        """Registrations for events that are over."""
        if past:
            return Q(event__end_date__lt=timezone.now())
        return Q()


class RegistrationFilterSchema(FilterSchema):
    status: Registration.Status | None = None
    payment_status: Registration.PaymentStatus | None = None
