import typing as t
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxLengthValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q

from common.models import TimeStampedModel

from .event_payloads import normalize_custom_form, normalize_item_details


class EventQuerySet(models.QuerySet["Event"]):
    def published(self) -> t.Self:
        """Events visible to participants."""
        return self.filter(is_published=True)

    def with_organizer(self) -> t.Self:
        """Prefetch the organizer."""
        return self.select_related("organizer")

    def for_organizer(self, user: t.Any) -> t.Self:
        """Events the user may manage. Admins manage everything."""
        if getattr(user, "is_admin_role", False):
            return self.all()
        return self.filter(organizer=user)


class EventManager(models.Manager["Event"]):
    def get_queryset(self) -> EventQuerySet:
        """Get the base queryset."""
        return EventQuerySet(self.model, using=self._db)

    def published(self) -> EventQuerySet:
        """Events visible to participants."""
        return self.get_queryset().published()

    def with_organizer(self) -> EventQuerySet:
        """Prefetch the organizer."""
        return self.get_queryset().with_organizer()

    def for_organizer(self, user: t.Any) -> EventQuerySet:
        """Events the user may manage."""
        return self.get_queryset().for_organizer(user)


class Event(TimeStampedModel):
    class EventType(models.TextChoices):
        NORMAL = "normal", "Normal"
        MERCHANDISE = "merchandise", "Merchandise"

    class Category(models.TextChoices):
        TECHNICAL = "technical", "Technical"
        CULTURAL = "cultural", "Cultural"
        SPORTS = "sports", "Sports"
        LITERARY = "literary", "Literary"
        ART = "art", "Art"
        MUSIC = "music", "Music"
        DANCE = "dance", "Dance"
        PHOTOGRAPHY = "photography", "Photography"
        GAMING = "gaming", "Gaming"
        OTHER = "other", "Other"

    class Eligibility(models.TextChoices):
        ALL = "all", "All"
        IIIT = "iiit", "IIIT"
        NON_IIIT = "non_iiit", "Non-IIIT"

    class LifecycleStatus(models.TextChoices):
        DRAFT = "draft", "Draft"
        PUBLISHED = "published", "Published"
        ONGOING = "ongoing", "Ongoing"
        COMPLETED = "completed", "Completed"

    name = models.CharField(max_length=200, db_index=True)
    description = models.TextField(validators=[MaxLengthValidator(2000)])
    event_type = models.CharField(max_length=20, choices=EventType.choices, default=EventType.NORMAL, db_index=True)
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.OTHER, db_index=True)
    eligibility = models.CharField(max_length=20, choices=Eligibility.choices, default=Eligibility.ALL)
    venue = models.CharField(max_length=200, blank=True)
    image_url = models.URLField(max_length=500, blank=True)
    tags = models.JSONField(default=list, blank=True)

    start_date = models.DateTimeField(db_index=True)
    end_date = models.DateTimeField()
    registration_deadline = models.DateTimeField()

    registration_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(Decimal("0"))]
    )
    registration_limit = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)], help_text="Leave empty for unlimited registrations."
    )
    current_registrations = models.PositiveIntegerField(default=0, editable=False)

    # Normal events
    custom_form = models.JSONField(default=list, blank=True)

    # Merchandise events
    item_details = models.JSONField(null=True, blank=True)
    stock_quantity = models.PositiveIntegerField(null=True, blank=True)
    purchase_limit_per_participant = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)]
    )

    is_published = models.BooleanField(default=False, db_index=True)
    organizer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="organized_events")

    objects = EventManager()

    class Meta:
        ordering = ["start_date"]
        constraints = [
            models.CheckConstraint(condition=Q(end_date__gte=F("start_date")), name="event_end_after_start"),
            models.CheckConstraint(
                condition=Q(registration_deadline__lte=F("start_date")), name="event_deadline_before_start"
            ),
            models.CheckConstraint(condition=Q(registration_fee__gte=0), name="event_fee_non_negative"),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_merchandise(self) -> bool:
        """Whether this event sells items."""
        return self.event_type == self.EventType.MERCHANDISE

    @property
    def requires_payment(self) -> bool:
        """Whether registering costs anything."""
        return self.registration_fee > 0

    @property
    def remaining_capacity(self) -> int | None:
        """Free slots, None when unlimited."""
        if self.registration_limit is None:
            return None
        return max(self.registration_limit - self.current_registrations, 0)

    def clean(self) -> None:
        """Validate date ordering and the type-specific payload."""
        super().clean()
        errors: dict[str, list[str]] = {}
        if self.start_date and self.end_date and self.end_date < self.start_date:
            errors.setdefault("end_date", []).append("End date must be on or after the start date.")
        if self.start_date and self.registration_deadline and self.registration_deadline > self.start_date:
            errors.setdefault("registration_deadline", []).append(
                "Registration deadline must be on or before the start date."
            )
        if self.registration_limit is not None and self.registration_limit < self.current_registrations:
            errors.setdefault("registration_limit", []).append(
                f"Registration limit cannot be lower than the {self.current_registrations} existing registrations."
            )
        validate_payload = TYPE_PAYLOAD_VALIDATORS.get(self.event_type)
        if validate_payload is not None:
            for field, messages in validate_payload(self).items():
                errors.setdefault(field, []).extend(messages)
        if errors:
            raise ValidationError(errors)


def _validate_normal_payload(event: Event) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    try:
        event.custom_form = normalize_custom_form(event.custom_form)
    except ValueError as e:
        errors["custom_form"] = [str(e)]
    for field in ("item_details", "stock_quantity", "purchase_limit_per_participant"):
        if getattr(event, field) is not None:
            errors[field] = ["Only merchandise events can set this field."]
    return errors


def _validate_merchandise_payload(event: Event) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    if event.item_details is None:
        errors["item_details"] = ["Merchandise events require item details."]
    else:
        try:
            event.item_details = normalize_item_details(event.item_details)
        except ValueError as e:
            errors["item_details"] = [str(e)]
    if event.stock_quantity is None:
        errors["stock_quantity"] = ["Merchandise events require a stock quantity."]
    if event.purchase_limit_per_participant is None:
        errors["purchase_limit_per_participant"] = ["Merchandise events require a purchase limit per participant."]
    if event.custom_form:
        errors["custom_form"] = ["Merchandise events cannot define a custom form."]
    return errors


TYPE_PAYLOAD_VALIDATORS: dict[str, t.Callable[[Event], dict[str, list[str]]]] = {
    Event.EventType.NORMAL: _validate_normal_payload,
    Event.EventType.MERCHANDISE: _validate_merchandise_payload,
}
