import typing as t
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from common.models import TimeStampedModel

from .event import Event


class RegistrationQuerySet(models.QuerySet["Registration"]):
    def active(self) -> t.Self:
        """Registrations that still hold a slot."""
        return self.exclude(status=Registration.Status.CANCELLED)

    def full(self) -> t.Self:
        """Prefetch the event, its organizer and the participant."""
        return self.select_related("event", "event__organizer", "participant")


class RegistrationManager(models.Manager["Registration"]):
    def get_queryset(self) -> RegistrationQuerySet:
        """Get the base queryset."""
        return RegistrationQuerySet(self.model, using=self._db)

    def active(self) -> RegistrationQuerySet:
        """Registrations that still hold a slot."""
        return self.get_queryset().active()

    def full(self) -> RegistrationQuerySet:
        """Prefetch related objects."""
        return self.get_queryset().full()


class Registration(TimeStampedModel):
    class Status(models.TextChoices):
        REGISTERED = "registered", "Registered"
        ATTENDED = "attended", "Attended"
        CANCELLED = "cancelled", "Cancelled"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    participant = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="registrations")
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="registrations")
    ticket_id = models.CharField(max_length=12, unique=True, editable=False)
    form_data = models.JSONField(default=dict, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.REGISTERED, db_index=True)
    registration_date = models.DateTimeField(default=timezone.now)
    attendance_date = models.DateTimeField(null=True, blank=True)
    checked_in_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    cancellation_date = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=500, blank=True)

    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    payment_amount = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(Decimal("0"))]
    )
    payment_receipt = models.TextField(null=True, blank=True, help_text="Receipt URL or base64-encoded image.")
    payment_reviewed_at = models.DateTimeField(null=True, blank=True)
    payment_reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    payment_rejection_comment = models.TextField(blank=True)

    qr_code = models.TextField(null=True, blank=True, help_text="Rendered ticket as a PNG data URL.")
    email_sent = models.BooleanField(default=False)
    email_sent_at = models.DateTimeField(null=True, blank=True)

    objects = RegistrationManager()

    class Meta:
        ordering = ["-registration_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["participant", "event"],
                condition=~Q(status="cancelled"),
                name="unique_active_registration_per_participant",
                violation_error_message="You are already registered for this event.",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.ticket_id} ({self.event_id})"

    @property
    def quantity(self) -> int:
        """Units purchased; attendance registrations count as one."""
        return int((self.form_data or {}).get("quantity", 1))

    @property
    def has_ticket(self) -> bool:
        """Whether the ticket has been issued."""
        return self.payment_status == self.PaymentStatus.COMPLETED
