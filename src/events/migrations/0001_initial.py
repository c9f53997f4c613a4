import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(db_index=True, max_length=200)),
                ("description", models.TextField(validators=[django.core.validators.MaxLengthValidator(2000)])),
                (
                    "event_type",
                    models.CharField(
                        choices=[("normal", "Normal"), ("merchandise", "Merchandise")],
                        db_index=True,
                        default="normal",
                        max_length=20,
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("technical", "Technical"),
                            ("cultural", "Cultural"),
                            ("sports", "Sports"),
                            ("literary", "Literary"),
                            ("art", "Art"),
                            ("music", "Music"),
                            ("dance", "Dance"),
                            ("photography", "Photography"),
                            ("gaming", "Gaming"),
                            ("other", "Other"),
                        ],
                        db_index=True,
                        default="other",
                        max_length=20,
                    ),
                ),
                (
                    "eligibility",
                    models.CharField(
                        choices=[("all", "All"), ("iiit", "IIIT"), ("non_iiit", "Non-IIIT")],
                        default="all",
                        max_length=20,
                    ),
                ),
                ("venue", models.CharField(blank=True, max_length=200)),
                ("image_url", models.URLField(blank=True, max_length=500)),
                ("tags", models.JSONField(blank=True, default=list)),
                ("start_date", models.DateTimeField(db_index=True)),
                ("end_date", models.DateTimeField()),
                ("registration_deadline", models.DateTimeField()),
                (
                    "registration_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                (
                    "registration_limit",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Leave empty for unlimited registrations.",
                        null=True,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("current_registrations", models.PositiveIntegerField(default=0, editable=False)),
                ("custom_form", models.JSONField(blank=True, default=list)),
                ("item_details", models.JSONField(blank=True, null=True)),
                ("stock_quantity", models.PositiveIntegerField(blank=True, null=True)),
                (
                    "purchase_limit_per_participant",
                    models.PositiveIntegerField(
                        blank=True, null=True, validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                ("is_published", models.BooleanField(db_index=True, default=False)),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="organized_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["start_date"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("end_date__gte", models.F("start_date"))), name="event_end_after_start"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("registration_deadline__lte", models.F("start_date"))),
                        name="event_deadline_before_start",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("registration_fee__gte", 0)), name="event_fee_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Registration",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("ticket_id", models.CharField(editable=False, max_length=12, unique=True)),
                ("form_data", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[("registered", "Registered"), ("attended", "Attended"), ("cancelled", "Cancelled")],
                        db_index=True,
                        default="registered",
                        max_length=20,
                    ),
                ),
                ("registration_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("attendance_date", models.DateTimeField(blank=True, null=True)),
                ("cancellation_date", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, max_length=500)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "payment_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                (
                    "payment_receipt",
                    models.TextField(blank=True, help_text="Receipt URL or base64-encoded image.", null=True),
                ),
                ("payment_reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("payment_rejection_comment", models.TextField(blank=True)),
                ("qr_code", models.TextField(blank=True, help_text="Rendered ticket as a PNG data URL.", null=True)),
                ("email_sent", models.BooleanField(default=False)),
                ("email_sent_at", models.DateTimeField(blank=True, null=True)),
                (
                    "checked_in_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="registrations",
                        to="events.event",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment_reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-registration_date"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "cancelled"), _negated=True),
                        fields=("participant", "event"),
                        name="unique_active_registration_per_participant",
                        violation_error_message="You are already registered for this event.",
                    ),
                ],
            },
        ),
    ]
