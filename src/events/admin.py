"""Admin interface for events and registrations."""

from django.contrib import admin

from events.models import Event, Registration


class RegistrationInline(admin.TabularInline):  # type: ignore[type-arg]
    model = Registration
    extra = 0
    can_delete = False
    fields = ["ticket_id", "participant", "status", "payment_status", "payment_amount"]
    readonly_fields = fields
    show_change_link = True


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = [
        "name",
        "event_type",
        "category",
        "organizer",
        "start_date",
        "is_published",
        "current_registrations",
        "registration_limit",
    ]
    list_filter = ["event_type", "category", "eligibility", "is_published"]
    search_fields = ["name", "description", "venue", "organizer__email", "organizer__organizer_name"]
    readonly_fields = ["current_registrations", "created_at", "updated_at"]
    autocomplete_fields = ["organizer"]
    date_hierarchy = "start_date"
    inlines = [RegistrationInline]


@admin.register(Registration)
class RegistrationAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["ticket_id", "participant", "event", "status", "payment_status", "payment_amount", "email_sent"]
    list_filter = ["status", "payment_status", "email_sent", "event__event_type"]
    search_fields = ["ticket_id", "participant__email", "event__name"]
    readonly_fields = [
        "ticket_id",
        "registration_date",
        "attendance_date",
        "checked_in_by",
        "payment_reviewed_at",
        "payment_reviewed_by",
        "email_sent_at",
        "created_at",
        "updated_at",
    ]
    autocomplete_fields = ["participant", "event"]
    list_select_related = ["participant", "event"]
