"""Domain errors raised by the event and registration services.

Every error carries the HTTP status the API answers with. The four families are validation
(400), permission (403), not found (404) and state conflict (409).
"""

import typing as t

from django.utils.translation import gettext_lazy as _


class EventsError(Exception):
    """Base class for all event and registration errors."""

    status_code: int = 400
    code: str = "events_error"
    default_message: t.Any = _("The request could not be processed.")

    def __init__(self, message: str | None = None) -> None:
        """Initialize the error, falling back to the class default message."""
        self.message = str(message if message is not None else self.default_message)
        super().__init__(self.message)

    def as_payload(self) -> dict[str, t.Any]:
        """Body of the API error response."""
        return {"detail": self.message, "code": self.code}


class EventsValidationError(EventsError):
    status_code = 400
    code = "validation_error"


class EventsPermissionError(EventsError):
    status_code = 403
    code = "permission_denied"
    default_message = _("You do not have permission to perform this action.")


class EventsNotFoundError(EventsError):
    status_code = 404
    code = "not_found"


class StateConflictError(EventsError):
    status_code = 409
    code = "state_conflict"


# ---- Not found ----


class EventNotFoundError(EventsNotFoundError):
    code = "event_not_found"
    default_message = _("Event not found.")


class RegistrationNotFoundError(EventsNotFoundError):
    code = "registration_not_found"
    default_message = _("Registration not found.")


# ---- Permission ----


class NotEventOrganizerError(EventsPermissionError):
    code = "not_event_organizer"
    default_message = _("Only the event organizer or an admin can do this.")


class NotRegistrationOwnerError(EventsPermissionError):
    code = "not_registration_owner"
    default_message = _("You can only manage your own registrations.")


class RoleNotAllowedError(EventsPermissionError):
    code = "role_not_allowed"
    default_message = _("Your role is not allowed to perform this action.")


# ---- Validation ----


class MissingFormFieldError(EventsValidationError):
    code = "missing_form_field"

    def __init__(self, missing_fields: list[str]) -> None:
        """Name the required questions left unanswered."""
        self.missing_fields = missing_fields
        super().__init__(str(_("Please fill required field(s): {fields}")).format(fields=", ".join(missing_fields)))

    def as_payload(self) -> dict[str, t.Any]:
        """Include the missing labels."""
        return {**super().as_payload(), "missing_fields": self.missing_fields}


class InvalidFormAnswerError(EventsValidationError):
    code = "invalid_form_answer"

    def __init__(self, invalid_fields: list[str]) -> None:
        """Name the questions whose answers break their options or rules."""
        self.invalid_fields = invalid_fields
        super().__init__(str(_("Invalid answer(s) for: {fields}")).format(fields=", ".join(invalid_fields)))

    def as_payload(self) -> dict[str, t.Any]:
        """Include the offending labels."""
        return {**super().as_payload(), "invalid_fields": self.invalid_fields}


class PaymentReceiptRequiredError(EventsValidationError):
    code = "payment_receipt_required"
    default_message = _("Payment receipt is required for paid registrations.")


class InvalidQuantityError(EventsValidationError):
    code = "invalid_quantity"
    default_message = _("Quantity must be at least 1.")


class InvalidSelectionError(EventsValidationError):
    code = "invalid_selection"
    default_message = _("The selected option is not available for this item.")


class RejectionCommentRequiredError(EventsValidationError):
    code = "rejection_comment_required"
    default_message = _("A comment is required when rejecting a payment.")


# ---- State conflicts ----


class RegistrationClosedError(StateConflictError):
    code = "registration_closed"
    default_message = _("Registration is closed for this event.")


class NotPublishedError(RegistrationClosedError):
    code = "event_not_published"
    default_message = _("Event is not published yet.")


class DeadlinePassedError(RegistrationClosedError):
    code = "registration_deadline_passed"
    default_message = _("Registration deadline has passed.")


class CapacityExceededError(StateConflictError):
    code = "capacity_exceeded"
    default_message = _("Registration limit reached.")


class FullCapacityError(CapacityExceededError):
    code = "event_full"
    default_message = _("Event is full. Registration limit reached.")


class AlreadyRegisteredError(StateConflictError):
    code = "already_registered"
    default_message = _("You are already registered for this event.")


class StockError(StateConflictError):
    code = "stock_error"
    default_message = _("The requested quantity cannot be fulfilled.")


class OutOfStockError(StockError):
    code = "out_of_stock"
    default_message = _("Item is out of stock.")


class PurchaseLimitExceededError(StockError):
    code = "purchase_limit_exceeded"

    def __init__(self, limit: int) -> None:
        """Name the limit that was exceeded."""
        self.limit = limit
        super().__init__(str(_("Purchase limit is {limit} per participant.")).format(limit=limit))


class InsufficientStockError(StockError):
    code = "insufficient_stock"

    def __init__(self, available: int) -> None:
        """Name how many units are left."""
        self.available = available
        super().__init__(str(_("Only {available} item(s) available.")).format(available=available))


class FormLockedError(StateConflictError):
    code = "form_locked"
    default_message = _("Cannot modify the registration form after registrations have been received.")


class EditNotAllowedError(StateConflictError):
    code = "edit_not_allowed"

    def __init__(self, rejected_fields: list[str], lifecycle_status: str) -> None:
        """Name the fields the current lifecycle status does not allow to change."""
        self.rejected_fields = rejected_fields
        self.lifecycle_status = lifecycle_status
        if rejected_fields:
            message = str(_("Cannot update {fields} for a {status} event.")).format(
                fields=", ".join(rejected_fields), status=lifecycle_status
            )
        else:
            message = str(_("Only the publish status can be changed for a {status} event.")).format(
                status=lifecycle_status
            )
        super().__init__(message)

    def as_payload(self) -> dict[str, t.Any]:
        """Include the rejected fields."""
        return {
            **super().as_payload(),
            "rejected_fields": self.rejected_fields,
            "lifecycle_status": self.lifecycle_status,
        }


class EventDeletionNotAllowedError(StateConflictError):
    code = "event_deletion_not_allowed"
    default_message = _("Cannot delete an event that has active registrations.")


class AlreadyApprovedError(StateConflictError):
    code = "already_approved"
    default_message = _("Payment has already been approved.")


class PaymentNotPendingError(StateConflictError):
    code = "payment_not_pending"
    default_message = _("Only pending payments can be reviewed.")


class AttendanceAlreadyMarkedError(StateConflictError):
    code = "attendance_already_marked"
    default_message = _("Attendance has already been marked for this ticket.")


class RegistrationCancelledError(StateConflictError):
    code = "registration_cancelled"
    default_message = _("This registration has been cancelled.")


class CancellationNotAllowedError(StateConflictError):
    code = "cancellation_not_allowed"
    default_message = _("Cannot cancel a registration after the event has started.")
