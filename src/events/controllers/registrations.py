from uuid import UUID

from django.db.models import QuerySet
from ninja import Query
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.searching import Searching, searching

from common.authentication import FelicityJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse
from common.throttling import WriteThrottle
from events import filters, models, schema
from events.exceptions import RegistrationNotFoundError
from events.service import attendance_service, can_manage_event, event_service, payment_service

from .events import EVENT_MANAGER_ROLES


@api_controller("/registrations", auth=FelicityJWTAuth(), tags=["Registrations"])
class RegistrationController(UserAwareController):
    """Participant registrations, plus ticket scanning and payment review for organizers."""

    @route.get(
        "/me",
        url_name="my_registrations",
        auth=FelicityJWTAuth(roles=("participant",)),
        response=PaginatedResponseSchema[schema.RegistrationSchema],
    )
    @paginate(PageNumberPaginationExtra, page_size=20)
    def my_registrations(
        self,
        params: filters.MyRegistrationFilterSchema = Query(...),  # type: ignore[type-arg]
    ) -> QuerySet[models.Registration]:
        """The caller's registrations, newest first.

        Use `upcoming=true` for events that have not started yet, `past=true` for events that
        are over, and `status` to narrow down further.
        """
        return params.filter(event_service.participant_registrations(self.user())).order_by("-registration_date")

    @route.get(
        "/event/{uuid:event_id}",
        url_name="event_registrations",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response=PaginatedResponseSchema[schema.AdminRegistrationSchema],
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    @searching(
        Searching,
        search_fields=["ticket_id", "participant__email", "participant__first_name", "participant__last_name"],
    )
    def event_registrations(
        self,
        event_id: UUID,
        params: filters.RegistrationFilterSchema = Query(...),  # type: ignore[type-arg]
    ) -> QuerySet[models.Registration]:
        """Registrations of one of the caller's events, with payment receipts for review."""
        return params.filter(event_service.event_registrations(event_id, self.user())).order_by("-registration_date")

    @route.get(
        "/verify/{ticket_id}",
        url_name="verify_ticket",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={200: schema.TicketVerificationSchema, 403: ErrorResponse, 404: ErrorResponse},
    )
    def verify_ticket(self, ticket_id: str) -> models.Registration:
        """Look up a scanned ticket before checking its holder in."""
        return attendance_service.verify_ticket(ticket_id, self.user())

    @route.put(
        "/attend/{ticket_id}",
        url_name="mark_attended",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={200: schema.AdminRegistrationSchema, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def mark_attended(self, ticket_id: str) -> models.Registration:
        """Check a ticket holder in. Each ticket can be used once."""
        return attendance_service.mark_attended(ticket_id, self.user())

    @route.get(
        "/{uuid:registration_id}",
        url_name="get_registration",
        response={200: schema.RegistrationSchema, 404: ErrorResponse},
    )
    def get_registration(self, registration_id: UUID) -> models.Registration:
        """A single registration, for its participant or whoever manages the event."""
        registration = models.Registration.objects.full().filter(pk=registration_id).first()
        user = self.user()
        if registration is None or not (
            registration.participant_id == user.pk or can_manage_event(registration.event, user)
        ):
            raise RegistrationNotFoundError()
        return registration

    @route.put(
        "/{uuid:registration_id}/cancel",
        url_name="cancel_registration",
        auth=FelicityJWTAuth(roles=("participant",)),
        response={200: schema.CancellationSchema, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def cancel_registration(
        self, registration_id: UUID, payload: schema.CancelRegistrationSchema
    ) -> models.Registration:
        """Cancel a registration before the event starts, freeing the slot."""
        return attendance_service.cancel_registration(registration_id, self.user(), reason=payload.reason)

    @route.put(
        "/{uuid:registration_id}/approve-payment",
        url_name="approve_payment",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={200: schema.AdminRegistrationSchema, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def approve_payment(self, registration_id: UUID) -> models.Registration:
        """Approve a pending payment. The ticket is issued and emailed to the participant.

        For merchandise the stock is taken at this point; if it no longer covers the order the
        approval fails with a 409 and the payment stays pending.
        """
        return payment_service.approve_payment(registration_id, self.user())

    @route.put(
        "/{uuid:registration_id}/reject-payment",
        url_name="reject_payment",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={
            200: schema.AdminRegistrationSchema,
            400: ErrorResponse,
            403: ErrorResponse,
            404: ErrorResponse,
            409: ErrorResponse,
        },
        throttle=WriteThrottle(),
    )
    def reject_payment(self, registration_id: UUID, payload: schema.RejectPaymentSchema) -> models.Registration:
        """Reject a pending payment with a comment the participant can read."""
        return payment_service.reject_payment(registration_id, self.user(), payload.comment)
