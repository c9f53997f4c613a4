from uuid import UUID

from django.db.models import QuerySet
from ninja import Query
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.searching import Searching, searching

from common.authentication import FelicityJWTAuth, OptionalAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, ValidationErrorResponse
from common.throttling import RegistrationThrottle, WriteThrottle
from events import filters, models, schema
from events.service import event_service, lifecycle, registration_service

EVENT_MANAGER_ROLES = ("organizer", "admin")


@api_controller("/events", auth=OptionalAuth(), tags=["Events"])
class EventController(UserAwareController):
    """Event browsing and organizer event management.

    Static routes are declared before the ``/{event_id}`` ones so they win the match.
    """

    @route.post(
        "/",
        url_name="create_event",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={201: schema.EventDetailSchema, 400: ValidationErrorResponse, 403: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def create_event(self, payload: schema.EventCreateSchema) -> tuple[int, models.Event]:
        """Create an event owned by the caller.

        Events are drafts until `is_published` is set. Normal events may carry a custom
        registration form; merchandise events need `item_details`, `stock_quantity` and
        `purchase_limit_per_participant` instead.
        """
        data = payload.model_dump(mode="json", exclude={"start_date", "end_date", "registration_deadline"})
        data.update(
            start_date=payload.start_date,
            end_date=payload.end_date,
            registration_deadline=payload.registration_deadline,
            registration_fee=payload.registration_fee,
        )
        return 201, event_service.create_event(self.user(), data)

    @route.get("/public", url_name="list_public_events", response=PaginatedResponseSchema[schema.EventInListSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    @searching(Searching, search_fields=["name", "description", "venue", "organizer__organizer_name"])
    def list_public_events(
        self,
        params: filters.EventFilterSchema = Query(...),  # type: ignore[type-arg]
    ) -> QuerySet[models.Event]:
        """Browse published events, soonest first.

        Finished events are hidden unless `include_past=true`. Supports filtering by type,
        category and eligibility, and text search via `search`.
        """
        return params.filter(event_service.published_events()).order_by("start_date")

    @route.get(
        "/mine",
        url_name="list_my_events",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response=PaginatedResponseSchema[schema.EventInListSchema],
    )
    @paginate(PageNumberPaginationExtra, page_size=20)
    @searching(Searching, search_fields=["name", "description", "venue"])
    def list_my_events(self) -> QuerySet[models.Event]:
        """Events the caller organizes, drafts included. Admins see every event."""
        return event_service.organizer_events(self.user())

    @route.get("/{uuid:event_id}", url_name="get_event", response={200: schema.EventDetailSchema, 404: ErrorResponse})
    def get_event(self, event_id: UUID) -> models.Event:
        """Event details. Drafts are only visible to their organizer and admins."""
        return event_service.get_event_for_viewer(event_id, self.maybe_user())

    @route.put(
        "/{uuid:event_id}",
        url_name="update_event",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={
            200: schema.EventEditResponseSchema,
            400: ValidationErrorResponse,
            403: ErrorResponse,
            404: ErrorResponse,
            409: ErrorResponse,
        },
        throttle=WriteThrottle(),
    )
    def update_event(self, event_id: UUID, payload: schema.EventUpdateSchema) -> lifecycle.EditOutcome:
        """Edit an event. Only the fields sent are changed.

        What may change depends on the lifecycle status:
        - **draft**: anything, except that the custom form is locked once someone registered.
        - **published**: `description`, `registration_deadline`, `registration_limit`, `is_published`.
        - **ongoing / completed**: only `is_published`.

        A request touching any other field is rejected as a whole with a 409 listing the
        offending fields. `just_published` tells whether this edit made the event public.
        """
        requested = payload.model_dump(mode="json", exclude_unset=True)
        for key in ("start_date", "end_date", "registration_deadline", "registration_fee"):
            if key in requested:
                requested[key] = getattr(payload, key)
        return lifecycle.update_event(event_id, self.user(), requested)

    @route.delete(
        "/{uuid:event_id}",
        url_name="delete_event",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={204: None, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def delete_event(self, event_id: UUID) -> tuple[int, None]:
        """Delete an event nobody holds an active registration for."""
        event_service.delete_event(event_id, self.user())
        return 204, None

    @route.put(
        "/{uuid:event_id}/publish",
        url_name="toggle_publish",
        auth=FelicityJWTAuth(roles=EVENT_MANAGER_ROLES),
        response={200: schema.EventEditResponseSchema, 403: ErrorResponse, 404: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def toggle_publish(self, event_id: UUID) -> lifecycle.EditOutcome:
        """Publish a draft, or take a published event offline. Allowed in every lifecycle status."""
        return lifecycle.toggle_publish(event_id, self.user())

    @route.post(
        "/{uuid:event_id}/register",
        url_name="register_for_event",
        auth=FelicityJWTAuth(roles=("participant",)),
        response={
            201: schema.RegistrationOutcomeSchema,
            400: ErrorResponse,
            403: ErrorResponse,
            404: ErrorResponse,
            409: ErrorResponse,
        },
        throttle=RegistrationThrottle(),
    )
    def register(self, event_id: UUID, payload: schema.RegistrationCreateSchema) -> tuple[int, dict[str, object]]:
        """Register for an event or buy merchandise.

        Free registrations get their ticket right away, and the ticket is emailed. Paid ones
        need `payment_receipt` and wait for the organizer to approve the payment; no ticket id
        is returned for them until then.
        """
        outcome = registration_service.register(event_id, self.user(), **payload.model_dump())
        return 201, {
            "message": outcome.message,
            "is_paid": outcome.is_paid,
            "ticket_id": None if outcome.is_paid else outcome.registration.ticket_id,
            "stock_remaining": outcome.stock_remaining,
            "registration": outcome.registration,
        }
