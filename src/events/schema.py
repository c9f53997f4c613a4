import typing as t
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import Field, Schema
from pydantic import AwareDatetime, StringConstraints

from accounts.schema import MemberSchema, OrganizerSchema
from common.schema import OneToTwoHundredString
from events.models import Event, FormFieldDefinition, ItemDetails, Registration
from events.service import lifecycle

DescriptionString = t.Annotated[str, StringConstraints(min_length=1, max_length=2000, strip_whitespace=True)]
TagString = t.Annotated[str, StringConstraints(min_length=1, max_length=50, strip_whitespace=True)]


# ---- Events ----


class EventCreateSchema(Schema):
    name: OneToTwoHundredString
    description: DescriptionString
    event_type: Event.EventType = Event.EventType.NORMAL
    category: Event.Category = Event.Category.OTHER
    eligibility: Event.Eligibility = Event.Eligibility.ALL
    venue: str = Field("", max_length=200)
    image_url: str = Field("", max_length=500)
    tags: list[TagString] = Field(default_factory=list)
    start_date: AwareDatetime
    end_date: AwareDatetime
    registration_deadline: AwareDatetime
    registration_fee: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    registration_limit: int | None = Field(None, ge=1)
    custom_form: list[FormFieldDefinition] = Field(default_factory=list)
    item_details: ItemDetails | None = None
    stock_quantity: int | None = Field(None, ge=0)
    purchase_limit_per_participant: int | None = Field(None, ge=1)
    is_published: bool = False


class EventUpdateSchema(Schema):
    """Partial update. Only the fields sent are applied, subject to the event's lifecycle status."""

    name: OneToTwoHundredString | None = None
    description: DescriptionString | None = None
    event_type: Event.EventType | None = None
    category: Event.Category | None = None
    eligibility: Event.Eligibility | None = None
    venue: str | None = Field(None, max_length=200)
    image_url: str | None = Field(None, max_length=500)
    tags: list[TagString] | None = None
    start_date: AwareDatetime | None = None
    end_date: AwareDatetime | None = None
    registration_deadline: AwareDatetime | None = None
    registration_fee: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    registration_limit: int | None = Field(None, ge=1)
    custom_form: list[FormFieldDefinition] | None = None
    item_details: ItemDetails | None = None
    stock_quantity: int | None = Field(None, ge=0)
    purchase_limit_per_participant: int | None = Field(None, ge=1)
    is_published: bool | None = None


class EventBaseSchema(Schema):
    id: UUID
    name: str
    event_type: Event.EventType
    category: Event.Category
    eligibility: Event.Eligibility
    venue: str = ""
    image_url: str = ""
    tags: list[str] = Field(default_factory=list)
    start_date: AwareDatetime
    end_date: AwareDatetime
    registration_deadline: AwareDatetime
    registration_fee: Decimal
    registration_limit: int | None = None
    current_registrations: int
    remaining_capacity: int | None = None
    is_published: bool
    lifecycle_status: Event.LifecycleStatus
    organizer: OrganizerSchema

    @staticmethod
    def resolve_lifecycle_status(obj: Event) -> str:
        """Lifecycle bucket at request time."""
        return lifecycle.classify(obj)


class EventInListSchema(EventBaseSchema):
    stock_quantity: int | None = None


class EventDetailSchema(EventBaseSchema):
    description: str
    custom_form: list[FormFieldDefinition] = Field(default_factory=list)
    item_details: ItemDetails | None = None
    stock_quantity: int | None = None
    purchase_limit_per_participant: int | None = None
    created_at: AwareDatetime | None = None
    updated_at: AwareDatetime | None = None


class EventEditResponseSchema(Schema):
    event: EventDetailSchema
    just_published: bool


# ---- Registrations ----


class RegistrationCreateSchema(Schema):
    form_data: dict[str, t.Any] = Field(default_factory=dict)
    payment_receipt: str | None = None
    quantity: int = 1
    selected_variant: str | None = None
    selected_size: str | None = None
    selected_color: str | None = None


class CancelRegistrationSchema(Schema):
    reason: str = Field("", max_length=500)


class RejectPaymentSchema(Schema):
    comment: str = Field(..., max_length=1000)


class RegistrationBaseSchema(Schema):
    id: UUID
    ticket_id: str
    status: Registration.Status
    payment_status: Registration.PaymentStatus
    payment_amount: Decimal
    form_data: dict[str, t.Any] = Field(default_factory=dict)
    qr_code: str | None = None
    email_sent: bool
    registration_date: AwareDatetime
    attendance_date: AwareDatetime | None = None
    payment_rejection_comment: str = ""


class RegistrationSchema(RegistrationBaseSchema):
    event: EventInListSchema


class AdminRegistrationSchema(RegistrationBaseSchema):
    participant: MemberSchema
    payment_receipt: str | None = None
    payment_reviewed_at: AwareDatetime | None = None
    email_sent_at: AwareDatetime | None = None


class TicketVerificationSchema(AdminRegistrationSchema):
    event: EventInListSchema


class RegistrationOutcomeSchema(Schema):
    message: str
    is_paid: bool
    ticket_id: str | None = None
    stock_remaining: int | None = None
    registration: RegistrationSchema


class CancellationSchema(Schema):
    id: UUID
    ticket_id: str
    status: Registration.Status
    cancellation_date: datetime | None = None
    cancellation_reason: str = ""
