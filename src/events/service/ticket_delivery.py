"""Ticket rendering and participant notifications.

Everything here is best-effort: a failed QR render is logged, and emails are sent from Celery
tasks that retry and then record the failure. Neither undoes the registration it belongs to.
"""

import base64
import binascii
import typing as t
from io import BytesIO

import orjson
import qrcode
import structlog
from django.conf import settings
from django.template.loader import render_to_string

from common.mailer import EmailAttachment, send_email
from common.tasks import dispatch_on_commit
from events.models import Registration

logger = structlog.get_logger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"


def build_ticket_payload(registration: Registration) -> dict[str, t.Any]:
    """The data encoded in a ticket's QR code."""
    event = registration.event
    participant = registration.participant
    return {
        "ticketId": registration.ticket_id,
        "eventId": str(event.pk),
        "eventName": event.name,
        "participantId": str(participant.pk),
        "participantName": participant.get_display_name(),
        "participantEmail": participant.email,
        "registrationDate": registration.registration_date.isoformat(),
        "status": registration.status,
    }


def render_ticket(payload: dict[str, t.Any]) -> str:
    """Render the payload as a QR code PNG data URL."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=settings.TICKET_QR_BOX_SIZE,
        border=settings.TICKET_QR_BORDER,
    )
    qr.add_data(orjson.dumps(payload).decode("utf-8"))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, "PNG")
    return DATA_URL_PREFIX + base64.b64encode(buffered.getvalue()).decode("utf-8")


def attach_qr_code(registration: Registration) -> str | None:
    """Render and store the ticket QR code unless it already exists.

    Returns:
        The data URL, or None if rendering failed.
    """
    if registration.qr_code:
        return registration.qr_code
    try:
        qr_code = render_ticket(build_ticket_payload(registration))
    except Exception:
        logger.exception("ticket_qr_render_failed", registration_id=str(registration.pk))
        return None
    Registration.objects.filter(pk=registration.pk).update(qr_code=qr_code)
    registration.qr_code = qr_code
    return qr_code


def issue_ticket(registration: Registration) -> Registration:
    """Render the QR code now and send the ticket email after commit."""
    from events import tasks

    attach_qr_code(registration)
    dispatch_on_commit(tasks.send_ticket_email, registration_id=str(registration.pk))
    return registration


def confirm_payment_ticket(registration: Registration) -> Registration:
    """Render the QR code if missing and send the payment-approved email after commit."""
    from events import tasks

    attach_qr_code(registration)
    dispatch_on_commit(tasks.send_payment_approved_email, registration_id=str(registration.pk))
    return registration


def _qr_attachment(registration: Registration) -> list[EmailAttachment]:
    if not registration.qr_code or not registration.qr_code.startswith(DATA_URL_PREFIX):
        return []
    try:
        content = base64.b64decode(registration.qr_code.removeprefix(DATA_URL_PREFIX), validate=True)
    except (binascii.Error, ValueError):
        logger.warning("ticket_qr_not_attachable", registration_id=str(registration.pk))
        return []
    return [EmailAttachment(f"ticket-{registration.ticket_id}.png", content, "image/png")]


def _email_context(registration: Registration) -> dict[str, t.Any]:
    event = registration.event
    return {
        "participant_name": registration.participant.get_display_name(),
        "event_name": event.name,
        "is_merchandise": event.is_merchandise,
        "quantity": registration.form_data.get("quantity") if event.is_merchandise else None,
        "ticket_id": registration.ticket_id,
        "start_date": event.start_date,
        "venue": event.venue,
        "payment_amount": registration.payment_amount,
        "qr_code": registration.qr_code,
        "ticket_url": f"{settings.FRONTEND_BASE_URL}/tickets/{registration.ticket_id}",
        "site_name": settings.SITE_NAME,
    }


def send_ticket_email(registration: Registration) -> None:
    """Email the participant their ticket. Raises if the backend fails."""
    context = _email_context(registration)
    prefix = "Order confirmed" if registration.event.is_merchandise else "Your ticket"
    send_email(
        to=registration.participant.email,
        subject=f"{prefix}: {registration.event.name}",
        body=render_to_string("events/emails/ticket.txt", context),
        html_body=render_to_string("events/emails/ticket.html", context),
        attachments=_qr_attachment(registration),
    )


def send_payment_approved_email(registration: Registration) -> None:
    """Email the participant that their payment was approved, with the ticket attached.

    Raises if the backend fails.
    """
    context = _email_context(registration)
    send_email(
        to=registration.participant.email,
        subject=f"Payment approved: {registration.event.name}",
        body=render_to_string("events/emails/payment_approved.txt", context),
        html_body=render_to_string("events/emails/payment_approved.html", context),
        attachments=_qr_attachment(registration),
    )
