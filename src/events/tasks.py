"""Celery tasks for event management.

This module contains asynchronous tasks for:
- Ticket emails for free registrations
- Payment-approved emails for paid registrations
- Organizer webhook alerts when an event gets published

Email tasks retry through Celery and report the final outcome in their return value.
"""

import typing as t

import httpx
import structlog
from celery import shared_task
from django.conf import settings
from django.utils import timezone

from common.mailer import DeliveryResult

from .models import Event, Registration
from .service import ticket_delivery

logger = structlog.get_logger(__name__)


def _load_registration(registration_id: str) -> Registration | None:
    registration = Registration.objects.full().filter(pk=registration_id).first()
    if registration is None:
        logger.warning("registration_gone_before_email", registration_id=registration_id)
    return registration


def _record_email_sent(registration: Registration) -> None:
    now = timezone.now()
    Registration.objects.filter(pk=registration.pk).update(email_sent=True, email_sent_at=now)
    registration.email_sent = True
    registration.email_sent_at = now


EMAIL_MAX_RETRIES = settings.EMAIL_SEND_ATTEMPTS - 1


def _deliver(
    task: t.Any,
    registration_id: str,
    send: t.Callable[[Registration], None],
    failure_event: str,
) -> dict[str, t.Any]:
    """Send one email for a registration, retrying through Celery with linear backoff.

    The n-th retry is scheduled ``n * EMAIL_RETRY_BACKOFF_SECONDS`` later. Once the retries
    are used up the failure is logged and returned; ``email_sent`` stays false.
    """
    registration = _load_registration(registration_id)
    if registration is None:
        return DeliveryResult(success=False, error="registration not found").model_dump()

    attempt = task.request.retries + 1
    try:
        send(registration)
    except Exception as e:
        if task.request.retries < task.max_retries:
            countdown = settings.EMAIL_RETRY_BACKOFF_SECONDS * attempt
            logger.warning(
                "email_send_failed_retrying",
                registration_id=registration_id,
                attempt=attempt,
                countdown=countdown,
                error=str(e),
            )
            raise task.retry(exc=e, countdown=countdown)
        logger.error(failure_event, registration_id=registration_id, attempts=attempt, error=str(e))
        return DeliveryResult(success=False, attempts=attempt, error=str(e)).model_dump()

    _record_email_sent(registration)
    return DeliveryResult(success=True, attempts=attempt).model_dump()


@shared_task(bind=True, max_retries=EMAIL_MAX_RETRIES)
def send_ticket_email(self: t.Any, registration_id: str) -> dict[str, t.Any]:
    """Email a freshly issued ticket and record the delivery."""
    return _deliver(self, registration_id, ticket_delivery.send_ticket_email, "ticket_email_failed")


@shared_task(bind=True, max_retries=EMAIL_MAX_RETRIES)
def send_payment_approved_email(self: t.Any, registration_id: str) -> dict[str, t.Any]:
    """Email the ticket of an approved payment and record the delivery."""
    return _deliver(self, registration_id, ticket_delivery.send_payment_approved_email, "payment_approved_email_failed")


def build_publish_alert(event: Event) -> dict[str, t.Any]:
    """Minimal webhook body announcing a published event."""
    return {
        "content": f"New event published: {event.name}",
        "embeds": [
            {
                "title": event.name,
                "url": f"{settings.FRONTEND_BASE_URL}/events/{event.pk}",
                "timestamp": event.start_date.isoformat(),
            }
        ],
    }


@shared_task
def notify_organizer_of_publish(event_id: str) -> dict[str, t.Any]:
    """POST a publish alert to the organizer's webhook, if they configured one."""
    event = Event.objects.with_organizer().filter(pk=event_id).first()
    if event is None:
        logger.warning("publish_alert_event_gone", event_id=event_id)
        return {"status": "skipped", "reason": "event not found"}

    webhook_url = event.organizer.discord_webhook_url
    if not webhook_url:
        return {"status": "skipped", "reason": "no webhook configured"}

    try:
        response = httpx.post(webhook_url, json=build_publish_alert(event), timeout=settings.ORGANIZER_WEBHOOK_TIMEOUT)
        response.raise_for_status()
    except (httpx.HTTPStatusError, httpx.RequestError) as e:
        logger.error("publish_alert_failed", event_id=event_id, error=str(e))
        return {"status": "failed", "error": str(e)}

    logger.info("publish_alert_sent", event_id=event_id, response_status=response.status_code)
    return {"status": "sent"}
