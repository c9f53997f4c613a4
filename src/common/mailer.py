"""Outgoing email.

Sending is a single attempt that raises on failure; retries are left to the Celery task that
calls it, so a worker never sleeps between attempts.
"""

import typing as t

import structlog
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class EmailAttachment(t.NamedTuple):
    filename: str
    content: bytes
    mimetype: str


class DeliveryResult(BaseModel):
    """Outcome of a best-effort delivery. Failures are reported here instead of raised."""

    success: bool
    attempts: int = 0
    error: str | None = None


def send_email(
    *,
    to: str | list[str],
    subject: str,
    body: str,
    html_body: str | None = None,
    attachments: t.Sequence[EmailAttachment] = (),
) -> None:
    """Send one email.

    Args:
        to: The recipient address or addresses.
        subject: The email subject.
        body: The plain text body.
        html_body: The optional HTML alternative.
        attachments: Files to attach.

    Raises:
        Exception: Whatever the email backend raises when delivery fails.
    """
    recipients = [to] if isinstance(to, str) else list(to)
    message = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    if html_body:
        message.attach_alternative(html_body, "text/html")
    for attachment in attachments:
        message.attach(attachment.filename, attachment.content, attachment.mimetype)
    message.send(fail_silently=False)
    logger.info("email_sent", subject=subject, recipients=len(recipients))
