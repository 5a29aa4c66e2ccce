"""
SendGrid email sender

Every email the service sends (business notifications, customer confirmations,
deposit receipts) goes through EmailSender.send.
"""

import logging
from typing import Callable

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Email, Mail, To
from starlette.concurrency import run_in_threadpool

from memorial_intake.models import Document
from memorial_intake.services.errors import EmailDeliveryFailed

logger = logging.getLogger("email_sender")

ACCEPTED_STATUSES = (200, 202)


class EmailSender:
    """Thin wrapper over the SendGrid v3 mail API."""

    def __init__(self, api_key: str, client_factory: Callable[[str], SendGridAPIClient] = SendGridAPIClient):
        self.api_key = api_key
        self._client_factory = client_factory

    def _build_message(self, sender: str, to: str, subject: str, document: Document) -> Mail:
        return Mail(
            from_email=Email(sender),
            to_emails=To(to),
            subject=subject,
            html_content=Content(document.content_type, document.body),
        )

    def _send_blocking(self, message: Mail):
        return self._client_factory(self.api_key).send(message)

    async def send(self, sender: str, to: str, subject: str, document: Document) -> None:
        """
        Hand one email to SendGrid.

        Raises EmailDeliveryFailed when SendGrid refuses it or cannot be reached.
        """
        if not to or not subject:
            raise EmailDeliveryFailed(None, "recipient and subject are required")

        message = self._build_message(sender, to, subject, document)
        try:
            response = await run_in_threadpool(self._send_blocking, message)
        except Exception as e:
            # python_http_client errors carry the HTTP status and response body
            status = getattr(e, "status_code", None)
            body = getattr(e, "body", None) or str(e)
            if isinstance(body, bytes):
                body = body.decode("utf-8", errors="replace")
            logger.error(f"SendGrid error {status} sending to {to}: {body}")
            raise EmailDeliveryFailed(status, str(body)) from e

        if response.status_code not in ACCEPTED_STATUSES:
            logger.error(f"SendGrid refused email to {to}: {response.status_code}")
            raise EmailDeliveryFailed(response.status_code, str(getattr(response, "body", "")))

        logger.info(f"Email sent to {to}: {subject}")
