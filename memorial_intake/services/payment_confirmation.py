"""
Stripe payment callbacks

Stripe-Signature header: "t=1697712000,v1=<hex>,v1=<hex>,v0=<hex>"
The signed payload is "{t}.{raw body}", HMAC-SHA256 with the endpoint secret.
A request is authentic when any v1 signature matches and t is within the
tolerance window of now (in either direction).

Once authenticated every side effect is best-effort: Stripe always gets
{"received": true} so it does not keep redelivering.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from memorial_intake.config import BusinessProfile, format_submitted_at, now_utc
from memorial_intake.models import DepositPaymentEvent, OrchestrationContext
from memorial_intake.services.documents import DocumentRenderer
from memorial_intake.services.errors import InvalidPayload, InvalidSignature
from memorial_intake.services.integrations import Integrations
from memorial_intake.services.steps import Step, StepRunner, best_effort

logger = logging.getLogger("payment_confirmation")


def parse_signature_header(header: Optional[str]) -> Tuple[Optional[int], List[str]]:
    """Return (timestamp, [v1 signatures]); timestamp is None when absent or malformed."""
    timestamp = None
    signatures = []
    for part in (header or "").split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def compute_signature(raw_body: bytes, timestamp: int, secret: str) -> str:
    signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, header: Optional[str], secret: str, now: int,
                     tolerance: int = 300) -> bool:
    timestamp, signatures = parse_signature_header(header)
    if timestamp is None or not signatures:
        return False
    if abs(now - timestamp) > tolerance:
        return False
    expected = compute_signature(raw_body, timestamp, secret)
    return any(hmac.compare_digest(expected, candidate) for candidate in signatures)


class PaymentConfirmationHandler:

    def __init__(self, integrations: Integrations, business: BusinessProfile, webhook_secret: str = "",
                 renderer: Optional[DocumentRenderer] = None,
                 clock: Callable[[], datetime] = now_utc):
        self.integrations = integrations
        self.business = business
        self.webhook_secret = webhook_secret
        self.renderer = renderer or DocumentRenderer(business)
        self.clock = clock

    def authenticate(self, raw_body: bytes, signature_header: Optional[str]) -> None:
        if not self.webhook_secret:
            logger.warning("STRIPE_WEBHOOK_SECRET not set, accepting callback without verification")
            return
        now = int(self.clock().timestamp())
        if not verify_signature(raw_body, signature_header, self.webhook_secret, now,
                                self.business.webhook_tolerance_seconds):
            logger.warning("Rejected Stripe callback: invalid signature")
            raise InvalidSignature()

    async def handle(self, raw_body: bytes, signature_header: Optional[str]) -> Optional[OrchestrationContext]:
        """
        Authenticate and process one callback.

        Raises InvalidSignature / InvalidPayload for requests that must be
        rejected. Returns None for event types we do not act on.
        """
        self.authenticate(raw_body, signature_header)

        try:
            event = json.loads(raw_body)
        except ValueError:
            raise InvalidPayload() from None
        if not isinstance(event, dict):
            raise InvalidPayload()

        deposit = DepositPaymentEvent.from_stripe_event(event)
        if deposit is None:
            logger.info(f"Ignoring Stripe event {event.get('type')}")
            return None

        logger.info(
            f"Deposit {deposit.payment_intent_id} received: "
            f"{deposit.amount_paid_minor_units} pence from {deposit.customer_email or '(no email)'}"
        )
        context = OrchestrationContext(submitted_at=format_submitted_at(self.clock(), self.business.timezone))
        runner = StepRunner(f"deposit {deposit.payment_intent_id}")
        return await runner.run(self.build_steps(deposit), context)

    def build_steps(self, deposit: DepositPaymentEvent) -> List[Step]:
        has_email = bool(deposit.customer_email)

        async def mark_order_paid(context: OrchestrationContext) -> OrchestrationContext:
            amount = Decimal(deposit.amount_paid_minor_units) / 100
            order_id = await self.integrations.records.mark_latest_order_deposit_paid(
                deposit.customer_email, amount, deposit.payment_intent_id,
            )
            return context.with_values(order_record_id=order_id)

        async def send_customer_receipt(context: OrchestrationContext) -> OrchestrationContext:
            await self.integrations.email.send(
                self.business.sender,
                deposit.customer_email,
                self.renderer.deposit_customer_subject(),
                self.renderer.render_deposit_confirmation(deposit),
            )
            return context

        async def notify_business(context: OrchestrationContext) -> OrchestrationContext:
            await self.integrations.email.send(
                self.business.sender,
                self.business.email,
                self.renderer.deposit_business_subject(deposit),
                self.renderer.render_deposit_notification(deposit),
            )
            return context

        email_enabled = self.integrations.email is not None
        if self.integrations.records is None:
            order_step = best_effort("mark_order_paid", mark_order_paid, enabled=False)
        else:
            order_step = best_effort("mark_order_paid", mark_order_paid, enabled=has_email,
                                     skip_reason="no customer email")
        return [
            order_step,
            best_effort("deposit_customer_email", send_customer_receipt,
                        enabled=email_enabled and has_email,
                        skip_reason="no customer email" if email_enabled else "not configured"),
            best_effort("deposit_business_email", notify_business, enabled=email_enabled),
        ]
