"""
Stripe payment callback tests
- Stripe-Signature verification (HMAC-SHA256, 300 s window)
- deposit handling: order flagged paid, receipts emailed
"""

import json
from decimal import Decimal

import pytest

from memorial_intake.models import DepositPaymentEvent
from memorial_intake.services.errors import InvalidPayload, InvalidSignature
from memorial_intake.services.payment_confirmation import (
    PaymentConfirmationHandler,
    compute_signature,
    parse_signature_header,
    verify_signature,
)

from .fakes import BUSINESS, FIXED_NOW, FakeIntegrations, fixed_clock

SECRET = "whsec_test"
NOW = int(FIXED_NOW.timestamp())


def deposit_event(email="margaret@example.com", amount=25000, event_type="payment_intent.succeeded"):
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {
            "id": "pi_123",
            "amount": amount,
            "amount_received": amount,
            "metadata": {
                "customer_name": "Margaret Ellis",
                "customer_email": email,
                "cemetery": "Streatham Park Cemetery",
                "product": "Classic Ogee Headstone",
                "invoice_id": "inv-row-1",
            },
        }},
    }


def signed(payload: dict, timestamp: int = NOW, secret: str = SECRET):
    body = json.dumps(payload).encode()
    return body, f"t={timestamp},v1={compute_signature(body, timestamp, secret)}"


# ==================== SIGNATURE ====================

class TestSignature:

    def test_valid(self):
        body, header = signed(deposit_event())
        assert verify_signature(body, header, SECRET, NOW)

    def test_tampered_body(self):
        body, header = signed(deposit_event())
        assert not verify_signature(body.replace(b"25000", b"99999"), header, SECRET, NOW)

    def test_wrong_secret(self):
        body, header = signed(deposit_event(), secret="whsec_other")
        assert not verify_signature(body, header, SECRET, NOW)

    def test_stale_and_future_timestamps(self):
        body, header = signed(deposit_event(), timestamp=NOW - 301)
        assert not verify_signature(body, header, SECRET, NOW)
        body, header = signed(deposit_event(), timestamp=NOW + 301)
        assert not verify_signature(body, header, SECRET, NOW)
        body, header = signed(deposit_event(), timestamp=NOW - 300)
        assert verify_signature(body, header, SECRET, NOW)

    def test_any_v1_may_match(self):
        body, header = signed(deposit_event())
        timestamp, signatures = parse_signature_header(header)
        header = f"t={timestamp},v1=deadbeef,v1={signatures[0]},v0=abc"
        assert verify_signature(body, header, SECRET, NOW)

    @pytest.mark.parametrize("header", [None, "", "t=abc,v1=00", "v1=00", f"t={NOW}"])
    def test_malformed_headers(self, header):
        assert not verify_signature(b"{}", header, SECRET, NOW)


# ==================== HANDLER ====================

def make_handler(integrations, secret=SECRET):
    return PaymentConfirmationHandler(integrations, BUSINESS, secret, clock=fixed_clock)


async def seed_order(integrations, email="margaret@example.com"):
    return await integrations.records.create_order({"customer_email": email, "order_type": "quote"})


class TestDepositHandling:

    @pytest.mark.asyncio
    async def test_deposit_marks_order_and_sends_receipts(self):
        integrations = FakeIntegrations()
        await seed_order(integrations)
        body, header = signed(deposit_event())

        context = await make_handler(integrations).handle(body, header)

        order = integrations.records.orders[0]
        assert order["deposit_paid"] is True
        assert order["deposit_amount"] == Decimal("250")
        assert order["stripe_pi_id"] == "pi_123"
        assert context.order_record_id == "order-1"

        receipt = integrations.email.to("margaret@example.com")[0]
        assert receipt["subject"] == "Deposit confirmed — Sears Melvin Memorials"
        notice = integrations.email.to("info@searsmelvin.co.uk")[0]
        assert notice["subject"] == "Deposit received — £250.00 — Margaret Ellis"

    @pytest.mark.asyncio
    async def test_tampered_callback_has_no_side_effects(self):
        integrations = FakeIntegrations()
        await seed_order(integrations)
        body, header = signed(deposit_event())

        with pytest.raises(InvalidSignature):
            await make_handler(integrations).handle(body.replace(b"25000", b"99999"), header)

        assert "deposit_paid" not in integrations.records.orders[0]
        assert integrations.email.sent == []

    @pytest.mark.asyncio
    async def test_no_secret_accepts_unsigned(self):
        integrations = FakeIntegrations()
        await seed_order(integrations)
        body = json.dumps(deposit_event()).encode()

        await make_handler(integrations, secret="").handle(body, None)
        assert integrations.records.orders[0]["deposit_paid"] is True

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        body = b"{not json"
        header = f"t={NOW},v1={compute_signature(body, NOW, SECRET)}"
        with pytest.raises(InvalidPayload):
            await make_handler(FakeIntegrations()).handle(body, header)

    @pytest.mark.asyncio
    async def test_other_events_ignored(self):
        integrations = FakeIntegrations()
        body, header = signed(deposit_event(event_type="payment_intent.created"))
        assert await make_handler(integrations).handle(body, header) is None
        assert integrations.journal == []

    @pytest.mark.asyncio
    async def test_order_update_failure_still_sends_emails(self):
        integrations = FakeIntegrations(record_fail_on={"mark_latest_order_deposit_paid"})
        body, header = signed(deposit_event())
        context = await make_handler(integrations).handle(body, header)
        assert context.failed("mark_order_paid")
        assert len(integrations.email.sent) == 2

    @pytest.mark.asyncio
    async def test_customer_email_failure_still_notifies_business(self):
        integrations = FakeIntegrations(email_fail_for={"margaret@example.com"})
        body, header = signed(deposit_event())
        await make_handler(integrations).handle(body, header)
        assert len(integrations.email.to("info@searsmelvin.co.uk")) == 1

    @pytest.mark.asyncio
    async def test_missing_email_only_notifies_business(self):
        integrations = FakeIntegrations()
        body, header = signed(deposit_event(email=""))
        context = await make_handler(integrations).handle(body, header)
        assert "mark_order_paid" in context.skipped
        assert [message["to"] for message in integrations.email.sent] == ["info@searsmelvin.co.uk"]

    @pytest.mark.asyncio
    async def test_deposit_lands_on_most_recent_order(self):
        """Two open quotes from one address: the deposit is attributed to the newest."""
        integrations = FakeIntegrations()
        await seed_order(integrations)
        await seed_order(integrations)
        body, header = signed(deposit_event())

        await make_handler(integrations).handle(body, header)

        first, second = integrations.records.orders
        assert "deposit_paid" not in first
        assert second["deposit_paid"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("intent", [
        {"id": "pi_9", "amount_received": "12.5", "metadata": {"customer_email": "margaret@example.com"}},
        {"id": "pi_9", "amount_received": {"value": 1}, "metadata": ["x"]},
        {"id": "pi_9", "amount_received": True, "metadata": "x"},
    ])
    async def test_malformed_intent_is_read_leniently(self, intent):
        integrations = FakeIntegrations()
        payload = {"id": "evt_9", "type": "payment_intent.succeeded", "data": {"object": intent}}
        body, header = signed(payload)

        context = await make_handler(integrations).handle(body, header)

        assert context is not None
        assert len(integrations.email.to("info@searsmelvin.co.uk")) == 1

    def test_malformed_sections_read_as_empty(self):
        deposit = DepositPaymentEvent.from_stripe_event({
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_9", "amount_received": "12.5", "metadata": ["x"]}},
        })
        assert deposit.amount_paid_minor_units == 13
        assert deposit.customer_email == ""
        assert DepositPaymentEvent.from_stripe_event(
            {"type": "payment_intent.succeeded", "data": "junk"}
        ).amount_paid_minor_units == 0
