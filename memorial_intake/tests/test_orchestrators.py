"""
Orchestration tests
Enquiry and quote fan-out against in-memory integrations:
- ordering and halt on business email failure
- best-effort failures invisible to the caller
- invoice-only quotes and the hosted invoice link
- record writes without rollback
"""

from datetime import date
from decimal import Decimal

import pytest

from memorial_intake.models import Submission
from memorial_intake.services.errors import CriticalStepFailed
from memorial_intake.services.orchestrators import EnquiryOrchestrator, QuoteOrchestrator, slugify

from .fakes import BUSINESS, HOSTED_URL, FakeIntegrations, enquiry_payload, fixed_clock, quote_payload


async def run_enquiry(integrations, **overrides):
    orchestrator = EnquiryOrchestrator(integrations, BUSINESS, clock=fixed_clock)
    return await orchestrator.handle(Submission.model_validate(enquiry_payload(**overrides)))


async def run_quote(integrations, payload=None, **overrides):
    orchestrator = QuoteOrchestrator(integrations, BUSINESS, clock=fixed_clock)
    return await orchestrator.handle(Submission.model_validate(payload or quote_payload(**overrides)))


class TestEnquiry:

    @pytest.mark.asyncio
    async def test_jane_doe(self):
        integrations = FakeIntegrations()
        response = await run_enquiry(integrations)

        assert response == {"ok": True}
        business = integrations.email.to("info@searsmelvin.co.uk")
        assert len(business) == 1
        assert "Jane Doe" in business[0]["subject"]
        assert business[0]["sender"] == "Sears Melvin Memorials <info@searsmelvin.co.uk>"
        assert len(integrations.email.to("jane@example.com")) == 1
        print("✓ Enquiry emails sent to business and customer")

    @pytest.mark.asyncio
    async def test_step_order(self):
        integrations = FakeIntegrations()
        await run_enquiry(integrations)
        assert integrations.journal == [
            "email.send:info@searsmelvin.co.uk",
            "email.send:jane@example.com",
            "tasks.create_task",
            "records.upsert_customer",
            "records.create_order",
            "crm.upsert_contact",
        ]

    @pytest.mark.asyncio
    async def test_business_email_failure_halts(self):
        integrations = FakeIntegrations(email_fail_for={"info@searsmelvin.co.uk"})
        with pytest.raises(CriticalStepFailed):
            await run_enquiry(integrations)
        assert integrations.journal == ["email.send:info@searsmelvin.co.uk"]
        assert integrations.tasks.created == []
        assert integrations.records.orders == []
        assert integrations.crm.contacts == []

    @pytest.mark.asyncio
    async def test_task_failure_is_invisible(self):
        integrations = FakeIntegrations(task_fails=True)
        response = await run_enquiry(integrations)
        assert response == {"ok": True}
        assert "records.create_order" in integrations.journal
        assert "crm.upsert_contact" in integrations.journal

    @pytest.mark.asyncio
    async def test_customer_email_failure_is_invisible(self):
        integrations = FakeIntegrations(email_fail_for={"jane@example.com"})
        assert await run_enquiry(integrations) == {"ok": True}
        assert len(integrations.tasks.created) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_integrations_are_skipped(self):
        integrations = FakeIntegrations(tasks=False, records=False, crm=False, invoices=False)
        assert await run_enquiry(integrations) == {"ok": True}
        assert integrations.journal == [
            "email.send:info@searsmelvin.co.uk",
            "email.send:jane@example.com",
        ]

    @pytest.mark.asyncio
    async def test_order_row_uses_enquiry_type(self):
        integrations = FakeIntegrations()
        await run_enquiry(integrations, enquiry_type="memorial-repair", location="Croydon Cemetery")
        order = integrations.records.orders[0]
        assert order["order_type"] == "memorial-repair"
        assert order["customer_id"] == "cust-1"
        assert order["location"] == "Croydon Cemetery"
        assert order["value"] is None

    @pytest.mark.asyncio
    async def test_order_type_defaults_to_enquiry(self):
        integrations = FakeIntegrations()
        await run_enquiry(integrations)
        assert integrations.records.orders[0]["order_type"] == "enquiry"
        assert integrations.crm.contacts[0]["tags"] == ["website-lead", "enquiry"]

    @pytest.mark.asyncio
    async def test_task_goes_to_business_list(self):
        integrations = FakeIntegrations()
        await run_enquiry(integrations)
        task = integrations.tasks.created[0]
        assert task["title"] == "New Enquiry — Jane Doe"
        assert task["list_id"] == "901207633256"
        assert "Submitted: 19 Oct 2026, 14:05" in task["description"]


class TestQuote:

    @pytest.mark.asyncio
    async def test_deposit_quote_does_not_invoice(self):
        integrations = FakeIntegrations()
        response = await run_quote(integrations, paymentPreference="deposit")
        assert response == {
            "ok": True,
            "invoiceId": "inv-row-1",
            "invoiceOnly": False,
            "hostedInvoiceUrl": None,
        }
        assert not any(entry.startswith("invoices.") for entry in integrations.journal)

    @pytest.mark.asyncio
    async def test_invoice_only_quote(self):
        integrations = FakeIntegrations()
        response = await run_quote(integrations, paymentPreference="invoice_only")

        assert response["hostedInvoiceUrl"] == HOSTED_URL
        assert response["invoiceOnly"] is True
        assert response["invoiceId"] == "inv-row-1"

        customer_email = integrations.email.to("margaret@example.com")[0]
        assert f'href="{HOSTED_URL}"' in customer_email["document"].body
        print("✓ Hosted invoice link embedded in customer confirmation")

    @pytest.mark.asyncio
    async def test_invoice_runs_before_business_email(self):
        integrations = FakeIntegrations()
        await run_quote(integrations, paymentPreference="invoice_only")
        assert integrations.journal[:6] == [
            "invoices.customer",
            "invoices.invoice",
            "invoices.line_item",
            "invoices.line_item",
            "invoices.finalize",
            "email.send:info@searsmelvin.co.uk",
        ]

    @pytest.mark.asyncio
    async def test_invoice_lines_sum_to_grand_total(self):
        integrations = FakeIntegrations()
        await run_quote(integrations, paymentPreference="invoice_only")
        items = integrations.invoices.line_items
        assert [item["amount"] for item in items] == [85000, 15000]
        assert {item["invoice"] for item in items} == {"in_1"}
        assert sum(item["amount"] for item in items) == 100000
        assert items[0]["description"] == "Classic Ogee Headstone (Black Galaxy)"

        invoice = integrations.invoices.invoices[0]
        assert invoice["due_in_days"] == 30
        assert invoice["metadata"]["customer_email"] == "margaret@example.com"

    @pytest.mark.asyncio
    async def test_invoice_failure_is_invisible(self):
        integrations = FakeIntegrations(invoice_fail_stage="finalize")
        response = await run_quote(integrations, paymentPreference="invoice_only")
        assert response["ok"] is True
        assert response["hostedInvoiceUrl"] is None
        assert len(integrations.email.to("info@searsmelvin.co.uk")) == 1
        customer_email = integrations.email.to("margaret@example.com")[0]
        assert "View &amp; pay" not in customer_email["document"].body

    @pytest.mark.asyncio
    async def test_failed_finalize_discards_draft(self):
        integrations = FakeIntegrations(invoice_fail_stage="finalize")
        await run_quote(integrations, paymentPreference="invoice_only")
        assert "invoices.discard" in integrations.journal
        assert integrations.invoices.invoices == []
        assert integrations.invoices.line_items == []

    @pytest.mark.asyncio
    async def test_resubmission_after_failure_bills_once(self):
        """A failed run leaves nothing behind for the next invoice from the same address."""
        integrations = FakeIntegrations(invoice_fail_stage="finalize")
        await run_quote(integrations, paymentPreference="invoice_only")

        integrations.invoices.fail_stage = None
        response = await run_quote(integrations, paymentPreference="invoice_only")

        assert response["hostedInvoiceUrl"] == HOSTED_URL
        items = integrations.invoices.line_items
        assert {item["invoice"] for item in items} == {"in_2"}
        assert sum(item["amount"] for item in items) == 100000
        print("✓ Resubmitted quote billed for its own lines only")

    @pytest.mark.asyncio
    async def test_failed_draft_adds_no_items(self):
        integrations = FakeIntegrations(invoice_fail_stage="invoice")
        await run_quote(integrations, paymentPreference="invoice_only")
        assert integrations.invoices.line_items == []
        assert "invoices.line_item" not in integrations.journal

    @pytest.mark.asyncio
    async def test_invoice_only_without_stripe(self):
        integrations = FakeIntegrations(invoices=False)
        response = await run_quote(integrations, paymentPreference="invoice_only")
        assert response["hostedInvoiceUrl"] is None
        assert response["invoiceOnly"] is True

    @pytest.mark.asyncio
    async def test_invoice_only_without_price_bills_nothing(self):
        payload = quote_payload(paymentPreference="invoice_only")
        payload["product"] = dict(payload["product"], price="POA")
        integrations = FakeIntegrations()
        response = await run_quote(integrations, payload)
        assert response["hostedInvoiceUrl"] is None
        assert response["invoiceId"] is None
        assert not any(entry.startswith("invoices.") for entry in integrations.journal)
        assert integrations.records.invoices == []

    @pytest.mark.asyncio
    async def test_business_email_failure_halts_before_records(self):
        integrations = FakeIntegrations(email_fail_for={"info@searsmelvin.co.uk"})
        with pytest.raises(CriticalStepFailed):
            await run_quote(integrations)
        assert integrations.tasks.created == []
        assert integrations.records.customers == []
        assert integrations.crm.contacts == []

    @pytest.mark.asyncio
    async def test_records(self):
        integrations = FakeIntegrations()
        await run_quote(integrations)
        records = integrations.records

        order = records.orders[0]
        assert order["order_type"] == "quote"
        assert order["sku"] == "Classic Ogee Headstone"
        assert order["color"] == "Black Galaxy"
        assert order["value"] == 1000.0

        invoice = records.invoices[0]
        assert invoice["order_id"] == "order-1"
        assert invoice["amount"] == Decimal("1000")
        assert invoice["status"] == "pending"
        assert invoice["due_date"] == date(2026, 11, 18)

        assert records.inscriptions[0]["inscription_text"] == "In loving memory\nof Arthur"
        assert records.inscriptions[0]["order_id"] == "order-1"

    @pytest.mark.asyncio
    async def test_failed_invoice_row_keeps_earlier_rows(self):
        integrations = FakeIntegrations(record_fail_on={"create_invoice"})
        response = await run_quote(integrations)

        assert response["ok"] is True
        assert response["invoiceId"] is None
        assert len(integrations.records.customers) == 1
        assert len(integrations.records.orders) == 1
        assert "records.record_inscription" not in integrations.journal
        assert "crm.upsert_contact" in integrations.journal

    @pytest.mark.asyncio
    async def test_crm_contact(self):
        integrations = FakeIntegrations()
        await run_quote(integrations)
        contact = integrations.crm.contacts[0]
        assert contact["tags"] == ["website-lead", "quote-request", "kerb-set"]
        assert {"key": "guide_price", "field_value": "£1,000"} in contact["custom_fields"]
        assert {"key": "memorial_product", "field_value": "Classic Ogee Headstone"} in contact["custom_fields"]

    @pytest.mark.asyncio
    async def test_crm_failure_is_invisible(self):
        integrations = FakeIntegrations(crm_fails=True)
        response = await run_quote(integrations)
        assert response["ok"] is True
        assert response["invoiceId"] == "inv-row-1"


def test_slugify():
    assert slugify("Kerb Set") == "kerb-set"
    assert slugify("  Book  Memorial ") == "book-memorial"
