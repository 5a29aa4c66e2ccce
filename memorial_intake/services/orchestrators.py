"""
Enquiry and quote orchestration

Each submission becomes an ordered list of steps run by StepRunner. Only the
business notification email is critical: if it fails the lead has not reached
the business and the caller gets a server error. Everything else is
best-effort and never changes the response.

Quote steps, in order:
  1. issue_invoice         (invoice_only quotes with Stripe configured)
  2. business_email        CRITICAL
  3. customer_email
  4. create_task
  5. upsert_customer -> create_order -> create_invoice_row -> record_inscription
  6. upsert_crm_contact

Enquiries run the same list without steps 1, create_invoice_row and
record_inscription.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from memorial_intake.config import BusinessProfile, format_submitted_at, now_utc, to_local
from memorial_intake.models import OrchestrationContext, Submission
from memorial_intake.services.documents import DocumentRenderer
from memorial_intake.services.integrations import Integrations
from memorial_intake.services.money import (
    MoneyBreakdown,
    breakdown,
    format_money,
    invoice_lines,
)
from memorial_intake.services.steps import Step, StepRunner, best_effort, critical

logger = logging.getLogger("orchestrator")

RECORDS_GROUP = "records"
INVOICE_ROW_STATUS = "pending"


def slugify(value: str) -> str:
    """"Kerb Set" -> "kerb-set" """
    return re.sub(r"\s+", "-", value.strip().lower())


class SubmissionOrchestrator:
    """Shared steps and wiring for both kinds of submission."""

    kind = ""

    def __init__(self, integrations: Integrations, business: BusinessProfile,
                 renderer: Optional[DocumentRenderer] = None,
                 clock: Callable[[], datetime] = now_utc):
        self.integrations = integrations
        self.business = business
        self.renderer = renderer or DocumentRenderer(business)
        self.clock = clock

    async def handle(self, submission: Submission) -> Dict[str, Any]:
        """
        Run every step for one submission and build the response body.
        Raises CriticalStepFailed when the business email cannot be sent.
        """
        moment = self.clock()
        money = breakdown(submission.product) if submission.is_quote else MoneyBreakdown()
        context = OrchestrationContext(
            submitted_at=format_submitted_at(moment, self.business.timezone),
        )
        steps = self.build_steps(submission, money, self._local_date(moment))

        logger.info(f"New {self.kind} from {submission.email}")
        context = await StepRunner(f"{self.kind} {submission.email}").run(steps, context)
        logger.info(
            f"{self.kind.capitalize()} from {submission.email} done: "
            f"{len(context.completed)} completed, {len(context.skipped)} skipped, "
            f"{len(context.failures)} failed"
        )
        return self.respond(submission, context)

    def build_steps(self, submission: Submission, money: MoneyBreakdown, today: date) -> List[Step]:
        raise NotImplementedError

    def respond(self, submission: Submission, context: OrchestrationContext) -> Dict[str, Any]:
        return {"ok": True}

    def _local_date(self, moment: datetime) -> date:
        return to_local(moment, self.business.timezone).date()

    # ==================== EMAIL ====================

    def business_email_step(self, submission: Submission, money: MoneyBreakdown) -> Step:
        async def send_business_email(context: OrchestrationContext) -> OrchestrationContext:
            await self.integrations.email.send(
                self.business.sender,
                self.business.email,
                self.renderer.business_subject(submission),
                self.renderer.render_business_notification(submission, money, context),
            )
            return context

        return critical("business_email", send_business_email)

    def customer_email_step(self, submission: Submission, money: MoneyBreakdown) -> Step:
        async def send_customer_email(context: OrchestrationContext) -> OrchestrationContext:
            await self.integrations.email.send(
                self.business.sender,
                submission.email,
                self.renderer.customer_subject(submission),
                self.renderer.render_customer_confirmation(submission, money, context),
            )
            return context

        return best_effort("customer_email", send_customer_email)

    # ==================== TASK ====================

    def task_step(self, submission: Submission, money: MoneyBreakdown) -> Step:
        async def create_task(context: OrchestrationContext) -> OrchestrationContext:
            description = self.renderer.render_task_description(submission, money, context)
            task_id = await self.integrations.tasks.create_task(
                self.renderer.task_title(submission),
                description.body,
                self.business.task_list_id,
            )
            return context.with_values(task_id=task_id or None)

        return best_effort("create_task", create_task, enabled=self.integrations.tasks is not None)

    # ==================== RECORDS ====================

    def order_type(self, submission: Submission) -> str:
        raise NotImplementedError

    def record_steps(self, submission: Submission, money: MoneyBreakdown) -> List[Step]:
        records = self.integrations.records
        enabled = records is not None

        async def upsert_customer(context: OrchestrationContext) -> OrchestrationContext:
            customer_id = await records.upsert_customer(
                submission.first_name, submission.last_name, submission.email, submission.phone,
            )
            return context.with_values(customer_record_id=customer_id)

        async def create_order(context: OrchestrationContext) -> OrchestrationContext:
            product = submission.product_or_empty
            row = {
                "customer_name": submission.name,
                "customer_email": submission.email,
                "customer_phone": submission.phone,
                "order_type": self.order_type(submission),
                "sku": product.name,
                "color": product.colour,
                "value": float(money.grand_total) if money.price_parsed else None,
                "location": submission.location,
            }
            if context.customer_record_id:
                row["customer_id"] = context.customer_record_id
            order_id = await records.create_order(row)
            return context.with_values(order_record_id=order_id)

        return [
            best_effort("upsert_customer", upsert_customer, enabled=enabled, group=RECORDS_GROUP),
            best_effort("create_order", create_order, enabled=enabled, group=RECORDS_GROUP),
        ]

    # ==================== CRM ====================

    def crm_tags(self, submission: Submission) -> List[str]:
        raise NotImplementedError

    def crm_custom_fields(self, submission: Submission, money: MoneyBreakdown) -> List[Dict[str, str]]:
        return []

    def crm_step(self, submission: Submission, money: MoneyBreakdown) -> Step:
        async def upsert_crm_contact(context: OrchestrationContext) -> OrchestrationContext:
            contact_id = await self.integrations.crm.upsert_contact(
                submission.name,
                submission.email,
                phone=submission.phone,
                tags=self.crm_tags(submission),
                custom_fields=self.crm_custom_fields(submission, money),
            )
            return context.with_values(crm_contact_id=contact_id or None)

        return best_effort("upsert_crm_contact", upsert_crm_contact, enabled=self.integrations.crm is not None)


class EnquiryOrchestrator(SubmissionOrchestrator):
    kind = "enquiry"

    def build_steps(self, submission: Submission, money: MoneyBreakdown, today: date) -> List[Step]:
        return [
            self.business_email_step(submission, money),
            self.customer_email_step(submission, money),
            self.task_step(submission, money),
            *self.record_steps(submission, money),
            self.crm_step(submission, money),
        ]

    def order_type(self, submission: Submission) -> str:
        return submission.enquiry_type or "enquiry"

    def crm_tags(self, submission: Submission) -> List[str]:
        return ["website-lead", "enquiry"]


class QuoteOrchestrator(SubmissionOrchestrator):
    kind = "quote"

    def build_steps(self, submission: Submission, money: MoneyBreakdown, today: date) -> List[Step]:
        steps = []
        if submission.invoice_only:
            steps.append(self.invoice_step(submission, money))
        steps += [
            self.business_email_step(submission, money),
            self.customer_email_step(submission, money),
            self.task_step(submission, money),
            *self.record_steps(submission, money),
        ]
        if money.price_parsed:
            steps.append(self.invoice_row_step(money, today))
        if submission.product_or_empty.inscription:
            steps.append(self.inscription_step(submission))
        steps.append(self.crm_step(submission, money))
        return steps

    def respond(self, submission: Submission, context: OrchestrationContext) -> Dict[str, Any]:
        return {
            "ok": True,
            "invoiceId": context.invoice_record_id,
            "invoiceOnly": submission.invoice_only,
            "hostedInvoiceUrl": context.hosted_invoice_url,
        }

    def order_type(self, submission: Submission) -> str:
        return "quote"

    # ==================== STRIPE INVOICE ====================

    def invoice_step(self, submission: Submission, money: MoneyBreakdown) -> Step:
        product = submission.product_or_empty
        base_description = product.name or "Memorial"
        if product.colour:
            base_description += f" ({product.colour})"
        lines = invoice_lines(money, base_description)

        async def issue_invoice(context: OrchestrationContext) -> OrchestrationContext:
            issuer = self.integrations.invoices
            customer_id = await issuer.find_or_create_customer(
                submission.email, submission.name, submission.phone,
            )
            context = context.with_values(processor_customer_id=customer_id)

            metadata = {
                "customer_name": submission.name,
                "customer_email": submission.email,
                "product": product.name or "",
                "stone_colour": product.colour or "",
                "size": product.size or "",
                "cemetery": submission.location or "",
                "source": "website-quote",
            }
            invoice_id = await issuer.issue_invoice(customer_id, metadata, self.business.invoice_due_days)
            context = context.with_values(processor_invoice_id=invoice_id)

            try:
                for line in lines:
                    await issuer.add_line_item(customer_id, invoice_id, line.amount_minor, line.description)
                hosted_url = await issuer.finalize(invoice_id)
            except Exception:
                await issuer.discard_draft(invoice_id)
                raise
            logger.info(f"Invoice {invoice_id} issued to {submission.email}: {hosted_url}")
            return context.with_values(hosted_invoice_url=hosted_url)

        if self.integrations.invoices is None:
            return best_effort("issue_invoice", issue_invoice, enabled=False)
        if not lines:
            return best_effort("issue_invoice", issue_invoice, enabled=False, skip_reason="nothing to bill")
        return best_effort("issue_invoice", issue_invoice)

    # ==================== RECORDS ====================

    def invoice_row_step(self, money: MoneyBreakdown, today: date) -> Step:
        due_date = today + timedelta(days=self.business.invoice_due_days)

        async def create_invoice_row(context: OrchestrationContext) -> OrchestrationContext:
            invoice_id = await self.integrations.records.create_invoice(
                context.order_record_id,
                money.grand_total,
                INVOICE_ROW_STATUS,
                due_date,
                customer_id=context.customer_record_id,
            )
            return context.with_values(invoice_record_id=invoice_id)

        return best_effort(
            "create_invoice_row", create_invoice_row,
            enabled=self.integrations.records is not None, group=RECORDS_GROUP,
        )

    def inscription_step(self, submission: Submission) -> Step:
        text = submission.product_or_empty.inscription

        async def record_inscription(context: OrchestrationContext) -> OrchestrationContext:
            inscription_id = await self.integrations.records.record_inscription(
                text, order_id=context.order_record_id,
            )
            return context.with_values(inscription_record_id=inscription_id)

        return best_effort(
            "record_inscription", record_inscription,
            enabled=self.integrations.records is not None, group=RECORDS_GROUP,
        )

    # ==================== CRM ====================

    def crm_tags(self, submission: Submission) -> List[str]:
        tags = ["website-lead", "quote-request"]
        product_type = submission.product_or_empty.type
        if product_type:
            tags.append(slugify(product_type))
        return tags

    def crm_custom_fields(self, submission: Submission, money: MoneyBreakdown) -> List[Dict[str, str]]:
        product = submission.product_or_empty
        fields = []
        if product.name:
            fields.append({"key": "memorial_product", "field_value": product.name})
        if product.colour:
            fields.append({"key": "stone_colour", "field_value": product.colour})
        if product.size:
            fields.append({"key": "memorial_size", "field_value": product.size})
        if money.price_parsed:
            fields.append({"key": "guide_price", "field_value": f"£{format_money(money.grand_total)}"})
        return fields
