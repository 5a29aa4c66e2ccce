"""
Stripe invoicing and deposit intents

Invoice flow for "invoice only" quotes:
  customer (found by email or created) -> draft invoice -> invoice items -> finalize

Each item is attached to its own draft (pending items are never swept in), so a
run that fails half way can not leak lines onto a later invoice for the same
customer. A draft whose items or finalization failed is deleted.

Invoices are created with auto_advance=False and collection_method=send_invoice
so Stripe never emails the customer itself; the hosted invoice link goes out in
our own confirmation email instead.
"""

import logging
from typing import Dict, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from memorial_intake.services.errors import InvoiceIssuanceFailed

logger = logging.getLogger("invoice_issuer")


class InvoiceIssuer:

    def __init__(self, api_key: str, currency: str = "gbp", stripe_module=stripe):
        self.api_key = api_key
        self.currency = currency
        self._stripe = stripe_module

    async def _call(self, stage: str, fn, *args, **kwargs):
        try:
            return await run_in_threadpool(fn, *args, api_key=self.api_key, **kwargs)
        except self._stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.error(f"Stripe {stage} error: {message}")
            raise InvoiceIssuanceFailed(stage, message) from e

    async def find_or_create_customer(self, email: str, name: str, phone: Optional[str] = None) -> str:
        if not email:
            raise InvoiceIssuanceFailed("customer", "customer email is required")

        existing = await self._call("customer", self._stripe.Customer.list, email=email, limit=1)
        if existing.data:
            return existing.data[0].id

        params = {"email": email, "name": name}
        if phone:
            params["phone"] = phone
        customer = await self._call("customer", self._stripe.Customer.create, **params)
        logger.info(f"Stripe customer {customer.id} created for {email}")
        return customer.id

    async def issue_invoice(self, customer_id: str, metadata: Dict[str, str], due_in_days: int) -> str:
        """Open an empty draft invoice; items are added to it explicitly."""
        invoice = await self._call(
            "invoice", self._stripe.Invoice.create,
            customer=customer_id,
            collection_method="send_invoice",
            days_until_due=due_in_days,
            auto_advance=False,
            pending_invoice_items_behavior="exclude",
            metadata=metadata,
        )
        return invoice.id

    async def add_line_item(self, customer_id: str, invoice_id: str, amount_minor: int, description: str) -> str:
        item = await self._call(
            "line_item", self._stripe.InvoiceItem.create,
            customer=customer_id,
            invoice=invoice_id,
            amount=amount_minor,
            currency=self.currency,
            description=description,
        )
        return item.id

    async def finalize(self, invoice_id: str) -> str:
        """Finalize a draft invoice and return its hosted payment page."""
        invoice = await self._call(
            "finalize", self._stripe.Invoice.finalize_invoice, invoice_id, auto_advance=False,
        )
        url = getattr(invoice, "hosted_invoice_url", None)
        if not url:
            raise InvoiceIssuanceFailed("finalize", f"invoice {invoice_id} has no hosted URL")
        logger.info(f"Stripe invoice {invoice_id} finalized")
        return url

    async def discard_draft(self, invoice_id: str) -> bool:
        """Delete an unfinalized draft along with its items. Failures are logged, not raised."""
        try:
            await self._call("discard", self._stripe.Invoice.delete, invoice_id)
        except InvoiceIssuanceFailed:
            logger.warning(f"Draft invoice {invoice_id} could not be deleted")
            return False
        logger.info(f"Draft invoice {invoice_id} deleted")
        return True

    # ==================== DEPOSIT ====================

    async def create_deposit_intent(self, amount_minor: int, metadata: Dict[str, str],
                                    description: str) -> str:
        """Create the PaymentIntent behind the site's deposit card form; returns its client secret."""
        intent = await self._call(
            "payment_intent", self._stripe.PaymentIntent.create,
            amount=amount_minor,
            currency=self.currency,
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
            description=description,
        )
        return intent.client_secret
