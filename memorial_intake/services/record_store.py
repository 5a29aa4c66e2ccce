"""
Supabase record store

Tables written by the intake pipeline:
  customers    — contact info (first_name, last_name, email, phone)
  orders       — one row per submission (sku, color, value, order_type, contact, location)
  invoices     — quote invoices (order_id, customer_id, amount, status, due_date)
  inscriptions — inscription text for quotes that carry one

Each write is an insert, or a single-row update keyed by id.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from supabase import AsyncClient, acreate_client

from memorial_intake.services.errors import RecordStoreFailed

logger = logging.getLogger("record_store")


def _row_id(response, operation: str) -> str:
    rows = getattr(response, "data", None) or []
    if not rows or rows[0].get("id") is None:
        raise RecordStoreFailed(operation, None, "no row returned")
    return str(rows[0]["id"])


def _as_number(amount: Optional[Decimal]) -> Optional[float]:
    return float(amount) if amount is not None else None


class RecordStore:

    def __init__(self, url: str, service_key: str, client: Optional[AsyncClient] = None):
        self.url = url
        self.service_key = service_key
        self._client = client

    async def _run(self, operation: str, table: str, build):
        """
        Run one PostgREST request against a fresh query on `table`.
        Any failure comes out as RecordStoreFailed(operation, ...).
        """
        try:
            if self._client is None:
                self._client = await acreate_client(self.url, self.service_key)
            return await build(self._client.table(table)).execute()
        except Exception as e:
            # postgrest APIError carries the PostgREST/Postgres error code
            code = getattr(e, "code", None)
            logger.error(f"Supabase {operation} error {code}: {e}")
            raise RecordStoreFailed(operation, code, str(e)) from e

    # ==================== CUSTOMERS ====================

    async def upsert_customer(self, first_name: str, last_name: str, email: str,
                              phone: Optional[str] = None) -> str:
        """Return the id of the customer with this email, creating the row if needed."""
        found = await self._run(
            "upsert_customer", "customers",
            lambda q: q.select("id").eq("email", email).limit(1),
        )
        if getattr(found, "data", None):
            customer_id = str(found.data[0]["id"])
            changes: Dict[str, Any] = {"first_name": first_name, "last_name": last_name or None}
            if phone:
                changes["phone"] = phone
            await self._run(
                "upsert_customer", "customers",
                lambda q: q.update(changes).eq("id", customer_id),
            )
            return customer_id

        created = await self._run(
            "upsert_customer", "customers",
            lambda q: q.insert({
                "first_name": first_name,
                "last_name": last_name or None,
                "email": email,
                "phone": phone or None,
            }),
        )
        return _row_id(created, "upsert_customer")

    # ==================== ORDERS ====================

    async def create_order(self, row: Dict[str, Any]) -> str:
        created = await self._run("create_order", "orders", lambda q: q.insert(row))
        order_id = _row_id(created, "create_order")
        logger.info(f"Order {order_id} created for {row.get('customer_email')}")
        return order_id

    async def mark_latest_order_deposit_paid(self, email: str, amount: Decimal,
                                             payment_intent_id: str = "") -> Optional[str]:
        """
        Flag the customer's most recent order as deposit-paid.

        Orders are matched on customer_email only: with two open quotes from the
        same address the deposit lands on the newest one.
        Returns the updated order id, None when the customer has no order.
        """
        latest = await self._run(
            "update_deposit", "orders",
            lambda q: q.select("id").eq("customer_email", email).order("created_at", desc=True).limit(1),
        )
        if not getattr(latest, "data", None):
            logger.warning(f"No order found for deposit from {email}")
            return None

        order_id = str(latest.data[0]["id"])
        changes: Dict[str, Any] = {"deposit_paid": True, "deposit_amount": _as_number(amount)}
        if payment_intent_id:
            changes["stripe_pi_id"] = payment_intent_id
        await self._run(
            "update_deposit", "orders",
            lambda q: q.update(changes).eq("id", order_id),
        )
        logger.info(f"Order {order_id} marked deposit paid ({amount})")
        return order_id

    # ==================== INVOICES ====================

    async def create_invoice(self, order_id: Optional[str], amount: Decimal, status: str,
                             due_date: date, customer_id: Optional[str] = None) -> str:
        created = await self._run("create_invoice", "invoices", lambda q: q.insert({
            "order_id": order_id,
            "customer_id": customer_id,
            "amount": _as_number(amount),
            "status": status,
            "due_date": due_date.isoformat(),
        }))
        return _row_id(created, "create_invoice")

    # ==================== INSCRIPTIONS ====================

    async def record_inscription(self, text: str, order_id: Optional[str] = None) -> str:
        created = await self._run("record_inscription", "inscriptions", lambda q: q.insert({
            "inscription_text": text,
            "order_id": order_id,
        }))
        return _row_id(created, "record_inscription")
