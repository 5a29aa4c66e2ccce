"""
Stripe payloads: deposit intent requests and payment callbacks.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

PAYMENT_SUCCEEDED = "payment_intent.succeeded"


class DepositPaymentEvent(BaseModel):
    """
    A deposit captured through the site's card form.

    Built from a ``payment_intent.succeeded`` event; the customer fields come
    from the metadata the deposit PaymentIntent was created with.
    """
    model_config = ConfigDict(frozen=True)

    event_id: str = ""
    payment_intent_id: str = ""
    customer_name: str = ""
    customer_email: str = ""
    location: str = ""
    product_name: str = ""
    invoice_id: str = ""
    amount_paid_minor_units: int = 0

    @classmethod
    def from_stripe_event(cls, event: Dict[str, Any]) -> Optional["DepositPaymentEvent"]:
        """
        None for any event type other than a succeeded PaymentIntent.

        Malformed sections (non-object data/metadata, non-numeric amounts) are
        read as empty rather than rejected; the callback is still acknowledged.
        """
        if event.get("type") != PAYMENT_SUCCEEDED:
            return None
        intent = _mapping(_mapping(event.get("data")).get("object"))
        metadata = _mapping(intent.get("metadata"))
        amount = intent.get("amount_received")
        if amount is None:
            amount = intent.get("amount")
        return cls(
            event_id=str(event.get("id") or ""),
            payment_intent_id=str(intent.get("id") or ""),
            customer_name=str(metadata.get("customer_name") or ""),
            customer_email=str(metadata.get("customer_email") or "").strip(),
            location=str(metadata.get("cemetery") or ""),
            product_name=str(metadata.get("product") or ""),
            invoice_id=str(metadata.get("invoice_id") or ""),
            amount_paid_minor_units=_minor_units(amount),
        )


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _minor_units(value: Any) -> int:
    """Whole minor units; anything non-numeric counts as 0."""
    if isinstance(value, bool) or value is None:
        return 0
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite() or amount < 0:
            return 0
        return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return 0


class DepositIntentRequest(BaseModel):
    """Body posted by the site's deposit form before it mounts the card element."""
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    amount: Optional[Any] = None        # pounds, number or numeric string
    name: str = ""
    email: str = ""
    cemetery: str = ""
    product: str = ""
    invoice_id: str = Field(default="", validation_alias=AliasChoices("invoiceId", "invoice_id"))

    @field_validator("name", "email", "cemetery", "product", "invoice_id", mode="before")
    @classmethod
    def none_is_blank(cls, value):
        return "" if value is None else str(value).strip()
