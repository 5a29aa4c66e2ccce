"""
Website form submissions.

Two shapes arrive on the same endpoint: a free-text enquiry and a structured
quote for a configured memorial. Field names follow the JSON the site posts
(camelCase where the site uses it).
"""

from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class SubmissionKind(str, Enum):
    ENQUIRY = "enquiry"
    QUOTE = "quote"


class PaymentPreference(str, Enum):
    DEPOSIT = "deposit"
    INVOICE_ONLY = "invoice_only"


def _text_or_none(value):
    """Numbers become strings; blanks and any other non-text value become None."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        return value if value.strip() else None
    return None


class AddonLineItem(BaseModel):
    """An extra on the memorial. No price means included, not charged separately."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    price: Optional[str] = None

    normalize_price = field_validator("price", mode="before")(_text_or_none)


class ProductConfiguration(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    name: Optional[str] = None
    type: Optional[str] = None          # category, e.g. "Headstone"
    colour: Optional[str] = None        # stone finish
    size: Optional[str] = None
    image: Optional[str] = None
    inscription: Optional[str] = None
    price: Optional[str] = None         # grand total incl. installation
    addon_line_items: List[AddonLineItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("addonLineItems", "addon_line_items"),
    )
    addons: List[str] = Field(default_factory=list)

    normalize_text = field_validator(
        "name", "type", "colour", "size", "image", "inscription", "price", mode="before"
    )(_text_or_none)

    @field_validator("addon_line_items", "addons", mode="before")
    @classmethod
    def none_is_empty(cls, value):
        return value or []


class Submission(BaseModel):
    """
    One inbound form post.

    name and email are mandatory for both kinds; enquiries also need a message
    (checked by the router, since quotes may omit it).
    """
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    kind: SubmissionKind = Field(
        default=SubmissionKind.ENQUIRY,
        validation_alias=AliasChoices("kind", "type"),
    )
    name: str
    email: str
    phone: Optional[str] = None
    message: Optional[str] = None
    location: Optional[str] = None      # cemetery / site
    enquiry_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("enquiry_type", "enquiryType"),
    )
    product: Optional[ProductConfiguration] = None
    payment_preference: Optional[PaymentPreference] = Field(
        default=None,
        validation_alias=AliasChoices("paymentPreference", "payment_preference"),
    )

    @field_validator("kind", mode="before")
    @classmethod
    def classify_kind(cls, value):
        # Anything that is not exactly "quote" is handled as an enquiry
        if value == SubmissionKind.QUOTE.value:
            return SubmissionKind.QUOTE
        return SubmissionKind.ENQUIRY

    @field_validator("name", "email", mode="before")
    @classmethod
    def required_text(cls, value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError("required")
        return value.strip()

    normalize_optional = field_validator(
        "phone", "message", "location", "enquiry_type", mode="before"
    )(_text_or_none)

    @field_validator("payment_preference", mode="before")
    @classmethod
    def known_preference(cls, value):
        if isinstance(value, str) and value.strip().lower() in {p.value for p in PaymentPreference}:
            return value.strip().lower()
        return None

    @property
    def is_quote(self) -> bool:
        return self.kind is SubmissionKind.QUOTE

    @property
    def invoice_only(self) -> bool:
        return self.is_quote and self.payment_preference is PaymentPreference.INVOICE_ONLY

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0]

    @property
    def last_name(self) -> str:
        return " ".join(self.name.split(" ")[1:])

    @property
    def product_or_empty(self) -> ProductConfiguration:
        return self.product or ProductConfiguration()
