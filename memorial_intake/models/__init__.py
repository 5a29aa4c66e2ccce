"""
Models package

from memorial_intake.models import Submission, ProductConfiguration, ...
"""

from .submission import (
    AddonLineItem,
    PaymentPreference,
    ProductConfiguration,
    Submission,
    SubmissionKind,
)
from .payment import PAYMENT_SUCCEEDED, DepositIntentRequest, DepositPaymentEvent
from .context import OrchestrationContext, StepFailure
from .document import Document

__all__ = [
    "AddonLineItem",
    "PaymentPreference",
    "ProductConfiguration",
    "Submission",
    "SubmissionKind",
    "PAYMENT_SUCCEEDED",
    "DepositIntentRequest",
    "DepositPaymentEvent",
    "OrchestrationContext",
    "StepFailure",
    "Document",
]
