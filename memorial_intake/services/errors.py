"""
Typed failures raised by the provider adapters.

Adapters translate whatever their SDK or HTTP client raises into one of these,
so the orchestrators only ever deal with IntegrationError.
"""

from typing import Optional, Union


class IntegrationError(Exception):
    """Base class for a failed call to an external system."""


class EmailDeliveryFailed(IntegrationError):
    def __init__(self, status_code: Optional[int], provider_message: str = ""):
        self.status_code = status_code
        self.provider_message = provider_message
        super().__init__(f"Email delivery failed ({status_code}): {provider_message}")


class TaskCreationFailed(IntegrationError):
    def __init__(self, provider_message: str = ""):
        self.provider_message = provider_message
        super().__init__(f"Task creation failed: {provider_message}")


class RecordStoreFailed(IntegrationError):
    def __init__(self, operation: str, status_code: Optional[Union[int, str]] = None, detail: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Record store {operation} failed ({status_code}): {detail}")


class CrmUpsertFailed(IntegrationError):
    def __init__(self, status_code: Optional[int], detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"CRM upsert failed ({status_code}): {detail}")


class InvoiceIssuanceFailed(IntegrationError):
    """stage: customer | line_item | invoice | finalize | payment_intent"""

    def __init__(self, stage: str, provider_message: str = ""):
        self.stage = stage
        self.provider_message = provider_message
        super().__init__(f"Invoice issuance failed at {stage}: {provider_message}")


class CriticalStepFailed(Exception):
    """A critical orchestration step failed; the submission must be reported as failed."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"Critical step '{step}' failed: {cause}")


# ==================== WEBHOOK ====================

class WebhookRejected(Exception):
    """A payment callback that must be answered with 400 and not processed."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidSignature(WebhookRejected):
    def __init__(self):
        super().__init__("Invalid signature")


class InvalidPayload(WebhookRejected):
    def __init__(self):
        super().__init__("Invalid JSON")
