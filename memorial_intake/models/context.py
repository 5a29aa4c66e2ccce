"""
State carried from one orchestration step to the next.

Every step receives the context produced by the previous one and returns a new
copy; nothing is mutated in place, so a run that stops halfway can be inspected
exactly as it was when it stopped.
"""

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


class StepFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: str
    error: str


class OrchestrationContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    submitted_at: str

    # Stripe (invoice issuer)
    processor_customer_id: Optional[str] = None
    processor_invoice_id: Optional[str] = None
    hosted_invoice_url: Optional[str] = None

    # Supabase (record store)
    customer_record_id: Optional[str] = None
    order_record_id: Optional[str] = None
    invoice_record_id: Optional[str] = None
    inscription_record_id: Optional[str] = None

    task_id: Optional[str] = None
    crm_contact_id: Optional[str] = None

    completed: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()
    failures: Tuple[StepFailure, ...] = ()

    def with_values(self, **values) -> "OrchestrationContext":
        return self.model_copy(update=values)

    def mark_completed(self, step: str) -> "OrchestrationContext":
        return self.model_copy(update={"completed": self.completed + (step,)})

    def mark_skipped(self, step: str) -> "OrchestrationContext":
        return self.model_copy(update={"skipped": self.skipped + (step,)})

    def mark_failed(self, step: str, error: str) -> "OrchestrationContext":
        failure = StepFailure(step=step, error=error)
        return self.model_copy(update={"failures": self.failures + (failure,)})

    def failed(self, step: str) -> bool:
        return any(f.step == step for f in self.failures)
