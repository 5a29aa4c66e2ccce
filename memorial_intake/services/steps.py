"""
Step runner

An orchestration is an ordered list of steps. Each step takes the context left
by the previous one and returns an updated copy. The runner applies one policy
to all of them:

- CRITICAL: a failure raises CriticalStepFailed and nothing after it runs
- BEST_EFFORT: a failure is logged once, recorded in the context, and the run
  moves on to the next step
- a step whose integration is not configured is recorded as skipped
- steps sharing a group stop together: once one fails, the later steps of the
  same group are skipped (rows already written stay written)
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from memorial_intake.models import OrchestrationContext
from memorial_intake.services.errors import CriticalStepFailed, IntegrationError

logger = logging.getLogger("orchestrator")

StepOperation = Callable[[OrchestrationContext], Awaitable[OrchestrationContext]]


class Criticality(str, Enum):
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


class Step:
    """One named unit of work in an orchestration."""

    def __init__(self, name: str, criticality: Criticality, operation: StepOperation,
                 enabled: bool = True, group: Optional[str] = None,
                 skip_reason: str = "not configured"):
        self.name = name
        self.criticality = criticality
        self.operation = operation
        self.enabled = enabled
        self.group = group
        self.skip_reason = skip_reason

    def __repr__(self):
        return f"Step({self.name!r}, {self.criticality.value})"


def critical(name: str, operation: StepOperation, **kwargs) -> Step:
    return Step(name, Criticality.CRITICAL, operation, **kwargs)


def best_effort(name: str, operation: StepOperation, **kwargs) -> Step:
    return Step(name, Criticality.BEST_EFFORT, operation, **kwargs)


class StepRunner:

    def __init__(self, label: str = ""):
        # label prefixes every log line, e.g. "quote jane@example.com"
        self.label = label

    async def run(self, steps: Iterable[Step], context: OrchestrationContext) -> OrchestrationContext:
        failed_groups = set()

        for step in steps:
            if not step.enabled:
                logger.info(f"[{self.label}] {step.name}: skipped ({step.skip_reason})")
                context = context.mark_skipped(step.name)
                continue

            if step.group and step.group in failed_groups:
                logger.info(f"[{self.label}] {step.name}: skipped after earlier {step.group} failure")
                context = context.mark_skipped(step.name)
                continue

            try:
                context = await step.operation(context)
            except Exception as e:
                if step.criticality is Criticality.CRITICAL:
                    logger.error(f"[{self.label}] {step.name}: critical failure, halting: {e}")
                    raise CriticalStepFailed(step.name, e) from e

                if isinstance(e, IntegrationError):
                    logger.error(f"[{self.label}] {step.name} failed: {e} ({self._known_ids(context)})")
                else:
                    logger.exception(f"[{self.label}] {step.name} crashed ({self._known_ids(context)})")
                context = context.mark_failed(step.name, str(e))
                if step.group:
                    failed_groups.add(step.group)
                continue

            context = context.mark_completed(step.name)

        return context

    @staticmethod
    def _known_ids(context: OrchestrationContext) -> str:
        """Identifiers written so far, for manual reconciliation."""
        known = {
            "customer": context.customer_record_id,
            "order": context.order_record_id,
            "invoice_row": context.invoice_record_id,
            "stripe_invoice": context.processor_invoice_id,
            "task": context.task_id,
        }
        parts = [f"{key}={value}" for key, value in known.items() if value]
        return ", ".join(parts) or "no ids yet"
