"""
Step runner tests
Critical halt, best-effort continuation, skipped integrations, grouped writes.
"""

import pytest

from memorial_intake.models import OrchestrationContext
from memorial_intake.services.errors import CriticalStepFailed, TaskCreationFailed
from memorial_intake.services.steps import StepRunner, best_effort, critical


def recording(calls, name, error=None, **values):
    async def operation(context):
        calls.append(name)
        if error is not None:
            raise error
        return context.with_values(**values) if values else context
    return operation


@pytest.fixture
def context():
    return OrchestrationContext(submitted_at="19 Oct 2026, 14:05")


class TestStepRunner:

    @pytest.mark.asyncio
    async def test_runs_in_order_and_threads_context(self, context):
        calls = []
        seen = {}

        async def reads_task(ctx):
            seen["task_id"] = ctx.task_id
            return ctx

        steps = [
            best_effort("create_task", recording(calls, "create_task", task_id="task-1")),
            best_effort("read", reads_task),
        ]
        result = await StepRunner("test").run(steps, context)
        assert calls == ["create_task"]
        assert seen["task_id"] == "task-1"
        assert result.completed == ("create_task", "read")

    @pytest.mark.asyncio
    async def test_critical_failure_halts(self, context):
        calls = []
        steps = [
            critical("business_email", recording(calls, "business_email", error=RuntimeError("smtp down"))),
            best_effort("create_task", recording(calls, "create_task")),
        ]
        with pytest.raises(CriticalStepFailed) as exc_info:
            await StepRunner("test").run(steps, context)
        assert exc_info.value.step == "business_email"
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert calls == ["business_email"]

    @pytest.mark.asyncio
    async def test_best_effort_failure_continues(self, context):
        calls = []
        steps = [
            best_effort("create_task", recording(calls, "create_task", error=TaskCreationFailed("401"))),
            best_effort("upsert_crm_contact", recording(calls, "upsert_crm_contact", crm_contact_id="c-1")),
        ]
        result = await StepRunner("test").run(steps, context)
        assert calls == ["create_task", "upsert_crm_contact"]
        assert result.failed("create_task")
        assert result.crm_contact_id == "c-1"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, context):
        steps = [best_effort("create_task", recording([], "create_task", error=KeyError("id")))]
        result = await StepRunner("test").run(steps, context)
        assert result.failed("create_task")

    @pytest.mark.asyncio
    async def test_disabled_step_is_skipped(self, context):
        calls = []
        steps = [best_effort("create_task", recording(calls, "create_task"), enabled=False)]
        result = await StepRunner("test").run(steps, context)
        assert calls == []
        assert result.skipped == ("create_task",)

    @pytest.mark.asyncio
    async def test_group_failure_skips_rest_of_group_only(self, context):
        calls = []
        steps = [
            best_effort("upsert_customer", recording(calls, "upsert_customer", customer_record_id="cust-1"),
                        group="records"),
            best_effort("create_order", recording(calls, "create_order", error=TaskCreationFailed("x")),
                        group="records"),
            best_effort("record_inscription", recording(calls, "record_inscription"), group="records"),
            best_effort("upsert_crm_contact", recording(calls, "upsert_crm_contact")),
        ]
        result = await StepRunner("test").run(steps, context)
        assert calls == ["upsert_customer", "create_order", "upsert_crm_contact"]
        assert result.customer_record_id == "cust-1"
        assert "record_inscription" in result.skipped
