import asyncio

import pytest

from troubleshooting_workflow.domain.models import ValidationRule
from troubleshooting_workflow.execution.validation import ValidationRunner


def rule(rule_id, predicate, message=None):
    return ValidationRule(
        id=rule_id,
        description=f"{rule_id} check",
        predicate=predicate,
        error_message=message or f"{rule_id} failed",
    )


@pytest.mark.asyncio
async def test_reports_every_failing_rule_in_order():
    rules = [
        rule("first", lambda ctx: False),
        rule("second", lambda ctx: True),
        rule("third", lambda ctx: False),
    ]

    errors = await ValidationRunner().run(rules, context=None)

    assert errors == ["first failed", "third failed"]


@pytest.mark.asyncio
async def test_no_rules_means_valid():
    assert await ValidationRunner().run([], context=None) == []


@pytest.mark.asyncio
async def test_async_predicates_are_awaited():
    async def has_value(ctx):
        await asyncio.sleep(0)
        return ctx["value"] is not None

    runner = ValidationRunner(timeout=1.0)

    assert await runner.run([rule("value", has_value)], {"value": 1}) == []
    assert await runner.run([rule("value", has_value)], {"value": None}) == ["value failed"]


@pytest.mark.asyncio
async def test_raising_predicate_becomes_error_message():
    def explode(ctx):
        raise RuntimeError("boom")

    errors = await ValidationRunner().run(
        [rule("explode", explode), rule("after", lambda ctx: False)], context=None
    )

    assert errors == ["Validation error: boom", "after failed"]


@pytest.mark.asyncio
async def test_slow_predicate_times_out():
    async def slow(ctx):
        await asyncio.sleep(5)
        return True

    errors = await ValidationRunner(timeout=0.01).run([rule("slow", slow)], context=None)

    assert errors == ["Validation timed out: slow check"]


@pytest.mark.asyncio
async def test_sync_predicate_ignores_timeout():
    errors = await ValidationRunner(timeout=0.01).run([rule("sync", lambda ctx: True)], None)

    assert errors == []
