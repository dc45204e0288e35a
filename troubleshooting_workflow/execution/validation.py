"""
Validation - Step Validation Rules Runner

This module defines the ValidationRunner, a stateless class that executes a
step's validation predicates and aggregates the failures. Predicates may be
plain functions or coroutines; they are awaited one at a time in declaration
order, and every failing rule is reported (no short-circuit).
"""

import asyncio
import inspect
import logging
from typing import Any, List, Optional, Sequence

from ..domain.models import ValidationRule

logger = logging.getLogger(__name__)


class ValidationRunner:
    def __init__(self, timeout: Optional[float] = None):
        # Per-predicate timeout in seconds. None waits forever.
        self.timeout = timeout

    async def run(self, rules: Sequence[ValidationRule], context: Any) -> List[str]:
        """
        Runs every rule against the context.

        Returns:
            The error message of every failing rule, in declaration order.
            An empty list means the step is valid.
        """
        errors: List[str] = []

        for rule in rules:
            try:
                is_valid = await self._evaluate(rule, context)
            except asyncio.TimeoutError:
                logger.warning(f"Validation rule '{rule.id}' timed out after {self.timeout}s")
                errors.append(f"Validation timed out: {rule.description}")
                continue
            except Exception as e:
                logger.warning(f"Validation rule '{rule.id}' raised: {e}")
                errors.append(f"Validation error: {e}")
                continue

            if not is_valid:
                errors.append(rule.error_message)

        logger.debug(f"Ran {len(rules)} validation rules, {len(errors)} failed")
        return errors

    async def _evaluate(self, rule: ValidationRule, context: Any) -> bool:
        result = rule.predicate(context)
        if inspect.isawaitable(result):
            if self.timeout is not None:
                result = await asyncio.wait_for(result, timeout=self.timeout)
            else:
                result = await result
        return bool(result)
