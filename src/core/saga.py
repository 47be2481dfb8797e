from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]
Compensation = Callable[[Any], Awaitable[None]]
CompensationFailureHook = Callable[["SagaStep", Any, Exception], Awaitable[None]]


@dataclass(slots=True)
class SagaStep:
    name: str
    action: Action
    compensation: Compensation | None = None


@dataclass(slots=True)
class Saga:
    """Ordered steps spanning systems that cannot share a transaction.

    When a step fails, the compensations of the steps that already completed
    run once each, newest first, and the original error is re-raised. A
    failing compensation is logged and handed to ``on_compensation_failure``
    but never replaces the original error.
    """

    name: str
    on_compensation_failure: CompensationFailureHook | None = None
    steps: list[SagaStep] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)

    def add_step(
        self,
        name: str,
        action: Action,
        compensation: Compensation | None = None,
    ) -> Saga:
        self.steps.append(SagaStep(name=name, action=action, compensation=compensation))
        return self

    async def run(self) -> dict[str, Any]:
        completed: list[tuple[SagaStep, Any]] = []
        for step in self.steps:
            try:
                result = await step.action()
            except Exception:
                logger.warning("Saga %s failed at step=%s, compensating %d step(s)", self.name, step.name, len(completed))
                await self._compensate(completed)
                raise
            completed.append((step, result))
            self.results[step.name] = result
        return self.results

    async def _compensate(self, completed: list[tuple[SagaStep, Any]]) -> None:
        for step, result in reversed(completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation(result)
            except Exception as exc:
                logger.exception("Saga %s compensation failed for step=%s", self.name, step.name)
                if self.on_compensation_failure is not None:
                    await self.on_compensation_failure(step, result, exc)
