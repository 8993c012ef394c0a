"""
Compensated steps — run actions in order, undo the completed ones on failure.

    saga = Saga()
    match await saga.run(from_result(lambda: reserve(line), compensate=restore)):
        case Error(e):
            await saga.rollback()

Note: Uses combinators to lift raising callables into LazyCoroResult.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog
from combinators import lift as L
from kungfu import Result, Ok, Error, LazyCoroResult

logger = structlog.get_logger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[object]]
"""Receives the action result and undoes it."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    A single step: action + compensator.

    When action succeeds, compensator is recorded.
    If a later step fails, compensators run in reverse.
    """

    name: str
    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None


@dataclass(frozen=True, slots=True)
class Rollback:
    """Outcome of undoing completed steps."""

    compensators_run: int
    compensators_failed: int

    @property
    def complete(self) -> bool:
        return self.compensators_failed == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    name: str,
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    return SagaStep(name=name, action=action, compensate=compensate)


def from_result[T, E](
    name: str,
    action: Callable[[], Awaitable[Result[T, E]]],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """Step from an async callable that already returns Result."""
    return SagaStep(name=name, action=LazyCoroResult(action), compensate=compensate)


def from_async[T, E](
    name: str,
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """
    Step from an async callable that may raise.

    Example:
        from_async(
            "payment_session",
            lambda: gateway.create_session(order),
            on_error=lambda e: Errors.payment(str(e)),
        )
    """
    return SagaStep(
        name=name,
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Runner
# ═══════════════════════════════════════════════════════════════════════════════


class Saga:
    """
    Records compensators of completed steps.

    Note: one instance per unit of work. Not reusable after rollback().
    """

    def __init__(self) -> None:
        self._compensators: list[tuple[str, object, Compensator[object]]] = []

    @property
    def recorded(self) -> int:
        return len(self._compensators)

    async def run[T, E](self, saga_step: SagaStep[T, E]) -> Result[T, E]:
        """Execute step, recording its compensator on success."""
        match await saga_step.action:
            case Ok(value):
                if saga_step.compensate is not None:
                    self._compensators.append((saga_step.name, value, saga_step.compensate))  # type: ignore[arg-type]
                return Ok(value)
            case Error(e):
                logger.info("saga_step_failed", step=saga_step.name)
                return Error(e)

    async def rollback(self) -> Rollback:
        """Run compensators in reverse."""
        comp_run = 0
        comp_failed = 0

        while self._compensators:
            name, value, comp = self._compensators.pop()
            try:
                await comp(value)
                comp_run += 1
            except Exception:
                comp_failed += 1
                logger.exception("saga_compensation_failed", step=name)

        return Rollback(comp_run, comp_failed)


__all__ = (
    "Compensator",
    "SagaStep",
    "Rollback",
    "step",
    "from_result",
    "from_async",
    "Saga",
)
