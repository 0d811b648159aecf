"""Periodic refresh scheduler for dashboard subscriptions.

Each :class:`Subscription` re-runs one inference request on a fixed
period and hands the latest result to its consumer.  A subscription
cycles between ``idle`` and ``fetching``; the first fetch happens
immediately on subscribe.  The rules are:

* at most one call is in flight per subscription; a tick that fires
  while the previous call is outstanding is skipped, not queued;
* a result is applied only if it belongs to the most recent call
  issued for the subscription and the subscription is still active;
* the scheduler never halts on error.  After a failed refresh the last
  good result is re-delivered marked ``stale`` with the error message;
* unsubscribing cancels the timer and any in-flight call, is
  idempotent, and no callback fires afterwards.

Subscriptions must be created from within a running event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Literal, Optional, Set, Union

from ..llm.models import InferenceRequest, NormalizedResult, PromptSpec
from ..llm.orchestrator import InferenceOrchestrator

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[NormalizedResult], Union[None, Awaitable[None]]]
Phase = Literal["idle", "fetching", "stopped"]


@dataclass
class RefreshState:
    """Per-subscription state.

    Attributes:
        result: Result most recently delivered to the consumer.
        last_good: Most recent result that was not a fallback.
        last_error: Advisory message of the latest failed refresh, or
            ``None`` once a refresh succeeds again.
        sequence: Number of the most recently issued call; strictly
            increasing.
        refreshes: Number of calls whose result was applied.
        skipped_ticks: Ticks skipped because a call was in flight.
    """

    result: Optional[NormalizedResult] = None
    last_good: Optional[NormalizedResult] = None
    last_error: Optional[str] = None
    sequence: int = 0
    refreshes: int = 0
    skipped_ticks: int = 0


class Subscription:
    """Handle for one periodically refreshed request."""

    def __init__(
        self,
        scheduler: "RefreshScheduler",
        request: InferenceRequest,
        prompt: PromptSpec,
        interval: float,
        on_update: UpdateCallback,
    ) -> None:
        self._scheduler = scheduler
        self.request = request
        self.prompt = prompt
        self.interval = interval
        self.on_update = on_update
        self.state = RefreshState()
        self.phase: Phase = "idle"
        self._timer: Optional[asyncio.Task[None]] = None
        self._inflight: Optional[asyncio.Task[None]] = None

    @property
    def active(self) -> bool:
        return self.phase != "stopped"

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def _start(self) -> None:
        self._timer = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self.active:
            self._tick()
            await asyncio.sleep(self.interval)

    def _tick(self) -> None:
        if self.in_flight:
            self.state.skipped_ticks += 1
            logger.debug(
                "Skipping %s refresh tick; call %d still in flight",
                self.request.kind.value,
                self.state.sequence,
            )
            return
        self.state.sequence += 1
        self.phase = "fetching"
        self._inflight = asyncio.get_running_loop().create_task(
            self._fetch(self.state.sequence)
        )

    async def _fetch(self, sequence: int) -> None:
        try:
            result = await self._scheduler.orchestrator.infer(self.request, self.prompt)
        except Exception:
            logger.exception("Refresh of %s failed unexpectedly", self.request.kind.value)
            if self._is_current(sequence):
                self.phase = "idle"
                self.state.last_error = "refresh failed"
            return
        await self._apply(sequence, result)

    def _is_current(self, sequence: int) -> bool:
        return self.active and sequence == self.state.sequence

    async def _apply(self, sequence: int, result: NormalizedResult) -> None:
        if not self._is_current(sequence):
            logger.debug(
                "Discarding %s result %d (latest %d, phase %s)",
                self.request.kind.value,
                sequence,
                self.state.sequence,
                self.phase,
            )
            return
        self.phase = "idle"
        self.state.refreshes += 1
        previous = self.state.last_good
        if result.is_fallback:
            self.state.last_error = result.message or result.failure
            if previous is not None:
                result = previous.model_copy(
                    update={"stale": True, "message": result.message, "failure": result.failure}
                )
        else:
            self.state.last_error = None
            self.state.last_good = result
        self.state.result = result
        await self._deliver(result)

    async def _deliver(self, result: NormalizedResult) -> None:
        try:
            outcome: Any = self.on_update(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Update callback for %s raised", self.request.kind.value)

    def unsubscribe(self) -> None:
        """Stop refreshing.  Safe to call more than once."""
        if not self.active:
            return
        self.phase = "stopped"
        current = asyncio.current_task() if _loop_running() else None
        for task in (self._timer, self._inflight):
            if task is not None and not task.done() and task is not current:
                task.cancel()
        self._scheduler._discard(self)
        logger.debug("Unsubscribed %s", self.request.kind.value)

    stop = unsubscribe


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class RefreshScheduler:
    """Create and track refresh subscriptions for one orchestrator."""

    def __init__(self, orchestrator: InferenceOrchestrator) -> None:
        self.orchestrator = orchestrator
        self._subscriptions: Set[Subscription] = set()

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions)

    def subscribe(
        self, request: InferenceRequest, interval: float, on_update: UpdateCallback
    ) -> Subscription:
        """Start refreshing ``request`` every ``interval`` seconds.

        The prompt is built before anything is scheduled so a malformed
        request raises :class:`~biogrid.llm.errors.InputError` here.

        Raises:
            InputError: If the request cannot be rendered.
            ValueError: If ``interval`` is not positive.
            RuntimeError: If no event loop is running.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        prompt = self.orchestrator.prepare(request)
        sub = Subscription(self, request, prompt, interval, on_update)
        sub._start()
        self._subscriptions.add(sub)
        return sub

    def _discard(self, sub: Subscription) -> None:
        self._subscriptions.discard(sub)

    def close(self) -> None:
        """Unsubscribe every active subscription."""
        for sub in list(self._subscriptions):
            sub.unsubscribe()


__all__ = ["RefreshState", "Subscription", "RefreshScheduler", "UpdateCallback"]
