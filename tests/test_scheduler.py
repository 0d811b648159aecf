"""Unit tests for the periodic refresh scheduler.

These tests use short intervals and scripted gateways to verify that a
subscription fetches immediately, never overlaps calls, retains the
last good result across failures and stays silent after unsubscribe.
They do not rely on any network or external services.
"""

from __future__ import annotations

import asyncio
import json
from typing import List

import pytest

from biogrid.llm.errors import InputError, NetworkError
from biogrid.llm.gateway import FakeGateway
from biogrid.llm.models import SYNC_ERROR_MESSAGE, InferenceRequest, NormalizedResult
from biogrid.llm.orchestrator import InferenceOrchestrator
from biogrid.orchestration.scheduler import RefreshScheduler

PRICE = InferenceRequest.of("price_forecast", demand=1000, supply=1200, historicalPrice=10.0)
GOOD = json.dumps({"predictedPrice": 11.0, "confidence": 70})


class BlockingGateway:
    """Gateway whose calls wait until ``release`` is set."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.calls = 0

    async def invoke(self, prompt_text: str, timeout: float) -> str:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return GOOD


async def _wait_for(updates: List[NormalizedResult], count: int, limit: float = 2.0) -> None:
    async def _poll() -> None:
        while len(updates) < count:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), limit)


@pytest.mark.asyncio
async def test_first_fetch_is_immediate() -> None:
    """A subscription delivers before its first interval elapses."""
    updates: List[NormalizedResult] = []
    scheduler = RefreshScheduler(InferenceOrchestrator(FakeGateway({"price_forecast": GOOD})))
    sub = scheduler.subscribe(PRICE, 60.0, updates.append)
    try:
        await _wait_for(updates, 1, limit=1.0)
    finally:
        sub.unsubscribe()
    assert updates[0].source == "model"
    assert sub.state.sequence == 1
    assert sub.state.last_good is updates[0]


@pytest.mark.asyncio
async def test_repeated_ticks_increase_sequence() -> None:
    updates: List[NormalizedResult] = []
    scheduler = RefreshScheduler(InferenceOrchestrator(FakeGateway({"price_forecast": GOOD})))
    sub = scheduler.subscribe(PRICE, 0.01, updates.append)
    try:
        await _wait_for(updates, 3)
    finally:
        sub.unsubscribe()
    assert sub.state.sequence >= 3
    assert sub.state.refreshes >= 3


@pytest.mark.asyncio
async def test_ticks_are_skipped_while_call_in_flight() -> None:
    """Only one call is outstanding at a time; extra ticks are dropped."""
    gateway = BlockingGateway()
    updates: List[NormalizedResult] = []
    scheduler = RefreshScheduler(InferenceOrchestrator(gateway, timeout=5.0))
    sub = scheduler.subscribe(PRICE, 0.01, updates.append)
    try:
        await asyncio.wait_for(gateway.started.wait(), 1.0)
        await asyncio.sleep(0.08)
        assert gateway.calls == 1
        assert sub.in_flight
        assert sub.phase == "fetching"
        assert sub.state.skipped_ticks >= 1
        gateway.release.set()
        await _wait_for(updates, 1)
    finally:
        sub.unsubscribe()
    assert updates[0].source == "model"


@pytest.mark.asyncio
async def test_no_callback_after_unsubscribe() -> None:
    """A call in flight at unsubscribe time never reaches the consumer."""
    gateway = BlockingGateway()
    updates: List[NormalizedResult] = []
    scheduler = RefreshScheduler(InferenceOrchestrator(gateway, timeout=5.0))
    sub = scheduler.subscribe(PRICE, 60.0, updates.append)
    await asyncio.wait_for(gateway.started.wait(), 1.0)
    sub.unsubscribe()
    gateway.release.set()
    await asyncio.sleep(0.05)
    assert updates == []
    assert not sub.active
    assert scheduler.subscriptions == []


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent() -> None:
    scheduler = RefreshScheduler(InferenceOrchestrator(FakeGateway()))
    sub = scheduler.subscribe(PRICE, 60.0, lambda result: None)
    sub.unsubscribe()
    sub.unsubscribe()
    sub.stop()
    assert sub.phase == "stopped"


@pytest.mark.asyncio
async def test_failed_refresh_keeps_last_good_result_as_stale() -> None:
    """After a failure the previous data is re-delivered, marked stale."""
    gateway = FakeGateway({"price_forecast": [GOOD, NetworkError("down")]})
    updates: List[NormalizedResult] = []
    scheduler = RefreshScheduler(InferenceOrchestrator(gateway))
    sub = scheduler.subscribe(PRICE, 0.01, updates.append)
    try:
        await _wait_for(updates, 2)
    finally:
        sub.unsubscribe()
    first, second = updates[0], updates[1]
    assert first.source == "model" and not first.stale
    assert second.stale
    assert second.data == first.data
    assert second.message == SYNC_ERROR_MESSAGE
    assert second.failure == "network"
    assert sub.state.last_error == SYNC_ERROR_MESSAGE


@pytest.mark.asyncio
async def test_failure_without_previous_result_delivers_fallback() -> None:
    gateway = FakeGateway({"price_forecast": NetworkError("down")})
    updates: List[NormalizedResult] = []
    scheduler = RefreshScheduler(InferenceOrchestrator(gateway))
    sub = scheduler.subscribe(PRICE, 60.0, updates.append)
    try:
        await _wait_for(updates, 1)
    finally:
        sub.unsubscribe()
    assert updates[0].source == "fallback"
    assert not updates[0].stale
    assert updates[0].data.predicted_price == 10.0


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited() -> None:
    updates: List[NormalizedResult] = []

    async def on_update(result: NormalizedResult) -> None:
        await asyncio.sleep(0)
        updates.append(result)

    scheduler = RefreshScheduler(InferenceOrchestrator(FakeGateway({"price_forecast": GOOD})))
    sub = scheduler.subscribe(PRICE, 60.0, on_update)
    try:
        await _wait_for(updates, 1)
    finally:
        sub.unsubscribe()
    assert updates[0].data.predicted_price == 11.0


@pytest.mark.asyncio
async def test_subscribe_rejects_malformed_request() -> None:
    """A missing parameter is reported at subscribe time, not on a tick."""
    scheduler = RefreshScheduler(InferenceOrchestrator(FakeGateway()))
    with pytest.raises(InputError):
        scheduler.subscribe(InferenceRequest.of("price_forecast"), 60.0, lambda result: None)
    assert scheduler.subscriptions == []


@pytest.mark.asyncio
async def test_subscribe_rejects_non_positive_interval() -> None:
    scheduler = RefreshScheduler(InferenceOrchestrator(FakeGateway()))
    with pytest.raises(ValueError):
        scheduler.subscribe(PRICE, 0, lambda result: None)


@pytest.mark.asyncio
async def test_close_stops_every_subscription() -> None:
    scheduler = RefreshScheduler(InferenceOrchestrator(FakeGateway()))
    subs = [scheduler.subscribe(PRICE, 60.0, lambda result: None) for _ in range(3)]
    scheduler.close()
    assert scheduler.subscriptions == []
    assert all(not s.active for s in subs)


@pytest.mark.asyncio
async def test_subscription_is_unaffected_by_caller_mutation() -> None:
    """Later edits to the caller's parameters do not leak into refreshes."""
    params = {"demand": 1000, "supply": 1200, "historicalPrice": 10.0}
    request = InferenceRequest(kind="price_forecast", params=params)
    updates: List[NormalizedResult] = []
    scheduler = RefreshScheduler(
        InferenceOrchestrator(FakeGateway({"price_forecast": NetworkError("down")}))
    )
    sub = scheduler.subscribe(request, 60.0, updates.append)
    params["historicalPrice"] = 99.0
    try:
        await _wait_for(updates, 1)
    finally:
        sub.unsubscribe()
    assert updates[0].source == "fallback"
    assert updates[0].data.predicted_price == 10.0
