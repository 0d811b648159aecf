"""Consumer interface for dashboard panels.

Panels either subscribe to a periodically refreshed request or make
one-shot calls for user-triggered actions (a "Predict" button, a chat
message).  Both go through one :class:`InferenceClient`, which is
built from an explicit :class:`~biogrid.config.GatewayConfig` rather
than a module-level client so tests can substitute the gateway.

Example::

    client = build_client(GatewayConfig.from_env())
    result = await client.infer_once("price_forecast", {
        "demand": 1000, "supply": 1200, "historicalPrice": 10,
    })
    sub = client.subscribe("load_balancing", {"gridData": regions}, 300, render)
    ...
    sub.unsubscribe()
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .config import GatewayConfig
from .llm.catalog import get_spec
from .llm.errors import InputError
from .llm.gateway import FakeGateway, GeminiGateway, InferenceGateway
from .llm.models import InferenceKind, InferenceRequest, NormalizedResult
from .llm.orchestrator import InferenceOrchestrator, RetryPolicy
from .orchestration.scheduler import RefreshScheduler, Subscription, UpdateCallback

logger = logging.getLogger(__name__)


def build_gateway(config: GatewayConfig) -> InferenceGateway:
    """Return the gateway selected by ``config.mode``.

    A live configuration without a credential is not fatal: a warning
    is logged and calls degrade to fallback results.
    """
    if not config.is_live:
        return FakeGateway()
    if not config.api_key:
        logger.warning(
            "GEMINI_API_KEY is not set; live inference calls will fail and use fallback data"
        )
    return GeminiGateway(config)


class InferenceClient:
    """One-shot and periodic access to the inference pipeline."""

    def __init__(
        self,
        orchestrator: InferenceOrchestrator,
        scheduler: Optional[RefreshScheduler] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.scheduler = scheduler or RefreshScheduler(orchestrator)

    @staticmethod
    def make_request(
        kind: InferenceKind | str, params: Optional[Mapping[str, Any]] = None
    ) -> InferenceRequest:
        try:
            resolved = InferenceKind(kind)
        except ValueError as exc:
            raise InputError(f"Unknown inference kind: {kind}") from exc
        return InferenceRequest(kind=resolved, params=dict(params or {}))

    async def infer_once(
        self, kind: InferenceKind | str, params: Optional[Mapping[str, Any]] = None
    ) -> NormalizedResult:
        """Run a single request, bypassing the scheduler.

        Raises:
            InputError: If the request is malformed.
        """
        return await self.orchestrator.infer(self.make_request(kind, params))

    def subscribe(
        self,
        kind: InferenceKind | str,
        params: Optional[Mapping[str, Any]],
        interval: Optional[float],
        on_update: UpdateCallback,
    ) -> Subscription:
        """Refresh a request periodically; returns the unsubscribe handle.

        An ``interval`` of ``None`` selects the kind's refresh period
        (five minutes for grid-wide data, one minute for chart ticks).

        Raises:
            InputError: If the request is malformed.
        """
        request = self.make_request(kind, params)
        if interval is None:
            interval = get_spec(request.kind).refresh_interval
        return self.scheduler.subscribe(request, interval, on_update)

    def close(self) -> None:
        self.scheduler.close()


def build_client(
    config: GatewayConfig,
    *,
    gateway: Optional[InferenceGateway] = None,
    retry_policies: Optional[Mapping[InferenceKind, RetryPolicy]] = None,
) -> InferenceClient:
    """Wire gateway, orchestrator and scheduler from ``config``."""
    orchestrator = InferenceOrchestrator(
        gateway or build_gateway(config),
        timeout=config.timeout_seconds,
        retry_policies=retry_policies,
    )
    return InferenceClient(orchestrator)


__all__ = ["InferenceClient", "build_client", "build_gateway"]
