"""Resilience orchestrator for structured inference.

The orchestrator sequences prompt building, the gateway call,
extraction and normalization, and guarantees a total result:

* transport failure -> the kind's default result, ``source=fallback``;
* extraction failure or a wrong-shaped payload -> ``source=fallback``;
* some fields defaulted -> ``source=degraded``;
* otherwise -> ``source=model``.

:meth:`InferenceOrchestrator.infer` only ever raises
:class:`~biogrid.llm.errors.InputError`, which indicates a malformed
request.  Each call emits one :class:`InferenceEvent`, logged at INFO
and passed to any registered listeners.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, FrozenSet, List, Mapping, Optional

from ..config import DEFAULT_TIMEOUT_SECONDS
from .catalog import get_spec
from .errors import GatewayTimeout, NetworkError, RateLimited, TransportError
from .extractor import extract_payload
from .gateway import InferenceGateway
from .models import (
    PARTIAL_DATA_MESSAGE,
    SOURCE_DEGRADED,
    SOURCE_FALLBACK,
    SOURCE_MODEL,
    SYNC_ERROR_MESSAGE,
    InferenceEvent,
    InferenceKind,
    InferenceRequest,
    NormalizedResult,
    PromptSpec,
)
from .normalizer import NormalizationOutcome, fallback_outcome, normalize
from .prompts import build_prompt

logger = logging.getLogger(__name__)

EventListener = Callable[[InferenceEvent], None]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy for transport failures.

    Attributes:
        max_attempts: Total attempts including the first; 1 disables
            retries.
        base_delay: Delay before the first retry, in seconds.
        multiplier: Factor applied to the delay after each retry.
        max_delay: Upper bound for a single delay.
        retry_on: Transport failure kinds that are retried.
            Authentication failures are not retried by default.
    """

    max_attempts: int = 1
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 8.0
    retry_on: FrozenSet[str] = frozenset(
        {GatewayTimeout.kind, RateLimited.kind, NetworkError.kind}
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")

    def delay_for(self, retry_number: int) -> float:
        """Return the delay before retry ``retry_number`` (1-based)."""
        return min(self.base_delay * self.multiplier ** (retry_number - 1), self.max_delay)

    def should_retry(self, error: TransportError, attempt: int) -> bool:
        return attempt < self.max_attempts and error.kind in self.retry_on


NO_RETRY = RetryPolicy()


class InferenceOrchestrator:
    """Drive builder -> gateway -> extractor -> normalizer for one request.

    Args:
        gateway: Gateway used for every call.
        timeout: Per-attempt timeout in seconds, passed to the gateway
            and enforced around it.
        retry_policies: Optional per-kind retry policies; kinds not
            listed use ``default_retry``.
        default_retry: Policy for unlisted kinds (single attempt by
            default).
        listeners: Callables receiving each :class:`InferenceEvent`.
        sleep: Coroutine used for backoff delays (replaceable in tests).
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retry_policies: Optional[Mapping[InferenceKind, RetryPolicy]] = None,
        default_retry: RetryPolicy = NO_RETRY,
        listeners: Optional[List[EventListener]] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError("timeout must be positive")
        self.gateway = gateway
        self.timeout = timeout
        self.retry_policies = dict(retry_policies or {})
        self.default_retry = default_retry
        self.listeners: List[EventListener] = list(listeners or [])
        self._sleep = sleep

    def add_listener(self, listener: EventListener) -> None:
        self.listeners.append(listener)

    def policy_for(self, kind: InferenceKind) -> RetryPolicy:
        return self.retry_policies.get(kind, self.default_retry)

    def prepare(self, request: InferenceRequest) -> PromptSpec:
        """Build the prompt for ``request``; raises ``InputError`` if malformed."""
        return build_prompt(request)

    async def infer(
        self, request: InferenceRequest, prompt: Optional[PromptSpec] = None
    ) -> NormalizedResult:
        """Return a total :class:`NormalizedResult` for ``request``.

        Args:
            request: The request to run.
            prompt: A prompt already built by :meth:`prepare`; built
                here when omitted.

        Raises:
            InputError: If the request cannot be rendered.  No other
                exception escapes.
        """
        if prompt is None:
            prompt = self.prepare(request)
        spec = get_spec(request.kind)
        started = time.perf_counter()
        text, error, attempts = await self._call_gateway(prompt)

        failure: Optional[str] = None
        if error is not None:
            failure = error.kind
            outcome = fallback_outcome(spec.result_model, request.params, f"transport: {error.kind}")
        elif not prompt.structured:
            outcome = self._free_text_outcome(spec.result_model, text, request.params)
        else:
            extraction = extract_payload(text)
            outcome = normalize(spec.result_model, extraction, request.params)
        if failure is None and outcome.fully_degraded:
            failure = "extraction"

        latency_ms = (time.perf_counter() - started) * 1000.0
        result = self._to_result(request.kind, outcome, failure, attempts, latency_ms)
        self._emit(
            InferenceEvent(
                kind=request.kind.value,
                source=result.source,
                latency_ms=round(latency_ms, 3),
                attempts=attempts,
                failure=failure,
                degraded_fields=len(result.degraded_fields),
            )
        )
        return result

    async def _call_gateway(
        self, prompt: PromptSpec
    ) -> tuple[Optional[str], Optional[TransportError], int]:
        policy = self.policy_for(prompt.kind)
        attempt = 0
        while True:
            attempt += 1
            try:
                text = await asyncio.wait_for(
                    self.gateway.invoke(prompt.text, self.timeout), timeout=self.timeout
                )
                return text, None, attempt
            except asyncio.TimeoutError:
                error: TransportError = GatewayTimeout(
                    f"no response within {self.timeout:g}s"
                )
            except TransportError as exc:
                error = exc
            except Exception as exc:
                logger.exception("Unexpected gateway error for %s", prompt.kind.value)
                error = NetworkError(f"unexpected gateway error: {exc}")
            if not policy.should_retry(error, attempt):
                logger.warning(
                    "Gateway call for %s failed after %d attempt(s): %s (%s)",
                    prompt.kind.value,
                    attempt,
                    error.kind,
                    error,
                )
                return None, error, attempt
            delay = policy.delay_for(attempt)
            logger.info(
                "Retrying %s after %s in %.2fs (attempt %d/%d)",
                prompt.kind.value,
                error.kind,
                delay,
                attempt + 1,
                policy.max_attempts,
            )
            await self._sleep(delay)

    @staticmethod
    def _free_text_outcome(model_cls, text: Optional[str], params) -> NormalizationOutcome:
        reply = (text or "").strip()
        if not reply:
            return fallback_outcome(model_cls, params, "empty reply")
        return NormalizationOutcome(data=model_cls(reply=reply))

    @staticmethod
    def _to_result(
        kind: InferenceKind,
        outcome: NormalizationOutcome,
        failure: Optional[str],
        attempts: int,
        latency_ms: float,
    ) -> NormalizedResult:
        if failure is not None or outcome.fully_degraded:
            source, message = SOURCE_FALLBACK, SYNC_ERROR_MESSAGE
        elif outcome.issues:
            source, message = SOURCE_DEGRADED, PARTIAL_DATA_MESSAGE
        else:
            source, message = SOURCE_MODEL, None
        return NormalizedResult(
            kind=kind,
            data=outcome.data,
            source=source,
            degraded_fields=outcome.degraded_fields,
            issues=outcome.issues,
            failure=failure,
            message=message,
            attempts=attempts,
            latency_ms=latency_ms,
        )

    def _emit(self, event: InferenceEvent) -> None:
        logger.info(
            "inference kind=%s source=%s latency_ms=%.1f attempts=%d failure=%s degraded_fields=%d",
            event.kind,
            event.source,
            event.latency_ms,
            event.attempts,
            event.failure or "-",
            event.degraded_fields,
            extra={"inference_event": event.as_dict()},
        )
        for listener in self.listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Inference event listener failed")


__all__ = ["RetryPolicy", "NO_RETRY", "InferenceOrchestrator"]
