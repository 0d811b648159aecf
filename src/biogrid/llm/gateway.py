"""Raw inference gateways.

A gateway sends a prompt to a text generation model and returns the
raw text, or raises a :class:`~biogrid.llm.errors.TransportError`
subclass describing why it could not.  Gateways never retry; all
retry policy lives in the orchestrator.

Two implementations are provided:

* :class:`GeminiGateway` calls Google's Generative Language
  ``generateContent`` endpoint over HTTPS with ``requests``.  The
  blocking request runs in a worker thread so the event loop stays
  responsive.
* :class:`FakeGateway` is deterministic and never touches the
  network.  It is used in ``fake`` mode and by tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

import requests

from ..config import GatewayConfig
from .catalog import CATALOG, KindSpec
from .errors import AuthError, GatewayTimeout, NetworkError, RateLimited, TransportError
from .models import InferenceKind
from .normalizer import fallback_data

logger = logging.getLogger(__name__)


class InferenceGateway(Protocol):
    """Contract consumed by the orchestrator.

    Implementations must honour ``timeout`` (seconds) and raise a
    :class:`TransportError` subclass on failure.
    """

    async def invoke(self, prompt_text: str, timeout: float) -> str:
        raise NotImplementedError


class GeminiGateway:
    """Gateway for Google's Gemini models.

    The credential is taken from the :class:`GatewayConfig` supplied at
    construction; the process entry point is responsible for reading
    it from the environment.  When no credential is configured every
    call fails with :class:`AuthError` without a network request.
    """

    def __init__(self, config: GatewayConfig) -> None:
        self.config = config

    @property
    def url(self) -> str:
        return f"{self.config.base_url}/{self.config.model}:generateContent"

    async def invoke(self, prompt_text: str, timeout: float) -> str:
        if not self.config.api_key:
            raise AuthError("GEMINI_API_KEY is not set")
        return await asyncio.to_thread(self._post, prompt_text, timeout)

    def _post(self, prompt_text: str, timeout: float) -> str:
        payload = {"contents": [{"parts": [{"text": prompt_text}]}]}
        try:
            resp = requests.post(
                self.url,
                params={"key": self.config.api_key},
                json=payload,
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise GatewayTimeout(f"Gemini API timed out after {timeout:g}s") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"Gemini API request failed: {exc}") from exc

        status = resp.status_code
        if status in (401, 403):
            raise AuthError(f"Gemini API rejected the credential ({status})", status_code=status)
        if status == 429:
            raise RateLimited("Gemini API rate limit exceeded", status_code=status)
        if status >= 400:
            raise NetworkError(f"Gemini API returned HTTP {status}", status_code=status)
        try:
            data = resp.json()
        except ValueError as exc:
            raise NetworkError("Gemini API returned a non-JSON body") from exc
        return _candidate_text(data)


def _candidate_text(data: Any) -> str:
    """Extract generated text from a ``generateContent`` response body."""
    if not isinstance(data, Mapping):
        raise NetworkError("Gemini API returned an unexpected body")
    candidates = data.get("candidates")
    if not candidates:
        # Some responses carry a top-level text field instead of candidates
        content = data.get("text")
        if content is None:
            raise NetworkError("Gemini API returned no candidates")
        return str(content)
    content = candidates[0].get("content") or candidates[0].get("output")
    if isinstance(content, Mapping):
        parts = content.get("parts") or []
        content = "".join(str(p.get("text", "")) for p in parts if isinstance(p, Mapping))
    if content is None:
        raise NetworkError("Gemini API response missing content")
    return str(content)


Response = Union[str, BaseException, Callable[[str], str]]


def kind_for_prompt(prompt_text: str) -> Optional[InferenceKind]:
    """Identify the request kind a prompt was rendered for."""
    for kind, spec in CATALOG.items():
        if prompt_text.startswith(spec.instructions):
            return kind
    return None


class FakeGateway:
    """Deterministic offline gateway.

    Responses are looked up by request kind (identified from the
    prompt).  A response may be a string, an exception instance to
    raise, a callable receiving the prompt text, or a list of those
    consumed in order (the last entry repeats).  Kinds without a
    scripted response return a fenced JSON rendition of the kind's
    default result; chat turns return a fixed greeting.

    Every prompt received is appended to ``calls``.
    """

    OFFLINE_REPLY = "BioGrid assistant is running in offline mode."

    def __init__(
        self,
        responses: Optional[Mapping[Union[InferenceKind, str], Union[Response, List[Response]]]] = None,
        *,
        default: Optional[Response] = None,
    ) -> None:
        self._responses: Dict[str, List[Response]] = {}
        for key, value in (responses or {}).items():
            entries = list(value) if isinstance(value, list) else [value]
            self._responses[InferenceKind(key).value] = entries
        self._default = default
        self.calls: List[str] = []

    async def invoke(self, prompt_text: str, timeout: float) -> str:
        self.calls.append(prompt_text)
        kind = kind_for_prompt(prompt_text)
        response = self._next_response(kind)
        if response is None:
            return self._default_text(kind)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(prompt_text)
        return response

    def _next_response(self, kind: Optional[InferenceKind]) -> Optional[Response]:
        entries = self._responses.get(kind.value) if kind is not None else None
        if entries:
            return entries.pop(0) if len(entries) > 1 else entries[0]
        return self._default

    @classmethod
    def _default_text(cls, kind: Optional[InferenceKind]) -> str:
        if kind is None:
            raise TransportError("offline gateway cannot identify the request kind")
        spec: KindSpec = CATALOG[kind]
        if not spec.structured:
            return cls.OFFLINE_REPLY
        body = fallback_data(spec.result_model, {}).model_dump(by_alias=True)
        root = spec.result_model.payload_root
        if root is not None:
            body = body[spec.result_model.model_fields[root].alias or root]
        return "```json\n" + json.dumps(body, indent=2) + "\n```"


__all__ = [
    "InferenceGateway",
    "GeminiGateway",
    "FakeGateway",
    "kind_for_prompt",
]
