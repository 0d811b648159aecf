"""Structured inference layer for BioGrid.

This package turns a schema-less text generation API into a typed data
source.  Requests are rendered into prompts by :mod:`.prompts`, sent
through a gateway (:class:`GeminiGateway` live, :class:`FakeGateway`
offline), recovered from free-form output by :mod:`.extractor`,
coerced into total results by :mod:`.normalizer` and sequenced with
fallbacks by :class:`InferenceOrchestrator`.
"""

from .models import (
    InferenceKind,
    InferenceRequest,
    PromptSpec,
    FieldValidationIssue,
    NormalizedResult,
    InferenceEvent,
)
from .errors import (
    InputError,
    TransportError,
    GatewayTimeout,
    RateLimited,
    AuthError,
    NetworkError,
)
from .catalog import CATALOG, KindSpec, ParamSpec, get_spec
from .prompts import build_prompt
from .gateway import InferenceGateway, GeminiGateway, FakeGateway
from .extractor import ExtractedPayload, ExtractionFailure, extract_payload
from .normalizer import NormalizationOutcome, normalize
from .orchestrator import InferenceOrchestrator, RetryPolicy

__all__ = [
    # models
    "InferenceKind",
    "InferenceRequest",
    "PromptSpec",
    "FieldValidationIssue",
    "NormalizedResult",
    "InferenceEvent",
    # errors
    "InputError",
    "TransportError",
    "GatewayTimeout",
    "RateLimited",
    "AuthError",
    "NetworkError",
    # catalog and prompts
    "CATALOG",
    "KindSpec",
    "ParamSpec",
    "get_spec",
    "build_prompt",
    # gateways
    "InferenceGateway",
    "GeminiGateway",
    "FakeGateway",
    # extraction and normalization
    "ExtractedPayload",
    "ExtractionFailure",
    "extract_payload",
    "NormalizationOutcome",
    "normalize",
    # orchestration
    "InferenceOrchestrator",
    "RetryPolicy",
]
