"""Pydantic models for the inference pipeline.

These models describe the objects that flow through the pipeline:
an :class:`InferenceRequest` issued by a dashboard panel, the
:class:`PromptSpec` rendered from it, and the :class:`NormalizedResult`
handed back to consumers.  ``NormalizedResult.data`` is always a
complete instance of the kind's result schema (see
:mod:`biogrid.llm.schemas`); consumers never null-check inner fields.
"""

from __future__ import annotations

import copy
from dataclasses import asdict, dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    field_serializer,
    field_validator,
)

from .schemas import ResultModel


class InferenceKind(str, Enum):
    """Kinds of model-backed forecasts and recommendations."""

    PRICE_FORECAST = "price_forecast"
    TRADING_RECOMMENDATION = "trading_recommendation"
    RISK_ASSESSMENT = "risk_assessment"
    CONTRACT_TERMS = "contract_terms"
    ORDER_BOOK = "order_book"
    MARKET_CONDITIONS = "market_conditions"
    LOAD_MANAGEMENT = "load_management"
    NODE_ANALYSIS = "node_analysis"
    STATE_OVERVIEW = "state_overview"
    USAGE_FORECAST = "usage_forecast"
    LOAD_BALANCING = "load_balancing"
    EV_CHARGING = "ev_charging"
    CLIMATE_IMPACT = "climate_impact"
    SENTIMENT_ANALYSIS = "sentiment_analysis"
    CHAT_TURN = "chat_turn"


Source = Literal["model", "degraded", "fallback"]

SOURCE_MODEL: Source = "model"
SOURCE_DEGRADED: Source = "degraded"
SOURCE_FALLBACK: Source = "fallback"

# Advisory messages shown by panels next to stale or partial data.
SYNC_ERROR_MESSAGE = "data sync error"
PARTIAL_DATA_MESSAGE = "partial data"


class InferenceRequest(BaseModel):
    """A typed request for a model-backed result.

    ``params`` holds the named values interpolated into the prompt.
    Values are numbers, strings, booleans, or lists and mappings of
    those for tabular inputs such as per-region grid data.  The
    request is immutable once built: ``params`` is a read-only view of
    a deep copy of the caller's mapping.
    """

    model_config = ConfigDict(frozen=True)

    kind: InferenceKind
    params: Dict[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("params", mode="after")
    @classmethod
    def _freeze_params(cls, value: Dict[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(copy.deepcopy(value))

    @field_serializer("params")
    def _dump_params(self, value: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(value)

    @classmethod
    def of(cls, kind: InferenceKind | str, **params: Any) -> "InferenceRequest":
        return cls(kind=InferenceKind(kind), params=params)


class PromptSpec(BaseModel):
    """Rendered prompt plus a machine-readable description of the output."""

    model_config = ConfigDict(frozen=True)

    kind: InferenceKind
    text: str
    output_schema: Dict[str, Any] = Field(default_factory=dict)
    structured: bool = True


class FieldValidationIssue(BaseModel):
    """A non-fatal problem with a single field of an extracted payload.

    Attributes:
        field: Dotted path of the field, e.g. ``regions.0.currentLoad``.
        problem: ``missing``, ``invalid`` or ``dropped``.
        detail: Short human-readable explanation.
    """

    field: str
    problem: Literal["missing", "invalid", "dropped"]
    detail: Optional[str] = None


class NormalizedResult(BaseModel):
    """Stable, total result of an inference call.

    ``source`` is ``model`` when every field came from the model,
    ``degraded`` when at least one field fell back to its default and
    ``fallback`` when the whole result is the kind's default (transport
    or extraction failure).  ``stale`` is set by the refresh scheduler
    when it re-delivers an earlier result after a failed refresh.
    """

    kind: InferenceKind
    data: SerializeAsAny[ResultModel]
    source: Source
    degraded_fields: List[str] = Field(default_factory=list)
    issues: List[FieldValidationIssue] = Field(default_factory=list)
    failure: Optional[str] = None
    message: Optional[str] = None
    stale: bool = False
    attempts: int = 0
    latency_ms: Optional[float] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK

    def as_payload(self) -> Dict[str, Any]:
        """Return the data in camelCase wire form tagged with ``source``."""
        payload = self.data.model_dump(by_alias=True)
        payload["source"] = self.source
        return payload


@dataclass(frozen=True)
class InferenceEvent:
    """Structured record emitted once per orchestrated call."""

    kind: str
    source: str
    latency_ms: float
    attempts: int
    failure: Optional[str] = None
    degraded_fields: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "InferenceKind",
    "Source",
    "SOURCE_MODEL",
    "SOURCE_DEGRADED",
    "SOURCE_FALLBACK",
    "SYNC_ERROR_MESSAGE",
    "PARTIAL_DATA_MESSAGE",
    "InferenceRequest",
    "PromptSpec",
    "FieldValidationIssue",
    "NormalizedResult",
    "InferenceEvent",
]
