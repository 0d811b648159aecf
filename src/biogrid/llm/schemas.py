"""Result schemas for each inference kind.

Each schema is a Pydantic model whose fields carry the documented
default used when the model omits a field or returns an invalid value.
Every field has a default so that a schema instance can always be
built; :mod:`biogrid.llm.normalizer` validates extracted payloads one
field at a time against these declarations.  Field names are snake
case in Python and camel case on the wire (``predictedPrice``), which
matches the JSON the prompts ask the model to return.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

# A whole string holding one number, optionally with thousands
# separators, an exponent and a trailing unit or percent sign.
_NUMBER_TEXT = re.compile(
    r"""^\s*
    (?P<number>[-+]?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?:[eE][-+]?\d+)?)
    \s*(?:%|[A-Za-z][A-Za-z/]*(?:\s+[A-Za-z][A-Za-z/]*)*)?
    \s*$""",
    re.VERBOSE,
)


def _coerce_number(value: Any) -> Any:
    """Accept strings such as ``"15%"``, ``"1,200 kW"`` or ``"1.5e3"`` as numbers.

    Booleans are rejected even though they are ints in Python; strings
    that are not a single number are left for validation to refuse.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, str):
        match = _NUMBER_TEXT.match(value)
        if match:
            return float(match.group("number").replace(",", ""))
    return value


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _title(value: Any) -> Any:
    return value.strip().title() if isinstance(value, str) else value


Number = Annotated[float, BeforeValidator(_coerce_number)]
Percent = Annotated[float, BeforeValidator(_coerce_number), Field(ge=0, le=100)]
NonNegative = Annotated[float, BeforeValidator(_coerce_number), Field(ge=0)]


class ResultModel(BaseModel):
    """Base class for result schemas.

    ``payload_root`` names the field that receives the payload when the
    model returns a bare JSON array instead of an object.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="ignore",
    )

    payload_root: ClassVar[Optional[str]] = None

    @classmethod
    def param_defaults(cls, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Return field defaults derived from request parameters.

        Keys are Python field names.  Values that violate the field's
        constraints are ignored by the normalizer in favour of the
        static default.
        """
        return {}


# ---------------------------------------------------------------------------
# Trading
# ---------------------------------------------------------------------------


class PriceForecast(ResultModel):
    """Next-hour energy price prediction in credits per kWh."""

    predicted_price: NonNegative = 0.0
    confidence: Percent = 0.0

    @classmethod
    def param_defaults(cls, params: Mapping[str, Any]) -> Dict[str, Any]:
        if "historicalPrice" in params:
            return {"predicted_price": params["historicalPrice"]}
        return {}


class TradingRecommendation(ResultModel):
    action: Annotated[Literal["buy", "sell", "wait"], BeforeValidator(_lower)] = "wait"
    amount: NonNegative = 0.0
    price: NonNegative = 0.0
    reasoning: str = "Unable to generate recommendation at this time"
    timing: Annotated[Literal["immediate", "wait"], BeforeValidator(_lower)] = "wait"
    confidence: Percent = 0.0


class RiskAssessment(ResultModel):
    """Risk analysis of a single P2P energy trade.

    The default is deliberately cautious: a trade with no assessment is
    not recommended.
    """

    risk_level: Annotated[Literal["low", "medium", "high"], BeforeValidator(_lower)] = "medium"
    risk_score: Percent = 50.0
    concerns: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    proceed_recommended: bool = False


class ContractTerms(ResultModel):
    contract_id: str = ""
    terms: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)
    penalties: List[str] = Field(default_factory=list)
    validity_period: NonNegative = 24.0
    quality_requirements: List[str] = Field(default_factory=list)
    dispute_resolution: str = ""


class OrderLevel(ResultModel):
    price: NonNegative = 0.0
    amount: NonNegative = 0.0
    depth: Percent = 0.0


class OrderBook(ResultModel):
    buy_orders: List[OrderLevel] = Field(default_factory=list)
    sell_orders: List[OrderLevel] = Field(default_factory=list)


class MarketConditions(ResultModel):
    """Synthesised market conditions feeding the trading panel."""

    demand: NonNegative = 1000.0
    supply: NonNegative = 1200.0
    weather: Annotated[
        Literal["Sunny", "Cloudy", "Rainy", "Windy"], BeforeValidator(_title)
    ] = "Sunny"
    historical_price: NonNegative = 10.0
    market_trend: Annotated[
        Literal["Bullish", "Bearish", "Stable"], BeforeValidator(_title)
    ] = "Stable"
    trading_volume: NonNegative = 2000.0
    peak_hour_demand: bool = False


class SentimentAnalysis(ResultModel):
    """Market sentiment summary; ``score`` runs from -1 (bearish) to 1 (bullish)."""

    sentiment: Annotated[
        Literal["bullish", "bearish", "neutral"], BeforeValidator(_lower)
    ] = "neutral"
    score: Annotated[Number, Field(ge=-1, le=1)] = 0.0
    confidence: Percent = 0.0
    drivers: List[str] = Field(default_factory=list)
    summary: str = ""


# ---------------------------------------------------------------------------
# State analytics
# ---------------------------------------------------------------------------


class LoadManagement(ResultModel):
    expected_load: List[NonNegative] = Field(default_factory=list)
    sector_distribution: Dict[str, Percent] = Field(default_factory=dict)
    peak_load_times: List[str] = Field(default_factory=list)
    load_shedding_required: bool = False
    efficiency_recommendations: List[str] = Field(default_factory=list)


class NodeAnalysis(ResultModel):
    activity_pattern: str = ""
    stability_score: Percent = 0.0
    distribution_efficiency: Percent = 0.0
    performance_metrics: Dict[str, Number] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)


class StateOverview(ResultModel):
    energy_mix: Dict[str, Percent] = Field(default_factory=dict)
    grid_performance: Percent = 0.0
    sustainability_score: Percent = 0.0
    storage_utilization: Percent = 0.0
    projections: List[str] = Field(default_factory=list)


HOURS_PER_DAY = 24


class UsageForecast(ResultModel):
    """24-hour electricity usage prediction for a state or region.

    ``hourly_predictions`` must hold exactly one value per hour; a
    shorter or longer list is invalid and falls back to a flat profile
    at the current consumption.
    """

    hourly_predictions: Annotated[
        List[NonNegative], Field(min_length=HOURS_PER_DAY, max_length=HOURS_PER_DAY)
    ] = Field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    peak_usage_time: Annotated[str, Field(pattern=r"^(N/A|\d{1,2}:\d{2})$")] = "N/A"
    potential_savings: Percent = 0.0
    grid_stability_impact: Annotated[
        Literal["high", "medium", "low"], BeforeValidator(_lower)
    ] = "medium"
    confidence_score: Percent = 0.0

    @classmethod
    def param_defaults(cls, params: Mapping[str, Any]) -> Dict[str, Any]:
        current = params.get("currentConsumption")
        if current is None:
            return {}
        return {"hourly_predictions": [current] * HOURS_PER_DAY}


# ---------------------------------------------------------------------------
# Grid-wide analytics
# ---------------------------------------------------------------------------


class RegionLoad(ResultModel):
    region: str = "unknown"
    current_load: Percent = 0.0
    predicted_load: Percent = 0.0
    recommendation: Annotated[
        Literal["Redistribute", "Maintain"], BeforeValidator(_title)
    ] = "Maintain"
    carbon_impact: NonNegative = 0.0
    renewable_utilization: Percent = 0.0
    grid_stability: Percent = 0.0


class LoadBalancing(ResultModel):
    payload_root: ClassVar[Optional[str]] = "regions"

    regions: List[RegionLoad] = Field(default_factory=list)


class ChargingSlot(ResultModel):
    time_slot: str = ""
    predicted_demand: Percent = 0.0
    optimal_capacity: Percent = 0.0
    hotspots: List[str] = Field(default_factory=list)
    carbon_reduction: NonNegative = 0.0
    grid_impact: Percent = 0.0
    renewable_integration: Percent = 0.0
    recommendations: List[str] = Field(default_factory=list)


class EVCharging(ResultModel):
    payload_root: ClassVar[Optional[str]] = "slots"

    slots: List[ChargingSlot] = Field(default_factory=list)


class RegionImpact(ResultModel):
    region: str = "unknown"
    carbon_reduction: NonNegative = 0.0
    renewable_share: Percent = 0.0
    ev_impact: Number = 0.0


class ClimateImpact(ResultModel):
    total_carbon_reduction: NonNegative = 0.0
    renewable_utilization: Percent = 0.0
    grid_efficiency: Percent = 0.0
    sustainability_score: Percent = 0.0
    recommendations: List[str] = Field(default_factory=list)
    impact_by_region: List[RegionImpact] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

CHAT_APOLOGY = (
    "I apologize, but I'm having trouble processing your request at the moment. "
    "Please try again later."
)


class ChatReply(ResultModel):
    reply: Annotated[str, Field(min_length=1)] = CHAT_APOLOGY


__all__ = [
    "ResultModel",
    "PriceForecast",
    "TradingRecommendation",
    "RiskAssessment",
    "ContractTerms",
    "OrderLevel",
    "OrderBook",
    "MarketConditions",
    "SentimentAnalysis",
    "LoadManagement",
    "NodeAnalysis",
    "StateOverview",
    "UsageForecast",
    "RegionLoad",
    "LoadBalancing",
    "ChargingSlot",
    "EVCharging",
    "RegionImpact",
    "ClimateImpact",
    "ChatReply",
    "CHAT_APOLOGY",
    "HOURS_PER_DAY",
]
