"""Call-site configuration for every inference kind.

Each :class:`KindSpec` ties a request kind to its result schema, the
task instructions placed at the top of the prompt and the ordered list
of parameters interpolated into it.  The parameter order declared here
is the order in which parameters appear in the prompt; extra
parameters supplied by a caller follow in alphabetical order.

Adding a kind means adding a schema to :mod:`biogrid.llm.schemas`, a
member to :class:`~biogrid.llm.models.InferenceKind` and an entry to
``CATALOG``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Type

from ..config import REFRESH_INTERVAL_CHART_SECONDS, REFRESH_INTERVAL_GRID_SECONDS
from .models import InferenceKind
from .schemas import (
    ChatReply,
    ClimateImpact,
    ContractTerms,
    EVCharging,
    LoadBalancing,
    LoadManagement,
    MarketConditions,
    NodeAnalysis,
    OrderBook,
    PriceForecast,
    ResultModel,
    RiskAssessment,
    SentimentAnalysis,
    StateOverview,
    TradingRecommendation,
    UsageForecast,
)


class _Required:
    def __repr__(self) -> str:
        return "REQUIRED"


REQUIRED: Any = _Required()


@dataclass(frozen=True)
class ParamSpec:
    """A named prompt parameter.

    Attributes:
        name: Parameter name as supplied in ``InferenceRequest.params``.
        label: Human-readable label rendered in the prompt.
        default: Value used when the caller omits the parameter, or
            :data:`REQUIRED`.
        unit: Optional unit suffix rendered after the value.
    """

    name: str
    label: str
    default: Any = REQUIRED
    unit: str = ""

    @property
    def required(self) -> bool:
        return self.default is REQUIRED


@dataclass(frozen=True)
class KindSpec:
    kind: InferenceKind
    result_model: Type[ResultModel]
    instructions: str
    params: Tuple[ParamSpec, ...] = field(default_factory=tuple)
    considerations: Tuple[str, ...] = field(default_factory=tuple)
    structured: bool = True
    refresh_interval: float = REFRESH_INTERVAL_GRID_SECONDS

    @property
    def required_params(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.params if p.required)


CHAT_PERSONA = """You are an AI assistant for a smart energy grid platform called BioGrid. Your role is to help users understand and optimize their energy usage, trading, and environmental impact.

Key features you can assist with:
1. Energy Trading: Explain market conditions, trading strategies, and provide basic guidance
2. Load Management: Help users understand their energy consumption patterns
3. Climate Impact: Explain carbon footprint calculations and provide sustainability tips
4. Smart Grid: Explain how the smart grid works and its benefits
5. Energy Optimization: Provide tips for reducing energy usage and costs

Guidelines:
- Be concise but informative
- Use a professional yet friendly tone
- Focus on energy-related topics
- Provide specific, actionable advice when possible
- Express numerical data clearly
- If unsure, acknowledge limitations and suggest consulting official documentation"""


_SPECS = (
    KindSpec(
        kind=InferenceKind.PRICE_FORECAST,
        result_model=PriceForecast,
        instructions="Predict the optimal energy price per kWh for the next hour given the following energy market conditions.",
        params=(
            ParamSpec("demand", "Current demand", unit="kW"),
            ParamSpec("supply", "Supply availability", unit="kW"),
            ParamSpec("historicalPrice", "Historical average price", unit="credits/kWh"),
            ParamSpec("timeOfDay", "Time of day", default="unspecified"),
            ParamSpec("weather", "Weather conditions", default="unspecified"),
        ),
        considerations=(
            "Supply-demand ratio",
            "Peak/off-peak hours",
            "Weather impact on renewable energy",
            "Market trends",
        ),
        refresh_interval=REFRESH_INTERVAL_CHART_SECONDS,
    ),
    KindSpec(
        kind=InferenceKind.TRADING_RECOMMENDATION,
        result_model=TradingRecommendation,
        instructions="Based on the following market conditions and user profile, generate a trading recommendation.",
        params=(
            ParamSpec("averagePrice", "Average price", unit="credits/kWh"),
            ParamSpec("trend", "Market trend", default="Stable"),
            ParamSpec("isPeakHour", "Peak hour", default=False),
            ParamSpec("demandForecast", "Demand forecast", default="unspecified"),
            ParamSpec("availableEnergy", "Available energy", unit="kWh"),
            ParamSpec("tradingPower", "Trading power", unit="credits"),
            ParamSpec("riskTolerance", "Risk tolerance", default="Moderate"),
        ),
        refresh_interval=REFRESH_INTERVAL_CHART_SECONDS,
    ),
    KindSpec(
        kind=InferenceKind.RISK_ASSESSMENT,
        result_model=RiskAssessment,
        instructions="Analyze the risk level of the following energy trading transaction and the user's trading history.",
        params=(
            ParamSpec("type", "Transaction type"),
            ParamSpec("amount", "Amount", unit="kWh"),
            ParamSpec("price", "Price per kWh", unit="credits"),
            ParamSpec("counterpartyRating", "Counterparty rating (out of 5)"),
            ParamSpec("totalTransactions", "Total transactions", default=0),
            ParamSpec("successfulTransactions", "Successful transactions", default=0),
            ParamSpec("averageSize", "Average transaction size", default=0, unit="kWh"),
            ParamSpec("riskTolerance", "Risk tolerance (out of 5)", default=3),
        ),
    ),
    KindSpec(
        kind=InferenceKind.CONTRACT_TERMS,
        result_model=ContractTerms,
        instructions="Generate smart contract terms for the following P2P energy trading transaction. Express validityPeriod in hours.",
        params=(
            ParamSpec("seller", "Seller"),
            ParamSpec("buyer", "Buyer"),
            ParamSpec("amount", "Energy amount", unit="kWh"),
            ParamSpec("price", "Price per kWh", unit="credits"),
            ParamSpec("deliveryPeriod", "Delivery period", default="24 hours"),
            ParamSpec("energyType", "Energy type", default="Solar"),
        ),
    ),
    KindSpec(
        kind=InferenceKind.ORDER_BOOK,
        result_model=OrderBook,
        instructions=(
            "Generate a realistic order book for energy trading based on these market conditions. "
            "Buy orders must be priced below the current price and sell orders above it; "
            "depth is between 0 and 100 and amounts between 50 and 500 kWh."
        ),
        params=(
            ParamSpec("currentPrice", "Current price", unit="credits/kWh"),
            ParamSpec("marketTrend", "Market trend", default="Stable"),
            ParamSpec("peakHourDemand", "Peak hour", default=False),
            ParamSpec("supply", "Supply", unit="kWh"),
            ParamSpec("demand", "Demand", unit="kWh"),
            ParamSpec("levels", "Orders per side", default=10),
        ),
        refresh_interval=REFRESH_INTERVAL_CHART_SECONDS,
    ),
    KindSpec(
        kind=InferenceKind.MARKET_CONDITIONS,
        result_model=MarketConditions,
        instructions=(
            "Generate current market conditions for energy trading. Demand and supply are between "
            "500 and 2000, historicalPrice between 8 and 15 and tradingVolume between 1000 and 5000."
        ),
        refresh_interval=REFRESH_INTERVAL_CHART_SECONDS,
    ),
    KindSpec(
        kind=InferenceKind.LOAD_MANAGEMENT,
        result_model=LoadManagement,
        instructions="Analyze the following state energy data and predict load management metrics.",
        params=(
            ParamSpec("name", "State"),
            ParamSpec("currentLoad", "Current load", unit="MW"),
            ParamSpec("peakCapacity", "Peak capacity", unit="MW"),
            ParamSpec("timestamp", "Time", default="unspecified"),
            ParamSpec("weather", "Weather", default="unspecified"),
            ParamSpec("historicalPattern", "Historical usage pattern", default="unspecified"),
        ),
        considerations=(
            "Expected load for the next 24 hours",
            "Load distribution across sectors",
            "Peak load times",
            "Load shedding requirements if any",
            "Efficiency recommendations",
        ),
    ),
    KindSpec(
        kind=InferenceKind.NODE_ANALYSIS,
        result_model=NodeAnalysis,
        instructions="Analyze the active energy nodes for the following state.",
        params=(
            ParamSpec("name", "State"),
            ParamSpec("totalNodes", "Total nodes"),
            ParamSpec("activeNodes", "Active nodes"),
            ParamSpec("nodeTypes", "Node types", default={}),
            ParamSpec("networkHealth", "Network health", default="unknown"),
        ),
        considerations=(
            "Node activity patterns",
            "Network stability",
            "Node distribution efficiency",
            "Performance metrics",
            "Optimization recommendations",
        ),
    ),
    KindSpec(
        kind=InferenceKind.STATE_OVERVIEW,
        result_model=StateOverview,
        instructions="Generate a comprehensive energy overview for the following state.",
        params=(
            ParamSpec("name", "State"),
            ParamSpec("totalGeneration", "Total generation", unit="MW"),
            ParamSpec("renewablePercentage", "Renewable percentage", unit="%"),
            ParamSpec("gridStability", "Grid stability", default="unknown"),
            ParamSpec("energyStorage", "Energy storage", default=0, unit="MWh"),
            ParamSpec("carbonFootprint", "Carbon footprint", default="unknown"),
        ),
        considerations=(
            "Energy mix distribution",
            "Grid performance metrics",
            "Sustainability indicators",
            "Storage utilization",
            "Future energy projections",
        ),
    ),
    KindSpec(
        kind=InferenceKind.USAGE_FORECAST,
        result_model=UsageForecast,
        instructions="Predict electricity usage for the next 24 hours for the following state or region.",
        params=(
            ParamSpec("currentConsumption", "Current consumption", unit="MW"),
            ParamSpec("averageConsumption", "Historical average", unit="MW"),
            ParamSpec("peakLoad", "Peak load", unit="MW"),
            ParamSpec("hour", "Time of day (hour)", default="unspecified"),
            ParamSpec("season", "Season", default="unspecified"),
            ParamSpec("industrialIndex", "Industrial activity index", default="unspecified"),
        ),
        considerations=(
            "Expected consumption for each of the next 24 hours",
            "Peak usage time",
            "Potential savings through optimization",
            "Regional impact on grid stability",
        ),
    ),
    KindSpec(
        kind=InferenceKind.LOAD_BALANCING,
        result_model=LoadBalancing,
        instructions="Analyze the following power grid data and provide load balancing recommendations for each region.",
        params=(ParamSpec("gridData", "Grid data"),),
        considerations=(
            "Current load distribution",
            "Regional renewable energy capacity",
            "Grid stability metrics",
            "Carbon footprint impact",
            "Peak demand patterns",
        ),
    ),
    KindSpec(
        kind=InferenceKind.EV_CHARGING,
        result_model=EVCharging,
        instructions="Analyze EV charging patterns and provide optimization recommendations for each time slot.",
        params=(ParamSpec("regionData", "Region data"),),
        considerations=(
            "Historical charging patterns",
            "Grid capacity by region",
            "Renewable energy availability",
            "Carbon footprint reduction",
            "Peak load management",
        ),
    ),
    KindSpec(
        kind=InferenceKind.CLIMATE_IMPACT,
        result_model=ClimateImpact,
        instructions="Analyze the climate impact of current grid operations and EV charging patterns.",
        params=(
            ParamSpec("gridData", "Grid data"),
            ParamSpec("evData", "EV data"),
        ),
        considerations=(
            "Carbon emissions reduction",
            "Renewable energy integration",
            "Grid efficiency improvements",
            "Regional variations",
            "EV charging optimization impact",
        ),
    ),
    KindSpec(
        kind=InferenceKind.SENTIMENT_ANALYSIS,
        result_model=SentimentAnalysis,
        instructions="Assess the current sentiment of the energy trading market from the following signals.",
        params=(
            ParamSpec("marketTrend", "Market trend"),
            ParamSpec("recentPrices", "Recent prices", default=[], unit="credits/kWh"),
            ParamSpec("tradingVolume", "Trading volume", default=0, unit="kWh"),
            ParamSpec("headlines", "Recent headlines", default=[]),
        ),
        refresh_interval=REFRESH_INTERVAL_CHART_SECONDS,
    ),
    KindSpec(
        kind=InferenceKind.CHAT_TURN,
        result_model=ChatReply,
        instructions=CHAT_PERSONA,
        params=(
            ParamSpec("message", "User's latest message"),
            ParamSpec("history", "Chat history", default=[]),
        ),
        structured=False,
    ),
)

CATALOG: Dict[InferenceKind, KindSpec] = {spec.kind: spec for spec in _SPECS}


def get_spec(kind: InferenceKind | str) -> KindSpec:
    """Return the :class:`KindSpec` for ``kind``.

    Raises:
        KeyError: If the kind is unknown.
    """
    try:
        return CATALOG[InferenceKind(kind)]
    except ValueError as exc:
        raise KeyError(f"Unknown inference kind: {kind}") from exc


__all__ = ["REQUIRED", "ParamSpec", "KindSpec", "CATALOG", "CHAT_PERSONA", "get_spec"]
