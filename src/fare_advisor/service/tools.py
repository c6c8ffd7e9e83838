"""
Advisor Tools
=============

In-process endpoint layer over the fare advisor engine. Each tool takes
plain arguments, returns a JSON-ready dict, and reports failures as
``{"error": ..., "status": 400 | 503}`` instead of raising.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from pydantic import ValidationError

from ..aggregation.aggregator import DEFAULT_FALLBACK_PRICE, PriceAggregator
from ..config import AdvisorConfig
from ..data.collector import HistoricalDataCollector
from ..data.schemas import PredictionRequest, Recommendation, UserAction, summarize_errors
from ..data.seasonal import SeasonalReferenceTable
from ..data.store import HistoricalDataStore
from ..errors import FareAdvisorError, InvalidInput
from ..experiments.ab_testing import ABTestingFramework
from ..models.enhanced import EnhancedRecommendationModel
from ..models.reasoning import CURRENCY_SYMBOLS
from ..models.recommendation import RecommendationModel
from ..providers.chain import ProviderChain
from ..validation.validator import StatisticalValidator

logger = logging.getLogger(__name__)


class ToolCategory(Enum):
    """Categories of available tools."""
    PREDICTION = "prediction"
    PRICING = "pricing"
    EXPERIMENT = "experiment"
    ADMIN = "admin"


@dataclass
class Tool:
    """Definition of an endpoint."""
    name: str
    description: str
    category: ToolCategory
    parameters: Dict[str, Dict[str, Any]]
    required_params: List[str]
    func: Optional[Callable] = None

    def to_schema(self) -> Dict[str, Any]:
        """Convert to function calling schema format."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": self.parameters,
                "required": self.required_params
            }
        }


def error_response(message: str, status: int, details: Optional[List[str]] = None) -> Dict[str, Any]:
    response = {"error": message, "status": status}
    if details:
        response["details"] = details
    return response


ROUTE_PARAMS = {
    "origin": {"type": "string", "description": "Origin airport code (e.g., LHR)"},
    "destination": {"type": "string", "description": "Destination airport code (e.g., JFK)"},
    "departure_date": {"type": "string", "description": "Departure date, YYYY-MM-DD"},
    "return_date": {"type": "string", "description": "Optional return date, YYYY-MM-DD"},
    "currency": {"type": "string", "description": "ISO currency code (default: GBP)"},
    "direct_only": {"type": "boolean", "description": "Only consider nonstop fares"},
}


class AdvisorTools:
    """
    Endpoints of the fare advisor.

    These tools allow a caller to:
    - Get a validated BUY_NOW / WAIT recommendation
    - Surface discounted round trips worth buying
    - Aggregate current prices for a route
    - Record what users did with a recommendation
    - Inspect validation and experiment standings
    """

    def __init__(self, model: RecommendationModel, aggregator: PriceAggregator,
                 validator: StatisticalValidator, chain: ProviderChain,
                 enhanced: Optional[EnhancedRecommendationModel] = None,
                 default_currency: str = "GBP"):
        self.model = model
        self.aggregator = aggregator
        self.validator = validator
        self.chain = chain
        self.enhanced = enhanced or EnhancedRecommendationModel(validator.store, fallback=model)
        self.default_currency = default_currency
        self._tools: Dict[str, Tool] = {}
        self._register_tools()

    @classmethod
    def from_config(cls, config: Optional[AdvisorConfig] = None,
                    rng: Optional[np.random.Generator] = None) -> "AdvisorTools":
        """Wire the engine from configuration."""
        config = config or AdvisorConfig.from_env()
        rng = rng if rng is not None else np.random.default_rng()

        store = HistoricalDataStore(
            config.store_path, freshness=timedelta(hours=config.validation_ttl_hours)
        )
        chain = ProviderChain.from_config(config)
        model = RecommendationModel(SeasonalReferenceTable(config.default_base_price), rng=rng)
        collector = HistoricalDataCollector(
            chain=ProviderChain.from_config(config, include_mock=False),
            store=store,
            rng=rng,
            delay_seconds=config.collection_delay_seconds,
            currency=config.default_currency,
        )
        validator = StatisticalValidator(
            store,
            collector=collector,
            experiments=ABTestingFramework(store),
            model=model,
            routes=config.validation_routes,
            lookback_months=config.validation_lookback_months,
            test_period_days=config.test_period_days,
        )
        return cls(model, PriceAggregator(chain, model), validator, chain,
                   enhanced=EnhancedRecommendationModel(store, fallback=model),
                   default_currency=config.default_currency)

    def _register_tools(self) -> None:
        """Register all available tools."""

        self._tools["predict_price"] = Tool(
            name="predict_price",
            description="Recommend BUY_NOW or WAIT for a flight, with validated confidence",
            category=ToolCategory.PREDICTION,
            parameters={
                **ROUTE_PARAMS,
                "user_id": {"type": "string", "description": "User id for A/B assignment"},
                "current_price": {"type": "number", "description": "Known fare; looked up when omitted"},
            },
            required_params=["origin", "destination", "departure_date"],
            func=self._predict_price
        )

        self._tools["predict_enhanced"] = Tool(
            name="predict_enhanced",
            description="Recommend BUY_NOW or WAIT from the route's stored price history",
            category=ToolCategory.PREDICTION,
            parameters={
                **ROUTE_PARAMS,
                "current_price": {"type": "number", "description": "Known fare; looked up when omitted"},
                "booking_days_ahead": {"type": "integer", "description": "Override the booking window"},
            },
            required_params=["origin", "destination", "departure_date"],
            func=self._predict_enhanced
        )

        self._tools["aggregate_prices"] = Tool(
            name="aggregate_prices",
            description="Average, min and max fare for a route across real and seasonal sources",
            category=ToolCategory.PRICING,
            parameters=dict(ROUTE_PARAMS),
            required_params=["origin", "destination", "departure_date"],
            func=self._aggregate_prices
        )

        self._tools["spotlight_routes"] = Tool(
            name="spotlight_routes",
            description="Top discounted round trips a month out that the model says to buy now",
            category=ToolCategory.PRICING,
            parameters={
                "routes": {"type": "array", "items": {"type": "string"},
                           "description": "Routes to scan (default: all routes with tables)"},
                "currency": {"type": "string", "description": "ISO currency code (default: GBP)"},
                "limit": {"type": "integer", "description": "Maximum deals (default: 3)"},
            },
            required_params=[],
            func=self._spotlight_routes
        )

        self._tools["track_action"] = Tool(
            name="track_action",
            description="Record whether a user bought or waited after a recommendation",
            category=ToolCategory.EXPERIMENT,
            parameters={
                "user_id": {"type": "string", "description": "User id"},
                "route": {"type": "string", "description": "Route, e.g. LHR-JFK"},
                "recommendation": {"type": "string", "description": "BUY_NOW or WAIT"},
                "user_action": {"type": "string", "description": "BOUGHT, WAITED or NO_ACTION"},
                "price": {"type": "number", "description": "Price when the advice was shown"},
            },
            required_params=["user_id", "route", "recommendation", "user_action", "price"],
            func=self._track_action
        )

        self._tools["validation_summary"] = Tool(
            name="validation_summary",
            description="Current validation result, A/B metrics and winning variant",
            category=ToolCategory.ADMIN,
            parameters={},
            required_params=[],
            func=self._validation_summary
        )

        self._tools["refresh_validation"] = Tool(
            name="refresh_validation",
            description="Recollect, backtest and revalidate the recommendation policy",
            category=ToolCategory.ADMIN,
            parameters={},
            required_params=[],
            func=self._refresh_validation
        )

        self._tools["list_routes"] = Tool(
            name="list_routes",
            description="Routes with seasonal tables and routes under validation",
            category=ToolCategory.ADMIN,
            parameters={},
            required_params=[],
            func=self._list_routes
        )

        self._tools["capabilities"] = Tool(
            name="capabilities",
            description="Models, providers, variants and tools available",
            category=ToolCategory.ADMIN,
            parameters={},
            required_params=[],
            func=self._capabilities
        )

    def _parse_request(self, **kwargs) -> PredictionRequest:
        """
        Raises:
            InvalidInput: If the request fails validation
        """
        payload = {k: v for k, v in kwargs.items() if v is not None}
        payload.setdefault("currency", self.default_currency)
        try:
            return PredictionRequest(**payload)
        except ValidationError as e:
            raise InvalidInput(summarize_errors(e)) from e

    def _predict_price(self, origin: str, destination: str, departure_date: str,
                       return_date: Optional[str] = None, currency: Optional[str] = None,
                       direct_only: bool = False, user_id: Optional[str] = None,
                       current_price: Optional[float] = None) -> Dict[str, Any]:
        """Execute a validated prediction."""
        try:
            request = self._parse_request(
                origin=origin, destination=destination, departure_date=departure_date,
                return_date=return_date, currency=currency, direct_only=direct_only,
                user_id=user_id, current_price=current_price,
            )
        except InvalidInput as e:
            return error_response("Invalid request", 400, e.errors)

        price, basis = self._current_price(request)

        try:
            validated = self.validator.validated_prediction(
                price, request.origin, request.destination, request.departure_date,
                user_id=request.user_id or "anonymous", currency=request.currency,
            )
        except (FareAdvisorError, ValueError) as e:
            logger.error("Prediction failed for %s: %s", request.route, e)
            return error_response(str(e), 503)

        explanation = self.model.explain(validated.prediction, request.departure_date)

        return {
            "route": request.route,
            "prediction": validated.prediction.model_dump(mode="json"),
            "explanation": explanation.to_dict(),
            "metadata": {
                "variant_id": validated.ab_test_variant,
                "sample_size": validated.statistical_confidence.sample_size,
                "validated_confidence": validated.validated_confidence,
                "error_bounds": validated.error_bounds.model_dump(mode="json"),
                "price_basis": basis,
            },
        }

    def _predict_enhanced(self, origin: str, destination: str, departure_date: str,
                          return_date: Optional[str] = None, currency: Optional[str] = None,
                          direct_only: bool = False, current_price: Optional[float] = None,
                          booking_days_ahead: Optional[int] = None) -> Dict[str, Any]:
        """Execute a history-driven prediction."""
        try:
            request = self._parse_request(
                origin=origin, destination=destination, departure_date=departure_date,
                return_date=return_date, currency=currency, direct_only=direct_only,
                current_price=current_price,
            )
        except InvalidInput as e:
            return error_response("Invalid request", 400, e.errors)

        if booking_days_ahead is not None and booking_days_ahead < 0:
            return error_response("booking_days_ahead must not be negative", 400)

        price, basis = self._current_price(request)
        try:
            prediction = self.enhanced.predict(
                price, request.origin, request.destination, request.departure_date,
                currency=request.currency, booking_days_ahead=booking_days_ahead,
            )
        except (FareAdvisorError, ValueError) as e:
            logger.error("Enhanced prediction failed for %s: %s", request.route, e)
            return error_response(str(e), 503)

        return {
            "route": request.route,
            "prediction": prediction.model_dump(mode="json"),
            "metadata": {"price_basis": basis},
        }

    def _current_price(self, request: PredictionRequest) -> tuple:
        """Price to advise on and where it came from."""
        if request.current_price is not None:
            return request.current_price, "provided"

        exact = self.chain.cheapest_or_exact(
            request.origin, request.destination, request.departure_date,
            request.return_date, request.currency, request.direct_only,
        )
        if exact is not None:
            return exact.price, exact.basis

        aggregated = self.aggregator.aggregate(
            request.origin, request.destination, request.departure_date,
            request.return_date, request.currency, request.direct_only,
        )
        if aggregated is not None:
            return aggregated.average_price, "aggregated"

        logger.warning("No price for %s; using default %.0f", request.route, DEFAULT_FALLBACK_PRICE)
        return DEFAULT_FALLBACK_PRICE, "default"

    def _aggregate_prices(self, origin: str, destination: str, departure_date: str,
                          return_date: Optional[str] = None, currency: Optional[str] = None,
                          direct_only: bool = False) -> Dict[str, Any]:
        """Aggregate prices, falling back to the default price."""
        try:
            request = self._parse_request(
                origin=origin, destination=destination, departure_date=departure_date,
                return_date=return_date, currency=currency, direct_only=direct_only,
            )
        except InvalidInput as e:
            return error_response("Invalid request", 400, e.errors)

        aggregated = self.aggregator.aggregate(
            request.origin, request.destination, request.departure_date,
            request.return_date, request.currency, request.direct_only,
        )
        if aggregated is None:
            return {
                "route": request.route,
                "average_price": DEFAULT_FALLBACK_PRICE,
                "currency": request.currency,
                "is_default": True,
            }

        return {
            "route": request.route,
            **aggregated.model_dump(mode="json"),
            "is_default": False,
        }

    def _spotlight_routes(self, routes: Optional[List[str]] = None,
                          currency: Optional[str] = None,
                          limit: int = RecommendationModel.SPOTLIGHT_LIMIT) -> Dict[str, Any]:
        """Scan routes for discounted round trips worth buying."""
        if isinstance(routes, str):
            routes = [r.strip() for r in routes.split(",") if r.strip()]
        if limit < 1:
            return error_response("limit must be at least 1", 400)

        currency = (currency or self.default_currency).upper()
        try:
            deals = self.model.spotlight_deals(routes, currency=currency, limit=limit)
        except ValueError as e:
            return error_response(f"Invalid route: {e}", 400)

        return {
            "deals": [d.model_dump(mode="json") for d in deals],
            "count": len(deals),
            "currency": currency,
        }

    def _track_action(self, user_id: str, route: str, recommendation: str,
                      user_action: str, price: float) -> Dict[str, Any]:
        """Log a user action against their variant."""
        try:
            result = self.validator.experiments.track_user_action(
                user_id, route, Recommendation(recommendation.upper()),
                UserAction(user_action.upper()), float(price),
            )
        except (ValueError, TypeError) as e:
            return error_response(f"Invalid action: {e}", 400)

        return result.model_dump(mode="json")

    def _validation_summary(self) -> Dict[str, Any]:
        return self.validator.summary()

    def _refresh_validation(self) -> Dict[str, Any]:
        validation = self.validator.refresh()
        self.enhanced.refresh()
        if validation is None:
            return error_response("Not yet validated: backtest produced no trials", 503)
        return self.validator.summary()

    def _list_routes(self) -> Dict[str, Any]:
        return {
            "routes": self.model.table.routes,
            "validation_routes": list(self.validator.routes),
        }

    def _capabilities(self) -> Dict[str, Any]:
        return {
            "models": [self.model.name, self.enhanced.name],
            "decision_policy": self.model.strictness,
            "providers": self.chain.names,
            "variants": [v.id for v in self.validator.experiments.variants],
            "currencies": sorted(CURRENCY_SYMBOLS),
            "tools": sorted(self._tools),
        }

    def get_tool(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def get_all_tools(self) -> List[Tool]:
        """Get all available tools."""
        return list(self._tools.values())

    def get_tools_by_category(self, category: ToolCategory) -> List[Tool]:
        """Get tools by category."""
        return [t for t in self._tools.values() if t.category == category]

    def execute(self, tool_name: str, **kwargs) -> Dict[str, Any]:
        """Execute a tool by name with given arguments."""
        tool = self._tools.get(tool_name)
        if tool is None:
            return error_response(f"Unknown tool: {tool_name}", 400)

        # Validate required parameters
        missing = [p for p in tool.required_params if kwargs.get(p) in (None, "")]
        if missing:
            return error_response(f"Missing required parameters: {missing}", 400)

        return tool.func(**kwargs)

    def get_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool schemas for function calling."""
        return [tool.to_schema() for tool in self._tools.values()]
