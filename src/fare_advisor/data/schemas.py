"""
Fare Advisor Records
====================

Pydantic models for every record the engine produces or consumes.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Recommendation(str, Enum):
    """Binary buy/wait advice."""
    BUY_NOW = "BUY_NOW"
    WAIT = "WAIT"


class Outcome(str, Enum):
    """Whether a backtested recommendation turned out right."""
    CORRECT = "CORRECT"
    INCORRECT = "INCORRECT"


class SeasonalPeriod(str, Enum):
    LOW = "low"
    SHOULDER = "shoulder"
    PEAK = "peak"


class UserAction(str, Enum):
    BOUGHT = "BOUGHT"
    WAITED = "WAITED"
    NO_ACTION = "NO_ACTION"


class PriceOutcome(str, Enum):
    PRICE_INCREASED = "PRICE_INCREASED"
    PRICE_DECREASED = "PRICE_DECREASED"
    UNKNOWN = "UNKNOWN"


class VariantAlgorithm(str, Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


class RouteSeasonalProfile(BaseModel):
    """Reference price statistics for one route in one calendar month."""

    model_config = ConfigDict(frozen=True)

    route: str
    month: int = Field(..., ge=1, le=12)
    average_price: float = Field(..., ge=0)
    min_price: float = Field(..., ge=0)
    max_price: float = Field(..., ge=0)
    price_variation: float = Field(..., ge=0, le=1, description="Coefficient of variation")

    @model_validator(mode="after")
    def check_ordering(self) -> "RouteSeasonalProfile":
        if not (self.min_price <= self.average_price <= self.max_price):
            raise ValueError(
                f"Profile {self.route}/{self.month} violates min <= average <= max"
            )
        return self


class PriceRange(BaseModel):
    """Historical price band for the departure month."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float
    average: float

    @model_validator(mode="after")
    def check_ordering(self) -> "PriceRange":
        if not (self.min <= self.average <= self.max):
            raise ValueError("Price range must satisfy min <= average <= max")
        return self


class PricePrediction(BaseModel):
    """Buy/wait advice for one observed price."""

    model_config = ConfigDict(frozen=True)

    current_price: float = Field(..., ge=0)
    currency: str = "GBP"
    timestamp: datetime
    probability_increase: float = Field(..., ge=0, le=1)
    probability_decrease: float = Field(..., ge=0, le=1)
    confidence: int = Field(..., ge=0, le=100)
    recommendation: Recommendation
    historical_context: str
    price_range: PriceRange
    model_variant: str = "simple"
    is_lowest_recent: bool = False


class DataQuality(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_data_points: int = 0
    date_range_days: int = 0
    seasonal_coverage: float = 0.0
    booking_window_coverage: float = 0.0


class ModelAccuracy(BaseModel):
    model_config = ConfigDict(frozen=True)

    historical_accuracy: float
    volatility_score: float
    trend_strength: float


class PredictionFactors(BaseModel):
    """Reliability weights of each input the enhanced model combines."""

    model_config = ConfigDict(frozen=True)

    seasonal_weight: float
    booking_window_weight: float
    day_of_week_weight: float
    volatility_weight: float
    market_trend_weight: float


class EnhancedPricePrediction(PricePrediction):
    """Prediction enriched with data-quality and factor diagnostics."""

    data_quality: DataQuality
    model_accuracy: ModelAccuracy
    prediction_factors: PredictionFactors


class SpotlightDeal(BaseModel):
    """Discounted round trip the model advises buying now."""

    model_config = ConfigDict(frozen=True)

    route: str
    origin: str
    destination: str
    departure_date: date
    outbound_price: float = Field(..., gt=0)
    return_price: float = Field(..., gt=0)
    total_price: float
    average_total: float
    discount: float
    discount_percentage: int
    recommendation: Recommendation
    confidence: int = Field(..., ge=0, le=100)
    currency: str = "GBP"


class HistoricalPricePoint(BaseModel):
    """One observed or synthesized fare sample."""

    model_config = ConfigDict(frozen=True)

    route: str
    price: float = Field(..., ge=0)
    currency: str = "GBP"
    observed_date: date
    departure_date: date
    booking_days_ahead: int = Field(..., ge=0)
    day_of_week: int = Field(..., ge=0, le=6)
    month: int = Field(..., ge=1, le=12)
    year: int
    is_weekend: bool
    is_holiday: bool
    seasonal_period: SeasonalPeriod
    source: str = "synthetic"


class BacktestResult(BaseModel):
    """One replayed prediction compared with the later observed price."""

    model_config = ConfigDict(frozen=True)

    route: str
    prediction_date: date
    predicted_price: float
    actual_price: float
    error: float = Field(..., ge=0)
    percentage_error: float = Field(..., ge=0)
    recommendation: Recommendation
    actual_outcome: Outcome
    days_ahead: int


class ConfidenceInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    lower: float
    upper: float
    level: int = 95


class ValidationPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Optional[date] = None
    end: Optional[date] = None


class ValidationResult(BaseModel):
    """Empirical accuracy of the recommendation policy over a backtest log."""

    model_config = ConfigDict(frozen=True)

    accuracy: float = Field(..., ge=0, le=1)
    mean_absolute_error: float = Field(..., ge=0)
    root_mean_square_error: float = Field(..., ge=0)
    confidence_interval: ConfidenceInterval
    sample_size: int = Field(..., ge=1)
    validation_period: ValidationPeriod
    computed_at: datetime


class ErrorBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    expected_error: float
    max_error: float
    min_error: float


class ValidationDataQuality(BaseModel):
    model_config = ConfigDict(frozen=True)

    real_data_percentage: float = 0.0
    temporal_coverage: int = Field(0, description="Months spanned by the validation period")
    route_coverage: int = 0


class StatisticalConfidence(BaseModel):
    """Backtest-derived confidence, expressed in percent."""

    model_config = ConfigDict(frozen=True)

    true_confidence: float
    sample_size: int
    validation_period: str
    mean_absolute_error: float
    confidence_interval: ConfidenceInterval
    data_quality: ValidationDataQuality
    last_validation: datetime


class VariantSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant_success_rate: float
    total_tests: int


class ValidatedPrediction(BaseModel):
    """A variant-adjusted prediction with its empirical error profile."""

    model_config = ConfigDict(frozen=True)

    prediction: PricePrediction
    statistical_confidence: StatisticalConfidence
    validated_confidence: float
    error_bounds: ErrorBounds
    ab_test_variant: Optional[str] = None
    ab_test_metrics: Optional[VariantSummary] = None


class ABTestVariant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    confidence_threshold: int = Field(..., ge=0, le=100)
    algorithm: VariantAlgorithm


class ABTestResult(BaseModel):
    """One recommendation exposure, keyed by (user_id, timestamp)."""

    model_config = ConfigDict(frozen=True)

    variant_id: str
    user_id: str
    route: str
    recommendation: Recommendation
    user_action: UserAction = UserAction.NO_ACTION
    actual_outcome: PriceOutcome = PriceOutcome.UNKNOWN
    success: bool = False
    timestamp: datetime
    price_at_recommendation: float
    price_after: Optional[float] = None
    savings: Optional[float] = None

    @property
    def key(self) -> tuple:
        return (self.user_id, self.timestamp)


class ABTestMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant_id: str
    total_recommendations: int = 0
    buy_now_recommendations: int = 0
    wait_recommendations: int = 0
    resolved_recommendations: int = 0
    success_rate: float = 0.0
    average_savings: float = 0.0
    user_follow_rate: float = 0.0
    confidence_interval: ConfidenceInterval = ConfidenceInterval(lower=0.0, upper=0.0)


class PriceQuote(BaseModel):
    """A single real fare quote from an external provider."""

    model_config = ConfigDict(frozen=True)

    amount: float = Field(..., gt=0)
    currency: str
    provider: str
    departure_date: Optional[date] = None
    observed_at: Optional[datetime] = None
    recency_weight: float = 1.0
    transfers: int = 0


class ExactPrice(BaseModel):
    """Cheapest fare for an exact date, or the month's cheapest when no exact match."""

    model_config = ConfigDict(frozen=True)

    price: float
    currency: str
    is_exact: bool
    min: Optional[float] = None
    max: Optional[float] = None
    basis: str = "exact"
    provider: str = ""


class AggregatedPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    average_price: float
    min_price: float
    max_price: float
    price_count: int
    currency: str
    sources: List[str]
    confidence: int = Field(..., ge=0, le=100)
    last_updated: datetime


class PriceTrend(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_average: float
    historical_average: float
    trend_direction: str
    percentage_change: float
    recommendation: Recommendation


class PredictionRequest(BaseModel):
    """Validated input for the prediction endpoint."""

    origin: str = Field(..., min_length=3, max_length=4, description="Origin airport code")
    destination: str = Field(..., min_length=3, max_length=4, description="Destination airport code")
    departure_date: date
    return_date: Optional[date] = None
    currency: str = Field("GBP", min_length=3, max_length=3)
    direct_only: bool = False
    user_id: Optional[str] = None
    current_price: Optional[float] = Field(None, gt=0)

    @field_validator("origin", "destination", "currency")
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        """Convert codes to uppercase."""
        return v.strip().upper()

    @model_validator(mode="after")
    def check_itinerary(self) -> "PredictionRequest":
        if self.origin == self.destination:
            raise ValueError("Origin and destination must be different airports")
        if self.return_date is not None and self.return_date < self.departure_date:
            raise ValueError("Return date must not precede departure date")
        return self

    @property
    def route(self) -> str:
        return f"{self.origin}-{self.destination}"


def summarize_errors(exc) -> List[str]:
    """Flatten a pydantic ValidationError into readable messages."""
    messages = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()))
        message = err.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def as_dict(records) -> List[Dict]:
    """Serialize records to JSON-compatible dicts."""
    return [r.model_dump(mode="json") for r in records]
