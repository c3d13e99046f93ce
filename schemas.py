import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from dates import parse_datetime, to_date
from models import (
    CADENCE_ALIASES,
    CadenceType,
    GuardrailStatus,
    ReportPeriod,
    ScoreBand,
    TransactionType,
)

_AMOUNT_NOISE = re.compile(r"[\s$€£]")


def coerce_amount(value: object) -> float:
    """Numeric coercion for money fields: anything unusable becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if not isinstance(value, str):
        return 0.0
    clean = _AMOUNT_NOISE.sub("", value).replace(",", ".")
    if clean.count(".") > 1:
        parts = clean.split(".")
        clean = "".join(parts[:-1]) + "." + parts[-1]
    try:
        number = float(Decimal(clean))
    except InvalidOperation:
        return 0.0
    return number if math.isfinite(number) else 0.0


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Records handed over by the persistence collaborator


class TransactionRecord(CamelModel):
    id: Optional[str] = None
    name: str = ""
    amount: float = 0.0
    category: str = ""
    type: Optional[TransactionType] = None
    date: Optional[datetime] = None
    receipt: Optional[str] = None
    budget_id: Optional[str] = None
    budget_name: Optional[str] = None

    @field_validator("id", "budget_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("name", "category", mode="before")
    @classmethod
    def _blank_text(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> float:
        return coerce_amount(value)

    @field_validator("type", mode="before")
    @classmethod
    def _known_type(cls, value: object) -> Optional[TransactionType]:
        # Transfers and other unrecognised kinds are kept but count as neither side.
        if isinstance(value, TransactionType):
            return value
        clean = value.strip().lower() if isinstance(value, str) else ""
        try:
            return TransactionType(clean)
        except ValueError:
            return None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> Optional[datetime]:
        return parse_datetime(value)


class CategoryAllocationRecord(CamelModel):
    id: Optional[str] = None
    category: str = ""
    budgeted_amount: float = 0.0
    last_updated: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category(cls, value: object) -> str:
        return "" if value is None else str(value)

    @field_validator("budgeted_amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: object) -> float:
        return coerce_amount(value)

    @field_validator("last_updated", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: object) -> Optional[datetime]:
        return parse_datetime(value)


class CadenceConfig(CamelModel):
    type: CadenceType = CadenceType.monthly
    start_date: Optional[date] = None
    custom_days: Optional[int] = None

    @field_validator("type", mode="before")
    @classmethod
    def _resolve_alias(cls, value: object) -> CadenceType:
        if isinstance(value, CadenceType):
            return value
        raw = str(value or "").strip().lower()
        if raw in CADENCE_ALIASES:
            return CADENCE_ALIASES[raw]
        try:
            return CadenceType(raw)
        except ValueError:
            return CadenceType.monthly

    @field_validator("start_date", mode="before")
    @classmethod
    def _parse_start(cls, value: object) -> Optional[date]:
        return to_date(value)

    @field_validator("custom_days", mode="before")
    @classmethod
    def _coerce_days(cls, value: object) -> Optional[int]:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return int(number) if math.isfinite(number) else None


class BudgetRecord(CamelModel):
    id: Optional[str] = None
    name: str = ""
    transactions: list[TransactionRecord] = Field(default_factory=list)
    category_budgets: list[CategoryAllocationRecord] = Field(default_factory=list)
    cadence: CadenceConfig = Field(default_factory=CadenceConfig)
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created(cls, value: object) -> Optional[datetime]:
        return parse_datetime(value)

    @model_validator(mode="after")
    def _anchor_cadence(self) -> "BudgetRecord":
        if self.cadence.start_date is None and self.created_at is not None:
            self.cadence = self.cadence.model_copy(
                update={"start_date": self.created_at.date()}
            )
        return self


# ---------------------------------------------------------------------------
# Cadence and pacing results


class CycleWindow(CamelModel):
    start: date
    end: date
    cycle_length_days: float
    elapsed_days: float
    elapsed_ratio: float
    degraded: bool = False


class GuardrailResult(CamelModel):
    status: GuardrailStatus
    label: str
    actual: float
    expected: float
    budgeted: float
    elapsed_ratio: float
    tooltip: str


class PacingResult(CamelModel):
    cadence_type: CadenceType
    cycle: CycleWindow
    overall: GuardrailResult
    categories: dict[str, GuardrailResult]
    worst_status: GuardrailStatus


# ---------------------------------------------------------------------------
# Reporting


class PeriodRange(CamelModel):
    period: ReportPeriod
    start: datetime
    end: datetime
    days: int
    label: str

    @field_serializer("start", "end")
    def _iso_millis(self, value: datetime) -> str:
        return value.isoformat(timespec="milliseconds")


class CategoryBreakdownEntry(CamelModel):
    key: str
    label: str
    amount: float
    percent: float


class SeriesPoint(CamelModel):
    date: date
    label: str
    income: float
    expense: float


class TrendComparison(CamelModel):
    key: str
    category: str
    amount: float
    previous_amount: float
    change: float
    percent_change: float


class CashBurnSummary(CamelModel):
    total_budgeted: float
    spent: float
    remaining: float
    avg_daily_spend: float
    projected_days_left: Optional[float]
    progress: float


class ReportBundle(CamelModel):
    range: PeriodRange
    previous_range: PeriodRange
    total_income: float
    total_expenses: float
    avg_daily_spend: float
    balance: float
    category_breakdown: list[CategoryBreakdownEntry]
    income_expense_series: list[SeriesPoint]
    cash_burn: CashBurnSummary
    trends: list[TrendComparison]


# ---------------------------------------------------------------------------
# Insights


class InsightMetrics(CamelModel):
    total_income: float = 0.0
    total_expenses: float = 0.0
    balance: float = 0.0
    savings_rate: float = 0.0
    expenses_by_category: dict[str, float] = Field(default_factory=dict)
    top_expense_category: Optional[tuple[str, float]] = None
    last7_days: float = 0.0
    previous7_days: float = 0.0
    transaction_count: int = 0
    avg_transaction_amount: float = 0.0

    @field_validator(
        "total_income",
        "total_expenses",
        "balance",
        "savings_rate",
        "last7_days",
        "previous7_days",
        "avg_transaction_amount",
        mode="before",
    )
    @classmethod
    def _coerce_number(cls, value: object) -> float:
        return coerce_amount(value)

    @field_validator("expenses_by_category", mode="before")
    @classmethod
    def _coerce_categories(cls, value: object) -> dict[str, float]:
        if not isinstance(value, dict):
            return {}
        return {str(k): coerce_amount(v) for k, v in value.items()}

    @field_validator("top_expense_category", mode="before")
    @classmethod
    def _coerce_top(cls, value: object) -> Optional[tuple[str, float]]:
        if isinstance(value, dict):
            value = (value.get("category"), value.get("amount"))
        if not isinstance(value, (list, tuple)) or len(value) != 2 or not value[0]:
            return None
        return (str(value[0]), coerce_amount(value[1]))

    @field_validator("transaction_count", mode="before")
    @classmethod
    def _coerce_count(cls, value: object) -> int:
        return int(coerce_amount(value))


class Improvement(CamelModel):
    id: str
    area: str
    suggestion: str
    action: str


class SavingsTip(CamelModel):
    id: str
    text: str


class SpendingAnalysis(CamelModel):
    trend_direction: str
    trend: str
    top_category: str
    avg_transaction: str
    frequency: str


class BudgetSuggestion(CamelModel):
    rule: Optional[str] = None
    needs: Optional[str] = None
    wants: Optional[str] = None
    savings: Optional[str] = None
    category: Optional[str] = None
    current: Optional[str] = None
    suggestion: Optional[str] = None


class Goals(CamelModel):
    short_term: list[str]
    long_term: list[str]


class InsightPayload(CamelModel):
    health_score: int
    score_band: ScoreBand
    summary: str
    strengths: list[str]
    improvements: list[Improvement]
    spending_analysis: SpendingAnalysis
    savings_tips: list[SavingsTip]
    budget_suggestions: list[BudgetSuggestion]
    goals: Goals


class InsightRecord(CamelModel):
    signature: str
    generated_at: datetime
    payload: InsightPayload


class Recommendation(CamelModel):
    id: str
    title: str
    summary: str
    impact: str
    details: str


class InsightResponse(CamelModel):
    insights: InsightPayload
    dismissed_ids: list[str]
    generated_at: datetime
    cached: bool
    cycle_id: str
    recommendations: list[Recommendation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# HTTP request bodies


class CycleWindowRequest(CamelModel):
    cadence: CadenceConfig
    reference_date: Optional[date] = None


class PacingRequest(CamelModel):
    budget: BudgetRecord
    reference_date: Optional[date] = None


class ReportRequest(CamelModel):
    budgets: list[BudgetRecord] = Field(default_factory=list)
    period: ReportPeriod = ReportPeriod.week
    reference_date: Optional[date] = None


class InsightRequest(CamelModel):
    user_id: Optional[str] = None
    budget: BudgetRecord
    force_refresh: bool = False
    reference_date: Optional[date] = None


class DismissalIn(CamelModel):
    user_id: Optional[str] = None
    cycle_id: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    item_id: str = Field(..., min_length=1, max_length=200)
    dismissed: bool = True
