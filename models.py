from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class CadenceType(str, Enum):
    weekly = "weekly"
    biweekly = "biweekly"
    semi_monthly = "semi-monthly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"
    custom = "custom"
    per_paycheck = "per-paycheck"


CADENCE_ALIASES = {
    "fortnightly": CadenceType.biweekly,
    "bi-weekly": CadenceType.biweekly,
    "semimonthly": CadenceType.semi_monthly,
    "semi_monthly": CadenceType.semi_monthly,
    "annual": CadenceType.yearly,
    "annually": CadenceType.yearly,
    "per_paycheck": CadenceType.per_paycheck,
    "paycheck": CadenceType.per_paycheck,
}


class GuardrailStatus(str, Enum):
    green = "green"
    yellow = "yellow"
    red = "red"


STATUS_LABELS = {
    GuardrailStatus.green: "On Track",
    GuardrailStatus.yellow: "Monitor",
    GuardrailStatus.red: "Over Budget",
}

# Severity order for worst-case roll-ups.
STATUS_SEVERITY = {
    GuardrailStatus.green: 0,
    GuardrailStatus.yellow: 1,
    GuardrailStatus.red: 2,
}


class ReportPeriod(str, Enum):
    week = "week"
    month = "month"
    custom = "custom"


class ScoreBand(str, Enum):
    excellent = "excellent"
    good = "good"
    needs_attention = "needs_attention"
    critical = "critical"


class InsightCacheEntry(Base):
    __tablename__ = "insight_cache"
    __table_args__ = (
        UniqueConstraint("user_id", "cycle_id", name="uq_insight_cache_user_cycle"),
        Index("ix_insight_cache_generated_at", "generated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(120), nullable=False)
    cycle_id: Mapped[str] = mapped_column(String(7), nullable=False)
    signature: Mapped[str] = mapped_column(String(64), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)


class InsightDismissal(Base):
    __tablename__ = "insight_dismissals"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "cycle_id", "item_id", name="uq_insight_dismissal_item"
        ),
        Index("ix_insight_dismissal_user_cycle", "user_id", "cycle_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(120), nullable=False)
    cycle_id: Mapped[str] = mapped_column(String(7), nullable=False)
    item_id: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
