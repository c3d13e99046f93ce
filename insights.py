"""Deterministic financial-health insights.

Everything here is a pure function of :class:`schemas.InsightMetrics`; caching,
dismissal storage and the clock live in :mod:`services`.
"""

import hashlib
import json
import re
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional, Union

from categories import category_key, category_label, normalize_category
from dates import local_today
from models import ScoreBand, TransactionType
from schemas import (
    BudgetRecord,
    BudgetSuggestion,
    Goals,
    Improvement,
    InsightMetrics,
    InsightPayload,
    Recommendation,
    SavingsTip,
    SpendingAnalysis,
)

SUMMARY_MESSAGES = {
    ScoreBand.excellent: (
        "Excellent financial health! You're demonstrating strong budgeting "
        "discipline with healthy savings and balanced spending."
    ),
    ScoreBand.good: (
        "Good financial foundation with room for optimization. A few adjustments "
        "could significantly improve your financial position."
    ),
    ScoreBand.needs_attention: (
        "Your finances need attention. Focus on increasing income, reducing "
        "expenses, or both to improve your financial stability."
    ),
    ScoreBand.critical: (
        "Critical financial situation requiring immediate action. Consider seeking "
        "financial counseling and implementing strict budgeting measures."
    ),
}

# (category, share of total expenses that triggers the tip, tip text)
CATEGORY_TIPS = (
    ("Groceries", 0.15, "🛒 Meal planning could reduce grocery costs by 15-20%"),
    ("Entertainment", 0.10, "🎮 Consider free entertainment alternatives to reduce costs"),
    ("Transportation", 0.15, "🚗 Explore carpooling or public transit options"),
)

_SLUG_NOISE = re.compile(r"[^a-z0-9]+")


def stable_id(prefix: str, text: str) -> str:
    slug = _SLUG_NOISE.sub("-", text.lower()).strip("-")
    return f"{prefix}:{slug}"


def cycle_id_for(moment: Optional[datetime] = None) -> str:
    """``YYYY-MM`` of ``moment`` in UTC."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{moment.year:04d}-{moment.month:02d}"


def _pct(part: float, whole: float) -> float:
    return part / whole * 100 if whole > 0 else 0.0


def top_category_share(metrics: InsightMetrics) -> float:
    if metrics.top_expense_category is None:
        return 0.0
    return _pct(metrics.top_expense_category[1], metrics.total_expenses)


def _category_amount(metrics: InsightMetrics, name: str) -> float:
    wanted = normalize_category(name)
    return sum(
        amount
        for category, amount in metrics.expenses_by_category.items()
        if normalize_category(category) == wanted
    )


# ---------------------------------------------------------------------------
# Metrics


def build_insight_metrics(
    budget: BudgetRecord, reference_date: Optional[Union[date, datetime]] = None
) -> InsightMetrics:
    reference = reference_date or local_today()
    if isinstance(reference, datetime):
        reference = reference.date()
    last7_start = reference - timedelta(days=6)
    previous7_start = reference - timedelta(days=13)

    total_income = 0.0
    total_expenses = 0.0
    last7 = 0.0
    previous7 = 0.0
    by_key: dict[str, list] = {}
    for txn in budget.transactions:
        if txn.type == TransactionType.income:
            total_income += txn.amount
            continue
        if txn.type != TransactionType.expense:
            continue
        total_expenses += txn.amount
        entry = by_key.setdefault(category_key(txn.category), [category_label(txn.category), 0.0])
        entry[1] += txn.amount
        if txn.date is None:
            continue
        day = txn.date.date()
        if last7_start <= day <= reference:
            last7 += txn.amount
        elif previous7_start <= day < last7_start:
            previous7 += txn.amount

    expenses_by_category = {label: amount for label, amount in by_key.values()}
    top = None
    if expenses_by_category:
        top = max(expenses_by_category.items(), key=lambda item: item[1])

    count = len(budget.transactions)
    balance = total_income - total_expenses
    return InsightMetrics(
        total_income=total_income,
        total_expenses=total_expenses,
        balance=balance,
        savings_rate=_pct(balance, total_income),
        expenses_by_category=expenses_by_category,
        top_expense_category=top,
        last7_days=last7,
        previous7_days=previous7,
        transaction_count=count,
        avg_transaction_amount=(total_income + total_expenses) / count if count else 0.0,
    )


def canonicalize_metrics(metrics: InsightMetrics) -> dict[str, object]:
    top = metrics.top_expense_category
    return {
        "totalIncome": round(metrics.total_income, 2),
        "totalExpenses": round(metrics.total_expenses, 2),
        "balance": round(metrics.balance, 2),
        "savingsRate": round(metrics.savings_rate, 2),
        "expensesByCategory": [
            [name, round(amount, 2)]
            for name, amount in sorted(metrics.expenses_by_category.items())
        ],
        "topExpenseCategory": [top[0], round(top[1], 2)] if top else None,
        "last7Days": round(metrics.last7_days, 2),
        "previous7Days": round(metrics.previous7_days, 2),
        "transactionCount": metrics.transaction_count,
        "avgTransactionAmount": round(metrics.avg_transaction_amount, 2),
    }


def metrics_signature(metrics: InsightMetrics) -> str:
    canonical = json.dumps(
        canonicalize_metrics(metrics), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Scoring


def calculate_health_score(metrics: InsightMetrics) -> int:
    score = 5

    if metrics.savings_rate > 20:
        score += 2
    elif metrics.savings_rate > 10:
        score += 1
    elif metrics.savings_rate < 0:
        score -= 2

    if metrics.balance > 0:
        score += 1
    else:
        score -= 1

    if metrics.transaction_count > 10:
        score += 1

    if top_category_share(metrics) > 50:
        score -= 1

    return max(1, min(10, score))


def score_band(health_score: int) -> ScoreBand:
    if health_score >= 8:
        return ScoreBand.excellent
    if health_score >= 6:
        return ScoreBand.good
    if health_score >= 4:
        return ScoreBand.needs_attention
    return ScoreBand.critical


def generate_strengths(metrics: InsightMetrics) -> list[str]:
    strengths = []
    if metrics.savings_rate > 15:
        strengths.append(
            "Strong savings discipline - you're saving above the recommended 15% rate"
        )
    if metrics.transaction_count > 15:
        strengths.append(
            "Excellent expense tracking - you're consistently recording transactions"
        )
    if metrics.balance > 0:
        strengths.append("Positive cash flow - you're living within your means")
    if len(metrics.expenses_by_category) >= 4:
        strengths.append(
            "Diversified spending across multiple categories shows balanced lifestyle"
        )
    if not strengths:
        strengths.append(
            "You're taking the first step by tracking your finances - that's commendable!"
        )
    return strengths


def generate_improvements(metrics: InsightMetrics) -> list[Improvement]:
    improvements = []

    if metrics.savings_rate < 10:
        area = "Increase Savings Rate"
        improvements.append(
            Improvement(
                id=stable_id("improvement", area),
                area=area,
                suggestion=(
                    "Aim to save at least 15-20% of income. "
                    f"Currently at {metrics.savings_rate:.1f}%"
                ),
                action="Set up automatic transfers to savings account",
            )
        )

    if metrics.balance < 0:
        area = "Address Negative Balance"
        improvements.append(
            Improvement(
                id=stable_id("improvement", area),
                area=area,
                suggestion="You're spending more than you earn - immediate action needed",
                action="Review and cut non-essential expenses immediately",
            )
        )

    share = top_category_share(metrics)
    if share > 40 and metrics.top_expense_category is not None:
        area = "Diversify Spending"
        top_name = metrics.top_expense_category[0]
        improvements.append(
            Improvement(
                id=stable_id("improvement", f"{area}-{top_name}"),
                area=area,
                suggestion=f"{top_name} represents {share:.1f}% of expenses",
                action="Look for ways to reduce this dominant expense category",
            )
        )

    if metrics.transaction_count < 10:
        area = "Improve Expense Tracking"
        improvements.append(
            Improvement(
                id=stable_id("improvement", area),
                area=area,
                suggestion="More consistent transaction recording will provide better insights",
                action="Set daily reminders to log expenses",
            )
        )

    return improvements


def generate_spending_analysis(metrics: InsightMetrics) -> SpendingAnalysis:
    increasing = metrics.last7_days > metrics.previous7_days
    top_name = metrics.top_expense_category[0] if metrics.top_expense_category else "Unknown"
    return SpendingAnalysis(
        trend_direction="increasing" if increasing else "decreasing",
        trend=(
            "📈 Spending increased in the last week"
            if increasing
            else "📉 Spending decreased in the last week"
        ),
        top_category=(
            f"🏆 Highest expense category: {top_name} "
            f"({top_category_share(metrics):.1f}% of total)"
        ),
        avg_transaction=f"💳 Average transaction: ${metrics.avg_transaction_amount:.2f}",
        frequency=(
            f"📊 Transaction frequency: {metrics.transaction_count} transactions recorded"
        ),
    )


def generate_savings_tips(metrics: InsightMetrics) -> list[SavingsTip]:
    tips = []
    for category, threshold, text in CATEGORY_TIPS:
        if _category_amount(metrics, category) > metrics.total_expenses * threshold:
            tips.append(SavingsTip(id=stable_id("tip", category), text=text))
    tips.append(
        SavingsTip(
            id=stable_id("tip", "24-hour-rule"),
            text="💡 Try the 24-hour rule: wait a day before non-essential purchases",
        )
    )
    tips.append(
        SavingsTip(
            id=stable_id("tip", "automate-savings"),
            text="🏦 Automate savings to make it effortless",
        )
    )
    return tips


def generate_budget_suggestions(metrics: InsightMetrics) -> list[BudgetSuggestion]:
    suggestions = [
        BudgetSuggestion(
            rule="50/30/20 Budget Rule",
            needs=f"Needs (50%): ${metrics.total_expenses * 0.5:.2f}",
            wants=f"Wants (30%): ${metrics.total_expenses * 0.3:.2f}",
            savings=f"Savings (20%): ${metrics.total_income * 0.2:.2f}",
        )
    ]
    for category, amount in metrics.expenses_by_category.items():
        percentage = _pct(amount, metrics.total_expenses)
        if percentage > 30:
            suggestions.append(
                BudgetSuggestion(
                    category=category,
                    current=f"{percentage:.1f}%",
                    suggestion="Consider reducing this category to below 25% of total expenses",
                )
            )
    return suggestions


def generate_goals(metrics: InsightMetrics) -> Goals:
    short_term = []
    if metrics.savings_rate < 15:
        short_term.append("Increase savings rate to 15% within 2 months")
    if metrics.balance < metrics.total_income * 0.25:
        short_term.append("Build emergency fund equal to 1 month of expenses")
    short_term.append("Track all expenses for 30 consecutive days")

    long_term = [
        "Build emergency fund covering 3-6 months of expenses",
        "Achieve 20% savings rate consistently",
        "Diversify income sources",
    ]
    if metrics.total_income > 0:
        long_term.append(
            f"Save ${metrics.total_expenses * 6:.2f} for full emergency fund"
        )
    return Goals(short_term=short_term, long_term=long_term)


def build_insights(
    metrics: InsightMetrics,
    summaries: Mapping[ScoreBand, str] = SUMMARY_MESSAGES,
) -> InsightPayload:
    """Deterministic insight payload for ``metrics``.

    ``summaries`` maps each score band to display copy; callers with their own
    wording pass a different mapping.
    """
    health_score = calculate_health_score(metrics)
    band = score_band(health_score)
    return InsightPayload(
        health_score=health_score,
        score_band=band,
        summary=summaries[band],
        strengths=generate_strengths(metrics),
        improvements=generate_improvements(metrics),
        spending_analysis=generate_spending_analysis(metrics),
        savings_tips=generate_savings_tips(metrics),
        budget_suggestions=generate_budget_suggestions(metrics),
        goals=generate_goals(metrics),
    )


# ---------------------------------------------------------------------------
# Render-time helpers


def dismissible_ids(payload: InsightPayload) -> set[str]:
    return {item.id for item in payload.improvements} | {
        tip.id for tip in payload.savings_tips
    }


def active_dismissals(payload: InsightPayload, dismissed_ids: Iterable[str]) -> list[str]:
    """Stored dismissal flags that refer to items present in ``payload``."""
    generated = dismissible_ids(payload)
    return sorted(item_id for item_id in set(dismissed_ids) if item_id in generated)


def visible_payload(payload: InsightPayload, dismissed_ids: Iterable[str]) -> InsightPayload:
    hidden = set(dismissed_ids)
    return payload.model_copy(
        update={
            "improvements": [i for i in payload.improvements if i.id not in hidden],
            "savings_tips": [t for t in payload.savings_tips if t.id not in hidden],
        }
    )


def _whole_dollars(value: float) -> str:
    return f"${round(value):,}"


def build_recommendations(
    metrics: InsightMetrics, payload: Optional[InsightPayload] = None
) -> list[Recommendation]:
    """Up to three concrete next steps derived from ``metrics``."""
    recommendations = []

    if metrics.top_expense_category is not None:
        category, amount = metrics.top_expense_category
        trim = amount * 0.1
        recommendations.append(
            Recommendation(
                id="category-trim",
                title=f"Dial back {category}",
                summary=(
                    f"Set a simple limit for {category} this week. "
                    f"Shift {_whole_dollars(trim)} to savings instead."
                ),
                impact=f"{_whole_dollars(trim)} / wk",
                details=(
                    "Check the last few receipts in this category and cap one outing "
                    "or order. Moving a small slice now builds the habit without a shock."
                ),
            )
        )

    if metrics.total_income > 0:
        target = metrics.total_income * 0.2
        actual = max(0.0, metrics.balance)
        if target > actual + 1:
            gap = target - actual
            recommendations.append(
                Recommendation(
                    id="auto-transfer",
                    title="Schedule payday transfers",
                    summary=(
                        f"Automate {_whole_dollars(gap / 4)} into savings every week "
                        "to hit a 20% savings rate."
                    ),
                    impact=f"{_whole_dollars(gap)} / mo",
                    details=(
                        "Set the transfer to run the morning after your paycheck hits. "
                        "Treat it like a bill so the money moves before you can spend it."
                    ),
                )
            )

    diff = metrics.last7_days - metrics.previous7_days
    if abs(diff) >= 50:
        if diff > 0:
            summary = (
                f"Add a 5-minute review on Wednesday to cut {_whole_dollars(diff / 2)} "
                "of extra spend before the weekend."
            )
        else:
            summary = (
                "Use Wednesday to plan how to save another "
                f"{_whole_dollars(abs(diff) / 2)} while momentum is high."
            )
        recommendations.append(
            Recommendation(
                id="midweek-check",
                title="Hold a midweek check-in",
                summary=summary,
                impact=f"{_whole_dollars(abs(diff) / 2)} / wk",
                details=(
                    "Put the reminder on your phone. Look at the top 3 transactions so "
                    "far, then choose one swap or skip for the rest of the week."
                ),
            )
        )

    if not recommendations and payload is not None:
        for index, item in enumerate(payload.improvements[:3]):
            recommendations.append(
                Recommendation(
                    id=f"insight-{index}",
                    title=item.area,
                    summary=item.action,
                    impact="-",
                    details=item.suggestion,
                )
            )

    return recommendations[:3]
