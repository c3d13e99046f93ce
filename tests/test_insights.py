from datetime import date, datetime, timezone

from insights import (
    active_dismissals,
    build_insight_metrics,
    build_insights,
    build_recommendations,
    calculate_health_score,
    cycle_id_for,
    metrics_signature,
    score_band,
    stable_id,
    visible_payload,
)
from models import ScoreBand
from schemas import BudgetRecord, InsightMetrics


def _metrics(**overrides) -> InsightMetrics:
    base = dict(
        total_income=4500,
        total_expenses=1520,
        balance=2980,
        savings_rate=66.22,
        expenses_by_category={},
        top_expense_category=None,
        last7_days=0,
        previous7_days=0,
        transaction_count=3,
        avg_transaction_amount=2006.67,
    )
    base.update(overrides)
    return InsightMetrics(**base)


def test_healthy_budget_scores_excellent() -> None:
    payload = build_insights(_metrics())
    assert payload.health_score == 8
    assert payload.score_band == ScoreBand.excellent
    assert payload.summary.startswith("Excellent financial health!")


def test_health_score_is_clamped() -> None:
    worst = _metrics(
        total_income=100,
        total_expenses=1000,
        balance=-900,
        savings_rate=-900,
        top_expense_category=("Rent", 1000),
        transaction_count=0,
    )
    assert calculate_health_score(worst) == 1

    for savings_rate in (-50, 0, 12, 25):
        for balance in (-10, 0, 10):
            for count in (0, 11):
                for top in (None, ("Rent", 100), ("Rent", 900)):
                    metrics = _metrics(
                        savings_rate=savings_rate,
                        balance=balance,
                        transaction_count=count,
                        total_expenses=1000,
                        top_expense_category=top,
                    )
                    assert 1 <= calculate_health_score(metrics) <= 10


def test_score_bands() -> None:
    assert score_band(10) == ScoreBand.excellent
    assert score_band(6) == ScoreBand.good
    assert score_band(4) == ScoreBand.needs_attention
    assert score_band(3) == ScoreBand.critical


def test_summary_copy_can_be_supplied_by_caller() -> None:
    copy = {band: band.value.upper() for band in ScoreBand}
    assert build_insights(_metrics(), summaries=copy).summary == "EXCELLENT"


def test_strengths_fall_back_to_encouragement() -> None:
    payload = build_insights(InsightMetrics())
    assert payload.strengths == [
        "You're taking the first step by tracking your finances - that's commendable!"
    ]


def test_strengths_reflect_metrics() -> None:
    metrics = _metrics(
        transaction_count=20,
        expenses_by_category={"A": 1, "B": 1, "C": 1, "D": 1},
    )
    assert len(build_insights(metrics).strengths) == 4


def test_improvements_have_slugged_stable_ids() -> None:
    metrics = _metrics(
        total_income=950,
        total_expenses=1000,
        balance=-50,
        savings_rate=-5.3,
        top_expense_category=("Rent & Bills", 900),
    )
    improvements = build_insights(metrics).improvements
    assert [item.id for item in improvements] == [
        "improvement:increase-savings-rate",
        "improvement:address-negative-balance",
        "improvement:diversify-spending-rent-bills",
        "improvement:improve-expense-tracking",
    ]
    assert improvements[0].suggestion.endswith("Currently at -5.3%")
    assert improvements[2].suggestion == "Rent & Bills represents 90.0% of expenses"
    assert build_insights(metrics).improvements == improvements


def test_stable_id_slugging() -> None:
    assert stable_id("tip", "  24-Hour Rule!! ") == "tip:24-hour-rule"


def test_savings_tips_follow_category_thresholds() -> None:
    metrics = _metrics(
        total_expenses=1000,
        expenses_by_category={"groceries ": 300, "Entertainment": 50, "Transportation": 200},
    )
    ids = [tip.id for tip in build_insights(metrics).savings_tips]
    assert ids == [
        "tip:groceries",
        "tip:transportation",
        "tip:24-hour-rule",
        "tip:automate-savings",
    ]


def test_budget_suggestions_include_rule_and_dominant_categories() -> None:
    metrics = _metrics(
        total_income=2000,
        total_expenses=1000,
        expenses_by_category={"Rent": 600, "Food": 250, "Fun": 150},
    )
    suggestions = build_insights(metrics).budget_suggestions
    assert suggestions[0].rule == "50/30/20 Budget Rule"
    assert suggestions[0].needs == "Needs (50%): $500.00"
    assert suggestions[0].wants == "Wants (30%): $300.00"
    assert suggestions[0].savings == "Savings (20%): $400.00"
    assert [s.category for s in suggestions[1:]] == ["Rent"]
    assert suggestions[1].current == "60.0%"


def test_spending_analysis_and_goals() -> None:
    payload = build_insights(
        _metrics(last7_days=200, previous7_days=100, top_expense_category=("Rent", 760))
    )
    analysis = payload.spending_analysis
    assert analysis.trend_direction == "increasing"
    assert "Rent (50.0% of total)" in analysis.top_category
    assert analysis.avg_transaction == "💳 Average transaction: $2006.67"
    assert analysis.frequency == "📊 Transaction frequency: 3 transactions recorded"
    assert payload.goals.short_term
    assert payload.goals.long_term[-1] == "Save $9120.00 for full emergency fund"

    empty = build_insights(InsightMetrics())
    assert empty.spending_analysis.trend_direction == "decreasing"
    assert "Unknown (0.0% of total)" in empty.spending_analysis.top_category
    assert empty.goals.short_term and empty.goals.long_term


def test_build_insight_metrics_from_budget() -> None:
    budget = BudgetRecord.model_validate(
        {
            "transactions": [
                {"amount": 4500, "category": "Salary", "type": "income", "date": "2025-01-02"},
                {"amount": 1200, "category": "Rent", "type": "expense", "date": "2025-01-03"},
                {"amount": 200, "category": "Groceries", "type": "expense", "date": "2025-01-07"},
                {"amount": 120, "category": "groceries", "type": "expense", "date": "2024-12-28"},
            ]
        }
    )
    metrics = build_insight_metrics(budget, date(2025, 1, 8))
    assert metrics.total_income == 4500
    assert metrics.total_expenses == 1520
    assert metrics.balance == 2980
    assert round(metrics.savings_rate, 2) == 66.22
    assert metrics.expenses_by_category == {"Rent": 1200, "Groceries": 320}
    assert metrics.top_expense_category == ("Rent", 1200)
    assert metrics.last7_days == 1400
    assert metrics.previous7_days == 120
    assert metrics.transaction_count == 4
    assert metrics.avg_transaction_amount == 1505


def test_metrics_without_income_have_zero_savings_rate() -> None:
    budget = BudgetRecord.model_validate(
        {"transactions": [{"amount": 20, "type": "expense", "date": "2025-01-07"}]}
    )
    metrics = build_insight_metrics(budget, date(2025, 1, 8))
    assert metrics.savings_rate == 0
    assert metrics.top_expense_category == ("Uncategorized", 20)


def test_signature_ignores_ordering_and_sub_cent_noise() -> None:
    first = _metrics(expenses_by_category={"Rent": 1200, "Food": 320})
    second = _metrics(
        total_expenses=1520.001, expenses_by_category={"Food": 320.0001, "Rent": 1200}
    )
    assert metrics_signature(first) == metrics_signature(second)
    assert metrics_signature(first) != metrics_signature(_metrics(total_expenses=1521))


def test_metrics_accept_camel_case_payloads() -> None:
    metrics = InsightMetrics.model_validate(
        {
            "totalIncome": "4500",
            "totalExpenses": 1520,
            "topExpenseCategory": ["Rent", "1200"],
            "last7Days": 10,
            "transactionCount": "3",
        }
    )
    assert metrics.total_income == 4500
    assert metrics.top_expense_category == ("Rent", 1200)
    assert metrics.last7_days == 10
    assert metrics.transaction_count == 3


def test_cycle_id_is_utc_month() -> None:
    assert cycle_id_for(datetime(2025, 1, 8, 12, 0)) == "2025-01"
    assert cycle_id_for(datetime(2025, 2, 1, 0, 30, tzinfo=timezone.utc)) == "2025-02"


def test_dismissals_are_intersected_with_generated_items() -> None:
    payload = build_insights(_metrics(savings_rate=5))
    dismissed = ["tip:automate-savings", "improvement:retired-item"]
    assert active_dismissals(payload, dismissed) == ["tip:automate-savings"]

    visible = visible_payload(payload, dismissed)
    assert "tip:automate-savings" not in {tip.id for tip in visible.savings_tips}
    assert len(visible.improvements) == len(payload.improvements)
    assert len(payload.savings_tips) == len(visible.savings_tips) + 1


def test_recommendations_from_metrics() -> None:
    metrics = _metrics(
        top_expense_category=("Rent", 1200), last7_days=1400, previous7_days=120
    )
    recommendations = build_recommendations(metrics)
    assert [rec.id for rec in recommendations] == ["category-trim", "midweek-check"]
    assert recommendations[0].title == "Dial back Rent"
    assert recommendations[0].impact == "$120 / wk"
    assert recommendations[1].impact == "$640 / wk"


def test_recommendations_fall_back_to_improvements() -> None:
    metrics = InsightMetrics()
    payload = build_insights(metrics)
    recommendations = build_recommendations(metrics, payload)
    assert [rec.id for rec in recommendations] == ["insight-0", "insight-1"]
    assert recommendations[0].title == "Increase Savings Rate"
    assert build_recommendations(metrics) == []


def test_metrics_skip_transactions_of_unknown_type() -> None:
    budget = BudgetRecord.model_validate(
        {
            "transactions": [
                {"amount": 1000, "type": "income", "date": "2025-01-02"},
                {"amount": 200, "category": "Rent", "type": "expense", "date": "2025-01-07"},
                {"amount": 500, "category": "Savings", "type": "transfer", "date": "2025-01-07"},
            ]
        }
    )
    metrics = build_insight_metrics(budget, date(2025, 1, 8))
    assert metrics.total_expenses == 200
    assert metrics.expenses_by_category == {"Rent": 200}
    assert metrics.last7_days == 200
