import math
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence, Union

from categories import category_key, category_label
from dates import local_today
from models import ReportPeriod, TransactionType
from periods import get_period_range, get_previous_range
from schemas import (
    BudgetRecord,
    CashBurnSummary,
    CategoryBreakdownEntry,
    PeriodRange,
    ReportBundle,
    SeriesPoint,
    TransactionRecord,
    TrendComparison,
)


def flatten_transactions(budgets: Iterable[BudgetRecord]) -> list[TransactionRecord]:
    flattened: list[TransactionRecord] = []
    for budget in budgets:
        for txn in budget.transactions:
            flattened.append(
                txn.model_copy(update={"budget_id": budget.id, "budget_name": budget.name})
            )
    return flattened


def filter_transactions_by_range(
    transactions: Iterable[TransactionRecord], period_range: PeriodRange
) -> list[TransactionRecord]:
    # Undated transactions have no bucket in a dated report.
    return [
        txn
        for txn in transactions
        if txn.date is not None and period_range.start <= txn.date <= period_range.end
    ]


def sum_by_type(
    transactions: Iterable[TransactionRecord], txn_type: TransactionType
) -> float:
    return sum(txn.amount for txn in transactions if txn.type == txn_type)


def _expenses(transactions: Iterable[TransactionRecord]) -> list[TransactionRecord]:
    return [txn for txn in transactions if txn.type == TransactionType.expense]


def build_category_breakdown(
    transactions: Iterable[TransactionRecord],
) -> list[CategoryBreakdownEntry]:
    totals: dict[str, list] = {}
    for txn in transactions:
        key = category_key(txn.category)
        entry = totals.setdefault(key, [category_label(txn.category), 0.0])
        entry[1] += txn.amount

    aggregate = sum(amount for _, amount in totals.values())
    breakdown = [
        CategoryBreakdownEntry(
            key=key,
            label=label,
            amount=amount,
            percent=(amount / aggregate * 100) if aggregate > 0 else 0.0,
        )
        for key, (label, amount) in totals.items()
    ]
    breakdown.sort(key=lambda entry: entry.amount, reverse=True)
    return breakdown


def _enumerate_days(period_range: PeriodRange) -> list[date]:
    days = []
    cursor = period_range.start.date()
    last = period_range.end.date()
    while cursor <= last:
        days.append(cursor)
        cursor += timedelta(days=1)
    return days


def build_income_expense_series(
    transactions: Sequence[TransactionRecord], period_range: PeriodRange
) -> list[SeriesPoint]:
    buckets: dict[date, list[float]] = {
        day: [0.0, 0.0] for day in _enumerate_days(period_range)
    }
    for txn in transactions:
        if txn.date is None:
            continue
        bucket = buckets.get(txn.date.date())
        if bucket is None:
            continue
        if txn.type == TransactionType.income:
            bucket[0] += txn.amount
        elif txn.type == TransactionType.expense:
            bucket[1] += txn.amount

    series = []
    for day, (income, expense) in buckets.items():
        if period_range.period == ReportPeriod.month:
            label = str(day.day)
        else:
            label = day.strftime("%a")
        series.append(SeriesPoint(date=day, label=label, income=income, expense=expense))
    return series


def calculate_trend_comparisons(
    transactions: Sequence[TransactionRecord],
    period_range: Optional[PeriodRange],
    previous_range: Optional[PeriodRange],
) -> list[TrendComparison]:
    if period_range is None or previous_range is None:
        return []
    expenses = _expenses(transactions)
    current = build_category_breakdown(filter_transactions_by_range(expenses, period_range))
    previous = build_category_breakdown(
        filter_transactions_by_range(expenses, previous_range)
    )
    previous_lookup = {entry.key: entry.amount for entry in previous}

    trends = []
    for entry in current:
        previous_amount = previous_lookup.get(entry.key, 0.0)
        change = entry.amount - previous_amount
        if previous_amount > 0:
            percent_change = change / previous_amount * 100
        elif entry.amount > 0:
            percent_change = 100.0
        else:
            percent_change = 0.0
        if not math.isfinite(percent_change):
            continue
        trends.append(
            TrendComparison(
                key=entry.key,
                category=entry.label,
                amount=entry.amount,
                previous_amount=previous_amount,
                change=change,
                percent_change=percent_change,
            )
        )
    trends.sort(key=lambda trend: abs(trend.percent_change), reverse=True)
    return trends


def build_cash_burn_summary(
    budgets: Iterable[BudgetRecord],
    transactions: Sequence[TransactionRecord],
    month_range: PeriodRange,
) -> CashBurnSummary:
    total_budgeted = sum(
        allocation.budgeted_amount
        for budget in budgets
        for allocation in budget.category_budgets
    )
    spent = sum(
        txn.amount
        for txn in filter_transactions_by_range(_expenses(transactions), month_range)
    )
    avg_daily_spend = spent / month_range.days if month_range.days > 0 else 0.0
    remaining = max(0.0, total_budgeted - spent)
    return CashBurnSummary(
        total_budgeted=total_budgeted,
        spent=spent,
        remaining=remaining,
        avg_daily_spend=avg_daily_spend,
        projected_days_left=remaining / avg_daily_spend if avg_daily_spend > 0 else None,
        progress=min(1.0, spent / total_budgeted) if total_budgeted > 0 else 0.0,
    )


def summarize_report(
    budgets: Sequence[BudgetRecord],
    period: Union[ReportPeriod, str] = ReportPeriod.week,
    reference_date: Optional[Union[date, datetime]] = None,
) -> ReportBundle:
    reference = reference_date or local_today()
    all_transactions = flatten_transactions(budgets)
    period_range = get_period_range(period, reference)
    previous_range = get_previous_range(period_range)
    scoped = filter_transactions_by_range(all_transactions, period_range)

    total_income = sum_by_type(scoped, TransactionType.income)
    total_expenses = sum_by_type(scoped, TransactionType.expense)
    return ReportBundle(
        range=period_range,
        previous_range=previous_range,
        total_income=total_income,
        total_expenses=total_expenses,
        avg_daily_spend=total_expenses / period_range.days if period_range.days > 0 else 0.0,
        balance=total_income - total_expenses,
        category_breakdown=build_category_breakdown(_expenses(scoped)),
        income_expense_series=build_income_expense_series(scoped, period_range),
        cash_burn=build_cash_burn_summary(
            budgets,
            all_transactions,
            get_period_range(ReportPeriod.month, reference),
        ),
        trends=calculate_trend_comparisons(all_transactions, period_range, previous_range),
    )
