from datetime import date, datetime
from typing import Iterable, Optional, Union

from cadence import resolve_cycle_window
from categories import category_key
from dates import local_today
from models import (
    STATUS_LABELS,
    STATUS_SEVERITY,
    GuardrailStatus,
    TransactionType,
)
from schemas import (
    BudgetRecord,
    CycleWindow,
    GuardrailResult,
    PacingResult,
    TransactionRecord,
)

EPSILON = 0.01


def guardrail_status(actual: float, budgeted: float, expected: float) -> GuardrailStatus:
    if budgeted <= 0:
        return GuardrailStatus.red if actual > EPSILON else GuardrailStatus.green
    if actual <= expected + EPSILON:
        return GuardrailStatus.green
    if actual <= budgeted + EPSILON:
        return GuardrailStatus.yellow
    return GuardrailStatus.red


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _tooltip(actual: float, budgeted: float, expected: float, ratio: float) -> str:
    if budgeted <= 0:
        if actual > EPSILON:
            return f"Spending {_money(actual)} without a set budget for this cycle."
        return "No budget set for this period."
    return (
        f"Spent {_money(actual)} of {_money(budgeted)} with {round(ratio * 100)}% "
        f"of the cycle elapsed (expected {_money(expected)})."
    )


def evaluate_guardrail(actual: float, budgeted: float, elapsed_ratio: float) -> GuardrailResult:
    expected = budgeted * elapsed_ratio
    status = guardrail_status(actual, budgeted, expected)
    return GuardrailResult(
        status=status,
        label=STATUS_LABELS[status],
        actual=actual,
        expected=expected,
        budgeted=budgeted,
        elapsed_ratio=elapsed_ratio,
        tooltip=_tooltip(actual, budgeted, expected, elapsed_ratio),
    )


def expenses_in_cycle(
    transactions: Iterable[TransactionRecord], window: CycleWindow
) -> list[TransactionRecord]:
    # Undated expenses count toward the current cycle.
    expenses = []
    for txn in transactions:
        if txn.type != TransactionType.expense:
            continue
        if txn.date is not None and not (window.start <= txn.date.date() < window.end):
            continue
        expenses.append(txn)
    return expenses


def compute_pacing(
    budget: BudgetRecord, reference_date: Optional[Union[date, datetime]] = None
) -> PacingResult:
    reference = reference_date or local_today()
    window = resolve_cycle_window(budget.cadence, reference)
    ratio = window.elapsed_ratio

    spent_by_key: dict[str, float] = {}
    for txn in expenses_in_cycle(budget.transactions, window):
        key = category_key(txn.category)
        spent_by_key[key] = spent_by_key.get(key, 0.0) + txn.amount

    categories: dict[str, GuardrailResult] = {}
    total_actual = 0.0
    total_budgeted = 0.0
    for allocation in budget.category_budgets:
        actual = spent_by_key.get(category_key(allocation.category), 0.0)
        categories[allocation.category.strip()] = evaluate_guardrail(
            actual, allocation.budgeted_amount, ratio
        )
        total_actual += actual
        total_budgeted += allocation.budgeted_amount

    overall = evaluate_guardrail(total_actual, total_budgeted, ratio)
    statuses = [result.status for result in categories.values()] or [overall.status]
    worst = max(statuses, key=STATUS_SEVERITY.__getitem__)
    return PacingResult(
        cadence_type=budget.cadence.type,
        cycle=window,
        overall=overall,
        categories=categories,
        worst_status=worst,
    )
