from datetime import date, datetime, timedelta
from typing import Optional, Union

from dates import end_of_day, local_today, month_end, month_start, start_of_day
from models import ReportPeriod
from schemas import PeriodRange


def _month_range(first: date) -> PeriodRange:
    last = month_end(first)
    return PeriodRange(
        period=ReportPeriod.month,
        start=start_of_day(first),
        end=end_of_day(last),
        days=(last - first).days + 1,
        label=first.strftime("%B %Y"),
    )


def get_period_range(
    period: Union[ReportPeriod, str, None] = ReportPeriod.week,
    reference_date: Optional[Union[date, datetime]] = None,
) -> PeriodRange:
    """Fixed report window containing ``reference_date``.

    ``week`` is the trailing 7 days including the reference day, ``month`` the
    calendar month and ``custom`` the trailing 14 days. Unknown periods fall
    back to ``week``.
    """
    today = reference_date or local_today()
    if isinstance(today, datetime):
        today = today.date()
    try:
        slug = ReportPeriod(period) if period else ReportPeriod.week
    except ValueError:
        slug = ReportPeriod.week

    if slug == ReportPeriod.month:
        return _month_range(month_start(today))
    if slug == ReportPeriod.custom:
        return PeriodRange(
            period=ReportPeriod.custom,
            start=start_of_day(today - timedelta(days=13)),
            end=end_of_day(today),
            days=14,
            label="Last 14 days",
        )
    return PeriodRange(
        period=ReportPeriod.week,
        start=start_of_day(today - timedelta(days=6)),
        end=end_of_day(today),
        days=7,
        label="Last 7 days",
    )


def get_previous_range(current: PeriodRange) -> PeriodRange:
    if current.period == ReportPeriod.month:
        last_month_end = current.start.date() - date.resolution
        return _month_range(month_start(last_month_end))

    prev_end = current.start.date() - timedelta(days=1)
    prev_start = prev_end - timedelta(days=current.days - 1)
    return PeriodRange(
        period=current.period,
        start=start_of_day(prev_start),
        end=end_of_day(prev_end),
        days=current.days,
        label="Previous period",
    )
