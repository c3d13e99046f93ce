import logging
from datetime import date, datetime
from typing import Optional, Union

from dates import add_days, add_months, days_between, local_today
from models import CadenceType
from schemas import CadenceConfig, CycleWindow

logger = logging.getLogger(__name__)

DEFAULT_CUSTOM_DAYS = 14
MAX_CYCLE_STEPS = 730

FIXED_LENGTH_DAYS = {
    CadenceType.weekly: 7,
    CadenceType.biweekly: 14,
    CadenceType.semi_monthly: 15,
    CadenceType.quarterly: 91,
    CadenceType.yearly: 365,
}


def cycle_length_days(cadence: CadenceConfig) -> Optional[int]:
    """Nominal cycle length, or ``None`` for calendar-month cadences."""
    if cadence.type == CadenceType.monthly:
        return None
    if cadence.type in (CadenceType.custom, CadenceType.per_paycheck):
        days = cadence.custom_days if cadence.custom_days is not None else DEFAULT_CUSTOM_DAYS
        return max(1, days)
    return FIXED_LENGTH_DAYS[cadence.type]


def _cycle_start(cadence: CadenceConfig, anchor: date, index: int) -> date:
    length = cycle_length_days(cadence)
    if length is None:
        # Offsets are taken from the anchor so a 31st anchor returns to the
        # 31st after passing through shorter months.
        return add_months(anchor, index, desired_day=anchor.day)
    return add_days(anchor, index * length)


def _normalize(reference: Union[date, datetime, None]) -> date:
    if reference is None:
        return local_today()
    if isinstance(reference, datetime):
        return reference.date()
    return reference


def resolve_cycle_window(
    cadence: CadenceConfig, reference_date: Union[date, datetime, None] = None
) -> CycleWindow:
    """Locate the cadence cycle containing ``reference_date``.

    Steps one cycle at a time from the cadence start date, backwards while the
    candidate starts after the reference and forwards while the reference is on
    or after the candidate end. If containment is not reached within
    ``MAX_CYCLE_STEPS`` steps the result is a degraded one-day window
    ``[reference, reference + 1 day)``.
    """
    reference = _normalize(reference_date)
    anchor = cadence.start_date or reference

    index = 0
    start = _cycle_start(cadence, anchor, index)
    end = _cycle_start(cadence, anchor, index + 1)
    steps = 0
    while not (start <= reference < end):
        if steps >= MAX_CYCLE_STEPS:
            logger.warning(
                f"cycle_resolution_overflow: type={cadence.type.value} "
                f"anchor={anchor.isoformat()} reference={reference.isoformat()}"
            )
            return CycleWindow(
                start=reference,
                end=add_days(reference, 1),
                cycle_length_days=1.0,
                elapsed_days=0.0,
                elapsed_ratio=0.0,
                degraded=True,
            )
        index += -1 if start > reference else 1
        start = _cycle_start(cadence, anchor, index)
        end = _cycle_start(cadence, anchor, index + 1)
        steps += 1

    length = max(1.0, days_between(start, end))
    elapsed = max(0.0, days_between(start, reference))
    ratio = min(1.0, max(0.0, elapsed / length))
    return CycleWindow(
        start=start,
        end=end,
        cycle_length_days=length,
        elapsed_days=elapsed,
        elapsed_ratio=ratio,
    )
