"""
Rent escalation calculator.

Pure functions over calendar dates and Decimal money:

- `next_increment` finds how many increment cycles have passed since the
  rent start date and previews the next increment.
- `next_payment_due` and `reminder_dates` derive the payment schedule.

All anchors are computed directly from the start date (start + k cycles),
never by chaining additions, so day-of-month clamping cannot drift.
Inputs that cannot produce a preview yield None instead of raising.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from hoarding_rental.models.base import IncrementType, PaymentFrequency
from hoarding_rental.utils.date_utils import (
    DateLike,
    DateUtilsError,
    add_months,
    add_years,
    parse_date,
    today_utc,
)

MONEY_QUANTUM = Decimal("0.01")
HUNDRED = Decimal("100")

PERIOD_MONTHS = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.QUARTERLY: 3,
    PaymentFrequency.HALF_YEARLY: 6,
    PaymentFrequency.YEARLY: 12,
}

_FREQUENCY_ALIASES = {
    "HALFYEARLY": PaymentFrequency.HALF_YEARLY,
    "ANNUAL": PaymentFrequency.YEARLY,
    "ANNUALLY": PaymentFrequency.YEARLY,
}


@dataclass(frozen=True)
class IncrementPreview:
    """Outcome of an escalation calculation for one reference date."""

    cycles_passed: int
    current_rent: Decimal
    next_date: date
    next_rent: Decimal
    last_increment_date: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "cycles_passed": self.cycles_passed,
            "current_rent": str(self.current_rent),
            "next_date": self.next_date.isoformat(),
            "next_rent": str(self.next_rent),
            "last_increment_date": self.last_increment_date.isoformat() if self.last_increment_date else None,
        }


def to_money(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert int/str/float/Decimal to Decimal, or None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() keeps floats at their shortest repr (0.1, not 0.1000000000000000055)
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    return result if result.is_finite() else None


def parse_increment_type(value: Any) -> Optional[IncrementType]:
    if isinstance(value, IncrementType):
        return value
    if value is None:
        return None
    try:
        return IncrementType(str(value).strip().upper())
    except ValueError:
        return None


def parse_payment_frequency(value: Any) -> Optional[PaymentFrequency]:
    """Accepts enum members and names such as 'Monthly', 'HalfYearly', 'half-yearly'."""
    if isinstance(value, PaymentFrequency):
        return value
    if value is None:
        return None
    key = str(value).strip().upper().replace("-", "_").replace(" ", "_")
    if key in _FREQUENCY_ALIASES:
        return _FREQUENCY_ALIASES[key]
    try:
        return PaymentFrequency(key)
    except ValueError:
        return None


def apply_increment(current: Decimal, increment_type: IncrementType, increment_value: Decimal) -> Decimal:
    """One cycle of the increment rule, rounded to money precision."""
    if increment_type == IncrementType.PERCENTAGE:
        return to_money(current + current * increment_value / HUNDRED)
    return to_money(current + increment_value)


def anchor_date(start: date, cycle_years: int, k: int) -> date:
    """The k-th increment anchor: start + k * cycle_years years, day clamped."""
    return add_years(start, k * cycle_years)


def count_cycles_passed(start: date, cycle_years: int, reference: date) -> int:
    """
    Largest k >= 0 with anchor(k) strictly before `reference`.

    A reference date equal to an anchor has reached that boundary but not
    passed it, so the increment on that anchor is still "next".
    """
    if reference <= start:
        return 0

    k = max(0, (reference.year - start.year) // cycle_years)
    while k > 0 and anchor_date(start, cycle_years, k) >= reference:
        k -= 1
    while anchor_date(start, cycle_years, k + 1) < reference:
        k += 1
    return k


def next_increment(
    base_rent: Any,
    increment_cycle_years: Any,
    increment_type: Any,
    increment_value: Any,
    rent_start_date: Optional[DateLike],
    reference_date: Optional[DateLike] = None,
) -> Optional[IncrementPreview]:
    """
    Preview the next rent increment.

    Args:
        base_rent: Rent at the start date (must be > 0)
        increment_cycle_years: Years per cycle (must be a positive integer)
        increment_type: PERCENTAGE or AMOUNT
        increment_value: Percent or flat amount per cycle; missing means 0
        rent_start_date: Anchor date (date, datetime or ISO string)
        reference_date: Date to evaluate at, today (UTC) by default

    Returns:
        IncrementPreview, or None when no preview is available
    """
    base = to_decimal(base_rent)
    if base is None or base <= 0:
        return None

    try:
        cycle_years = int(increment_cycle_years)
    except (TypeError, ValueError):
        return None
    if cycle_years <= 0 or cycle_years != to_decimal(increment_cycle_years):
        return None

    rule = parse_increment_type(increment_type)
    if rule is None:
        return None

    value = Decimal("0") if increment_value in (None, "") else to_decimal(increment_value)
    if value is None or value < 0:
        return None

    try:
        start = parse_date(rent_start_date)
        reference = parse_date(reference_date) if reference_date is not None else today_utc()
    except DateUtilsError:
        return None

    try:
        cycles = count_cycles_passed(start, cycle_years, reference)
        next_date = anchor_date(start, cycle_years, cycles + 1)
    except (ValueError, OverflowError):
        # Beyond the calendar's last representable year
        return None

    current = to_money(base)
    for _ in range(cycles):
        current = apply_increment(current, rule, value)

    return IncrementPreview(
        cycles_passed=cycles,
        current_rent=current,
        next_date=next_date,
        next_rent=apply_increment(current, rule, value),
        last_increment_date=anchor_date(start, cycle_years, cycles) if cycles else None,
    )


def next_payment_due(
    rent_start_date: Optional[DateLike],
    payment_frequency: Any,
    last_payment_date: Optional[DateLike] = None,
    reference_date: Optional[DateLike] = None,
) -> Optional[date]:
    """
    Next scheduled payment date on the fixed cycle anchored at the start.

    The result is the first start + n periods (n >= 1) strictly after both
    the last payment and the reference date (today UTC by default). Late
    payments do not shift the schedule, and an old record with nothing paid
    still reports an upcoming date.
    """
    frequency = parse_payment_frequency(payment_frequency)
    if frequency is None:
        return None

    try:
        start = parse_date(rent_start_date)
        last_paid = parse_date(last_payment_date) if last_payment_date is not None else None
        reference = parse_date(reference_date) if reference_date is not None else today_utc()
    except DateUtilsError:
        return None

    bound = max(reference, last_paid) if last_paid is not None else reference
    months = PERIOD_MONTHS[frequency]
    n = 1
    if bound >= start:
        elapsed_months = (bound.year - start.year) * 12 + (bound.month - start.month)
        n = max(1, elapsed_months // months)
        while n > 1 and add_months(start, (n - 1) * months) > bound:
            n -= 1
        while add_months(start, n * months) <= bound:
            n += 1

    return add_months(start, n * months)


def reminder_dates(due_date: Optional[DateLike], reminder_days: Iterable[Any]) -> List[date]:
    """
    Dates on which to remind about a payment, latest first.

    Non-positive or non-numeric offsets are ignored; duplicates collapse.
    """
    if due_date is None:
        return []
    try:
        due = parse_date(due_date)
    except DateUtilsError:
        return []

    offsets = set()
    for raw in reminder_days or []:
        try:
            days = int(raw)
        except (TypeError, ValueError):
            continue
        if days > 0:
            offsets.add(days)

    return [due - timedelta(days=days) for days in sorted(offsets)]
