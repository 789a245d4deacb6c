"""Date manipulation utilities"""

from datetime import date

from dateutil.relativedelta import relativedelta

from envelope_ledger.domain.models import FREQUENCIES

_STEPS = {
    "weekly": relativedelta(weeks=1),
    "fortnightly": relativedelta(weeks=2),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "annual": relativedelta(years=1),
}


def advance_date(frequency: str, from_date: date) -> date:
    """
    Next occurrence after from_date for a recurring frequency.

    Month-based steps clamp to the last day of shorter months
    (Jan 31 + 1 month → Feb 28/29).
    """
    try:
        step = _STEPS[frequency]
    except KeyError:
        raise ValueError(f"Unknown frequency {frequency!r}; expected one of {', '.join(FREQUENCIES)}")
    return from_date + step
