"""Unit tests for recurring date arithmetic"""

import pytest
from datetime import date
from envelope_ledger.utils.date_utils import advance_date


@pytest.mark.parametrize(
    "frequency,start,expected",
    [
        ("weekly", date(2024, 1, 1), date(2024, 1, 8)),
        ("fortnightly", date(2024, 1, 1), date(2024, 1, 15)),
        ("monthly", date(2024, 1, 15), date(2024, 2, 15)),
        ("quarterly", date(2024, 1, 15), date(2024, 4, 15)),
        ("annual", date(2024, 3, 1), date(2025, 3, 1)),
    ],
)
def test_advance_date(frequency, start, expected):
    assert advance_date(frequency, start) == expected


def test_month_end_is_clamped():
    """Jan 31 + 1 month lands on the last day of February"""
    assert advance_date("monthly", date(2024, 1, 31)) == date(2024, 2, 29)
    assert advance_date("monthly", date(2023, 1, 31)) == date(2023, 2, 28)
    assert advance_date("quarterly", date(2024, 11, 30)) == date(2025, 2, 28)


def test_unknown_frequency_rejected():
    with pytest.raises(ValueError):
        advance_date("daily", date(2024, 1, 1))
