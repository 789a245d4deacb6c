"""Recurring income distribution across envelope splits"""

from decimal import Decimal

from envelope_ledger.domain.models import CreditedEnvelope, DistributionPlan, RecurringTemplate
from envelope_ledger.domain.money import ZERO, require_positive, to_money


def plan_distribution(template: RecurringTemplate, actual_amount: Decimal) -> DistributionPlan:
    """
    Split an actual receipt into fixed envelope credits plus a surplus.

    Requirements:
    - Splits are fixed allocations, credited at exactly split.amount in stored
      order regardless of the amount received (not proportional shares)
    - surplus = actual - sum(splits); negative when less was received than planned
    - Non-zero surplus goes to the template's surplus envelope when one is set;
      otherwise it only moves the account (surplus_envelope_id is None)

    Example:
        splits [env1: 100, env2: 50], actual 200 → credits [100, 50], surplus 50
        splits [env1: 100, env2: 50], actual 120 → credits [100, 50], surplus -30

    Raises:
        InvalidAmountError: actual amount is not positive
    """
    actual = require_positive(actual_amount, "actual amount")

    credits = [
        CreditedEnvelope(envelope_id=split.envelope_id, amount=to_money(split.amount))
        for split in template.splits
        if to_money(split.amount) != ZERO
    ]
    allocated = sum((c.amount for c in credits), ZERO)
    surplus = actual - allocated

    return DistributionPlan(
        credits=credits,
        surplus=surplus,
        surplus_envelope_id=template.surplus_envelope_id,
    )
