"""
Revenue-share calculation.

The one place that decides how much of a session's value is owed to the
provider. Used by the financial aggregators and anything else that displays
or recomputes payouts, so every caller applies the same tenure rule.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from core.constants import (
    MONEY_QUANTUM,
    SHARE_TIER_JUNIOR_PERCENT,
    SHARE_TIER_SENIOR_PERCENT,
    TENURE_THRESHOLD_DAYS,
)
from core.exceptions import ValidationError
from utils.datetime_utils import clinic_now, to_clinic_naive

SHARE_SOURCE_OVERRIDE = "override"
SHARE_SOURCE_TENURE = "tenure"
SHARE_SOURCE_DEFAULT = "default"  # start of service unknown

_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class ShareResult:
    amount: Decimal
    percentage: Decimal
    source: str


def _to_decimal(value: Any, field_name: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{field_name} is required")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field_name} is not a valid amount: {value!r}") from e
    if not result.is_finite() or result < 0:
        raise ValidationError(f"{field_name} must be a non-negative amount: {value!r}")
    return result


class ShareCalculator:
    """Tenure-tiered payout rule with explicit override."""

    @staticmethod
    def tenure_days(start_of_service: date, evaluated_at: Union[date, datetime]) -> float:
        """Elapsed days of service in clinic local time (fractional)."""
        elapsed = to_clinic_naive(evaluated_at) - to_clinic_naive(start_of_service)
        return elapsed.total_seconds() / _SECONDS_PER_DAY

    @staticmethod
    def tier_percentage(
        start_of_service: Optional[date],
        evaluated_at: Union[date, datetime],
    ) -> Decimal:
        """
        Payout percentage for a provider at the evaluation instant.

        Providers with at least 365.25 days of service get the senior tier;
        everyone else, including providers with no recorded start date, gets
        the junior tier.
        """
        if start_of_service is None:
            return SHARE_TIER_JUNIOR_PERCENT
        if ShareCalculator.tenure_days(start_of_service, evaluated_at) >= TENURE_THRESHOLD_DAYS:
            return SHARE_TIER_SENIOR_PERCENT
        return SHARE_TIER_JUNIOR_PERCENT

    @staticmethod
    def calculate(
        amount: Any,
        start_of_service: Optional[date],
        evaluated_at: Optional[Union[date, datetime]] = None,
        override: Any = None,
    ) -> ShareResult:
        """
        Compute the payout owed for one session.

        Args:
            amount: Billable session value
            start_of_service: Provider's start date, None when unknown
            evaluated_at: Evaluation instant, defaults to now (clinic time)
            override: Explicit payout amount; wins over the tenure rule

        Returns:
            ShareResult with the payout amount, the percentage it represents
            (rounded to cents for display) and where it came from

        Raises:
            ValidationError: amount or override missing, negative or non-numeric
        """
        value = _to_decimal(amount, "amount")

        if override is not None:
            override_amount = _to_decimal(override, "override")
            if value == 0:
                percentage = Decimal("0")
            else:
                percentage = (override_amount / value * 100).quantize(MONEY_QUANTUM)
            return ShareResult(override_amount, percentage, SHARE_SOURCE_OVERRIDE)

        when = evaluated_at if evaluated_at is not None else clinic_now()
        percentage = ShareCalculator.tier_percentage(start_of_service, when)
        source = SHARE_SOURCE_DEFAULT if start_of_service is None else SHARE_SOURCE_TENURE
        return ShareResult(value * percentage / 100, percentage, source)
