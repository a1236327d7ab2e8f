"""
Derived financial summary types (never persisted).
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, List


@dataclass(frozen=True)
class FinancialPeriodSummary:
    """
    Monthly financial summary.

    net = (revenue + manual_in) - (payouts + manual_out)
    """
    period: str  # "YYYY-MM"
    revenue: Decimal
    payouts: Decimal
    manual_in: Decimal
    manual_out: Decimal
    net: Decimal
    session_count: int

    @property
    def total_in(self) -> Decimal:
        return self.revenue + self.manual_in

    @property
    def total_out(self) -> Decimal:
        return self.payouts + self.manual_out

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["total_in"] = self.total_in
        result["total_out"] = self.total_out
        return result


@dataclass(frozen=True)
class YearlySummary:
    year: int
    months: List[FinancialPeriodSummary]
    totals: FinancialPeriodSummary


@dataclass(frozen=True)
class MonthlyComparison:
    current: FinancialPeriodSummary
    previous: FinancialPeriodSummary
    variations: Dict[str, float]  # percentage change per metric
