"""
Recurrence expansion for booking series.

Turns a weekday/periodicity rule into concrete calendar dates. Each selected
weekday forms its own arithmetic track: the first matching day on or after
the start date, then every ``periodicity.days`` days, all tracks merged into
one sorted sequence.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, List, Set

from core.constants import RECURRENCE_MAX_SPAN_DAYS, SERIES_MAX_OCCURRENCES
from core.exceptions import ValidationError
from models.enums import Periodicity, Weekday
from shared_types.results import RecurrencePlan
from utils.datetime_utils import sunday_based_weekday

logger = logging.getLogger(__name__)


def _normalize_weekdays(weekdays: Iterable[int]) -> Set[Weekday]:
    try:
        normalized = {Weekday(int(d)) for d in weekdays}
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid weekday in {weekdays!r}: weekdays are 0 (Sunday) to 6 (Saturday)") from e
    if not normalized:
        raise ValidationError("At least one weekday must be selected")
    return normalized


class RecurrenceExpander:
    """Pure date-sequence generation for recurrence series."""

    @staticmethod
    def expand(
        start: date,
        weekdays: Iterable[int],
        periodicity: Periodicity,
        end: date,
    ) -> List[date]:
        """
        Expand a recurrence rule into an ordered list of dates.

        Args:
            start: First day that may hold an occurrence
            weekdays: Selected days of week (0=Sunday .. 6=Saturday)
            periodicity: Weekly or biweekly spacing per weekday track
            end: Last day that may hold an occurrence (inclusive)

        Returns:
            Strictly increasing dates within [start, end]

        Raises:
            ValidationError: empty weekday set, end before start, or a span
                longer than the maximum recurrence span
        """
        selected = _normalize_weekdays(weekdays)
        if end < start:
            raise ValidationError(
                f"End date {end.isoformat()} is before start date {start.isoformat()}"
            )
        span_days = (end - start).days
        if span_days > RECURRENCE_MAX_SPAN_DAYS:
            raise ValidationError(
                f"Recurrence span of {span_days} days exceeds the maximum of {RECURRENCE_MAX_SPAN_DAYS} days",
                action="Choose an end date within one year of the start date.",
            )

        step = timedelta(days=periodicity.days)
        start_weekday = sunday_based_weekday(start)
        dates: List[date] = []
        for weekday in selected:
            current = start + timedelta(days=(weekday - start_weekday) % 7)
            while current <= end:
                dates.append(current)
                current += step

        dates.sort()
        return dates

    @staticmethod
    def plan_series(
        start: date,
        weekdays: Iterable[int],
        periodicity: Periodicity,
        end: date,
        max_occurrences: int = SERIES_MAX_OCCURRENCES,
    ) -> RecurrencePlan:
        """
        Expand a series rule and apply the occurrence cap.

        When the expansion yields more than ``max_occurrences`` dates, the end
        date is pulled in to the last day of the largest number of whole
        periodicity cycles that fits ``max_occurrences // len(weekdays)`` and
        the rule is expanded again. Each weekday track then contributes
        exactly that many cycles, so the result is deterministic.
        """
        selected = _normalize_weekdays(weekdays)
        dates = RecurrenceExpander.expand(start, selected, periodicity, end)
        estimated = len(dates)

        if estimated <= max_occurrences:
            return RecurrencePlan(
                dates=dates,
                estimated_count=estimated,
                final_count=estimated,
                truncated=False,
                end_date=end,
            )

        cycles = max_occurrences // len(selected)
        truncated_end = min(end, start + timedelta(days=cycles * periodicity.days - 1))
        dates = RecurrenceExpander.expand(start, selected, periodicity, truncated_end)
        logger.info(
            f"Series truncated from {estimated} to {len(dates)} occurrences "
            f"(end date {end.isoformat()} -> {truncated_end.isoformat()})"
        )
        return RecurrencePlan(
            dates=dates,
            estimated_count=estimated,
            final_count=len(dates),
            truncated=True,
            end_date=truncated_end,
        )
