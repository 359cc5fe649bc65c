"""Waiting-debt trend estimation.

There is no stored daily history yet, so the data points are synthesized:
weekdays start from a higher base than weekends and get a small random
variance. Only the shape of the output is meaningful to consumers.
"""

from __future__ import annotations

import random
from datetime import date, timedelta

from waiting_lens.core.clock import Clock, utc_now
from waiting_lens.schemas.trend import TrendDirection, WaitingDebtDataPoint, WaitingDebtTrend

WEEKDAY_BASE = 3
WEEKEND_BASE = 1
MAX_VARIANCE = 2
ITEMS_PER_PERSON = 2
HOURS_PER_PERSON = 36
TREND_THRESHOLD_PERCENT = 15.0

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def classify_trend(points: list[WaitingDebtDataPoint]) -> TrendDirection:
    """Compare the second half of the window with the first half.

    More than 15% growth in average people waiting is worsening, more than
    15% decline is improving.
    """
    midpoint = len(points) // 2
    if midpoint == 0:
        return TrendDirection.STABLE

    first = points[:midpoint]
    second = points[midpoint:]
    first_avg = sum(p.people_waiting for p in first) / len(first)
    second_avg = sum(p.people_waiting for p in second) / len(second)
    change_percent = (second_avg - first_avg) / max(first_avg, 1) * 100

    if change_percent > TREND_THRESHOLD_PERCENT:
        return TrendDirection.WORSENING
    if change_percent < -TREND_THRESHOLD_PERCENT:
        return TrendDirection.IMPROVING
    return TrendDirection.STABLE


class TrendEstimator:
    """Heuristic rolling-window estimate of how many people wait on the user."""

    def __init__(self, rng: random.Random | None = None, clock: Clock | None = None) -> None:
        """Initialize estimator.

        Args:
            rng: Random source (seed it for reproducible output).
            clock: Time source; its date is the last day of the window.
        """
        self._rng = rng or random.Random()
        self._clock = clock or utc_now

    def _data_point(self, day: date) -> WaitingDebtDataPoint:
        base = WEEKEND_BASE if day.weekday() >= 5 else WEEKDAY_BASE
        people = base + self._rng.randint(0, MAX_VARIANCE)
        return WaitingDebtDataPoint(
            date=day.isoformat(),
            people_waiting=people,
            item_count=people * ITEMS_PER_PERSON,
            total_wait_hours=people * HOURS_PER_PERSON,
        )

    def estimate(self, days_back: int = 14) -> WaitingDebtTrend:
        """Build the trend for the last days_back days, oldest first.

        Args:
            days_back: Window length in days.

        Returns:
            Data points, trend direction, average and peak weekday.

        Raises:
            ValueError: If days_back is not positive.
        """
        if days_back <= 0:
            raise ValueError("days_back must be positive")

        today = self._clock().date()
        points = [
            self._data_point(today - timedelta(days=offset))
            for offset in range(days_back - 1, -1, -1)
        ]

        # max() keeps the earliest of equal peaks
        peak = max(points, key=lambda p: p.people_waiting)
        return WaitingDebtTrend(
            data_points=points,
            trend=classify_trend(points),
            average_people_waiting=sum(p.people_waiting for p in points) / len(points),
            peak_day=WEEKDAY_NAMES[date.fromisoformat(peak.date).weekday()],
        )
