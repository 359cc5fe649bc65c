"""Waiting-debt trend schemas."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class TrendDirection(str, Enum):
    """Direction of the waiting-debt trend."""

    IMPROVING = "improving"
    WORSENING = "worsening"
    STABLE = "stable"


class WaitingDebtDataPoint(BaseModel):
    """How much was waiting on the user on one day."""

    date: str = Field(..., description="ISO date (YYYY-MM-DD)")
    people_waiting: int
    item_count: int
    total_wait_hours: int


class WaitingDebtTrend(BaseModel):
    """Rolling window of waiting-debt data points with a classification."""

    data_points: list[WaitingDebtDataPoint] = Field(default_factory=list)
    trend: TrendDirection
    average_people_waiting: float
    peak_day: str = Field(..., description="Weekday name of the busiest day")
