"""
Habit Detector

Scans a window of daily snapshots for recurring behaviours. Each habit is a
yes/no question asked of every day that has any data:

    frequency_score = matching days / days with any data * 100

Days with nothing logged are left out of the denominator. Not opening the
app is not evidence of a habit. A habit with no data-bearing days at all is
omitted rather than reported as 0.
"""

import logging
import statistics
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from services.analytics_types import DailySnapshot, DateRange, HabitPattern
from services.log_store import LogStore
from services.nutrition_aggregator import aggregate

logger = logging.getLogger(__name__)


HIGH_CAFFEINE_MG = 400
LOW_HYDRATION_ML = 2000
IRREGULAR_TIMING_MINUTES = 90
MIN_TIMED_DAYS_FOR_TIMING = 3
DEFAULT_WINDOW_DAYS = 42


@dataclass(frozen=True)
class WindowContext:
    """Window-wide values some predicates compare a single day against."""
    median_first_meal_minute: Optional[float]

    @classmethod
    def from_snapshots(cls, snapshots: List[DailySnapshot]) -> "WindowContext":
        first_meals = [s.first_meal_minute for s in snapshots if s.first_meal_minute is not None]
        if len(first_meals) < MIN_TIMED_DAYS_FOR_TIMING:
            return cls(median_first_meal_minute=None)
        return cls(median_first_meal_minute=statistics.median(first_meals))


Predicate = Callable[[DailySnapshot, WindowContext], bool]


def _skipped_meals(day: DailySnapshot, ctx: WindowContext) -> bool:
    return day.meal_count == 0


def _skipped_breakfast(day: DailySnapshot, ctx: WindowContext) -> bool:
    return day.meal_count > 0 and day.breakfast_count == 0


def _late_night_eating(day: DailySnapshot, ctx: WindowContext) -> bool:
    return day.late_meal_count > 0


def _high_caffeine(day: DailySnapshot, ctx: WindowContext) -> bool:
    return day.caffeine_mg > HIGH_CAFFEINE_MG


def _low_hydration(day: DailySnapshot, ctx: WindowContext) -> bool:
    return day.hydration_ml < LOW_HYDRATION_ML


def _irregular_timing(day: DailySnapshot, ctx: WindowContext) -> bool:
    if ctx.median_first_meal_minute is None or day.first_meal_minute is None:
        return False
    return abs(day.first_meal_minute - ctx.median_first_meal_minute) > IRREGULAR_TIMING_MINUTES


# pattern_type -> (predicate, description)
HABIT_PREDICATES: Dict[str, tuple] = {
    "skipped_meals": (_skipped_meals, "Days with activity logged but no meals"),
    "skipped_breakfast": (_skipped_breakfast, "Days with meals but no breakfast"),
    "late_night_eating": (_late_night_eating, "Days with a meal logged at or after 8 PM"),
    "high_caffeine": (_high_caffeine, f"Days above {HIGH_CAFFEINE_MG}mg of caffeine"),
    "low_hydration": (_low_hydration, f"Days under {LOW_HYDRATION_ML}ml of water"),
    "irregular_timing": (
        _irregular_timing,
        f"Days whose first meal was more than {IRREGULAR_TIMING_MINUTES} minutes off your usual time",
    ),
}


def detect_patterns(snapshots: List[DailySnapshot]) -> List[HabitPattern]:
    """
    Evaluate every habit predicate across the given snapshots.

    Pure: no store access. Snapshots without any data are ignored.
    """
    data_days = sorted((s for s in snapshots if s.has_data), key=lambda s: s.date)
    if not data_days:
        return []

    ctx = WindowContext.from_snapshots(data_days)
    total = len(data_days)
    patterns: List[HabitPattern] = []

    for pattern_type, (predicate, description) in HABIT_PREDICATES.items():
        matched: List[date] = [s.date for s in data_days if predicate(s, ctx)]
        score = round(len(matched) / total * 100)
        patterns.append(
            HabitPattern(
                pattern_type=pattern_type,
                frequency_score=max(0, min(100, score)),
                days_matched=len(matched),
                days_with_data=total,
                description=description,
                last_detected=max(matched) if matched else None,
            )
        )

    return patterns


def detect_habits(
    store: LogStore,
    user_id: str,
    window_days: int = DEFAULT_WINDOW_DAYS,
    as_of: Optional[datetime] = None,
) -> List[HabitPattern]:
    """
    Detect recurring behaviours over the `window_days` dates ending at `as_of`.

    Returns one HabitPattern per supported type, unsorted, or an empty list
    when the window holds no logged data.
    """
    as_of = as_of or datetime.now()
    window = DateRange.ending_on(as_of.date(), window_days)
    snapshots = aggregate(store, user_id, window)
    patterns = detect_patterns(list(snapshots.values()))
    logger.debug(f"Detected {len(patterns)} habit patterns for user {user_id} over {window_days} days")
    return patterns
