"""
Weekly Nutrition Summary

Seven-day roll-up for the dashboard: averages over the days something was
actually logged, how many days hit the protein and calorie goals, and two
logging streaks. Caffeine is averaged over all seven days, logged or not,
and flagged above 400 mg.

A streak counts consecutive qualifying days backwards from today. Today is
still in progress, so if it does not qualify (yet) counting starts from
yesterday instead of reporting a broken streak.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from services.analytics_types import DailySnapshot, DateRange, LogKind
from services.goal_resolver import resolve_goals
from services.log_store import LogStore
from services.nutrition_aggregator import aggregate

logger = logging.getLogger(__name__)


SUMMARY_DAYS = 7
STREAK_LOOKBACK_DAYS = 30
HYDRATION_STREAK_ML = 2000
CALORIE_GOAL_TOLERANCE = 0.10
CAFFEINE_LIMIT_MG = 400


@dataclass
class WeeklySummary:
    start_date: date
    end_date: date
    days_logged: int
    avg_calories: float
    avg_protein_g: float
    avg_carbs_g: float
    avg_fat_g: float
    avg_hydration_ml: float
    avg_caffeine_mg: float
    protein_goal_days: int
    calorie_goal_days: int
    meal_logging_streak: int
    hydration_streak: int

    @property
    def caffeine_above_limit(self) -> bool:
        return self.avg_caffeine_mg > CAFFEINE_LIMIT_MG

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "days_logged": self.days_logged,
            "averages": {
                "calories": round(self.avg_calories, 1),
                "protein_g": round(self.avg_protein_g, 1),
                "carbs_g": round(self.avg_carbs_g, 1),
                "fat_g": round(self.avg_fat_g, 1),
                "hydration_ml": round(self.avg_hydration_ml, 1),
                "caffeine_mg": round(self.avg_caffeine_mg, 1),
            },
            "protein_goal_days": self.protein_goal_days,
            "calorie_goal_days": self.calorie_goal_days,
            "caffeine_above_limit": self.caffeine_above_limit,
            "streaks": {
                "meal_logging": self.meal_logging_streak,
                "hydration": self.hydration_streak,
            },
        }


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def count_streak(
    snapshots: Dict[date, DailySnapshot],
    today: date,
    qualifies: Callable[[DailySnapshot], bool],
) -> int:
    """Consecutive qualifying days ending today, or yesterday if today doesn't qualify."""
    day = today
    if day in snapshots and not qualifies(snapshots[day]):
        day -= timedelta(days=1)

    streak = 0
    while day in snapshots and qualifies(snapshots[day]):
        streak += 1
        day -= timedelta(days=1)
    return streak


def _has_meal(s: DailySnapshot) -> bool:
    return s.meal_count > 0


def _hydrated(s: DailySnapshot) -> bool:
    return s.hydration_ml >= HYDRATION_STREAK_ML


def build_summary(
    snapshots: Dict[date, DailySnapshot],
    goals: Dict[str, float],
    today: date,
) -> WeeklySummary:
    """
    Summarize the SUMMARY_DAYS ending at `today`.

    `snapshots` must cover at least the streak lookback ending at `today`.
    """
    week = DateRange.ending_on(today, SUMMARY_DAYS)
    meal_days = [snapshots[d] for d in week if snapshots[d].meal_count > 0]
    hydration_days = [snapshots[d] for d in week if snapshots[d].hydration_count > 0]

    calorie_goal = goals["daily_calories"]
    protein_goal = goals["protein_target"]

    return WeeklySummary(
        start_date=week.start,
        end_date=week.end,
        days_logged=len(meal_days),
        avg_calories=_mean([s.calories for s in meal_days]),
        avg_protein_g=_mean([s.protein_g for s in meal_days]),
        avg_carbs_g=_mean([s.carbs_g for s in meal_days]),
        avg_fat_g=_mean([s.fat_g for s in meal_days]),
        avg_hydration_ml=_mean([s.hydration_ml for s in hydration_days]),
        avg_caffeine_mg=sum(snapshots[d].caffeine_mg for d in week) / SUMMARY_DAYS,
        protein_goal_days=sum(1 for s in meal_days if s.protein_g >= protein_goal),
        calorie_goal_days=sum(
            1 for s in meal_days
            if abs(s.calories - calorie_goal) <= calorie_goal * CALORIE_GOAL_TOLERANCE
        ),
        meal_logging_streak=count_streak(snapshots, today, _has_meal),
        hydration_streak=count_streak(snapshots, today, _hydrated),
    )


def summarize_week(store: LogStore, user_id: str, as_of: Optional[datetime] = None) -> WeeklySummary:
    """Weekly summary for the 7 days ending at `as_of` (default: now)."""
    as_of = as_of or datetime.now()
    today = as_of.date()
    lookback = DateRange.ending_on(today, STREAK_LOOKBACK_DAYS)

    snapshots = aggregate(store, user_id, lookback, kinds=(LogKind.MEAL, LogKind.HYDRATION, LogKind.CAFFEINE))
    summary = build_summary(snapshots, resolve_goals(store, user_id), today)
    logger.debug(
        f"Weekly summary for user {user_id}: {summary.days_logged} days logged, "
        f"meal streak {summary.meal_logging_streak}"
    )
    return summary
