"""
Nutrition Insight Generator

Turns today's snapshot, the trailing 7-day history and the user's goals into
a short list of nudges.

Two tiers:
1. Today-specific rules (calorie progress, protein progress, meal timing,
   hydration cross-check). Several may fire in one pass.
2. General fallback rules, evaluated ONLY when tier 1 produced nothing.
   A today nudge and a generic one are never shown together.

Output stays in rule evaluation order; sorting by priority is left to the
caller. A failed read of one log kind (e.g. hydration) degrades that metric
to zero instead of aborting the pass.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from services.analytics_types import DailySnapshot, DateRange, Insight
from services.goal_resolver import resolve_goals
from services.log_store import LogStore
from services.nutrition_aggregator import aggregate

logger = logging.getLogger(__name__)


HISTORY_DAYS = 7

# Calorie progress (% of goal)
CALORIES_NEAR_GOAL_PCT = 90
CALORIES_GOOD_PACE_PCT = 75
CALORIES_ABOVE_AVERAGE_RATIO = 1.2

# Protein progress (% of goal). 50-80% deliberately emits nothing.
PROTEIN_LOW_PCT = 50
PROTEIN_GOOD_PCT = 80

# Meal timing windows (inclusive hours, local time)
LUNCH_HOURS = (12, 14)
DINNER_HOURS = (18, 20)
DINNER_MIN_MEALS = 2

HYDRATION_REMINDER_ML = 1500
GENERAL_PROTEIN_RATIO = 0.8


@dataclass(frozen=True)
class TrailingAverages:
    calories: float
    protein_g: float
    days: int  # qualifying days; 0 means the values mirror today


def trailing_averages(history: List[DailySnapshot], today: DailySnapshot) -> TrailingAverages:
    """Average over history days with at least one meal, else today's values."""
    logged = [s for s in history if s.meal_count > 0]
    if not logged:
        return TrailingAverages(calories=today.calories, protein_g=today.protein_g, days=0)
    return TrailingAverages(
        calories=sum(s.calories for s in logged) / len(logged),
        protein_g=sum(s.protein_g for s in logged) / len(logged),
        days=len(logged),
    )


class _InsightList:
    """Ordered insight collector that drops repeated rule ids."""

    def __init__(self, created_at: datetime):
        self.created_at = created_at
        self.items: List[Insight] = []
        self._seen = set()

    def add(
        self,
        insight_id: str,
        priority: str,
        title: str,
        message: str,
        recommendation: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        if insight_id in self._seen:
            return
        self._seen.add(insight_id)
        self.items.append(
            Insight(
                id=insight_id,
                priority=priority,
                title=title,
                message=message,
                recommendation=recommendation,
                created_at=self.created_at,
                data=data,
            )
        )

    def __len__(self) -> int:
        return len(self.items)


# =============================================================================
# TODAY RULES
# =============================================================================

def _calorie_rule(out: _InsightList, today: DailySnapshot, avg: TrailingAverages, goal: float) -> None:
    if today.calories <= 0:
        return

    progress = today.calories / goal * 100
    current = round(today.calories)
    # Past the goal the progress tiers no longer apply; only the average check does.
    if CALORIES_NEAR_GOAL_PCT <= progress <= 100:
        out.add(
            "nutrition-calories-near-goal",
            "high",
            "Almost at Calorie Goal",
            f"You've consumed {current} of {goal:g} calories today.",
            "Consider lighter snacks or focus on nutrient-dense foods to finish strong.",
            {"current": current, "goal": goal, "progress": round(progress)},
        )
    elif CALORIES_GOOD_PACE_PCT <= progress < CALORIES_NEAR_GOAL_PCT:
        out.add(
            "nutrition-calories-good-pace",
            "low",
            "Good Calorie Pace",
            f"You're at {round(progress)}% of your {goal:g} calorie goal.",
            "Keep it up. You're on track for a balanced day.",
            {"current": current, "goal": goal, "progress": round(progress)},
        )
    elif avg.calories > 0 and today.calories > avg.calories * CALORIES_ABOVE_AVERAGE_RATIO:
        out.add(
            "nutrition-calories-above-average",
            "medium",
            "Higher Calorie Intake Today",
            f"You've consumed {current} calories, above your {round(avg.calories)}-calorie daily average.",
            "Be mindful of your remaining calories. Consider lighter options for the rest of the day.",
            {"current": current, "average": round(avg.calories)},
        )


def _protein_rule(out: _InsightList, today: DailySnapshot, goal: float) -> None:
    if today.protein_g <= 0:
        return

    progress = today.protein_g / goal * 100
    current = round(today.protein_g)
    if progress < PROTEIN_LOW_PCT:
        out.add(
            "nutrition-protein-low",
            "high",
            "Protein Intake Needs Attention",
            f"You've only consumed {current}g of your {goal:g}g protein goal.",
            "Add protein-rich foods like chicken, fish, eggs, Greek yogurt or nuts to your next meal.",
            {"current": current, "goal": goal, "progress": round(progress)},
        )
    elif progress >= PROTEIN_GOOD_PCT:
        out.add(
            "nutrition-protein-good",
            "low",
            "Strong Protein Intake",
            f"You're at {round(progress)}% of your protein goal.",
            "Keep prioritizing protein-rich foods to support recovery and energy.",
            {"current": current, "goal": goal, "progress": round(progress)},
        )


def _meal_timing_rule(out: _InsightList, today: DailySnapshot, as_of: datetime) -> None:
    hour = as_of.hour
    if LUNCH_HOURS[0] <= hour <= LUNCH_HOURS[1] and today.meal_count == 0:
        out.add(
            "nutrition-missed-lunch",
            "high",
            "Time for Lunch",
            "It's lunchtime and you haven't logged any meals yet today.",
            "Fuel up with a balanced meal containing protein, complex carbs and vegetables.",
        )
    elif DINNER_HOURS[0] <= hour <= DINNER_HOURS[1] and today.meal_count < DINNER_MIN_MEALS:
        plural = "" if today.meal_count == 1 else "s"
        out.add(
            "nutrition-dinner-time",
            "medium",
            "Dinner Time Approaches",
            f"You've had {today.meal_count} meal{plural} today. Consider planning your evening meal.",
            "Opt for a nutrient-dense dinner to support overnight recovery.",
            {"meals_today": today.meal_count},
        )


def _hydration_rule(out: _InsightList, today: DailySnapshot) -> None:
    if today.meal_count > 0 and today.hydration_ml < HYDRATION_REMINDER_ML:
        hydration = round(today.hydration_ml)
        out.add(
            "nutrition-hydration-reminder",
            "medium",
            "Stay Hydrated",
            f"You've logged meals but only {hydration}ml of water today.",
            "Aim for at least 2-3 liters of water daily. Hydration supports nutrient absorption.",
            {"hydration_today": hydration},
        )


# =============================================================================
# FALLBACK RULES
# =============================================================================

def _fallback_rules(out: _InsightList, today: DailySnapshot, avg: TrailingAverages, protein_goal: float) -> None:
    if today.meal_count == 0:
        out.add(
            "nutrition-start-day",
            "high",
            "Start Your Nutrition Day",
            "You haven't logged any meals yet today.",
            "Begin with a balanced breakfast containing protein, complex carbs and healthy fats.",
        )
    elif 0 < avg.protein_g < protein_goal * GENERAL_PROTEIN_RATIO:
        out.add(
            "nutrition-general-protein",
            "medium",
            "Consider Increasing Protein",
            f"Your average daily protein intake is {round(avg.protein_g)}g, below your {protein_goal:g}g goal.",
            "Focus on protein-rich foods like lean meats, fish, eggs, dairy, legumes and nuts.",
            {"average": round(avg.protein_g), "goal": protein_goal},
        )


def build_insights(
    today: DailySnapshot,
    history: List[DailySnapshot],
    goals: Dict[str, float],
    as_of: datetime,
) -> List[Insight]:
    """Evaluate the rule set over precomputed inputs. No store access."""
    avg = trailing_averages(history, today)
    out = _InsightList(created_at=as_of)

    _calorie_rule(out, today, avg, goals["daily_calories"])
    _protein_rule(out, today, goals["protein_target"])
    _meal_timing_rule(out, today, as_of)
    _hydration_rule(out, today)

    if len(out) == 0:
        _fallback_rules(out, today, avg, goals["protein_target"])

    return out.items


def generate_insights(store: LogStore, user_id: str, as_of: Optional[datetime] = None) -> List[Insight]:
    """
    Generate today's nutrition insights for `user_id`.

    Args:
        store: Log store to read from
        user_id: User to analyze
        as_of: Local "now"; defaults to the current time

    Returns:
        Insights in rule evaluation order, unique by id
    """
    as_of = as_of or datetime.now()
    today = as_of.date()
    window = DateRange(start=today - timedelta(days=HISTORY_DAYS), end=today)

    snapshots = aggregate(store, user_id, window, skip_unavailable=True)
    history = [snapshots[day] for day in window if day != today]
    goals = resolve_goals(store, user_id)

    insights = build_insights(snapshots[today], history, goals, as_of)
    logger.debug(f"Generated {len(insights)} nutrition insights for user {user_id}")
    return insights
