"""
Goal Resolver

Resolves a user's active nutrition targets. Every goal type is always
present in the result, falling back to defaults, so callers can index
without checks.
"""

from typing import Dict, Iterable

from services.analytics_types import Goal, GoalType
from services.log_store import LogStore


DEFAULT_GOALS: Dict[str, float] = {
    GoalType.DAILY_CALORIES.value: 2200.0,
    GoalType.PROTEIN_TARGET.value: 150.0,
    GoalType.CARB_TARGET.value: 250.0,
    GoalType.FAT_TARGET.value: 70.0,
}


def merge_with_defaults(goals: Iterable[Goal]) -> Dict[str, float]:
    """Overlay active, positive goals of known types onto the defaults."""
    resolved = dict(DEFAULT_GOALS)
    for goal in goals:
        if goal.is_active and goal.goal_type in resolved and goal.target_value > 0:
            resolved[goal.goal_type] = float(goal.target_value)
    return resolved


def resolve_goals(store: LogStore, user_id: str) -> Dict[str, float]:
    """Active target per goal type for `user_id`, defaults where unset."""
    return merge_with_defaults(store.fetch_goals(user_id))
