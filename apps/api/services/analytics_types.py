"""
Shared data structures for the nutrition analytics services.

Log entries come in, snapshots are derived from them, and habits,
correlations and insights are derived from snapshots. Everything here is a
plain in-memory record with a JSON-friendly `to_dict()`; nothing is
persisted.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional


# Meals at or after these local times count as "evening" / "late-night".
EVENING_START = time(18, 0)
LATE_NIGHT_START = time(20, 0)


# =============================================================================
# LOG ENTRIES
# =============================================================================

class LogKind(str, Enum):
    """Kinds of events a user can log."""
    MEAL = "meal"
    HYDRATION = "hydration"
    CAFFEINE = "caffeine"
    WORKOUT = "workout"
    SLEEP = "sleep"
    BODY_WEIGHT = "body_weight"


ALL_KINDS: FrozenSet[LogKind] = frozenset(LogKind)


@dataclass(frozen=True)
class LogEntry:
    """
    One immutable logged event.

    `entry_date` is the user's local date and is used as-is as the
    partition key. Only the payload fields for `kind` are meaningful;
    the rest stay at zero.
    """
    user_id: str
    kind: LogKind
    entry_date: date
    entry_time: Optional[time] = None
    id: Optional[str] = None

    # meal
    meal_type: Optional[str] = None
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0
    sugar_g: float = 0.0

    # other kinds
    volume_ml: float = 0.0
    amount_mg: float = 0.0
    total_volume: float = 0.0
    sleep_hours: float = 0.0
    weight_kg: float = 0.0


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of local calendar dates. Empty when end < start."""
    start: date
    end: date

    @classmethod
    def ending_on(cls, end: date, days: int) -> "DateRange":
        """The `days` dates ending at (and including) `end`."""
        return cls(start=end - timedelta(days=days - 1), end=end)

    @property
    def is_empty(self) -> bool:
        return self.end < self.start

    def __len__(self) -> int:
        return 0 if self.is_empty else (self.end - self.start).days + 1

    def __iter__(self) -> Iterator[date]:
        for offset in range(len(self)):
            yield self.start + timedelta(days=offset)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end


# =============================================================================
# DAILY SNAPSHOT
# =============================================================================

def _minute_of_day(t: time) -> int:
    return t.hour * 60 + t.minute


@dataclass(frozen=True)
class DailySnapshot:
    """
    Totals of one user's logs on one date, partitioned by kind.

    Count and total fields are additive across disjoint entry sets;
    `first_meal_minute` combines by min and `unavailable_kinds` by union.
    """
    date: date

    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0
    sugar_g: float = 0.0
    meal_count: int = 0
    breakfast_count: int = 0
    evening_calories: float = 0.0
    late_meal_count: int = 0
    first_meal_minute: Optional[int] = None

    hydration_ml: float = 0.0
    hydration_count: int = 0
    caffeine_mg: float = 0.0
    caffeine_count: int = 0
    workout_volume: float = 0.0
    workout_count: int = 0
    sleep_hours: float = 0.0
    sleep_count: int = 0
    weight_total_kg: float = 0.0
    weight_count: int = 0

    unavailable_kinds: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_entries(cls, day: date, entries: Iterable[LogEntry]) -> "DailySnapshot":
        """Reduce one date's entries. Entries for other dates are ignored."""
        totals: Dict[str, Any] = {}
        first_meal: Optional[int] = None

        def add(name: str, value: float) -> None:
            totals[name] = totals.get(name, 0) + value

        for entry in entries:
            if entry.entry_date != day:
                continue
            kind = LogKind(entry.kind)
            if kind is LogKind.MEAL:
                add("calories", entry.calories)
                add("protein_g", entry.protein_g)
                add("carbs_g", entry.carbs_g)
                add("fat_g", entry.fat_g)
                add("fiber_g", entry.fiber_g)
                add("sugar_g", entry.sugar_g)
                add("meal_count", 1)
                if entry.meal_type == "breakfast":
                    add("breakfast_count", 1)
                if entry.entry_time is not None:
                    if entry.entry_time >= EVENING_START:
                        add("evening_calories", entry.calories)
                    if entry.entry_time >= LATE_NIGHT_START:
                        add("late_meal_count", 1)
                    minute = _minute_of_day(entry.entry_time)
                    first_meal = minute if first_meal is None else min(first_meal, minute)
            elif kind is LogKind.HYDRATION:
                add("hydration_ml", entry.volume_ml)
                add("hydration_count", 1)
            elif kind is LogKind.CAFFEINE:
                add("caffeine_mg", entry.amount_mg)
                add("caffeine_count", 1)
            elif kind is LogKind.WORKOUT:
                add("workout_volume", entry.total_volume)
                add("workout_count", 1)
            elif kind is LogKind.SLEEP:
                add("sleep_hours", entry.sleep_hours)
                add("sleep_count", 1)
            elif kind is LogKind.BODY_WEIGHT:
                add("weight_total_kg", entry.weight_kg)
                add("weight_count", 1)

        return cls(date=day, first_meal_minute=first_meal, **totals)

    def __add__(self, other: "DailySnapshot") -> "DailySnapshot":
        if not isinstance(other, DailySnapshot):
            return NotImplemented
        if other.date != self.date:
            raise ValueError(f"Cannot combine snapshots for {self.date} and {other.date}")

        combined: Dict[str, Any] = {}
        for f in fields(self):
            if f.name in ("date", "first_meal_minute", "unavailable_kinds"):
                continue
            combined[f.name] = getattr(self, f.name) + getattr(other, f.name)

        minutes = [m for m in (self.first_meal_minute, other.first_meal_minute) if m is not None]
        return DailySnapshot(
            date=self.date,
            first_meal_minute=min(minutes) if minutes else None,
            unavailable_kinds=self.unavailable_kinds | other.unavailable_kinds,
            **combined,
        )

    @property
    def has_data(self) -> bool:
        """True if anything at all was logged on this date."""
        return any((
            self.meal_count,
            self.hydration_count,
            self.caffeine_count,
            self.workout_count,
            self.sleep_count,
            self.weight_count,
        ))

    @property
    def body_weight_kg(self) -> Optional[float]:
        """Mean of the day's weigh-ins, or None if there were none."""
        if not self.weight_count:
            return None
        return self.weight_total_kg / self.weight_count

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["date"] = self.date.isoformat()
        data["unavailable_kinds"] = sorted(self.unavailable_kinds)
        data["body_weight_kg"] = self.body_weight_kg
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailySnapshot":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["date"] = date.fromisoformat(data["date"])
        values["unavailable_kinds"] = frozenset(data.get("unavailable_kinds") or ())
        return cls(**values)


# =============================================================================
# GOALS
# =============================================================================

class GoalType(str, Enum):
    DAILY_CALORIES = "daily_calories"
    PROTEIN_TARGET = "protein_target"
    CARB_TARGET = "carb_target"
    FAT_TARGET = "fat_target"


@dataclass(frozen=True)
class Goal:
    """An active numeric target as stored for a user."""
    user_id: str
    goal_type: str
    target_value: float
    is_active: bool = True


# =============================================================================
# DERIVED RESULTS
# =============================================================================

@dataclass
class HabitPattern:
    """A recurring behaviour detected across an analysis window."""
    pattern_type: str
    frequency_score: int  # 0-100, % of data-bearing days matching
    days_matched: int
    days_with_data: int
    description: str
    last_detected: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "pattern_type": self.pattern_type,
            "frequency_score": self.frequency_score,
            "days_matched": self.days_matched,
            "days_with_data": self.days_with_data,
            "description": self.description,
        }
        if self.last_detected is not None:
            data["last_detected"] = self.last_detected.isoformat()
        return data


@dataclass
class MetricCorrelation:
    """Pearson correlation between two aligned daily metric series."""
    primary_metric: str
    secondary_metric: str
    correlation_coefficient: float
    sample_size: int
    time_window_days: int
    degenerate_series: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_metric": self.primary_metric,
            "secondary_metric": self.secondary_metric,
            "correlation_coefficient": round(self.correlation_coefficient, 3),
            "sample_size": self.sample_size,
            "time_window_days": self.time_window_days,
            "degenerate_series": self.degenerate_series,
        }


@dataclass
class Insight:
    """A single human-readable recommendation from one rule."""
    id: str
    priority: str  # "high", "medium", "low"
    title: str
    message: str
    recommendation: str
    created_at: datetime
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "priority": self.priority,
            "title": self.title,
            "message": self.message,
            "recommendation": self.recommendation,
            "created_at": self.created_at.isoformat(),
        }
        if self.data is not None:
            data["data"] = self.data
        return data
