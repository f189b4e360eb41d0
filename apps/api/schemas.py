from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime, date, time
from typing import Optional, List, Dict, Any

from services.analytics_types import GoalType, LogKind


MEAL_TYPES = {"breakfast", "lunch", "dinner", "snack"}

# Payload fields each kind keeps; the rest are zeroed on create.
KIND_FIELDS = {
    LogKind.MEAL.value: {"calories", "protein_g", "carbs_g", "fat_g", "fiber_g", "sugar_g"},
    LogKind.HYDRATION.value: {"volume_ml"},
    LogKind.CAFFEINE.value: {"amount_mg"},
    LogKind.WORKOUT.value: {"total_volume"},
    LogKind.SLEEP.value: {"sleep_hours"},
    LogKind.BODY_WEIGHT.value: {"weight_kg"},
}
PAYLOAD_FIELDS = set().union(*KIND_FIELDS.values())


class LogEntryCreate(BaseModel):
    """One logged event. Only the payload fields for `kind` are kept."""
    kind: str
    entry_date: date
    entry_time: Optional[time] = None
    notes: Optional[str] = None

    # meal
    meal_type: Optional[str] = None
    calories: float = Field(0.0, ge=0)
    protein_g: float = Field(0.0, ge=0)
    carbs_g: float = Field(0.0, ge=0)
    fat_g: float = Field(0.0, ge=0)
    fiber_g: float = Field(0.0, ge=0)
    sugar_g: float = Field(0.0, ge=0)

    # hydration / caffeine / workout / sleep / body_weight
    volume_ml: float = Field(0.0, ge=0)
    amount_mg: float = Field(0.0, ge=0)
    total_volume: float = Field(0.0, ge=0)
    sleep_hours: float = Field(0.0, ge=0, le=24)
    weight_kg: float = Field(0.0, ge=0)

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        allowed = {k.value for k in LogKind}
        if v not in allowed:
            raise ValueError(f"kind must be one of {sorted(allowed)}")
        return v

    @field_validator("meal_type")
    @classmethod
    def validate_meal_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in MEAL_TYPES:
            raise ValueError(f"meal_type must be one of {sorted(MEAL_TYPES)}")
        return v

    @model_validator(mode="after")
    def require_payload(self) -> "LogEntryCreate":
        if self.kind == LogKind.BODY_WEIGHT.value and self.weight_kg <= 0:
            raise ValueError("body_weight entries require weight_kg > 0")
        if self.kind != LogKind.MEAL.value and self.meal_type is not None:
            raise ValueError("meal_type only applies to meal entries")
        for field in PAYLOAD_FIELDS - KIND_FIELDS[self.kind]:
            setattr(self, field, 0.0)
        return self


class LogEntryResponse(BaseModel):
    id: str
    kind: str
    entry_date: date
    entry_time: Optional[time] = None
    meal_type: Optional[str] = None
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0
    sugar_g: float = 0.0
    volume_ml: float = 0.0
    amount_mg: float = 0.0
    total_volume: float = 0.0
    sleep_hours: float = 0.0
    weight_kg: float = 0.0
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GoalUpsert(BaseModel):
    target_value: float = Field(..., gt=0)


class GoalResponse(BaseModel):
    goal_type: str
    target_value: float


class GoalsResponse(BaseModel):
    """Resolved targets; every goal type is present."""
    goals: Dict[str, float]


def validate_goal_type(goal_type: str) -> str:
    allowed = {g.value for g in GoalType}
    if goal_type not in allowed:
        raise ValueError(f"goal_type must be one of {sorted(allowed)}")
    return goal_type


class SnapshotListResponse(BaseModel):
    start: date
    end: date
    snapshots: List[Dict[str, Any]]
