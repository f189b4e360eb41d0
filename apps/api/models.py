"""
SQLAlchemy models for the tracker's log store.

Only raw, user-owned records live here. Daily snapshots, habits,
correlations and insights are derived on demand and never persisted.
"""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Index,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from core.database import Base


def _uuid_str() -> str:
    return str(uuid.uuid4())


class LogRecord(Base):
    """
    One logged event: a meal, a drink of water, a coffee, a workout,
    a night's sleep or a weigh-in.

    `entry_date` is the user's local calendar date as entered. It is never
    derived from `created_at` or converted between timezones.
    Only the payload columns for the record's kind are meaningful.
    """
    __tablename__ = "log_record"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    user_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(16), nullable=False)  # meal, hydration, caffeine, workout, sleep, body_weight
    entry_date = Column(Date, nullable=False)
    entry_time = Column(Time, nullable=True)

    # meal
    meal_type = Column(String(16), nullable=True)  # breakfast, lunch, dinner, snack
    calories = Column(Float, nullable=False, default=0.0)
    protein_g = Column(Float, nullable=False, default=0.0)
    carbs_g = Column(Float, nullable=False, default=0.0)
    fat_g = Column(Float, nullable=False, default=0.0)
    fiber_g = Column(Float, nullable=False, default=0.0)
    sugar_g = Column(Float, nullable=False, default=0.0)

    # hydration / caffeine / workout / sleep / body_weight
    volume_ml = Column(Float, nullable=False, default=0.0)
    amount_mg = Column(Float, nullable=False, default=0.0)
    total_volume = Column(Float, nullable=False, default=0.0)
    sleep_hours = Column(Float, nullable=False, default=0.0)
    weight_kg = Column(Float, nullable=False, default=0.0)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_log_record_user_kind_date", "user_id", "kind", "entry_date"),
    )


class NutritionGoal(Base):
    """
    A user's numeric target for one goal type.

    At most one row per (user, goal_type); writes go through upsert.
    """
    __tablename__ = "nutrition_goal"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    user_id = Column(String(64), nullable=False, index=True)
    goal_type = Column(String(32), nullable=False)  # daily_calories, protein_target, carb_target, fat_target
    target_value = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "goal_type", name="uq_nutrition_goal_user_type"),
    )
