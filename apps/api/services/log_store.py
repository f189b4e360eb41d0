"""
Log store access for the analytics services.

The analytics code only depends on the `LogStore` protocol: read a user's
entries of one kind over a date range, and read their goals. `SqlLogStore`
is the SQLAlchemy-backed implementation used by the API; it also carries
the small write path (create/delete entries, upsert goals).
"""

import logging
from datetime import date
from typing import List, Optional, Protocol

from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from core.exceptions import DataUnavailableError
from models import LogRecord, NutritionGoal
from services.analytics_types import Goal, LogEntry, LogKind

logger = logging.getLogger(__name__)


class LogStore(Protocol):
    """Read access the analytics engine needs from persistence."""

    def fetch_logs(
        self,
        user_id: str,
        kind: LogKind,
        date_from: date,
        date_to: date,
    ) -> List[LogEntry]:
        """Entries of `kind` with date_from <= entry_date <= date_to, any order."""
        ...

    def fetch_goals(self, user_id: str) -> List[Goal]:
        """The user's goal rows (active and inactive)."""
        ...


def record_to_entry(record: LogRecord) -> LogEntry:
    """Convert an ORM row to the immutable analytics entry."""
    return LogEntry(
        id=record.id,
        user_id=record.user_id,
        kind=LogKind(record.kind),
        entry_date=record.entry_date,
        entry_time=record.entry_time,
        meal_type=record.meal_type,
        calories=float(record.calories or 0),
        protein_g=float(record.protein_g or 0),
        carbs_g=float(record.carbs_g or 0),
        fat_g=float(record.fat_g or 0),
        fiber_g=float(record.fiber_g or 0),
        sugar_g=float(record.sugar_g or 0),
        volume_ml=float(record.volume_ml or 0),
        amount_mg=float(record.amount_mg or 0),
        total_volume=float(record.total_volume or 0),
        sleep_hours=float(record.sleep_hours or 0),
        weight_kg=float(record.weight_kg or 0),
    )


class SqlLogStore:
    """LogStore over the `log_record` / `nutrition_goal` tables."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch_logs(
        self,
        user_id: str,
        kind: LogKind,
        date_from: date,
        date_to: date,
    ) -> List[LogEntry]:
        kind = LogKind(kind)
        try:
            rows = (
                self.db.query(LogRecord)
                .filter(
                    LogRecord.user_id == user_id,
                    LogRecord.kind == kind.value,
                    LogRecord.entry_date >= date_from,
                    LogRecord.entry_date <= date_to,
                )
                .all()
            )
        except ProgrammingError as e:
            # Table/column missing for this source; the connection itself is fine.
            self.db.rollback()
            raise DataUnavailableError(kind.value, str(e.orig)) from e
        return [record_to_entry(row) for row in rows]

    def fetch_goals(self, user_id: str) -> List[Goal]:
        rows = self.db.query(NutritionGoal).filter(NutritionGoal.user_id == user_id).all()
        return [
            Goal(
                user_id=row.user_id,
                goal_type=row.goal_type,
                target_value=float(row.target_value),
                is_active=bool(row.is_active),
            )
            for row in rows
        ]

    def get_record(self, user_id: str, entry_id: str) -> Optional[LogRecord]:
        return (
            self.db.query(LogRecord)
            .filter(LogRecord.id == entry_id, LogRecord.user_id == user_id)
            .first()
        )

    # ------------------------------------------------------------------
    # Writes (caller owns the transaction)
    # ------------------------------------------------------------------

    def add_entry(self, entry: LogEntry, notes: Optional[str] = None) -> LogRecord:
        record = LogRecord(
            user_id=entry.user_id,
            kind=LogKind(entry.kind).value,
            entry_date=entry.entry_date,
            entry_time=entry.entry_time,
            meal_type=entry.meal_type,
            calories=entry.calories,
            protein_g=entry.protein_g,
            carbs_g=entry.carbs_g,
            fat_g=entry.fat_g,
            fiber_g=entry.fiber_g,
            sugar_g=entry.sugar_g,
            volume_ml=entry.volume_ml,
            amount_mg=entry.amount_mg,
            total_volume=entry.total_volume,
            sleep_hours=entry.sleep_hours,
            weight_kg=entry.weight_kg,
            notes=notes,
        )
        if entry.id:
            record.id = entry.id
        self.db.add(record)
        self.db.flush()
        return record

    def delete_entry(self, user_id: str, entry_id: str) -> Optional[date]:
        """Delete one of the user's entries. Returns its date, or None if not found."""
        record = self.get_record(user_id, entry_id)
        if record is None:
            return None
        entry_date = record.entry_date
        self.db.delete(record)
        self.db.flush()
        return entry_date

    def upsert_goal(self, user_id: str, goal_type: str, target_value: float) -> NutritionGoal:
        """Create or replace the user's active goal of `goal_type`."""
        goal = (
            self.db.query(NutritionGoal)
            .filter(NutritionGoal.user_id == user_id, NutritionGoal.goal_type == goal_type)
            .first()
        )
        if goal is None:
            goal = NutritionGoal(user_id=user_id, goal_type=goal_type, target_value=target_value)
            self.db.add(goal)
        else:
            goal.target_value = target_value
            goal.is_active = True
        self.db.flush()
        logger.info(f"Upserted {goal_type}={target_value} for user {user_id}")
        return goal
