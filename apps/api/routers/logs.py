"""
Log & Goal API Endpoints

Write path for the analytics engine: create and delete log entries, read
resolved goals and upsert targets. Entry writes and deletes commit first
and then invalidate the cached daily snapshot for that user/date, so a read
racing the write can only re-cache committed data.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.cache import invalidate_snapshot_cache
from core.database import get_db
from core.exceptions import NotFoundError, ValidationError
from schemas import (
    GoalResponse,
    GoalsResponse,
    GoalUpsert,
    LogEntryCreate,
    LogEntryResponse,
    validate_goal_type,
)
from services.analytics_types import LogEntry, LogKind
from services.goal_resolver import resolve_goals
from services.log_store import SqlLogStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["logs"])


@router.post("/logs", response_model=LogEntryResponse, status_code=status.HTTP_201_CREATED)
def create_log_entry(
    payload: LogEntryCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Log a meal, hydration, caffeine, workout, sleep or body-weight entry.

    `entry_date` is the user's local date and is stored as given.
    """
    data = payload.model_dump(exclude={"notes"})
    data["kind"] = LogKind(payload.kind)
    entry = LogEntry(user_id=user_id, **data)

    store = SqlLogStore(db)
    record = store.add_entry(entry, notes=payload.notes)
    db.commit()
    invalidate_snapshot_cache(user_id, payload.entry_date)

    db.refresh(record)
    logger.info(f"Logged {payload.kind} entry {record.id} for user {user_id} on {payload.entry_date}")
    return LogEntryResponse.model_validate(record)


@router.delete("/logs/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_log_entry(
    entry_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Delete one of the current user's entries. Other users' entries are 404."""
    entry_date = SqlLogStore(db).delete_entry(user_id, entry_id)
    if entry_date is None:
        raise NotFoundError("Log entry", entry_id)

    db.commit()
    invalidate_snapshot_cache(user_id, entry_date)
    logger.info(f"Deleted entry {entry_id} for user {user_id} on {entry_date}")
    return None


@router.get("/goals", response_model=GoalsResponse)
def get_goals(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Active targets for every goal type, defaults where none is set."""
    return GoalsResponse(goals=resolve_goals(SqlLogStore(db), user_id))


@router.put("/goals/{goal_type}", response_model=GoalResponse)
def upsert_goal(
    goal_type: str,
    payload: GoalUpsert,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create or replace the target for one goal type."""
    try:
        validate_goal_type(goal_type)
    except ValueError as e:
        raise ValidationError(str(e), field="goal_type")

    goal = SqlLogStore(db).upsert_goal(user_id, goal_type, payload.target_value)
    return GoalResponse(goal_type=goal.goal_type, target_value=goal.target_value)
