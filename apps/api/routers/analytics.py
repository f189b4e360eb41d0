"""
Analytics API Router

Read-only endpoints over the analytics engine: daily snapshots, insights,
habit patterns, metric correlations and the weekly summary.

The services return raw numbers; presentation labels (habit severity,
correlation strength) are attached here.
"""
import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import get_current_user_id
from core.database import get_db
from core.exceptions import InsufficientDataError, InvalidMetricError, ValidationError
from schemas import SnapshotListResponse
from services.analytics_types import DateRange
from services.habit_detector import detect_habits
from services.log_store import SqlLogStore
from services.metric_correlation import METRICS, correlate, discover_correlations
from services.nutrition_aggregator import aggregate_cached
from services.nutrition_insights import generate_insights
from services.nutrition_summary import summarize_week

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])

MAX_SNAPSHOT_RANGE_DAYS = 366


# =============================================================================
# PRESENTATION BANDS
# =============================================================================

def habit_severity(frequency_score: int) -> str:
    if frequency_score >= 80:
        return "high"
    if frequency_score >= 60:
        return "medium"
    if frequency_score >= 40:
        return "low"
    return "negligible"


def correlation_strength(r: float) -> str:
    magnitude = abs(r)
    if magnitude < 0.2:
        return "very weak"
    if magnitude < 0.4:
        return "weak"
    if magnitude < 0.6:
        return "moderate"
    if magnitude < 0.8:
        return "strong"
    return "very strong"


def correlation_direction(r: float) -> str:
    if r > 0:
        return "positive"
    if r < 0:
        return "negative"
    return "none"


def _correlation_payload(result) -> dict:
    data = result.to_dict()
    data["strength"] = correlation_strength(result.correlation_coefficient)
    data["direction"] = correlation_direction(result.correlation_coefficient)
    return data


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/snapshots", response_model=SnapshotListResponse)
def get_snapshots(
    start: date = Query(..., description="First local date (inclusive)"),
    end: date = Query(..., description="Last local date (inclusive)"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Daily totals for every date in [start, end].

    Served through the snapshot cache; end before start returns no snapshots.
    """
    date_range = DateRange(start=start, end=end)
    if len(date_range) > MAX_SNAPSHOT_RANGE_DAYS:
        raise ValidationError(f"Date range cannot exceed {MAX_SNAPSHOT_RANGE_DAYS} days", field="end")

    snapshots = aggregate_cached(SqlLogStore(db), user_id, date_range)
    return SnapshotListResponse(
        start=start,
        end=end,
        snapshots=[s.to_dict() for s in snapshots.values()],
    )


@router.get("/insights")
def get_insights(
    as_of: Optional[datetime] = Query(None, description="Local time to evaluate at (default: now)"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Today's nutrition insights in rule order (not sorted by priority)."""
    as_of = as_of or datetime.now()
    insights = generate_insights(SqlLogStore(db), user_id, as_of=as_of)
    return {
        "as_of": as_of.isoformat(),
        "insights": [i.to_dict() for i in insights],
        "count": len(insights),
    }


@router.get("/habits")
def get_habits(
    days: int = Query(42, ge=1, le=365, description="Analysis window in days"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Recurring behaviours over the trailing window, each with a severity band."""
    patterns = detect_habits(SqlLogStore(db), user_id, window_days=days)

    results = []
    for pattern in patterns:
        data = pattern.to_dict()
        data["severity"] = habit_severity(pattern.frequency_score)
        results.append(data)

    return {"window_days": days, "patterns": results}


@router.get("/correlations")
def get_correlation(
    metric_a: str = Query(..., description=f"One of: {', '.join(METRICS)}"),
    metric_b: str = Query(..., description=f"One of: {', '.join(METRICS)}"),
    days: int = Query(42, ge=3, le=365, description="Analysis window in days"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Pearson correlation between two daily metrics.

    Descriptive only: no significance test, no causal claim. Too few paired
    days returns status "insufficient_data" instead of a coefficient.
    """
    try:
        result = correlate(SqlLogStore(db), user_id, metric_a, metric_b, window_days=days)
    except InvalidMetricError as e:
        raise ValidationError(str(e), field="metric")
    except InsufficientDataError as e:
        return {
            "status": "insufficient_data",
            "primary_metric": metric_a,
            "secondary_metric": metric_b,
            "sample_size": e.sample_size,
            "min_sample_size": e.min_sample_size,
            "time_window_days": days,
        }

    return {"status": "ok", **_correlation_payload(result)}


@router.get("/correlations/discover")
def get_discovered_correlations(
    days: int = Query(42, ge=3, le=365, description="Analysis window in days"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Default metric pairs with enough data, strongest first."""
    results = discover_correlations(SqlLogStore(db), user_id, window_days=days)
    return {
        "window_days": days,
        "correlations": [_correlation_payload(r) for r in results],
        "count": len(results),
    }


@router.get("/weekly-summary")
def get_weekly_summary(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Seven-day averages, goal-hit days and logging streaks."""
    return summarize_week(SqlLogStore(db), user_id).to_dict()
