"""
Metric Correlation Engine

Pearson correlation between two daily metrics over a trailing window.

Key rules:
- Only days where BOTH metrics are defined are paired; that count is the
  sample size.
- Fewer than MIN_SAMPLE_SIZE pairs raises InsufficientDataError instead of
  returning a made-up coefficient.
- A constant series has no variance; r is reported as 0 with
  `degenerate_series` set, never NaN.
- Descriptive only: no p-values, no causal claims. Strength labels are
  applied by the caller.
"""

import logging
import math
from datetime import date, datetime
from statistics import mean
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from core.exceptions import InsufficientDataError, InvalidMetricError
from services.analytics_types import (
    DailySnapshot,
    DateRange,
    LogKind,
    MetricCorrelation,
)
from services.log_store import LogStore
from services.nutrition_aggregator import aggregate

logger = logging.getLogger(__name__)


MIN_SAMPLE_SIZE = 3
DEFAULT_WINDOW_DAYS = 42


def _meal_metric(attr: str) -> Callable[[DailySnapshot], Optional[float]]:
    def extract(s: DailySnapshot) -> Optional[float]:
        return float(getattr(s, attr)) if s.meal_count else None
    return extract


def _counted_metric(attr: str, count_attr: str) -> Callable[[DailySnapshot], Optional[float]]:
    def extract(s: DailySnapshot) -> Optional[float]:
        return float(getattr(s, attr)) if getattr(s, count_attr) else None
    return extract


# metric name -> (extractor, log kinds it needs)
METRICS: Dict[str, Tuple[Callable[[DailySnapshot], Optional[float]], FrozenSet[LogKind]]] = {
    "sleep_duration": (_counted_metric("sleep_hours", "sleep_count"), frozenset({LogKind.SLEEP})),
    "daily_calories": (_meal_metric("calories"), frozenset({LogKind.MEAL})),
    "daily_hydration": (_counted_metric("hydration_ml", "hydration_count"), frozenset({LogKind.HYDRATION})),
    "daily_protein": (_meal_metric("protein_g"), frozenset({LogKind.MEAL})),
    "evening_calories": (_meal_metric("evening_calories"), frozenset({LogKind.MEAL})),
    "sugar_consumption": (_meal_metric("sugar_g"), frozenset({LogKind.MEAL})),
    "body_weight": (lambda s: s.body_weight_kg, frozenset({LogKind.BODY_WEIGHT})),
    "daily_caffeine": (_counted_metric("caffeine_mg", "caffeine_count"), frozenset({LogKind.CAFFEINE})),
}

# Pairs surfaced on the correlations tab.
DEFAULT_METRIC_PAIRS: List[Tuple[str, str]] = [
    ("sleep_duration", "daily_calories"),
    ("evening_calories", "sugar_consumption"),
    ("daily_hydration", "daily_calories"),
    ("sleep_duration", "body_weight"),
    ("daily_caffeine", "sleep_duration"),
]


def validate_metric(name: str) -> None:
    if name not in METRICS:
        raise InvalidMetricError(name)


def calculate_pearson_correlation(x: Sequence[float], y: Sequence[float]) -> Tuple[float, bool]:
    """
    Calculate the Pearson correlation coefficient.

    Args:
        x: First variable values
        y: Second variable values (same length as x)

    Returns:
        (correlation_coefficient, degenerate) where degenerate is True when
        either series has zero variance (coefficient is then 0.0)
    """
    if len(x) != len(y):
        raise ValueError("Series must have equal length")

    n = len(x)
    if n == 0:
        return 0.0, True

    mean_x = mean(x)
    mean_y = mean(y)

    numerator = sum((x[i] - mean_x) * (y[i] - mean_y) for i in range(n))
    sum_sq_x = sum((x[i] - mean_x) ** 2 for i in range(n))
    sum_sq_y = sum((y[i] - mean_y) ** 2 for i in range(n))

    if sum_sq_x == 0 or sum_sq_y == 0:
        return 0.0, True

    r = numerator / math.sqrt(sum_sq_x * sum_sq_y)
    # Floating-point noise can push a perfect fit just past +/-1
    return max(-1.0, min(1.0, r)), False


def align_series(
    snapshots: Dict[date, DailySnapshot],
    metric_a: str,
    metric_b: str,
) -> List[Tuple[float, float]]:
    """(a, b) pairs in date order for days where both metrics are defined."""
    extract_a = METRICS[metric_a][0]
    extract_b = METRICS[metric_b][0]

    aligned = []
    for day in sorted(snapshots):
        a = extract_a(snapshots[day])
        b = extract_b(snapshots[day])
        if a is not None and b is not None:
            aligned.append((a, b))
    return aligned


def correlate_snapshots(
    snapshots: Dict[date, DailySnapshot],
    metric_a: str,
    metric_b: str,
    window_days: int,
) -> MetricCorrelation:
    """Correlate two metrics over already-aggregated snapshots."""
    validate_metric(metric_a)
    validate_metric(metric_b)

    aligned = align_series(snapshots, metric_a, metric_b)
    if len(aligned) < MIN_SAMPLE_SIZE:
        raise InsufficientDataError(metric_a, metric_b, len(aligned), MIN_SAMPLE_SIZE)

    xs = [a for a, _ in aligned]
    ys = [b for _, b in aligned]
    r, degenerate = calculate_pearson_correlation(xs, ys)

    return MetricCorrelation(
        primary_metric=metric_a,
        secondary_metric=metric_b,
        correlation_coefficient=r,
        sample_size=len(aligned),
        time_window_days=window_days,
        degenerate_series=degenerate,
    )


def correlate(
    store: LogStore,
    user_id: str,
    metric_a: str,
    metric_b: str,
    window_days: int = DEFAULT_WINDOW_DAYS,
    as_of: Optional[datetime] = None,
) -> MetricCorrelation:
    """
    Correlate two named daily metrics over the `window_days` ending at `as_of`.

    Raises:
        InvalidMetricError: unknown metric name (before any store read)
        InsufficientDataError: fewer than MIN_SAMPLE_SIZE paired days
    """
    validate_metric(metric_a)
    validate_metric(metric_b)

    as_of = as_of or datetime.now()
    window = DateRange.ending_on(as_of.date(), window_days)
    kinds = METRICS[metric_a][1] | METRICS[metric_b][1]
    snapshots = aggregate(store, user_id, window, kinds=kinds)
    return correlate_snapshots(snapshots, metric_a, metric_b, window_days)


def discover_correlations(
    store: LogStore,
    user_id: str,
    window_days: int = DEFAULT_WINDOW_DAYS,
    as_of: Optional[datetime] = None,
    pairs: Optional[List[Tuple[str, str]]] = None,
) -> List[MetricCorrelation]:
    """
    Correlate every default metric pair from a single aggregation pass.

    Pairs without enough paired days are left out. Strongest |r| first.
    """
    pairs = pairs or DEFAULT_METRIC_PAIRS
    for metric_a, metric_b in pairs:
        validate_metric(metric_a)
        validate_metric(metric_b)

    as_of = as_of or datetime.now()
    window = DateRange.ending_on(as_of.date(), window_days)
    kinds = frozenset().union(*(METRICS[m][1] for pair in pairs for m in pair))
    snapshots = aggregate(store, user_id, window, kinds=kinds)

    results: List[MetricCorrelation] = []
    for metric_a, metric_b in pairs:
        try:
            results.append(correlate_snapshots(snapshots, metric_a, metric_b, window_days))
        except InsufficientDataError as e:
            logger.debug(f"Skipping correlation for user {user_id}: {e}")

    return sorted(results, key=lambda c: abs(c.correlation_coefficient), reverse=True)
