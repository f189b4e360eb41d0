"""
Nutrition Aggregator

The single place where raw log entries are reduced to per-day totals.
Insights, habit detection, correlations and the weekly summary all read
their daily numbers from here.

Dates are the user's local calendar dates exactly as logged; nothing is
shifted through a timezone.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Dict, Iterable, List

from core import cache
from core.config import settings
from core.exceptions import DataUnavailableError
from services.analytics_types import (
    ALL_KINDS,
    DailySnapshot,
    DateRange,
    LogKind,
)
from services.log_store import LogStore

logger = logging.getLogger(__name__)


def aggregate(
    store: LogStore,
    user_id: str,
    date_range: DateRange,
    kinds: Iterable[LogKind] = ALL_KINDS,
    skip_unavailable: bool = False,
) -> Dict[date, DailySnapshot]:
    """
    Reduce a user's logs into one DailySnapshot per date in `date_range`.

    Every date in the range gets a snapshot, empty when nothing was logged.
    An empty range returns an empty mapping without touching the store.

    Args:
        store: Log store to read from (read-only)
        user_id: Owner of the logs
        date_range: Inclusive local-date range
        kinds: Log kinds to read; others stay at zero
        skip_unavailable: Absorb DataUnavailableError per kind, recording the
            kind in each snapshot's `unavailable_kinds` instead of raising

    Returns:
        {date: DailySnapshot} ordered by date
    """
    if date_range.is_empty:
        return {}

    by_date: Dict = {day: [] for day in date_range}
    unavailable: List[str] = []

    # Sorted so the store sees the same call sequence on every run.
    for kind in sorted((LogKind(k) for k in kinds), key=lambda k: k.value):
        try:
            entries = store.fetch_logs(user_id, kind, date_range.start, date_range.end)
        except DataUnavailableError as e:
            if not skip_unavailable:
                raise
            logger.warning(f"Treating {kind.value} as zero for user {user_id}: {e}")
            unavailable.append(kind.value)
            continue

        for entry in entries:
            if entry.entry_date in date_range and LogKind(entry.kind) is kind:
                by_date[entry.entry_date].append(entry)

    missing = frozenset(unavailable)
    snapshots = {}
    for day, entries in by_date.items():
        snapshot = DailySnapshot.from_entries(day, entries)
        if missing:
            snapshot = replace(snapshot, unavailable_kinds=missing)
        snapshots[day] = snapshot
    return snapshots


def aggregate_cached(store: LogStore, user_id: str, date_range: DateRange) -> Dict[date, DailySnapshot]:
    """
    Read-through cached `aggregate` over all kinds.

    Cached per (user, date) and invalidated by the log write path, so a
    cached snapshot is only ever a copy of what `aggregate` would return.
    The client is resolved once; without Redis this is plain `aggregate`.
    """
    if date_range.is_empty:
        return {}

    client = cache.get_redis_client()
    if client is None:
        return aggregate(store, user_id, date_range)

    days = list(date_range)
    keys = [cache.snapshot_cache_key(user_id, day) for day in days]
    cached = cache.get_cache_many(keys, client=client)

    snapshots: Dict = {}
    misses = []
    for day, value in zip(days, cached):
        if value is not None:
            snapshots[day] = DailySnapshot.from_dict(value)
        else:
            misses.append(day)
    logger.debug(f"Snapshot cache for {user_id}: {len(days) - len(misses)} hits, {len(misses)} misses")

    if misses:
        fresh = aggregate(store, user_id, DateRange(min(misses), max(misses)))
        for day in misses:
            snapshots[day] = fresh[day]
        cache.set_cache_many(
            {cache.snapshot_cache_key(user_id, day): fresh[day].to_dict() for day in misses},
            ttl=settings.CACHE_TTL_SNAPSHOT,
            client=client,
        )

    return {day: snapshots[day] for day in days}
