"""
Aggregation engine for tracked time.

Pure functions over completed time entries (anything with ``start_time``
and ``end_time``; ``project_id``, ``task_id``, ``task_name`` and ``id`` are
read where a grouping needs them).

Minutes are summed unrounded and only rounded when a value is presented
or persisted, so many short entries do not accumulate rounding error.
"""

import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from ..database.models import StatsPeriodEnum
from ..utils.datetime_utils import (
    minutes_between,
    start_of_day,
    start_of_week,
    start_of_month,
    start_of_year,
    iter_days,
)
from ..utils.formatting import round_half_up

logger = logging.getLogger(__name__)

UNTAGGED = "Untagged"
UNKNOWN_TAG = "—"
OTHER_TASK = "Other"

# Number of buckets per granularity, walking back from "now"
BUCKET_COUNTS = {
    StatsPeriodEnum.DAY: 30,
    StatsPeriodEnum.WEEK: 12,
    StatsPeriodEnum.MONTH: 12,
    StatsPeriodEnum.YEAR: 5,
}


@dataclass
class AggregateTotals:
    """Unrounded totals over a set of entries."""
    minutes: float = 0.0
    amount: float = 0.0
    entry_count: int = 0

    @property
    def rounded_minutes(self) -> int:
        return int(round_half_up(self.minutes, "1"))

    @property
    def rounded_amount(self) -> float:
        return round_currency(self.amount)


@dataclass
class Bucket:
    """One fixed-width window of a statistics series."""
    start: datetime
    label: str
    minutes: float = 0.0
    amount: float = 0.0


@dataclass
class BucketSeries:
    """Dense, gap-filled series plus the overall totals."""
    period: StatsPeriodEnum
    buckets: List[Bucket] = field(default_factory=list)
    total_minutes: float = 0.0
    total_amount: float = 0.0

    @property
    def bucketed_minutes(self) -> float:
        return sum(b.minutes for b in self.buckets)

    def as_rows(self) -> List[Dict]:
        """Chart-ready rows with presentation rounding applied."""
        return [
            {
                "start": b.start,
                "label": b.label,
                "minutes": int(round_half_up(b.minutes, "1")),
                "earnings": round_currency(b.amount),
            }
            for b in self.buckets
        ]


@dataclass
class GroupTotal:
    """Minutes attributed to one task, tag or other grouping key."""
    name: str
    minutes: float = 0.0

    @property
    def rounded_minutes(self) -> int:
        return int(round_half_up(self.minutes, "1"))


# ==================== SCALARS ====================

def round_currency(value) -> float:
    """Round a money amount to cents."""
    return round_half_up(value or 0, "0.01")


def entry_minutes(entry) -> float:
    """Fractional minutes of a completed entry; 0 for an open span."""
    if entry.end_time is None:
        return 0.0
    return minutes_between(entry.start_time, entry.end_time)


def total_minutes(entries: Iterable) -> float:
    """Sum of entry durations in minutes."""
    return sum(entry_minutes(e) for e in entries)


def billed_amount(minutes: float, hourly_rate: Optional[float]) -> float:
    """(minutes / 60) * hourly_rate, unrounded. A missing or zero rate bills 0."""
    if not hourly_rate:
        return 0.0
    return (minutes / 60) * hourly_rate


def _rate_for(entry, rates: Optional[Dict[int, float]]) -> float:
    if rates is None:
        return 0.0
    return rates.get(entry.project_id, 0.0) or 0.0


def aggregate(entries: Iterable, rates: Optional[Dict[int, float]] = None) -> AggregateTotals:
    """
    Total minutes and billed amount over entries.

    Args:
        entries: Completed time entries
        rates: Hourly rate per project_id; None bills nothing

    Returns:
        AggregateTotals with unrounded minutes and amount
    """
    totals = AggregateTotals()
    for entry in entries:
        mins = entry_minutes(entry)
        totals.minutes += mins
        totals.amount += billed_amount(mins, _rate_for(entry, rates))
        totals.entry_count += 1
    return totals


def totals_by_project(entries: Iterable, rates: Optional[Dict[int, float]] = None) -> Dict[int, AggregateTotals]:
    """Aggregate totals keyed by project_id."""
    out: Dict[int, AggregateTotals] = {}
    for entry in entries:
        totals = out.setdefault(entry.project_id, AggregateTotals())
        mins = entry_minutes(entry)
        totals.minutes += mins
        totals.amount += billed_amount(mins, _rate_for(entry, rates))
        totals.entry_count += 1
    return out


# ==================== FILTERING ====================

def filter_overlapping(entries: Iterable, range_start: datetime, range_end: datetime) -> List:
    """
    Completed entries overlapping [range_start, range_end].

    Overlap means start_time <= range_end and end_time >= range_start.
    A reversed range matches nothing.
    """
    if range_end < range_start:
        return []
    return [
        e for e in entries
        if e.end_time is not None and e.start_time <= range_end and e.end_time >= range_start
    ]


# ==================== BUCKETING ====================

def _bucket_label(period: StatsPeriodEnum, start: datetime) -> str:
    if period == StatsPeriodEnum.DAY:
        return f"{start:%b} {start.day}"
    if period == StatsPeriodEnum.WEEK:
        return f"Week of {start:%b} {start.day}"
    if period == StatsPeriodEnum.MONTH:
        return f"{start:%b %Y}"
    return f"{start:%Y}"


def build_buckets(period, now: datetime) -> List[Bucket]:
    """
    Contiguous zero-initialized buckets ending with the one containing now.

    day: 30 local days, week: 12 Monday-start weeks, month: 12 calendar
    months, year: 5 calendar years.
    """
    period = StatsPeriodEnum(period)
    count = BUCKET_COUNTS[period]
    buckets = []

    for i in range(count):
        back = count - 1 - i
        if period == StatsPeriodEnum.DAY:
            start = start_of_day(now - timedelta(days=back))
        elif period == StatsPeriodEnum.WEEK:
            start = start_of_week(now - timedelta(weeks=back))
        elif period == StatsPeriodEnum.MONTH:
            start = start_of_month(now - relativedelta(months=back))
        else:
            start = start_of_year(now - relativedelta(years=back))
        buckets.append(Bucket(start=start, label=_bucket_label(period, start)))

    return buckets


def bucket_entries(
    entries: Iterable,
    period,
    now: datetime,
    rates: Optional[Dict[int, float]] = None,
) -> BucketSeries:
    """
    Assign each entry to the bucket containing its start_time.

    Bucket i covers [start_i, start_{i+1}); the last bucket is unbounded
    above. Entries starting before the first bucket are left out of the
    series but still count toward the overall totals.
    """
    period = StatsPeriodEnum(period)
    buckets = build_buckets(period, now)
    starts = [b.start for b in buckets]
    series = BucketSeries(period=period, buckets=buckets)

    dropped = 0
    for entry in entries:
        mins = entry_minutes(entry)
        amount = billed_amount(mins, _rate_for(entry, rates))
        series.total_minutes += mins
        series.total_amount += amount

        index = bisect_right(starts, entry.start_time) - 1
        if index < 0:
            dropped += 1
            continue
        buckets[index].minutes += mins
        buckets[index].amount += amount

    if dropped:
        logger.debug(f"{dropped} entries precede the first {period.value} bucket")
    return series


# ==================== GROUPING ====================

def _task_label(entry, task_names: Optional[Dict[int, str]]) -> str:
    if entry.task_name:
        return entry.task_name
    task_id = getattr(entry, "task_id", None)
    if task_id is not None and task_names and task_id in task_names:
        return task_names[task_id]
    return OTHER_TASK


def _sorted_groups(totals: Dict[str, float], limit: Optional[int] = None) -> List[GroupTotal]:
    groups = sorted(
        (GroupTotal(name=name, minutes=mins) for name, mins in totals.items()),
        key=lambda g: g.minutes,
        reverse=True,
    )
    return groups[:limit] if limit else groups


def group_by_task(
    entries: Iterable,
    task_names: Optional[Dict[int, str]] = None,
    limit: Optional[int] = None,
) -> List[GroupTotal]:
    """
    Minutes per task label, largest first.

    The label is the entry's ad-hoc task_name, else the referenced task's
    name, else "Other".
    """
    totals: Dict[str, float] = {}
    for entry in entries:
        name = _task_label(entry, task_names)
        totals[name] = totals.get(name, 0.0) + entry_minutes(entry)
    return _sorted_groups(totals, limit)


def group_by_tag(
    entries: Iterable,
    tags_by_entry: Dict[int, Sequence[int]],
    tag_names: Dict[int, str],
) -> List[GroupTotal]:
    """
    Minutes per tag name, largest first.

    An entry with N tags adds its full duration to each of the N tags, so
    the tag totals may sum to more than the entry total. Untagged entries
    go to "Untagged".
    """
    totals: Dict[str, float] = {}
    for entry in entries:
        mins = entry_minutes(entry)
        tag_ids = tags_by_entry.get(entry.id) or []
        if not tag_ids:
            totals[UNTAGGED] = totals.get(UNTAGGED, 0.0) + mins
            continue
        for tag_id in tag_ids:
            name = tag_names.get(tag_id, UNKNOWN_TAG)
            totals[name] = totals.get(name, 0.0) + mins
    return _sorted_groups(totals)


def group_by_day(entries: Iterable, range_start: date, range_end: date) -> Dict[date, float]:
    """
    Gap-filled minutes per calendar day of [range_start, range_end].

    Entries are keyed by the day they start on; entries starting outside
    the range are ignored. A reversed range yields an empty mapping.
    """
    if isinstance(range_start, datetime):
        range_start = range_start.date()
    if isinstance(range_end, datetime):
        range_end = range_end.date()

    out: Dict[date, float] = {day: 0.0 for day in iter_days(range_start, range_end)}
    for entry in entries:
        if entry.end_time is None:
            continue
        key = entry.start_time.date()
        if key in out:
            out[key] += entry_minutes(entry)
    return out


def group_entries_by_day(entries: Iterable) -> Dict[date, List]:
    """Entries grouped by the local day they start on, in input order."""
    out: Dict[date, List] = {}
    for entry in entries:
        if entry.end_time is None:
            continue
        out.setdefault(entry.start_time.date(), []).append(entry)
    return out


def calendar_grid(year: int, month: int) -> List[date]:
    """Days of the Monday-start weeks covering the given month."""
    first = date(year, month, 1)
    last = first + relativedelta(months=1) - timedelta(days=1)
    grid_start = first - timedelta(days=first.weekday())
    grid_end = last + timedelta(days=6 - last.weekday())
    return list(iter_days(grid_start, grid_end))
