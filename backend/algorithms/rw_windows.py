"""
RW Window Analysis
Mixing-vessel (RW) occupancy around each fill window.

The planner core books an RW for exactly the fill window. On the shop floor
the vessel is busy longer: the batch is made before filling starts, held
while the line fills, and the vessel is cleaned afterwards:

    MAKE   [fill_start - make_duration, fill_start)
    HOLD   [fill_start, fill_end)
    CLEAN  [fill_end, fill_end + clean_duration)

This module derives those segments from a scheduled job list and reports
vessels whose segments collide. It is a read-only report; it never moves jobs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from algorithms.planner_types import Job


MS_PER_MINUTE = 60_000
DEFAULT_RW_CLEAN_MIN = 30


class RwPhase(Enum):
    MAKE = "MAKE"
    HOLD = "HOLD"
    CLEAN = "CLEAN"


@dataclass
class ProductPrep:
    """
    Preparation parameters for one product.

    A positive make_time_per_batch_min wins over the per-liter rate.
    """
    product_id: str
    make_time_min_per_l: float = 0
    make_time_per_batch_min: Optional[float] = None


@dataclass
class RwWindow:
    job_id: str
    rw_id: str
    make_start_ts: float
    fill_start_ts: float
    fill_end_ts: float
    clean_end_ts: float
    make_duration_min: float
    clean_duration_min: float


@dataclass
class RwSegment:
    rw_id: str
    job_id: str
    phase: RwPhase
    start_ts: float
    end_ts: float


@dataclass
class RwConflict:
    rw_id: str
    left_job_id: str
    right_job_id: str


@dataclass
class RwAnalysis:
    segments: List[RwSegment] = field(default_factory=list)
    windows_by_job_id: Dict[str, RwWindow] = field(default_factory=dict)
    conflicts: List[RwConflict] = field(default_factory=list)


def get_make_duration_min(job: Job, product: ProductPrep) -> float:
    if product.make_time_per_batch_min and product.make_time_per_batch_min > 0:
        return product.make_time_per_batch_min
    return max(job.qty_l * product.make_time_min_per_l, 0)


def get_clean_duration_min(rw_id: str, rw_clean_min: Dict[str, float],
                           default_clean_min: float = DEFAULT_RW_CLEAN_MIN) -> float:
    """Per-vessel cleaning time, falling back to the plant default."""
    override = rw_clean_min.get(rw_id)
    if override is not None and override >= 0:
        return override
    return max(default_clean_min, 0)


def get_job_rw_window(job: Job, product: Optional[ProductPrep],
                      clean_duration_min: float) -> Optional[RwWindow]:
    """
    Full vessel window for a placed job with an RW.

    Returns None when the job is not placed, has no RW or an empty fill
    window, its product is unknown, or the make duration is not positive.
    """
    if not job.rw_id or not job.is_placed or job.end_ts <= job.start_ts:
        return None
    if product is None:
        return None

    make_duration_min = get_make_duration_min(job, product)
    if make_duration_min <= 0 or clean_duration_min < 0:
        return None

    return RwWindow(
        job_id=job.job_id,
        rw_id=job.rw_id,
        make_start_ts=job.start_ts - make_duration_min * MS_PER_MINUTE,
        fill_start_ts=job.start_ts,
        fill_end_ts=job.end_ts,
        clean_end_ts=job.end_ts + clean_duration_min * MS_PER_MINUTE,
        make_duration_min=make_duration_min,
        clean_duration_min=clean_duration_min,
    )


def has_overlap(left: RwWindow, right: RwWindow) -> bool:
    """True when two full vessel windows (make start to clean end) intersect."""
    return left.make_start_ts < right.clean_end_ts and right.make_start_ts < left.clean_end_ts


def _window_segments(window: RwWindow) -> List[RwSegment]:
    segments = [
        RwSegment(window.rw_id, window.job_id, RwPhase.MAKE,
                  window.make_start_ts, window.fill_start_ts),
        RwSegment(window.rw_id, window.job_id, RwPhase.HOLD,
                  window.fill_start_ts, window.fill_end_ts),
        RwSegment(window.rw_id, window.job_id, RwPhase.CLEAN,
                  window.fill_end_ts, window.clean_end_ts),
    ]
    return [s for s in segments if s.end_ts > s.start_ts]


def derive_rw_segments(jobs: List[Job], products: Dict[str, ProductPrep],
                       rw_clean_min: Optional[Dict[str, float]] = None,
                       default_clean_min: float = DEFAULT_RW_CLEAN_MIN) -> RwAnalysis:
    """
    Derive MAKE/HOLD/CLEAN segments per vessel and detect collisions.

    Args:
        jobs: Scheduled job list (e.g. PlannerResult.jobs)
        products: product_id -> ProductPrep
        rw_clean_min: Optional rw_id -> cleaning minutes override
        default_clean_min: Cleaning minutes for vessels without override

    Returns:
        RwAnalysis with segments, windows by job ID and conflicts. Each
        colliding (left, right) job pair is reported once per vessel.
    """
    rw_clean_min = rw_clean_min or {}
    analysis = RwAnalysis()

    for job in jobs:
        if not job.rw_id:
            continue
        clean_min = get_clean_duration_min(job.rw_id, rw_clean_min, default_clean_min)
        window = get_job_rw_window(job, products.get(job.product_id), clean_min)
        if window is None:
            continue
        analysis.windows_by_job_id[job.job_id] = window
        analysis.segments.extend(_window_segments(window))

    by_rw: Dict[str, List[RwSegment]] = {}
    for segment in analysis.segments:
        by_rw.setdefault(segment.rw_id, []).append(segment)

    seen = set()
    for rw_id in sorted(by_rw):
        ordered = sorted(by_rw[rw_id], key=lambda s: (s.start_ts, s.end_ts, s.job_id))
        for left, right in zip(ordered, ordered[1:]):
            if left.job_id == right.job_id or right.start_ts >= left.end_ts:
                continue
            key = (rw_id, left.job_id, right.job_id)
            if key in seen:
                continue
            seen.add(key)
            analysis.conflicts.append(RwConflict(rw_id, left.job_id, right.job_id))

    return analysis


def find_window_overlaps(windows_by_job_id: Dict[str, RwWindow]) -> Dict[str, List[str]]:
    """For each job, the jobs on the same vessel whose full windows intersect its own."""
    overlaps = {job_id: [] for job_id in windows_by_job_id}
    windows = sorted(windows_by_job_id.values(), key=lambda w: (w.rw_id, w.make_start_ts, w.job_id))
    for index, left in enumerate(windows):
        for right in windows[index + 1:]:
            if right.rw_id != left.rw_id:
                break
            if has_overlap(left, right):
                overlaps[left.job_id].append(right.job_id)
                overlaps[right.job_id].append(left.job_id)
    return overlaps
