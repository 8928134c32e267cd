"""
Fill-Line Planner Core
Deterministic timing engine for parallel fill lines sharing mixing vessels (RW).

Every call recomputes the whole schedule from the job list:

1. Normalize per-line sequences (stable, gapless 1..n)
2. Place jobs on each line behind a running cursor, snapped to the grid
3. Project scheduled jobs onto LINE and RW lanes as blocks
4. Repair overlapping RW blocks by raising a per-job start floor and
   re-running step 2 until no overlap remains

Ordering is taken as given; only timing is computed.
"""

import math
from collections import OrderedDict
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from algorithms.planner_types import (
    Block,
    BlockType,
    Job,
    JobStatus,
    LaneType,
    MasterData,
    PlannerResult,
    is_finite_ts,
)


MS_PER_MINUTE = 60_000


class PlannerInvariantError(RuntimeError):
    """Raised when the RW repair loop fails to converge within its bound."""


# =============================================================================
# TIME HELPERS
# =============================================================================

def snap(value: float, grid_step_ms: float) -> int:
    """
    Round a timestamp up to the next grid boundary.

    The grid is aligned to absolute epoch time, not to the day start, so the
    result only lines up with the day start when the day start itself sits on
    a grid boundary.
    """
    if grid_step_ms <= 0:
        return math.ceil(value)
    return int(math.ceil(value / grid_step_ms) * grid_step_ms)


def duration_ms(job: Job, master_data: MasterData) -> float:
    """Fill duration in milliseconds (0 for unknown or non-positive line rates)."""
    rate = master_data.rate_for(job.line_id)
    if rate <= 0 or not job.qty_l:
        return 0
    return max(job.qty_l * MS_PER_MINUTE / rate, 0)


# =============================================================================
# SEQUENCE NORMALIZER
# =============================================================================

def _group_by_line(jobs: List[Job]) -> "OrderedDict[str, List[Job]]":
    """Group jobs by line, keeping lines in order of first appearance."""
    by_line: "OrderedDict[str, List[Job]]" = OrderedDict()
    for job in jobs:
        by_line.setdefault(job.line_id, []).append(job)
    return by_line


def sequence_key(job: Job) -> Tuple[float, float, str]:
    # Jobs without explicit rank sort first, then by creation time
    return (job.sequence or 0, job.created_at or 0, job.job_id)


def normalize_sequences(jobs: List[Job]) -> List[Job]:
    """
    Assign a gapless 1..n sequence per line.

    Jobs are sorted within their line by (sequence, created_at, job_id) and
    returned grouped by line. Jobs never change lines here.
    """
    normalized = []
    for line_jobs in _group_by_line(jobs).values():
        ordered = sorted(line_jobs, key=sequence_key)
        normalized.extend(
            replace(job, sequence=index) for index, job in enumerate(ordered, 1)
        )
    return normalized


# =============================================================================
# LINE SCHEDULER
# =============================================================================

def schedule_lines(jobs: List[Job], master_data: MasterData,
                   floors: Optional[Dict[str, float]] = None) -> List[Job]:
    """
    Place every job on its line at the earliest feasible snapped time.

    Args:
        jobs: Job list in any order
        master_data: Line rates, day start and snap grid
        floors: Optional job_id -> minimum start timestamp imposed by the
                RW repair loop

    Returns:
        New job list (grouped by line, normalized sequences) where every job
        that is not a fixed DONE job carries start_ts/end_ts
    """
    floors = floors or {}
    step = master_data.grid_step_ms
    scheduled = []

    for line_jobs in _group_by_line(normalize_sequences(jobs)).values():
        cursor = master_data.day_start_ts

        for job in line_jobs:
            if job.is_fixed:
                scheduled.append(job)
                cursor = max(cursor, job.end_ts)
                continue

            lower_bounds = [cursor]
            if job.status == JobStatus.IN_PROGRESS and is_finite_ts(job.start_ts):
                lower_bounds.append(job.start_ts)
            if job.job_id in floors:
                lower_bounds.append(floors[job.job_id])
            earliest_start = max(lower_bounds)

            if is_finite_ts(job.requested_start_ts):
                desired_start = snap(job.requested_start_ts, step)
            else:
                desired_start = earliest_start

            start_ts = snap(max(desired_start, earliest_start), step)
            end_ts = snap(start_ts + duration_ms(job, master_data), step)
            scheduled.append(replace(job, start_ts=start_ts, end_ts=end_ts))
            cursor = end_ts

    return scheduled


# =============================================================================
# BLOCK BUILDER
# =============================================================================

def _line_block(job: Job) -> Block:
    return Block(
        block_id=f"{BlockType.LINE_FILL.value}:{job.job_id}",
        type=BlockType.LINE_FILL,
        lane_type=LaneType.LINE,
        lane_id=f"{LaneType.LINE.value}:{job.line_id}",
        start_ts=job.start_ts,
        end_ts=job.end_ts,
        job_id=job.job_id,
    )


def _rw_block(job: Job) -> Block:
    return Block(
        block_id=f"{BlockType.RW_SUPPLY.value}:{job.job_id}",
        type=BlockType.RW_SUPPLY,
        lane_type=LaneType.RW,
        lane_id=f"{LaneType.RW.value}:{job.rw_id}",
        start_ts=job.start_ts,
        end_ts=job.end_ts,
        job_id=job.job_id,
    )


def build_rw_blocks(jobs: List[Job]) -> List[Block]:
    """RW_SUPPLY blocks for placed jobs with a vessel assignment."""
    return [_rw_block(job) for job in jobs if job.is_placed and job.rw_id]


def build_blocks(jobs: List[Job]) -> List[Block]:
    """
    Project scheduled jobs onto timeline lanes.

    One LINE_FILL block per placed job, plus one RW_SUPPLY block with the
    identical interval when the job has an RW. Unplaced jobs yield nothing.
    """
    line_blocks = [_line_block(job) for job in jobs if job.is_placed]
    return line_blocks + build_rw_blocks(jobs)


# =============================================================================
# COLLISION REPAIRER
# =============================================================================

def _find_rw_collision(jobs: List[Job]) -> Optional[Tuple[str, float]]:
    """
    Find the first repairable overlap on an RW lane.

    Each block is compared with the block reaching furthest right among the
    earlier blocks of its lane, so a pair of overlapping fixed jobs cannot
    hide a later overlap. Returns (job_id, floor) for the job that has to
    move, or None when the RW lanes are conflict free. The later-starting
    job moves behind the earlier one; when that job is a fixed DONE job, the
    earlier one moves behind it instead, but only if that actually moves it.
    Overlaps between two fixed jobs are left alone.
    """
    fixed_ids = {job.job_id for job in jobs if job.is_fixed}
    rw_blocks = sorted(build_rw_blocks(jobs),
                       key=lambda b: (b.lane_id, b.start_ts, b.job_id))

    reach = None
    for block in rw_blocks:
        if reach is None or reach.lane_id != block.lane_id:
            reach = block
            continue
        if block.start_ts < reach.end_ts:
            if block.job_id not in fixed_ids:
                return block.job_id, reach.end_ts
            if reach.job_id not in fixed_ids and block.end_ts > reach.start_ts:
                return reach.job_id, block.end_ts
        if block.end_ts > reach.end_ts:
            reach = block

    return None


def repair_rw_overlaps(jobs: List[Job], master_data: MasterData) -> List[Job]:
    """
    Shift jobs right until no two RW_SUPPLY blocks on the same vessel overlap.

    Each repair raises one job's floor and re-runs the line scheduler over the
    whole job list, so line successors ripple along. Floors only ever grow,
    which bounds the loop; exceeding the bound means a logic regression.

    Raises:
        PlannerInvariantError: if the loop does not settle within
            len(jobs) ** 2 repairs
    """
    floors: Dict[str, float] = {}
    max_repairs = max(len(jobs), 1) ** 2
    repairs = 0

    while True:
        collision = _find_rw_collision(jobs)
        if collision is None:
            return jobs

        repairs += 1
        if repairs > max_repairs:
            raise PlannerInvariantError(
                f"RW repair did not converge after {max_repairs} repairs "
                f"({len(jobs)} jobs)"
            )

        job_id, floor = collision
        floors[job_id] = max(floors.get(job_id, floor), floor)
        jobs = schedule_lines(jobs, master_data, floors)


# =============================================================================
# ENTRY POINT
# =============================================================================

def compute_planner(jobs: List[Job], master_data: MasterData) -> PlannerResult:
    """
    Recompute a full, consistent schedule.

    Pure function: the input jobs are never mutated, and running it again on
    its own output yields the same result.

    Args:
        jobs: Complete job list (any order)
        master_data: Line rates, day start and snap grid

    Returns:
        PlannerResult with the scheduled jobs and all timeline blocks
    """
    scheduled = schedule_lines(jobs, master_data)
    repaired = repair_rw_overlaps(scheduled, master_data)
    return PlannerResult(jobs=repaired, blocks=build_blocks(repaired))
