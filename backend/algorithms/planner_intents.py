"""
Planner Intents
Applies one discrete user operation to the job list, then recomputes the
full schedule. Intents never carry timing; every timestamp is re-derived.
"""

from dataclasses import replace
from typing import List

from algorithms.planner_core import compute_planner, sequence_key
from algorithms.planner_types import (
    IntentType,
    Job,
    MasterData,
    PlannerIntent,
    PlannerResult,
)


def _find_job(jobs: List[Job], job_id: str):
    return next((job for job in jobs if job.job_id == job_id), None)


def _update_job(jobs: List[Job], job_id: str, **changes) -> List[Job]:
    """Copy of the job list with one job's fields replaced."""
    return [replace(job, **changes) if job.job_id == job_id else job for job in jobs]


def _is_known_line(jobs: List[Job], master_data: MasterData, line_id: str) -> bool:
    return (line_id in master_data.line_rate_l_per_min
            or any(job.line_id == line_id for job in jobs))


def next_tail_sequence(jobs: List[Job], line_id: str) -> int:
    """
    Sequence that appends a job to the end of a line.

    Uses max(highest sequence, job count) + 1 so the result sorts last even
    when the existing sequences have not been normalized yet.
    """
    line_jobs = [job for job in jobs if job.line_id == line_id]
    max_sequence = max((job.sequence or 0 for job in line_jobs), default=0)
    return max(max_sequence, len(line_jobs)) + 1


def _add_job(jobs: List[Job], job: Job) -> List[Job]:
    if _find_job(jobs, job.job_id) is not None:
        return jobs
    if job.sequence is None:
        job = replace(job, sequence=next_tail_sequence(jobs, job.line_id))
    return jobs + [job]


def _move_to_line(jobs: List[Job], master_data: MasterData,
                  job_id: str, target_line_id: str) -> List[Job]:
    job = _find_job(jobs, job_id)
    if job is None or job.line_id == target_line_id:
        return jobs
    if not _is_known_line(jobs, master_data, target_line_id):
        return jobs
    return _update_job(
        jobs, job_id,
        line_id=target_line_id,
        requested_start_ts=None,
        sequence=next_tail_sequence(jobs, target_line_id),
    )


def _reorder_within_line(jobs: List[Job], job_id: str, target_index: int) -> List[Job]:
    """Move a job to a 0-based position in its line and renumber the line."""
    job = _find_job(jobs, job_id)
    if job is None:
        return jobs

    line_jobs = sorted((j for j in jobs if j.line_id == job.line_id), key=sequence_key)
    line_jobs = [j for j in line_jobs if j.job_id != job_id]
    target_index = max(0, min(target_index, len(line_jobs)))
    line_jobs.insert(target_index, job)

    sequence_by_id = {j.job_id: index for index, j in enumerate(line_jobs, 1)}
    reordered = []
    for j in jobs:
        if j.job_id == job_id:
            # A pinned start would fight the new position
            reordered.append(replace(j, sequence=sequence_by_id[j.job_id],
                                     requested_start_ts=None))
        elif j.job_id in sequence_by_id:
            reordered.append(replace(j, sequence=sequence_by_id[j.job_id]))
        else:
            reordered.append(j)
    return reordered


def apply_intent_to_jobs(jobs: List[Job], master_data: MasterData,
                         intent: PlannerIntent) -> List[Job]:
    """
    Apply an intent to the job list without scheduling.

    Unknown job IDs or target lines leave the list unchanged.
    """
    jobs = list(jobs)
    intent_type = getattr(intent, 'type', None)

    if intent_type == IntentType.ADD_JOB:
        return _add_job(jobs, intent.job)

    if _find_job(jobs, getattr(intent, 'job_id', None)) is None:
        return jobs

    if intent_type == IntentType.MOVE_JOB_WITHIN_LINE:
        return _update_job(jobs, intent.job_id, requested_start_ts=intent.new_start_ts)
    elif intent_type == IntentType.MOVE_JOB_TO_LINE:
        return _move_to_line(jobs, master_data, intent.job_id, intent.target_line_id)
    elif intent_type in (IntentType.ASSIGN_RW, IntentType.CHANGE_RW):
        return _update_job(jobs, intent.job_id, rw_id=intent.rw_id)
    elif intent_type == IntentType.REORDER_JOB_WITHIN_LINE:
        return _reorder_within_line(jobs, intent.job_id, intent.target_index)
    elif intent_type == IntentType.UNASSIGN_RW:
        return _update_job(jobs, intent.job_id, rw_id=None)
    elif intent_type == IntentType.SET_JOB_STATUS:
        return _update_job(jobs, intent.job_id, status=intent.status)

    return jobs


def apply_intent(jobs: List[Job], master_data: MasterData,
                 intent: PlannerIntent) -> PlannerResult:
    """
    Apply one user intent and recompute the whole schedule.

    Args:
        jobs: Current job list (typically the jobs of the previous result)
        master_data: Line rates, day start and snap grid
        intent: One of the intent dataclasses from planner_types

    Returns:
        PlannerResult for the mutated job list
    """
    return compute_planner(apply_intent_to_jobs(jobs, master_data, intent), master_data)
