"""
Planner Payload Parser
Converts camelCase JSON payloads into planner dataclasses and back.

Wire format mirrors the planner data model: timestamps are epoch
milliseconds, optional fields are omitted or null.
"""

import math
from typing import Any, Dict, List, Optional

from algorithms.planner_types import (
    AddJob,
    AssignRw,
    Block,
    ChangeRw,
    IntentType,
    Job,
    JobStatus,
    MasterData,
    MoveJobToLine,
    MoveJobWithinLine,
    PlannerResult,
    ReorderJobWithinLine,
    SetJobStatus,
    UnassignRw,
)
from algorithms.rw_windows import ProductPrep, RwAnalysis, find_window_overlaps


def _number(data: Dict[str, Any], key: str, default: Optional[float] = None,
            required: bool = False) -> Optional[float]:
    """Read a numeric field, raising ValueError for non-numeric input."""
    value = data.get(key)
    if value is None or value == '':
        if required:
            raise ValueError(f"'{key}' is required")
        return default
    if isinstance(value, bool):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    if math.isfinite(number) and number.is_integer():
        return int(number)
    return number


def _text(data: Dict[str, Any], key: str, required: bool = False) -> Optional[str]:
    value = data.get(key)
    if value is None or str(value).strip() == '':
        if required:
            raise ValueError(f"'{key}' is required")
        return None
    return str(value).strip()


def parse_status(value: Any) -> JobStatus:
    if value is None or value == '':
        return JobStatus.PLANNED
    try:
        return JobStatus(str(value).strip().upper())
    except ValueError:
        valid = ', '.join(s.value for s in JobStatus)
        raise ValueError(f"Unknown job status {value!r}. Valid: {valid}")


# =============================================================================
# PARSING
# =============================================================================

def parse_job(data: Dict[str, Any]) -> Job:
    """
    Parse one job payload.

    Required: jobId, lineId. Everything else has a default.

    Raises:
        ValueError: for missing identifiers, non-numeric quantities or
            timestamps, or an unknown status
    """
    if not isinstance(data, dict):
        raise ValueError('Each job must be an object.')

    job_id = _text(data, 'jobId', required=True)
    try:
        return Job(
            job_id=job_id,
            product_id=_text(data, 'productId') or '',
            qty_l=_number(data, 'qtyL', default=0),
            line_id=_text(data, 'lineId', required=True),
            status=parse_status(data.get('status')),
            created_at=_number(data, 'createdAt', default=0),
            rw_id=_text(data, 'rwId'),
            sequence=_number(data, 'sequence'),
            requested_start_ts=_number(data, 'requestedStartTs'),
            start_ts=_number(data, 'startTs'),
            end_ts=_number(data, 'endTs'),
        )
    except ValueError as e:
        raise ValueError(f"Job {job_id}: {e}")


def parse_jobs(items: Any) -> List[Job]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValueError("'jobs' must be a list.")
    return [parse_job(item) for item in items]


def parse_master_data(data: Dict[str, Any]) -> MasterData:
    """Parse master data; dayStartTs is required, snapGridMin defaults to 5."""
    if not isinstance(data, dict):
        raise ValueError("'masterData' must be an object.")

    rates = data.get('lineRateLPerMin') or {}
    if not isinstance(rates, dict):
        raise ValueError("'lineRateLPerMin' must be an object of lineId -> rate.")

    return MasterData(
        day_start_ts=_number(data, 'dayStartTs', required=True),
        snap_grid_min=_number(data, 'snapGridMin', default=5),
        line_rate_l_per_min={
            str(line_id): _number(rates, line_id, default=0) for line_id in rates
        },
    )


def parse_intent(data: Dict[str, Any]):
    """
    Parse an intent payload tagged by its 'type' field.

    Raises:
        ValueError: for an unknown type or missing fields
    """
    if not isinstance(data, dict):
        raise ValueError("'intent' must be an object.")

    raw_type = data.get('type')
    try:
        intent_type = IntentType(raw_type)
    except ValueError:
        valid = ', '.join(t.value for t in IntentType)
        raise ValueError(f"Unknown intent type {raw_type!r}. Valid: {valid}")

    if intent_type == IntentType.ADD_JOB:
        return AddJob(job=parse_job(data.get('job')))

    job_id = _text(data, 'jobId', required=True)

    if intent_type == IntentType.MOVE_JOB_WITHIN_LINE:
        return MoveJobWithinLine(job_id, _number(data, 'newStartTs', required=True))
    elif intent_type == IntentType.MOVE_JOB_TO_LINE:
        return MoveJobToLine(job_id, _text(data, 'targetLineId', required=True))
    elif intent_type == IntentType.ASSIGN_RW:
        return AssignRw(job_id, _text(data, 'rwId', required=True))
    elif intent_type == IntentType.CHANGE_RW:
        return ChangeRw(job_id, _text(data, 'rwId', required=True))
    elif intent_type == IntentType.REORDER_JOB_WITHIN_LINE:
        return ReorderJobWithinLine(job_id, _number(data, 'targetIndex', required=True))
    elif intent_type == IntentType.UNASSIGN_RW:
        return UnassignRw(job_id)
    else:
        return SetJobStatus(job_id, parse_status(_text(data, 'status', required=True)))


def parse_products(items: Any) -> Dict[str, ProductPrep]:
    """Parse product preparation parameters into a product_id lookup."""
    products = {}
    for item in items or []:
        product_id = _text(item, 'productId', required=True)
        products[product_id] = ProductPrep(
            product_id=product_id,
            make_time_min_per_l=_number(item, 'makeTimeMinPerL', default=0),
            make_time_per_batch_min=_number(item, 'makeTimePerBatchMin'),
        )
    return products


# =============================================================================
# SERIALIZATION
# =============================================================================

def serialize_job(job: Job) -> Dict[str, Any]:
    return {
        'jobId': job.job_id,
        'productId': job.product_id,
        'qtyL': job.qty_l,
        'lineId': job.line_id,
        'rwId': job.rw_id,
        'status': job.status.value,
        'createdAt': job.created_at,
        'sequence': job.sequence,
        'requestedStartTs': job.requested_start_ts,
        'startTs': job.start_ts,
        'endTs': job.end_ts,
    }


def serialize_block(block: Block) -> Dict[str, Any]:
    return {
        'blockId': block.block_id,
        'type': block.type.value,
        'laneType': block.lane_type.value,
        'laneId': block.lane_id,
        'startTs': block.start_ts,
        'endTs': block.end_ts,
        'jobId': block.job_id,
    }


def serialize_master_data(master_data: MasterData) -> Dict[str, Any]:
    return {
        'dayStartTs': master_data.day_start_ts,
        'snapGridMin': master_data.snap_grid_min,
        'lineRateLPerMin': dict(master_data.line_rate_l_per_min),
    }


def serialize_result(result: PlannerResult) -> Dict[str, Any]:
    """Serialize a PlannerResult for presentation or persistence."""
    return {
        'jobs': [serialize_job(job) for job in result.jobs],
        'blocks': [serialize_block(block) for block in result.blocks],
    }


def serialize_rw_analysis(analysis: RwAnalysis) -> Dict[str, Any]:
    overlaps = find_window_overlaps(analysis.windows_by_job_id)
    return {
        'windows': [
            {
                'jobId': w.job_id,
                'rwId': w.rw_id,
                'makeStartTs': w.make_start_ts,
                'fillStartTs': w.fill_start_ts,
                'fillEndTs': w.fill_end_ts,
                'cleanEndTs': w.clean_end_ts,
                'overlapsWith': overlaps[w.job_id],
            }
            for w in analysis.windows_by_job_id.values()
        ],
        'segments': [
            {
                'rwId': s.rw_id,
                'jobId': s.job_id,
                'phase': s.phase.value,
                'startTs': s.start_ts,
                'endTs': s.end_ts,
            }
            for s in analysis.segments
        ],
        'conflicts': [
            {
                'rwId': c.rw_id,
                'leftJobId': c.left_job_id,
                'rightJobId': c.right_job_id,
            }
            for c in analysis.conflicts
        ],
    }
