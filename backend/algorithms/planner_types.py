"""
Planner Types
Data model shared by the fill-line planning engine and its collaborators.

All timestamps are epoch milliseconds. Optional timing fields are None until
the engine (or the shop floor, for DONE/IN_PROGRESS jobs) provides them.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Union


def is_finite_ts(value: Optional[float]) -> bool:
    """True for a usable timestamp (not None, NaN or infinite)."""
    return value is not None and math.isfinite(value)


class JobStatus(Enum):
    """Lifecycle of a production job."""
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class BlockType(Enum):
    """Kinds of timeline blocks."""
    LINE_FILL = "LINE_FILL"
    RW_SUPPLY = "RW_SUPPLY"


class LaneType(Enum):
    """Kinds of timeline lanes."""
    LINE = "LINE"
    RW = "RW"


class IntentType(Enum):
    """Discrete user operations accepted by apply_intent."""
    ADD_JOB = "ADD_JOB"
    MOVE_JOB_WITHIN_LINE = "MOVE_JOB_WITHIN_LINE"
    MOVE_JOB_TO_LINE = "MOVE_JOB_TO_LINE"
    ASSIGN_RW = "ASSIGN_RW"
    CHANGE_RW = "CHANGE_RW"
    REORDER_JOB_WITHIN_LINE = "REORDER_JOB_WITHIN_LINE"
    UNASSIGN_RW = "UNASSIGN_RW"
    SET_JOB_STATUS = "SET_JOB_STATUS"


# =============================================================================
# JOBS AND MASTER DATA
# =============================================================================

@dataclass
class Job:
    """
    A unit of production work on one fill line.

    - sequence: explicit rank within the line (normalized to 1..n)
    - requested_start_ts: desired start set by the planner, honored only
      when it does not violate line order or any floor
    - start_ts / end_ts: computed by the engine; fixed for DONE jobs
    """
    job_id: str
    product_id: str
    qty_l: float
    line_id: str
    status: JobStatus = JobStatus.PLANNED
    created_at: int = 0
    rw_id: Optional[str] = None
    sequence: Optional[int] = None
    requested_start_ts: Optional[int] = None
    start_ts: Optional[int] = None
    end_ts: Optional[int] = None

    @property
    def is_placed(self) -> bool:
        """True when both start and end times are known."""
        return is_finite_ts(self.start_ts) and is_finite_ts(self.end_ts)

    @property
    def is_fixed(self) -> bool:
        """DONE jobs with known times never move."""
        return self.status == JobStatus.DONE and self.is_placed


@dataclass
class MasterData:
    """Line rates and time anchors the engine plans against."""
    day_start_ts: int
    snap_grid_min: float = 5
    line_rate_l_per_min: Dict[str, float] = field(default_factory=dict)

    @property
    def grid_step_ms(self) -> float:
        return self.snap_grid_min * 60_000

    def rate_for(self, line_id: str) -> float:
        """Throughput for a line in L/min (0 when unknown)."""
        return self.line_rate_l_per_min.get(line_id) or 0


# =============================================================================
# TIMELINE OUTPUT
# =============================================================================

@dataclass
class Block:
    """Read-only projection of a scheduled job onto a timeline lane."""
    block_id: str
    type: BlockType
    lane_type: LaneType
    lane_id: str
    start_ts: int
    end_ts: int
    job_id: str


@dataclass
class PlannerResult:
    """Complete, consistent schedule: updated jobs plus all blocks."""
    jobs: List[Job]
    blocks: List[Block]

    @property
    def line_blocks(self) -> List[Block]:
        return [b for b in self.blocks if b.type == BlockType.LINE_FILL]

    @property
    def rw_blocks(self) -> List[Block]:
        return [b for b in self.blocks if b.type == BlockType.RW_SUPPLY]

    def job(self, job_id: str) -> Optional[Job]:
        """Look up a job by ID."""
        return next((j for j in self.jobs if j.job_id == job_id), None)


# =============================================================================
# INTENTS
# =============================================================================

@dataclass
class AddJob:
    job: Job
    type: ClassVar[IntentType] = IntentType.ADD_JOB


@dataclass
class MoveJobWithinLine:
    job_id: str
    new_start_ts: int
    type: ClassVar[IntentType] = IntentType.MOVE_JOB_WITHIN_LINE


@dataclass
class MoveJobToLine:
    job_id: str
    target_line_id: str
    type: ClassVar[IntentType] = IntentType.MOVE_JOB_TO_LINE


@dataclass
class AssignRw:
    job_id: str
    rw_id: str
    type: ClassVar[IntentType] = IntentType.ASSIGN_RW


@dataclass
class ChangeRw:
    job_id: str
    rw_id: str
    type: ClassVar[IntentType] = IntentType.CHANGE_RW


@dataclass
class ReorderJobWithinLine:
    """Drag a job to a new 0-based position within its own line."""
    job_id: str
    target_index: int
    type: ClassVar[IntentType] = IntentType.REORDER_JOB_WITHIN_LINE


@dataclass
class UnassignRw:
    job_id: str
    type: ClassVar[IntentType] = IntentType.UNASSIGN_RW


@dataclass
class SetJobStatus:
    """Shop-floor actuals: mark a job as started or finished."""
    job_id: str
    status: JobStatus
    type: ClassVar[IntentType] = IntentType.SET_JOB_STATUS


PlannerIntent = Union[
    AddJob, MoveJobWithinLine, MoveJobToLine, AssignRw, ChangeRw,
    ReorderJobWithinLine, UnassignRw, SetJobStatus,
]
