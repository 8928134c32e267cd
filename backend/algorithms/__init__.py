"""
Planning Algorithms

This module provides the fill-line planning engine.

Entry points:
- compute_planner: Full, deterministic recomputation of a schedule
- apply_intent: Apply one user intent, then recompute
- derive_rw_segments: Mixing-vessel MAKE/HOLD/CLEAN window report
"""

from algorithms.planner_types import (
    Job,
    JobStatus,
    MasterData,
    Block,
    BlockType,
    LaneType,
    PlannerResult,
    IntentType,
    AddJob,
    MoveJobWithinLine,
    MoveJobToLine,
    AssignRw,
    ChangeRw,
    ReorderJobWithinLine,
    UnassignRw,
    SetJobStatus,
)

from algorithms.planner_core import (
    compute_planner,
    normalize_sequences,
    schedule_lines,
    build_blocks,
    repair_rw_overlaps,
    snap,
    PlannerInvariantError,
)

from algorithms.planner_intents import apply_intent

from algorithms.rw_windows import (
    ProductPrep,
    RwPhase,
    RwAnalysis,
    derive_rw_segments,
)

__all__ = [
    # Data model
    'Job',
    'JobStatus',
    'MasterData',
    'Block',
    'BlockType',
    'LaneType',
    'PlannerResult',
    # Intents
    'IntentType',
    'AddJob',
    'MoveJobWithinLine',
    'MoveJobToLine',
    'AssignRw',
    'ChangeRw',
    'ReorderJobWithinLine',
    'UnassignRw',
    'SetJobStatus',
    # Engine
    'compute_planner',
    'apply_intent',
    'normalize_sequences',
    'schedule_lines',
    'build_blocks',
    'repair_rw_overlaps',
    'snap',
    'PlannerInvariantError',
    # RW window report
    'ProductPrep',
    'RwPhase',
    'RwAnalysis',
    'derive_rw_segments',
]
