"""
Tests for the fill-line planning engine.
Covers snapping, sequence normalization, line scheduling, block building
and RW collision repair.
"""

import pytest

from algorithms import planner_core
from algorithms.planner_core import (
    PlannerInvariantError,
    build_blocks,
    compute_planner,
    normalize_sequences,
    repair_rw_overlaps,
    schedule_lines,
    snap,
)
from algorithms.planner_types import BlockType, JobStatus, LaneType, MasterData

FIVE_MIN = 5 * 60_000


def _assert_no_lane_overlap(blocks):
    by_lane = {}
    for block in blocks:
        by_lane.setdefault(block.lane_id, []).append(block)
    for lane_id, items in by_lane.items():
        items.sort(key=lambda b: b.start_ts)
        for left, right in zip(items, items[1:]):
            assert right.start_ts >= left.end_ts, f"overlap on {lane_id}: {left} / {right}"


# =============================================================================
# SNAP
# =============================================================================

class TestSnap:
    def test_on_grid_value_unchanged(self):
        assert snap(3 * FIVE_MIN, FIVE_MIN) == 3 * FIVE_MIN

    def test_rounds_up(self):
        assert snap(1, FIVE_MIN) == FIVE_MIN
        assert snap(FIVE_MIN + 1, FIVE_MIN) == 2 * FIVE_MIN

    def test_zero_stays_zero(self):
        assert snap(0, FIVE_MIN) == 0

    def test_non_positive_grid_only_ceils(self):
        assert snap(1234.2, 0) == 1235
        assert snap(1000, -5) == 1000


# =============================================================================
# SEQUENCE NORMALIZER
# =============================================================================

class TestSequenceNormalizer:
    def test_gapless_sequence_per_line(self, make_job):
        jobs = [
            make_job('A', sequence=5),
            make_job('B', sequence=None, created_at=10),
            make_job('C', sequence=2),
        ]
        normalized = normalize_sequences(jobs)
        assert [(j.job_id, j.sequence) for j in normalized] == [('B', 1), ('C', 2), ('A', 3)]

    def test_ties_break_on_created_at_then_id(self, make_job):
        jobs = [
            make_job('Z', sequence=1, created_at=5),
            make_job('Y', sequence=1, created_at=5),
            make_job('X', sequence=1, created_at=1),
        ]
        assert [j.job_id for j in normalize_sequences(jobs)] == ['X', 'Y', 'Z']

    def test_lines_are_independent(self, make_job):
        jobs = [
            make_job('A', line_id='L1', sequence=3),
            make_job('B', line_id='L2', sequence=9),
            make_job('C', line_id='L1', sequence=7),
        ]
        normalized = {j.job_id: j for j in normalize_sequences(jobs)}
        assert normalized['A'].sequence == 1
        assert normalized['C'].sequence == 2
        assert normalized['B'].sequence == 1
        assert normalized['B'].line_id == 'L2'


# =============================================================================
# LINE SCHEDULER
# =============================================================================

class TestLineScheduler:
    def test_first_job_starts_at_day_start(self, make_job, master_data, ts):
        scheduled = schedule_lines([make_job('J1', qty_l=3000)], master_data)
        assert scheduled[0].start_ts == ts(6, 0)
        assert scheduled[0].end_ts == ts(6, 30)

    def test_jobs_follow_each_other(self, make_job, master_data, ts):
        jobs = [make_job('J1', sequence=1), make_job('J2', sequence=2)]
        scheduled = {j.job_id: j for j in schedule_lines(jobs, master_data)}
        assert scheduled['J2'].start_ts == scheduled['J1'].end_ts == ts(6, 30)
        assert scheduled['J2'].end_ts == ts(7, 0)

    def test_end_is_snapped(self, make_job, ts):
        md = MasterData(day_start_ts=ts(6, 0), snap_grid_min=5, line_rate_l_per_min={'L1': 10})
        scheduled = schedule_lines([make_job('J1', qty_l=93)], md)
        # 9.3 minutes rounds up to the next 5 minute boundary
        assert scheduled[0].end_ts == ts(6, 10)

    def test_requested_start_ripples_successors(self, make_job, master_data, ts):
        jobs = [
            make_job('J1', sequence=1, requested_start_ts=ts(6, 40)),
            make_job('J2', sequence=2),
            make_job('J3', sequence=3),
        ]
        scheduled = {j.job_id: j for j in schedule_lines(jobs, master_data)}
        assert scheduled['J1'].start_ts == ts(6, 40)
        assert scheduled['J2'].start_ts == ts(7, 10)
        assert scheduled['J3'].start_ts == ts(7, 40)

    def test_requested_start_before_cursor_is_ignored(self, make_job, master_data, ts):
        jobs = [
            make_job('J1', sequence=1),
            make_job('J2', sequence=2, requested_start_ts=ts(6, 10)),
        ]
        scheduled = {j.job_id: j for j in schedule_lines(jobs, master_data)}
        assert scheduled['J2'].start_ts == ts(6, 30)

    def test_requested_start_is_snapped_up(self, make_job, master_data, ts):
        scheduled = schedule_lines([make_job('J1', requested_start_ts=ts(6, 41))], master_data)
        assert scheduled[0].start_ts == ts(6, 45)

    def test_unknown_rate_gives_zero_duration(self, make_job, master_data, ts):
        scheduled = schedule_lines([make_job('J1', line_id='L9')], master_data)
        assert scheduled[0].start_ts == scheduled[0].end_ts == ts(6, 0)

    def test_done_job_keeps_its_times(self, make_job, master_data, ts):
        jobs = [
            make_job('D', sequence=1, status=JobStatus.DONE,
                     start_ts=ts(7, 0), end_ts=ts(7, 33)),
            make_job('J', sequence=2),
        ]
        scheduled = {j.job_id: j for j in schedule_lines(jobs, master_data)}
        assert scheduled['D'].start_ts == ts(7, 0)
        assert scheduled['D'].end_ts == ts(7, 33)
        assert scheduled['J'].start_ts == ts(7, 35)

    def test_done_job_without_times_is_scheduled(self, make_job, master_data, ts):
        scheduled = schedule_lines([make_job('D', status=JobStatus.DONE)], master_data)
        assert scheduled[0].start_ts == ts(6, 0)

    def test_in_progress_never_starts_before_actual_start(self, make_job, master_data, ts):
        jobs = [make_job('J1', status=JobStatus.IN_PROGRESS, start_ts=ts(7, 0))]
        scheduled = schedule_lines(jobs, master_data)
        assert scheduled[0].start_ts == ts(7, 0)

    def test_in_progress_still_respects_cursor(self, make_job, master_data, ts):
        jobs = [
            make_job('J1', sequence=1),
            make_job('J2', sequence=2, status=JobStatus.IN_PROGRESS, start_ts=ts(6, 15)),
        ]
        scheduled = {j.job_id: j for j in schedule_lines(jobs, master_data)}
        assert scheduled['J2'].start_ts == ts(6, 30)

    def test_floor_pushes_job_and_successors(self, make_job, master_data, ts):
        jobs = [
            make_job('J1', sequence=1),
            make_job('J2', sequence=2),
            make_job('J3', sequence=3),
        ]
        scheduled = {j.job_id: j for j in schedule_lines(jobs, master_data, {'J2': ts(7, 0)})}
        assert scheduled['J1'].start_ts == ts(6, 0)
        assert scheduled['J2'].start_ts == ts(7, 0)
        assert scheduled['J3'].start_ts == ts(7, 30)

    def test_input_is_not_mutated(self, make_job, master_data):
        job = make_job('J1')
        schedule_lines([job], master_data)
        assert job.start_ts is None
        assert job.end_ts is None
        assert job.sequence is None


# =============================================================================
# BLOCK BUILDER
# =============================================================================

class TestBlockBuilder:
    def test_line_and_rw_blocks(self, make_job, master_data):
        scheduled = schedule_lines([make_job('J1', rw_id='RW1')], master_data)
        blocks = build_blocks(scheduled)

        assert len(blocks) == 2
        line_block, rw_block = blocks
        assert line_block.type == BlockType.LINE_FILL
        assert line_block.lane_type == LaneType.LINE
        assert line_block.lane_id == 'LINE:L1'
        assert line_block.block_id == 'LINE_FILL:J1'
        assert rw_block.type == BlockType.RW_SUPPLY
        assert rw_block.lane_id == 'RW:RW1'
        assert (rw_block.start_ts, rw_block.end_ts) == (line_block.start_ts, line_block.end_ts)

    def test_no_rw_block_without_rw(self, make_job, master_data):
        blocks = build_blocks(schedule_lines([make_job('J1')], master_data))
        assert [b.type for b in blocks] == [BlockType.LINE_FILL]

    def test_unplaced_jobs_have_no_blocks(self, make_job):
        assert build_blocks([make_job('J1', rw_id='RW1')]) == []


# =============================================================================
# COLLISION REPAIR
# =============================================================================

class TestCollisionRepair:
    def test_shared_rw_is_serialized(self, make_job, master_data, ts):
        jobs = [
            make_job('A', line_id='L1', qty_l=6000, rw_id='RW1'),
            make_job('B', line_id='L2', qty_l=3000, rw_id='RW1'),
            make_job('C', line_id='L2', qty_l=3000),
        ]
        result = compute_planner(jobs, master_data)
        a, b, c = result.job('A'), result.job('B'), result.job('C')

        assert (a.start_ts, a.end_ts) == (ts(6, 0), ts(7, 0))
        assert b.start_ts == a.end_ts == ts(7, 0)
        assert b.end_ts == ts(8, 0)
        # Line successor ripples behind the moved job
        assert c.start_ts == b.end_ts

    def test_different_rws_do_not_interact(self, make_job, master_data, ts):
        jobs = [
            make_job('A', line_id='L1', rw_id='RW1'),
            make_job('B', line_id='L2', rw_id='RW2'),
        ]
        result = compute_planner(jobs, master_data)
        assert result.job('A').start_ts == result.job('B').start_ts == ts(6, 0)

    def test_chain_of_three_lines(self, make_job, ts):
        md = MasterData(day_start_ts=ts(6, 0), snap_grid_min=5,
                        line_rate_l_per_min={'L1': 100, 'L2': 50, 'L3': 100})
        jobs = [
            make_job('X', line_id='L1', qty_l=3000, rw_id='RW1'),
            make_job('Y', line_id='L2', qty_l=1500, rw_id='RW1'),
            make_job('Z', line_id='L3', qty_l=3000, rw_id='RW1'),
        ]
        result = compute_planner(jobs, md)
        assert result.job('X').start_ts == ts(6, 0)
        assert result.job('Y').start_ts == ts(6, 30)
        assert result.job('Z').start_ts == ts(7, 0)
        _assert_no_lane_overlap(result.blocks)

    def test_fixed_done_job_is_never_moved(self, make_job, master_data, ts):
        jobs = [
            make_job('D', line_id='L1', rw_id='RW1', status=JobStatus.DONE,
                     start_ts=ts(6, 0), end_ts=ts(7, 0)),
            make_job('A', line_id='L2', rw_id='RW1'),
        ]
        result = compute_planner(jobs, master_data)
        assert (result.job('D').start_ts, result.job('D').end_ts) == (ts(6, 0), ts(7, 0))
        assert result.job('A').start_ts == ts(7, 0)

    def test_two_fixed_jobs_may_overlap(self, make_job, master_data, ts):
        jobs = [
            make_job('D1', line_id='L1', rw_id='RW1', status=JobStatus.DONE,
                     start_ts=ts(6, 0), end_ts=ts(7, 0)),
            make_job('D2', line_id='L2', rw_id='RW1', status=JobStatus.DONE,
                     start_ts=ts(6, 30), end_ts=ts(7, 30)),
        ]
        result = compute_planner(jobs, master_data)
        assert result.job('D2').start_ts == ts(6, 30)

    def test_non_converging_repair_raises(self, make_job, master_data, monkeypatch):
        jobs = schedule_lines([
            make_job('A', line_id='L1', rw_id='RW1'),
            make_job('B', line_id='L2', rw_id='RW1'),
        ], master_data)
        # A scheduler that ignores floors can never settle
        monkeypatch.setattr(planner_core, 'schedule_lines', lambda jobs, md, floors=None: jobs)

        with pytest.raises(PlannerInvariantError):
            repair_rw_overlaps(jobs, master_data)

    def test_conflict_free_input_unchanged(self, make_job, master_data):
        jobs = schedule_lines([make_job('A', rw_id='RW1')], master_data)
        assert repair_rw_overlaps(jobs, master_data) == jobs

    def test_zero_length_done_job_inside_fill_window(self, make_job, master_data, ts):
        jobs = [
            make_job('A', line_id='L1', rw_id='RW1'),
            # L9 has no rate, so the finished job has no length
            make_job('D', line_id='L9', rw_id='RW1', status=JobStatus.DONE,
                     start_ts=ts(6, 10), end_ts=ts(6, 10)),
        ]
        result = compute_planner(jobs, master_data)
        assert (result.job('D').start_ts, result.job('D').end_ts) == (ts(6, 10), ts(6, 10))
        assert result.job('A').start_ts == ts(6, 10)
        assert result.job('A').end_ts == ts(6, 40)

    def test_done_job_without_times_frozen_at_zero_length(self, make_job, master_data, ts):
        jobs = [
            make_job('D', line_id='L1', qty_l=0, rw_id='RW1', status=JobStatus.DONE),
            make_job('A', line_id='L2', rw_id='RW1'),
        ]
        result = compute_planner(jobs, master_data)

        done = result.job('D')
        assert done.start_ts == done.end_ts == ts(6, 0)
        assert result.job('A').start_ts == ts(6, 0)
        rw_block = next(b for b in result.rw_blocks if b.job_id == 'D')
        assert rw_block.start_ts == rw_block.end_ts

    def test_zero_length_planned_job_moves_behind(self, make_job, master_data, ts):
        jobs = [
            make_job('A', line_id='L1', rw_id='RW1'),
            make_job('Z', line_id='L9', rw_id='RW1'),
        ]
        result = compute_planner(jobs, master_data)
        assert result.job('Z').start_ts == result.job('Z').end_ts == ts(6, 30)

    def test_overlapping_done_jobs_do_not_hide_a_conflict(self, make_job, ts):
        md = MasterData(day_start_ts=ts(6, 0), snap_grid_min=5,
                        line_rate_l_per_min={'L1': 100, 'L2': 100, 'L3': 100})
        jobs = [
            make_job('D1', line_id='L1', rw_id='RW1', status=JobStatus.DONE,
                     start_ts=ts(6, 0), end_ts=ts(7, 0)),
            make_job('D2', line_id='L2', rw_id='RW1', status=JobStatus.DONE,
                     start_ts=ts(6, 10), end_ts=ts(6, 40)),
            make_job('J', line_id='L3', qty_l=1000, rw_id='RW1',
                     requested_start_ts=ts(6, 40)),
        ]
        result = compute_planner(jobs, md)
        assert result.job('J').start_ts == ts(7, 0)
        assert result.job('J').end_ts == ts(7, 10)


# =============================================================================
# COMPUTE PLANNER
# =============================================================================

class TestComputePlanner:
    @pytest.fixture
    def mixed_jobs(self, make_job, ts):
        return [
            make_job('D', line_id='L1', qty_l=1500, rw_id='RW2', status=JobStatus.DONE,
                     start_ts=ts(6, 0), end_ts=ts(6, 17)),
            make_job('P1', line_id='L1', qty_l=4400, rw_id='RW1'),
            make_job('P2', line_id='L1', qty_l=2000, requested_start_ts=ts(8, 3)),
            make_job('Q1', line_id='L2', qty_l=1000, rw_id='RW1'),
            make_job('Q2', line_id='L2', qty_l=2600, rw_id='RW2',
                     status=JobStatus.IN_PROGRESS, start_ts=ts(6, 50)),
            make_job('R1', line_id='L3', qty_l=500, rw_id='RW1'),
        ]

    def test_idempotent(self, mixed_jobs, master_data):
        first = compute_planner(mixed_jobs, master_data)
        second = compute_planner(first.jobs, master_data)
        assert second == first

    def test_grid_aligned(self, mixed_jobs, master_data):
        result = compute_planner(mixed_jobs, master_data)
        for job in result.jobs:
            if job.status == JobStatus.DONE:
                continue
            assert job.start_ts % FIVE_MIN == 0
            assert job.end_ts % FIVE_MIN == 0

    def test_no_overlap_on_any_lane(self, mixed_jobs, master_data):
        result = compute_planner(mixed_jobs, master_data)
        _assert_no_lane_overlap(result.blocks)

    def test_done_job_untouched(self, mixed_jobs, master_data, ts):
        result = compute_planner(mixed_jobs, master_data)
        done = result.job('D')
        assert (done.start_ts, done.end_ts) == (ts(6, 0), ts(6, 17))

    def test_in_progress_floor(self, mixed_jobs, master_data, ts):
        result = compute_planner(mixed_jobs, master_data)
        assert result.job('Q2').start_ts >= ts(6, 50)

    def test_every_job_is_placed(self, mixed_jobs, master_data):
        result = compute_planner(mixed_jobs, master_data)
        assert len(result.jobs) == len(mixed_jobs)
        assert all(job.is_placed for job in result.jobs)
        assert len(result.line_blocks) == len(mixed_jobs)
        assert len(result.rw_blocks) == 5

    def test_input_order_does_not_change_timing(self, mixed_jobs, master_data):
        forward = compute_planner(mixed_jobs, master_data)
        backward = compute_planner(list(reversed(mixed_jobs)), master_data)
        for job in forward.jobs:
            other = backward.job(job.job_id)
            assert (other.start_ts, other.end_ts, other.sequence) == \
                (job.start_ts, job.end_ts, job.sequence)

    def test_inputs_not_mutated(self, mixed_jobs, master_data):
        snapshot = [(j.job_id, j.sequence, j.start_ts, j.end_ts) for j in mixed_jobs]
        compute_planner(mixed_jobs, master_data)
        assert [(j.job_id, j.sequence, j.start_ts, j.end_ts) for j in mixed_jobs] == snapshot

    def test_empty_job_list(self, master_data):
        result = compute_planner([], master_data)
        assert result.jobs == []
        assert result.blocks == []
