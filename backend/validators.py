"""
Data Validators
Plausibility checks over planner inputs.

The planning engine never validates; it degrades gracefully. This report is
for the people feeding it, so they can see why a job collapsed to zero
duration or was left where it was.
"""

from collections import Counter
from typing import Dict, List

from algorithms.planner_types import Job, JobStatus, MasterData


class ValidationReport:
    """Container for validation results."""

    def __init__(self):
        self.errors = []  # Blocking errors
        self.warnings = []  # Non-blocking warnings
        self.info = []  # Informational messages

    @property
    def is_valid(self) -> bool:
        """Returns True if no blocking errors."""
        return len(self.errors) == 0

    def add_error(self, message: str):
        """Add a blocking error."""
        self.errors.append(message)

    def add_warning(self, message: str):
        """Add a warning."""
        self.warnings.append(message)

    def add_info(self, message: str):
        """Add informational message."""
        self.info.append(message)

    def to_dict(self) -> Dict:
        return {
            'is_valid': self.is_valid,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
            'info': list(self.info),
        }

    def print_report(self, limit: int = 10):
        """Print the report to the console, at most `limit` messages per section."""
        status = "[OK] Planner inputs look usable" if self.is_valid else "[!!] Planner inputs have errors"
        print(f"\n{'-' * 60}\nPLANNER INPUT CHECK: {status}")

        for tag, messages in (('ERROR', self.errors), ('WARN', self.warnings), ('INFO', self.info)):
            for message in messages[:limit]:
                print(f"  [{tag}] {message}")
            if len(messages) > limit:
                print(f"  [{tag}] ... {len(messages) - limit} more")
        print('-' * 60)

def validate_planner_inputs(jobs: List[Job], master_data: MasterData) -> ValidationReport:
    """
    Check a job list against master data.

    Returns:
        ValidationReport with all validation results
    """
    report = ValidationReport()

    # 1. Validate Jobs
    _validate_jobs(jobs, report)

    # 2. Validate Master Data
    _validate_master_data(master_data, report)

    # 3. Cross-validation
    _cross_validate(jobs, master_data, report)

    return report


def _validate_jobs(jobs: List[Job], report: ValidationReport):
    """Validate job data."""

    if not jobs:
        report.add_info("No jobs to plan")
        return

    report.add_info(f"Found {len(jobs)} jobs")

    # Duplicate IDs break every job_id lookup downstream
    counts = Counter(job.job_id for job in jobs)
    duplicates = sorted(job_id for job_id, count in counts.items() if count > 1)
    if duplicates:
        report.add_error(f"Found {len(duplicates)} duplicate job IDs: {duplicates[:5]}")

    negative = [job.job_id for job in jobs if job.qty_l < 0]
    if negative:
        report.add_error(f"{len(negative)} jobs have a negative quantity: {negative[:5]}")

    done_unplaced = [job.job_id for job in jobs
                     if job.status == JobStatus.DONE and not job.is_placed]
    if done_unplaced:
        report.add_warning(
            f"{len(done_unplaced)} DONE jobs have no start/end and will be rescheduled: "
            f"{done_unplaced[:5]}"
        )

    by_status = Counter(job.status.value for job in jobs)
    report.add_info(f"Status mix: {', '.join(f'{k}={v}' for k, v in sorted(by_status.items()))}")


def _validate_master_data(master_data: MasterData, report: ValidationReport):
    """Validate master data."""

    if master_data.snap_grid_min <= 0:
        report.add_warning("Snap grid is not positive; times will not be snapped")
    elif 60 % master_data.snap_grid_min != 0:
        report.add_warning(
            f"Snap grid of {master_data.snap_grid_min} min does not divide an hour; "
            f"grid slots will not line up with whole clock times"
        )

    if master_data.grid_step_ms > 0 and master_data.day_start_ts % master_data.grid_step_ms != 0:
        report.add_warning("Day start is not on a grid boundary; the first job will start later")


def _cross_validate(jobs: List[Job], master_data: MasterData, report: ValidationReport):
    """Cross-validate jobs against line rates."""

    lines_without_rate = sorted({
        job.line_id for job in jobs if master_data.rate_for(job.line_id) <= 0
    })
    if lines_without_rate:
        report.add_warning(
            f"{len(lines_without_rate)} lines have no positive rate; their jobs get zero "
            f"duration: {lines_without_rate[:5]}"
        )
