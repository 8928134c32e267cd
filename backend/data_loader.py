"""
Data Loader
Loads a job list and master data from a planning workbook.
"""

import glob
import os
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

from algorithms.planner_types import Job, MasterData
from parsers import parse_jobs_sheet, parse_lines_sheet


JOBS_SHEET = 'Jobs'
LINES_SHEET = 'Lines'


class DataLoader:
    """Manages loading of planning workbooks."""

    def __init__(self, data_dir: str = "../planning"):
        self.data_dir = Path(data_dir)
        self.jobs: List[Job] = []
        self.line_rates = {}
        self.errors: List[str] = []
        self.source_file: Optional[Path] = None

    def _find_most_recent_file(self, pattern: str) -> Optional[Path]:
        """
        Find the most recently modified file matching a glob pattern.

        Args:
            pattern: Glob pattern to match (e.g., "Planning*.xlsx")
                     Also tries the underscore/space variant

        Returns:
            Path to most recent matching file, or None if no matches
        """
        patterns_to_try = [pattern]
        if ' ' in pattern:
            patterns_to_try.append(pattern.replace(' ', '_'))
        elif '_' in pattern:
            patterns_to_try.append(pattern.replace('_', ' '))

        matches = []
        for p in patterns_to_try:
            matches.extend(glob.glob(str(self.data_dir / p)))

        if not matches:
            return None

        matches.sort(key=lambda x: os.path.getmtime(x), reverse=True)
        return Path(matches[0])

    def load_workbook(self, filepath: Optional[str] = None,
                      pattern: str = "Planning*.xlsx") -> bool:
        """
        Read the Jobs and Lines sheets.

        Args:
            filepath: Explicit workbook path; when omitted the newest file in
                      data_dir matching pattern is used

        Returns:
            True if a workbook was found and its Jobs sheet parsed
        """
        path = Path(filepath) if filepath else self._find_most_recent_file(pattern)
        if path is None or not path.exists():
            print(f"[!!] No planning workbook found in {self.data_dir}")
            return False

        sheets = pd.read_excel(path, sheet_name=None)
        if JOBS_SHEET not in sheets:
            print(f"[!!] Workbook {path.name} has no '{JOBS_SHEET}' sheet")
            return False

        self.source_file = path
        self.jobs, self.errors = parse_jobs_sheet(sheets[JOBS_SHEET])
        if LINES_SHEET in sheets:
            self.line_rates = parse_lines_sheet(sheets[LINES_SHEET])

        print(f"Loaded planning workbook: {path.name}")
        print(f"  - Jobs: {len(self.jobs)}")
        print(f"  - Lines with rate: {len(self.line_rates)}")
        print(f"  - Errors: {len(self.errors)}")
        for error in self.errors[:10]:
            print(f"  - {error}")

        return True

    def get_master_data(self, day_start_ts: int, snap_grid_min: float = 5) -> MasterData:
        """Master data from the loaded line rates plus the day anchor."""
        return MasterData(
            day_start_ts=day_start_ts,
            snap_grid_min=snap_grid_min,
            line_rate_l_per_min=dict(self.line_rates),
        )

    def load(self, day_start_ts: int, snap_grid_min: float = 5,
             filepath: Optional[str] = None) -> Tuple[List[Job], MasterData]:
        """Load a workbook and return (jobs, master_data)."""
        self.load_workbook(filepath)
        return list(self.jobs), self.get_master_data(day_start_ts, snap_grid_min)
