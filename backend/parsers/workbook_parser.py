"""
Planning Workbook Parser
Parses the Jobs and Lines sheets of a planning workbook.

Jobs sheet columns:
- Job ID, Product, Qty (L), Line, RW, Status, Created At, Sequence,
  Requested Start, Start, End

Lines sheet columns:
- Line, Rate (L/min)

Date columns may hold Excel datetimes (treated as UTC) or epoch milliseconds.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from algorithms.planner_types import Job
from .job_parser import parse_status


JOB_COLUMNS = {
    'job_id': 'Job ID',
    'product_id': 'Product',
    'qty_l': 'Qty (L)',
    'line_id': 'Line',
    'rw_id': 'RW',
    'status': 'Status',
    'created_at': 'Created At',
    'sequence': 'Sequence',
    'requested_start_ts': 'Requested Start',
    'start_ts': 'Start',
    'end_ts': 'End',
}


def to_epoch_ms(value: Any) -> Optional[int]:
    """Convert a cell value to epoch milliseconds (None for empty cells)."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if hasattr(value, 'to_pydatetime'):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if pd.api.types.is_number(value):
        return int(value)
    return int(pd.to_datetime(value, utc=True).timestamp() * 1000)


def _cell_text(row: pd.Series, column: str) -> Optional[str]:
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _cell_number(row: pd.Series, column: str) -> Optional[float]:
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return float(value)


def parse_jobs_sheet(df: pd.DataFrame) -> Tuple[List[Job], List[str]]:
    """
    Parse job rows.

    Rows without a Job ID are skipped. Rows that fail to parse are reported
    in the error list and skipped.

    Returns:
        Tuple of (jobs, row errors)
    """
    jobs = []
    errors = []

    for index, row in df.iterrows():
        job_id = _cell_text(row, JOB_COLUMNS['job_id'])
        if job_id is None:
            continue

        try:
            line_id = _cell_text(row, JOB_COLUMNS['line_id'])
            if line_id is None:
                raise ValueError('Line is required')

            sequence = _cell_number(row, JOB_COLUMNS['sequence'])
            jobs.append(Job(
                job_id=job_id,
                product_id=_cell_text(row, JOB_COLUMNS['product_id']) or '',
                qty_l=_cell_number(row, JOB_COLUMNS['qty_l']) or 0,
                line_id=line_id,
                rw_id=_cell_text(row, JOB_COLUMNS['rw_id']),
                status=parse_status(_cell_text(row, JOB_COLUMNS['status'])),
                created_at=to_epoch_ms(row.get(JOB_COLUMNS['created_at'])) or 0,
                sequence=int(sequence) if sequence is not None else None,
                requested_start_ts=to_epoch_ms(row.get(JOB_COLUMNS['requested_start_ts'])),
                start_ts=to_epoch_ms(row.get(JOB_COLUMNS['start_ts'])),
                end_ts=to_epoch_ms(row.get(JOB_COLUMNS['end_ts'])),
            ))
        except (ValueError, TypeError) as e:
            # +2: header row and 1-indexed spreadsheet rows
            errors.append(f"Row {index + 2} ({job_id}): {e}")

    return jobs, errors


def parse_lines_sheet(df: pd.DataFrame) -> Dict[str, float]:
    """Parse line rates into a line_id -> L/min mapping."""
    rates = {}
    for _, row in df.iterrows():
        line_id = _cell_text(row, 'Line')
        if line_id is None:
            continue
        rates[line_id] = _cell_number(row, 'Rate (L/min)') or 0
    return rates
