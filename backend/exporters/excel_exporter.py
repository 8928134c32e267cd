"""
Excel Exporter
Export planner schedules to Excel format.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
from openpyxl.utils import get_column_letter

from algorithms.planner_types import PlannerResult


def ts_to_datetime(ts: Optional[float]) -> Optional[datetime]:
    """Epoch milliseconds to a naive UTC datetime (Excel has no time zones)."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).replace(tzinfo=None)


def _autosize_columns(worksheet, df: pd.DataFrame, max_width: int = 40):
    """Auto-adjust column widths and freeze the header row."""
    for idx, col in enumerate(df.columns):
        col_data = df[col].fillna('').astype(str)
        max_data_len = col_data.str.len().max() if len(col_data) > 0 else 0
        max_length = max(max_data_len, len(col)) + 2
        worksheet.column_dimensions[get_column_letter(idx + 1)].width = min(max_length, max_width)
    worksheet.freeze_panes = 'A2'


def build_schedule_frame(result: PlannerResult) -> pd.DataFrame:
    """One row per job, ordered by line and sequence."""
    data = []
    for job in result.jobs:
        start = ts_to_datetime(job.start_ts)
        end = ts_to_datetime(job.end_ts)
        data.append({
            'Line': job.line_id,
            'Seq': job.sequence,
            'Job ID': job.job_id,
            'Product': job.product_id,
            'Qty (L)': job.qty_l,
            'RW': job.rw_id or '',
            'Status': job.status.value,
            'Requested Start': ts_to_datetime(job.requested_start_ts),
            'Start': start,
            'End': end,
            'Duration (min)': round((end - start).total_seconds() / 60, 1) if start and end else None,
        })

    columns = ['Line', 'Seq', 'Job ID', 'Product', 'Qty (L)', 'RW', 'Status',
               'Requested Start', 'Start', 'End', 'Duration (min)']
    df = pd.DataFrame(data, columns=columns)
    if not df.empty:
        df = df.sort_values(['Line', 'Seq'], kind='stable')
    return df


def build_lane_frame(result: PlannerResult) -> pd.DataFrame:
    """One row per block, ordered by lane and start time."""
    blocks = sorted(result.blocks, key=lambda b: (b.lane_id, b.start_ts, b.job_id))
    data = [{
        'Lane': block.lane_id,
        'Block Type': block.type.value,
        'Job ID': block.job_id,
        'Start Date': ts_to_datetime(block.start_ts).strftime('%m/%d/%Y'),
        'Start Time': ts_to_datetime(block.start_ts).strftime('%H:%M'),
        'End Time': ts_to_datetime(block.end_ts).strftime('%H:%M'),
    } for block in blocks]
    return pd.DataFrame(data, columns=['Lane', 'Block Type', 'Job ID',
                                       'Start Date', 'Start Time', 'End Time'])


def export_planner_schedule(result: PlannerResult, output_path: str) -> str:
    """
    Export the planner schedule to Excel.

    Args:
        result: PlannerResult from compute_planner / apply_intent
        output_path: Path for output Excel file

    Returns:
        Path to the created file
    """
    df = build_schedule_frame(result)

    with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name='Fill Schedule', index=False)
        _autosize_columns(writer.sheets['Fill Schedule'], df)

    print(f"[OK] Fill schedule exported to: {output_path}")
    return output_path


def export_lane_schedule(result: PlannerResult, output_path: str) -> str:
    """
    Export the lane-by-lane block schedule (printable).
    """
    df = build_lane_frame(result)

    with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name='Lane Schedule', index=False)
        worksheet = writer.sheets['Lane Schedule']
        _autosize_columns(worksheet, df, max_width=30)

        # Landscape for printing
        worksheet.page_setup.orientation = 'landscape'
        worksheet.page_setup.fitToWidth = 1

    print(f"[OK] Lane schedule exported to: {output_path}")
    return output_path


def export_all_reports(result: PlannerResult, output_dir: str = None) -> Dict[str, str]:
    """
    Export all reports for a planner result.

    Args:
        result: PlannerResult to export
        output_dir: Output directory path. Defaults to project's outputs folder.

    Returns:
        Dictionary of report names to file paths
    """
    from exporters.resource_utilization_exporter import export_lane_utilization

    if output_dir is None:
        # Default to project root's outputs folder
        project_root = Path(__file__).parent.parent.parent
        output_dir = project_root / "outputs"
    else:
        output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')

    files = {}

    files['fill_schedule'] = export_planner_schedule(
        result, str(output_dir / f"Fill_Schedule_{timestamp}.xlsx")
    )
    files['lane_schedule'] = export_lane_schedule(
        result, str(output_dir / f"Lane_Schedule_{timestamp}.xlsx")
    )
    files['lane_utilization'] = export_lane_utilization(
        result, str(output_dir / f"Lane_Utilization_{timestamp}.xlsx")
    )

    print(f"\n[OK] All reports exported to: {output_dir}")

    return files
