"""
Resource Utilization Exporter
Generates per-lane utilization metrics (fill lines and mixing vessels) from
planner blocks.
"""

from collections import defaultdict

import pandas as pd
from openpyxl.utils import get_column_letter

from algorithms.planner_types import PlannerResult


MS_PER_HOUR = 3_600_000

UTILIZATION_COLUMNS = [
    'Lane Type', 'Lane', 'Jobs', 'Busy Hours', 'Available Hours',
    'Utilization %', 'Idle Hours', 'First Start', 'Last End',
]


def build_lane_utilization(result: PlannerResult) -> pd.DataFrame:
    """
    Utilization per lane over the plan span.

    The span runs from the earliest block start to the latest block end over
    all lanes, so lanes are comparable. Busy hours count the union of block
    intervals on a lane.
    """
    blocks = result.blocks
    if not blocks:
        return pd.DataFrame(columns=UTILIZATION_COLUMNS)

    plan_start = min(b.start_ts for b in blocks)
    plan_end = max(b.end_ts for b in blocks)
    span_hours = (plan_end - plan_start) / MS_PER_HOUR

    lane_blocks = defaultdict(list)
    for block in blocks:
        lane_blocks[(block.lane_type.value, block.lane_id)].append(block)

    rows = []
    for (lane_type, lane_id), items in sorted(lane_blocks.items()):
        items = sorted(items, key=lambda b: (b.start_ts, b.end_ts))

        # Union of intervals so that overlaps are not double counted
        busy_ms = 0
        current_start, current_end = items[0].start_ts, items[0].end_ts
        for block in items[1:]:
            if block.start_ts > current_end:
                busy_ms += current_end - current_start
                current_start, current_end = block.start_ts, block.end_ts
            else:
                current_end = max(current_end, block.end_ts)
        busy_ms += current_end - current_start

        busy_hours = busy_ms / MS_PER_HOUR
        rows.append({
            'Lane Type': lane_type,
            'Lane': lane_id,
            'Jobs': len(items),
            'Busy Hours': round(busy_hours, 2),
            'Available Hours': round(span_hours, 2),
            'Utilization %': round((busy_hours / span_hours) * 100, 1) if span_hours > 0 else 0.0,
            'Idle Hours': round(max(span_hours - busy_hours, 0), 2),
            'First Start': pd.to_datetime(items[0].start_ts, unit='ms'),
            'Last End': pd.to_datetime(max(b.end_ts for b in items), unit='ms'),
        })

    df = pd.DataFrame(rows, columns=UTILIZATION_COLUMNS)
    return df.sort_values(['Lane Type', 'Utilization %'], ascending=[True, False])


def export_lane_utilization(result: PlannerResult, output_path: str) -> str:
    """
    Export lane utilization report to Excel.

    Args:
        result: PlannerResult with blocks
        output_path: Path for output Excel file

    Returns:
        Path to the created file
    """
    df = build_lane_utilization(result)
    if df.empty:
        # Write an empty report
        pd.DataFrame().to_excel(output_path, index=False)
        return output_path

    with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name='Lane Utilization', index=False)

        worksheet = writer.sheets['Lane Utilization']
        for idx, col in enumerate(df.columns):
            col_data = df[col].fillna('').astype(str)
            max_data_len = col_data.str.len().max() if len(col_data) > 0 else 0
            max_length = max(max_data_len, len(col)) + 2
            worksheet.column_dimensions[get_column_letter(idx + 1)].width = min(max_length, 30)
        worksheet.freeze_panes = 'A2'

    print(f"[OK] Lane utilization report exported to: {output_path}")
    return output_path
