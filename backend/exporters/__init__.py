"""
Exporters package
Export planner schedules and reports to various formats.
"""

from .excel_exporter import (
    export_planner_schedule,
    export_lane_schedule,
    export_all_reports
)
from .resource_utilization_exporter import export_lane_utilization, build_lane_utilization

__all__ = [
    'export_planner_schedule',
    'export_lane_schedule',
    'export_all_reports',
    'export_lane_utilization',
    'build_lane_utilization'
]
