"""
Data parsers package initialization.
"""

from .job_parser import (
    parse_job,
    parse_jobs,
    parse_master_data,
    parse_intent,
    parse_products,
    parse_status,
    serialize_job,
    serialize_block,
    serialize_master_data,
    serialize_result,
    serialize_rw_analysis,
)
from .workbook_parser import parse_jobs_sheet, parse_lines_sheet, to_epoch_ms

__all__ = [
    'parse_job',
    'parse_jobs',
    'parse_master_data',
    'parse_intent',
    'parse_products',
    'parse_status',
    'serialize_job',
    'serialize_block',
    'serialize_master_data',
    'serialize_result',
    'serialize_rw_analysis',
    'parse_jobs_sheet',
    'parse_lines_sheet',
    'to_epoch_ms',
]
