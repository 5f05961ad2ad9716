"""
Utility helpers used by the import tool.

This subpackage exposes the structured event log, the resume state file
helpers and the end-of-run report generation.
"""

from .events import ACTIONS, TransferLog, TransferLogEntry
from .reports import build_index_html, build_report_html, write_csv_log
from .state import load_state, save_state

__all__ = [
    "ACTIONS",
    "TransferLog",
    "TransferLogEntry",
    "build_index_html",
    "build_report_html",
    "load_state",
    "save_state",
    "write_csv_log",
]
