"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    LiveDashboard,
    console,
    create_histogram,
    print_final_results,
    print_header,
    print_report,
)
from .output import create_result_json, format_text_result, save_json

__all__ = [
    "LiveDashboard",
    "console",
    "create_histogram",
    "create_result_json",
    "format_text_result",
    "print_final_results",
    "print_header",
    "print_report",
    "save_json",
]
