"""JSON/CSV result files and console reports."""

from licaudit.output.report import distinct_licenses, format_report, group_by_license
from licaudit.output.writers import render_csv, render_json, write_csv, write_json

__all__ = [
    "distinct_licenses",
    "format_report",
    "group_by_license",
    "render_csv",
    "render_json",
    "write_csv",
    "write_json",
]
