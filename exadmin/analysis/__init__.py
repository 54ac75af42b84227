"""Analysis module - directory value audits and calendar timelines."""

from .well_known_objects import (
    ExportRecordCountError,
    audit_export,
    build_corrective_ldif,
    repair_instructions,
)
from .timeline import (
    build_timeline,
    describe_entry,
    detect_changes,
    format_timeline,
    group_by_meeting,
    summarize_meeting,
)

__all__ = [
    "ExportRecordCountError",
    "audit_export",
    "build_corrective_ldif",
    "repair_instructions",
    "build_timeline",
    "describe_entry",
    "detect_changes",
    "format_timeline",
    "group_by_meeting",
    "summarize_meeting",
]
