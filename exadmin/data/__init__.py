"""Data layer - LDIF, models, normalization, and output files."""

from .ldif import LdifParseError, LdifRecord, parse_ldif, read_ldif_file, render_modify_record
from .persistence import OutputStore, get_output_dir
from .models import (
    WellKnownObjectValue,
    WellKnownObjectsAudit,
    IgnorableCategory,
    TriggerAction,
    CalendarLogEntry,
    MeetingSummary,
    TimelineEvent,
    CSV_COLUMNS,
)

__all__ = [
    "LdifParseError",
    "LdifRecord",
    "parse_ldif",
    "read_ldif_file",
    "render_modify_record",
    "OutputStore",
    "get_output_dir",
    "WellKnownObjectValue",
    "WellKnownObjectsAudit",
    "IgnorableCategory",
    "TriggerAction",
    "CalendarLogEntry",
    "MeetingSummary",
    "TimelineEvent",
    "CSV_COLUMNS",
]
