"""Data models for directory audits and calendar diagnostics.

This module defines the core data structures shared by the collectors, the
normalisation layer and the analysis code:

1. DIRECTORY VALUES
   - otherWellKnownObjects holds DN-binary values: B:<length>:<hex guid>:<dn>
   - A value is bad when its DN points into the Deleted Objects container

2. CALENDAR LOGS
   - One CalendarLogEntry per diagnostic log object returned by
     Get-CalendarDiagnosticObjects, with normalised field values
   - Times are timezone-aware UTC datetimes

3. NORMALIZED CATEGORIES
   - Ignorable: FALSE, IGNORABLE, CLEANUP, SHARING
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Directory (otherWellKnownObjects)
# =============================================================================

DELETED_OBJECTS_MARKERS = ("cn=deleted objects", "\\0adel:")

_DN_BINARY_RE = re.compile(r"^B:(\d+):([0-9A-Fa-f]*):(.*)$", re.DOTALL)


@dataclass
class WellKnownObjectValue:
    """A DN-binary value of the otherWellKnownObjects attribute."""

    raw: str
    length: Optional[int] = None
    guid_hex: str = ""
    dn: str = ""

    @classmethod
    def parse(cls, raw: str) -> "WellKnownObjectValue":
        """Parse a raw attribute value.

        Values that are not in B:<n>:<hex>:<dn> form keep the raw text as DN.
        """
        m = _DN_BINARY_RE.match(raw.strip())
        if not m:
            return cls(raw=raw, dn=raw.strip())
        return cls(raw=raw, length=int(m.group(1)), guid_hex=m.group(2), dn=m.group(3))

    @property
    def is_deleted(self) -> bool:
        """True if the referenced object lives in Deleted Objects."""
        dn = self.dn.lower()
        return any(marker in dn for marker in DELETED_OBJECTS_MARKERS)

    @property
    def common_name(self) -> str:
        """First RDN value, without the mangled \\0ADEL:<guid> suffix."""
        first = re.split(r"(?<!\\),", self.dn, maxsplit=1)[0]
        name = first.split("=", 1)[1] if "=" in first else first
        return re.split(r"\\0ADEL:", name, flags=re.IGNORECASE)[0]


@dataclass
class WellKnownObjectsAudit:
    """Result of auditing one exported Exchange container."""

    dn: str
    values: List[WellKnownObjectValue] = field(default_factory=list)

    @property
    def bad_values(self) -> List[WellKnownObjectValue]:
        return [v for v in self.values if v.is_deleted]

    @property
    def good_values(self) -> List[WellKnownObjectValue]:
        return [v for v in self.values if not v.is_deleted]

    @property
    def needs_repair(self) -> bool:
        return bool(self.bad_values)


# =============================================================================
# Calendar diagnostics
# =============================================================================


class IgnorableCategory(str, Enum):
    """Whether a calendar log matters when reading a timeline."""

    FALSE = "False"  # Relevant to the meeting history
    IGNORABLE = "Ignorable"  # Background processing noise
    CLEANUP = "Cleanup"  # Housekeeping by assistants
    SHARING = "Sharing"  # Copies in shared/delegated folders


class TriggerAction(str, Enum):
    """CalendarLogTriggerAction values seen in diagnostic logs."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    MOVE = "Move"
    MOVE_TO_DELETED_ITEMS = "MoveToDeletedItems"
    SOFT_DELETE = "SoftDelete"
    HARD_DELETE = "HardDelete"
    SEND = "Send"
    UNKNOWN = "Unknown"

    @classmethod
    def from_value(cls, value: Any) -> "TriggerAction":
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.UNKNOWN

    @property
    def is_delete(self) -> bool:
        return self in (
            TriggerAction.DELETE,
            TriggerAction.MOVE_TO_DELETED_ITEMS,
            TriggerAction.SOFT_DELETE,
            TriggerAction.HARD_DELETE,
        )


CSV_COLUMNS = [
    "LogRow",
    "LastModifiedTime",
    "IsIgnorable",
    "SubjectProperty",
    "ShortClientName",
    "LogClientInfoString",
    "TriggerAction",
    "ItemClass",
    "ShortItemClass",
    "ItemVersion",
    "AppointmentSequenceNumber",
    "Organizer",
    "From",
    "ResponsibleUser",
    "Sender",
    "LogFolder",
    "OriginalLogFolder",
    "StartTime",
    "EndTime",
    "Location",
    "CalendarItemType",
    "AppointmentState",
    "ResponseType",
    "FreeBusyStatus",
    "ClientIntent",
    "AppointmentRecurring",
    "IsCancelled",
    "IsAllDayEvent",
    "DisplayAttendeesTo",
    "DisplayAttendeesCc",
    "CleanGlobalObjectId",
    "ItemId",
]


def _fmt_time(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class CalendarLogEntry:
    """A normalised calendar diagnostic log.

    Units / formats:
    - last_modified, start_time, end_time: timezone-aware UTC datetimes
    - item_version, sequence_number: integers (None when not reported)
    """

    log_row: int
    last_modified: Optional[datetime]
    item_class: str
    short_item_class: str
    item_version: Optional[int]
    item_id: str
    trigger_action: TriggerAction
    client: str
    short_client: str
    responsible_user: str = ""
    sender: str = ""
    from_: str = ""
    organizer: str = ""
    subject: str = ""
    meeting_id: str = ""
    log_folder: str = ""
    original_log_folder: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: str = ""
    calendar_item_type: str = ""
    appointment_state: str = ""
    response_type: str = ""
    sequence_number: Optional[int] = None
    recurring: bool = False
    is_cancelled: bool = False
    is_all_day: bool = False
    attendees_to: str = ""
    attendees_cc: str = ""
    freebusy: str = ""
    client_intent: str = ""
    is_ignorable: IgnorableCategory = IgnorableCategory.FALSE
    action_text: str = ""  # CalendarLogTriggerAction as reported
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_relevant(self) -> bool:
        return self.is_ignorable == IgnorableCategory.FALSE

    @property
    def action_name(self) -> str:
        """Trigger action as logged, falling back to the enum value."""
        return self.action_text or self.trigger_action.value

    def to_row(self) -> Dict[str, Any]:
        """Row for the CSV export, keyed by CSV_COLUMNS."""
        return {
            "LogRow": self.log_row,
            "LastModifiedTime": _fmt_time(self.last_modified),
            "IsIgnorable": self.is_ignorable.value,
            "SubjectProperty": self.subject,
            "ShortClientName": self.short_client,
            "LogClientInfoString": self.client,
            "TriggerAction": self.action_name,
            "ItemClass": self.item_class,
            "ShortItemClass": self.short_item_class,
            "ItemVersion": "" if self.item_version is None else self.item_version,
            "AppointmentSequenceNumber": "" if self.sequence_number is None else self.sequence_number,
            "Organizer": self.organizer,
            "From": self.from_,
            "ResponsibleUser": self.responsible_user,
            "Sender": self.sender,
            "LogFolder": self.log_folder,
            "OriginalLogFolder": self.original_log_folder,
            "StartTime": _fmt_time(self.start_time),
            "EndTime": _fmt_time(self.end_time),
            "Location": self.location,
            "CalendarItemType": self.calendar_item_type,
            "AppointmentState": self.appointment_state,
            "ResponseType": self.response_type,
            "FreeBusyStatus": self.freebusy,
            "ClientIntent": self.client_intent,
            "AppointmentRecurring": self.recurring,
            "IsCancelled": self.is_cancelled,
            "IsAllDayEvent": self.is_all_day,
            "DisplayAttendeesTo": self.attendees_to,
            "DisplayAttendeesCc": self.attendees_cc,
            "CleanGlobalObjectId": self.meeting_id,
            "ItemId": self.item_id,
        }


@dataclass
class MeetingSummary:
    """Aggregate information about one meeting's logs."""

    subject: str
    meeting_id: str
    organizer: str
    first_log: Optional[datetime]
    last_log: Optional[datetime]
    log_count: int
    relevant_count: int
    recurring: bool = False
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: str = ""


@dataclass
class TimelineEvent:
    """One line of the reconstructed calendar timeline."""

    time: Optional[datetime]
    text: str
    entry: CalendarLogEntry
    changes: List[str] = field(default_factory=list)

    def render(self) -> List[str]:
        stamp = _fmt_time(self.time) or "(no time)"
        return [f"{stamp} {self.text}"] + [f"    * {change}" for change in self.changes]
