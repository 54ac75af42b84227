"""Calendar diagnostic log normalization.

This module reshapes the raw objects returned by Get-CalendarDiagnosticObjects
(as serialised by ConvertTo-Json) into CalendarLogEntry records.

Key normalizations:
1. Timestamps → timezone-aware UTC datetimes (PowerShell 5.1 and 7 formats)
2. LogClientInfoString → short client names (OWA, Outlook, EWS, ...)
3. Item classes → short names (Request, Resp.Pos, Cancellation, ...)
4. Legacy Exchange DNs → short user names
5. Logs → IgnorableCategory for timeline filtering
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import CalendarLogEntry, IgnorableCategory, TriggerAction


# =============================================================================
# Mappings
# =============================================================================

# Full item class → short item class
ITEM_CLASS_MAP = {
    "ipm.schedule.meeting.request": "Request",
    "ipm.schedule.meeting.resp.pos": "Resp.Pos",
    "ipm.schedule.meeting.resp.tent": "Resp.Tent",
    "ipm.schedule.meeting.resp.neg": "Resp.Neg",
    "ipm.schedule.meeting.canceled": "Cancellation",
    "ipm.schedule.meeting.notification.forward": "Forward.Notification",
    "ipm.appointment": "Ipm.Appointment",
    "(occurrence deleted)": "Exception.Deleted",
}

# Ordered (substring, short name) rules applied to a lowercased LogClientInfoString
CLIENT_NAME_RULES: List[Tuple[str, str]] = [
    ("calendarrepairassistant", "CalendarRepairAssistant"),
    ("resourcebookingassistant", "ResourceBookingAssistant"),
    ("calendarreplication", "CalendarReplication"),
    ("timeservice", "TimeService"),
    ("locationprocessor", "LocationProcessor"),
    ("griffinrestclient", "GriffinRestClient"),
    ("client=eba", "Other EBA"),
    ("client=tba", "Other TBA"),
    ("client=elc", "ELC"),
    ("client=owa", "OWA"),
    ("client=webservices", "EWS"),
    ("client=rest", "REST"),
    ("outlookservice", "OutlookService"),
    ("msexchangerpc", "Outlook"),
    ("outlook", "Outlook"),
    ("transport", "Transport"),
]

# Clients whose logs are background noise in a timeline
BACKGROUND_CLIENTS = {
    "TimeService",
    "LocationProcessor",
    "GriffinRestClient",
    "CalendarReplication",
    "Other EBA",
    "Other TBA",
    "ELC",
}

CLEANUP_ITEM_CLASS_PREFIXES = ("ipm.appointment.mp", "ipm.appointment.locator")

# Clients whose deletes are housekeeping rather than user actions
CLEANUP_CLIENTS = BACKGROUND_CLIENTS | {"CalendarRepairAssistant"}

_DOTNET_DATE_RE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_LEGACY_GUID_PREFIX_RE = re.compile(r"^[0-9a-f]{32}-", re.IGNORECASE)
_USER_AGENT_RE = re.compile(r"useragent=([^;/]+)", re.IGNORECASE)

_FALLBACK_TIME_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)


# =============================================================================
# Scalar normalization
# =============================================================================


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a serialised PowerShell date into an aware UTC datetime.

    Accepts datetime objects, /Date(ms)/ strings, ISO 8601 and the
    M/D/YYYY h:mm:ss [AM|PM] format. Returns None if the value cannot be parsed.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, dict):
        for key in ("UniversalTime", "DateTime", "value"):
            if key in value:
                return parse_timestamp(value[key])
        return None

    text = str(value).strip()

    m = _DOTNET_DATE_RE.match(text)
    if m:
        return datetime.fromtimestamp(int(m.group(1)) / 1000, tz=timezone.utc)

    iso = _FRACTION_RE.sub(r"\1", text)
    if iso.endswith("Z"):
        iso = iso[:-1] + "+00:00"
    try:
        return parse_timestamp(datetime.fromisoformat(iso))
    except ValueError:
        pass

    for fmt in _FALLBACK_TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def to_bool(value: Any) -> bool:
    """Coerce a PowerShell boolean (bool or 'True'/'False' string)."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("true", "1", "yes")


def to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def to_text(value: Any) -> str:
    """Flatten a serialised value to display text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return "; ".join(to_text(v) for v in value if v is not None)
    if isinstance(value, dict):
        for key in ("ObjectId", "UniqueId", "Id", "value", "Name"):
            if key in value:
                return to_text(value[key])
        return str(value)
    return str(value)


def short_client_name(client_info: Optional[str]) -> str:
    """Map a LogClientInfoString to a short client name."""
    text = (client_info or "").strip()
    if not text:
        return "NotFound"

    lowered = text.lower()

    if "activesync" in lowered:
        m = _USER_AGENT_RE.search(text)
        return f"ActiveSync: {m.group(1)}" if m else "ActiveSync"

    for needle, name in CLIENT_NAME_RULES:
        if needle in lowered:
            return name

    idx = lowered.find("client=")
    if idx >= 0:
        return text[idx + len("client="):].split(";", 1)[0].strip() or "NotFound"
    return text


def short_item_class(item_class: Optional[str]) -> str:
    text = (item_class or "").strip()
    return ITEM_CLASS_MAP.get(text.lower(), text)


def short_user_name(value: Any, keep_domain: bool = True) -> str:
    """Shorten a legacy Exchange DN or SMTP address for display.

    /o=ExchangeLabs/ou=.../cn=Recipients/cn=<guid>-jsmith → jsmith
    """
    text = to_text(value)
    if not text:
        return ""

    if text.lower().startswith("/o="):
        parts = re.split(r"/cn=", text, flags=re.IGNORECASE)
        text = _LEGACY_GUID_PREFIX_RE.sub("", parts[-1])

    if not keep_domain and "@" in text:
        text = text.split("@", 1)[0]

    return text.strip()


def _field(raw: Dict[str, Any], *names: str) -> Any:
    """First non-empty value among candidate property names (case-insensitive)."""
    lowered = {k.lower(): v for k, v in raw.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value not in (None, "", [], {}):
            return value
    return None


def classify_ignorable(
    item_class: str,
    short_client: str,
    trigger_action: TriggerAction,
    log_folder: str = "",
    sharing_master_id: str = "",
    action_text: str = "",
) -> IgnorableCategory:
    """Decide whether a log is relevant to the meeting history.

    Cleanup rules are checked before the background-client rule, so a
    background client's SoftDelete/HardDelete counts as CLEANUP.
    """
    item_class_lower = (item_class or "").lower()

    if item_class_lower == "(occurrence deleted)":
        return IgnorableCategory.IGNORABLE

    if item_class_lower.startswith(CLEANUP_ITEM_CLASS_PREFIXES):
        return IgnorableCategory.CLEANUP

    if "cleanup" in (action_text or "").lower():
        return IgnorableCategory.CLEANUP

    if trigger_action in (TriggerAction.SOFT_DELETE, TriggerAction.HARD_DELETE) and (
        short_client in CLEANUP_CLIENTS
    ):
        return IgnorableCategory.CLEANUP

    if short_client in BACKGROUND_CLIENTS:
        return IgnorableCategory.IGNORABLE

    if "shared" in (log_folder or "").lower():
        return IgnorableCategory.SHARING
    if sharing_master_id and sharing_master_id.lower() != "notfound":
        return IgnorableCategory.SHARING

    return IgnorableCategory.FALSE


# =============================================================================
# Record normalization
# =============================================================================


def normalize_calendar_log(raw: Dict[str, Any], log_row: int = 0) -> CalendarLogEntry:
    """Normalize one raw diagnostic log object."""
    item_class = to_text(_field(raw, "ItemClass"))
    client = to_text(_field(raw, "LogClientInfoString"))
    short_client = short_client_name(client)
    action_text = to_text(_field(raw, "CalendarLogTriggerAction", "TriggerAction"))
    trigger_action = TriggerAction.from_value(action_text)
    log_folder = to_text(_field(raw, "ParentDisplay", "LogFolder"))

    return CalendarLogEntry(
        log_row=log_row,
        last_modified=parse_timestamp(_field(raw, "LastModifiedTime", "OriginalLastModifiedTime", "LogTimestamp")),
        item_class=item_class,
        short_item_class=short_item_class(item_class),
        item_version=to_int(_field(raw, "ItemVersion")),
        item_id=to_text(_field(raw, "ItemId")),
        trigger_action=trigger_action,
        client=client,
        short_client=short_client,
        responsible_user=short_user_name(_field(raw, "ResponsibleUserName", "ResponsibleUser")),
        sender=short_user_name(_field(raw, "SenderEmailAddress", "SenderSMTPAddress", "Sender")),
        from_=short_user_name(_field(raw, "From", "SentRepresentingEmailAddress")),
        organizer=short_user_name(_field(raw, "SentRepresentingDisplayName", "Organizer", "From")),
        subject=to_text(_field(raw, "SubjectProperty", "NormalizedSubject", "Subject")),
        meeting_id=to_text(_field(raw, "CleanGlobalObjectId", "MeetingID")),
        log_folder=log_folder,
        original_log_folder=to_text(_field(raw, "OriginalParentDisplay", "OriginalLogFolder")),
        start_time=parse_timestamp(_field(raw, "MapiStartTime", "StartTime")),
        end_time=parse_timestamp(_field(raw, "MapiEndTime", "EndTime")),
        location=to_text(_field(raw, "Location")),
        calendar_item_type=to_text(_field(raw, "CalendarItemType")),
        appointment_state=to_text(_field(raw, "AppointmentState")),
        response_type=to_text(_field(raw, "ResponseType")),
        sequence_number=to_int(_field(raw, "AppointmentSequenceNumber")),
        recurring=to_bool(_field(raw, "AppointmentRecurring")),
        is_cancelled=to_bool(_field(raw, "IsCancelled")),
        is_all_day=to_bool(_field(raw, "IsAllDayEvent")),
        attendees_to=to_text(_field(raw, "DisplayAttendeesTo")),
        attendees_cc=to_text(_field(raw, "DisplayAttendeesCc")),
        freebusy=to_text(_field(raw, "FreeBusyStatus")),
        client_intent=to_text(_field(raw, "ClientIntent")),
        is_ignorable=classify_ignorable(
            item_class,
            short_client,
            trigger_action,
            log_folder,
            to_text(_field(raw, "ExternalSharingMasterId")),
            action_text,
        ),
        action_text=action_text,
        raw=raw,
    )


def _sort_key(entry: CalendarLogEntry):
    missing = entry.last_modified is None
    stamp = entry.last_modified or datetime.min.replace(tzinfo=timezone.utc)
    return (missing, stamp, entry.item_version if entry.item_version is not None else -1)


def normalize_calendar_logs(raw_logs: Iterable[Dict[str, Any]]) -> List[CalendarLogEntry]:
    """Normalize and order calendar logs.

    Logs are ordered by last-modified time then item version (stable, logs
    without a timestamp last) and numbered from 1.
    """
    entries = sorted((normalize_calendar_log(raw) for raw in raw_logs), key=_sort_key)
    for row, entry in enumerate(entries, start=1):
        entry.log_row = row
    return entries
