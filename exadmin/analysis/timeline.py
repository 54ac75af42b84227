"""Calendar timeline reconstruction.

Turns ordered CalendarLogEntry records into sentences describing what
happened to a meeting: who created it, who responded, what changed between
versions of the calendar item, and when it was cancelled or deleted.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..data.models import CalendarLogEntry, MeetingSummary, TimelineEvent, TriggerAction

RESPONSE_VERBS = {
    "Resp.Pos": "Accepted",
    "Resp.Tent": "Tentatively Accepted",
    "Resp.Neg": "Declined",
}


def _fmt_value(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if value is None:
        return ""
    return str(value)


# (label, getter) pairs compared between consecutive appointment versions
CHANGE_FIELDS: List[Tuple[str, Callable[[CalendarLogEntry], Any]]] = [
    ("Start Time", lambda e: e.start_time),
    ("End Time", lambda e: e.end_time),
    ("Location", lambda e: e.location),
    ("Subject", lambda e: e.subject),
    ("Organizer", lambda e: e.organizer),
    ("Appointment State", lambda e: e.appointment_state),
    ("Recurring", lambda e: e.recurring),
    ("Cancelled", lambda e: e.is_cancelled),
    ("All Day Event", lambda e: e.is_all_day),
]


def detect_changes(previous: CalendarLogEntry, current: CalendarLogEntry) -> List[str]:
    """Describe field differences between two versions of the calendar item."""
    changes = []
    for label, getter in CHANGE_FIELDS:
        old, new = getter(previous), getter(current)
        if old != new:
            changes.append(f"{label} changed from [{_fmt_value(old)}] to [{_fmt_value(new)}].")
    return changes


def describe_entry(entry: CalendarLogEntry, mailbox: str = "") -> str:
    """One-sentence description of a calendar log."""
    user = entry.responsible_user or entry.sender or "Unknown"
    sender = entry.sender or entry.from_ or user
    client = entry.short_client
    action = entry.trigger_action
    kind = entry.short_item_class

    if kind == "Request":
        if action == TriggerAction.UPDATE:
            return f"The Meeting Request from [{sender}] was updated with {client}."
        if action.is_delete:
            return f"[{user}] deleted the Meeting Request from [{sender}] with {client}."
        if _same_user(user, sender) or (mailbox and _same_user(mailbox, sender)):
            return f"[{sender}] sent a new Meeting Request via {client}."
        return f"{user} received a Meeting Request from [{sender}]."

    if kind in RESPONSE_VERBS:
        responder = entry.from_ or entry.sender or user
        if action.is_delete:
            return f"[{user}] deleted the {RESPONSE_VERBS[kind]} response from [{responder}]."
        return f"[{responder}] {RESPONSE_VERBS[kind]} the meeting with {client}."

    if kind == "Cancellation":
        canceller = entry.from_ or entry.sender or user
        return f"[{canceller}] Cancelled the meeting with {client}."

    if kind == "Forward.Notification":
        return f"The meeting was Forwarded by [{sender}]."

    if kind == "Exception.Deleted":
        return "An occurrence of the meeting was deleted."

    if kind == "Ipm.Appointment":
        if action == TriggerAction.CREATE:
            return f"[{user}] Created the Meeting with {client}."
        if action == TriggerAction.UPDATE:
            return f"[{user}] Updated the Meeting with {client}."
        if action.is_delete:
            return f"[{user}] Deleted the Meeting with {client}."

    item = entry.item_class or "item"
    return f"[{user}] performed a {entry.action_name} on the {item} with {client}."


def _same_user(a: str, b: str) -> bool:
    return a.split("@", 1)[0].lower() == b.split("@", 1)[0].lower()


def build_timeline(
    entries: Iterable[CalendarLogEntry],
    include_ignorable: bool = False,
    mailbox: str = "",
) -> List[TimelineEvent]:
    """Build timeline events from normalised, ordered logs.

    Args:
        entries: Logs in normalised order (time, then item version).
        include_ignorable: Keep logs classified as background/cleanup/sharing.
        mailbox: Mailbox the logs came from, used to spot sent requests.
    """
    events: List[TimelineEvent] = []
    previous_appointment: Optional[CalendarLogEntry] = None

    for entry in entries:
        if not entry.is_relevant and not include_ignorable:
            continue

        changes: List[str] = []
        if entry.short_item_class == "Ipm.Appointment" and entry.is_relevant:
            if previous_appointment is not None and entry.trigger_action == TriggerAction.UPDATE:
                changes = detect_changes(previous_appointment, entry)
            previous_appointment = entry

        events.append(
            TimelineEvent(
                time=entry.last_modified,
                text=describe_entry(entry, mailbox),
                entry=entry,
                changes=changes,
            )
        )

    return events


def group_by_meeting(entries: Iterable[CalendarLogEntry]) -> Dict[str, List[CalendarLogEntry]]:
    """Group logs by meeting id (CleanGlobalObjectId), keeping order."""
    groups: Dict[str, List[CalendarLogEntry]] = OrderedDict()
    for entry in entries:
        groups.setdefault(entry.meeting_id or "NoMeetingID", []).append(entry)
    return groups


def summarize_meeting(entries: List[CalendarLogEntry]) -> MeetingSummary:
    """Summarize a meeting from its logs (latest appointment state wins)."""
    appointments = [e for e in entries if e.short_item_class == "Ipm.Appointment" and e.is_relevant]
    latest = appointments[-1] if appointments else (entries[-1] if entries else None)
    times = [e.last_modified for e in entries if e.last_modified is not None]

    def pick(getter: Callable[[CalendarLogEntry], Any]) -> Any:
        for e in reversed(appointments or entries):
            value = getter(e)
            if value:
                return value
        return None

    return MeetingSummary(
        subject=pick(lambda e: e.subject) or "",
        meeting_id=pick(lambda e: e.meeting_id) or "",
        organizer=pick(lambda e: e.organizer) or "",
        first_log=min(times) if times else None,
        last_log=max(times) if times else None,
        log_count=len(entries),
        relevant_count=sum(1 for e in entries if e.is_relevant),
        recurring=bool(latest.recurring) if latest else False,
        start_time=latest.start_time if latest else None,
        end_time=latest.end_time if latest else None,
        location=latest.location if latest else "",
    )


def format_timeline(summary: MeetingSummary, events: List[TimelineEvent]) -> List[str]:
    """Render a summary header followed by the timeline lines."""
    lines = [
        f"Meeting Summary for: {summary.subject or '(no subject)'}",
        f"  Meeting ID:   {summary.meeting_id}",
        f"  Organizer:    {summary.organizer}",
        f"  Start / End:  {_fmt_value(summary.start_time)} - {_fmt_value(summary.end_time)}",
        f"  Location:     {summary.location}",
        f"  Recurring:    {summary.recurring}",
        f"  First log:    {_fmt_value(summary.first_log)}",
        f"  Last log:     {_fmt_value(summary.last_log)}",
        f"  Logs:         {summary.log_count} ({summary.relevant_count} relevant)",
        "",
        "Timeline:",
    ]
    if not events:
        lines.append("  (no relevant calendar logs)")
    for event in events:
        lines.extend(event.render())
    return lines
