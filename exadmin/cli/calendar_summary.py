#!/usr/bin/env python3
"""
Calendar diagnostic log summary.

Retrieves calendar diagnostic logs (Get-CalendarDiagnosticObjects) for one or
more mailboxes and a meeting, exports them to CSV and prints a timeline of
what happened to the meeting.

Outputs (per mailbox, in the output directory):
- <alias>_<meeting id>.csv           normalised diagnostic logs
- <alias>_<meeting id>_Timeline.txt  meeting summary and timeline
"""

from __future__ import annotations

import argparse
import sys
from typing import Dict, List, Optional

from .config import Config
from .version_check import run_version_check
from ..analysis.timeline import build_timeline, format_timeline, group_by_meeting, summarize_meeting
from ..collectors.base import CollectorError
from ..collectors.calendar import CalendarDiagnosticsCollector
from ..data.models import CSV_COLUMNS, CalendarLogEntry
from ..data.normalization import normalize_calendar_logs
from ..data.persistence import OutputStore, get_output_dir


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Summarize calendar diagnostic logs for a meeting.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-i",
        "--identity",
        action="append",
        required=True,
        help="Mailbox to query (repeat for several mailboxes)",
    )
    selector = parser.add_mutually_exclusive_group(required=True)
    selector.add_argument("--meeting-id", help="CleanGlobalObjectId of the meeting")
    selector.add_argument("--subject", help="Exact meeting subject")
    parser.add_argument(
        "--include-ignorable",
        action="store_true",
        help="Include background and cleanup logs in the timeline",
    )
    parser.add_argument("--no-timeline", action="store_true", help="Only export CSV")
    parser.add_argument("--output-dir", help="Directory for CSV and timeline files")
    parser.add_argument("--config", type=str, help="Path to config YAML file")
    parser.add_argument(
        "--skip-version-check",
        action="store_true",
        help="Do not check for a newer release",
    )
    return parser.parse_args(argv)


def warn(message: str) -> None:
    sys.stderr.write(f"WARNING: {message}\n")


def print_meeting_table(groups: Dict[str, List[CalendarLogEntry]]) -> None:
    rows = []
    for meeting_id, entries in groups.items():
        summary = summarize_meeting(entries)
        rows.append((summary.subject, meeting_id, str(summary.log_count), summary.organizer))

    subj_w = max(7, max(len(r[0]) for r in rows))
    id_w = max(10, max(len(r[1]) for r in rows))
    logs_w = 4

    header = f'{"SUBJECT".ljust(subj_w)}  {"MEETING ID".ljust(id_w)}  {"LOGS".ljust(logs_w)}  ORGANIZER'
    print(header)
    print("-" * len(header))
    for subject, meeting_id, count, organizer in rows:
        print(f"{subject.ljust(subj_w)}  {meeting_id.ljust(id_w)}  {count.ljust(logs_w)}  {organizer}")


def process_mailbox(
    collector: CalendarDiagnosticsCollector,
    store: OutputStore,
    identity: str,
    args,
) -> Optional[bool]:
    """Export and summarize one mailbox.

    Returns True if logs were found, False if none were, None on command failure.
    """
    try:
        recipient = collector.get_recipient(identity)
        if recipient is None:
            warn(f"Mailbox {identity} was not found, skipping.")
            return False

        mailbox = recipient.get("PrimarySmtpAddress") or identity
        print(f"[calendar] {recipient.get('DisplayName') or identity} ({mailbox}, {recipient.get('RecipientTypeDetails') or 'unknown type'})")

        raw_logs = collector.get_calendar_logs(identity, meeting_id=args.meeting_id, subject=args.subject)
    except CollectorError as e:
        sys.stderr.write(f"Error: {e}\n")
        return None

    if not raw_logs:
        selector = f"meeting id {args.meeting_id}" if args.meeting_id else f"subject {args.subject!r}"
        warn(f"No calendar logs found for {identity} with {selector}.")
        return False

    entries = normalize_calendar_logs(raw_logs)
    groups = group_by_meeting(entries)

    for meeting_id, group in groups.items():
        stem = store.calendar_file_stem(mailbox, meeting_id)
        path = store.write_csv(f"{stem}.csv", (e.to_row() for e in group), CSV_COLUMNS)
        print(f"[calendar] Wrote {len(group)} logs to {path}")

    if len(groups) > 1:
        warn(f"Found {len(groups)} meetings with subject {args.subject!r}. Re-run with --meeting-id for a timeline.")
        print_meeting_table(groups)
        return True

    if args.no_timeline:
        return True

    meeting_id, group = next(iter(groups.items()))
    events = build_timeline(group, include_ignorable=args.include_ignorable, mailbox=mailbox)
    lines = format_timeline(summarize_meeting(group), events)
    for line in lines:
        print(line)
    path = store.write_text(f"{store.calendar_file_stem(mailbox, meeting_id)}_Timeline.txt", lines)
    print(f"[calendar] Wrote timeline to {path}")
    return True


def main(argv=None) -> int:
    args = parse_args(argv)
    config = Config.load(args.config)
    if config.source:
        print(f"[config] Loaded {config.source}")

    run_version_check(config, skip=args.skip_version_check)

    identities = args.identity
    if args.subject and len(identities) > 1:
        warn(
            "Only one mailbox can be queried with --subject. "
            f"Running for the first mailbox only: {identities[0]}"
        )
        identities = identities[:1]

    collector = CalendarDiagnosticsCollector(
        executable=config.exchange.powershell_path,
        session_command=config.exchange.session_command,
        timeout=config.exchange.timeout,
        result_size=config.exchange.result_size,
    )
    store = OutputStore(get_output_dir(args.output_dir or config.output.directory))

    results = [process_mailbox(collector, store, identity, args) for identity in identities]

    if any(results):
        return 0
    if any(r is None for r in results):
        return 3
    return 1


if __name__ == "__main__":
    sys.exit(main())
