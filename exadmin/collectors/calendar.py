"""Calendar diagnostics collector.

Retrieves calendar diagnostic log objects for a mailbox by running
Get-CalendarDiagnosticObjects in PowerShell and reading the JSON it emits.
"""

from __future__ import annotations

import json
import shutil
import subprocess
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base import BaseCollector, CollectorError

# Properties requested in addition to the cmdlet defaults
CUSTOM_PROPERTY_NAMES = [
    "AppointmentCounterProposal",
    "AppointmentRecurring",
    "CalendarItemType",
    "CalendarProcessed",
    "ClientIntent",
    "DisplayAttendeesCc",
    "DisplayAttendeesTo",
    "ExternalSharingMasterId",
    "FreeBusyStatus",
    "From",
    "HasAttachment",
    "IsAllDayEvent",
    "IsCancelled",
    "IsMeeting",
    "MapiEndTime",
    "MapiStartTime",
    "NormalizedSubject",
    "SentRepresentingDisplayName",
    "SentRepresentingEmailAddress",
]

# Properties selected before serialising
OUTPUT_PROPERTIES = [
    "ItemClass",
    "ItemVersion",
    "ItemId",
    "LastModifiedTime",
    "OriginalLastModifiedTime",
    "CalendarLogTriggerAction",
    "LogClientInfoString",
    "ResponsibleUserName",
    "SenderEmailAddress",
    "SubjectProperty",
    "CleanGlobalObjectId",
    "ParentDisplay",
    "OriginalParentDisplay",
    "Location",
    "AppointmentState",
    "AppointmentSequenceNumber",
    "ResponseType",
] + CUSTOM_PROPERTY_NAMES

RECIPIENT_PROPERTIES = [
    "DisplayName",
    "PrimarySmtpAddress",
    "RecipientTypeDetails",
    "Alias",
    "LegacyExchangeDN",
]


def ps_quote(value: str) -> str:
    """Quote a value as a single-quoted PowerShell string literal."""
    return "'" + str(value).replace("'", "''") + "'"


class CalendarDiagnosticsCollector(BaseCollector):
    """Collector for mailbox calendar diagnostic logs.

    Uses `Get-CalendarDiagnosticObjects` and `Get-Recipient` through PowerShell.
    The optional session command connects to Exchange (Connect-ExchangeOnline,
    or Add-PSSnapin for the on-premises management shell).
    """

    def __init__(
        self,
        executable: str = "pwsh",
        session_command: Optional[str] = None,
        timeout: int = 300,
        result_size: int = 2000,
        identity: Optional[str] = None,
        meeting_id: Optional[str] = None,
        subject: Optional[str] = None,
    ):
        self.executable = executable
        self.session_command = session_command
        self.timeout = timeout
        self.result_size = result_size
        self.identity = identity
        self.meeting_id = meeting_id
        self.subject = subject

    @property
    def name(self) -> str:
        return "calendar"

    @property
    def display_name(self) -> str:
        return "Calendar Diagnostics"

    def is_available(self) -> bool:
        """Check if the PowerShell executable is available."""
        if not shutil.which(self.executable):
            return False
        try:
            result = subprocess.run(
                [self.executable, "-NoProfile", "-NonInteractive", "-Command", "$PSVersionTable.PSVersion.Major"],
                capture_output=True,
                text=True,
                timeout=30,
            )
            return result.returncode == 0
        except (OSError, subprocess.SubprocessError):
            return False

    def collect(self) -> Dict[str, Any]:
        """Collect logs for the identity and meeting this collector was built with.

        Returns:
            Dictionary with 'meta' and 'logs'.

        Raises:
            CollectorError: If collection fails.
            ValueError: If no identity or meeting selector is configured.
        """
        if not self.identity:
            raise ValueError("identity is required")
        logs = self.get_calendar_logs(self.identity, meeting_id=self.meeting_id, subject=self.subject)
        return {
            "meta": {
                "generated_at": datetime.utcnow().isoformat() + "Z",
                "collector": self.name,
                "identity": self.identity,
                "meeting_id": self.meeting_id,
                "subject": self.subject,
                "log_count": len(logs),
            },
            "logs": logs,
        }

    # --- Script building ---

    def _wrap_script(self, body: str) -> str:
        parts = ["$ErrorActionPreference = 'Stop'"]
        if self.session_command:
            parts.append(self.session_command)
        parts.append(body)
        return "; ".join(parts)

    def build_calendar_script(
        self,
        identity: str,
        meeting_id: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> str:
        """PowerShell script that emits calendar logs as JSON.

        Raises:
            ValueError: Unless exactly one of meeting_id and subject is given.
        """
        if bool(meeting_id) == bool(subject):
            raise ValueError("Exactly one of meeting_id or subject is required")

        custom = ",".join(ps_quote(p) for p in CUSTOM_PROPERTY_NAMES)
        selector = (
            f"-MeetingID {ps_quote(meeting_id)}"
            if meeting_id
            else f"-Subject {ps_quote(subject)} -ExactMatch $true"
        )
        select = ",".join(OUTPUT_PROPERTIES)
        body = (
            f"Get-CalendarDiagnosticObjects -Identity {ps_quote(identity)} {selector} "
            f"-CustomPropertyNames @({custom}) -ShouldBindToItem $true "
            f"-ResultSize {int(self.result_size)} "
            f"| Select-Object {select} "
            f"| ConvertTo-Json -Depth 4 -Compress"
        )
        return self._wrap_script(body)

    def build_recipient_script(self, identity: str) -> str:
        select = ",".join(RECIPIENT_PROPERTIES)
        body = (
            f"Get-Recipient -Identity {ps_quote(identity)} "
            f"| Select-Object {select} "
            f"| ConvertTo-Json -Depth 2 -Compress"
        )
        return self._wrap_script(body)

    # --- Execution ---

    def _run_script(self, script: str, what: str) -> str:
        cmd = [self.executable, "-NoProfile", "-NonInteractive", "-Command", script]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
            return result.stdout
        except FileNotFoundError as e:
            raise CollectorError(self.name, f"{self.executable} not found", e)
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or (e.stdout or "").strip()
            raise CollectorError(self.name, f"Error getting {what}: {detail}", e)
        except subprocess.TimeoutExpired as e:
            raise CollectorError(self.name, f"Timeout getting {what}", e)

    def _parse_json_output(self, output: str, what: str) -> List[Dict[str, Any]]:
        """Parse ConvertTo-Json output (nothing, one object, or an array)."""
        text = (output or "").strip()
        if not text:
            return []
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CollectorError(self.name, f"Invalid JSON for {what}: {e}", e)

        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
        raise CollectorError(self.name, f"Unexpected JSON for {what}: {type(data).__name__}")

    def get_calendar_logs(
        self,
        identity: str,
        meeting_id: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Get calendar diagnostic logs for a mailbox and meeting.

        Raises:
            ValueError: Unless exactly one of meeting_id and subject is given.
            CollectorError: If the PowerShell command fails.
        """
        script = self.build_calendar_script(identity, meeting_id=meeting_id, subject=subject)
        what = f"calendar logs for {identity}"
        logs = self._parse_json_output(self._run_script(script, what), what)
        print(f"[calendar] Found {len(logs)} calendar logs for {identity}")
        return logs

    def get_recipient(self, identity: str) -> Optional[Dict[str, Any]]:
        """Look up a recipient.

        Returns None when Get-Recipient runs but does not find the identity
        (non-zero exit or no output).

        Raises:
            CollectorError: If PowerShell is missing, times out, or returns invalid JSON.
        """
        what = f"recipient {identity}"
        try:
            output = self._run_script(self.build_recipient_script(identity), what)
        except CollectorError as e:
            if not isinstance(e.cause, subprocess.CalledProcessError):
                raise
            sys.stderr.write(f"[calendar] Unable to resolve {identity}: {e}\n")
            return None
        found = self._parse_json_output(output, what)
        return found[0] if found else None
