"""Audit and repair of otherWellKnownObjects on the Exchange container.

Values that point at objects in Deleted Objects (typically the Exchange
security groups) break Setup /PrepareAD. The repair is an LDIF modify record
that replaces the attribute with the remaining good values.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from ..data.ldif import LdifRecord, render_modify_record
from ..data.models import WellKnownObjectValue, WellKnownObjectsAudit

ATTRIBUTE = "otherWellKnownObjects"
IMPORT_FILE = "ExchangeContainerImport.txt"


class ExportRecordCountError(ValueError):
    """Raised when an export does not contain exactly one record."""

    def __init__(self, count: int):
        self.count = count
        if count < 1:
            message = "Failed to export the Exchange container: no records found"
        else:
            message = f"Unexpected LDIF data: expected 1 record, found {count}"
        super().__init__(message)


def audit_export(records: Sequence[LdifRecord]) -> WellKnownObjectsAudit:
    """Audit the otherWellKnownObjects values of a single exported record.

    Raises:
        ExportRecordCountError: If records does not hold exactly one entry.
    """
    if len(records) != 1:
        raise ExportRecordCountError(len(records))

    record = records[0]
    values = [WellKnownObjectValue.parse(raw) for raw in record.get(ATTRIBUTE)]
    return WellKnownObjectsAudit(dn=record.dn, values=values)


def build_corrective_ldif(audit: WellKnownObjectsAudit) -> Optional[str]:
    """LDIF that replaces the attribute with only the good values.

    Returns None when nothing needs repairing.
    """
    if not audit.needs_repair:
        return None
    return render_modify_record(
        audit.dn,
        ATTRIBUTE,
        [v.raw for v in audit.good_values],
    )


def repair_instructions(import_path: Path) -> List[str]:
    """Guidance printed after writing the corrective import file."""
    return [
        "",
        f"Verify the results in {import_path}. Then run the following command:",
        "",
        f"\tldifde -i -f {import_path}",
        "",
        "Then, run Setup.exe /PrepareAD to recreate the deleted groups.",
        "",
    ]
