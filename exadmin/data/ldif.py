"""LDIF (directory-interchange format) reading and writing.

Covers the subset produced and consumed by ``ldifde``:

1. Records separated by blank lines, the first attribute of each being ``dn``
2. Folded lines (a leading single space continues the previous line)
3. ``#`` comments and an optional leading ``version:`` line
4. ``name: value``, ``name:: base64`` and ``name:< url`` attribute forms
5. ``-`` lines closing the blocks of a ``changeType: modify`` record

Exports written by ``ldifde`` on Windows may carry a BOM, CRLF line endings,
or be UTF-16 encoded when they have been round-tripped through PowerShell.
"""

from __future__ import annotations

import base64
import codecs
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple


class LdifParseError(ValueError):
    """Raised when LDIF text cannot be parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


@dataclass
class LdifRecord:
    """One directory entry from an LDIF file.

    Attribute names keep the spelling of their first occurrence; lookups are
    case-insensitive, as attribute names are in the directory.
    """

    dn: str
    attributes: Dict[str, List[str]] = field(default_factory=dict)

    def _key(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key in self.attributes:
            if key.lower() == lowered:
                return key
        return None

    def add(self, name: str, value: str) -> None:
        key = self._key(name) or name
        self.attributes.setdefault(key, []).append(value)

    def get(self, name: str) -> List[str]:
        """All values of an attribute (empty list when absent)."""
        key = self._key(name)
        return list(self.attributes[key]) if key else []

    def first(self, name: str) -> Optional[str]:
        values = self.get(name)
        return values[0] if values else None

    def __contains__(self, name: str) -> bool:
        return self._key(name) is not None


# =============================================================================
# Parsing
# =============================================================================


def _unfold(text: str) -> Iterator[Tuple[int, str]]:
    """Yield (line_number, logical_line) with continuations joined.

    Blank lines are yielded as empty strings so callers can split records.
    """
    current: Optional[str] = None
    start = 0

    for number, line in enumerate(text.splitlines(), start=1):
        if line.startswith(" ") and current is not None:
            current += line[1:]
            continue
        if current is not None:
            yield start, current
        current = line
        start = number

    if current is not None:
        yield start, current


def _parse_attribute(line: str, line_number: int) -> Tuple[str, str]:
    """Split one logical line into (name, value)."""
    colon = line.find(":")
    if colon <= 0:
        raise LdifParseError(f"expected 'name: value', got {line[:40]!r}", line_number)

    name = line[:colon].strip()
    rest = line[colon + 1:]

    if rest.startswith(":"):
        encoded = rest[1:].strip()
        try:
            value = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise LdifParseError(f"invalid base64 value for {name!r}: {e}", line_number)
        return name, value

    if rest.startswith("<"):
        return name, rest[1:].strip()

    return name, rest.lstrip(" ")


def parse_ldif(text: str) -> List[LdifRecord]:
    """Parse LDIF text into a list of records.

    Raises:
        LdifParseError: If a record does not start with ``dn`` or a line is malformed.
    """
    records: List[LdifRecord] = []
    current: Optional[LdifRecord] = None
    seen_content = False

    for line_number, line in _unfold(text.lstrip("\ufeff")):
        if not line.strip():
            current = None
            continue
        if line.startswith("#"):
            continue
        if line.strip() == "-" and current is not None:
            # end of a changeType: modify block
            continue

        name, value = _parse_attribute(line, line_number)

        if current is None:
            if not seen_content and not records and name.lower() == "version":
                seen_content = True
                continue
            if name.lower() != "dn":
                raise LdifParseError(f"record must start with 'dn', got {name!r}", line_number)
            current = LdifRecord(dn=value)
            records.append(current)
            seen_content = True
            continue

        current.add(name, value)

    return records


def read_ldif_file(path: Path) -> List[LdifRecord]:
    """Read and parse an LDIF file, handling UTF-8 and UTF-16 encodings."""
    raw = Path(path).read_bytes()
    if raw.startswith(codecs.BOM_UTF16_LE) or raw.startswith(codecs.BOM_UTF16_BE):
        text = raw.decode("utf-16")
    else:
        text = raw.decode("utf-8-sig")
    return parse_ldif(text)


# =============================================================================
# Rendering
# =============================================================================

_UNSAFE_INIT = {"\0", "\n", "\r", " ", ":", "<"}


def _is_safe_string(value: str) -> bool:
    if not value:
        return True
    if value[0] in _UNSAFE_INIT or value.endswith(" "):
        return False
    return all(0 < ord(ch) < 128 and ch not in "\n\r" for ch in value)


def render_attribute(name: str, value: str) -> str:
    """Render one ``name: value`` line, base64-encoding unsafe values."""
    if _is_safe_string(value):
        return f"{name}: {value}"
    encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
    return f"{name}:: {encoded}"


def render_modify_record(
    dn: str,
    attribute: str,
    values: Iterable[str],
    operation: str = "replace",
) -> str:
    """Render a ``changeType: modify`` record for a single attribute.

    With ``replace`` and no values the attribute is cleared on import.
    """
    lines = [
        render_attribute("dn", dn),
        "changeType: modify",
        f"{operation}: {attribute}",
    ]
    lines.extend(render_attribute(attribute, value) for value in values)
    lines.append("-")
    lines.append("")
    return "\n".join(lines) + "\n"
