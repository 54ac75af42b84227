"""Output persistence for script artifacts.

Writes the files the scripts leave behind for the administrator:
- LDIF exports and corrective import files
- CSV exports of calendar diagnostic logs
- Plain-text timelines

Files go to the directory given on the command line or in the config, then
EXADMIN_OUTPUT_DIR, then the current directory.
"""

from __future__ import annotations

import csv
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def get_output_dir(override: Optional[str] = None) -> Path:
    """Get the output directory, creating it if it doesn't exist."""
    if override:
        output_dir = Path(override)
    else:
        output_dir = Path(os.environ.get("EXADMIN_OUTPUT_DIR", Path.cwd()))

    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def safe_filename(text: str, max_length: int = 80) -> str:
    """Replace characters that are unsafe in file names with underscores."""
    cleaned = _UNSAFE_FILENAME_RE.sub("_", text or "").strip("_")
    return cleaned[:max_length] or "unnamed"


class OutputStore:
    """Writes script output files into one directory."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir) if output_dir else get_output_dir()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.output_dir / name

    # --- LDIF ---

    def write_ldif(self, name: str, text: str) -> Path:
        """Write LDIF text (ldifde reads UTF-8 and plain ASCII)."""
        path = self.path_for(name)
        path.write_text(text, encoding="utf-8")
        return path

    # --- Text ---

    def write_text(self, name: str, lines: Iterable[str]) -> Path:
        path = self.path_for(name)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    # --- CSV ---

    def write_csv(
        self,
        name: str,
        rows: Iterable[Dict[str, Any]],
        fieldnames: Sequence[str],
    ) -> Path:
        """Write rows to a CSV file with a header row.

        Keys not listed in fieldnames are ignored.
        """
        path = self.path_for(name)
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=list(fieldnames), extrasaction="ignore")
            w.writeheader()
            for r in rows:
                w.writerow(r)
        return path

    def list_files(self, pattern: str = "*") -> List[str]:
        return sorted(p.name for p in self.output_dir.glob(pattern) if p.is_file())

    # --- Naming ---

    @staticmethod
    def calendar_file_stem(identity: str, meeting_key: str) -> str:
        """File stem for a mailbox/meeting pair: <alias>_<meeting>."""
        alias = (identity or "").split("@", 1)[0]
        return f"{safe_filename(alias)}_{safe_filename(meeting_key)}"
