"""ldifde directory export collector.

Exports directory attributes with the ldifde utility and parses the result.
Used to read otherWellKnownObjects from the Exchange services container.
"""

from __future__ import annotations

import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..data.ldif import LdifParseError, LdifRecord, read_ldif_file
from .base import BaseCollector, CollectorError

EXCHANGE_CONTAINER_RDN = "CN=Microsoft Exchange,CN=Services"
WELL_KNOWN_OBJECTS_ATTRIBUTE = "otherWellKnownObjects"
ORIGINAL_EXPORT_FILE = "ExchangeContainerOriginal.txt"
ROOT_DSE_EXPORT_FILE = "RootDSE.txt"


def exchange_container_dn(configuration_nc: str) -> str:
    """DN of the Exchange services container for a configuration naming context."""
    return f"{EXCHANGE_CONTAINER_RDN},{configuration_nc.strip()}"


class LdifdeCollector(BaseCollector):
    """Collector for directory exports.

    Uses `ldifde -d <dn> -p <scope> -l <attributes> -f <file>` to export.
    """

    def __init__(
        self,
        executable: str = "ldifde",
        server: Optional[str] = None,
        timeout: int = 60,
        work_dir: Optional[Path] = None,
        configuration_nc: Optional[str] = None,
    ):
        self.executable = executable
        self.server = server
        self.timeout = timeout
        self.work_dir = Path(work_dir) if work_dir else Path.cwd()
        self.configuration_nc = configuration_nc

    @property
    def name(self) -> str:
        return "ldifde"

    @property
    def display_name(self) -> str:
        return "Directory Export"

    def is_available(self) -> bool:
        """Check if ldifde is on PATH or at the configured location."""
        if shutil.which(self.executable):
            return True
        return Path(self.executable).is_file()

    def collect(self) -> Dict[str, Any]:
        """Export otherWellKnownObjects of the Exchange container.

        Returns:
            Dictionary with 'meta', 'export_file' and 'records'.

        Raises:
            CollectorError: If the export fails.
        """
        configuration_nc = self.configuration_nc or self.get_configuration_naming_context()
        dn = exchange_container_dn(configuration_nc)
        export_file = self.export(
            dn,
            [WELL_KNOWN_OBJECTS_ATTRIBUTE],
            self.work_dir / ORIGINAL_EXPORT_FILE,
        )
        records = self._read_export(export_file)

        return {
            "meta": {
                "generated_at": datetime.utcnow().isoformat() + "Z",
                "collector": self.name,
                "dn": dn,
                "server": self.server,
                "record_count": len(records),
            },
            "export_file": str(export_file),
            "records": records,
        }

    def build_command(
        self,
        dn: str,
        attributes: Sequence[str],
        output_file: Path,
        scope: str = "Base",
    ) -> List[str]:
        cmd = [
            self.executable,
            "-d",
            dn,
            "-p",
            scope,
            "-l",
            ",".join(attributes),
            "-f",
            str(output_file),
        ]
        if self.server:
            cmd.extend(["-s", self.server])
        return cmd

    def export(
        self,
        dn: str,
        attributes: Sequence[str],
        output_file: Path,
        scope: str = "Base",
    ) -> Path:
        """Run ldifde to export attributes of the objects under dn.

        Raises:
            CollectorError: If ldifde is missing, fails, times out, or writes no file.
        """
        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(dn, attributes, output_file, scope)

        print(f"[ldifde] Exporting {','.join(attributes)} from {dn or '(root DSE)'}")
        try:
            subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CollectorError(self.name, f"{self.executable} not found", e)
        except subprocess.CalledProcessError as e:
            detail = (e.stdout or "").strip() or (e.stderr or "").strip()
            raise CollectorError(self.name, f"Export of {dn!r} failed (exit {e.returncode}): {detail}", e)
        except subprocess.TimeoutExpired as e:
            raise CollectorError(self.name, f"Timeout exporting {dn!r}", e)

        if not output_file.exists():
            raise CollectorError(self.name, f"Export did not create {output_file}")
        return output_file

    def get_configuration_naming_context(self) -> str:
        """Read configurationNamingContext from the root DSE.

        Raises:
            CollectorError: If the root DSE export fails or lacks the attribute.
        """
        export_file = self.export(
            "",
            ["configurationNamingContext"],
            self.work_dir / ROOT_DSE_EXPORT_FILE,
        )
        for record in self._read_export(export_file):
            value = record.first("configurationNamingContext")
            if value:
                print(f"[ldifde] Configuration naming context: {value}")
                return value
        raise CollectorError(self.name, "configurationNamingContext not found in root DSE export")

    def _read_export(self, path: Path) -> List[LdifRecord]:
        try:
            return read_ldif_file(path)
        except (LdifParseError, UnicodeDecodeError) as e:
            raise CollectorError(self.name, f"Could not parse {path}: {e}", e)
