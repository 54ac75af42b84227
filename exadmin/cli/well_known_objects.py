#!/usr/bin/env python3
"""
otherWellKnownObjects audit and repair.

Exports otherWellKnownObjects from
CN=Microsoft Exchange,CN=Services,<configuration naming context> with ldifde,
lists values that reference deleted objects and writes a corrective LDIF
import file (ExchangeContainerImport.txt) holding only the good values.

The import is never applied automatically: review it, run
`ldifde -i -f ExchangeContainerImport.txt`, then Setup.exe /PrepareAD.
"""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path

from .config import Config
from .version_check import run_version_check
from ..analysis.well_known_objects import (
    IMPORT_FILE,
    ExportRecordCountError,
    audit_export,
    build_corrective_ldif,
    repair_instructions,
)
from ..collectors.base import CollectorError
from ..collectors.ldifde import ORIGINAL_EXPORT_FILE, LdifdeCollector
from ..data.ldif import LdifParseError, read_ldif_file
from ..data.persistence import OutputStore, get_output_dir


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Find and repair otherWellKnownObjects values that reference deleted objects.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--export-file",
        type=Path,
        help="Use an existing ldifde export instead of running ldifde",
    )
    parser.add_argument(
        "--config-nc",
        help="Configuration naming context (skips root DSE lookup)",
    )
    parser.add_argument("--server", help="Domain controller to export from")
    parser.add_argument("--output-dir", help="Directory for export and import files")
    parser.add_argument("--config", type=str, help="Path to config YAML file")
    parser.add_argument(
        "--skip-version-check",
        action="store_true",
        help="Do not check for a newer release",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = Config.load(args.config)
    if config.source:
        print(f"[config] Loaded {config.source}")

    run_version_check(config, skip=args.skip_version_check)

    store = OutputStore(get_output_dir(args.output_dir or config.output.directory))

    try:
        if args.export_file:
            export_path = store.path_for(ORIGINAL_EXPORT_FILE)
            if args.export_file.resolve() != export_path.resolve():
                shutil.copyfile(args.export_file, export_path)
            records = read_ldif_file(export_path)
        else:
            collector = LdifdeCollector(
                executable=config.directory.ldifde_path,
                server=args.server or config.directory.server,
                timeout=config.directory.timeout,
                work_dir=store.output_dir,
                configuration_nc=args.config_nc,
            )
            records = collector.collect()["records"]

        audit = audit_export(records)
    except (CollectorError, ExportRecordCountError, LdifParseError, OSError) as e:
        sys.stderr.write(f"Error: {e}\n")
        return 3

    print(f"[ldifde] {audit.dn}: {len(audit.values)} otherWellKnownObjects values")

    corrective = build_corrective_ldif(audit)
    if corrective is None:
        print("No bad values found.")
        return 0

    print("Bad values found:")
    for value in audit.bad_values:
        print(value.raw)

    import_path = store.write_ldif(IMPORT_FILE, corrective)
    for line in repair_instructions(import_path):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
