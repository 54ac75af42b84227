"""Tests for otherWellKnownObjects audit and repair."""

import pytest

from exadmin.analysis.well_known_objects import (
    ExportRecordCountError,
    audit_export,
    build_corrective_ldif,
    repair_instructions,
)
from exadmin.data.ldif import LdifRecord, parse_ldif, read_ldif_file
from exadmin.data.persistence import OutputStore
from exadmin.data.models import WellKnownObjectValue


class TestWellKnownObjectValue:
    def test_parse_dn_binary(self):
        value = WellKnownObjectValue.parse(
            "B:32:A1B2C3D4E5F60718293A4B5C6D7E8F90:CN=Exchange Servers,OU=Microsoft Exchange Security Groups,DC=contoso,DC=com"
        )
        assert value.length == 32
        assert value.guid_hex == "A1B2C3D4E5F60718293A4B5C6D7E8F90"
        assert value.dn.startswith("CN=Exchange Servers,")
        assert value.common_name == "Exchange Servers"
        assert value.is_deleted is False

    def test_deleted_reference(self):
        value = WellKnownObjectValue.parse(
            r"B:32:E5F8B3B0F5C9A04E9D4A0D5B6C7D8E9F:CN=Exchange Trusted Subsystem\0ADEL:6a1b2c3d,CN=Deleted Objects,DC=contoso,DC=com"
        )
        assert value.is_deleted is True
        assert value.common_name == "Exchange Trusted Subsystem"

    def test_deleted_check_is_case_insensitive(self):
        value = WellKnownObjectValue.parse("B:32:00:CN=x,cn=deleted objects,DC=contoso,DC=com")
        assert value.is_deleted is True

    def test_unstructured_value(self):
        value = WellKnownObjectValue.parse("not a dn binary")
        assert value.length is None
        assert value.dn == "not a dn binary"


class TestAuditExport:
    def test_finds_bad_values(self, sample_ldif_export):
        audit = audit_export(parse_ldif(sample_ldif_export))

        assert audit.needs_repair is True
        assert len(audit.values) == 4
        assert [v.common_name for v in audit.bad_values] == [
            "Exchange Trusted Subsystem",
            "Exchange Windows Permissions",
        ]
        assert [v.common_name for v in audit.good_values] == [
            "Organization Management",
            "Exchange Servers",
        ]

    def test_zero_records(self):
        with pytest.raises(ExportRecordCountError) as exc:
            audit_export([])
        assert exc.value.count == 0
        assert "Failed to export" in str(exc.value)

    def test_more_than_one_record(self):
        with pytest.raises(ExportRecordCountError) as exc:
            audit_export([LdifRecord(dn="CN=a"), LdifRecord(dn="CN=b")])
        assert "Unexpected LDIF data" in str(exc.value)

    def test_record_without_attribute(self):
        audit = audit_export([LdifRecord(dn="CN=a")])
        assert audit.values == []
        assert audit.needs_repair is False


class TestCorrectiveLdif:
    def test_corrective_file_keeps_good_values_in_order(self, sample_ldif_export):
        audit = audit_export(parse_ldif(sample_ldif_export))
        text = build_corrective_ldif(audit)

        lines = text.splitlines()
        assert lines[0] == "dn: CN=Microsoft Exchange,CN=Services,CN=Configuration,DC=contoso,DC=com"
        assert lines[1] == "changeType: modify"
        assert lines[2] == "replace: otherWellKnownObjects"
        assert "Organization Management" in lines[3]
        assert "Exchange Servers" in lines[4]
        assert lines[5] == "-"
        assert "Deleted Objects" not in text

    def test_clean_export_yields_nothing(self, clean_ldif_export):
        audit = audit_export(parse_ldif(clean_ldif_export))
        assert build_corrective_ldif(audit) is None

    def test_repair_is_idempotent(self, sample_ldif_export):
        first = audit_export(parse_ldif(sample_ldif_export))
        corrective = build_corrective_ldif(first)

        second = audit_export(parse_ldif(corrective))
        assert [v.raw for v in second.values] == [v.raw for v in first.good_values]
        assert build_corrective_ldif(second) is None

    def test_deterministic(self, sample_ldif_export):
        a = build_corrective_ldif(audit_export(parse_ldif(sample_ldif_export)))
        b = build_corrective_ldif(audit_export(parse_ldif(sample_ldif_export)))
        assert a == b

    def test_all_values_bad(self):
        record = LdifRecord(dn="CN=a")
        record.add("otherWellKnownObjects", "B:32:00:CN=x,CN=Deleted Objects,DC=contoso,DC=com")
        text = build_corrective_ldif(audit_export([record]))
        assert text == "dn: CN=a\nchangeType: modify\nreplace: otherWellKnownObjects\n-\n\n"

    def test_import_file_reads_back(self, tmp_path, sample_ldif_export):
        audit = audit_export(parse_ldif(sample_ldif_export))
        path = OutputStore(tmp_path).write_ldif("ExchangeContainerImport.txt", build_corrective_ldif(audit))

        reread = audit_export(read_ldif_file(path))
        assert reread.dn == audit.dn
        assert [v.raw for v in reread.values] == [v.raw for v in audit.good_values]
        assert not reread.needs_repair

    def test_cleared_attribute_reads_back(self):
        record = LdifRecord(dn="CN=a")
        record.add("otherWellKnownObjects", "B:32:00:CN=x,CN=Deleted Objects,DC=contoso,DC=com")
        reread = audit_export(parse_ldif(build_corrective_ldif(audit_export([record]))))
        assert reread.values == []


class TestRepairInstructions:
    def test_mentions_import_and_prepare_ad(self, tmp_path):
        lines = repair_instructions(tmp_path / "ExchangeContainerImport.txt")
        text = "\n".join(lines)
        assert "ldifde -i -f" in text
        assert "Setup.exe /PrepareAD" in text
