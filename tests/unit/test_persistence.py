"""Tests for output persistence."""

import csv
import pytest
from pathlib import Path

from exadmin.data.persistence import OutputStore, get_output_dir, safe_filename


class TestOutputStore:
    def test_init_creates_directory(self, temp_output_dir):
        target = temp_output_dir / "nested" / "out"
        store = OutputStore(target)
        assert target.is_dir()
        assert store.output_dir == target

    def test_write_ldif(self, temp_output_dir):
        store = OutputStore(temp_output_dir)
        path = store.write_ldif("import.txt", "dn: CN=x\nchangeType: modify\n")

        assert path == temp_output_dir / "import.txt"
        assert path.read_text(encoding="utf-8").startswith("dn: CN=x")

    def test_write_text(self, temp_output_dir):
        store = OutputStore(temp_output_dir)
        path = store.write_text("timeline.txt", ["first", "second"])
        assert path.read_text(encoding="utf-8") == "first\nsecond\n"

    def test_write_csv_ignores_extra_keys(self, temp_output_dir):
        store = OutputStore(temp_output_dir)
        rows = [{"A": 1, "B": "two", "Extra": "x"}, {"A": 3}]
        path = store.write_csv("rows.csv", rows, ["A", "B"])

        with open(path, newline="", encoding="utf-8") as f:
            data = list(csv.DictReader(f))
        assert data == [{"A": "1", "B": "two"}, {"A": "3", "B": ""}]

    def test_list_files(self, temp_output_dir):
        store = OutputStore(temp_output_dir)
        store.write_text("b.txt", ["b"])
        store.write_text("a.txt", ["a"])
        store.write_csv("c.csv", [], ["A"])

        assert store.list_files() == ["a.txt", "b.txt", "c.csv"]
        assert store.list_files("*.csv") == ["c.csv"]

    def test_calendar_file_stem(self):
        stem = OutputStore.calendar_file_stem("jsmith@contoso.com", "0400AB/CD")
        assert stem == "jsmith_0400AB_CD"


class TestSafeFilename:
    def test_replaces_unsafe_characters(self):
        assert safe_filename("Project Sync: Q1/Q2") == "Project_Sync_Q1_Q2"

    def test_empty(self):
        assert safe_filename("") == "unnamed"
        assert safe_filename("///") == "unnamed"

    def test_truncates(self):
        assert len(safe_filename("x" * 200)) == 80


class TestGetOutputDir:
    def test_override(self, tmp_path):
        target = tmp_path / "override"
        assert get_output_dir(str(target)) == target
        assert target.is_dir()

    def test_env_var(self, tmp_path, monkeypatch):
        target = tmp_path / "from_env"
        monkeypatch.setenv("EXADMIN_OUTPUT_DIR", str(target))
        assert get_output_dir() == target
        assert target.is_dir()

    def test_defaults_to_cwd(self, tmp_path, monkeypatch):
        monkeypatch.delenv("EXADMIN_OUTPUT_DIR", raising=False)
        monkeypatch.chdir(tmp_path)
        assert get_output_dir() == tmp_path
