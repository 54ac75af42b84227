"""Tests for the release check-in."""

import pytest
import requests
from unittest.mock import MagicMock, patch

from exadmin.cli.config import Config
from exadmin.cli.version_check import (
    DEFAULT_CA_BUNDLE,
    USER_AGENT,
    _make_session,
    check_for_update,
    determine_verify,
    is_newer,
    parse_version,
    run_version_check,
)


def _session_returning(payload=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        resp = MagicMock()
        resp.json.return_value = payload
        session.get.return_value = resp
    return session


class TestVersionParsing:
    def test_parse_version(self):
        assert parse_version("v24.1.2") == (24, 1, 2)
        assert parse_version("1.0.0rc1") == (1, 0, 0)
        assert parse_version("") == ()

    def test_is_newer(self):
        assert is_newer("v1.1.0", "1.0.0") is True
        assert is_newer("1.0", "1.0.0") is False
        assert is_newer("0.9.9", "1.0.0") is False
        assert is_newer("1.0.1", "1.0") is True


class TestDetermineVerify:
    def test_insecure(self):
        assert determine_verify(True, "/ca.pem") is False

    def test_ca_bundle(self):
        assert determine_verify(False, "/ca.pem") == "/ca.pem"

    def test_default(self):
        assert determine_verify(False, None) == DEFAULT_CA_BUNDLE


class TestMakeSession:
    def test_headers_and_verify(self):
        session = _make_session(verify="/ca.pem", timeout=5)
        assert session.verify == "/ca.pem"
        assert session.headers["User-Agent"] == USER_AGENT
        assert session.get_adapter("https://example.com").max_retries.total == 3
        session.close()


class TestCheckForUpdate:
    def test_update_available(self):
        session = _session_returning({"tag_name": "v2.0.0", "html_url": "https://example.com/r/2"})
        with patch("exadmin.cli.version_check._make_session", return_value=session):
            result = check_for_update("https://example.com/latest", current="1.0.0")

        assert result.update_available is True
        assert result.latest == "v2.0.0"
        assert result.url == "https://example.com/r/2"
        session.get.assert_called_once_with("https://example.com/latest")
        session.close.assert_called_once()

    def test_up_to_date(self):
        session = _session_returning({"tag_name": "1.0.0"})
        with patch("exadmin.cli.version_check._make_session", return_value=session):
            result = check_for_update("https://example.com/latest", current="1.0.0")
        assert result.update_available is False

    def test_missing_tag(self):
        session = _session_returning({"message": "Not Found"})
        with patch("exadmin.cli.version_check._make_session", return_value=session):
            with pytest.raises(ValueError):
                check_for_update("https://example.com/latest")


class TestRunVersionCheck:
    def _config(self, **vc):
        data = {"version_check": {"url": "https://example.com/latest", **vc}}
        return Config.from_dict(data)

    def test_skipped(self):
        with patch("exadmin.cli.version_check.check_for_update") as mock_check:
            assert run_version_check(self._config(), skip=True) is None
            mock_check.assert_not_called()

    def test_disabled(self):
        with patch("exadmin.cli.version_check.check_for_update") as mock_check:
            assert run_version_check(self._config(enabled=False)) is None
            mock_check.assert_not_called()

    def test_no_url(self):
        with patch("exadmin.cli.version_check.check_for_update") as mock_check:
            assert run_version_check(Config()) is None
            mock_check.assert_not_called()

    def test_reports_update(self, capsys):
        session = _session_returning({"tag_name": "v99.0.0"})
        with patch("exadmin.cli.version_check._make_session", return_value=session):
            result = run_version_check(self._config())

        assert result.update_available is True
        assert "A newer version is available: v99.0.0" in capsys.readouterr().out

    def test_network_failure_is_reported(self, capsys):
        session = _session_returning(error=requests.ConnectionError("unreachable"))
        with patch("exadmin.cli.version_check._make_session", return_value=session):
            assert run_version_check(self._config()) is None

        assert "[version] Unable to check for updates" in capsys.readouterr().out
