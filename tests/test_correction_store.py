"""Tests for remote-first correction storage."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from jobtaxonomy.corrections import CorrectionStore, RemoteCategoryClient, StoredCorrection
from jobtaxonomy.exceptions import ConfigError, RemoteUpdateError


def _response(status):
    response = MagicMock()
    response.status_code = status
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return response


def _client(session, retries=3):
    return RemoteCategoryClient("https://jobs.example.org/", timeout=2, max_retries=retries,
                                retry_delay=0.01, session=session)


def _correction(job_id="42", category="health-medical"):
    return StoredCorrection(
        job_id=job_id,
        original_category="operations-administration",
        corrected_category=category,
        timestamp="",
    )


class TestRemoteCategoryClient:

    def test_puts_category(self):
        session = MagicMock()
        session.put.return_value = _response(200)

        _client(session).update_category("42", "health-medical", user_id="u1", reason="clinic")

        session.put.assert_called_once_with(
            "https://jobs.example.org/api/jobs/42/category",
            json={"primary_category": "health-medical", "user_id": "u1", "reason": "clinic"},
            timeout=2,
        )

    @patch("jobtaxonomy.corrections.remote.time.sleep")
    def test_retries_server_errors_with_backoff(self, sleep):
        session = MagicMock()
        session.put.side_effect = [_response(503), requests.ConnectionError("down"), _response(200)]

        _client(session).update_category(42, "health-medical")

        assert session.put.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.01, 0.02]

    @patch("jobtaxonomy.corrections.remote.time.sleep")
    def test_gives_up_after_max_retries(self, sleep):
        session = MagicMock()
        session.put.side_effect = requests.Timeout("slow")

        with pytest.raises(RemoteUpdateError, match="after 2 attempts"):
            _client(session, retries=2).update_category(42, "health-medical")

        assert session.put.call_count == 2

    def test_client_error_is_not_retried(self):
        session = MagicMock()
        session.put.return_value = _response(404)

        with pytest.raises(RemoteUpdateError):
            _client(session).update_category(42, "health-medical")

        assert session.put.call_count == 1

    def test_other_request_errors_fail_without_retry(self):
        session = MagicMock()
        session.put.side_effect = requests.TooManyRedirects("loop")

        with pytest.raises(RemoteUpdateError, match="loop"):
            _client(session).update_category(42, "health-medical")

        assert session.put.call_count == 1

    def test_non_numeric_id_fails_without_request(self):
        session = MagicMock()

        with pytest.raises(RemoteUpdateError, match="not numeric"):
            _client(session).update_category("abc-1", "health-medical")

        session.put.assert_not_called()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("JOBTAXONOMY_API_URL", "https://jobs.example.org")
        monkeypatch.setenv("JOBTAXONOMY_API_TIMEOUT", "5")
        monkeypatch.setenv("JOBTAXONOMY_API_RETRIES", "4")

        client = RemoteCategoryClient.from_env()

        assert client.timeout == 5.0
        assert client.max_retries == 4

    def test_from_env_unset_and_invalid(self, monkeypatch):
        monkeypatch.delenv("JOBTAXONOMY_API_URL", raising=False)
        assert RemoteCategoryClient.from_env() is None

        monkeypatch.setenv("JOBTAXONOMY_API_URL", "https://jobs.example.org")
        monkeypatch.setenv("JOBTAXONOMY_API_RETRIES", "many")
        with pytest.raises(ConfigError):
            RemoteCategoryClient.from_env()


class TestCorrectionStore:

    def test_remote_success_skips_local_write(self, db):
        remote = MagicMock()
        store = CorrectionStore(db, remote=remote)

        result = store.save(_correction(), user_id="u1", reason="clinic")

        assert result.remote_ok is True
        assert result.warning is None
        remote.update_category.assert_called_once_with("42", "health-medical", user_id="u1", reason="clinic")
        assert db.execute("SELECT COUNT(*) FROM category_corrections").fetchone()[0] == 0
        assert store.get("42").remote is True

    def test_remote_failure_falls_back_to_sqlite(self, db):
        remote = MagicMock()
        remote.update_category.side_effect = RemoteUpdateError("boom")
        store = CorrectionStore(db, remote=remote)

        result = store.save(_correction(), user_id="u1")

        assert result.used_fallback
        assert "boom" in result.warning
        row = db.execute("SELECT corrected_category, user_id FROM category_corrections").fetchone()
        assert row == ("health-medical", "u1")

    def test_unsendable_request_falls_back_to_sqlite(self, db):
        session = MagicMock()
        session.put.side_effect = requests.TooManyRedirects("loop")
        store = CorrectionStore(db, remote=_client(session))

        result = store.save(_correction(), user_id="u1")

        assert result.used_fallback
        assert "loop" in result.warning
        assert fetch_stored(db) == "health-medical"

    def test_url_without_scheme_falls_back_to_sqlite(self, db):
        store = CorrectionStore(db, remote=RemoteCategoryClient("jobs.example.org"))

        result = store.save(_correction())

        assert result.used_fallback
        assert fetch_stored(db) == "health-medical"

    def test_no_remote_configured(self, db):
        result = CorrectionStore(db).save(_correction())

        assert result.remote_ok is False
        assert "No remote API configured" in result.warning

    def test_session_overrides_stored_rows(self, db):
        CorrectionStore(db).save(_correction(category="health-medical"))

        remote = MagicMock()
        store = CorrectionStore(db, remote=remote)
        store.save(_correction(category="digital-technology"))

        assert store.get_all()["42"].corrected_category == "digital-technology"
        assert fetch_stored(db) == "health-medical"


def fetch_stored(db):
    return db.execute("SELECT corrected_category FROM category_corrections WHERE job_id = '42'").fetchone()[0]
