"""Tests for the classification and feedback orchestrators."""

import csv
import json
from unittest.mock import MagicMock

import pytest

from storage import get_job, get_latest_classification, init_db, insert_job_if_new
from jobtaxonomy.classify import CLASSIFIER_VERSION, JobClassifier, mitigate_formula_injection
from jobtaxonomy.corrections import CorrectionStore
from jobtaxonomy.exceptions import UnknownCategoryError
from jobtaxonomy.learning import ActionType, FeedbackRecorder, LearningEngine


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "jobs.sqlite3")
    conn = init_db(path)
    for job in [
        {"id": "1", "title": "Software Developer", "description": "database work"},
        {"id": "2", "title": "Officer", "job_labels": "finance"},
        {"id": "3", "title": "Gardener"},
    ]:
        insert_job_if_new(conn, job)
    conn.close()
    return path


class TestJobClassifier:

    def test_classify_batch(self, db_path, small_store):
        classifier = JobClassifier(db_path, small_store)
        classifier.connect()

        results = classifier.classify_batch()

        assert results["processed"] == 3
        assert results["errors"] == 0
        assert results["fallback"] == 1
        assert results["needs_review"] == 2
        assert results["by_category"] == {"digital-technology": 1, "operations-administration": 2}

        job = get_job(classifier.conn, "1")
        assert job["primary_category"] == "digital-technology"
        assert job["classification_confidence"] == 100
        assert get_latest_classification(classifier.conn, "1")["primary"] == "digital-technology"

        # Already classified jobs are skipped
        assert classifier.classify_batch()["processed"] == 0
        classifier.disconnect()

    def test_dry_run_writes_nothing(self, db_path, small_store):
        classifier = JobClassifier(db_path, small_store)
        classifier.connect()

        classifier.classify_batch(dry_run=True)

        assert get_job(classifier.conn, "1")["processed_status"] == "pending"
        classifier.disconnect()

    def test_review_export(self, db_path, small_store, tmp_path):
        classifier = JobClassifier(db_path, small_store)
        classifier.connect()
        classifier.classify_batch()

        path = classifier.export_review_to_csv(str(tmp_path / "review"))

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert {r["job_id"] for r in rows} == {"2", "3"}
        assert rows[0]["confidence"] == "0"
        classifier.disconnect()

    def test_formula_injection(self):
        assert mitigate_formula_injection("=SUM(A1)") == "'=SUM(A1)"
        assert mitigate_formula_injection("Janitor") == "Janitor"
        assert mitigate_formula_injection("") == ""

    def test_version_recorded(self, db_path, small_store):
        classifier = JobClassifier(db_path, small_store)
        classifier.connect()
        classifier.classify_batch(limit=1)

        row = classifier.conn.execute("SELECT classifier_version FROM job_classifications").fetchone()
        assert row[0] == CLASSIFIER_VERSION
        classifier.disconnect()


class TestFeedbackRecorder:

    @pytest.fixture
    def conn(self, db_path):
        conn = init_db(db_path)
        yield conn
        conn.close()

    def test_correction_uses_stored_classification(self, conn, small_store):
        classifier = JobClassifier(":memory:", small_store)
        classifier.conn = conn
        classifier.classify_batch()

        engine = LearningEngine(small_store, conn=conn)
        recorder = FeedbackRecorder(conn, engine, CorrectionStore(conn))

        actions = recorder.submit("3", "facilities-services", user_id="u1", reason="grounds keeping")

        assert len(actions) == 1
        assert actions[0].type == ActionType.PATTERN_RECOGNITION
        feedback = engine.export_state()["feedback"][0]
        assert feedback["original_classification"]["primary"] == "operations-administration"
        assert feedback["user_correction"]["corrected_primary"] == "facilities-services"
        row = conn.execute("SELECT corrected_category, user_id FROM category_corrections").fetchone()
        assert row == ("facilities-services", "u1")

    def test_confirmation_without_stored_classification(self, conn, small_store):
        engine = LearningEngine(small_store)
        remote = MagicMock()
        recorder = FeedbackRecorder(conn, engine, CorrectionStore(conn, remote=remote))

        actions = recorder.submit("1", "digital-technology")

        assert actions[0].type == ActionType.POSITIVE_REINFORCEMENT
        assert set(actions[0].details.reinforced_keywords) == {"software", "database"}
        remote.update_category.assert_called_once()

    def test_unknown_job_and_category(self, conn, small_store):
        recorder = FeedbackRecorder(conn, LearningEngine(small_store), CorrectionStore(conn))

        with pytest.raises(KeyError):
            recorder.submit("999", "digital-technology")
        with pytest.raises(UnknownCategoryError):
            recorder.submit("1", "space-exploration")


class TestCli:

    def test_ingest_then_classify(self, tmp_path, monkeypatch):
        from jobtaxonomy import cli

        jobs = tmp_path / "jobs.jsonl"
        jobs.write_text(
            json.dumps({"id": 1, "title": "Software Developer"}) + "\n"
            + json.dumps({"id": 2, "title": "Epidemiologist", "agency": "WHO"}) + "\n"
            + "not json\n",
            encoding="utf-8",
        )
        db = str(tmp_path / "db" / "jobs.sqlite3")

        monkeypatch.setattr("sys.argv", ["jobtaxonomy", "ingest", "--input", str(jobs), "--db", db])
        assert cli.main() == 0

        monkeypatch.setattr("sys.argv", [
            "jobtaxonomy", "classify", "--db", db, "--export-dir", str(tmp_path / "review"),
        ])
        assert cli.main() == 0

        conn = init_db(db)
        assert get_job(conn, "2")["primary_category"] == "health-medical"
        conn.close()

    def test_reset_requires_yes(self, tmp_path, monkeypatch):
        from jobtaxonomy import cli

        monkeypatch.setattr("sys.argv", ["jobtaxonomy", "reset-learning", "--db", str(tmp_path / "x.sqlite3")])
        assert cli.main() == 1
