"""Tests for learning report export."""

import csv
import json

from jobtaxonomy.learning import LearningEngine
from jobtaxonomy.reports import flatten_insights, flatten_stats, write_report_csv, write_report_json


def _trained_engine(small_store, cleaning_feedback):
    engine = LearningEngine(small_store)
    for feedback in cleaning_feedback:
        engine.process_feedback(feedback)
    return engine


class TestReports:

    def test_flatten_stats(self, small_store, cleaning_feedback):
        engine = _trained_engine(small_store, cleaning_feedback)

        rows = flatten_stats(engine.get_stats())
        values = {r["name"]: r["value"] for r in rows if r["section"] == "stats"}

        assert values["total_feedback"] == 4
        assert values["auto_applied_updates"] == 1
        assert sum(1 for r in rows if r["section"] == "recent_action") == 4

    def test_flatten_insights(self, small_store, cleaning_feedback):
        engine = _trained_engine(small_store, cleaning_feedback)

        rows = flatten_insights(engine.get_learning_insights())

        applied = [r for r in rows if r["section"] == "applied_update"]
        assert applied == [{
            "section": "applied_update",
            "name": "facilities-services",
            "value": applied[0]["value"],
            "detail": "cleaning services",
        }]
        assert any(r["section"] == "misclassification" for r in rows)

    def test_write_csv(self, small_store, cleaning_feedback, tmp_path):
        engine = _trained_engine(small_store, cleaning_feedback)
        rows = flatten_stats(engine.get_stats()) + [
            {"section": "issue", "name": "", "value": "", "detail": "=cmd()"},
        ]

        path = write_report_csv(rows, str(tmp_path / "reports"))

        with open(path, newline="", encoding="utf-8") as f:
            written = list(csv.DictReader(f))
        assert written[0]["name"] == "total_feedback"
        assert written[-1]["detail"] == "'=cmd()"

    def test_write_json(self, small_store, cleaning_feedback, tmp_path):
        engine = _trained_engine(small_store, cleaning_feedback)

        path = write_report_json(engine.get_stats(), engine.get_learning_insights(), str(tmp_path))

        with open(path, encoding="utf-8") as f:
            report = json.load(f)
        assert report["stats"]["total_feedback"] == 4
        assert report["stats"]["recent_actions"][-1]["type"] == "category_update"
        assert report["insights"]["applied_updates"][0]["new_support_keywords"] == ["cleaning services"]
