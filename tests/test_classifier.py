"""Tests for the rule-based job classifier."""

import pytest

from jobtaxonomy.classify import (
    JobPosting,
    classify,
    contains_keyword,
    detect_emerging_terms,
    find_keywords,
)
from jobtaxonomy.classify.rules import to_confidence
from jobtaxonomy.config import ClassifierConfig


class TestKeywordMatching:
    """Word-boundary keyword matching."""

    def test_whole_word_only(self):
        assert contains_keyword("machine learning engineer", "machine learning")
        assert not contains_keyword("maintain the website", "ai")
        assert contains_keyword("ai specialist", "ai")

    def test_find_keywords_keeps_order(self):
        assert find_keywords("Database and Software", ["software", "api", "database"]) == [
            "software", "database",
        ]

    def test_to_confidence_rounds_half_up_and_caps(self):
        assert to_confidence(37.5) == 38
        assert to_confidence(0) == 0
        assert to_confidence(420) == 100


class TestScoring:
    """Field and tier weights against a small taxonomy."""

    def test_title_core_keyword(self, small_store):
        result = classify({"title": "Software Developer", "description": "Build database tools"}, small_store)

        assert result.primary == "digital-technology"
        assert result.confidence == 100
        assert result.reasoning[0] == "Title core keyword 'software' (+150)"
        assert "Description support keyword 'database' (+3)" in result.reasoning
        assert result.matched_keywords == ("software", "database")

    def test_label_only_match_is_low_confidence(self, small_store):
        result = classify(JobPosting(title="Officer", job_labels="Finance, Travel"), small_store)

        assert result.primary == "operations-administration"
        assert result.confidence == 30
        assert result.flags.low_confidence is True
        assert result.needs_review()

    def test_context_pair_bonus(self, small_store):
        result = classify({"description": "We apply machine learning daily"}, small_store)

        assert result.primary == "digital-technology"
        assert result.confidence == 12
        assert result.reasoning == ("Context pair 'machine + learning' (+12)",)

    def test_secondary_ranked_by_score(self, small_store):
        result = classify({"title": "Software Developer", "description": "finance reports"}, small_store)

        assert result.secondary[0] == ("operations-administration", 6)
        assert result.secondary[1] == ("facilities-services", 0)

    def test_tie_breaks_by_declaration_order(self, small_store):
        result = classify({"title": "Janitor Software"}, small_store)

        assert result.primary == "facilities-services"
        assert result.flags.ambiguous is True
        assert any(r.startswith("Ambiguous: close to digital-technology") for r in result.reasoning)

    def test_deterministic(self, small_store):
        job = {"title": "Software Janitor", "description": "database maintenance"}

        assert classify(job, small_store) == classify(job, small_store)

    def test_custom_weights(self, small_store):
        config = ClassifierConfig(title_weight=10)

        result = classify({"title": "Software"}, small_store, config)

        assert result.confidence == 60


class TestFallback:
    """Jobs with no usable signal."""

    def test_empty_job(self, small_store):
        result = classify(JobPosting(), small_store)

        assert result.primary == "operations-administration"
        assert result.confidence == 0
        assert result.flags.low_confidence is True
        assert result.reasoning == ("No text to classify; defaulting to operations-administration",)
        assert {c for c, _ in result.secondary} == {"facilities-services", "digital-technology"}

    def test_no_keywords_matched(self, small_store):
        result = classify({"title": "Gardener"}, small_store)

        assert result.primary == "operations-administration"
        assert result.confidence == 0
        assert result.reasoning[0].startswith("No category keywords matched")


class TestEmergingTerms:
    """Unknown frequent terms."""

    def test_emerging_terms_in_job(self, small_store):
        result = classify({
            "title": "Software",
            "description": "blorptech blorptech zanqua zanqua zanqua with with",
        }, small_store)

        assert result.flags.emerging_terms == ("zanqua", "blorptech")

    def test_batch_detection(self, small_store):
        jobs = [{"description": "quantum widget"}, {"description": "quantum widget"},
                {"description": "quantum"}, {"description": "software"}]

        assert detect_emerging_terms(jobs, small_store) == [("quantum", 3)]


class TestSeedTaxonomy:
    """End-to-end behaviour with the bundled seed."""

    def test_digital_health_hybrid(self, seed_store):
        result = classify({
            "title": "Software Engineer - Digital Health Platform",
            "description": "Build machine learning models over electronic health records.",
        }, seed_store)

        assert result.primary == "digital-technology"
        assert result.flags.hybrid_candidate is True
        assert result.hybrid_pattern == "Digital Health"
        assert dict(result.secondary)["health-medical"] > 40

    def test_leadership_grade_override(self, seed_store):
        result = classify({"title": "Programme Officer", "grade": "D1"}, seed_store)

        assert result.primary == "leadership-executive"
        assert result.confidence == 95
        assert result.reasoning[0] == "Leadership override: grade D1"

    def test_leadership_title_override_without_grade(self, seed_store):
        result = classify({"title": "Resident Coordinator"}, seed_store)

        assert result.primary == "leadership-executive"
        assert result.reasoning[0] == "Leadership override: title contains 'resident coordinator'"

    def test_service_contract_grade_never_leadership(self, seed_store):
        result = classify({"title": "Software Developer", "grade": "NPSA-10"}, seed_store)

        assert result.primary == "digital-technology"

    @pytest.mark.parametrize("grade, expected", [
        ("P5", True), ("P-4", False), ("ASG", True), ("D2", True),
        ("NPSA-9", False), ("UNV", False), ("", False),
    ])
    def test_leadership_grades(self, bundled_seed, grade, expected):
        assert bundled_seed.leadership.is_leadership_grade(grade) is expected

    def test_agency_boost(self, seed_store):
        result = classify({"description": "patient", "agency": "WHO"}, seed_store)

        assert result.primary == "health-medical"
        assert "Agency context 'WHO' (+20)" in result.reasoning
