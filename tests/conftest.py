"""Shared fixtures for the job taxonomy tests."""

import pytest

from storage import init_db
from jobtaxonomy.learning.models import JobFeedback, OriginalClassification, UserCorrection
from jobtaxonomy.taxonomy import TaxonomyStore, load_seed, parse_taxonomy


SMALL_TAXONOMY = {
    "fallback_category": "operations-administration",
    "categories": [
        {
            "id": "facilities-services",
            "name": "Facilities & Services",
            "core_keywords": ["janitor"],
            "support_keywords": ["maintenance"],
            "last_updated": "2024-01-01",
        },
        {
            "id": "digital-technology",
            "name": "Digital & Technology",
            "core_keywords": ["software"],
            "support_keywords": ["database"],
            "context_pairs": [["machine", "learning"]],
            "last_updated": "2024-01-01",
        },
        {
            "id": "operations-administration",
            "name": "Operations & Administration",
            "core_keywords": ["finance"],
            "support_keywords": ["procurement"],
            "last_updated": "2024-01-01",
        },
    ],
    "stop_words": ["with", "will", "experience"],
    "forbidden_learning_keywords": ["management", "support", "coordination"],
    "legacy_aliases": {"facilities": "facilities-services"},
}


@pytest.fixture
def small_seed():
    """A three-category taxonomy with predictable scores."""
    return parse_taxonomy(SMALL_TAXONOMY)


@pytest.fixture
def small_store(small_seed):
    return TaxonomyStore(small_seed)


@pytest.fixture(scope="session")
def bundled_seed():
    """The seed taxonomy shipped with the package."""
    return load_seed()


@pytest.fixture
def seed_store(bundled_seed):
    return TaxonomyStore(bundled_seed)


@pytest.fixture
def db():
    """In-memory SQLite database with the full schema."""
    conn = init_db(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def make_feedback():
    """Factory for JobFeedback records."""

    def _make(
        feedback_id,
        job_id,
        title,
        corrected,
        original="operations-administration",
        description="",
        labels="",
        matched_keywords=(),
    ):
        return JobFeedback(
            id=feedback_id,
            job_id=job_id,
            job_title=title,
            job_description=description,
            job_labels=labels,
            original_classification=OriginalClassification(
                primary=original,
                confidence=30,
                matched_keywords=tuple(matched_keywords),
            ),
            user_correction=UserCorrection(corrected_primary=corrected, reason="test"),
        )

    return _make


CLEANING_JOBS = [
    ("j1", "Cleaning Services Supervisor", "Oversees night crews"),
    ("j2", "Cleaning Services Assistant", "Handles weekend rosters"),
    ("j3", "Cleaning Services Officer", "Maintains chemical inventory"),
    ("j4", "Cleaning Services Technician", "Operates floor machines"),
]


@pytest.fixture
def cleaning_feedback(make_feedback):
    """Four corrections to facilities-services sharing 'cleaning services'."""
    return [
        make_feedback(
            f"fb-{job_id}",
            job_id,
            title,
            "facilities-services",
            description=description,
            labels="cleaning services",
        )
        for job_id, title, description in CLEANING_JOBS
    ]
