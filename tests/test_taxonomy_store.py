"""Tests for the taxonomy models, seed loading and TaxonomyStore."""

import pytest

from jobtaxonomy.exceptions import TaxonomyError, UnknownCategoryError
from jobtaxonomy.taxonomy import Category, CategoryDiff, TaxonomyStore, load_seed, parse_taxonomy


class TestCategory:
    """Category normalisation."""

    def test_normalises_and_separates_tiers(self):
        category = Category(
            id="x",
            name="X",
            core_keywords=("Alpha", "alpha", " beta "),
            support_keywords=("beta", "gamma"),
        )

        assert category.core_keywords == ("alpha", "beta")
        assert category.support_keywords == ("gamma",)

    def test_pair_lookup_is_unordered(self):
        category = Category(id="x", name="X", context_pairs=(("machine", "learning"),))

        assert category.has_pair(("learning", "machine"))

    def test_invalid_pair_rejected(self):
        with pytest.raises(ValueError):
            Category(id="x", name="X", context_pairs=(("only",),))


class TestSeed:
    """Seed file loading."""

    def test_bundled_seed_is_valid(self, bundled_seed):
        ids = bundled_seed.category_ids()

        assert len(ids) == 17
        assert ids[0] == "leadership-executive"
        assert bundled_seed.fallback_category == "operations-administration"
        assert "cleaning" not in bundled_seed.forbidden_keywords
        assert "management" in bundled_seed.forbidden_keywords

    def test_legacy_alias(self, bundled_seed):
        assert bundled_seed.resolve_category_id("education-training") == "education-development"
        assert bundled_seed.resolve_category_id("made-up") is None

    def test_duplicate_ids_rejected(self):
        with pytest.raises(TaxonomyError, match="Duplicate"):
            parse_taxonomy({"categories": [{"id": "a"}, {"id": "a"}]})

    def test_unknown_fallback_rejected(self):
        with pytest.raises(TaxonomyError, match="Fallback"):
            parse_taxonomy({"categories": [{"id": "a"}], "fallback_category": "b"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(TaxonomyError, match="not found"):
            load_seed(str(tmp_path / "missing.yaml"))


class TestTaxonomyStore:
    """Mutation, snapshots, reset and YAML export."""

    def test_apply_update_returns_only_new_terms(self, small_store):
        applied = small_store.apply_update(
            "facilities-services",
            CategoryDiff(support_keywords=("maintenance", "Cleaning Services")),
            timestamp="2025-01-01T00:00:00+00:00",
        )

        assert applied.support_keywords == ("cleaning services",)
        category = small_store.get("facilities-services")
        assert category.support_keywords == ("maintenance", "cleaning services")
        assert category.last_updated == "2025-01-01T00:00:00+00:00"

    def test_noop_update_keeps_timestamp(self, small_store):
        applied = small_store.apply_update("facilities-services", CategoryDiff(core_keywords=("janitor",)))

        assert applied.is_empty()
        assert small_store.get("facilities-services").last_updated == "2024-01-01"

    def test_core_promotion_removes_support(self, small_store):
        small_store.apply_update("facilities-services", CategoryDiff(core_keywords=("maintenance",)))

        category = small_store.get("facilities-services")
        assert "maintenance" in category.core_keywords
        assert "maintenance" not in category.support_keywords

    def test_unknown_category(self, small_store):
        with pytest.raises(UnknownCategoryError) as exc:
            small_store.apply_update("nope", CategoryDiff(core_keywords=("x",)))

        assert exc.value.category_id == "nope"

    def test_snapshot_is_isolated_from_later_updates(self, small_store):
        snapshot = small_store.snapshot()

        small_store.apply_update("digital-technology", CategoryDiff(support_keywords=("kubernetes",)))

        assert not snapshot.get("digital-technology").has_keyword("kubernetes")
        assert small_store.snapshot().get("digital-technology").has_keyword("kubernetes")

    def test_learned_terms_and_reset(self, small_store, small_seed):
        small_store.apply_update("digital-technology", CategoryDiff(
            support_keywords=("kubernetes",), context_pairs=(("cloud", "native"),),
        ))

        learned = small_store.learned_terms()
        assert len(learned) == 1
        assert learned[0].support_keywords == ["kubernetes"]
        assert learned[0].context_pairs == [("cloud", "native")]

        small_store.reset_to_seed()
        assert small_store.snapshot().categories == small_seed.categories

    def test_replace_categories_requires_same_ids(self, small_store):
        with pytest.raises(TaxonomyError):
            small_store.replace_categories([Category(id="other", name="Other")])

    def test_yaml_round_trip(self, small_store, small_seed, tmp_path):
        small_store.apply_update("digital-technology", CategoryDiff(support_keywords=("kubernetes",)))
        path = tmp_path / "learned" / "taxonomy.yaml"

        small_store.save(str(path))
        loaded = TaxonomyStore.load(str(path), seed=small_seed)

        assert loaded.get("digital-technology").has_keyword("kubernetes")
        assert loaded.snapshot().legacy_aliases == {"facilities": "facilities-services"}
        loaded.reset_to_seed()
        assert not loaded.get("digital-technology").has_keyword("kubernetes")

    def test_from_yaml(self, small_store, small_seed):
        text = small_store.to_yaml()

        assert TaxonomyStore.from_yaml(text, seed=small_seed).snapshot() == small_store.snapshot()
