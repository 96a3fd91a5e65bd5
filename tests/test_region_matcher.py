# ==============================================
# Tests for RegionMatcher
# ==============================================

import pytest

from dataset_analyzer.analysis.field_metrics import entropy_of
from dataset_analyzer.analysis.region_matcher import RegionMatcher, SingleValue, similarity

from conftest import FakeRegionRegistry


@pytest.fixture
def matcher():
    return RegionMatcher()


class TestSimilarity:
    def test_identical_ignoring_case(self):
        assert similarity("Самара", "самара") == 1.0

    def test_one_edit(self):
        # one substitution in 10 characters
        assert similarity("московская", "масковская") == pytest.approx(0.9)

    def test_unrelated(self):
        assert similarity("самарская", "тверская") < 0.8


class TestSingleValue:
    def test_identical_values(self, matcher, dictionary):
        values = ["Самарская обл"] * 30
        result = matcher.single_value(values, entropy_of(values), dictionary.region_types, dictionary)
        assert result.one_value
        assert result.value == "самарская"

    def test_spelling_variants_cluster(self, matcher, dictionary):
        values = ["Самарская обл"] * 18 + ["Самарская область", "самарская обл."]
        result = matcher.single_value(values, entropy_of(values), dictionary.region_types, dictionary)
        assert result.one_value
        assert result.value == "самарская"

    def test_municipality_clusters_below_lower_entropy(self, matcher, dictionary):
        values = ["Самарская обл"] * 18 + ["Самарская область", "самарская обл."]
        region = matcher.single_value(values, 0.45, dictionary.region_types, dictionary)
        municipality = matcher.single_value(
            values,
            0.45,
            dictionary.region_types,
            dictionary,
            cluster_entropy=matcher.municipality_cluster_entropy,
        )
        assert region.one_value
        assert not municipality.one_value
        assert matcher.municipality_cluster_entropy == 0.4

    def test_many_regions(self, matcher, dictionary):
        values = ["Самарская обл", "Тверская обл", "Московская обл", "Пермский край"]
        result = matcher.single_value(values, entropy_of(values), dictionary.region_types, dictionary)
        assert not result.one_value

    def test_no_text_values(self, matcher, dictionary):
        assert matcher.single_value([1, 2], 0.0, dictionary.region_types, dictionary) == SingleValue(False)

    def test_to_dict(self):
        single = SingleValue(True, "самарская", database="rk_samara", municipality="Самара")
        assert single.to_dict() == {
            "oneValue": True,
            "value": "самарская",
            "database": "rk_samara",
            "municipalitetName": "Самара",
        }
        assert SingleValue(False).to_dict() == {"oneValue": False}


class TestRegistryMatch:
    def test_resolve_region(self, matcher, dictionary):
        registry = FakeRegionRegistry(regions=[
            ("Самарская область", "rk_samara"),
            ("Тверская область", "rk_tver"),
        ])
        assert matcher.resolve_region("самарская", registry, dictionary) == ("Самарская область", "rk_samara")

    def test_resolve_region_no_match(self, matcher, dictionary):
        registry = FakeRegionRegistry(regions=[("Тверская область", "rk_tver")])
        assert matcher.resolve_region("самарская", registry, dictionary) is None

    def test_resolve_municipality(self, matcher, dictionary):
        registry = FakeRegionRegistry(municipalities={
            "Самарская область": ["г Самара", "г Тольятти"],
        })
        name = matcher.resolve_municipality("самара", "Самарская область", registry, dictionary)
        assert name == "г Самара"

    def test_best_match_prefers_highest_score(self, matcher):
        candidates = [("самарская", "a"), ("самарскае", "b")]
        assert matcher.best_match("самарская", candidates) == "a"
