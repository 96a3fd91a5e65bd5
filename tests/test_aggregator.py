# ==============================================
# Tests for DatasetAggregator
# ==============================================
#
# class TestPredicates       → the seven dataset predicates
# class TestDegradation      → unscored fields, service failures
# class TestCannotEvaluate   → metadata failures
# class TestRegions          → single-valued region / municipality
# class TestConcurrency      → idempotence, read coalescing, timeouts
#
# ==============================================

import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
from bson.errors import InvalidBSON

from dataset_analyzer.aggregator import EvaluationStatus, FieldStatus, METRICS_UNAVAILABLE
from dataset_analyzer.analysis.decision import AggregationThresholds, Operation
from dataset_analyzer.analysis.descriptor import AddressRole, FieldDescriptor, FieldType
from dataset_analyzer.cache import MetricsCache
from dataset_analyzer.config import DatabaseNames
from dataset_analyzer.exceptions import CannotEvaluateError, ConfigurationError
from dataset_analyzer.storage.base import CatalogEntry
from dataset_analyzer.storage.dataset_store import MongoDatasetStore
from dataset_analyzer.storage.mongo_client import MongoClient

from conftest import (
    FakeCatalog,
    FakeDatasetStore,
    FakeLinkageService,
    FakeMetadataStore,
    FakeRegionRegistry,
)


def build(make_aggregator, dataset, **kwargs):
    dataset_id, descriptors, values = dataset
    metadata = FakeMetadataStore({dataset_id: descriptors})
    store = FakeDatasetStore(values, **kwargs.pop("store_options", {}))
    return make_aggregator(metadata, store, **kwargs), store


class TestPredicates:
    def test_address_dataset(self, make_aggregator, address_dataset):
        aggregator, _ = build(make_aggregator, address_dataset)
        result = aggregator.evaluate("ud_address")

        assert result.status == EvaluationStatus.OK
        p = result.predicates
        assert p.has_address_features
        assert p.has_address
        assert not p.has_geometry_features
        assert not p.has_geometry
        assert result.recommendations[Operation.LINK_RECORDS]
        assert not result.recommendations[Operation.PARSE_ADDRESS]

    def test_address_feature_without_structured_address(self, make_aggregator, address_dataset):
        dataset_id, descriptors, values = address_dataset
        descriptors = [d for d in descriptors if d.role is None]
        aggregator, _ = build(make_aggregator, (dataset_id, descriptors, values))

        result = aggregator.evaluate(dataset_id)
        assert result.predicates.has_address_features
        assert not result.predicates.has_address
        assert result.recommendations[Operation.PARSE_ADDRESS]

    def test_sparse_address_part(self, make_aggregator, address_dataset):
        dataset_id, descriptors, values = address_dataset
        values = dict(values)
        values[(dataset_id, "house")] = ["д 5", None, None, None]
        aggregator, _ = build(make_aggregator, (dataset_id, descriptors, values))
        assert not aggregator.evaluate(dataset_id).predicates.has_address

    def test_geometry_dataset(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(make_aggregator, geometry_dataset)
        result = aggregator.evaluate("ud_geometry")

        p = result.predicates
        assert p.has_geometry
        assert p.has_geometry_features
        assert result.recommendations[Operation.PUBLISH]
        assert not result.recommendations[Operation.TRANSFORM_GEOMETRY]

        geometry = result.field("geometry")
        assert geometry.metrics.validness == 1.0
        assert geometry.metrics.adequacy == 1.0
        assert geometry.metrics.indexed
        assert result.field("x").classification.paired_with == "y"
        assert result.field("name").metrics.validness is None

    def test_implausible_geometry(self, make_aggregator, geometry_dataset):
        dataset_id, descriptors, values = geometry_dataset
        values = dict(values)
        # lat/lon swapped: every point lands outside the plausible region
        values[(dataset_id, "geometry")] = ["POINT (55.75 37.61)", "POINT (53.2 20.1)"]
        aggregator, _ = build(make_aggregator, (dataset_id, descriptors, values))

        result = aggregator.evaluate(dataset_id)
        assert not result.predicates.has_geometry
        assert result.recommendations[Operation.TRANSFORM_GEOMETRY]

    def test_two_qualifying_geometry_fields(self, make_aggregator, geometry_dataset):
        dataset_id, descriptors, values = geometry_dataset
        descriptors = descriptors + [FieldDescriptor("geometry2", FieldType.GEOMETRY)]
        values = dict(values)
        values[(dataset_id, "geometry2")] = values[(dataset_id, "geometry")]
        aggregator, _ = build(make_aggregator, (dataset_id, descriptors, values))

        result = aggregator.evaluate(dataset_id)
        assert not result.predicates.has_geometry
        assert any("several geometry fields" in w for w in result.warnings)

    def test_wkt_text_column_gets_geometry_quality(self, make_aggregator):
        descriptors = [FieldDescriptor("wkt", FieldType.STRING)]
        values = {("ud_wkt", "wkt"): ["POINT (37.6 55.7)", "POINT (broken", "POINT (30.3 59.9)"]}
        aggregator = make_aggregator(FakeMetadataStore({"ud_wkt": descriptors}), FakeDatasetStore(values))

        report = aggregator.evaluate("ud_wkt").field("wkt")
        assert report.classification.is_geometry_feature
        assert report.metrics.validness == pytest.approx(2 / 3)
        assert report.metrics.adequacy == 1.0

    def test_connected_enriched_published(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(
            make_aggregator,
            geometry_dataset,
            linkage_service=FakeLinkageService(ratio=0.9),
            catalog=FakeCatalog(CatalogEntry(frozenset({"oarObject", "name"}), published=True)),
        )
        result = aggregator.evaluate("ud_geometry")

        p = result.predicates
        assert p.is_connected
        assert p.is_enriched
        assert p.is_published
        assert not result.recommendations[Operation.LINK_RECORDS]
        assert result.recommendations[Operation.SHOW_ON_MAP]
        assert result.warnings == ()

    def test_linkage_below_threshold(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(make_aggregator, geometry_dataset, linkage_service=FakeLinkageService(ratio=0.3))
        assert not aggregator.evaluate("ud_geometry").predicates.is_connected

    def test_aggregate_returns_predicates(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(make_aggregator, geometry_dataset)
        assert aggregator.aggregate("ud_geometry").has_geometry

    def test_custom_thresholds(self, make_aggregator, address_dataset):
        thresholds = AggregationThresholds(address_min_fullness=0.9)
        aggregator, _ = build(make_aggregator, address_dataset, thresholds=thresholds)
        assert not aggregator.evaluate("ud_address").predicates.has_address

    def test_unknown_required_role(self, make_aggregator, address_dataset):
        with pytest.raises(ConfigurationError):
            build(make_aggregator, address_dataset,
                  thresholds=AggregationThresholds(required_address_roles=("flat",)))

    def test_result_to_dict(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(make_aggregator, geometry_dataset)
        data = aggregator.evaluate("ud_geometry").to_dict()
        assert data["status"] == "ok"
        assert data["recommendations"]["export"] is True
        assert {field["field"]["name"] for field in data["fields"]} == {"geometry", "x", "y", "name"}


class TestDegradation:
    def test_failing_field_is_unscored(self, make_aggregator, address_dataset):
        aggregator, _ = build(make_aggregator, address_dataset, store_options={"failing": ["house"]})
        result = aggregator.evaluate("ud_address")

        house = result.field("house")
        assert house.status == FieldStatus.UNSCORED
        assert house.reason == METRICS_UNAVAILABLE
        assert house.metrics is None
        assert not result.predicates.has_address
        assert any("house" in w for w in result.warnings)
        # the other fields still count
        assert result.predicates.has_address_features

    def test_unscored_field_is_not_a_false_negative(self, make_aggregator, address_dataset):
        aggregator, _ = build(make_aggregator, address_dataset, store_options={"failing": ["full_address"]})
        result = aggregator.evaluate("ud_address")
        assert result.field("full_address").status == FieldStatus.UNSCORED
        assert result.predicates.has_address

    def test_undecodable_field_is_unscored(self, make_aggregator):
        def aggregate(pipeline, **options):
            if "bad" in pipeline[-1]["$project"]:
                raise InvalidBSON("year 0 is out of range")
            return [{"good": "ул Ленина"}, {"good": "пр Мира"}]

        data = MagicMock()
        data.estimated_document_count.return_value = 2
        data.aggregate.side_effect = aggregate
        client = MagicMock(spec=MongoClient)
        client.collection.return_value = data

        descriptors = [FieldDescriptor("good", FieldType.STRING), FieldDescriptor("bad", FieldType.DATE)]
        aggregator = make_aggregator(
            FakeMetadataStore({"ud": descriptors}),
            MongoDatasetStore(client, DatabaseNames()),
        )
        result = aggregator.evaluate("ud")

        assert result.ok
        assert result.field("bad").status == FieldStatus.UNSCORED
        assert result.field("good").status == FieldStatus.SCORED
        assert any("year 0 is out of range" in w for w in result.warnings)

    def test_empty_sample_is_unscored(self, make_aggregator):
        descriptors = [FieldDescriptor("a", FieldType.STRING)]
        aggregator = make_aggregator(FakeMetadataStore({"ud": descriptors}), FakeDatasetStore({}))
        result = aggregator.evaluate("ud")
        assert result.ok
        assert result.field("a").status == FieldStatus.UNSCORED

    def test_linkage_failure_warns(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(make_aggregator, geometry_dataset, linkage_service=FakeLinkageService(fail=True))
        result = aggregator.evaluate("ud_geometry")
        assert result.ok
        assert not result.predicates.is_connected
        assert any("linkage service unavailable" in w for w in result.warnings)

    def test_catalog_failure_warns(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(make_aggregator, geometry_dataset, catalog=FakeCatalog(fail=True))
        result = aggregator.evaluate("ud_geometry")
        assert not result.predicates.is_enriched
        assert not result.predicates.is_published
        assert any("catalog unavailable" in w for w in result.warnings)

    def test_missing_services_warn(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(make_aggregator, geometry_dataset, linkage_service=None, catalog=None)
        result = aggregator.evaluate("ud_geometry")
        assert not result.predicates.is_connected
        assert len(result.warnings) == 2


class TestCannotEvaluate:
    def test_metadata_failure(self, make_aggregator):
        aggregator = make_aggregator(FakeMetadataStore(fail=True), FakeDatasetStore())
        result = aggregator.evaluate("ud")
        assert result.status == EvaluationStatus.CANNOT_EVALUATE
        assert result.predicates is None
        assert result.recommendations is None
        assert "metadata store unavailable" in result.error

    def test_unknown_dataset(self, make_aggregator):
        aggregator = make_aggregator(FakeMetadataStore({}), FakeDatasetStore())
        assert aggregator.evaluate("ud_missing").status == EvaluationStatus.CANNOT_EVALUATE

    def test_no_fields(self, make_aggregator):
        aggregator = make_aggregator(FakeMetadataStore({"ud": []}), FakeDatasetStore())
        result = aggregator.evaluate("ud")
        assert result.error == "no field descriptors"
        assert result.to_dict()["recommendations"] is None

    def test_aggregate_raises(self, make_aggregator):
        aggregator = make_aggregator(FakeMetadataStore({}), FakeDatasetStore())
        with pytest.raises(CannotEvaluateError):
            aggregator.aggregate("ud_missing")


class TestRegions:
    @pytest.fixture
    def region_dataset(self):
        dataset_id = "ud_regions"
        descriptors = [
            FieldDescriptor("region", FieldType.STRING, role=AddressRole.REGION),
            FieldDescriptor("city", FieldType.STRING, role=AddressRole.MUNICIPALITY),
        ]
        values = {
            (dataset_id, "region"): ["Самарская обл"] * 10,
            (dataset_id, "city"): ["г Самара"] * 10,
        }
        return dataset_id, descriptors, values

    @pytest.fixture
    def registry(self):
        return FakeRegionRegistry(
            regions=[("Самарская область", "rk_samara"), ("Тверская область", "rk_tver")],
            municipalities={"Самарская область": ["г Самара", "г Тольятти"]},
        )

    def test_region_and_municipality_resolved(self, make_aggregator, region_dataset, registry):
        aggregator, _ = build(make_aggregator, region_dataset, region_registry=registry)
        result = aggregator.evaluate("ud_regions")

        region = result.field("region").single_value
        assert region.one_value
        assert region.database == "rk_samara"
        city = result.field("city").single_value
        assert city.one_value
        assert city.municipality == "г Самара"

    def test_municipality_needs_single_region(self, make_aggregator, region_dataset, registry):
        dataset_id, descriptors, values = region_dataset
        values = dict(values)
        values[(dataset_id, "region")] = ["Самарская обл", "Тверская обл", "Московская обл", "Пермский край"]
        aggregator, _ = build(make_aggregator, (dataset_id, descriptors, values), region_registry=registry)

        result = aggregator.evaluate(dataset_id)
        assert not result.field("region").single_value.one_value
        assert result.field("city").single_value is None

    def test_single_value_without_registry(self, make_aggregator, region_dataset):
        aggregator, _ = build(make_aggregator, region_dataset)
        region = aggregator.evaluate("ud_regions").field("region").single_value
        assert region.one_value
        assert region.database is None


class TestConcurrency:
    def test_concurrent_evaluations_agree_and_share_reads(self, make_aggregator, geometry_dataset):
        dataset_id, descriptors, _ = geometry_dataset
        aggregator, store = build(
            make_aggregator,
            geometry_dataset,
            store_options={"delays": {d.name: 0.2 for d in descriptors}},
        )

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: aggregator.evaluate(dataset_id), range(8)))

        assert len({r.recommendations for r in results}) == 1
        assert len({r.predicates for r in results}) == 1
        # one in-flight evaluation → each field read exactly once
        assert store.total_reads == len(descriptors)

    def test_sequential_evaluations_are_idempotent(self, make_aggregator, address_dataset):
        aggregator, _ = build(make_aggregator, address_dataset)
        first = aggregator.evaluate("ud_address")
        second = aggregator.evaluate("ud_address")
        assert first.predicates == second.predicates
        assert first.recommendations == second.recommendations

    def test_cache_reuses_field_results(self, make_aggregator, address_dataset):
        cache = MetricsCache()
        aggregator, _ = build(make_aggregator, address_dataset, cache=cache)
        first = aggregator.evaluate("ud_address")
        second = aggregator.evaluate("ud_address")

        assert len(cache) == 5
        assert cache.hits == 5
        assert first.fields == second.fields

    def test_cache_follows_new_sibling_fields(self, make_aggregator):
        metadata = FakeMetadataStore({"ud_axes": [FieldDescriptor("lon", FieldType.FLOAT)]})
        store = FakeDatasetStore({
            ("ud_axes", "lon"): [37.6, 30.3, 49.1],
            ("ud_axes", "lat"): [55.7, 59.9, 55.8],
        })
        aggregator = make_aggregator(metadata, store, cache=MetricsCache())

        first = aggregator.evaluate("ud_axes")
        assert not first.field("lon").classification.is_geometry_feature

        metadata.descriptors["ud_axes"] = [
            FieldDescriptor("lon", FieldType.FLOAT),
            FieldDescriptor("lat", FieldType.FLOAT),
        ]
        second = aggregator.evaluate("ud_axes")

        assert second.field("lon").classification.is_geometry_feature
        assert second.field("lon").classification.paired_with == "lat"
        assert second.field("lat").classification.is_geometry_feature

    def test_cache_follows_changed_declared_type(self, make_aggregator):
        metadata = FakeMetadataStore({"ud_types": [FieldDescriptor("a", FieldType.INTEGER)]})
        store = FakeDatasetStore({("ud_types", "a"): ["1", "2", "x"]})
        aggregator = make_aggregator(metadata, store, cache=MetricsCache())

        first = aggregator.evaluate("ud_types")
        assert first.field("a").metrics.type_matching == pytest.approx(2 / 3)

        metadata.descriptors["ud_types"] = [FieldDescriptor("a", FieldType.STRING)]
        second = aggregator.evaluate("ud_types")

        assert second.field("a").descriptor.declared_type == FieldType.STRING
        assert second.field("a").metrics.type_matching == 1.0

    def test_zero_timeout_is_a_limit(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(
            make_aggregator,
            geometry_dataset,
            store_options={"delays": {"name": 1.0}},
        )
        result = aggregator.evaluate("ud_geometry", timeout=0)

        assert result.ok
        assert result.field("name").status == FieldStatus.UNSCORED
        assert any("timed out" in w for w in result.warnings)

    def test_slow_field_times_out(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(
            make_aggregator,
            geometry_dataset,
            timeout=0.2,
            store_options={"delays": {"name": 2.0}},
        )
        result = aggregator.evaluate("ud_geometry")

        assert result.ok
        assert result.field("name").status == FieldStatus.UNSCORED
        assert result.field("name").reason == METRICS_UNAVAILABLE
        assert result.field("geometry").status == FieldStatus.SCORED
        assert result.predicates.has_geometry

    def test_cancel_event(self, make_aggregator, geometry_dataset):
        aggregator, _ = build(
            make_aggregator,
            geometry_dataset,
            store_options={"delays": {"name": 2.0}},
        )
        cancel = threading.Event()
        timer = threading.Timer(0.2, cancel.set)
        timer.start()
        try:
            result = aggregator.evaluate("ud_geometry", cancel_event=cancel)
        finally:
            timer.cancel()

        assert result.field("name").status == FieldStatus.UNSCORED
        assert any("cancelled" in w for w in result.warnings)
