# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# This file contains shared fixtures for all tests.
#
# FAKES:
# ------
# In-memory implementations of the store protocols so the
# aggregator can be tested without MongoDB:
#   - FakeMetadataStore    (descriptors per dataset)
#   - FakeDatasetStore     (values per dataset/field, read counting,
#                           optional per-field delay / failure)
#   - FakeLinkageService   (fixed ratio or failure)
#   - FakeCatalog          (fixed CatalogEntry or failure)
#   - FakeRegionRegistry   (region and municipality lists)
#
# FIXTURES:
# ---------
#   - dictionary        → the shipped DictionaryCatalog
#   - make_aggregator   → factory building a DatasetAggregator
#   - address_dataset   → metadata + values of a dataset with an address
#   - geometry_dataset  → metadata + values of a dataset with a geometry
#
# ==============================================

import threading
import time
from collections import Counter

import pytest

from dataset_analyzer.aggregator import DatasetAggregator
from dataset_analyzer.analysis.descriptor import AddressRole, FieldDescriptor, FieldType
from dataset_analyzer.dictionaries.catalog import get_catalog
from dataset_analyzer.exceptions import ServiceUnavailableError
from dataset_analyzer.storage.base import CatalogEntry


class FakeMetadataStore:
    def __init__(self, descriptors=None, fail=False):
        self.descriptors = descriptors or {}
        self.fail = fail
        self.calls = 0

    def get_field_descriptors(self, dataset_id):
        self.calls += 1
        if self.fail:
            raise ServiceUnavailableError("metadata store down")
        return self.descriptors.get(dataset_id)


class FakeDatasetStore:
    def __init__(self, values=None, delays=None, failing=()):
        self.values = values or {}
        self.delays = delays or {}
        self.failing = set(failing)
        self.reads = Counter()
        self._lock = threading.Lock()

    def sample_values(self, dataset_id, field_name, limit):
        with self._lock:
            self.reads[(dataset_id, field_name)] += 1
        if field_name in self.delays:
            time.sleep(self.delays[field_name])
        if field_name in self.failing:
            raise ServiceUnavailableError(f"cannot read {field_name}")
        values = list(self.values.get((dataset_id, field_name), []))
        return values[:limit] if limit > 0 else values

    @property
    def total_reads(self):
        return sum(self.reads.values())


class FakeLinkageService:
    def __init__(self, ratio=None, fail=False):
        self.ratio = ratio
        self.fail = fail

    def linkage_ratio(self, dataset_id):
        if self.fail:
            raise ServiceUnavailableError("linkage service down")
        return self.ratio


class FakeCatalog:
    def __init__(self, entry=None, fail=False):
        self.entry = entry or CatalogEntry()
        self.fail = fail

    def get_catalog_entry(self, dataset_id):
        if self.fail:
            raise ServiceUnavailableError("catalog down")
        return self.entry


class FakeRegionRegistry:
    def __init__(self, regions=(), municipalities=None):
        self._regions = list(regions)
        self._municipalities = municipalities or {}

    def regions(self):
        return list(self._regions)

    def municipalities(self, region_name):
        return list(self._municipalities.get(region_name, []))


@pytest.fixture
def dictionary():
    """The dictionary shipped with the package."""
    return get_catalog()


@pytest.fixture
def make_aggregator(dictionary):
    """Build a DatasetAggregator from fakes; keyword overrides win."""
    def factory(metadata_store, dataset_store, **kwargs):
        kwargs.setdefault("linkage_service", FakeLinkageService(ratio=None))
        kwargs.setdefault("catalog", FakeCatalog())
        kwargs.setdefault("dictionary", dictionary)
        kwargs.setdefault("max_workers", 4)
        kwargs.setdefault("timeout", 5.0)
        kwargs.setdefault("verbose", False)
        return DatasetAggregator(metadata_store, dataset_store, **kwargs)
    return factory


@pytest.fixture
def address_dataset():
    """Dataset with municipality/street/house columns plus a free-text address."""
    dataset_id = "ud_address"
    descriptors = [
        FieldDescriptor("city", FieldType.STRING, role=AddressRole.MUNICIPALITY),
        FieldDescriptor("street", FieldType.STRING, role=AddressRole.STREET),
        FieldDescriptor("house", FieldType.STRING, role=AddressRole.HOUSE),
        FieldDescriptor("full_address", FieldType.STRING),
        FieldDescriptor("visitors", FieldType.INTEGER),
    ]
    values = {
        (dataset_id, "city"): ["г Самара", "г Самара", "г. Самара", "г Самара"],
        (dataset_id, "street"): ["ул Ленина", "пр-кт Кирова", "ул Мира", None],
        (dataset_id, "house"): ["д 5", "д 12", "", "д 1"],
        (dataset_id, "full_address"): [
            "г Самара, ул Ленина, д 5",
            "г Самара, пр-кт Кирова, д 12",
            "г Самара ул Мира",
            "нет данных",
        ],
        (dataset_id, "visitors"): [10, 20, 30, 40],
    }
    return dataset_id, descriptors, values


@pytest.fixture
def geometry_dataset():
    """Dataset with a clean GeoJSON geometry column and x/y columns."""
    dataset_id = "ud_geometry"
    descriptors = [
        FieldDescriptor("geometry", FieldType.GEOMETRY, indexed=True),
        FieldDescriptor("x", FieldType.FLOAT),
        FieldDescriptor("y", FieldType.FLOAT),
        FieldDescriptor("name", FieldType.STRING),
    ]
    values = {
        (dataset_id, "geometry"): [
            {"type": "Point", "coordinates": [37.61, 55.75]},
            {"type": "Point", "coordinates": [50.10, 53.20]},
            "POINT (30.31 59.94)",
            "SRID=4326;POINT (49.12 55.79)",
        ],
        (dataset_id, "x"): [37.61, 50.10, 30.31, 49.12],
        (dataset_id, "y"): [55.75, 53.20, 59.94, 55.79],
        (dataset_id, "name"): ["Москва", "Самара", "Санкт-Петербург", "Казань"],
    }
    return dataset_id, descriptors, values
