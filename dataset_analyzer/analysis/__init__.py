# ==============================================
# TOPIC 2: ANALYSIS & CLASSIFICATION
# ==============================================
#
# This package computes per-field evidence and turns it into
# decisions about which enrichment operations to offer.
#
# Three-step process:
#   Step 1 (Metrics):        Sampled values → FieldMetrics per field
#   Step 2 (Classification): Values + dictionaries → FieldClassification
#   Step 3 (Decision):       DatasetPredicates → RecommendationSet
#
# Modules:
# --------
# - descriptor.py      → FieldDescriptor, FieldType, AddressRole
# - value_parser.py    → Emptiness, type conformity, geometry parsing
# - field_metrics.py   → FieldMetrics and MetricCalculator
# - classifier.py      → FieldClassifier and axis pairing rules
# - region_matcher.py  → Single-valued region / municipality detection
# - decision.py        → Predicates, thresholds, decision table
#
# ==============================================

from .classifier import AxisNamePairing, FieldClassification, FieldClassifier
from .decision import (
    AggregationThresholds,
    ClassificationThresholds,
    DatasetPredicates,
    Operation,
    RecommendationSet,
    recommend,
)
from .descriptor import AddressRole, FieldDescriptor, FieldType
from .field_metrics import FieldMetrics, MetricCalculator
from .region_matcher import RegionMatcher, SingleValue
from .value_parser import ValueParser

__all__ = [
    "AddressRole",
    "AggregationThresholds",
    "AxisNamePairing",
    "ClassificationThresholds",
    "DatasetPredicates",
    "FieldClassification",
    "FieldClassifier",
    "FieldDescriptor",
    "FieldMetrics",
    "FieldType",
    "MetricCalculator",
    "Operation",
    "RecommendationSet",
    "RegionMatcher",
    "SingleValue",
    "ValueParser",
    "recommend",
]
