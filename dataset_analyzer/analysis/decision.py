# ==============================================
# Decision (Data Classes + Decision Table)
# ==============================================
#
# PURPOSE:
#   Data classes that represent the OUTPUT of classification and
#   aggregation, the thresholds that control them, and the fixed
#   decision table that turns dataset predicates into the set of
#   operations offered to the user.
#
# WHY THIS FILE EXISTS:
#   Separating data classes from logic keeps the classifier and the
#   aggregator clean. The decision table is a pure function with no
#   I/O, so it is defined here next to the predicates it reads.
#
# ENUMS:
# ------
# - Operation(Enum): PARSE_ADDRESS, TRANSFORM_GEOMETRY, LINK_RECORDS,
#                    PUBLISH, SHOW_ON_MAP, CONFIGURE_METADATA, EXPORT
#
# CLASSES:
# --------
# - DatasetPredicates (frozen dataclass)
#     One boolean per capability signal.
#
# - RecommendationSet (frozen dataclass)
#     Operation → bool ("offer this operation").
#
# - ClassificationThresholds (dataclass)
#     Configurable thresholds that the field classifier uses.
#
# - AggregationThresholds (dataclass)
#     Configurable thresholds that the dataset aggregator uses.
#
# FUNCTION:
# ---------
# - recommend(predicates: DatasetPredicates) -> RecommendationSet
#
#       parse address      : !has_address && has_address_features
#       transform geometry : !has_geometry && has_geometry_features
#       link records       : !is_connected && (has_geometry || has_address)
#       publish            : has_geometry
#       show on map        : is_published
#       configure metadata : true
#       export             : true
#
# ==============================================

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Tuple


class Operation(Enum):
    """Operations a dataset can be offered in the user interface."""
    PARSE_ADDRESS = "parse_address"
    TRANSFORM_GEOMETRY = "transform_geometry"
    LINK_RECORDS = "link_records"
    PUBLISH = "publish"
    SHOW_ON_MAP = "show_on_map"
    CONFIGURE_METADATA = "configure_metadata"
    EXPORT = "export"


@dataclass(frozen=True)
class DatasetPredicates:
    """
    Dataset-level capability signals derived from field results.

    Derived fresh on every evaluation; never persisted here.
    """

    has_address_features: bool = False
    has_geometry_features: bool = False
    has_address: bool = False
    has_geometry: bool = False
    is_connected: bool = False
    is_enriched: bool = False
    is_published: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DatasetPredicates":
        """
        Build predicates from a mapping; unknown keys are rejected,
        missing keys default to False.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown predicates: {', '.join(sorted(unknown))}")
        return cls(**{name: bool(value) for name, value in data.items()})


# The decision table. Order is the order operations are listed to users.
DECISION_TABLE: Tuple[Tuple[Operation, Callable[[DatasetPredicates], bool]], ...] = (
    (Operation.PARSE_ADDRESS, lambda p: not p.has_address and p.has_address_features),
    (Operation.TRANSFORM_GEOMETRY, lambda p: not p.has_geometry and p.has_geometry_features),
    (Operation.LINK_RECORDS, lambda p: not p.is_connected and (p.has_geometry or p.has_address)),
    (Operation.PUBLISH, lambda p: p.has_geometry),
    (Operation.SHOW_ON_MAP, lambda p: p.is_published),
    (Operation.CONFIGURE_METADATA, lambda p: True),
    (Operation.EXPORT, lambda p: True),
)


@dataclass(frozen=True)
class RecommendationSet:
    """Which operations to offer for a dataset."""

    offers: Tuple[Tuple[Operation, bool], ...]

    def __getitem__(self, operation: Operation) -> bool:
        return dict(self.offers)[operation]

    def offered(self) -> List[Operation]:
        """Operations whose flag is True, in decision-table order."""
        return [operation for operation, offer in self.offers if offer]

    def to_dict(self) -> Dict[str, bool]:
        return {operation.value: offer for operation, offer in self.offers}


def recommend(predicates: DatasetPredicates) -> RecommendationSet:
    """
    Apply the fixed decision table.

    Args:
        predicates: Dataset-level predicates

    Returns:
        RecommendationSet covering every Operation
    """
    return RecommendationSet(
        offers=tuple((operation, bool(rule(predicates))) for operation, rule in DECISION_TABLE)
    )


@dataclass
class ClassificationThresholds:
    """
    Configurable thresholds that control field classification.
    """

    address_min_words: int = 3
    """
    Minimum whitespace-separated words for a value to look like an address.
    Default 3 = "ул Ленина 5" qualifies, "Ленина 5" does not.
    """

    address_majority: float = 0.5
    """
    Minimum share of non-empty values that must look like addresses.
    Default 0.5 = at least half of the sampled values.
    """

    geometry_majority: float = 0.5
    """
    Minimum share of non-empty values that must start with a geometry
    shape name (raw WKT / GeoJSON text).
    """


@dataclass
class AggregationThresholds:
    """
    Configurable thresholds that turn field results into dataset predicates.

    Defaults: 0.6 completeness for address parts and linkage,
    0.5 validness for geometry.
    """

    required_address_roles: Tuple[str, ...] = ("municipality", "street", "house")
    """
    Address roles that must all be present for has_address.
    Values are AddressRole values: region, municipality, street, house.
    """

    address_min_fullness: float = 0.6
    """Every required address field must be at least this full."""

    geometry_min_fullness: float = 0.6
    geometry_min_validness: float = 0.5
    geometry_min_adequacy: float = 0.8

    min_linkage_ratio: float = 0.6
    """Share of records linked to the reference registry for is_connected."""

    enrichment_tags: Tuple[str, ...] = ("oarObject",)
    """Field names / provenance tags that mark registry-enriched data."""
