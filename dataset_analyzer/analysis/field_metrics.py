# ==============================================
# FieldMetrics + MetricCalculator
# ==============================================
#
# PURPOSE:
#   Compute the quality/shape metrics of one field from a sample
#   of its raw values. These metrics are the "evidence" the
#   classifier and the dataset aggregator make decisions on.
#
# CLASS: FieldMetrics (frozen dataclass)
# --------------------------------------
#   Attributes (None = not applicable):
#   -----------------------------------
#   - fullness: float | None       → non-empty / total
#   - type_matching: float | None  → conforming / non-empty
#   - entropy: float | None        → (distinct - 1) / (non-empty - 1)
#   - indexed: bool                → copied from the descriptor
#   - validness: float | None      → geometry only: parseable / non-empty
#   - adequacy: float | None       → geometry only: in-region / valid
#   - sample_size: int
#   - non_empty: int
#
# CLASS: MetricCalculator
# -----------------------
#   Stateless — values in, metrics out. Never raises on bad values.
#
#   - compute_metrics(declared_type, values, indexed=False,
#                     geometry_candidate=None) -> FieldMetrics
#   - geometry_quality(values) -> (validness, adequacy)
#
# ==============================================

import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .descriptor import FieldType
from .value_parser import BoundingBox, PLAUSIBLE_REGIONS, ValueParser


@dataclass(frozen=True)
class FieldMetrics:
    """Immutable metrics for a single field."""

    fullness: Optional[float]
    type_matching: Optional[float]
    entropy: Optional[float]
    indexed: bool = False
    validness: Optional[float] = None
    adequacy: Optional[float] = None
    sample_size: int = 0
    non_empty: int = 0

    @property
    def is_scored(self) -> bool:
        """A field with no sampled values at all carries no evidence."""
        return self.fullness is not None

    def with_geometry(self, validness: Optional[float], adequacy: Optional[float]) -> "FieldMetrics":
        return replace(self, validness=validness, adequacy=adequacy)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize in the shape of the fieldsQuality entries stored per dataset.

        Returns:
            A JSON-serializable dictionary
        """
        return {
            "fullness": self.fullness,
            "typeMatching": self.type_matching,
            "entropy": self.entropy,
            "indexed": self.indexed,
            "validness": self.validness,
            "adequacy": self.adequacy,
            "sampleSize": self.sample_size,
            "nonEmpty": self.non_empty,
        }


def _ratio(part: int, whole: int) -> Optional[float]:
    if whole <= 0:
        return None
    return min(1.0, max(0.0, part / whole))


def _distinct_key(value: Any) -> Any:
    # GeoJSON dicts and arrays are unhashable; compare their canonical JSON
    try:
        hash(value)
        return value
    except TypeError:
        return json.dumps(value, sort_keys=True, default=str)


def entropy_of(values: Sequence[Any]) -> Optional[float]:
    """
    Normalized count-based diversity of non-empty values.

    0.0 when all values are identical, 1.0 when all are distinct,
    None when there are no values.
    """
    count = len(values)
    if count == 0:
        return None
    if count == 1:
        return 0.0
    distinct = len({_distinct_key(value) for value in values})
    return min(1.0, max(0.0, (distinct - 1) / (count - 1)))


class MetricCalculator:
    """
    Computes FieldMetrics for a sample of raw values.

    Malformed values only lower typeMatching / validness; they are
    never propagated as errors.
    """

    def __init__(
        self,
        parser: Optional[ValueParser] = None,
        plausible_region: Iterable[BoundingBox] = PLAUSIBLE_REGIONS["russia"],
    ):
        self.parser = parser or ValueParser()
        self.plausible_region = tuple(plausible_region)

    def non_empty_values(self, values: Iterable[Any]) -> List[Any]:
        return [value for value in values if not self.parser.is_empty(value)]

    def compute_metrics(
        self,
        declared_type: FieldType,
        values: Sequence[Any],
        indexed: bool = False,
        geometry_candidate: Optional[bool] = None,
    ) -> FieldMetrics:
        """
        Compute metrics for one field.

        Args:
            declared_type: The field's declared FieldType
            values: Sampled raw values (may contain None / "" / "null")
            indexed: Index flag from the field descriptor
            geometry_candidate: Compute validness/adequacy. Defaults to
                               True for GEOMETRY-typed fields only.

        Returns:
            FieldMetrics; every ratio is None when it cannot be computed.
        """
        total = len(values)
        non_empty = self.non_empty_values(values)
        count = len(non_empty)

        if declared_type == FieldType.UNKNOWN:
            type_matching = None
        else:
            matched = sum(1 for value in non_empty if self.parser.conforms(declared_type, value))
            type_matching = _ratio(matched, count)

        metrics = FieldMetrics(
            fullness=_ratio(count, total),
            type_matching=type_matching,
            entropy=entropy_of(non_empty),
            indexed=indexed,
            sample_size=total,
            non_empty=count,
        )

        if geometry_candidate is None:
            geometry_candidate = declared_type == FieldType.GEOMETRY
        if geometry_candidate and count > 0:
            validness, adequacy = self.geometry_quality(non_empty)
            metrics = metrics.with_geometry(validness, adequacy)
        return metrics

    def geometry_quality(self, non_empty: Sequence[Any]) -> Tuple[Optional[float], Optional[float]]:
        """
        Share of well-formed geometries and share of those lying in
        the plausible region.

        Args:
            non_empty: Non-empty raw values

        Returns:
            (validness, adequacy); adequacy is None without valid geometries
        """
        valid = 0
        adequate = 0
        for value in non_empty:
            geometry = self.parser.parse_geometry(value)
            if geometry is None:
                continue
            valid += 1
            if self.parser.within_bounds(geometry, self.plausible_region):
                adequate += 1
        return _ratio(valid, len(non_empty)), _ratio(adequate, valid)
