# ==============================================
# FieldClassifier
# ==============================================
#
# PURPOSE:
#   Takes one field (descriptor + sampled values) and applies
#   heuristic rules to tag it as an address feature and/or a
#   geometry feature, i.e. "raw data that an enrichment
#   operation could turn into a proper address / geometry".
#
# CLASS: FieldClassifier
# ----------------------
#   Stateless — descriptor and values in, FieldClassification out.
#
#   Constructor:
#   ------------
#   - __init__(thresholds: ClassificationThresholds,
#              pairing_rules: list[AxisPairingRule] | None)
#
#   Methods:
#   --------
#   - classify(descriptor, values, dictionary, siblings=()) -> FieldClassification
#
#       RULE 1: ADDRESS FEATURE
#         declared STRING, and for at least `address_majority` of the
#         non-empty values: >= `address_min_words` whitespace words AND
#         at least one whole token from the address dictionaries.
#
#       RULE 2a: GEOMETRY FEATURE (text)
#         declared STRING, and at least `geometry_majority` of the
#         non-empty values begin with a geometry shape name
#         ("POINT (…)", "SRID=4326;POLYGON(…)", '{"type": "Point", …}').
#
#       RULE 2b: GEOMETRY FEATURE (axis pair)
#         declared numeric, and a pairing rule finds a numeric sibling
#         with the complementary axis name (x/y, lon/lat, …).
#
#   No evidence (no non-empty values) resolves to False.
#
# ==============================================

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from dataset_analyzer.dictionaries.catalog import DictionaryCatalog, tokenize

from .decision import ClassificationThresholds
from .descriptor import FieldDescriptor, FieldType
from .value_parser import ValueParser


@dataclass(frozen=True)
class FieldClassification:
    """Tags derived for a single field."""

    is_address_feature: bool = False
    is_geometry_feature: bool = False
    geometry_source: Optional[str] = None  # "text" or "axis_pair"
    paired_with: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isAddressFeature": self.is_address_feature,
            "isGeometryFeature": self.is_geometry_feature,
            "geometrySource": self.geometry_source,
            "pairedWith": self.paired_with,
        }


class AxisPairingRule(Protocol):
    """Finds the sibling field holding the complementary coordinate axis."""

    def partner(self, field: FieldDescriptor, siblings: Sequence[FieldDescriptor]) -> Optional[str]:
        ...


_NAME_PARTS = re.compile(r"[^0-9a-zа-яё]+")


def _name_tokens(name: str) -> List[str]:
    return [part for part in _NAME_PARTS.split(name.lower()) if part]


class AxisNamePairing:
    """
    Pairs coordinate columns by name: "x" ↔ "y", "lon" ↔ "lat", ...

    A field pairs with a sibling when swapping one axis token in its
    name for the complementary token yields the sibling's name
    ("point_lon" ↔ "point_lat", "X" ↔ "Y"). Both must be numeric.
    """

    DEFAULT_PAIRS: Tuple[Tuple[str, str], ...] = (
        ("x", "y"),
        ("lon", "lat"),
        ("lng", "lat"),
        ("long", "lat"),
        ("longitude", "latitude"),
        ("easting", "northing"),
        ("долгота", "широта"),
    )

    def __init__(self, pairs: Iterable[Tuple[str, str]] = DEFAULT_PAIRS):
        self.complements: Dict[str, List[str]] = {}
        for first, second in pairs:
            self.complements.setdefault(first.lower(), []).append(second.lower())
            self.complements.setdefault(second.lower(), []).append(first.lower())

    def partner(self, field: FieldDescriptor, siblings: Sequence[FieldDescriptor]) -> Optional[str]:
        tokens = _name_tokens(field.name)
        candidates = {
            tuple(_name_tokens(sibling.name)): sibling
            for sibling in siblings
            if sibling.name != field.name and sibling.declared_type.is_numeric
        }
        for index, token in enumerate(tokens):
            for complement in self.complements.get(token, ()):
                swapped = tuple(tokens[:index] + [complement] + tokens[index + 1:])
                if swapped in candidates:
                    return candidates[swapped].name
        return None


class FieldClassifier:
    """
    Applies heuristic rules to a field's values to produce a
    FieldClassification. Ambiguous cases resolve to False so the
    engine never over-recommends.
    """

    def __init__(
        self,
        thresholds: ClassificationThresholds = None,
        pairing_rules: Optional[List[AxisPairingRule]] = None,
        parser: Optional[ValueParser] = None,
    ):
        """
        Initialize the FieldClassifier with configurable thresholds.

        Args:
            thresholds: Optional ClassificationThresholds. If not provided,
                       defaults will be used (3 words, 50% majority).
            pairing_rules: Rules used to detect x/y coordinate columns.
                          Defaults to [AxisNamePairing()].
        """
        self.thresholds = thresholds or ClassificationThresholds()
        self.pairing_rules = pairing_rules if pairing_rules is not None else [AxisNamePairing()]
        self.parser = parser or ValueParser()

    def classify(
        self,
        descriptor: FieldDescriptor,
        values: Sequence[Any],
        dictionary: DictionaryCatalog,
        siblings: Sequence[FieldDescriptor] = (),
    ) -> FieldClassification:
        """
        Classify a single field.

        Args:
            descriptor: The field's descriptor
            values: Sampled raw values
            dictionary: Token dictionaries
            siblings: The other fields of the same dataset

        Returns:
            A FieldClassification
        """
        non_empty = [value for value in values if not self.parser.is_empty(value)]
        if not non_empty:
            return FieldClassification()

        if descriptor.declared_type == FieldType.STRING:
            is_address = self._is_address_feature(non_empty, dictionary)
            is_geometry_text = self._is_geometry_text(non_empty, dictionary)
            return FieldClassification(
                is_address_feature=is_address,
                is_geometry_feature=is_geometry_text,
                geometry_source="text" if is_geometry_text else None,
            )

        if descriptor.declared_type.is_numeric:
            for rule in self.pairing_rules:
                partner = rule.partner(descriptor, siblings)
                if partner:
                    return FieldClassification(
                        is_geometry_feature=True,
                        geometry_source="axis_pair",
                        paired_with=partner,
                    )

        return FieldClassification()

    def looks_like_address(self, value: Any, dictionary: DictionaryCatalog) -> bool:
        """One value: enough words and at least one dictionary token."""
        if not isinstance(value, str):
            return False
        if len(value.split()) < self.thresholds.address_min_words:
            return False
        return bool(dictionary.match_tokens(tokenize(value)))

    def _is_address_feature(self, non_empty: Sequence[Any], dictionary: DictionaryCatalog) -> bool:
        hits = sum(1 for value in non_empty if self.looks_like_address(value, dictionary))
        return hits / len(non_empty) >= self.thresholds.address_majority

    def _is_geometry_text(self, non_empty: Sequence[Any], dictionary: DictionaryCatalog) -> bool:
        hits = 0
        for value in non_empty:
            word = self.parser.geometry_word(value)
            if word and dictionary.geometry_type_for(word):
                hits += 1
        return hits / len(non_empty) >= self.thresholds.geometry_majority
