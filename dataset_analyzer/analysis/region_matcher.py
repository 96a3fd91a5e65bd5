# ==============================================
# RegionMatcher
# ==============================================
#
# PURPOSE:
#   Detect whether a region / municipality field holds one value for
#   the whole dataset ("Московская обл.", "Московская область",
#   "московская  обл" are the same region), and resolve that value
#   against the region and municipality registries.
#
# HOW:
#   1. Very low entropy (< one_value_entropy) → the most frequent
#      value is the single value.
#   2. Moderate entropy (< cluster_entropy for regions,
#      < municipality_cluster_entropy for municipalities) → strip type words,
#      group values whose Levenshtein similarity to the most frequent
#      one exceeds `cluster_similarity`; single-valued when that
#      group covers more than `coverage` of the non-empty values.
#   3. Registry lookup keeps the best candidate with similarity
#      above `registry_similarity` (resolve_region / resolve_municipality;
#      registry names are stripped of type words the same way).
#
# ==============================================

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from dataset_analyzer.dictionaries.catalog import DictionaryCatalog


def similarity(x: str, y: str) -> float:
    """(max_len - levenshtein) / max_len on lowercased strings; 1.0 for two empties."""
    return Levenshtein.normalized_similarity(x.lower(), y.lower())


@dataclass(frozen=True)
class SingleValue:
    """Outcome of single-value detection for one field."""

    one_value: bool
    value: Optional[str] = None
    database: Optional[str] = None
    municipality: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"oneValue": self.one_value}
        if self.one_value:
            result["value"] = self.value
            if self.database:
                result["database"] = self.database
            if self.municipality:
                result["municipalitetName"] = self.municipality
        return result


class RegionMatcher:
    """Single-value detection and registry matching for address parts."""

    def __init__(
        self,
        one_value_entropy: float = 0.05,
        cluster_entropy: float = 0.5,
        municipality_cluster_entropy: float = 0.4,
        cluster_similarity: float = 0.8,
        coverage: float = 0.9,
        registry_similarity: float = 0.9,
    ):
        self.one_value_entropy = one_value_entropy
        self.cluster_entropy = cluster_entropy
        self.municipality_cluster_entropy = municipality_cluster_entropy
        self.cluster_similarity = cluster_similarity
        self.coverage = coverage
        self.registry_similarity = registry_similarity

    def single_value(
        self,
        non_empty: Sequence[Any],
        entropy: Optional[float],
        type_words: FrozenSet[str],
        dictionary: DictionaryCatalog,
        cluster_entropy: Optional[float] = None,
    ) -> SingleValue:
        """
        Decide whether a field carries one value.

        Args:
            non_empty: Non-empty raw values of the field
            entropy: The field's entropy metric
            type_words: Dictionary entries to strip (region or municipality types)
            dictionary: Catalog used for stripping
            cluster_entropy: Entropy ceiling for clustering (default: the
                region ceiling; municipalities pass municipality_cluster_entropy)

        Returns:
            SingleValue with the stripped value when single-valued
        """
        texts = [value for value in non_empty if isinstance(value, str)]
        if not texts or entropy is None:
            return SingleValue(one_value=False)

        counts = Counter(dictionary.strip_type_words(text, type_words) for text in texts)
        leader, leader_count = counts.most_common(1)[0]

        if entropy < self.one_value_entropy:
            return SingleValue(one_value=bool(leader), value=leader or None)

        ceiling = self.cluster_entropy if cluster_entropy is None else cluster_entropy
        if entropy < ceiling:
            covered = sum(
                count for value, count in counts.items()
                if value == leader or similarity(value, leader) > self.cluster_similarity
            )
            if leader and covered > len(texts) * self.coverage:
                return SingleValue(one_value=True, value=leader)

        return SingleValue(one_value=False)

    def best_match(self, value: str, candidates: Iterable[Tuple[str, Any]]) -> Optional[Any]:
        """
        Return the payload of the candidate most similar to `value`.

        Args:
            value: Normalized field value
            candidates: (comparable name, payload) pairs

        Returns:
            The payload with the highest similarity above the
            registry threshold, or None
        """
        best = None
        best_score = 0.0
        for name, payload in candidates:
            score = similarity(value, name)
            if score > best_score and score > self.registry_similarity:
                best, best_score = payload, score
        return best

    def resolve_region(self, value: str, registry, dictionary: DictionaryCatalog) -> Optional[Tuple[str, str]]:
        """
        Match a single region value against the region registry.

        Args:
            value: Stripped region value from single_value()
            registry: RegionRegistry
            dictionary: Catalog used to strip type words from registry names

        Returns:
            (registry region name, region database) or None
        """
        candidates = [
            (dictionary.strip_type_words(name, dictionary.region_types), (name, database))
            for name, database in registry.regions()
        ]
        return self.best_match(value, candidates)

    def resolve_municipality(
        self,
        value: str,
        region_name: str,
        registry,
        dictionary: DictionaryCatalog,
    ) -> Optional[str]:
        """Match a single municipality value inside one region; None if nothing is close enough."""
        candidates = [
            (dictionary.strip_type_words(name, dictionary.municipality_types), name)
            for name in registry.municipalities(region_name)
        ]
        return self.best_match(value, candidates)
