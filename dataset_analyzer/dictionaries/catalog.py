# ==============================================
# DictionaryCatalog
# ==============================================
#
# PURPOSE:
#   Read-only token sets used by the field classifier:
#   region types, municipality types, street types, house-part
#   types, plus the recognized geometry shape-type names.
#
# WHY THIS CLASS EXISTS:
#   Address detection is rule-based: a free-text value "looks like
#   an address" when it carries words such as "ул", "д", "обл".
#   Deployments extend these lists (other locales, abbreviations)
#   by editing dic.json, never the code.
#
# CLASS: DictionaryCatalog (frozen dataclass)
# -------------------------------------------
#   Attributes:
#   -----------
#   - region_types: frozenset[str]
#   - municipality_types: frozenset[str]
#   - street_types: frozenset[str]
#   - house_types: frozenset[str]
#   - geometry_types: tuple[str, ...]
#
#   Methods:
#   --------
#   - address_tokens() -> frozenset[str]
#       Union of the four address sets.
#
#   - match_tokens(tokens, vocabulary) -> set[str]
#       Whole-token (and whole-phrase) matches of a tokenized value.
#
#   - geometry_type_for(word) -> str | None
#       Canonical shape name for a word, case-insensitive.
#
# FUNCTIONS:
# ----------
# - tokenize(text) -> list[str]
#     Lowercase, fold "ё" to "е", split on whitespace and punctuation.
#     Hyphens stay inside tokens so "р-н" survives.
#
# - load_catalog(path=None) -> DictionaryCatalog
# - get_catalog() -> DictionaryCatalog   (process-wide singleton)
#
# ==============================================

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from dataset_analyzer.exceptions import ConfigurationError


DEFAULT_DICTIONARY_PATH = Path(__file__).parent / "dic.json"

# Keys as they appear in dic.json
REGION_KEY = "regionTypes"
MUNICIPALITY_KEY = "municipalitetTypes"
STREET_KEY = "streetTypes"
HOUSE_KEY = "houseTypes"
GEOMETRY_KEY = "geometryTypes"

_TOKEN_SPLIT = re.compile(r"[\s.,;:!?()\[\]{}\"'«»/\\№#]+")


def normalize_word(word: str) -> str:
    """Lowercase and fold "ё" so "посёлок" and "поселок" compare equal."""
    return word.strip().lower().replace("ё", "е")


def tokenize(text: str) -> List[str]:
    """
    Split a value into lowercase word tokens.

    Examples:
        "г. Москва, ул.Ленина, д.5" → ["г", "москва", "ул", "ленина", "д", "5"]
        "Кировский р-н"             → ["кировский", "р-н"]
    """
    tokens = []
    for raw in _TOKEN_SPLIT.split(text):
        token = normalize_word(raw).strip("-")
        if token:
            tokens.append(token)
    return tokens


def _normalize_entries(entries: Iterable[str]) -> FrozenSet[str]:
    return frozenset(
        " ".join(tokenize(entry)) for entry in entries if tokenize(entry)
    )


@dataclass(frozen=True)
class DictionaryCatalog:
    """
    Immutable token dictionaries shared by every evaluation.

    Multi-word entries ("поселок городского типа") are kept as
    space-joined token sequences and matched as consecutive tokens.
    """

    region_types: FrozenSet[str]
    municipality_types: FrozenSet[str]
    street_types: FrozenSet[str]
    house_types: FrozenSet[str]
    geometry_types: Tuple[str, ...]
    _geometry_lookup: Dict[str, str] = field(default_factory=dict, repr=False, compare=False)
    _max_phrase: int = field(default=1, repr=False, compare=False)

    def __post_init__(self):
        # frozen dataclass: derived lookups go through object.__setattr__
        object.__setattr__(
            self,
            "_geometry_lookup",
            {name.lower(): name for name in self.geometry_types},
        )
        longest = max(
            (entry.count(" ") + 1 for entry in self.address_tokens()),
            default=1,
        )
        object.__setattr__(self, "_max_phrase", longest)

    @classmethod
    def from_dict(cls, data: Dict[str, List[str]]) -> "DictionaryCatalog":
        """
        Build a catalog from the dic.json layout.

        Args:
            data: Mapping with regionTypes / municipalitetTypes /
                  streetTypes / houseTypes / geometryTypes lists

        Returns:
            A DictionaryCatalog instance
        """
        missing = [
            key for key in (REGION_KEY, MUNICIPALITY_KEY, STREET_KEY, HOUSE_KEY, GEOMETRY_KEY)
            if key not in data
        ]
        if missing:
            raise ConfigurationError(f"Dictionary is missing keys: {', '.join(missing)}")

        return cls(
            region_types=_normalize_entries(data[REGION_KEY]),
            municipality_types=_normalize_entries(data[MUNICIPALITY_KEY]),
            street_types=_normalize_entries(data[STREET_KEY]),
            house_types=_normalize_entries(data[HOUSE_KEY]),
            geometry_types=tuple(name.strip() for name in data[GEOMETRY_KEY] if name.strip()),
        )

    def address_tokens(self) -> FrozenSet[str]:
        """Union of region, municipality, street and house dictionaries."""
        return self.region_types | self.municipality_types | self.street_types | self.house_types

    def match_tokens(self, tokens: List[str], vocabulary: Optional[FrozenSet[str]] = None) -> Set[str]:
        """
        Return the dictionary entries found in a token list.

        Only whole tokens (or whole consecutive token runs for
        multi-word entries) count: "пр" never matches inside "прогресс".

        Args:
            tokens: Output of tokenize()
            vocabulary: Entries to look for (default: all address tokens)
        """
        vocabulary = self.address_tokens() if vocabulary is None else vocabulary
        found = set()
        for size in range(1, self._max_phrase + 1):
            for start in range(0, len(tokens) - size + 1):
                phrase = " ".join(tokens[start:start + size])
                if phrase in vocabulary:
                    found.add(phrase)
        return found

    def geometry_type_for(self, word: str) -> Optional[str]:
        """Canonical geometry shape name for a word, or None."""
        return self._geometry_lookup.get(word.strip().lower())

    def strip_type_words(self, text: str, vocabulary: FrozenSet[str]) -> str:
        """
        Remove type words from a value: "Московская обл." → "московская".

        Used to compare region / municipality names regardless of
        how the type part is spelled.
        """
        tokens = tokenize(text)
        kept = []
        index = 0
        while index < len(tokens):
            skipped = False
            for size in range(self._max_phrase, 0, -1):
                phrase = " ".join(tokens[index:index + size])
                if index + size <= len(tokens) and phrase in vocabulary:
                    index += size
                    skipped = True
                    break
            if not skipped:
                kept.append(tokens[index])
                index += 1
        return " ".join(kept)


def load_catalog(path: Optional[str] = None) -> DictionaryCatalog:
    """
    Load the dictionary catalog from a JSON file.

    Args:
        path: Path to a dic.json-shaped file. Defaults to the
              dictionary shipped with the package.

    Returns:
        DictionaryCatalog
    """
    dictionary_path = Path(path) if path else DEFAULT_DICTIONARY_PATH
    try:
        with open(dictionary_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read dictionary {dictionary_path}: {e}") from e
    return DictionaryCatalog.from_dict(data)


# Singleton instances, keyed by source path
_catalogs: Dict[str, DictionaryCatalog] = {}


def get_catalog(path: Optional[str] = None) -> DictionaryCatalog:
    """
    Return the process-wide catalog for a dictionary file.
    Returns the same instance on repeated calls.
    """
    key = str(Path(path).resolve()) if path else "<default>"
    if key not in _catalogs:
        _catalogs[key] = load_catalog(path)
    return _catalogs[key]
