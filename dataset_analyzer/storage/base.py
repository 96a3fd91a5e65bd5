# ==============================================
# Store Interfaces
# ==============================================
#
# PURPOSE:
#   The external collaborators the analyzer reads from, as
#   structural Protocols. MongoDB / HTTP implementations live
#   next to this file; tests pass in-memory fakes.
#
# PROTOCOLS:
# ----------
# - MetadataStore
#     get_field_descriptors(dataset_id) -> list[FieldDescriptor] | None
#
# - DatasetStore
#     sample_values(dataset_id, field_name, limit) -> list
#       limit <= 0 means the full column.
#
# - LinkageService
#     linkage_ratio(dataset_id) -> float | None   (None = unknown)
#
# - PublicationCatalog
#     get_catalog_entry(dataset_id) -> CatalogEntry
#
# - RegionRegistry
#     regions() -> list[(region name, database)]
#     municipalities(region_name) -> list[str]
#
# All implementations raise ServiceUnavailableError when the
# backing service cannot answer.
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Optional, Protocol, Tuple

from dataset_analyzer.analysis.descriptor import FieldDescriptor


@dataclass(frozen=True)
class CatalogEntry:
    """What the enrichment / publication catalog knows about a dataset."""
    provenance_tags: FrozenSet[str] = field(default_factory=frozenset)
    published: bool = False


class MetadataStore(Protocol):
    def get_field_descriptors(self, dataset_id: str) -> Optional[List[FieldDescriptor]]:
        ...


class DatasetStore(Protocol):
    def sample_values(self, dataset_id: str, field_name: str, limit: int) -> List[Any]:
        ...


class LinkageService(Protocol):
    def linkage_ratio(self, dataset_id: str) -> Optional[float]:
        ...


class PublicationCatalog(Protocol):
    def get_catalog_entry(self, dataset_id: str) -> CatalogEntry:
        ...


class RegionRegistry(Protocol):
    def regions(self) -> List[Tuple[str, str]]:
        ...

    def municipalities(self, region_name: str) -> List[str]:
        ...
