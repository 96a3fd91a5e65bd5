# ==============================================
# Mongo-backed metadata, catalog and registry readers
# ==============================================
#
# PURPOSE:
#   Read everything the metadata database knows about a dataset:
#   its field structure, its publication state, and the reference
#   registries of regions and municipalities.
#
# COLLECTIONS (names from DatabaseNames):
# ---------------------------------------
#   rk_metadata.datasetsStructure
#       {database, dataset, fields: [{name, type, feature?, provenance?}]}
#   rk_metadata.userDatasets
#       {dataset, geoportalLayerId?}
#   rk_metadata.regionState
#       {region, database}
#   rk_common.municipalitets
#       {region, name}
#
# CLASSES:
# --------
# - MongoMetadataStore     → MetadataStore protocol
# - MongoPublicationCatalog → PublicationCatalog protocol
# - MongoRegionRegistry    → RegionRegistry protocol
#
# ==============================================

from typing import Any, Dict, List, Optional, Set, Tuple

from pymongo.errors import PyMongoError

from dataset_analyzer.analysis.descriptor import FieldDescriptor
from dataset_analyzer.config import DatabaseNames
from dataset_analyzer.exceptions import ServiceUnavailableError

from .base import CatalogEntry
from .mongo_client import MongoClient


PUBLICATION_MARKER = "geoportalLayerId"


def _is_named(field_doc: Dict[str, Any]) -> bool:
    # Structure documents sometimes carry blank placeholder fields
    name = field_doc.get("name")
    return isinstance(name, str) and name.strip() != ""


class MongoMetadataStore:
    """Reads field descriptors from the datasetsStructure collection."""

    def __init__(self, client: MongoClient, names: DatabaseNames):
        self.client = client
        self.names = names

    def _structure(self, dataset_id: str) -> Optional[Dict[str, Any]]:
        structure = self.client.collection(self.names.metadata_db, self.names.structure_collection)
        return structure.find_one({
            "database": self.names.datasets_db,
            "dataset": dataset_id,
        })

    def _indexed_names(self, dataset_id: str) -> Set[str]:
        """Field names covered by a regular index key or a text-index weight."""
        data = self.client.collection(self.names.datasets_db, dataset_id)
        names: Set[str] = set()
        for index in data.list_indexes():
            names.update((index.get("key") or {}).keys())
            names.update((index.get("weights") or {}).keys())
        return names

    def get_field_descriptors(self, dataset_id: str) -> Optional[List[FieldDescriptor]]:
        """
        Load descriptors for every named field of a dataset.

        Args:
            dataset_id: Dataset collection name, e.g. "ud_1_640b08cb..."

        Returns:
            List of FieldDescriptor, or None if the dataset has no
            structure document
        """
        try:
            struct = self._structure(dataset_id)
            if struct is None:
                return None
            indexed = self._indexed_names(dataset_id)
        except PyMongoError as e:
            raise ServiceUnavailableError(f"Cannot read structure of {dataset_id}: {e}") from e

        return [
            FieldDescriptor.from_document(field_doc, indexed=field_doc["name"] in indexed)
            for field_doc in struct.get("fields") or []
            if _is_named(field_doc)
        ]


class MongoPublicationCatalog:
    """
    Publication flag from userDatasets, provenance tags from the
    dataset structure (field names + "provenance" attributes).
    """

    def __init__(self, client: MongoClient, names: DatabaseNames):
        self.client = client
        self.names = names

    def get_catalog_entry(self, dataset_id: str) -> CatalogEntry:
        try:
            datasets = self.client.collection(self.names.metadata_db, self.names.datasets_collection)
            user_dataset = datasets.find_one({"dataset": dataset_id})
            structure = self.client.collection(self.names.metadata_db, self.names.structure_collection)
            struct = structure.find_one({
                "database": self.names.datasets_db,
                "dataset": dataset_id,
            })
        except PyMongoError as e:
            raise ServiceUnavailableError(f"Cannot read catalog entry of {dataset_id}: {e}") from e

        tags: Set[str] = set()
        for field_doc in (struct or {}).get("fields") or []:
            if not _is_named(field_doc):
                continue
            tags.add(field_doc["name"])
            if field_doc.get("provenance"):
                tags.add(str(field_doc["provenance"]))

        published = user_dataset is not None and PUBLICATION_MARKER in user_dataset
        return CatalogEntry(provenance_tags=frozenset(tags), published=published)


class MongoRegionRegistry:
    """Regions (regionState) and municipalities (rk_common.municipalitets)."""

    DEBUG_MARKER = "(debug)"

    def __init__(self, client: MongoClient, names: DatabaseNames):
        self.client = client
        self.names = names

    def regions(self) -> List[Tuple[str, str]]:
        try:
            collection = self.client.collection(self.names.metadata_db, self.names.region_collection)
            docs = list(collection.find({}, {"region": 1, "database": 1}))
        except PyMongoError as e:
            raise ServiceUnavailableError(f"Cannot read region registry: {e}") from e
        return [
            (doc["region"], doc["database"])
            for doc in docs
            if isinstance(doc.get("region"), str)
            and doc.get("database")
            and self.DEBUG_MARKER not in doc["region"]
        ]

    def municipalities(self, region_name: str) -> List[str]:
        try:
            collection = self.client.collection(self.names.common_db, self.names.municipality_collection)
            docs = list(collection.find({"region": region_name}, {"name": 1}))
        except PyMongoError as e:
            raise ServiceUnavailableError(f"Cannot read municipality registry: {e}") from e
        return [doc["name"] for doc in docs if isinstance(doc.get("name"), str)]
