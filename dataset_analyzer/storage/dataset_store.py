# ==============================================
# Mongo-backed dataset readers
# ==============================================
#
# PURPOSE:
#   Read raw values from a user dataset collection
#   (rk_userDatasets.<dataset>): bounded value samples for
#   profiling, and the share of records linked to the
#   reference registry.
#
# CLASSES:
# --------
# - MongoDatasetStore   → DatasetStore protocol
#     sample_values(dataset_id, field_name, limit) -> list
#       Uses $sample when the collection holds more than `limit`
#       documents; limit <= 0 reads the full column. Missing
#       fields come back as None so fullness sees them. Driver and
#       BSON decode errors become ServiceUnavailableError.
#
# - MongoLinkageService → LinkageService protocol
#     linkage_ratio(dataset_id) -> float | None
#       Share of documents carrying the registry link field
#       (default "oarObject"); None for an empty collection.
#
# ==============================================

from typing import Any, List, Optional

from bson.errors import BSONError
from pymongo.errors import PyMongoError

from dataset_analyzer.config import DatabaseNames
from dataset_analyzer.exceptions import ServiceUnavailableError

from .mongo_client import MongoClient


def extract_path(document: Any, path: str) -> Any:
    """
    Follow a dot-notation path inside a document.

    Examples:
        extract_path({"geo": {"x": 1}}, "geo.x") → 1
        extract_path({"geo": None}, "geo.x")     → None
    """
    value = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class MongoDatasetStore:
    """Samples field values straight from the dataset collection."""

    def __init__(self, client: MongoClient, names: DatabaseNames, max_time_ms: Optional[int] = None):
        self.client = client
        self.names = names
        self.max_time_ms = max_time_ms

    def sample_values(self, dataset_id: str, field_name: str, limit: int) -> List[Any]:
        """
        Read a bounded sample of one field's values.

        Args:
            dataset_id: Dataset collection name
            field_name: Field name, dot notation for nested fields
            limit: Maximum values to read; <= 0 reads every document

        Returns:
            List of raw values (None where the field is missing)
        """
        try:
            collection = self.client.collection(self.names.datasets_db, dataset_id)
            pipeline = []
            if limit > 0 and collection.estimated_document_count() > limit:
                pipeline.append({"$sample": {"size": limit}})
            pipeline.append({"$project": {"_id": 0, field_name: 1}})

            options = {"allowDiskUse": True}
            if self.max_time_ms:
                options["maxTimeMS"] = self.max_time_ms
            documents = collection.aggregate(pipeline, **options)
            return [extract_path(document, field_name) for document in documents]
        except (PyMongoError, BSONError) as e:
            raise ServiceUnavailableError(
                f"Cannot sample {dataset_id}.{field_name}: {e}"
            ) from e


class MongoLinkageService:
    """Linkage ratio measured as the fullness of the registry link field."""

    def __init__(self, client: MongoClient, names: DatabaseNames, link_field: str = "oarObject"):
        self.client = client
        self.names = names
        self.link_field = link_field

    def linkage_ratio(self, dataset_id: str) -> Optional[float]:
        try:
            collection = self.client.collection(self.names.datasets_db, dataset_id)
            total = collection.count_documents({})
            if total == 0:
                return None
            linked = collection.count_documents({
                self.link_field: {"$exists": True, "$nin": [None, "", "null"]}
            })
        except PyMongoError as e:
            raise ServiceUnavailableError(f"Cannot measure linkage of {dataset_id}: {e}") from e
        return linked / total
