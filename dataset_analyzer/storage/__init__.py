# ==============================================
# TOPIC 3: STORAGE (MongoDB + linkage service)
# ==============================================
#
# This package handles every read from the external collaborators:
# the metadata store, the raw dataset store, the linkage service,
# the publication catalog and the region registries.
#
# Modules:
# --------
# - base.py            → Store Protocols + CatalogEntry
# - mongo_client.py    → MongoDB connection
# - metadata_store.py  → Structure, publication catalog, region registry
# - dataset_store.py   → Value samples, linkage ratio from link field
# - linkage_client.py  → Linkage ratio from an HTTP service
#
# ==============================================

from .base import (
    CatalogEntry,
    DatasetStore,
    LinkageService,
    MetadataStore,
    PublicationCatalog,
    RegionRegistry,
)
from .dataset_store import MongoDatasetStore, MongoLinkageService
from .linkage_client import HttpLinkageService
from .metadata_store import MongoMetadataStore, MongoPublicationCatalog, MongoRegionRegistry
from .mongo_client import MongoClient

__all__ = [
    "CatalogEntry",
    "DatasetStore",
    "HttpLinkageService",
    "LinkageService",
    "MetadataStore",
    "MongoClient",
    "MongoDatasetStore",
    "MongoLinkageService",
    "MongoMetadataStore",
    "MongoPublicationCatalog",
    "MongoRegionRegistry",
    "PublicationCatalog",
    "RegionRegistry",
]
