# ==============================================
# MongoClient
# ==============================================
#
# PURPOSE:
#   Manages the MongoDB connection shared by every Mongo-backed
#   store (metadata, dataset values, linkage, catalog, registries).
#   Read-only: the analyzer never writes to MongoDB.
#
# CLASS: MongoClient
# ------------------
#   Stateful — holds connection to MongoDB.
#
#   Constructor:
#   ------------
#   - __init__(host, port, user=None, password=None, uri=None)
#
#   Methods:
#   --------
#   - connect() -> None
#       Establish connection to MongoDB and ping it.
#
#   - disconnect() -> None
#       Close connection.
#
#   - collection(database, name) -> pymongo Collection
#       Raises ServiceUnavailableError when not connected.
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoClient(...) as db:` usage.
#
# ==============================================

from pymongo import MongoClient as PyMongoClient
from pymongo.errors import ConnectionFailure, OperationFailure

from dataset_analyzer.config import MongoConfig
from dataset_analyzer.exceptions import ServiceUnavailableError


class MongoClient:
    def __init__(self, host="localhost", port=27017, user=None, password=None, uri=None,
                 server_selection_timeout_ms=5000):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.uri = uri
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.client = None  # Will hold the actual MongoDB client connection

    @classmethod
    def from_config(cls, config: MongoConfig) -> "MongoClient":
        return cls(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            uri=config.uri,
        )

    def _build_uri(self) -> str:
        if self.uri:
            return self.uri
        if self.user and self.password:
            return f"mongodb://{self.user}:{self.password}@{self.host}:{self.port}/"
        return f"mongodb://{self.host}:{self.port}/"

    def connect(self):
        # Establish connection to MongoDB.
        try:
            self.client = PyMongoClient(
                self._build_uri(),
                uuidRepresentation="javaLegacy",
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
            )
            # Test connection
            self.client.admin.command('ping')
            print("✓ Connected to MongoDB successfully.")
        except ConnectionFailure as e:
            print(f"✗ Could not connect to MongoDB: {e}")
            raise ServiceUnavailableError(f"MongoDB unreachable: {e}") from e
        except OperationFailure as e:
            print(f"✗ Authentication failed: {e}")
            raise ServiceUnavailableError(f"MongoDB authentication failed: {e}") from e

    def disconnect(self):
        # Close connection.
        if self.client:
            self.client.close()
            print("Disconnected from MongoDB.")
            self.client = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    def collection(self, database: str, name: str):
        if not self.client:
            raise ServiceUnavailableError("Not connected to MongoDB.")
        return self.client[database][name]

    def __enter__(self):
        # For `with MongoClient(...) as db:` usage.
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
