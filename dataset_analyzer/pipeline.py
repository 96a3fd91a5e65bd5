"""
==============================================
AnalysisPipeline — Final Orchestrator
==============================================

This module wires the MongoDB-backed stores, the rule components
and the DatasetAggregator together, and adds the job modes the
analyzer runs in: one dataset, one task document, or every
registered dataset.

USAGE EXAMPLES:

1. Analyze one dataset:
    from dataset_analyzer.pipeline import AnalysisPipeline

    with AnalysisPipeline() as pipeline:
        result = pipeline.analyze_dataset("ud_1_640b08cb0b2a2b3c")
        print(result.recommendations.offered())

2. Analyze the dataset named by a task document:
    with AnalysisPipeline() as pipeline:
        pipeline.analyze_task("65f0c2a1e4b0a1b2c3d4e5f6")

3. Analyze every dataset in userDatasets:
    with AnalysisPipeline() as pipeline:
        results = pipeline.analyze_all()
"""

from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import PyMongoError

from dataset_analyzer.aggregator import DatasetAggregator, EvaluationResult
from dataset_analyzer.analysis.classifier import FieldClassifier
from dataset_analyzer.analysis.field_metrics import MetricCalculator
from dataset_analyzer.analysis.value_parser import PLAUSIBLE_REGIONS, ValueParser
from dataset_analyzer.cache import MetricsCache
from dataset_analyzer.config import AppConfig, get_config
from dataset_analyzer.dictionaries.catalog import get_catalog
from dataset_analyzer.exceptions import ServiceUnavailableError, TaskNotFoundError
from dataset_analyzer.persistence.progress_store import ProgressStore
from dataset_analyzer.storage.dataset_store import MongoDatasetStore, MongoLinkageService
from dataset_analyzer.storage.linkage_client import HttpLinkageService
from dataset_analyzer.storage.metadata_store import (
    MongoMetadataStore,
    MongoPublicationCatalog,
    MongoRegionRegistry,
)
from dataset_analyzer.storage.mongo_client import MongoClient


class AnalysisPipeline:
    """
    High-level wrapper around DatasetAggregator for the analyzer's
    job modes. Owns the MongoDB connection and the progress file.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        client: Optional[MongoClient] = None,
        progress_store: Optional[ProgressStore] = None,
    ):
        """
        Initialize the pipeline with all components.

        Args:
            config: Optional configuration. If None, loads from environment.
            client: Optional MongoClient; connected here if it is not yet.
            progress_store: Optional ProgressStore (default: profiler.progress_file)
        """
        self._config = config or get_config()
        names = self._config.databases
        profiler = self._config.profiler

        self._client = client or MongoClient.from_config(self._config.mongo)
        if not self._client.is_connected:
            self._client.connect()

        # Rule components
        parser = ValueParser(profiler.date_formats)
        calculator = MetricCalculator(parser, PLAUSIBLE_REGIONS[profiler.adequacy_region])
        classifier = FieldClassifier(self._config.classification, parser=parser)
        dictionary = get_catalog(profiler.dictionary_path)

        # External stores
        if profiler.linkage_service_url:
            linkage_service = HttpLinkageService(
                profiler.linkage_service_url, timeout=profiler.fetch_timeout_seconds
            )
        else:
            linkage_service = MongoLinkageService(self._client, names, link_field=profiler.linkage_field)

        self._aggregator = DatasetAggregator(
            metadata_store=MongoMetadataStore(self._client, names),
            dataset_store=MongoDatasetStore(
                self._client, names, max_time_ms=int(profiler.fetch_timeout_seconds * 1000)
            ),
            linkage_service=linkage_service,
            catalog=MongoPublicationCatalog(self._client, names),
            region_registry=MongoRegionRegistry(self._client, names),
            calculator=calculator,
            classifier=classifier,
            dictionary=dictionary,
            thresholds=self._config.aggregation,
            sample_size=profiler.sample_size,
            max_workers=profiler.max_workers,
            timeout=profiler.fetch_timeout_seconds,
            cache=MetricsCache() if profiler.use_cache else None,
        )
        self._progress = progress_store or ProgressStore(profiler.progress_file)

    @property
    def aggregator(self) -> DatasetAggregator:
        return self._aggregator

    @property
    def progress(self) -> ProgressStore:
        return self._progress

    def analyze_dataset(self, dataset_id: str, sample_size: Optional[int] = None) -> EvaluationResult:
        """
        Evaluate one dataset and print the offered operations.

        Args:
            dataset_id: Dataset collection name
            sample_size: Values per field (None = configured default)

        Returns:
            EvaluationResult
        """
        print(f"🔍 Analyzing dataset {dataset_id}")
        result = self._aggregator.evaluate(dataset_id, sample_size=sample_size)
        if result.ok:
            offered = ", ".join(op.value for op in result.recommendations.offered())
            print(f"   → Offered: {offered}")
        else:
            print(f"   ✗ Cannot evaluate: {result.error}")
        return result

    def analyze_task(self, task_id: str) -> EvaluationResult:
        """
        Evaluate the dataset named by a task document.

        The task document lives in <tasks_db>.<tasks_collection> and
        carries "dataset" and, optionally, "recordsToProcess".

        Raises:
            TaskNotFoundError: Unknown task id or task without a dataset
        """
        names = self._config.databases
        try:
            task = self._client.collection(names.tasks_db, names.tasks_collection).find_one(
                {"_id": ObjectId(task_id)}
            )
        except InvalidId:
            task = None
        except PyMongoError as e:
            self._progress.write_error(f"cannot read task {task_id}: {e}")
            raise ServiceUnavailableError(f"Cannot read task {task_id}: {e}") from e

        if task is None:
            self._progress.write_error(f"task {task_id} not found")
            raise TaskNotFoundError(f"task {task_id} not found")

        dataset_id = task.get("dataset")
        if not dataset_id:
            self._progress.write_error("dataset id not set")
            raise TaskNotFoundError(f"task {task_id} has no dataset")

        records = task.get("recordsToProcess")
        print(f"analyzing task {task_id}")
        result = self.analyze_dataset(dataset_id, sample_size=int(records) if records is not None else None)

        if result.ok:
            self._progress.write_complete(1)
        else:
            self._progress.write_error(f"{dataset_id}: {result.error}")
        return result

    def analyze_all(self) -> List[EvaluationResult]:
        """
        Evaluate every dataset registered in userDatasets, writing
        progress after each one.

        Returns:
            One EvaluationResult per registered dataset
        """
        names = self._config.databases
        try:
            collection = self._client.collection(names.metadata_db, names.datasets_collection)
            count = collection.count_documents({})
            dataset_ids = [
                doc["dataset"]
                for doc in collection.find({}, {"dataset": 1})
                if doc.get("dataset")
            ]
        except PyMongoError as e:
            self._progress.write_error(f"cannot list datasets: {e}")
            raise ServiceUnavailableError(f"Cannot list datasets: {e}") from e

        results = []
        for progress, dataset_id in enumerate(dataset_ids, start=1):
            result = self.analyze_dataset(dataset_id)
            results.append(result)
            if not result.ok:
                self._progress.write_error(f"{dataset_id}: {result.error}")
            self._progress.write_progress(progress / max(count, 1), progress)
            print(f"{progress} / {count}")

        self._progress.write_complete(len(results))
        return results

    def close(self) -> None:
        """Close the MongoDB connection."""
        self._client.disconnect()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
