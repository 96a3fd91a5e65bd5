# ==============================================
# DatasetAggregator — Dataset Orchestrator
# ==============================================
#
# PURPOSE:
#   Ties the field-level components together for ONE dataset:
#   reads descriptors, samples every field in parallel, computes
#   metrics + classification per field, joins, then folds the
#   field results into the seven dataset predicates and applies
#   the decision table.
#
# FLOW:
#
#   MetadataStore.get_field_descriptors(dataset_id)
#          │  (failure / no fields → CANNOT_EVALUATE, stop)
#          ▼
#   ┌───────────────────── ThreadPoolExecutor ─────────────────────┐
#   │  per field: DatasetStore.sample_values → MetricCalculator    │
#   │             → FieldClassifier → RegionMatcher.single_value   │
#   │  (timeout / cancel / store failure → UNSCORED field)         │
#   └──────────────────────────────┬───────────────────────────────┘
#                                  │ join (all fields)
#                                  ▼
#   RegionRegistry lookups → LinkageService → PublicationCatalog
#                                  │
#                                  ▼
#   DatasetPredicates → recommend() → EvaluationResult
#
# CLASSES:
# --------
# - FieldStatus(Enum): SCORED, UNSCORED
# - FieldReport (frozen dataclass): one field's outcome
# - EvaluationStatus(Enum): OK, CANNOT_EVALUATE
# - EvaluationResult (frozen dataclass): predicates, recommendations,
#       field reports, warnings
#
# - DatasetAggregator
#     evaluate(dataset_id, sample_size=None, timeout=None, cancel_event=None)
#         -> EvaluationResult
#       Concurrent calls for the same dataset share one evaluation.
#     aggregate(dataset_id) -> DatasetPredicates
#       Raises CannotEvaluateError when evaluate() cannot.
#
# ==============================================

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dataset_analyzer.analysis.classifier import FieldClassification, FieldClassifier
from dataset_analyzer.analysis.decision import (
    AggregationThresholds,
    DatasetPredicates,
    RecommendationSet,
    recommend,
)
from dataset_analyzer.analysis.descriptor import (
    AddressRole,
    FieldDescriptor,
    FieldType,
    parse_address_role,
)
from dataset_analyzer.analysis.field_metrics import FieldMetrics, MetricCalculator
from dataset_analyzer.analysis.region_matcher import RegionMatcher, SingleValue
from dataset_analyzer.cache import MetricsCache, SingleFlight, sample_checksum
from dataset_analyzer.dictionaries.catalog import DictionaryCatalog, get_catalog
from dataset_analyzer.exceptions import (
    CannotEvaluateError,
    ConfigurationError,
    ServiceUnavailableError,
)
from dataset_analyzer.storage.base import (
    DatasetStore,
    LinkageService,
    MetadataStore,
    PublicationCatalog,
    RegionRegistry,
)


METRICS_UNAVAILABLE = "metrics unavailable"
NO_VALUES = "no values sampled"

# Wait slice while polling a field future for cancellation
_POLL_SECONDS = 0.05


class FieldStatus(Enum):
    SCORED = "scored"
    UNSCORED = "unscored"


class EvaluationStatus(Enum):
    OK = "ok"
    CANNOT_EVALUATE = "cannot_evaluate"


@dataclass(frozen=True)
class FieldReport:
    """Outcome for one field of one evaluation."""

    descriptor: FieldDescriptor
    status: FieldStatus
    metrics: Optional[FieldMetrics] = None
    classification: FieldClassification = FieldClassification()
    reason: Optional[str] = None
    single_value: Optional[SingleValue] = None

    @property
    def is_scored(self) -> bool:
        return self.status == FieldStatus.SCORED

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "field": self.descriptor.to_dict(),
            "status": self.status.value,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "classification": self.classification.to_dict(),
        }
        if self.reason:
            result["reason"] = self.reason
        if self.single_value is not None:
            result["singleValue"] = self.single_value.to_dict()
        return result


@dataclass(frozen=True)
class EvaluationResult:
    """Everything one evaluation of a dataset produced."""

    dataset_id: str
    status: EvaluationStatus
    predicates: Optional[DatasetPredicates] = None
    recommendations: Optional[RecommendationSet] = None
    fields: Tuple[FieldReport, ...] = ()
    warnings: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == EvaluationStatus.OK

    def field(self, name: str) -> Optional[FieldReport]:
        for report in self.fields:
            if report.descriptor.name == name:
                return report
        return None

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the result for JSON output.

        Returns:
            Dictionary with dataset, status, predicates, recommendations,
            fields and warnings (error only when the dataset could not
            be evaluated)
        """
        result = {
            "dataset": self.dataset_id,
            "status": self.status.value,
            "predicates": self.predicates.to_dict() if self.predicates else None,
            "recommendations": self.recommendations.to_dict() if self.recommendations else None,
            "fields": [report.to_dict() for report in self.fields],
            "warnings": list(self.warnings),
        }
        if self.error:
            result["error"] = self.error
        return result


class _FieldUnavailable(Exception):
    """A field sample could not be read in time."""


class DatasetAggregator:
    """
    Evaluates datasets: field profiling in parallel, then predicates
    and recommendations. Holds no per-dataset state between calls.
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        dataset_store: DatasetStore,
        linkage_service: Optional[LinkageService] = None,
        catalog: Optional[PublicationCatalog] = None,
        region_registry: Optional[RegionRegistry] = None,
        calculator: Optional[MetricCalculator] = None,
        classifier: Optional[FieldClassifier] = None,
        dictionary: Optional[DictionaryCatalog] = None,
        thresholds: Optional[AggregationThresholds] = None,
        region_matcher: Optional[RegionMatcher] = None,
        sample_size: int = 10000,
        max_workers: int = 8,
        timeout: Optional[float] = 30.0,
        cache: Optional[MetricsCache] = None,
        verbose: bool = True,
    ):
        """
        Initialize the aggregator with its stores and rule components.

        Args:
            metadata_store: Source of field descriptors
            dataset_store: Source of raw value samples
            linkage_service: Linkage ratio source (None → is_connected False + warning)
            catalog: Publication / enrichment catalog (None → both False + warning)
            region_registry: Region and municipality registries (optional)
            sample_size: Default values sampled per field (<= 0 = full column)
            max_workers: Worker threads for per-field profiling
            timeout: Seconds to wait for all field samples (None = no limit)
            cache: Optional MetricsCache shared between evaluations
            verbose: Print status lines
        """
        self.metadata_store = metadata_store
        self.dataset_store = dataset_store
        self.linkage_service = linkage_service
        self.catalog = catalog
        self.region_registry = region_registry
        self.calculator = calculator or MetricCalculator()
        self.classifier = classifier or FieldClassifier()
        self.dictionary = dictionary or get_catalog()
        self.thresholds = thresholds or AggregationThresholds()
        self.region_matcher = region_matcher or RegionMatcher()
        self.sample_size = sample_size
        self.max_workers = max_workers
        self.timeout = timeout
        self.cache = cache
        self.verbose = verbose
        self.required_roles = self._parse_roles(self.thresholds.required_address_roles)
        self._flight = SingleFlight()

    @staticmethod
    def _parse_roles(names: Sequence[str]) -> Tuple[AddressRole, ...]:
        roles = []
        for name in names:
            role = parse_address_role(name)
            if role is None:
                raise ConfigurationError(f"Unknown address role: {name!r}")
            roles.append(role)
        return tuple(roles)

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    # ------------------------------------------
    # Public API
    # ------------------------------------------

    def evaluate(
        self,
        dataset_id: str,
        sample_size: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> EvaluationResult:
        """
        Evaluate one dataset.

        Concurrent calls with the same dataset and sample size share a
        single in-flight evaluation (the first caller's timeout and
        cancel token apply to it).

        Args:
            dataset_id: Dataset identifier
            sample_size: Values per field; defaults to the aggregator's
            timeout: Seconds to wait for field samples; defaults to the aggregator's
            cancel_event: Set it to give up on fields still being sampled

        Returns:
            EvaluationResult
        """
        limit = self.sample_size if sample_size is None else sample_size
        wait = self.timeout if timeout is None else timeout
        return self._flight.do(
            (dataset_id, limit),
            lambda: self._evaluate(dataset_id, limit, wait, cancel_event),
        )

    def aggregate(self, dataset_id: str) -> DatasetPredicates:
        """
        Dataset predicates only.

        Raises:
            CannotEvaluateError: No field descriptors could be read
        """
        result = self.evaluate(dataset_id)
        if not result.ok:
            raise CannotEvaluateError(result.error or f"Cannot evaluate {dataset_id}")
        return result.predicates

    # ------------------------------------------
    # Evaluation
    # ------------------------------------------

    def _evaluate(
        self,
        dataset_id: str,
        limit: int,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> EvaluationResult:
        start_time = time.time()
        warnings: List[str] = []

        try:
            descriptors = self.metadata_store.get_field_descriptors(dataset_id)
        except ServiceUnavailableError as e:
            self._log(f"✗ {dataset_id}: cannot read field descriptors: {e}")
            return EvaluationResult(
                dataset_id=dataset_id,
                status=EvaluationStatus.CANNOT_EVALUATE,
                error=f"metadata store unavailable: {e}",
            )
        if not descriptors:
            self._log(f"✗ {dataset_id}: no fields known")
            return EvaluationResult(
                dataset_id=dataset_id,
                status=EvaluationStatus.CANNOT_EVALUATE,
                error="no field descriptors",
            )

        reports = self._profile_fields(dataset_id, descriptors, limit, timeout, cancel_event, warnings)
        reports = self._resolve_registry(reports, warnings)

        predicates = self._predicates(dataset_id, reports, warnings)
        recommendations = recommend(predicates)

        elapsed_ms = int((time.time() - start_time) * 1000)
        self._log(f"✓ {dataset_id}: analyze time {elapsed_ms} ms")
        for warning in warnings:
            self._log(f"  ⚠ {warning}")

        return EvaluationResult(
            dataset_id=dataset_id,
            status=EvaluationStatus.OK,
            predicates=predicates,
            recommendations=recommendations,
            fields=tuple(reports),
            warnings=tuple(warnings),
        )

    def _profile_fields(
        self,
        dataset_id: str,
        descriptors: Sequence[FieldDescriptor],
        limit: int,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
        warnings: List[str],
    ) -> List[FieldReport]:
        """Fan out one job per field, then join every job."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        executor = ThreadPoolExecutor(max_workers=max(1, self.max_workers))
        try:
            futures = [
                executor.submit(self._profile_field, dataset_id, descriptor, descriptors, limit, cancel_event)
                for descriptor in descriptors
            ]
            reports = []
            for descriptor, future in zip(descriptors, futures):
                try:
                    reports.append(self._await_field(future, deadline, cancel_event))
                except _FieldUnavailable as e:
                    warnings.append(f"{descriptor.name}: {METRICS_UNAVAILABLE} ({e})")
                    reports.append(FieldReport(
                        descriptor=descriptor,
                        status=FieldStatus.UNSCORED,
                        reason=METRICS_UNAVAILABLE,
                    ))
            return reports
        finally:
            # Do not block on samples that are still being read
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _await_field(
        future: Future,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> FieldReport:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                future.cancel()
                raise _FieldUnavailable("cancelled")
            wait = _POLL_SECONDS
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0 and not future.done():
                    future.cancel()
                    raise _FieldUnavailable("timed out")
                wait = max(0.0, min(wait, remaining))
            try:
                return future.result(timeout=wait)
            except FutureTimeoutError:
                continue
            except ServiceUnavailableError as e:
                raise _FieldUnavailable(str(e)) from e

    def _profile_field(
        self,
        dataset_id: str,
        descriptor: FieldDescriptor,
        siblings: Sequence[FieldDescriptor],
        limit: int,
        cancel_event: Optional[threading.Event],
    ) -> FieldReport:
        # Runs on a worker thread
        if cancel_event is not None and cancel_event.is_set():
            raise _FieldUnavailable("cancelled")
        values = self.dataset_store.sample_values(dataset_id, descriptor.name, limit)

        if self.cache is None:
            return self._score_field(descriptor, values, siblings)
        # Classification depends on the sibling fields, not only the sample
        key = (
            dataset_id,
            descriptor,
            tuple(sorted(siblings, key=lambda sibling: sibling.name)),
            sample_checksum(values),
        )
        return self.cache.get_or_compute(key, lambda: self._score_field(descriptor, values, siblings))

    def _score_field(
        self,
        descriptor: FieldDescriptor,
        values: Sequence[Any],
        siblings: Sequence[FieldDescriptor],
    ) -> FieldReport:
        """Metrics, classification and single-value detection for one sample."""
        metrics = self.calculator.compute_metrics(
            descriptor.declared_type, values, indexed=descriptor.indexed
        )
        if not metrics.is_scored:
            return FieldReport(
                descriptor=descriptor,
                status=FieldStatus.UNSCORED,
                metrics=metrics,
                reason=NO_VALUES,
            )

        classification = self.classifier.classify(descriptor, values, self.dictionary, siblings)
        non_empty = self.calculator.non_empty_values(values)

        # Text geometry in a string column is also a geometry candidate
        if classification.geometry_source == "text" and metrics.validness is None:
            metrics = metrics.with_geometry(*self.calculator.geometry_quality(non_empty))

        single_value = None
        if descriptor.role == AddressRole.REGION:
            single_value = self.region_matcher.single_value(
                non_empty, metrics.entropy, self.dictionary.region_types, self.dictionary
            )
        elif descriptor.role == AddressRole.MUNICIPALITY:
            single_value = self.region_matcher.single_value(
                non_empty,
                metrics.entropy,
                self.dictionary.municipality_types,
                self.dictionary,
                cluster_entropy=self.region_matcher.municipality_cluster_entropy,
            )

        return FieldReport(
            descriptor=descriptor,
            status=FieldStatus.SCORED,
            metrics=metrics,
            classification=classification,
            single_value=single_value,
        )

    def _resolve_registry(self, reports: List[FieldReport], warnings: List[str]) -> List[FieldReport]:
        """
        Look single-valued region / municipality fields up in the
        registries. Municipalities only count inside a single region.
        """
        region_name = None
        region_single = False
        resolved = list(reports)

        for index, report in enumerate(resolved):
            single = report.single_value
            if report.descriptor.role != AddressRole.REGION or single is None or not single.one_value:
                continue
            region_single = True
            if self.region_registry is None:
                continue
            try:
                match = self.region_matcher.resolve_region(single.value, self.region_registry, self.dictionary)
            except ServiceUnavailableError as e:
                warnings.append(f"region registry unavailable: {e}")
                continue
            if match:
                region_name, database = match
                resolved[index] = replace(report, single_value=replace(single, database=database))

        for index, report in enumerate(resolved):
            single = report.single_value
            if report.descriptor.role != AddressRole.MUNICIPALITY or single is None:
                continue
            if not region_single:
                resolved[index] = replace(report, single_value=None)
                continue
            if not single.one_value or region_name is None or self.region_registry is None:
                continue
            try:
                name = self.region_matcher.resolve_municipality(
                    single.value, region_name, self.region_registry, self.dictionary
                )
            except ServiceUnavailableError as e:
                warnings.append(f"municipality registry unavailable: {e}")
                continue
            if name:
                resolved[index] = replace(report, single_value=replace(single, municipality=name))

        return resolved

    # ------------------------------------------
    # Predicates
    # ------------------------------------------

    def _predicates(self, dataset_id: str, reports: Sequence[FieldReport], warnings: List[str]) -> DatasetPredicates:
        scored = [report for report in reports if report.is_scored]
        is_connected = self._is_connected(dataset_id, warnings)
        is_enriched, is_published = self._catalog_flags(dataset_id, warnings)

        return DatasetPredicates(
            has_address_features=any(r.classification.is_address_feature for r in scored),
            has_geometry_features=any(r.classification.is_geometry_feature for r in scored),
            has_address=self._has_address(reports, warnings),
            has_geometry=self._has_geometry(scored, warnings),
            is_connected=is_connected,
            is_enriched=is_enriched,
            is_published=is_published,
        )

    def _has_address(self, reports: Sequence[FieldReport], warnings: List[str]) -> bool:
        """Every required role is carried by a scored, full enough field."""
        if not self.required_roles:
            return False
        for role in self.required_roles:
            carriers = [r for r in reports if r.descriptor.role == role]
            if any(not r.is_scored for r in carriers):
                names = ", ".join(r.descriptor.name for r in carriers if not r.is_scored)
                warnings.append(f"address role {role.value} has unscored fields: {names}")
            if not any(
                r.is_scored and r.metrics.fullness >= self.thresholds.address_min_fullness
                for r in carriers
            ):
                return False
        return True

    def _has_geometry(self, scored: Sequence[FieldReport], warnings: List[str]) -> bool:
        """Exactly one declared geometry field passes all three quality minimums."""
        passing = [
            r.descriptor.name for r in scored
            if r.descriptor.declared_type == FieldType.GEOMETRY and self._geometry_passes(r.metrics)
        ]
        if len(passing) > 1:
            warnings.append(f"several geometry fields qualify: {', '.join(passing)}")
        return len(passing) == 1

    def _geometry_passes(self, metrics: FieldMetrics) -> bool:
        t = self.thresholds
        return (
            metrics.fullness is not None and metrics.fullness >= t.geometry_min_fullness
            and metrics.validness is not None and metrics.validness >= t.geometry_min_validness
            and metrics.adequacy is not None and metrics.adequacy >= t.geometry_min_adequacy
        )

    def _is_connected(self, dataset_id: str, warnings: List[str]) -> bool:
        if self.linkage_service is None:
            warnings.append("linkage service not configured; is_connected = false")
            return False
        try:
            ratio = self.linkage_service.linkage_ratio(dataset_id)
        except ServiceUnavailableError as e:
            warnings.append(f"linkage service unavailable: {e}")
            return False
        if ratio is None:
            return False
        return ratio >= self.thresholds.min_linkage_ratio

    def _catalog_flags(self, dataset_id: str, warnings: List[str]) -> Tuple[bool, bool]:
        """(is_enriched, is_published)"""
        if self.catalog is None:
            warnings.append("catalog not configured; is_enriched = is_published = false")
            return False, False
        try:
            entry = self.catalog.get_catalog_entry(dataset_id)
        except ServiceUnavailableError as e:
            warnings.append(f"catalog unavailable: {e}")
            return False, False
        is_enriched = bool(entry.provenance_tags & set(self.thresholds.enrichment_tags))
        return is_enriched, bool(entry.published)
