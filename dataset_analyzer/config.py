# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to all other modules.
#
# CLASSES:
# --------
# - MongoConfig (dataclass)
#     uri: str | None    (default None, wins over host/port when set)
#     host: str          (default "localhost")
#     port: int          (default 27017)
#     user: str | None   (default None)
#     password: str | None (default None)
#
# - DatabaseNames (dataclass)
#     Where the analyzer finds its collections:
#     rk_metadata.datasetsStructure, rk_metadata.userDatasets,
#     rk_userDatasets.<dataset>, rk_common.municipalitets, ...
#
# - ProfilerConfig (dataclass)
#     sample_size: int               (default 10000, <= 0 = full column)
#     max_workers: int               (default 8)
#     fetch_timeout_seconds: float   (default 30.0)
#     adequacy_region: str           ("russia" or "world")
#     ...
#
# - AppConfig (dataclass)
#     mongo, databases, profiler, classification, aggregation
#
# FUNCTION:
# ---------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
#
# USAGE:
# ------
#   from dataset_analyzer.config import get_config
#   config = get_config()
#   print(config.mongo.host)
#   print(config.aggregation.address_min_fullness)
#
# ==============================================

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from dataset_analyzer.analysis.decision import AggregationThresholds, ClassificationThresholds
from dataset_analyzer.analysis.value_parser import DEFAULT_DATE_FORMATS
from dataset_analyzer.exceptions import ConfigurationError


ADEQUACY_REGIONS = ("russia", "world")


@dataclass
class MongoConfig:
    """MongoDB connection configuration."""
    uri: Optional[str] = None
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None


@dataclass
class DatabaseNames:
    """Databases and collections the analyzer reads from."""
    metadata_db: str = "rk_metadata"
    datasets_db: str = "rk_userDatasets"
    tasks_db: str = "rk_metadata"
    common_db: str = "rk_common"
    structure_collection: str = "datasetsStructure"
    datasets_collection: str = "userDatasets"
    tasks_collection: str = "tasks"
    region_collection: str = "regionState"
    municipality_collection: str = "municipalitets"


@dataclass
class ProfilerConfig:
    """Sampling, concurrency and geometry settings for field profiling."""
    sample_size: int = 10000
    max_workers: int = 8
    fetch_timeout_seconds: float = 30.0
    adequacy_region: str = "russia"
    date_formats: Tuple[str, ...] = DEFAULT_DATE_FORMATS
    dictionary_path: Optional[str] = None
    use_cache: bool = True
    linkage_field: str = "oarObject"
    linkage_service_url: Optional[str] = None
    progress_file: str = "info.json"


@dataclass
class AppConfig:
    """Main application configuration."""
    mongo: MongoConfig = field(default_factory=MongoConfig)
    databases: DatabaseNames = field(default_factory=DatabaseNames)
    profiler: ProfilerConfig = field(default_factory=ProfilerConfig)
    classification: ClassificationThresholds = field(default_factory=ClassificationThresholds)
    aggregation: AggregationThresholds = field(default_factory=AggregationThresholds)


# Singleton instance
_config_instance: Optional[AppConfig] = None


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _validate_ratio(name: str, value: float) -> float:
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")
    return value


def build_thresholds() -> Tuple[ClassificationThresholds, AggregationThresholds]:
    """
    Build classification and aggregation thresholds from the environment.

    Every threshold falls back to its dataclass default when the
    variable is unset.
    """
    defaults_c = ClassificationThresholds()
    classification = ClassificationThresholds(
        address_min_words=int(os.getenv("ADDRESS_MIN_WORDS", str(defaults_c.address_min_words))),
        address_majority=_validate_ratio(
            "ADDRESS_MAJORITY", _env_float("ADDRESS_MAJORITY", defaults_c.address_majority)
        ),
        geometry_majority=_validate_ratio(
            "GEOMETRY_MAJORITY", _env_float("GEOMETRY_MAJORITY", defaults_c.geometry_majority)
        ),
    )

    defaults_a = AggregationThresholds()
    aggregation = AggregationThresholds(
        required_address_roles=_env_list(
            "REQUIRED_ADDRESS_ROLES", defaults_a.required_address_roles
        ),
        address_min_fullness=_validate_ratio(
            "ADDRESS_MIN_FULLNESS", _env_float("ADDRESS_MIN_FULLNESS", defaults_a.address_min_fullness)
        ),
        geometry_min_fullness=_validate_ratio(
            "GEOMETRY_MIN_FULLNESS", _env_float("GEOMETRY_MIN_FULLNESS", defaults_a.geometry_min_fullness)
        ),
        geometry_min_validness=_validate_ratio(
            "GEOMETRY_MIN_VALIDNESS", _env_float("GEOMETRY_MIN_VALIDNESS", defaults_a.geometry_min_validness)
        ),
        geometry_min_adequacy=_validate_ratio(
            "GEOMETRY_MIN_ADEQUACY", _env_float("GEOMETRY_MIN_ADEQUACY", defaults_a.geometry_min_adequacy)
        ),
        min_linkage_ratio=_validate_ratio(
            "MIN_LINKAGE_RATIO", _env_float("MIN_LINKAGE_RATIO", defaults_a.min_linkage_ratio)
        ),
        enrichment_tags=_env_list("ENRICHMENT_TAGS", defaults_a.enrichment_tags),
    )
    return classification, aggregation


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    # Build MongoDB configuration
    mongo_config = MongoConfig(
        uri=os.getenv("MONGO_URI") or None,
        host=os.getenv("MONGO_HOST", "localhost"),
        port=int(os.getenv("MONGO_PORT", "27017")),
        user=os.getenv("MONGO_USER") or None,
        password=os.getenv("MONGO_PASSWORD") or None,
    )

    # Build database / collection names
    names = DatabaseNames()
    databases = DatabaseNames(
        metadata_db=os.getenv("METADATA_DB", names.metadata_db),
        datasets_db=os.getenv("DATASETS_DB", names.datasets_db),
        tasks_db=os.getenv("TASKS_DB", names.tasks_db),
        common_db=os.getenv("COMMON_DB", names.common_db),
        structure_collection=os.getenv("STRUCTURE_COLLECTION", names.structure_collection),
        datasets_collection=os.getenv("DATASETS_COLLECTION", names.datasets_collection),
        tasks_collection=os.getenv("TASKS_COLLECTION", names.tasks_collection),
        region_collection=os.getenv("REGION_COLLECTION", names.region_collection),
        municipality_collection=os.getenv("MUNICIPALITY_COLLECTION", names.municipality_collection),
    )

    # Build profiler configuration
    adequacy_region = os.getenv("ADEQUACY_REGION", "russia").lower()
    if adequacy_region not in ADEQUACY_REGIONS:
        raise ConfigurationError(
            f"ADEQUACY_REGION must be one of {ADEQUACY_REGIONS}, got {adequacy_region!r}"
        )
    profiler = ProfilerConfig(
        sample_size=int(os.getenv("SAMPLE_SIZE", "10000")),
        max_workers=int(os.getenv("MAX_WORKERS", "8")),
        fetch_timeout_seconds=_env_float("FETCH_TIMEOUT_SECONDS", 30.0),
        adequacy_region=adequacy_region,
        date_formats=_env_list("DATE_FORMATS", DEFAULT_DATE_FORMATS),
        dictionary_path=os.getenv("DICTIONARY_PATH") or None,
        use_cache=_env_bool("USE_CACHE", True),
        linkage_field=os.getenv("LINKAGE_FIELD", "oarObject"),
        linkage_service_url=os.getenv("LINKAGE_SERVICE_URL") or None,
        progress_file=os.getenv("PROGRESS_FILE", "info.json"),
    )

    classification, aggregation = build_thresholds()

    # Build main application configuration
    _config_instance = AppConfig(
        mongo=mongo_config,
        databases=databases,
        profiler=profiler,
        classification=classification,
        aggregation=aggregation,
    )

    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
