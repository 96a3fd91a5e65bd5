# ==============================================
# Dataset Analyzer
# ==============================================
#
# Package Structure (4 Topics + Orchestrator):
#
# dataset_analyzer/
# ├── dictionaries/     # Topic 1: Address token sets + geometry shape names
# ├── analysis/         # Topic 2: Field metrics, classification, decisions
# ├── storage/          # Topic 3: MongoDB / HTTP access to external stores
# ├── persistence/      # Topic 4: Run progress file (info.json)
# ├── aggregator.py     # Dataset-level predicates from field results
# ├── cache.py          # Single-flight coalescing + metrics cache
# ├── config.py         # Configuration management
# ├── pipeline.py       # Final orchestrator class
# └── cli.py            # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
