# ==============================================
# CLI — Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Provides command-line interface to run the analyzer.
#   This is how users and task runners interact with the system.
#
# COMMANDS:
# ---------
# 1. Analyze one dataset:
#    python -m dataset_analyzer.cli analyze --dataset ud_1_640b08cb
#    python -m dataset_analyzer.cli analyze --dataset ud_1_640b08cb --sample-size 500 --json
#
# 2. Analyze the dataset named by a task document:
#    python -m dataset_analyzer.cli analyze --task 65f0c2a1e4b0a1b2c3d4e5f6
#
# 3. Analyze every registered dataset:
#    python -m dataset_analyzer.cli analyze-all
#
# 4. Evaluate the decision table only (no database):
#    python -m dataset_analyzer.cli recommend --predicates '{"has_geometry": true}'
#
# Installed as the `dataset-analyzer` console script.
#
# EXIT CODES:
#   0 = success, 1 = analysis failed, 2 = bad arguments
#
# ==============================================

import argparse
import json
import sys
from typing import List, Optional

from dataset_analyzer.aggregator import EvaluationResult
from dataset_analyzer.analysis.decision import DatasetPredicates, recommend
from dataset_analyzer.exceptions import DatasetAnalyzerError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dataset-analyzer",
        description="Profile dataset fields and recommend enrichment operations.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze one dataset or one task")
    target = analyze.add_mutually_exclusive_group(required=True)
    target.add_argument("--dataset", help="Dataset collection name")
    target.add_argument("--task", help="Task document id (ObjectId)")
    analyze.add_argument("--sample-size", type=int, default=None,
                         help="Values sampled per field (<= 0 = full column)")
    analyze.add_argument("--json", action="store_true", help="Print the full result as JSON")

    subparsers.add_parser("analyze-all", help="Analyze every dataset in userDatasets")

    rec = subparsers.add_parser("recommend", help="Apply the decision table to given predicates")
    rec.add_argument("--predicates", required=True,
                     help='JSON object, e.g. \'{"has_geometry": true, "is_published": false}\'')
    rec.add_argument("--json", action="store_true", help="Print recommendations as JSON")

    return parser


def _print_result(result: EvaluationResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    print(f"\n📊 {result.dataset_id}: {result.status.value}")
    if not result.ok:
        return
    print("   Predicates:")
    for name, value in result.predicates.to_dict().items():
        print(f"   → {name}: {value}")
    print("   Recommendations:")
    for name, offered in result.recommendations.to_dict().items():
        print(f"   {'✓' if offered else '·'} {name}")


def _recommend(raw: str, as_json: bool) -> int:
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("predicates must be a JSON object")
        predicates = DatasetPredicates.from_dict(data)
    except ValueError as e:
        print(f"✗ Invalid predicates: {e}", file=sys.stderr)
        return 2

    recommendations = recommend(predicates)
    if as_json:
        print(json.dumps(recommendations.to_dict(), indent=2))
    else:
        for name, offered in recommendations.to_dict().items():
            print(f"{'✓' if offered else '·'} {name}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.command == "recommend":
        return _recommend(args.predicates, args.json)

    # Imported here so `recommend` works without a database driver configured
    from dataset_analyzer.pipeline import AnalysisPipeline

    try:
        with AnalysisPipeline() as pipeline:
            if args.command == "analyze-all":
                results = pipeline.analyze_all()
                failed = [r for r in results if not r.ok]
                print(f"\n✓ Analyzed {len(results) - len(failed)} dataset(s), {len(failed)} failed")
                return 1 if failed else 0

            if args.task:
                result = pipeline.analyze_task(args.task)
            else:
                result = pipeline.analyze_dataset(args.dataset, sample_size=args.sample_size)
            _print_result(result, args.json)
            return 0 if result.ok else 1
    except DatasetAnalyzerError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
