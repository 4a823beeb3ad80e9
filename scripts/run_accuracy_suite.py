#!/usr/bin/env python3
"""
Run a reference accuracy suite and report detection/resolution scores.

A score below the minimum is reported as a quality warning; the exit code
is non-zero only with --strict.

Usage:
    # Built-in standard suite
    python scripts/run_accuracy_suite.py

    # Custom suite, JSON report
    python scripts/run_accuracy_suite.py --suite tests/suites/my_suite.yaml --output report.json
"""

import argparse
import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from docgraph.linkers.reference_resolver import ReferenceResolutionService
from docgraph.utils.config import Config
from docgraph.utils.file_utils import safe_json_dump
from docgraph.utils.logging_utils import setup_logger
from docgraph.validation.accuracy_tester import ReferenceAccuracyTester, load_test_suite


def parse_args():
    parser = argparse.ArgumentParser(description="Reference detection accuracy suite")

    parser.add_argument("--config", type=str, default="configs/config.yaml",
                        help="Path to configuration file")
    parser.add_argument("--suite", type=str, default=None,
                        help="Suite definition (YAML or JSON); default is the standard suite")
    parser.add_argument("--min-score", type=float, default=None,
                        help="Override the suite's minimum overall score")
    parser.add_argument("--output", type=str, default=None,
                        help="Write the full report as JSON")
    parser.add_argument("--strict", action="store_true",
                        help="Exit non-zero when the suite is below its minimum score")

    return parser.parse_args()


def main():
    args = parse_args()
    config = Config(args.config)
    setup_logger("docgraph", level=config.logging["level"], console=config.logging["console"])

    if args.suite:
        suite = load_test_suite(args.suite)
    else:
        suite = ReferenceAccuracyTester.create_standard_test_suite()
    if args.min_score is not None:
        suite.min_overall_score = args.min_score

    tester = ReferenceAccuracyTester(resolver=ReferenceResolutionService(config.resolver))
    report = tester.run_test_suite(suite, show_progress=True)
    summary = report.summary

    print("=" * 60)
    print(f"Suite: {suite.name}")
    print("=" * 60)
    for result in report.results:
        status = "PASS" if result.overall_score >= suite.min_overall_score else "FAIL"
        print(f"  [{status}] {result.test_case.name}: {result.overall_score:.3f} "
              f"(F1 {result.detection.f1_score:.3f})")
    print("-" * 60)
    print(f"Average score: {summary['average_score']:.3f}")
    print(f"Passed: {summary['passed_tests']}/{summary['total_tests']} "
          f"({summary['pass_rate']:.1%})")
    print(f"Average detection F1: {summary['average_detection_f1']:.3f}")
    if "average_resolution_accuracy" in summary:
        print(f"Average resolution accuracy: {summary['average_resolution_accuracy']:.3f}")

    if report.recommendations:
        print("\nRecommendations:")
        for recommendation in report.recommendations:
            print(f"  - {recommendation}")

    if args.output:
        safe_json_dump(report.to_dict(), args.output)
        print(f"\nReport saved to {args.output}")

    if not report.passed:
        print(f"\nQuality warning: average score {summary['average_score']:.3f} "
              f"is below {suite.min_overall_score}")
        if args.strict:
            sys.exit(1)
    print("=" * 60)


if __name__ == "__main__":
    main()
