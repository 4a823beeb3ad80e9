#!/usr/bin/env python3
"""
Build knowledge graphs from parsed-document JSON files.

Each graph is built, its cross-references are linked and scored, and the
graph plus a quality report are written to the configured output paths.

Usage:
    # Every *.json file in the configured parsed_input directory
    python scripts/build_document_graph.py

    # One file, custom output directory
    python scripts/build_document_graph.py --input data/parsed/paper.json --output out/graphs

    # Directory with 4 worker threads
    python scripts/build_document_graph.py --input data/parsed --workers 4
"""

import argparse
import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from docgraph.pipeline import DocumentGraphPipeline
from docgraph.utils.config import Config


def parse_args():
    parser = argparse.ArgumentParser(
        description="Build document knowledge graphs with resolved cross-references",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        type=str,
        default="configs/config.yaml",
        help="Path to configuration file"
    )

    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Parsed-document JSON file or directory (default: paths.parsed_input)"
    )

    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Graph output directory (default: paths.graph_output)"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker threads"
    )

    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Build and score graphs without writing them"
    )

    return parser.parse_args()


def main():
    args = parse_args()

    config = Config(args.config)
    if args.output:
        paths = {**config.get("paths", {}), "graph_output": args.output}
        config = Config.from_dict({**config._raw_config, "paths": paths})

    print("=" * 60)
    print("Document Graph Builder")
    print("=" * 60)
    print(f"Config: {args.config}")
    print(f"Input: {args.input or config.paths['parsed_input']}")
    print(f"Output: {config.paths['graph_output']}")
    print(f"Workers: {args.workers}")
    print("=" * 60)

    pipeline = DocumentGraphPipeline(config=config)
    stats = pipeline.run(
        input_path=args.input,
        max_workers=args.workers,
        save=not args.no_save,
    )

    summary = stats.to_dict()
    print("\n" + "=" * 60)
    print("Graph Building Completed!")
    print("=" * 60)
    print(f"Graphs built: {stats.built_graphs}/{stats.total_documents}")
    print(f"Nodes: {stats.total_nodes}, edges: {stats.total_edges}")
    print(f"References resolved: {stats.references_resolved}/{stats.references_detected}")
    if summary["average_quality_score"] is not None:
        print(f"Average quality score: {summary['average_quality_score']:.3f}")

    if stats.quality_warnings:
        print("\nQuality warnings:")
        for warning in stats.quality_warnings:
            print(f"  - {warning}")

    if summary["duration_seconds"] is not None:
        print(f"\nTotal time: {summary['duration_seconds']:.1f} seconds")
    print("=" * 60)

    sys.exit(1 if stats.failed_documents else 0)


if __name__ == "__main__":
    main()
