"""Command-line interface for slotassign."""

import argparse
import logging
import sys
from pathlib import Path

import yaml

from slotassign.config import merge_config
from slotassign.generator import ScheduleGenerator
from slotassign.output import format_assignments_csv, format_results, result_to_dict
from slotassign.parser import (
    create_snapshot_template,
    parse_config_yaml,
    parse_overlap_csv,
    parse_snapshot_yaml,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNASSIGNED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slotassign",
        description="Assign conference sessions to venues and time slots.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  slotassign --write-template event.yaml
  slotassign event.yaml
  slotassign event.yaml --overlap-csv overlap.csv --conflict-threshold 50
  slotassign event.yaml --config tuning.yaml --csv schedule.csv --output result.yaml
""",
    )
    parser.add_argument(
        "snapshot",
        type=Path,
        nargs="?",
        help="Path to the event snapshot (YAML or JSON)",
    )
    parser.add_argument(
        "--overlap-csv",
        type=Path,
        help="Voter overlap CSV to use instead of the snapshot's voter_overlap",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML file with scheduler config overrides",
    )
    parser.add_argument(
        "--conflict-threshold",
        type=float,
        help="Overlap %% from which concurrent sessions count as a conflict (default: 60)",
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        help="Maximum local search iterations (default: 1000)",
    )
    parser.add_argument(
        "--target-score",
        type=float,
        help="Stop optimizing once the quality score reaches this (default: 70)",
    )
    parser.add_argument(
        "--csv",
        type=Path,
        help="Write assignments as CSV to this path",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the full result as YAML to this path",
    )
    parser.add_argument(
        "--write-template",
        type=Path,
        metavar="PATH",
        help="Write a snapshot template to PATH and exit",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log scheduling progress to stderr",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for slotassign CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )

    if args.write_template:
        create_snapshot_template(args.write_template)
        print(f"Created snapshot template at: {args.write_template}")
        return EXIT_OK

    if args.snapshot is None:
        parser.error("a snapshot path is required unless --write-template is given")

    if not args.snapshot.exists():
        print(f"Error: Snapshot file not found: {args.snapshot}", file=sys.stderr)
        return EXIT_ERROR

    try:
        schedule_input, snapshot_config = parse_snapshot_yaml(args.snapshot)
    except Exception as e:
        print(f"Error parsing snapshot: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.overlap_csv:
        try:
            schedule_input.voter_overlap = parse_overlap_csv(args.overlap_csv)
        except Exception as e:
            print(f"Error parsing overlap CSV: {e}", file=sys.stderr)
            return EXIT_ERROR

    # Precedence: defaults < snapshot config < --config file < command-line flags
    try:
        config = merge_config(snapshot_config)
        if args.config:
            config = merge_config(parse_config_yaml(args.config), base=config)
        config = merge_config(
            {
                "conflict_threshold": args.conflict_threshold,
                "max_iterations": args.max_iterations,
                "target_quality_score": args.target_score,
            },
            base=config,
        )
    except Exception as e:
        print(f"Error in scheduler config: {e}", file=sys.stderr)
        return EXIT_ERROR

    print(
        f"Loaded {len(schedule_input.sessions)} sessions, {len(schedule_input.venues)} venues "
        f"and {len(schedule_input.time_slots)} time slots"
    )

    result = ScheduleGenerator(schedule_input, config).generate()

    print()
    print(format_results(result, schedule_input))
    print(f"\nGenerated in {result.execution_time_ms:.0f} ms")

    if args.csv:
        args.csv.write_text(format_assignments_csv(result, schedule_input) + "\n", encoding="utf-8")
        print(f"Wrote assignments to: {args.csv}")

    if args.output:
        with args.output.open("w", encoding="utf-8") as f:
            yaml.safe_dump(result_to_dict(result), f, default_flow_style=False, sort_keys=False)
        print(f"Wrote result to: {args.output}")

    return EXIT_OK if result.success else EXIT_UNASSIGNED


if __name__ == "__main__":
    sys.exit(main())
