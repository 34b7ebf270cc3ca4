"""Command-line entry point for the codeguard scanner."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from .config import ScanSettings, load_settings
from .engine import Scanner
from .errors import ConfigurationError
from .formatters import FORMATTERS, format_summary_table
from .result import ScanReport
from .rules import default_registry

DEFAULT_TARGETS = (".",)
LEVEL_CHOICES = ["low", "medium", "high"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeguard",
        description="Static security scanner for Python source code",
    )
    parser.add_argument(
        "targets",
        nargs="*",
        help="Files or directories to scan (defaults to the current directory).",
    )
    parser.add_argument(
        "--config",
        "-c",
        dest="config_path",
        default=None,
        help="YAML configuration file (defaults to .codeguard.yaml when present).",
    )
    parser.add_argument(
        "--rule",
        "-r",
        dest="rules",
        action="append",
        default=None,
        help="Rule ID to run (repeatable, or comma separated). Runs the full catalog by default.",
    )
    parser.add_argument("--min-severity", choices=LEVEL_CHOICES, default=None, help="Lowest severity to report.")
    parser.add_argument("--min-confidence", choices=LEVEL_CHOICES, default=None, help="Lowest confidence to report.")
    parser.add_argument(
        "--fail-on",
        choices=LEVEL_CHOICES,
        default=None,
        help="Exit non-zero when a reported finding has this severity or higher (default: high).",
    )
    parser.add_argument(
        "--format",
        choices=sorted(FORMATTERS),
        default="json",
        help="Report format for file output (defaults to json).",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Path to write the structured report (e.g., artifacts/scan.json).",
    )
    parser.add_argument(
        "--exclude",
        "-x",
        action="append",
        default=None,
        help="Glob of paths to skip (repeatable).",
    )
    parser.add_argument("--workers", type=int, default=None, help="Number of units scanned in parallel.")
    parser.add_argument("--deadline", type=float, default=None, help="Seconds before returning partial results.")
    parser.add_argument(
        "--ignore-nosec",
        action="store_true",
        default=None,
        help="Report findings on lines marked with '# nosec'.",
    )
    parser.add_argument("--list-rules", action="store_true", help="List the rule catalog and exit.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr.")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _split_rules(values: List[str] | None) -> List[str] | None:
    if not values:
        return None
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def resolve_settings(args: argparse.Namespace) -> ScanSettings:
    settings = load_settings(Path(args.config_path) if args.config_path else None)
    overrides: Dict[str, Any] = {
        "rules": _split_rules(args.rules),
        "min_severity": args.min_severity,
        "min_confidence": args.min_confidence,
        "fail_on": args.fail_on,
        "exclude": args.exclude,
        "workers": args.workers,
        "deadline": args.deadline,
        "ignore_nosec": args.ignore_nosec,
    }
    return settings.merge(overrides)


def run_scan(targets: List[str], settings: ScanSettings) -> ScanReport:
    missing = [target for target in targets if not Path(target).exists()]
    if missing:
        raise ConfigurationError(f"Scan target(s) not found: {', '.join(missing)}")
    scanner = Scanner.from_settings(settings)
    report = scanner.scan_paths(targets, exclude=settings.exclude)
    return report.filter(settings.min_severity, settings.min_confidence)


def list_rules(settings: ScanSettings) -> None:
    for rule in default_registry(settings):
        print(f"{rule.id:<6} {rule.severity.value:<6} {rule.confidence.value:<6} {rule.title}")


def write_output(report: ScanReport, settings: ScanSettings, output_path: str | None, report_format: str) -> None:
    summary = format_summary_table(report, settings.fail_on)
    print(summary)

    if report_format == "text" and not output_path:
        return
    payload = FORMATTERS[report_format](report, settings.fail_on)
    if output_path:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(payload, encoding="utf-8")
        print(f"\nReport written to {output_path}")
    else:
        print("\nJSON Report")
        print(payload)


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = resolve_settings(args)
        if args.list_rules:
            list_rules(settings)
            return 0
        targets = args.targets or list(DEFAULT_TARGETS)
        report = run_scan(targets, settings)
    except ConfigurationError as exc:
        print(f"codeguard: configuration error: {exc}", file=sys.stderr)
        return 2

    write_output(report, settings, args.output_path, args.format)
    return report.exit_code(settings.fail_on)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
