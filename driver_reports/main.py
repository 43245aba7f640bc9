"""
Main entry point for the driver report engine.

Sub-commands:
    report  Generate a fleet, group or individual report (or a JSON preview)
    kpi     Show the historical KPI overview, optionally exported to Excel
    mail    Render a driver's report and mail it with a goal summary

Usage:
    python -m driver_reports.main report --type fleet --month 6 --year 2025
    driver-reports kpi --export
"""

from pathlib import Path
from typing import List, Optional
import argparse
import json
import logging
import sys

from .config import Settings, get_settings
from .core.exceptions import DriverReportError, ReportConfigError
from .core.kpis import ALL_KPIS, get_kpi
from .core.models import AggregationMode, HistoricalSeries, ReportRequest, ReportResult
from .services.mail import MailService
from .services.pipeline import ReportPipeline

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure application logging.

    Args:
        level: Logging level name (default: INFO)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def print_banner() -> None:
    """Print application banner."""
    print("=" * 60)
    print("  CHAUFFØRRAPPORT - PERFORMANCE ANALYSE")
    print("  Version 1.0.0")
    print("=" * 60)


def print_summary(result: ReportResult, output_path: Optional[Path]) -> None:
    """Print execution summary."""
    print("\n" + "=" * 60)
    print("RESUMÉ")
    print("=" * 60)

    document = result.document
    if document is not None:
        print(f"Rapport: {document.title}")
        print(f"Periode: {document.period_label}")
        print(f"  - Chauffører i perioden: {document.total_drivers}")
        print(f"  - Kvalificerede (min {document.min_km:g} km): {document.qualified_drivers}")
        if document.no_data:
            print("  - Ingen data for de valgte kriterier")
    if output_path is not None:
        print(f"Fil: {output_path}")

    if result.success:
        print("\n✓ Rapport genereret!")
    else:
        print(f"\n✗ Fejl: {result.message}")
        for error in result.errors:
            print(f"  - {error}")
        if result.retryable:
            print("  Forsøg igen senere.")


def print_history(history: HistoricalSeries) -> None:
    """Print the KPI history, newest period first."""
    print("\n" + "=" * 60)
    print(f"KPI OVERSIGT ({history.mode.value})")
    print("=" * 60)
    if not len(history):
        print("Ingen perioder med kvalificerede chauffører.")
        return
    for point in history.newest_first():
        print(f"\n{point.label} - {point.driver_count} chauffører, {point.total_distance:,.0f} km")
        for kpi in ALL_KPIS:
            definition = get_kpi(kpi)
            print(f"  {definition.label:<25} {definition.format_value(point.metrics.get(kpi))}")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="driver-reports", description="Chaufførrapporter og KPI oversigt")
    parser.add_argument("--input", type=Path, default=None, help="CSV export with driver records")
    subparsers = parser.add_subparsers(dest="command", required=True)

    report = subparsers.add_parser("report", help="Generate a report")
    report.add_argument("--type", dest="report_type", default="fleet",
                        help="fleet|group|individual (samlet|gruppe|individuel)")
    report.add_argument("--month", type=int, required=True)
    report.add_argument("--year", type=int, required=True)
    report.add_argument("--group", default=None)
    report.add_argument("--driver", default=None)
    report.add_argument("--min-km", type=float, default=settings.report.default_min_km)
    report.add_argument("--format", dest="output_format", default="pdf", help="pdf|word|excel")
    report.add_argument("--aggregation", choices=[mode.value for mode in AggregationMode], default=None)
    report.add_argument("--groups", type=Path, default=None, help="JSON group membership file")
    report.add_argument("--output-dir", type=Path, default=None)
    report.add_argument("--preview", action="store_true", help="Print the JSON preview instead of rendering")

    kpi = subparsers.add_parser("kpi", help="Historical KPI overview")
    kpi.add_argument("--min-km", type=float, default=settings.report.default_min_km)
    kpi.add_argument("--aggregation", choices=[mode.value for mode in AggregationMode],
                     default=AggregationMode.PER_DRIVER_AVERAGE.value)
    kpi.add_argument("--periods", type=int, default=None, help="Newest N periods only")
    kpi.add_argument("--export", nargs="?", const="", default=None, metavar="PATH",
                     help="Write the overview to Excel (default path if omitted)")

    mail = subparsers.add_parser("mail", help="Mail a driver's report")
    mail.add_argument("--driver", required=True)
    mail.add_argument("--to", dest="recipient", required=True)
    mail.add_argument("--month", type=int, required=True)
    mail.add_argument("--year", type=int, required=True)
    mail.add_argument("--min-km", type=float, default=settings.report.default_min_km)
    return parser


def run_report(args: argparse.Namespace, pipeline: ReportPipeline, settings: Settings) -> int:
    records = pipeline.load_records(args.input)
    group_members = pipeline.load_groups(args.groups) if args.group else None
    request = ReportRequest(
        report_type=args.report_type,
        month=args.month,
        year=args.year,
        min_km=args.min_km,
        output_format=args.output_format,
        group=args.group,
        driver=args.driver,
        aggregation_mode=AggregationMode(args.aggregation) if args.aggregation else None,
        group_members=group_members or None,
    )

    if args.preview:
        print(json.dumps(pipeline.preview(request, records), ensure_ascii=False, indent=2))
        return 0

    result = pipeline.run(request, records)
    output_path = None
    if result.success and result.has_content:
        output_dir = args.output_dir or settings.paths.ensure_output_dir()
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / result.filename
        output_path.write_bytes(result.content)
        logger.info(f"Report written to: {output_path}")
    print_summary(result, output_path)
    return 0 if result.success else 1


def run_kpi(args: argparse.Namespace, pipeline: ReportPipeline) -> int:
    records = pipeline.load_records(args.input)
    history = pipeline.kpi_history(
        records,
        min_km=args.min_km,
        mode=AggregationMode(args.aggregation),
        max_periods=args.periods,
    )
    print_history(history)
    if args.export is not None:
        path = Path(args.export) if args.export else None
        if not pipeline.export_kpi_overview(history, path):
            print("\n✗ Eksport til Excel fejlede")
            return 1
        print("\n✓ KPI oversigt eksporteret")
    return 0


def run_mail(args: argparse.Namespace, pipeline: ReportPipeline, settings: Settings) -> int:
    records = pipeline.load_records(args.input)
    mail_service = MailService(settings=settings)
    result = pipeline.mail_driver_report(
        mail_service,
        records,
        driver=args.driver,
        month=args.month,
        year=args.year,
        recipient=args.recipient,
        min_km=args.min_km,
    )
    if result.success:
        print(f"\n✓ Rapport sendt til {result.recipient} (forsøg {result.attempts})")
        return 0
    print(f"\n✗ Mail til {result.recipient} fejlede: {result.message}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        settings = get_settings()
    except ReportConfigError as e:
        setup_logging()
        for error in e.errors:
            logger.error(f"Configuration error: {error}")
        return 1

    setup_logging(settings.log_level)
    args = build_parser(settings).parse_args(argv)
    print_banner()

    pipeline = ReportPipeline(settings)
    try:
        if args.command == "report":
            return run_report(args, pipeline, settings)
        if args.command == "kpi":
            return run_kpi(args, pipeline)
        return run_mail(args, pipeline, settings)

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        print(f"\n✗ Fil ikke fundet: {e}")
        return 1

    except ReportConfigError as e:
        for error in e.errors:
            print(f"  - {error}")
        return 1

    except DriverReportError as e:
        logger.error(str(e))
        print(f"\n✗ Fejl: {e}")
        return 1

    except Exception as e:
        logger.exception("Unexpected error during execution")
        print(f"\n✗ Uventet fejl: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
