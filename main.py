"""
HotelPulse - Hotel Review Ingestion and Analysis

CLI entry point for ingestion and analysis sweeps.
"""

import argparse
import logging
import sys
from datetime import date

from config.entities import ENTITIES
from src.orchestrator import PipelineOrchestrator
from src.registry.entity_registry import EntityRegistry
from src.utils.reporting import export_analysis_history
import config.settings as settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the entire application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(settings.LOG_FILE)
        ]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="HotelPulse - Hotel Review Ingestion and Analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fetch new reviews for all hotels
  python main.py update

  # Analyze the 30 most recent unanalyzed reviews of one hotel
  python main.py analyze --hotel Reischlhof --count 30

  # Analyze reviews from the last 7 days
  python main.py analyze --days 7

  # Daily job: update all hotels, monthly analysis on the 1st
  python main.py daily

Note: Set GOOGLE_API_KEY environment variable before running analysis.
        """
    )

    parser.add_argument(
        "--data-root",
        default=str(settings.DATA_ROOT),
        help=f"Data directory (default: {settings.DATA_ROOT})"
    )

    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    update = subparsers.add_parser("update", help="Fetch and store new reviews")
    update.add_argument("--hotel", help="Only process this hotel")

    analyze = subparsers.add_parser("analyze", help="Summarize unanalyzed reviews")
    analyze.add_argument("--hotel", help="Only process this hotel")
    mode = analyze.add_mutually_exclusive_group()
    mode.add_argument(
        "--days",
        type=int,
        help="Analyze reviews from the last N days"
    )
    mode.add_argument(
        "--count",
        type=int,
        help=f"Analyze the N most recent reviews (default: {settings.DEFAULT_REVIEW_COUNT})"
    )

    daily = subparsers.add_parser("daily", help="Daily update, monthly analysis")
    daily.add_argument("--hotel", help="Only process this hotel")

    setup = subparsers.add_parser("setup", help="Provision store tables")
    setup.add_argument("--hotel", help="Only process this hotel")

    export = subparsers.add_parser("export", help="Export analysis history as CSV")
    export.add_argument("--hotel", help="Only export this hotel")
    export.add_argument(
        "--output-dir",
        default=str(settings.OUTPUT_ROOT),
        help=f"Output directory (default: {settings.OUTPUT_ROOT})"
    )

    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    registry = EntityRegistry.from_config(ENTITIES)
    entities = registry.select(args.hotel)
    if not entities:
        logger.error(f"No hotels found with name \"{args.hotel}\"")
        sys.exit(1)

    needs_llm = args.command == "analyze" or (
        args.command == "daily" and date.today().day == settings.MONTHLY_ANALYSIS_DAY
    )
    if needs_llm and not settings.GOOGLE_API_KEY:
        logger.error(
            "GOOGLE_API_KEY environment variable not set. "
            "Please set it before running analysis."
        )
        sys.exit(1)

    print("=" * 60)
    print("HotelPulse - Hotel Review Ingestion and Analysis")
    print("=" * 60)
    print(f"Command: {args.command}")
    print(f"Hotels: {', '.join(e.name for e in entities)}")
    if args.command == "analyze":
        if args.days is not None:
            print(f"Window: last {args.days} days")
        else:
            print(f"Reviews: {args.count or settings.DEFAULT_REVIEW_COUNT} most recent")
    print("=" * 60)
    print()

    try:
        orchestrator = PipelineOrchestrator.from_settings(
            api_key=settings.GOOGLE_API_KEY if needs_llm else None,
            data_root=args.data_root
        )

        if args.command == "export":
            output_path = export_analysis_history(
                orchestrator.store, entities, args.output_dir
            )
            print(f"Analysis history: {output_path}")
            sys.exit(0)

        if args.command == "update":
            report = orchestrator.run_ingestion(entities)
        elif args.command == "analyze":
            report = orchestrator.run_analysis(entities, days=args.days, count=args.count)
        elif args.command == "daily":
            report = orchestrator.run_daily_update(entities, date.today())
        else:
            report = orchestrator.setup_tables(entities)

        print()
        print("=" * 60)
        for outcome in report.outcomes:
            marker = "✅" if outcome.success else "❌"
            print(f"{marker} {outcome.status_line()}")
        print("-" * 60)
        print(report.summary())
        print("=" * 60)

        logger.info("HotelPulse completed")
        sys.exit(0)

    except KeyboardInterrupt:
        logger.warning("Run interrupted by user")
        print("\n⚠️  Run interrupted")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Run failed: {e}", exc_info=True)
        print(f"\n❌ Run failed: {e}")
        print(f"Check {settings.LOG_FILE} for details")
        sys.exit(1)


if __name__ == "__main__":
    main()
