"""Main CLI entry point and composition root."""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _parse_since(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise SystemExit("Invalid --since format. Use YYYY-MM-DD.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auction-finder",
        description="Scrape, geocode and store French real-estate auctions",
    )
    parser.add_argument("--db", type=Path, default=None, help="Path to SQLite database")
    parser.add_argument("--config", type=Path, default=None, help="YAML settings file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # schedule
    schedule_parser = subparsers.add_parser("schedule", help="Enqueue one job per department")
    schedule_parser.add_argument(
        "--once",
        action="store_true",
        help="Enqueue all partitions now and exit (default: run the daily trigger loop)",
    )

    # enqueue
    enqueue_parser = subparsers.add_parser("enqueue", help="Manually enqueue a scraping job")
    enqueue_parser.add_argument("--partition", type=str, default=None, help="Department code, e.g. 35 or 2A")
    enqueue_parser.add_argument("--since", type=str, default=None, help="Only keep auctions closing on/after YYYY-MM-DD")

    # work
    work_parser = subparsers.add_parser("work", help="Run the job worker")
    work_parser.add_argument("--once", action="store_true", help="Process at most one job and exit")

    # scrape
    scrape_parser = subparsers.add_parser("scrape", help="Run the pipeline inline, without the queue")
    scrape_parser.add_argument("--partition", type=str, default=None, help="Department code")
    scrape_parser.add_argument("--since", type=str, default=None, help="Only keep auctions closing on/after YYYY-MM-DD")

    # store
    store_parser = subparsers.add_parser("store", help="Query stored auctions")
    store_parser.add_argument("action", choices=["list", "count"], help="List auctions or show count")
    store_parser.add_argument("--department", type=str, default=None, help="Filter by department code")

    # queue
    queue_parser = subparsers.add_parser("queue", help="Inspect the job queue")
    queue_parser.add_argument("action", choices=["status"], help="Show job counts per state")

    # geocode
    geocode_parser = subparsers.add_parser("geocode", help="Resolve one address")
    geocode_parser.add_argument("address", type=str, help="Free-text address")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Parse args and dispatch to subcommands."""
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = _load_settings(args)
    configure_logging(settings.log_level)

    if args.command == "schedule":
        _run_schedule(args, settings)
    elif args.command == "enqueue":
        _run_enqueue(args, settings)
    elif args.command == "work":
        _run_work(args, settings)
    elif args.command == "scrape":
        _run_scrape(args, settings)
    elif args.command == "store":
        _run_store(args, settings)
    elif args.command == "queue":
        _run_queue(args, settings)
    elif args.command == "geocode":
        _run_geocode(args, settings)
    else:
        parser.print_help()


def _load_settings(args: argparse.Namespace):
    from auction_finder.config import Settings

    settings = Settings.from_yaml(args.config) if args.config else Settings.from_env()
    updates = {}
    if args.db is not None:
        updates["db_path"] = args.db
    if args.log_level:
        updates["log_level"] = args.log_level
    return settings.model_copy(update=updates) if updates else settings


def build_geocoder(settings):
    from auction_finder.geocoding import Geocoder, shared_rate_limiter

    return Geocoder(
        base_url=settings.geocode_url,
        rate_limiter=shared_rate_limiter(settings.geocode_min_interval_ms / 1000),
        min_score=settings.geocode_min_score,
        max_attempts=settings.geocode_max_attempts,
        retry_delay=settings.geocode_retry_delay_ms / 1000,
        rate_limit_wait=settings.geocode_rate_limit_wait_ms / 1000,
        max_rate_limit_retries=settings.geocode_max_rate_limit_retries,
    )


def build_pipeline(settings):
    """Wire connector, browser sessions, geocoder and store for one process."""
    from auction_finder.browser import PlaywrightSession
    from auction_finder.connectors.encheres_publiques import EncheresPubliquesConnector
    from auction_finder.connectors.encheres_publiques.discovery import ListingDiscovery
    from auction_finder.connectors.encheres_publiques.extractor import DetailExtractor
    from auction_finder.pipeline import ScrapePipeline
    from auction_finder.store import OpportunityStore

    connector = EncheresPubliquesConnector(
        listing_url=settings.listing_url,
        partition_param=settings.partition_param,
        discovery=ListingDiscovery(max_attempts=settings.max_scroll_attempts),
        extractor=DetailExtractor(base_url=settings.site_base_url, batch_size=settings.detail_batch_size),
    )

    def session_factory() -> PlaywrightSession:
        return PlaywrightSession(
            headless=settings.headless,
            navigation_timeout_ms=settings.navigation_timeout_ms,
            ready_timeout_ms=settings.ready_timeout_ms,
        )

    return ScrapePipeline(
        connector=connector,
        session_factory=session_factory,
        geocoder=build_geocoder(settings),
        store=OpportunityStore(settings.db_path, source=connector.source_id),
        upsert_batch_size=settings.upsert_batch_size,
    )


def build_scheduler(settings):
    from auction_finder.scheduling import Scheduler
    from auction_finder.store import JobQueue

    return Scheduler(
        JobQueue(settings.db_path),
        hour=settings.schedule_hour,
        timezone=settings.schedule_timezone,
    )


def _run_schedule(args: argparse.Namespace, settings) -> None:
    scheduler = build_scheduler(settings)
    if args.once:
        summary = scheduler.schedule_all()
        print(f"Scheduled {summary.succeeded}/{summary.attempted} partitions ({summary.failed} failed)")
        if summary.failed:
            raise SystemExit(1)
        return
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Scheduler interrupted")


def _run_enqueue(args: argparse.Namespace, settings) -> None:
    scheduler = build_scheduler(settings)
    queued = scheduler.trigger_manual(args.partition, since_date=_parse_since(args.since))
    print(f"Enqueued job {queued.id} (partition={queued.payload.partition_id or 'all'})")


def _run_work(args: argparse.Namespace, settings) -> None:
    from auction_finder.store import JobQueue
    from auction_finder.worker import Worker

    worker = Worker(JobQueue(settings.db_path), build_pipeline(settings))
    if args.once:
        if not worker.run_once():
            print("No job available.")
        return
    worker.run_forever(poll_interval=settings.poll_interval_s)


def _run_scrape(args: argparse.Namespace, settings) -> None:
    from auction_finder.models.job import AUCTIONS_JOB, ScrapeJob

    job = ScrapeJob(job_name=AUCTIONS_JOB, partition_id=args.partition, since_date=_parse_since(args.since))
    result = build_pipeline(settings).run(job)
    print(
        f"Found {result.found}, extracted {result.extracted} ({result.failed} failed), "
        f"geocoded {result.geocoded}, upserted {result.inserted}"
    )


def _run_store(args: argparse.Namespace, settings) -> None:
    from auction_finder.departments import normalize_department
    from auction_finder.store import OpportunityStore

    store = OpportunityStore(settings.db_path)
    department = normalize_department(args.department) or args.department
    if args.action == "list":
        records = store.get_by_department(department) if department else store.get_all()
        output = json.dumps(
            [r.model_dump(mode="json") for r in records],
            indent=2,
            ensure_ascii=False,
            default=str,
        )
        print(output)
    elif args.action == "count":
        if department:
            print(len(store.get_by_department(department)))
        else:
            print(store.count())


def _run_queue(args: argparse.Namespace, settings) -> None:
    from auction_finder.store import JobQueue

    counts = JobQueue(settings.db_path).counts()
    print(json.dumps(counts, indent=2))


def _run_geocode(args: argparse.Namespace, settings) -> None:
    geocoder = build_geocoder(settings)
    try:
        result = geocoder.resolve(args.address)
    finally:
        geocoder.close()
    if result is None:
        print("No confident match.", file=sys.stderr)
        raise SystemExit(1)
    print(json.dumps({"zip_code": result.zip_code, "latitude": result.latitude, "longitude": result.longitude}))


if __name__ == "__main__":
    main()
