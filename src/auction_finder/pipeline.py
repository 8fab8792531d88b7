"""Pipeline orchestration: discover → extract → geocode → upsert."""

import logging
from dataclasses import dataclass
from typing import Callable

from auction_finder.browser.session import BrowserSession
from auction_finder.connectors.base import BaseConnector
from auction_finder.geocoding.geocoder import Geocoder
from auction_finder.models.job import ScrapeJob
from auction_finder.store.sqlite_store import OpportunityStore

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    found: int = 0
    extracted: int = 0
    failed: int = 0
    geocoded: int = 0
    inserted: int = 0


class ScrapePipeline:
    """
    One scraping run for one job. A fresh browser session is created per run
    and closed as soon as extraction is over, whatever happens.
    """

    def __init__(
        self,
        connector: BaseConnector,
        session_factory: Callable[[], BrowserSession],
        geocoder: Geocoder,
        store: OpportunityStore,
        upsert_batch_size: int = 500,
    ):
        self.connector = connector
        self.session_factory = session_factory
        self.geocoder = geocoder
        self.store = store
        self.upsert_batch_size = upsert_batch_size

    def run(self, job: ScrapeJob) -> PipelineResult:
        partition = job.partition_id
        run = self.store.start_run(self.connector.source_id, partition)
        result = PipelineResult()
        try:
            session = self.session_factory()
            try:
                session.start()
                found, batch = self.connector.fetch_incremental(session, since=job.since_date, partition_id=partition)
            finally:
                session.close()
            result.found = found
            result.extracted = batch.extracted
            result.failed = batch.failed

            if batch.opportunities:
                geocoded = self.geocoder.resolve_batch(batch.opportunities)
                result.geocoded = sum(1 for o in geocoded if o.has_coordinates())
                result.inserted = self.store.upsert(geocoded, batch_size=self.upsert_batch_size)
        except Exception as e:
            self.store.finish_run(
                run.id,
                found=result.found,
                extracted=result.extracted,
                failed=result.failed,
                geocoded=result.geocoded,
                inserted=result.inserted,
                status="failed",
                error=str(e),
            )
            raise

        self.store.finish_run(
            run.id,
            found=result.found,
            extracted=result.extracted,
            failed=result.failed,
            geocoded=result.geocoded,
            inserted=result.inserted,
        )
        logger.info(
            "Run %d (partition=%s): %d found, %d extracted, %d failed, %d geocoded, %d upserted",
            run.id,
            partition or "all",
            result.found,
            result.extracted,
            result.failed,
            result.geocoded,
            result.inserted,
        )
        return result
