"""SQLite-backed auction store with idempotent batched upserts and run history."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from auction_finder.errors import PersistenceError
from auction_finder.models.opportunity import OPPORTUNITY_TYPE, AuctionRecord
from auction_finder.models.raw import RawOpportunity

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

_UPSERT_SQL = """
INSERT INTO opportunities (
    external_id, type, status, label, address, city, zip_code, department,
    latitude, longitude, opportunity_date, contact_data, extra_data, images,
    created_at, updated_at
) VALUES (
    :external_id, :type, :status, :label, :address, :city, :zip_code, :department,
    :latitude, :longitude, :opportunity_date, :contact_data, :extra_data, :images,
    :created_at, :updated_at
)
ON CONFLICT (external_id, type) DO UPDATE SET
    status = excluded.status,
    label = excluded.label,
    address = excluded.address,
    city = excluded.city,
    zip_code = excluded.zip_code,
    department = excluded.department,
    latitude = excluded.latitude,
    longitude = excluded.longitude,
    opportunity_date = excluded.opportunity_date,
    contact_data = excluded.contact_data,
    extra_data = excluded.extra_data,
    images = excluded.images,
    updated_at = excluded.updated_at
"""


class RunRecord:
    """Record of one scraping run."""

    def __init__(
        self,
        id: int,
        source: str,
        partition_id: Optional[str],
        started_at: datetime,
        finished_at: Optional[datetime],
        status: str,
        items_found: int = 0,
        items_extracted: int = 0,
        items_failed: int = 0,
        items_geocoded: int = 0,
        items_inserted: int = 0,
        error: Optional[str] = None,
    ):
        self.id = id
        self.source = source
        self.partition_id = partition_id
        self.started_at = started_at
        self.finished_at = finished_at
        self.status = status
        self.items_found = items_found
        self.items_extracted = items_extracted
        self.items_failed = items_failed
        self.items_geocoded = items_geocoded
        self.items_inserted = items_inserted
        self.error = error


def connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def ensure_schema(db_path: Path) -> None:
    """Create all tables (opportunities, runs, jobs) if missing."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = connect(db_path)
    try:
        conn.executescript(SCHEMA_PATH.read_text())
        conn.commit()
    finally:
        conn.close()


class OpportunityStore:
    """
    SQLite store for auction records.
    Rows are unique on (external_id, type); writing the same listing twice updates it in place.
    """

    def __init__(self, db_path: str | Path = "auction_finder.db", source: str = "encheres-publiques"):
        self._db_path = Path(db_path)
        self.source = source
        ensure_schema(self._db_path)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = connect(self._db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _to_row(self, record: AuctionRecord) -> dict:
        return {
            "external_id": record.external_id,
            "type": record.type,
            "status": record.status,
            "label": record.label,
            "address": record.address,
            "city": record.city,
            "zip_code": record.zip_code,
            "department": record.department,
            "latitude": record.latitude,
            "longitude": record.longitude,
            "opportunity_date": record.opportunity_date.isoformat(),
            "contact_data": json.dumps(record.contact_data, ensure_ascii=False),
            "extra_data": json.dumps(record.extra_data, ensure_ascii=False, default=str),
            "images": json.dumps(record.images),
            "created_at": record.created_at.isoformat(),
            "updated_at": record.updated_at.isoformat(),
        }

    def _from_row(self, row: sqlite3.Row) -> AuctionRecord:
        return AuctionRecord(
            external_id=row["external_id"],
            type=row["type"],
            status=row["status"],
            label=row["label"],
            address=row["address"],
            city=row["city"],
            zip_code=row["zip_code"],
            department=row["department"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            opportunity_date=datetime.fromisoformat(row["opportunity_date"]),
            contact_data=json.loads(row["contact_data"]),
            extra_data=json.loads(row["extra_data"]),
            images=json.loads(row["images"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _write_batch(self, rows: list[dict]) -> None:
        """One executemany upsert, committed on its own."""
        with self._connection() as conn:
            conn.executemany(_UPSERT_SQL, rows)

    def upsert(self, opportunities: list[RawOpportunity], batch_size: int = 500) -> int:
        """
        Insert or update opportunities in batches. Returns the number of rows written.
        A failing batch raises PersistenceError; earlier batches stay committed.
        """
        if not opportunities:
            return 0
        batch_size = max(batch_size, 1)
        now = datetime.now(timezone.utc)
        rows = [self._to_row(AuctionRecord.from_opportunity(o, self.source, now=now)) for o in opportunities]
        total_batches = (len(rows) + batch_size - 1) // batch_size
        written = 0
        for index, start in enumerate(range(0, len(rows), batch_size), start=1):
            batch = rows[start : start + batch_size]
            try:
                self._write_batch(batch)
            except sqlite3.Error as e:
                logger.error("Upsert batch %d/%d failed after %d rows committed: %s", index, total_batches, written, e)
                raise PersistenceError(index, written, str(e)) from e
            written += len(batch)
            logger.info("Upserted batch %d/%d (%d rows)", index, total_batches, len(batch))
        return written

    def insert_opportunities(self, opportunities: list[RawOpportunity], batch_size: Optional[int] = None) -> int:
        """Persistence contract entry point; same as upsert()."""
        return self.upsert(opportunities, batch_size=batch_size or 500)

    def get(self, external_id: str, type: str = OPPORTUNITY_TYPE) -> Optional[AuctionRecord]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM opportunities WHERE external_id = ? AND type = ?",
                (external_id, type),
            ).fetchone()
        return self._from_row(row) if row else None

    def get_all(self) -> list[AuctionRecord]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM opportunities ORDER BY opportunity_date ASC, id ASC").fetchall()
        return [self._from_row(r) for r in rows]

    def count(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM opportunities").fetchone()[0]

    def get_by_department(self, department: str) -> list[AuctionRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM opportunities WHERE department = ? ORDER BY opportunity_date ASC, id ASC",
                (department,),
            ).fetchall()
        return [self._from_row(r) for r in rows]

    def get_modified_since(self, since: datetime) -> list[AuctionRecord]:
        """Rows created or updated at or after `since`."""
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM opportunities WHERE updated_at >= ? ORDER BY updated_at DESC",
                (since.isoformat(),),
            ).fetchall()
        return [self._from_row(r) for r in rows]

    def start_run(self, source: str, partition_id: Optional[str] = None) -> RunRecord:
        """Record the start of a run. Returns a RunRecord with its id."""
        now = datetime.now(timezone.utc)
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT INTO runs (source, partition_id, started_at, status) VALUES (?, ?, ?, 'running')",
                (source, partition_id, now.isoformat()),
            )
            run_id = cursor.lastrowid
        return RunRecord(
            id=run_id or 0,
            source=source,
            partition_id=partition_id,
            started_at=now,
            finished_at=None,
            status="running",
        )

    def finish_run(
        self,
        run_id: int,
        found: int = 0,
        extracted: int = 0,
        failed: int = 0,
        geocoded: int = 0,
        inserted: int = 0,
        status: str = "completed",
        error: Optional[str] = None,
    ) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE runs SET finished_at = ?, status = ?, items_found = ?, items_extracted = ?,
                    items_failed = ?, items_geocoded = ?, items_inserted = ?, error = ?
                WHERE id = ?
                """,
                (now, status, found, extracted, failed, geocoded, inserted, error, run_id),
            )

    def get_runs(self, limit: int = 20) -> list[RunRecord]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM runs ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [
            RunRecord(
                id=r["id"],
                source=r["source"],
                partition_id=r["partition_id"],
                started_at=datetime.fromisoformat(r["started_at"]),
                finished_at=datetime.fromisoformat(r["finished_at"]) if r["finished_at"] else None,
                status=r["status"],
                items_found=r["items_found"],
                items_extracted=r["items_extracted"],
                items_failed=r["items_failed"],
                items_geocoded=r["items_geocoded"],
                items_inserted=r["items_inserted"],
                error=r["error"],
            )
            for r in rows
        ]
