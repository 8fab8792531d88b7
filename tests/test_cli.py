"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest

from auction_finder.cli.main import _parse_since, build_parser, build_pipeline, main
from auction_finder.config import Settings
from auction_finder.connectors.encheres_publiques import EncheresPubliquesConnector
from auction_finder.store import JobQueue, OpportunityStore
from conftest import make_opportunity


class TestParser:
    def test_global_options(self) -> None:
        args = build_parser().parse_args(["--db", "x.db", "enqueue", "--partition", "35", "--since", "2025-01-01"])
        assert args.db == Path("x.db")
        assert args.command == "enqueue"
        assert args.partition == "35"

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_parse_since(self) -> None:
        assert _parse_since("2025-01-31").isoformat() == "2025-01-31"
        assert _parse_since(None) is None
        with pytest.raises(SystemExit):
            _parse_since("31/01/2025")


class TestCommands:
    """Commands that only touch the local database."""

    def test_store_count(self, temp_db: Path, capsys: pytest.CaptureFixture) -> None:
        OpportunityStore(temp_db).upsert(
            [make_opportunity(lot_id="1", department="35"), make_opportunity(lot_id="2", department="75")]
        )
        main(["--db", str(temp_db), "store", "count"])
        assert capsys.readouterr().out.strip() == "2"
        main(["--db", str(temp_db), "store", "count", "--department", "35"])
        assert capsys.readouterr().out.strip() == "1"

    def test_store_list(self, temp_db: Path, capsys: pytest.CaptureFixture) -> None:
        OpportunityStore(temp_db).upsert([make_opportunity(lot_id="1")])
        main(["--db", str(temp_db), "store", "list"])
        records = json.loads(capsys.readouterr().out)
        assert records[0]["external_id"] == "encheres-publiques-1"

    def test_enqueue_and_queue_status(self, temp_db: Path, capsys: pytest.CaptureFixture) -> None:
        main(["--db", str(temp_db), "enqueue", "--partition", "2a"])
        assert "partition=2A" in capsys.readouterr().out
        main(["--db", str(temp_db), "queue", "status"])
        counts = json.loads(capsys.readouterr().out)
        assert counts["waiting"] == 1
        assert JobQueue(temp_db).claim_next().options.priority == 1

    def test_schedule_once(self, temp_db: Path, capsys: pytest.CaptureFixture) -> None:
        main(["--db", str(temp_db), "schedule", "--once"])
        assert "Scheduled 94/94 partitions" in capsys.readouterr().out
        assert JobQueue(temp_db).counts()["waiting"] == 94


class TestBuildPipeline:
    def test_wires_auction_connector_from_settings(self, temp_db: Path) -> None:
        settings = Settings(
            db_path=temp_db,
            listing_url="https://auctions.test/encheres/immobilier",
            partition_param="dep",
            detail_batch_size=4,
        )
        pipeline = build_pipeline(settings)
        try:
            connector = pipeline.connector
            assert isinstance(connector, EncheresPubliquesConnector)
            assert connector.source_id == "encheres-publiques"
            assert connector.listing_url() == "https://auctions.test/encheres/immobilier"
            assert connector.listing_url("35") == "https://auctions.test/encheres/immobilier?dep=35"
            assert connector.extractor.batch_size == 4
        finally:
            pipeline.geocoder.close()
