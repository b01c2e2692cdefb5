"""Tests for end-to-end ingestion: dedup, batching, header handling and side tables."""

import pytest
from sqlalchemy import select

from core.exceptions import HeaderValidationError, UnsupportedFileType
from db.models import RawTransaction, Subdepartment, UploadMeta
from db.repository import count_transactions
from etl.headers import REQUIRED_HEADERS
from etl.pipeline import IngestionPipeline
from factories import sample_row, sample_rows


def _count(database):
    with database.session() as session:
        return count_transactions(session)


class TestIngestionPipeline:
    def test_first_ingest_inserts_every_row(self, database, make_csv):
        path = make_csv(sample_rows(5))
        result = IngestionPipeline(database).process_upload(str(path), "week1.csv")

        assert result.file_name == "week1.csv"
        assert result.rows_parsed == 5
        assert result.inserted == 5
        assert result.ignored == 0
        assert result.sample_dates == ["2024-07-05"]
        assert _count(database) == 5

    def test_reingest_same_file_is_idempotent(self, database, make_csv):
        path = make_csv(sample_rows(5))
        pipeline = IngestionPipeline(database)
        pipeline.process_upload(str(path), "week1.csv")
        second = pipeline.process_upload(str(path), "week1.csv")

        assert second.inserted == 0
        assert second.ignored == 5
        assert _count(database) == 5

    def test_duplicates_across_files_stored_once(self, database, make_csv):
        pipeline = IngestionPipeline(database)
        pipeline.process_upload(str(make_csv(sample_rows(4))), "a.csv")
        result = pipeline.process_upload(str(make_csv(sample_rows(4, start=2))), "b.csv")

        assert result.inserted == 2
        assert result.ignored == 2
        assert _count(database) == 6
        with database.session() as session:
            sources = session.execute(
                select(RawTransaction.source_filename).order_by(RawTransaction.id)
            ).scalars().all()
        assert sources.count("a.csv") == 4
        assert sources.count("b.csv") == 2

    def test_duplicate_rows_within_one_file(self, database, make_csv):
        rows = sample_rows(3) + sample_rows(3)
        result = IngestionPipeline(database).process_upload(str(make_csv(rows)), "dupes.csv")
        assert result.rows_parsed == 6
        assert result.inserted == 3
        assert result.ignored == 3

    def test_missing_headers_abort_without_writes(self, database, make_csv):
        headers = [h for h in REQUIRED_HEADERS if h != "Units-Sum"]
        path = make_csv(sample_rows(3), headers=headers)

        with pytest.raises(HeaderValidationError) as exc_info:
            IngestionPipeline(database).process_upload(str(path), "broken.csv")

        assert exc_info.value.missing == ["Units-Sum"]
        assert _count(database) == 0
        with database.session() as session:
            assert session.execute(select(UploadMeta)).first() is None

    def test_header_only_file_is_rejected(self, database, make_csv):
        with pytest.raises(HeaderValidationError) as exc_info:
            IngestionPipeline(database).process_upload(str(make_csv([])), "empty.csv")
        assert exc_info.value.missing == REQUIRED_HEADERS

    def test_header_variants_ingest_identically(self, database, make_csv):
        pipeline = IngestionPipeline(database)
        pipeline.process_upload(str(make_csv(sample_rows(3))), "plain.csv")

        shuffled = list(reversed(REQUIRED_HEADERS))
        rename = {h: f'"{h.lower()}"' for h in REQUIRED_HEADERS}
        rename["Item-Code"] = "Main Code"
        variant = make_csv(sample_rows(3), headers=shuffled, rename=rename, bom=True)
        result = pipeline.process_upload(str(variant), "variant.csv")

        assert result.inserted == 0
        assert result.ignored == 3

    def test_unparseable_dates_are_skipped(self, database, make_csv):
        rows = sample_rows(3) + [sample_row(10, date="not a date"), sample_row(11, date="")]
        result = IngestionPipeline(database).process_upload(str(make_csv(rows)), "mixed.csv")

        assert result.rows_parsed == 5
        assert result.inserted == 3
        assert result.ignored == 0
        assert _count(database) == 3

    def test_batches_flush_in_order_and_match_single_batch(self, tmp_path, make_csv):
        from db.session import Database, init_db

        path = make_csv(sample_rows(2500))

        batched_db = init_db(Database(f"sqlite:///{tmp_path / 'batched.db'}"))
        single_db = init_db(Database(f"sqlite:///{tmp_path / 'single.db'}"))
        try:
            batched = IngestionPipeline(batched_db, batch_size=1000)
            result = batched.process_upload(str(path), "big.csv")
            assert batched.flush_sizes == [1000, 1000, 500]
            assert batched.flush_count == 3
            assert result.inserted == 2500

            single = IngestionPipeline(single_db, batch_size=10000)
            single.process_upload(str(path), "big.csv")
            assert single.flush_count == 1
            assert _count(single_db) == _count(batched_db) == 2500
        finally:
            batched_db.dispose()
            single_db.dispose()

    def test_subdepartments_last_writer_wins(self, database, make_csv):
        pipeline = IngestionPipeline(database)
        pipeline.process_upload(str(make_csv(sample_rows(2, subdept_desc="DAIRY"))), "a.csv")
        rows = sample_rows(2, start=5, subdept_desc="DAIRY & EGGS") + sample_rows(1, subdept=14, subdept_desc="BAKERY")
        pipeline.process_upload(str(make_csv(rows)), "b.csv")

        with database.session() as session:
            subs = {s.subdept_no: s.subdept_desc for s in session.execute(select(Subdepartment)).scalars()}
        assert subs == {12: "DAIRY & EGGS", 14: "BAKERY"}

    def test_zero_or_blank_subdepartment_not_recorded(self, database, make_csv):
        rows = [sample_row(1, subdept=0), sample_row(2, subdept_desc="")]
        IngestionPipeline(database).process_upload(str(make_csv(rows)), "a.csv")
        with database.session() as session:
            assert session.execute(select(Subdepartment)).first() is None

    def test_upload_meta_recorded(self, database, make_csv):
        rows = sample_rows(3) + [sample_row(9, date="garbage")]
        IngestionPipeline(database).process_upload(str(make_csv(rows)), "audit.csv")

        with database.session() as session:
            meta = session.execute(select(UploadMeta)).scalar_one()
            assert meta.file_name == "audit.csv"
            assert meta.rows_parsed == 4
            assert meta.inserted == 3
            assert meta.ignored == 0
            assert meta.uploaded_at is not None

    def test_sample_dates_are_distinct_and_sorted(self, database, make_csv):
        rows = [
            sample_row(1, date="07/06/2024"),
            sample_row(2, date="2024-07-04"),
            sample_row(3, date="5-Jul-24"),
            sample_row(4, date="2024-07-04"),
        ]
        result = IngestionPipeline(database).process_upload(str(make_csv(rows)), "dates.csv")
        assert result.sample_dates == ["2024-07-04", "2024-07-05", "2024-07-06"]

    def test_payload_uses_camel_case_keys(self, database, make_csv):
        result = IngestionPipeline(database).process_upload(str(make_csv(sample_rows(1))), "one.csv")
        payload = result.to_payload()
        assert set(payload) == {"fileName", "rowsParsed", "inserted", "ignored", "sampleDates", "elapsedMs"}
        assert payload["inserted"] == 1
        assert payload["elapsedMs"] >= 0

    def test_unsupported_extension(self, database, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello", encoding="utf-8")
        with pytest.raises(UnsupportedFileType):
            IngestionPipeline(database).process_upload(str(path), "notes.txt")

    def test_invalid_batch_size(self, database):
        with pytest.raises(ValueError):
            IngestionPipeline(database, batch_size=-1)

    def test_stored_values_are_coerced(self, database, make_csv):
        IngestionPipeline(database).process_upload(str(make_csv([sample_row(1)])), "one.csv")
        with database.session() as session:
            fact = session.execute(select(RawTransaction)).scalar_one()
            assert fact.item_code == "0070000000001"
            assert fact.date_iso == "2024-07-05"
            assert fact.amount_sum == pytest.approx(5.0)
            assert fact.prop_ratio == pytest.approx(-0.25)
            assert fact.bl_margin == pytest.approx(12.5)
            assert fact.source_filename == "one.csv"
            assert len(fact.content_hash) == 64
