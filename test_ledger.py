"""Tests for the SQLAlchemy harvest ledger."""

import pytest

from models import (
    ARCHIVE_FAILED,
    ARCHIVE_PENDING,
    ARCHIVE_UPLOADED,
    DatabaseManager,
    LedgerService,
)


@pytest.fixture
def db_manager(tmp_path):
    db = DatabaseManager(f"sqlite:///{tmp_path / 'ledger.db'}")
    db.create_tables()
    yield db
    db.close()


def test_archive_lifecycle(db_manager):
    ledger = LedgerService(db_manager, run_id="20210214_093005")

    record = ledger.record_archive("a.tar.gz", "/archives/a.tar.gz", 1234, 25)
    assert record.status == ARCHIVE_PENDING
    assert record.run_id == "20210214_093005"

    failed = ledger.mark_failed("/archives/a.tar.gz", "HTTP 500: boom")
    assert failed.status == ARCHIVE_FAILED
    assert failed.attempts == 1
    assert [a.name for a in ledger.pending_archives()] == ["a.tar.gz"]

    uploaded = ledger.mark_uploaded("/archives/a.tar.gz", 1000, 2)
    assert uploaded.status == ARCHIVE_UPLOADED
    assert uploaded.attempts == 2
    assert uploaded.deposition_id == "1000"
    assert uploaded.part_number == 2
    assert uploaded.last_error is None
    assert uploaded.uploaded_at is not None
    assert ledger.pending_archives() == []


def test_record_archive_resets_existing_path(db_manager):
    ledger = LedgerService(db_manager)
    ledger.record_archive("a.tar.gz", "/archives/a.tar.gz", 10, 1)
    ledger.mark_uploaded("/archives/a.tar.gz", 1, 1)

    ledger.record_archive("a.tar.gz", "/archives/a.tar.gz", 20, 2)

    [record] = ledger.list_archives()
    assert record.status == ARCHIVE_PENDING
    assert record.size_bytes == 20


def test_unknown_archive_is_ignored(db_manager):
    ledger = LedgerService(db_manager)
    assert ledger.mark_uploaded("/nowhere.tar.gz", 1, 1) is None
    assert ledger.mark_failed("/nowhere.tar.gz") is None


def test_parts_by_run(db_manager):
    first = LedgerService(db_manager, run_id="run-a")
    first.record_part(1000, 1, "https://zenodo.test/api/files/b-1000", metadata_ok=True)
    first.record_part(1001, 2, "https://zenodo.test/api/files/b-1001")
    second = LedgerService(db_manager, run_id="run-b")
    second.record_part(2000, 1, "https://zenodo.test/api/files/b-2000", "https://zenodo.test/deposit/2000")

    latest = first.latest_part()
    assert latest.deposition_id == "2000"
    assert latest.run_id == "run-b"

    parts = first.parts_for_deposition_run("run-a")
    assert [(p.part_number, p.deposition_id) for p in parts] == [(1, "1000"), (2, "1001")]
    assert parts[0].metadata_ok is True
    assert parts[1].metadata_ok is False
    assert len(first.list_parts()) == 3


def test_ledger_persists_across_managers(tmp_path):
    url = f"sqlite:///{tmp_path / 'ledger.db'}"
    db = DatabaseManager(url)
    db.create_tables()
    LedgerService(db, run_id="r").record_archive("a.tar.gz", "/a.tar.gz", 1, 1)
    db.close()

    reopened = DatabaseManager(url)
    reopened.create_tables()
    assert [a.path for a in LedgerService(reopened).pending_archives()] == ["/a.tar.gz"]
    reopened.close()


def test_archive_members_and_lookup(db_manager):
    ledger = LedgerService(db_manager)
    ledger.record_archive("a.tar.gz", "/archives/a.tar.gz", 10, 2, ["event_001/x.log", "event_001/y.log"])
    ledger.record_archive("b.tar.gz", "/archives/b.tar.gz", 10, 0)

    first, second = ledger.list_archives()
    assert first.member_list == ["event_001/x.log", "event_001/y.log"]
    assert second.member_list == []
    assert ledger.has_archive("/archives/a.tar.gz")
    assert not ledger.has_archive("/archives/c.tar.gz")
