"""Database models for the harvest ledger.

The ledger records every deposition part and every archive built during a
run, so archives whose upload failed can be found and retried later.
"""

import json
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean, DateTime, Integer, String, Text,
    create_engine, Column, Index
)
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

ARCHIVE_PENDING = 'pending'
ARCHIVE_UPLOADED = 'uploaded'
ARCHIVE_FAILED = 'failed'


class DepositionPartRecord(Base):
    """One Zenodo deposition used as a part of a run's output."""
    __tablename__ = 'deposition_parts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(50), nullable=False, index=True)
    deposition_id = Column(String(50), nullable=False)
    part_number = Column(Integer, nullable=False)
    bucket_url = Column(String(500), nullable=False)
    html_url = Column(String(500))
    metadata_ok = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('idx_part_deposition', 'deposition_id'),
    )

    def __repr__(self):
        return f"<DepositionPartRecord(deposition_id='{self.deposition_id}', part={self.part_number})>"


class ArchiveRecord(Base):
    """One staged archive and its upload state."""
    __tablename__ = 'archives'

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(50), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    path = Column(String(1000), unique=True, nullable=False)
    size_bytes = Column(Integer)
    member_count = Column(Integer)
    members = Column(Text)  # JSON list of paths relative to the staging directory
    status = Column(String(20), default=ARCHIVE_PENDING, index=True)
    attempts = Column(Integer, default=0)
    deposition_id = Column(String(50))
    part_number = Column(Integer)
    last_error = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    uploaded_at = Column(DateTime)

    @property
    def member_list(self) -> List[str]:
        return json.loads(self.members) if self.members else []

    def __repr__(self):
        return f"<ArchiveRecord(name='{self.name}', status='{self.status}')>"


class DatabaseManager:
    """Database connection and session management."""

    def __init__(self, connection_string: str):
        self.engine = create_engine(connection_string, echo=False)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def create_tables(self):
        """Create all tables."""
        Base.metadata.create_all(bind=self.engine)

    def get_session(self):
        """Get a database session."""
        return self.SessionLocal()

    def close(self):
        """Close the database connection."""
        self.engine.dispose()


class LedgerService:
    """High-level ledger operations."""

    def __init__(self, db_manager: DatabaseManager, run_id: Optional[str] = None):
        self.db_manager = db_manager
        self.run_id = run_id or datetime.now().strftime('%Y%m%d_%H%M%S')

    def record_part(self, deposition_id, part_number: int, bucket_url: str,
                    html_url: Optional[str] = None, metadata_ok: bool = False) -> DepositionPartRecord:
        session = self.db_manager.get_session()
        try:
            record = DepositionPartRecord(
                run_id=self.run_id,
                deposition_id=str(deposition_id),
                part_number=part_number,
                bucket_url=bucket_url,
                html_url=html_url,
                metadata_ok=metadata_ok,
            )
            session.add(record)
            session.commit()
            return record
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def record_archive(self, name: str, path: str, size_bytes: int, member_count: int,
                       members: Optional[List[str]] = None) -> ArchiveRecord:
        """Add an archive, or reset an existing record for the same path."""
        session = self.db_manager.get_session()
        try:
            record = session.query(ArchiveRecord).filter_by(path=str(path)).first()
            if record is None:
                record = ArchiveRecord(run_id=self.run_id, name=name, path=str(path))
                session.add(record)
            record.size_bytes = size_bytes
            record.member_count = member_count
            record.members = json.dumps(list(members or []))
            record.status = ARCHIVE_PENDING
            session.commit()
            return record
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def has_archive(self, path: str) -> bool:
        session = self.db_manager.get_session()
        try:
            return session.query(ArchiveRecord).filter_by(path=str(path)).first() is not None
        finally:
            session.close()

    def _update_archive(self, path: str, **changes) -> Optional[ArchiveRecord]:
        session = self.db_manager.get_session()
        try:
            record = session.query(ArchiveRecord).filter_by(path=str(path)).first()
            if record is None:
                return None
            for key, value in changes.items():
                setattr(record, key, value)
            record.attempts = (record.attempts or 0) + 1
            session.commit()
            return record
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def mark_uploaded(self, path: str, deposition_id, part_number: int) -> Optional[ArchiveRecord]:
        return self._update_archive(
            path,
            status=ARCHIVE_UPLOADED,
            deposition_id=str(deposition_id),
            part_number=part_number,
            uploaded_at=datetime.utcnow(),
            last_error=None,
        )

    def mark_failed(self, path: str, error: Optional[str] = None) -> Optional[ArchiveRecord]:
        return self._update_archive(path, status=ARCHIVE_FAILED, last_error=error)

    def pending_archives(self) -> List[ArchiveRecord]:
        """Archives that were built but never uploaded, oldest first."""
        session = self.db_manager.get_session()
        try:
            return session.query(ArchiveRecord).filter(
                ArchiveRecord.status.in_([ARCHIVE_PENDING, ARCHIVE_FAILED])
            ).order_by(ArchiveRecord.id).all()
        finally:
            session.close()

    def latest_part(self) -> Optional[DepositionPartRecord]:
        session = self.db_manager.get_session()
        try:
            return session.query(DepositionPartRecord).order_by(DepositionPartRecord.id.desc()).first()
        finally:
            session.close()

    def parts_for_deposition_run(self, run_id: str) -> List[DepositionPartRecord]:
        session = self.db_manager.get_session()
        try:
            return session.query(DepositionPartRecord).filter_by(
                run_id=run_id
            ).order_by(DepositionPartRecord.part_number).all()
        finally:
            session.close()

    def list_parts(self) -> List[DepositionPartRecord]:
        session = self.db_manager.get_session()
        try:
            return session.query(DepositionPartRecord).order_by(DepositionPartRecord.id).all()
        finally:
            session.close()

    def list_archives(self) -> List[ArchiveRecord]:
        session = self.db_manager.get_session()
        try:
            return session.query(ArchiveRecord).order_by(ArchiveRecord.id).all()
        finally:
            session.close()
