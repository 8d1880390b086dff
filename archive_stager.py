"""Archive staging for decoded event logs.

Decoded logs collect under ``staging_dir/<event folder>/``. After each event
the staged size is polled from disk; once it passes the configured ceiling
everything staged is packed into one tar archive and handed to the uploader.
Archives whose upload fails stay pending (with their staged members) and are
retried at the next flush. With a ledger, archives left pending by an earlier
run are picked up again, so their members are never packed a second time.
"""

import logging
import tarfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Set

from models import ArchiveRecord, LedgerService
from processing.events import Event
from zenodo_upload.manager import format_size

logger = logging.getLogger(__name__)


@dataclass
class Archive:
    """An archive built from the staging area."""
    name: str
    path: Path
    members: List[Path]
    size: int
    original_size: int = 0


@dataclass
class FlushResult:
    """What a flush did."""
    built: List[Archive] = field(default_factory=list)
    uploaded: List[Archive] = field(default_factory=list)
    failed: List[Archive] = field(default_factory=list)

    def merge(self, other: 'FlushResult') -> 'FlushResult':
        self.built.extend(other.built)
        self.uploaded.extend(other.uploaded)
        self.failed.extend(other.failed)
        return self


class ArchiveStager:
    """Stages decoded logs per event and flushes them into uploaded archives."""

    def __init__(self, staging_dir, archive_dir, max_staged_bytes: int,
                 uploader: Callable[[Path], object], compression_level: int = 6,
                 keep_archives: bool = True, name_prefix: str = "cases_events",
                 ledger: Optional[LedgerService] = None):
        self.staging_dir = Path(staging_dir)
        self.archive_dir = Path(archive_dir)
        self.max_staged_bytes = max_staged_bytes
        self.uploader = uploader
        self.compression_level = compression_level
        self.keep_archives = keep_archives
        self.name_prefix = name_prefix
        self.ledger = ledger

        self.pending: List[Archive] = []
        self.archives_built = 0
        self.archives_uploaded = 0
        self._sequence = 0

        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self.archive_dir.mkdir(parents=True, exist_ok=True)

        if self.ledger:
            self._load_pending()

    def _from_record(self, record: ArchiveRecord) -> Archive:
        return Archive(
            name=record.name,
            path=Path(record.path),
            members=[self.staging_dir / member for member in record.member_list],
            size=record.size_bytes or 0,
        )

    def _load_pending(self):
        """Adopt archives an earlier run built but could not upload."""
        for record in self.ledger.pending_archives():
            if not Path(record.path).is_file():
                logger.warning(f"Ledger lists {record.name} as pending but {record.path} is missing")
                continue
            self.pending.append(self._from_record(record))
        if self.pending:
            logger.info(f"{len(self.pending)} archive(s) from earlier runs pending upload")

    def event_folder(self, event: Event) -> Path:
        folder = self.staging_dir / event.folder_name
        folder.mkdir(parents=True, exist_ok=True)
        return folder

    def _claimed(self) -> Set[Path]:
        return {member for archive in self.pending for member in archive.members}

    def staged_files(self) -> List[Path]:
        """Staged files not already packed into a pending archive."""
        if not self.staging_dir.exists():
            return []
        claimed = self._claimed()
        return sorted(
            p for p in self.staging_dir.rglob('*')
            if p.is_file() and p not in claimed
        )

    def staged_size(self) -> int:
        return sum(p.stat().st_size for p in self.staged_files())

    def _next_archive_path(self) -> Path:
        """Fresh archive path; never reuses a name on disk or in the ledger."""
        ext = '.tar.gz' if self.compression_level > 0 else '.tar'
        stamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
        while True:
            self._sequence += 1
            path = self.archive_dir / f"{self.name_prefix}_{stamp}_{self._sequence:04d}{ext}"
            if path.exists() or path.with_name(path.name + '.part').exists():
                continue
            if self.ledger and self.ledger.has_archive(str(path)):
                continue
            return path

    def build_archive(self) -> Optional[Archive]:
        """Pack every unclaimed staged file into a new archive.

        Returns:
            The new Archive, or None when nothing is staged or the build failed
        """
        files = self.staged_files()
        if not files:
            logger.debug("Staging area is empty, no archive built")
            return None

        archive_path = self._next_archive_path()
        partial_path = archive_path.with_name(archive_path.name + '.part')
        mode = 'w:gz' if self.compression_level > 0 else 'w'
        compress_args = {'compresslevel': self.compression_level} if self.compression_level > 0 else {}

        logger.info(f"Creating archive: {archive_path}")
        logger.info(f"  Files: {len(files)}")

        total_size = 0
        try:
            with tarfile.open(partial_path, mode, **compress_args) as tar:
                for file_path in files:
                    arcname = file_path.relative_to(self.staging_dir).as_posix()
                    tar.add(file_path, arcname=arcname)
                    total_size += file_path.stat().st_size
            partial_path.rename(archive_path)
        except (OSError, tarfile.TarError) as e:
            logger.error(f"Error creating archive {archive_path}: {e}")
            partial_path.unlink(missing_ok=True)
            return None

        archive = Archive(
            name=archive_path.name,
            path=archive_path,
            members=files,
            size=archive_path.stat().st_size,
            original_size=total_size,
        )
        self.archives_built += 1

        logger.info(f"✓ Archive created: {archive.name}")
        logger.info(f"  Original size: {format_size(total_size)}")
        logger.info(f"  Archive size: {format_size(archive.size)}")

        if self.ledger:
            members = [f.relative_to(self.staging_dir).as_posix() for f in files]
            self.ledger.record_archive(archive.name, str(archive.path), archive.size, len(files), members)
        return archive

    def _release(self, archive: Archive):
        """Drop an uploaded archive's members from staging."""
        for member in archive.members:
            member.unlink(missing_ok=True)
        self._prune_empty_folders()

        if archive in self.pending:
            self.pending.remove(archive)

        if not self.keep_archives:
            archive.path.unlink(missing_ok=True)
            logger.info(f"Removed local archive: {archive.name}")

    def _prune_empty_folders(self):
        if not self.staging_dir.exists():
            return
        for folder in sorted(self.staging_dir.rglob('*'), key=lambda p: len(p.parts), reverse=True):
            if folder.is_dir() and not any(folder.iterdir()):
                folder.rmdir()

    def _upload(self, archive: Archive, result: FlushResult) -> bool:
        try:
            outcome = self.uploader(archive.path)
        except Exception as e:
            if self.ledger:
                self.ledger.mark_failed(str(archive.path), str(e))
            raise

        if getattr(outcome, 'success', False):
            self.archives_uploaded += 1
            result.uploaded.append(archive)
            if self.ledger:
                self.ledger.mark_uploaded(str(archive.path), outcome.deposition_id, outcome.part_number)
            self._release(archive)
            return True

        error = getattr(outcome, 'error', None)
        logger.warning(f"Upload failed, keeping local archive for retry: {archive.path}")
        result.failed.append(archive)
        if self.ledger:
            self.ledger.mark_failed(str(archive.path), error)
        return False

    def retry_pending(self) -> FlushResult:
        """Retry uploads of archives whose earlier attempt failed."""
        result = FlushResult()
        for archive in list(self.pending):
            if not archive.path.exists():
                logger.error(f"Pending archive disappeared, dropping it: {archive.path}")
                self.pending.remove(archive)
                continue
            logger.info(f"Retrying upload of {archive.name}")
            self._upload(archive, result)
        return result

    def _flush(self) -> FlushResult:
        result = FlushResult()
        archive = self.build_archive()
        if archive is None:
            return result
        result.built.append(archive)
        self.pending.append(archive)
        self._upload(archive, result)
        return result

    def maybe_flush(self) -> FlushResult:
        """Retry pending uploads, then archive and upload if staging is over the ceiling."""
        result = self.retry_pending()

        staged = self.staged_size()
        if staged > self.max_staged_bytes:
            logger.info(
                f"Staged size {format_size(staged)} exceeds {format_size(self.max_staged_bytes)}, flushing"
            )
            result.merge(self._flush())
        else:
            logger.debug(f"Staged size {format_size(staged)} below ceiling, not flushing")
        return result

    def final_flush(self) -> FlushResult:
        """Retry pending uploads and flush whatever is still staged."""
        result = self.retry_pending()
        result.merge(self._flush())
        return result

    def cleanup(self) -> bool:
        """Remove the staging tree after a clean run; keep it when anything is left."""
        if self.pending:
            logger.warning(
                f"{len(self.pending)} archive(s) still pending upload; staging kept at {self.staging_dir}"
            )
            return False
        self._prune_empty_folders()
        if self.staging_dir.exists():
            if any(self.staging_dir.iterdir()):
                logger.warning(f"Staging area not empty, kept at {self.staging_dir}")
                return False
            self.staging_dir.rmdir()
        return True
