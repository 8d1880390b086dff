"""Zenodo Deposition Manager - multi-part uploads under a per-deposition size ceiling.

A run starts with one deposition (part 1). Before every upload the size of
the active part is read back from Zenodo; when the pending file would push
it past the ceiling a new deposition is opened, its metadata points back at
every earlier part, and the upload goes to the new part's bucket instead.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from config import MetadataConfig, SizeFailurePolicy
from models import LedgerService
from .client import ZenodoAPIError, ZenodoClient
from .schemas import Creator, Deposition, DepositionMetadata, RelatedIdentifier

logger = logging.getLogger(__name__)

BUCKET_URL_PATTERN = re.compile(r'^https://.*/api/files/.+')


class DepositionError(Exception):
    """A deposition could not be created or attached. Fatal for the run."""


@dataclass
class DepositionPart:
    """One deposition receiving part of the run's output."""
    deposition_id: int
    bucket_url: str
    part_number: int
    html_url: Optional[str] = None
    last_reported_size: Optional[int] = None  # from the most recent files listing


@dataclass
class UploadResult:
    """Result of one archive upload."""
    success: bool
    path: Path
    size: int = 0
    deposition_id: Optional[int] = None
    part_number: Optional[int] = None
    status_code: Optional[int] = None
    upload_time: float = 0.0
    error: Optional[str] = None
    response_body: Optional[str] = None


def format_size(bytes_size: int) -> str:
    """Format bytes as human-readable size."""
    if bytes_size == 0:
        return "0 B"
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_size < 1024.0:
            return f"{bytes_size:.2f} {unit}"
        bytes_size /= 1024.0
    return f"{bytes_size:.2f} PB"


class DepositionManager:
    """Owns the active deposition part and every part opened during a run."""

    def __init__(self, client: ZenodoClient, metadata: MetadataConfig, max_part_bytes: int,
                 size_failure_policy: SizeFailurePolicy = SizeFailurePolicy.ASSUME_EMPTY,
                 ledger: Optional[LedgerService] = None, show_progress: bool = False):
        self.client = client
        self.metadata = metadata
        self.max_part_bytes = max_part_bytes
        self.size_failure_policy = size_failure_policy
        self.ledger = ledger
        self.show_progress = show_progress
        self._parts: List[DepositionPart] = []

    @property
    def current_part(self) -> DepositionPart:
        if not self._parts:
            raise DepositionError("No deposition part is active; call start() or resume() first")
        return self._parts[-1]

    @property
    def parts(self) -> List[DepositionPart]:
        return list(self._parts)

    def build_metadata(self, part_number: int, prior_parts: Sequence[DepositionPart] = ()) -> DepositionMetadata:
        """Metadata for a part; later parts reference every earlier part."""
        title = self.metadata.title
        description = self.metadata.description
        related = []

        if part_number > 1:
            title = f"{title} (Part {part_number})"
            references = ", ".join(
                f"part {p.part_number}: {self.client.record_url(p.deposition_id)}" for p in prior_parts
            )
            description = f"{description}\n\nPart {part_number} of a multi-part dataset. Earlier {references}"
            related = [
                RelatedIdentifier(identifier=self.client.record_url(p.deposition_id), relation="continues")
                for p in prior_parts
            ]

        return DepositionMetadata(
            title=title,
            upload_type=self.metadata.upload_type,
            description=description,
            creators=[Creator(**creator) for creator in self.metadata.creators],
            keywords=list(self.metadata.keywords),
            related_identifiers=related,
        )

    def _write_metadata(self, deposition_id, metadata: DepositionMetadata) -> bool:
        try:
            self.client.update_metadata(deposition_id, metadata)
            logger.info(f"Updated metadata for deposition {deposition_id}")
            return True
        except ZenodoAPIError as e:
            logger.warning(f"Failed to update metadata for deposition {deposition_id} ({e}), continuing with uploads")
            if e.body:
                logger.warning(f"Metadata response: {e.body}")
            return False

    def _check_bucket(self, deposition: Deposition) -> str:
        bucket = deposition.bucket_url
        if not bucket:
            raise DepositionError(f"Deposition {deposition.id} response has no bucket link")
        if not BUCKET_URL_PATTERN.match(bucket):
            logger.warning(f"Bucket URL format may be incorrect: {bucket}")
        return bucket

    def _log_creation_failure(self, error: ZenodoAPIError):
        logger.error(f"Failed to create Zenodo deposition ({error})")
        if error.body:
            logger.error(f"Full response: {error.body}")
        if error.status_code == 403:
            logger.error("Common fixes for 403 Permission denied:")
            logger.error("  1. Check that the token has 'deposit:write' and 'deposit:actions' scopes")
            logger.error("  2. Use a sandbox token with sandbox.zenodo.org and a production token with zenodo.org")
            logger.error("  3. Create a new token under Account > Applications > Personal access tokens")

    def _open_part(self, part_number: int) -> DepositionPart:
        """Create a deposition, write its metadata and make it the active part."""
        logger.info(f"Creating Zenodo deposition for part {part_number}...")
        try:
            deposition = self.client.create_deposition()
        except ZenodoAPIError as e:
            self._log_creation_failure(e)
            raise DepositionError(f"Failed to create deposition for part {part_number}: {e}") from e

        bucket = self._check_bucket(deposition)
        part = DepositionPart(
            deposition_id=deposition.id,
            bucket_url=bucket,
            part_number=part_number,
            html_url=deposition.html_url,
        )
        logger.info(f"Created deposition {part.deposition_id} (part {part_number})")
        logger.info(f"  Bucket URL: {bucket}")

        metadata_ok = self._write_metadata(part.deposition_id, self.build_metadata(part_number, self._parts))

        self._parts.append(part)
        if self.ledger:
            self.ledger.record_part(part.deposition_id, part_number, bucket, part.html_url, metadata_ok)
        return part

    def start(self) -> DepositionPart:
        """Open part 1. Must succeed before any event is processed."""
        if self._parts:
            return self.current_part
        return self._open_part(1)

    def resume(self, deposition_id, part_number: int = 1,
               prior_parts: Sequence[DepositionPart] = ()) -> DepositionPart:
        """Attach to an existing deposition, e.g. to retry archives from an earlier run."""
        try:
            deposition = self.client.get_deposition(deposition_id)
        except ZenodoAPIError as e:
            raise DepositionError(f"Cannot attach to deposition {deposition_id}: {e}") from e

        part = DepositionPart(
            deposition_id=deposition.id,
            bucket_url=self._check_bucket(deposition),
            part_number=part_number,
            html_url=deposition.html_url,
        )
        self._parts = list(prior_parts) + [part]
        logger.info(f"Resumed deposition {part.deposition_id} as part {part_number}")
        return part

    def remote_size(self, part: Optional[DepositionPart] = None) -> int:
        """Sum of the file sizes Zenodo reports for a part."""
        part = part or self.current_part
        try:
            files = self.client.list_files(part.deposition_id)
        except ZenodoAPIError as e:
            if self.size_failure_policy == SizeFailurePolicy.ASSUME_FULL:
                logger.warning(
                    f"Could not read size of deposition {part.deposition_id} ({e}); assuming it is full"
                )
                return self.max_part_bytes
            logger.warning(
                f"Could not read size of deposition {part.deposition_id} ({e}); assuming it is empty"
            )
            return 0
        part.last_reported_size = sum(f.byte_size for f in files)
        return part.last_reported_size

    def upload(self, path: Path) -> UploadResult:
        """
        Upload one file to the active part, opening a new part first if needed.

        Args:
            path: Local archive to upload

        Returns:
            UploadResult; failed uploads are not retried here

        Raises:
            DepositionError: If a new part is needed and cannot be created
        """
        path = Path(path)
        if not path.is_file():
            logger.error(f"File not found: {path}")
            return UploadResult(success=False, path=path, error="File not found")

        file_size = path.stat().st_size
        part = self.current_part
        current_size = self.remote_size(part)

        if current_size + file_size > self.max_part_bytes:
            if current_size > 0:
                logger.info(
                    f"Part {part.part_number} holds {format_size(current_size)}; adding "
                    f"{format_size(file_size)} would exceed {format_size(self.max_part_bytes)}"
                )
                part = self._open_part(part.part_number + 1)
            else:
                logger.warning(
                    f"{path.name} ({format_size(file_size)}) alone exceeds the part limit of "
                    f"{format_size(self.max_part_bytes)}; uploading to empty part {part.part_number}"
                )

        logger.info(f"Uploading {path.name} to deposition {part.deposition_id} (part {part.part_number})")
        logger.info(f"  File size: {format_size(file_size)}")
        logger.info(f"  Target URL: {part.bucket_url}/{path.name}")

        start_time = datetime.now()
        try:
            self.client.upload_file(part.bucket_url, path, show_progress=self.show_progress)
        except ZenodoAPIError as e:
            logger.error(f"Error uploading {path.name}: {e}")
            if e.body:
                logger.error(f"  Response: {e.body}")
            return UploadResult(
                success=False,
                path=path,
                size=file_size,
                deposition_id=part.deposition_id,
                part_number=part.part_number,
                status_code=e.status_code,
                error=str(e),
                response_body=e.body,
            )

        upload_time = (datetime.now() - start_time).total_seconds()
        logger.info(f"Successfully uploaded {path.name} in {upload_time:.1f}s")
        return UploadResult(
            success=True,
            path=path,
            size=file_size,
            deposition_id=part.deposition_id,
            part_number=part.part_number,
            upload_time=upload_time,
        )
