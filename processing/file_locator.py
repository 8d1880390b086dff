"""
Raw file discovery across redundant storage roots.

The same raw file is often present on several volumes (backups, mirrors).
Every root is probed for the receiver/day directory, and duplicates that
share a filename collapse to the largest copy, which is taken as the most
complete one.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from config import FileType, FileTypeFilter
from .day_utils import format_doy

logger = logging.getLogger(__name__)

BIN_FILENAME_PATTERN = re.compile(r'^(?P<prefix>[A-Za-z]+)_(?P<year>\d{4})_(?P<doy>\d{3})_(?P<hhmm>\d{4})\.bin$')

DEFAULT_TYPE_PREFIXES = {
    FileType.PRIMARY: 'dataout',
    FileType.EXTENDED: 'dataoutiq',
}


@dataclass(frozen=True)
class BinFileRecord:
    """One raw file found under one storage root."""
    filename: str
    size: int
    path: Path
    file_type: FileType
    year: int
    doy: int
    hhmm: str

    @property
    def hour(self) -> int:
        return int(self.hhmm[:2])


def parse_bin_filename(filename: str) -> Optional[dict]:
    """Split a raw filename into prefix, year, doy and HHMM, or None if it doesn't match."""
    match = BIN_FILENAME_PATTERN.match(filename)
    if not match:
        return None
    return {
        'prefix': match.group('prefix'),
        'year': int(match.group('year')),
        'doy': int(match.group('doy')),
        'hhmm': match.group('hhmm'),
    }


def select_canonical(records: Iterable[BinFileRecord]) -> List[BinFileRecord]:
    """
    Collapse records sharing a filename to one canonical record each.

    The strictly largest copy wins; on equal sizes the first record seen is
    kept, so the result only depends on root scan order.

    Returns:
        Canonical records sorted by filename
    """
    canonical: Dict[str, BinFileRecord] = {}

    for record in records:
        current = canonical.get(record.filename)
        if current is None:
            canonical[record.filename] = record
            continue

        if record.size > current.size:
            logger.info(
                f"Duplicate {record.filename}: using {record.path} ({record.size} bytes) "
                f"over {current.path} ({current.size} bytes)"
            )
            canonical[record.filename] = record
        else:
            logger.info(
                f"Duplicate {record.filename}: keeping {current.path} ({current.size} bytes), "
                f"ignoring {record.path} ({record.size} bytes)"
            )

    selected = [canonical[name] for name in sorted(canonical)]
    for record in selected:
        logger.debug(f"Selected {record.filename} from {record.path.parent} ({record.size} bytes)")
    return selected


class BinFileLocator:
    """Finds deduplicated raw files for a receiver and day across storage roots."""

    def __init__(self, storage_roots: Sequence[str], type_prefixes: Optional[Dict[FileType, str]] = None):
        self.storage_roots = [Path(root) for root in storage_roots]
        self.type_prefixes = dict(DEFAULT_TYPE_PREFIXES)
        if type_prefixes:
            self.type_prefixes.update(type_prefixes)

    def bin_directory(self, root: Path, year: int, doy: int, receiver: str) -> Path:
        return root / str(year) / format_doy(doy) / receiver / 'bin'

    def _types_for(self, type_filter: FileTypeFilter) -> List[FileType]:
        if type_filter == FileTypeFilter.BOTH:
            return [FileType.PRIMARY, FileType.EXTENDED]
        return [FileType(type_filter.value)]

    def _scan_directory(self, bin_dir: Path, year: int, doy: int,
                        file_types: List[FileType]) -> List[BinFileRecord]:
        """List matching raw files in one receiver bin directory."""
        records = []
        try:
            entries = sorted(bin_dir.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning(f"Cannot list {bin_dir}: {e}")
            return records

        for entry in entries:
            parsed = parse_bin_filename(entry.name)
            if not parsed or parsed['year'] != year or parsed['doy'] != doy:
                continue

            for file_type in file_types:
                if parsed['prefix'] != self.type_prefixes[file_type]:
                    continue
                try:
                    if not entry.is_file():
                        continue
                    size = entry.stat().st_size
                except OSError as e:
                    logger.warning(f"Cannot stat {entry}: {e}")
                    continue

                records.append(BinFileRecord(
                    filename=entry.name,
                    size=size,
                    path=entry.resolve(),
                    file_type=file_type,
                    year=year,
                    doy=doy,
                    hhmm=parsed['hhmm'],
                ))
        return records

    def collect_candidates(self, year: int, doy: int, receiver: str,
                           type_filter: FileTypeFilter = FileTypeFilter.PRIMARY) -> List[BinFileRecord]:
        """Gather every matching raw file from every root, duplicates included."""
        file_types = self._types_for(type_filter)
        candidates: List[BinFileRecord] = []

        for root in self.storage_roots:
            bin_dir = self.bin_directory(root, year, doy, receiver)
            if not bin_dir.is_dir():
                logger.debug(f"Directory not found: {bin_dir}")
                continue

            found = self._scan_directory(bin_dir, year, doy, file_types)
            if not found:
                logger.warning(f"No {type_filter.value} bin files found in {bin_dir}")
                continue

            logger.info(f"Found {len(found)} bin files in {bin_dir}")
            candidates.extend(found)

        return candidates

    def locate_records(self, year: int, doy: int, receiver: str,
                       type_filter: FileTypeFilter = FileTypeFilter.PRIMARY) -> List[BinFileRecord]:
        return select_canonical(self.collect_candidates(year, doy, receiver, type_filter))

    def locate(self, year: int, doy: int, receiver: str,
               type_filter: FileTypeFilter = FileTypeFilter.PRIMARY) -> List[Path]:
        """
        Find canonical raw file paths for a receiver and day.

        Args:
            year: Calendar year
            doy: Day of year
            receiver: Receiver name (e.g. grid108)
            type_filter: Which raw file classes to include

        Returns:
            List of absolute paths, empty when nothing was found
        """
        return [record.path for record in self.locate_records(year, doy, receiver, type_filter)]
