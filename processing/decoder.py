"""
Adapter around the external binflate decoder.

binflate writes a fixed set of ``<category>.log`` files into its working
directory and overwrites them on every run. Each decode therefore gets its
own temporary directory, and the outputs are moved into the event's
staging folder before that directory is released.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from config import ConfigError, FileType
from .file_locator import parse_bin_filename

logger = logging.getLogger(__name__)

LOG_CATEGORIES: Dict[FileType, Tuple[str, ...]] = {
    FileType.PRIMARY: ('iono', 'scint', 'navsol', 'channel', 'txinfo'),
    FileType.EXTENDED: ('iq',),
}


class DecoderNotFoundError(ConfigError):
    """Raised when the decoder executable is missing or not executable."""


def decoded_log_name(bin_path: Path, category: str, receiver: str) -> str:
    """Staging name for one decoded log: YYYY_DDD_<category>_<receiver>_HHMM.log"""
    parsed = parse_bin_filename(bin_path.name)
    if parsed:
        return f"{parsed['year']}_{parsed['doy']:03d}_{category}_{receiver}_{parsed['hhmm']}.log"
    return f"{bin_path.stem}_{category}_{receiver}.log"


class BinflateDecoder:
    """Runs binflate once per raw file and collects its log outputs."""

    def __init__(self, executable: str, extra_args: Optional[Sequence[str]] = None,
                 timeout: Optional[float] = None):
        self.executable = Path(executable)
        self.extra_args = list(extra_args or [])
        self.timeout = timeout

    def check_available(self):
        """Verify the decoder can be run.

        Raises:
            DecoderNotFoundError: If the executable is missing or not executable
        """
        if not self.executable.is_file():
            raise DecoderNotFoundError(f"binflate not found at {self.executable}")
        if not os.access(self.executable, os.X_OK):
            raise DecoderNotFoundError(f"binflate is not executable: {self.executable}")
        logger.info(f"Using decoder: {self.executable}")

    @contextmanager
    def _workdir(self) -> Iterator[Path]:
        """Isolated working directory for one decoder run."""
        with tempfile.TemporaryDirectory(prefix='binflate_') as tmp:
            yield Path(tmp)

    def _run(self, workdir: Path, local_bin: Path) -> bool:
        cmd = [str(self.executable.resolve()), '-i', local_bin.name] + self.extra_args
        try:
            result = subprocess.run(
                cmd,
                cwd=workdir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Decoder timed out after {self.timeout}s on {local_bin.name}")
            return False
        except OSError as e:
            logger.error(f"Could not run decoder on {local_bin.name}: {e}")
            return False

        if result.returncode != 0:
            logger.warning(
                f"Decoder exited with status {result.returncode} on {local_bin.name}: "
                f"{result.stderr.strip()[:500]}"
            )
        return True

    def decode(self, bin_path: Path, file_type: FileType, destination: Path,
               receiver: str) -> List[Path]:
        """
        Decode one raw file into the destination folder.

        Args:
            bin_path: Located raw file
            file_type: Raw file class, decides which log categories are expected
            destination: Event staging folder
            receiver: Receiver name used in the decoded log names

        Returns:
            Paths of the decoded logs now in destination (may be empty)
        """
        bin_path = Path(bin_path)
        destination.mkdir(parents=True, exist_ok=True)
        collected = []

        with self._workdir() as workdir:
            local_bin = workdir / f"temp_{bin_path.name}"
            try:
                shutil.copy2(bin_path, local_bin)
            except OSError as e:
                logger.error(f"Could not copy {bin_path} for decoding: {e}")
                return collected

            if not self._run(workdir, local_bin):
                return collected

            for category in LOG_CATEGORIES[file_type]:
                output = workdir / f"{category}.log"
                if not output.is_file():
                    continue
                target = destination / decoded_log_name(bin_path, category, receiver)
                shutil.move(str(output), str(target))
                collected.append(target)

        if collected:
            logger.info(f"Decoded {bin_path.name}: {len(collected)} logs")
        else:
            logger.debug(f"Decoder produced no recognized output for {bin_path.name}")
        return collected
