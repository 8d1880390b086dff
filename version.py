import logging
import subprocess
from importlib import metadata

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "cases-event-harvester"


def get_version():
    """Installed package version, or git describe for a source checkout."""
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        pass

    try:
        return subprocess.check_output(
            ['git', 'describe', '--tags', '--always', '--dirty=-dev'],
            stderr=subprocess.DEVNULL,
            text=True
        ).strip()
    except (subprocess.CalledProcessError, FileNotFoundError):
        logger.warning("Could not determine version from git, using fallback")
        return "v0.0.0"


__version__ = get_version()
