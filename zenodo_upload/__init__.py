"""Zenodo Upload Module for the CASES event harvester.

Provides multi-part deposition uploads with a per-deposition size ceiling.
"""

from .client import ZenodoAPIError, ZenodoClient
from .manager import DepositionError, DepositionManager, DepositionPart, UploadResult, format_size
from .schemas import (
    Creator,
    Deposition,
    DepositionFile,
    DepositionMetadata,
    RelatedIdentifier,
)

__all__ = [
    'ZenodoAPIError',
    'ZenodoClient',
    'DepositionError',
    'DepositionManager',
    'DepositionPart',
    'UploadResult',
    'format_size',
    'Creator',
    'Deposition',
    'DepositionFile',
    'DepositionMetadata',
    'RelatedIdentifier',
]
