"""
Request entry points for photoshelf.

- IngestionPipeline: upload -> store -> catalog -> derivatives
- DeletionPipeline: catalog record -> original -> thumbnail -> preview
"""

from .deletion import DeletionOutcome, DeletionPipeline, DeletionStatus
from .ingestion import IngestionPipeline, IngestionResult, UploadedFile, derive_stored_filename

__all__ = [
    "DeletionOutcome",
    "DeletionPipeline",
    "DeletionStatus",
    "IngestionPipeline",
    "IngestionResult",
    "UploadedFile",
    "derive_stored_filename",
]
