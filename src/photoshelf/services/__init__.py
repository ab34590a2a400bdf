"""
Services module for photoshelf.

- AssetStore: on-disk layout of originals, thumbnails and previews
- PhotoCatalog: DuckDB record store for photo metadata
- Derivative generators: external command or in-process Pillow
- Tag parsing and vocabulary
- Reconciliation between catalog and upload tree
"""

from .asset_store import AssetStore, Variant, get_asset_store
from .catalog import PhotoCatalog, close_photo_catalog, get_photo_catalog
from .derivatives import (
    CommandDerivativeGenerator,
    DerivativeGenerator,
    GenerationReport,
    PillowDerivativeGenerator,
    create_derivative_generator,
    get_derivative_generator,
)
from .maintenance import ReconciliationReport, purge_orphans, reconcile
from .tags import normalize_tags, tag_vocabulary

__all__ = [
    "AssetStore",
    "Variant",
    "get_asset_store",
    "PhotoCatalog",
    "close_photo_catalog",
    "get_photo_catalog",
    "CommandDerivativeGenerator",
    "DerivativeGenerator",
    "GenerationReport",
    "PillowDerivativeGenerator",
    "create_derivative_generator",
    "get_derivative_generator",
    "ReconciliationReport",
    "purge_orphans",
    "reconcile",
    "normalize_tags",
    "tag_vocabulary",
]
