"""
Health checks for photoshelf.

Each check returns a dict with ``status`` ("healthy" / "unhealthy"), a
message and a timestamp; ``perform_health_check`` combines them.
"""

import json
import os
import time
from typing import Any

from . import __version__
from .config import get_environment
from .logging_config import get_logger
from .services.asset_store import VARIANT_ORDER, AssetStore, get_asset_store
from .services.catalog import PhotoCatalog, get_photo_catalog
from .services.derivatives import DerivativeGenerator, get_derivative_generator

logger = get_logger(__name__)


def check_catalog_health(catalog: PhotoCatalog | None = None) -> dict[str, Any]:
    """Check that the catalog answers a query."""
    catalog = catalog or get_photo_catalog()
    try:
        photo_count = catalog.count()
        return {
            "status": "healthy",
            "message": "Catalog query successful",
            "photo_count": photo_count,
            "timestamp": time.time(),
        }
    except Exception as e:
        logger.error("catalog_health_check_failed", error=str(e))
        return {"status": "unhealthy", "message": f"Catalog query failed: {str(e)}", "timestamp": time.time()}


def check_storage_health(store: AssetStore | None = None) -> dict[str, Any]:
    """Check that every variant directory exists and is writable."""
    store = store or get_asset_store()
    problems = []

    for variant in VARIANT_ORDER:
        directory = store.variant_dir(variant)
        if not directory.is_dir():
            problems.append(f"{directory} does not exist")
        elif not os.access(directory, os.W_OK):
            problems.append(f"{directory} is not writable")

    if problems:
        logger.error("storage_health_check_failed", problems=problems)
        return {"status": "unhealthy", "message": "; ".join(problems), "timestamp": time.time()}

    return {"status": "healthy", "message": f"Upload tree ready at {store.root}", "timestamp": time.time()}


def check_generator_health(generator: DerivativeGenerator | None = None) -> dict[str, Any]:
    """Check that the derivative generator can run."""
    generator = generator or get_derivative_generator()
    is_available = getattr(generator, "is_available", None)
    available = is_available() if callable(is_available) else True

    return {
        "status": "healthy" if available else "unhealthy",
        "message": f"{type(generator).__name__} {'available' if available else 'not available'}",
        "timestamp": time.time(),
    }


def get_application_info() -> dict[str, Any]:
    return {
        "name": "photoshelf",
        "version": __version__,
        "environment": get_environment(),
    }


def perform_health_check(
    store: AssetStore | None = None,
    catalog: PhotoCatalog | None = None,
    generator: DerivativeGenerator | None = None,
) -> dict[str, Any]:
    """
    Run every check and derive an overall status.

    Returns:
        dict with "status", "checks" and "application"
    """
    start_time = time.time()
    checks = {
        "catalog": check_catalog_health(catalog),
        "storage": check_storage_health(store),
        "generator": check_generator_health(generator),
    }

    overall = "healthy" if all(check["status"] == "healthy" for check in checks.values()) else "unhealthy"
    health_response = {
        "status": overall,
        "checks": checks,
        "application": get_application_info(),
        "response_time_ms": round((time.time() - start_time) * 1000, 2),
        "timestamp": time.time(),
    }

    logger.info("health_check_completed", status=overall)
    return health_response


def health_check_json(**kwargs: Any) -> str:
    return json.dumps(perform_health_check(**kwargs), indent=2)
