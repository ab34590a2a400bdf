"""Operator tasks for photoshelf.

Run through the ``photoshelf`` console script, e.g.::

    photoshelf upload --path ./holiday --tags "beach, 2024"
    photoshelf photos --tags beach
    photoshelf delete --photo-id <id> --filename holi-1700000000000.jpg
    photoshelf generate
    photoshelf reconcile --purge
"""

import json
import os

from dotenv import load_dotenv
from invoke import Collection, Context, Exit, Program, task

from .. import __version__
from ..config import reset_config
from ..errors import PhotoShelfError, handle_error
from ..health import perform_health_check
from ..library import PhotoLibrary, get_photo_library
from ..logging_config import bind_log_context, configure_structured_logging, get_logger
from ..pipelines.ingestion import UploadedFile, is_allowed_image_name

logger = get_logger(__name__)


def _prepare(env_file: str, task_name: str, **context) -> PhotoLibrary:
    """Load the environment file, set up logging and return the library."""
    if env_file and os.path.exists(env_file):
        load_dotenv(dotenv_path=env_file)
        reset_config()
    configure_structured_logging()
    bind_log_context(task=task_name, **context)

    library = get_photo_library()
    library.setup()
    return library


def _fail(error: Exception) -> Exit:
    info = handle_error(error)
    return Exit(f"Error ({info.status.value}): {info.message}", code=1)


def _find_images(directory: str, recursive: bool) -> list[str]:
    image_files = []
    if recursive:
        for root, _, files in os.walk(directory):
            image_files.extend(os.path.join(root, name) for name in sorted(files) if is_allowed_image_name(name))
    else:
        for name in sorted(os.listdir(directory)):
            path = os.path.join(directory, name)
            if os.path.isfile(path) and is_allowed_image_name(name):
                image_files.append(path)
    return image_files


@task(help={"path": "Image file or directory of images", "tags": "Comma/space separated tags"})
def upload(
    c: Context,
    path: str,
    tags: str = "",
    user_id: str = "cli",
    recursive: bool = False,
    dry_run: bool = False,
    env_file: str = ".env",
):
    """Upload one image or every image in a directory."""
    library = _prepare(env_file, "upload", user_id=user_id)

    if os.path.isdir(path):
        image_files = _find_images(path, recursive)
    elif os.path.isfile(path):
        image_files = [path]
    else:
        raise Exit(f"Path not found: {path}", code=1)

    if not image_files:
        logger.warning("no_images_found", path=path)
        return

    if dry_run:
        print("--- Dry Run Mode: Files to be processed ---")
        for file_path in image_files:
            print(f"- {file_path}")
        return

    successful_uploads = 0
    failed_uploads = 0

    for file_path in image_files:
        try:
            result = library.upload(UploadedFile.from_path(file_path), raw_tags=tags, user_id=user_id)
            print(result.message)
            for warning in result.warnings:
                print(f"Warning: {warning}")
            successful_uploads += 1
        except (PhotoShelfError, OSError) as e:
            info = handle_error(e, {"file_path": file_path})
            print(f"Failed: {file_path}: {info.message}")
            failed_uploads += 1

    logger.info("batch_upload_finished", successful=successful_uploads, failed=failed_uploads)
    print(f"Upload complete. Successful: {successful_uploads}, Failed: {failed_uploads}")
    if failed_uploads:
        raise Exit(code=1)


@task
def delete(c: Context, photo_id: str, filename: str, user_id: str = "cli", env_file: str = ".env"):
    """Delete a photo record and its original, thumbnail and preview."""
    library = _prepare(env_file, "delete", user_id=user_id, photo_id=photo_id)
    try:
        outcome = library.delete(photo_id, filename, user_id=user_id)
    except PhotoShelfError as e:
        if getattr(e, "outcome", None) is not None:
            print(json.dumps(e.outcome.to_dict(), indent=2))
        raise _fail(e) from e
    print(json.dumps(outcome.to_dict(), indent=2))


@task(help={"tags": "Only photos carrying any of these tags"})
def photos(c: Context, tags: str = "", as_json: bool = False, env_file: str = ".env"):
    """List photos and the tag vocabulary."""
    library = _prepare(env_file, "photos")
    try:
        view = library.filter_photos(tags)
    except PhotoShelfError as e:
        raise _fail(e) from e

    if as_json:
        print(json.dumps(view.to_dict(), indent=2))
        return

    for photo in view.photos:
        marker = "" if view.derivatives.get(photo.filename) else "  (no derivatives)"
        print(f"{photo.id}  {photo.filename}  {photo.original_name}  [{', '.join(photo.tags)}]{marker}")
    print(f"Tags: {', '.join(view.tags) or '(none)'}")


@task
def show(c: Context, photo_id: str, env_file: str = ".env"):
    """Print one photo record as JSON."""
    library = _prepare(env_file, "show", photo_id=photo_id)
    try:
        print(json.dumps(library.get_photo(photo_id).to_dict(), indent=2))
    except PhotoShelfError as e:
        raise _fail(e) from e


@task
def generate(c: Context, env_file: str = ".env"):
    """Generate missing thumbnails and previews for the upload directory."""
    library = _prepare(env_file, "generate")
    try:
        report = library.regenerate_derivatives()
    except PhotoShelfError as e:
        raise _fail(e) from e
    print(json.dumps(report.to_dict(), indent=2))


@task(help={"purge": "Remove originals (and their derivatives) that no record owns"})
def reconcile(c: Context, purge: bool = False, env_file: str = ".env"):
    """Report drift between the catalog and the upload tree."""
    library = _prepare(env_file, "reconcile")
    try:
        report = library.reconcile()
        print(json.dumps(report.to_dict(), indent=2))
        if purge and report.orphan_files:
            purged = library.purge_orphans()
            print(f"Purged {len(purged)} orphan file(s)")
    except PhotoShelfError as e:
        raise _fail(e) from e


@task
def health(c: Context, env_file: str = ".env"):
    """Run health checks."""
    library = _prepare(env_file, "health")
    result = perform_health_check(library.store, library.catalog, library.generator)
    print(json.dumps(result, indent=2))
    if result["status"] != "healthy":
        raise Exit(code=1)


namespace = Collection(upload, delete, photos, show, generate, reconcile, health)

program = Program(namespace=namespace, version=__version__, name="photoshelf", binary="photoshelf")
