"""Tag parsing and the derived tag vocabulary.

Nothing here is persisted: the vocabulary is recomputed from whatever photo
list is being displayed.
"""

import re
from collections.abc import Iterable

from ..models.photo import PhotoRecord

# Runs of commas and/or whitespace separate tags
TAG_SEPARATOR = re.compile(r"[\s,]+")


def normalize_tags(raw: str | None) -> list[str]:
    """
    Split a raw tag string into tags.

    Blank tokens are dropped; order and duplicates are kept.

    >>> normalize_tags("cat, dog  fox")
    ['cat', 'dog', 'fox']
    """
    if not raw:
        return []
    return [token for token in TAG_SEPARATOR.split(raw) if token]


def unique_tags(tags: Iterable[str]) -> list[str]:
    """Deduplicate keeping first appearance."""
    return list(dict.fromkeys(tags))


def tag_vocabulary(photos: Iterable[PhotoRecord]) -> list[str]:
    """
    Flatten the tag sets of ``photos`` into a deduplicated vocabulary.

    Stored tags are re-split on separators so older records holding a single
    comma-joined string still contribute individual tags.
    """
    flattened: list[str] = []
    for photo in photos:
        for tag in photo.tags:
            flattened.extend(normalize_tags(tag))
    return unique_tags(flattened)
