"""
Category extraction from classified provider payloads.
"""
import logging

from iptv_catalog.models.catalog import Category, KIND_LIVE, KIND_MOVIE, KIND_SERIES
from iptv_catalog.services.format_detector import ClassifiedPayload, PayloadFormat
from iptv_catalog.services.json_fields import as_int, as_string, first_string

logger = logging.getLogger(__name__)

# Buckets under the panel "categories" object, in processing order.
# An id seen in several buckets keeps the kind of the last one.
KIND_BUCKETS = (
    ("live", KIND_LIVE),
    ("vod", KIND_MOVIE),
    ("movie", KIND_MOVIE),
    ("series", KIND_SERIES),
)


def _category_from_entry(entry, kind: str, with_parent: bool):
    if not isinstance(entry, dict):
        return None
    category_id = first_string(entry, "category_id")
    name = as_string(entry.get("category_name"))
    if category_id is None or name is None:
        return None
    parent_id = as_int(entry.get("parent_id")) if with_parent else None
    return Category(
        category_id=category_id,
        name=name,
        content_type=kind,
        # 0 is the provider convention for "no parent"
        parent_id=parent_id or None,
    )


def extract_categories(payload: ClassifiedPayload, kind: str = KIND_LIVE) -> dict[str, Category]:
    """
    Build the category map for a payload.

    Args:
        payload: Classified response
        kind: Content kind assigned to flat-array entries

    Returns:
        Mapping of provider category id to Category
    """
    categories: dict[str, Category] = {}
    skipped = 0

    if payload.format == PayloadFormat.NESTED_CATEGORIES:
        buckets = payload.data["categories"]
        for bucket, bucket_kind in KIND_BUCKETS:
            entries = buckets.get(bucket)
            if not isinstance(entries, list):
                continue
            for entry in entries:
                category = _category_from_entry(entry, bucket_kind, with_parent=True)
                if category is None:
                    skipped += 1
                    continue
                if category.category_id in categories:
                    logger.debug(
                        f"Category {category.category_id} redefined as {bucket_kind} "
                        f"(was {categories[category.category_id].content_type})"
                    )
                categories[category.category_id] = category

    elif payload.format == PayloadFormat.FLAT_ARRAY:
        for entry in payload.data:
            category = _category_from_entry(entry, kind, with_parent=False)
            if category is None:
                skipped += 1
                continue
            categories[category.category_id] = category

    if skipped:
        logger.debug(f"Skipped {skipped} category entries without id or name")
    logger.info(f"Extracted {len(categories)} categories from {payload.format.value} payload")
    return categories
