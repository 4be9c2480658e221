from __future__ import annotations

"""Public portal listings and assistant settings on top of the entity store.

The knowledge base, FAQ, and video pages share one filtering shape: a
published/public flag, an optional type or category, and a case-insensitive
text search. "all" (or no value) disables a filter.
"""

import logging
from typing import Any, Dict, List, Optional

from .composer import DEFAULT_PERSONA
from .entity_store import EntityStore
from .models import AISettingsUpdate

logger = logging.getLogger("floorhub.portal")

ALL = "all"


def _active(value: Optional[str]) -> bool:
    return bool(value) and value != ALL


def _contains(query: str, *values: Any) -> bool:
    # Strings match by substring, lists match when any element does.
    for value in values:
        if isinstance(value, str) and query in value.lower():
            return True
        if isinstance(value, list) and any(isinstance(entry, str) and query in entry.lower() for entry in value):
            return True
    return False


def _in_category(record: Dict[str, Any], category: Optional[str]) -> bool:
    return not _active(category) or category in (record.get("categories") or [])


def search_knowledge(
    store: EntityStore,
    query: Optional[str] = None,
    item_type: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Purpose: Return the public knowledge-base items matching the browse filters.
    Inputs/Outputs: Inputs are the entity store, search text, item type, and category;
        output is a list of records, most recently updated first.
    Side Effects / State: None.
    Dependencies: Uses EntityStore.filter on is_public.
    Failure Modes: None; unknown types or categories simply match nothing.
    If Removed: Visitors cannot browse the knowledge base outside the chat.
    Testing Notes: The query matches title, description, article code, and category names.
    """
    # Public flag first, then type, category, and text in that order.
    records = store.entity("KnowledgeBase").filter({"is_public": True}, "-updated_date")
    if _active(item_type):
        records = [record for record in records if record.get("type") == item_type]
    records = [record for record in records if _in_category(record, category)]
    text = (query or "").strip().lower()
    if text:
        records = [
            record
            for record in records
            if _contains(
                text,
                record.get("title"),
                record.get("description"),
                record.get("article_code"),
                record.get("categories"),
            )
        ]
    # Feeds can hold thousands of products; the listing only needs the card fields.
    return [{key: value for key, value in record.items() if key != "xml_data"} for record in records]


def _published_with_categories(
    store: EntityStore,
    entity_name: str,
    category_entity: str,
    category: Optional[str],
) -> Dict[str, List[Dict[str, Any]]]:
    items = store.entity(entity_name).filter({"is_published": True}, "order")
    categories = store.entity(category_entity).filter({"is_active": True}, "order")
    return {
        "categories": categories,
        "items": [record for record in items if _in_category(record, category)],
    }


def list_faqs(
    store: EntityStore,
    query: Optional[str] = None,
    category: Optional[str] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """Published FAQ entries and active FAQ categories; the query searches question, answer, keywords."""
    listing = _published_with_categories(store, "FAQ", "FAQCategory", category)
    text = (query or "").strip().lower()
    if text:
        listing["items"] = [
            record
            for record in listing["items"]
            if _contains(text, record.get("question"), record.get("answer"), record.get("keywords"))
        ]
    return listing


def list_videos(
    store: EntityStore,
    query: Optional[str] = None,
    category: Optional[str] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """Published videos and active video categories; the query searches title and description."""
    listing = _published_with_categories(store, "Video", "VideoCategory", category)
    text = (query or "").strip().lower()
    if text:
        listing["items"] = [
            record for record in listing["items"] if _contains(text, record.get("title"), record.get("description"))
        ]
    return listing


def default_ai_settings(model: str) -> Dict[str, Any]:
    return {
        "model": model,
        "temperature": 0.7,
        "system_prompt": DEFAULT_PERSONA,
        "yandex_disk_path": "",
        "use_only_knowledge_base": False,
        "enable_external_search": True,
    }


def get_ai_settings(store: EntityStore, model: str) -> Dict[str, Any]:
    """Return the stored assistant settings, or the defaults when none were saved."""
    records = store.entity("AISettings").list()
    if records:
        return records[0]
    return default_ai_settings(model)


def update_ai_settings(store: EntityStore, update: AISettingsUpdate, model: str) -> Dict[str, Any]:
    """Purpose: Save assistant settings, creating the single settings record on first save.
    Inputs/Outputs: Inputs are the entity store, the fields to change, and the default
        model name; output is the stored settings record.
    Side Effects / State: Creates or updates the AISettings record. Chat sessions pick up
        a new system_prompt when their knowledge snapshot is next loaded.
    Dependencies: Uses EntityStore and default_ai_settings.
    Failure Modes: IO errors on persist propagate.
    If Removed: The assistant persona can only be changed by editing the data file.
    Testing Notes: Two saves must leave exactly one AISettings record.
    """
    # The first record is the live one; later records are never created.
    collection = store.entity("AISettings")
    changes = update.model_dump(exclude_unset=True)
    records = collection.list()
    if records:
        saved = collection.update(records[0]["id"], changes)
    else:
        saved = collection.create({**default_ai_settings(model), **changes})
    logger.info("ai settings updated fields=%s", ",".join(sorted(changes)) or "-")
    return saved
