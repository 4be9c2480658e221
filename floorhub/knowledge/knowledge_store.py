from __future__ import annotations

"""Read-only knowledge snapshots for chat sessions."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..entity_store import EntityStore
from ..models import KnowledgeItem
from ..product_index import ProductIndex

logger = logging.getLogger("floorhub.knowledge")


@dataclass(frozen=True)
class KnowledgeSnapshot:
    """Catalog, product index, and persona captured at session start."""
    items: Tuple[KnowledgeItem, ...]
    product_index: Optional[ProductIndex]
    persona: Optional[str]


class KnowledgeStore:
    """Load AI-source knowledge and the product feed from the entity store."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def snapshot(self) -> KnowledgeSnapshot:
        """Purpose: Capture the knowledge catalog and product index for a new session.
        Inputs/Outputs: No inputs; returns a KnowledgeSnapshot.
        Side Effects / State: Reads KnowledgeBase and AISettings collections.
        Dependencies: Uses EntityStore.filter/list and ProductIndex.build.
        Failure Modes: Records that fail validation are skipped with a warning.
        If Removed: Sessions start without catalog, index, or persona.
        Testing Notes: With no xml_feed item, product_index is None; with an empty
            feed it is an empty index.
        """
        # AI-source items only; the first feed item with products builds the index.
        items: List[KnowledgeItem] = []
        for record in self._store.entity("KnowledgeBase").filter({"is_ai_source": True}):
            try:
                items.append(KnowledgeItem.model_validate(record))
            except ValueError as exc:
                logger.warning("knowledge item=%s skipped: %s", record.get("id"), exc)

        product_index: Optional[ProductIndex] = None
        for item in items:
            if item.type == "xml_feed" and item.xml_data and "products" in item.xml_data:
                product_index = ProductIndex.build(item.feed_products())
                break

        settings = self._store.entity("AISettings").list()
        persona = settings[0].get("system_prompt") if settings else None

        logger.info(
            "knowledge snapshot items=%d products=%s",
            len(items),
            len(product_index) if product_index is not None else "none",
        )
        return KnowledgeSnapshot(items=tuple(items), product_index=product_index, persona=persona)
