from __future__ import annotations

"""Product feed loader for YML/XML offer feeds.

Parses ``<offer>`` elements into ProductRecord objects and records feed
metadata (hash, size) for logging when the feed is synced onto a knowledge item.
"""

import hashlib
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .entity_store import EntityStore
from .models import KnowledgeItem, ProductRecord

logger = logging.getLogger("floorhub.feed")


class FeedError(ValueError):
    """The feed is not well-formed XML or the target item cannot hold a feed."""


@dataclass
class FeedMeta:
    """Metadata describing a parsed feed for logging."""
    sha256: str
    products_count: int
    synced_at: str


def parse_feed(raw_bytes: bytes) -> Tuple[List[ProductRecord], FeedMeta]:
    """Purpose: Parse a YML/XML feed into product records.
    Inputs/Outputs: Input is raw XML bytes; returns (records, FeedMeta).
    Side Effects / State: None.
    Dependencies: Uses xml.etree.ElementTree and hashlib.
    Failure Modes: Malformed XML or a feed declaring its own entities raises FeedError.
        Offers without vendorCode are kept; the product index skips them.
    If Removed: Product feeds cannot be synced and article-code lookup has no data.
    Testing Notes: A feed with two offers and params yields two records with params maps.
    """
    # Hash for logging, then walk every offer regardless of nesting depth.
    sha256 = hashlib.sha256(raw_bytes).hexdigest()
    if b"<!ENTITY" in raw_bytes:
        raise FeedError("Invalid product feed: entity declarations are not allowed")
    try:
        root = ET.fromstring(raw_bytes)
    except ET.ParseError as exc:
        raise FeedError(f"Invalid product feed: {exc}") from exc

    records: List[ProductRecord] = []
    for offer in root.iter("offer"):
        params: Dict[str, str] = {}
        for param in offer.findall("param"):
            name = (param.get("name") or "").strip()
            if name:
                params[name] = (param.text or "").strip()
        records.append(
            ProductRecord(
                vendorCode=_child_text(offer, "vendorCode"),
                name=_child_text(offer, "name") or _child_text(offer, "model") or "",
                description=_child_text(offer, "description"),
                picture=_child_text(offer, "picture"),
                price=_child_text(offer, "price"),
                params=params,
            )
        )

    meta = FeedMeta(
        sha256=sha256,
        products_count=len(records),
        synced_at=datetime.now(timezone.utc).isoformat(),
    )
    return records, meta


def _child_text(element: ET.Element, tag: str) -> Optional[str]:
    # First matching child only; blank text counts as missing.
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    text = child.text.strip()
    return text or None


def sync_feed(store: EntityStore, item_id: str, raw_bytes: bytes) -> KnowledgeItem:
    """Purpose: Parse a feed and store its products on an xml_feed knowledge item.
    Inputs/Outputs: Inputs are the entity store, knowledge item id, and raw XML;
        output is the updated KnowledgeItem.
    Side Effects / State: Updates the KnowledgeBase record (xml_data) and persists it.
    Dependencies: Uses parse_feed and EntityStore.
    Failure Modes: Unknown id raises EntityNotFound; a non-feed item or bad XML raises FeedError.
    If Removed: Admins cannot refresh the product catalog used by the chat.
    Testing Notes: After sync, KnowledgeItem.feed_products() returns the parsed records.
    """
    # Only xml_feed items can carry products.
    knowledge = store.entity("KnowledgeBase")
    item = KnowledgeItem.model_validate(knowledge.get(item_id))
    if item.type != "xml_feed":
        raise FeedError(f"Knowledge item {item_id} is not an xml_feed item")

    records, meta = parse_feed(raw_bytes)
    updated = knowledge.update(
        item_id,
        {
            "xml_data": {
                "products": [record.model_dump() for record in records],
                "sha256": meta.sha256,
                "synced_at": meta.synced_at,
            }
        },
    )
    logger.info("feed item=%s products=%d sha256=%s", item_id, meta.products_count, meta.sha256[:12])
    return KnowledgeItem.model_validate(updated)
