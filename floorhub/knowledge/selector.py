from __future__ import annotations

"""LLM-ranked knowledge selection with a local keyword re-filter."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import BaseModel

from ..gemini_client import LLMSchemaError
from ..models import KnowledgeItem
from ..prompt_loader import render_prompt
from ..utils import lower_text

logger = logging.getLogger("floorhub.knowledge")


class RelevanceResult(BaseModel):
    """Schema the ranking call must satisfy."""
    relevant_titles: List[str]


@dataclass(frozen=True)
class KeywordRule:
    """Keep only items whose title contains keyword when the message mentions it."""
    keyword: str

    def matches(self, message_lower: str) -> bool:
        return self.keyword in message_lower

    def apply(self, items: Sequence[KnowledgeItem]) -> List[KnowledgeItem]:
        return [item for item in items if self.keyword in lower_text(item.title)]


# Evaluated in order; the first rule whose keyword is in the message wins.
KEYWORD_RULES = (
    KeywordRule("логотип"),
    KeywordRule("презентац"),
    KeywordRule("каталог"),
    KeywordRule("сертификат"),
    KeywordRule("брендбук"),
)


def selectable_items(catalog: Sequence[KnowledgeItem]) -> List[KnowledgeItem]:
    """Items the selector may return: everything except product feeds."""
    return [item for item in catalog if item.type != "xml_feed"]


def apply_keyword_rules(message: str, items: Sequence[KnowledgeItem]) -> List[KnowledgeItem]:
    """Purpose: Narrow LLM-selected items by the first category keyword in the message.
    Inputs/Outputs: Inputs are the message and selected items; output is the filtered list.
    Side Effects / State: None.
    Dependencies: Uses KEYWORD_RULES and lower_text.
    Failure Modes: None; without a matching rule the items pass through unchanged.
    If Removed: "скачать логотип" may return catalogs and presentations as well.
    Testing Notes: A message with both "логотип" and "каталог" keeps only logo items.
    """
    # First matching rule wins; rules never combine.
    message_lower = lower_text(message)
    for rule in KEYWORD_RULES:
        if rule.matches(message_lower):
            return rule.apply(items)
    return list(items)


class KnowledgeSelector:
    """Select knowledge items relevant to a message via a schema-validated ranking call."""

    def __init__(self, llm, prompts_dir: Path) -> None:
        self._llm = llm
        self._prompts_dir = prompts_dir

    def select(
        self,
        message: str,
        history_tail: Sequence[str],
        catalog: Sequence[KnowledgeItem],
        session_id: Optional[str] = None,
    ) -> List[KnowledgeItem]:
        """Purpose: Return catalog items relevant to the message, in catalog order.
        Inputs/Outputs: Inputs are the message, recent history lines, and the catalog;
            output is a list of KnowledgeItem (possibly empty).
        Side Effects / State: Calls the LLM in JSON mode unless the catalog is empty.
        Dependencies: Uses relevance_ranking.txt, RelevanceResult, and apply_keyword_rules.
        Failure Modes: A schema mismatch is logged and treated as no relevant items;
            transport errors (LLMError) propagate to the caller.
        If Removed: General questions can never be grounded in the knowledge base.
        Testing Notes: Empty catalog must not call the LLM at all.
        """
        # Skip the external call when there is nothing to choose from.
        candidates = selectable_items(catalog)
        if not candidates:
            logger.info("session=%s step=knowledge_select candidates=0", session_id)
            return []

        listing = [
            {"title": item.title, "description": item.description, "article_code": item.article_code}
            for item in candidates
        ]
        prompt = render_prompt(
            self._prompts_dir,
            "relevance_ranking.txt",
            {
                "MESSAGE": message,
                "HISTORY": "\n".join(history_tail) or "-",
                "ITEMS": json.dumps(listing, ensure_ascii=False, indent=2),
            },
        )
        try:
            result = self._llm.generate_json(prompt, RelevanceResult)
        except LLMSchemaError as exc:
            logger.warning("session=%s step=knowledge_select schema_mismatch=%s", session_id, exc)
            return []

        selected = match_titles(result.relevant_titles, candidates)
        filtered = apply_keyword_rules(message, selected)
        logger.info(
            "session=%s step=knowledge_select titles=%d matched=%d kept=%d",
            session_id,
            len(result.relevant_titles),
            len(selected),
            len(filtered),
        )
        return filtered


def match_titles(titles: Sequence[str], candidates: Sequence[KnowledgeItem]) -> List[KnowledgeItem]:
    # Exact title match; when titles repeat, only the first item carrying it is used.
    wanted = set(titles)
    seen_titles = set()
    matched: List[KnowledgeItem] = []
    for item in candidates:
        if item.title in wanted and item.title not in seen_titles:
            seen_titles.add(item.title)
            matched.append(item)
    return matched
