from __future__ import annotations

"""Turns lookup decisions and selected knowledge into exactly one response payload."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .knowledge.selector import selectable_items
from .models import Attachment, KnowledgeItem, ProductRecord
from .payloads import (
    DownloadEntry,
    DownloadLinkPayload,
    MultiDownloadLinksPayload,
    PlainTextPayload,
    ProductInfoPayload,
    ResponsePayload,
)
from .product_lookup import (
    ExactProduct,
    LookupDecision,
    NoSupplementaryMaterial,
    NotFound,
    SimilarSuggestions,
    SupplementaryMaterial,
)
from .prompt_loader import render_prompt
from .utils import contains_any, lower_text, parse_decimal

DEFAULT_PERSONA = "Вы - полезный ИИ-ассистент."
PRICE_MISSING = "не указана"
MAX_CARD_ITEMS = 3

DOWNLOAD_KEYWORDS = (
    "скачать",
    "документ",
    "файл",
    "лого",
    "каталог",
    "инструкци",
    "сертификат",
    "брендбук",
    "презентац",
)

SIMILAR_TEMPLATE = (
    "Точного артикула {code} не найдено, но есть похожие варианты:\n\n{lines}\n\n"
    "Пожалуйста, уточните, какой именно артикул вас интересует, и я предоставлю подробную информацию о товаре."
)
NOT_FOUND_TEMPLATE = (
    "Извините, артикул {code} и похожие варианты не найдены в моей базе данных товаров.\n\n"
    "Пожалуйста, проверьте правильность написания артикула или обратитесь к менеджеру для уточнения информации."
)
NO_SUPPLEMENTARY_TEMPLATE = (
    "К сожалению, я не нашел дополнительных материалов (фото, текстуры, интерьерные решения) "
    "для артикула {code} в базе знаний.\n\n"
    "Попробуйте обратиться к менеджеру или проверить наличие таких материалов в других источниках."
)
SINGLE_DOWNLOAD_TEMPLATE = 'Вы можете скачать "{title}" по следующей ссылке'
MULTI_DOWNLOAD_TEMPLATE = 'Скачать "{title}"'


@dataclass
class ComposedReply:
    """Assistant reply: one payload plus its attachments and the route taken."""
    payload: ResponsePayload
    route: str
    attachments: List[Attachment] = field(default_factory=list)


def format_price(price: Optional[str]) -> str:
    """Append the currency to numeric prices; anything else is reported as missing."""
    if price is None or parse_decimal(price, strict=True) is None:
        return PRICE_MISSING
    return f"{price} руб."


def product_card(record: ProductRecord) -> ComposedReply:
    """Purpose: Build the product_info card for an exact article-code match.
    Inputs/Outputs: Input is the canonical ProductRecord; output is a ComposedReply.
    Side Effects / State: None.
    Dependencies: Uses format_price.
    Failure Modes: None; missing optional fields become empty strings.
    If Removed: Exact product matches cannot be rendered as cards.
    Testing Notes: Picture present -> one image attachment named after the product.
    """
    # Copy feed fields verbatim; price is the only formatted field.
    payload = ProductInfoPayload(
        name=record.name,
        vendorCode=record.vendorCode or "",
        description=record.description or "",
        picture=record.picture or "",
        price=format_price(record.price),
        params=dict(record.params),
    )
    attachments = []
    if record.picture:
        attachments.append(Attachment(name=record.name, url=record.picture, type="image"))
    return ComposedReply(payload=payload, route="product_info", attachments=attachments)


def similar_suggestions_text(code: str, candidates: Sequence[ProductRecord]) -> str:
    lines = "\n".join(f"🔸 **{record.vendorCode}** — {record.name}" for record in candidates)
    return SIMILAR_TEMPLATE.format(code=code.upper(), lines=lines)


def download_card(message: str, items: Sequence[KnowledgeItem]) -> Optional[ResponsePayload]:
    """Purpose: Decide whether selected items should be shown as download cards.
    Inputs/Outputs: Inputs are the message and selected items; output is a download payload
        or None when the grounded-answer path should be used instead.
    Side Effects / State: None.
    Dependencies: Uses DOWNLOAD_KEYWORDS and MAX_CARD_ITEMS.
    Failure Modes: None.
    If Removed: Catalog and certificate requests are answered with prose instead of links.
    Testing Notes: Three yandex_disk items and no download keyword still yield multi cards.
    """
    # Cards show on an explicit download request, or when the whole result is a few disk files.
    disk_items = [item for item in items if item.type == "yandex_disk"]
    if not disk_items:
        return None
    asked_download = contains_any(lower_text(message), DOWNLOAD_KEYWORDS)
    only_disk = len(disk_items) == len(items) and len(disk_items) <= MAX_CARD_ITEMS
    if not (asked_download or only_disk):
        return None
    if len(disk_items) == 1:
        item = disk_items[0]
        return DownloadLinkPayload(text=SINGLE_DOWNLOAD_TEMPLATE.format(title=item.title), url=item.url or "")
    return MultiDownloadLinksPayload(
        items=[
            DownloadEntry(text=MULTI_DOWNLOAD_TEMPLATE.format(title=item.title), url=item.url or "", title=item.title)
            for item in disk_items
        ]
    )


def knowledge_context(items: Sequence[KnowledgeItem]) -> str:
    """Render selected items as the grounding context block."""
    blocks = []
    for item in items:
        block = f"Источник: {item.title}\nОписание: {item.description or ''}\nСодержимое: {item.content or ''}"
        if item.url:
            block += f"\nСсылка на ресурс: {item.url}"
        if item.file_url:
            block += f"\nСсылка на файл: {item.file_url}"
        blocks.append(block)
    return "\n\n---\n\n".join(blocks)


class ResponseComposer:
    """Compose assistant replies; LLM-backed routes go through the injected client."""

    def __init__(self, llm, prompts_dir: Path) -> None:
        self._llm = llm
        self._prompts_dir = prompts_dir

    def compose_lookup(
        self,
        decision: LookupDecision,
        message: str,
        history_tail: Sequence[str],
        persona: Optional[str] = None,
    ) -> ComposedReply:
        """Purpose: Map a product-lookup decision onto its reply.
        Inputs/Outputs: Inputs are the decision, message, history lines, and persona;
            output is a ComposedReply.
        Side Effects / State: Calls the LLM only for SupplementaryMaterial.
        Dependencies: Uses product_card, similar_suggestions_text, and grounded_answer.
        Failure Modes: LLM errors from the grounded answer propagate.
        If Removed: Article-code messages have no reply.
        Testing Notes: NotFound text names the code in upper case.
        """
        # Each decision type has exactly one reply shape.
        if isinstance(decision, ExactProduct):
            return product_card(decision.record)
        if isinstance(decision, SimilarSuggestions):
            text = similar_suggestions_text(decision.code, decision.candidates)
            return ComposedReply(payload=PlainTextPayload(text=text), route="similar_suggestions")
        if isinstance(decision, NotFound):
            text = NOT_FOUND_TEMPLATE.format(code=decision.code.upper())
            return ComposedReply(payload=PlainTextPayload(text=text), route="not_found")
        if isinstance(decision, NoSupplementaryMaterial):
            text = NO_SUPPLEMENTARY_TEMPLATE.format(code=decision.code.upper())
            return ComposedReply(payload=PlainTextPayload(text=text), route="no_supplementary")
        if isinstance(decision, SupplementaryMaterial):
            return self.grounded_answer(decision.items, message, history_tail, persona)
        raise TypeError(f"Unsupported lookup decision: {decision!r}")

    def compose_knowledge(
        self,
        items: Sequence[KnowledgeItem],
        message: str,
        history_tail: Sequence[str],
        catalog: Sequence[KnowledgeItem],
        persona: Optional[str] = None,
    ) -> ComposedReply:
        """Purpose: Reply to a general question from the selector's output.
        Inputs/Outputs: Inputs are selected items, message, history lines, the full catalog,
            and persona; output is a ComposedReply.
        Side Effects / State: Calls the LLM for the grounded-answer and clarification routes.
        Dependencies: Uses download_card, grounded_answer, and clarification.
        Failure Modes: LLM errors propagate.
        If Removed: General questions have no reply.
        Testing Notes: Empty items must produce a clarification question.
        """
        # Cards first, then grounded prose, then a clarifying question.
        if items:
            card = download_card(message, items)
            if card is not None:
                return ComposedReply(payload=card, route=card.kind)
            return self.grounded_answer(items, message, history_tail, persona)
        return self.clarification(message, catalog)

    def grounded_answer(
        self,
        items: Sequence[KnowledgeItem],
        message: str,
        history_tail: Sequence[str],
        persona: Optional[str] = None,
    ) -> ComposedReply:
        system_instruction = render_prompt(
            self._prompts_dir, "grounded_system.txt", {"PERSONA": persona or DEFAULT_PERSONA}
        )
        prompt = render_prompt(
            self._prompts_dir,
            "grounded_answer.txt",
            {
                "CONTEXT": knowledge_context(items),
                "HISTORY": "\n".join(history_tail),
                "MESSAGE": message,
            },
        )
        text = self._llm.generate_text(prompt, system_instruction=system_instruction)
        attachments = [
            Attachment(name=item.title, url=item.image_url, type="image") for item in items if item.image_url
        ]
        return ComposedReply(payload=PlainTextPayload(text=text), route="grounded_answer", attachments=attachments)

    def clarification(self, message: str, catalog: Sequence[KnowledgeItem]) -> ComposedReply:
        topics = [item.title for item in selectable_items(catalog)]
        prompt = render_prompt(
            self._prompts_dir,
            "clarification.txt",
            {"MESSAGE": message, "TOPICS": json.dumps(topics, ensure_ascii=False)},
        )
        text = self._llm.generate_text(prompt)
        return ComposedReply(payload=PlainTextPayload(text=text), route="clarification")
