from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .utils import contains_any, lower_text

# ASCII word of 3+ chars holding at least one digit and one Latin letter.
ARTICLE_CODE_RE = re.compile(r"\b((?=\w*\d)(?=\w*[a-zA-Z])\w{3,})\b", re.IGNORECASE | re.ASCII)

SUPPLEMENTARY_KEYWORDS = (
    "текстур",
    "интерьер",
    "фото",
    "изображен",
    "картинк",
    "выглядит",
    "смотрится",
)


@dataclass(frozen=True)
class IntentResult:
    """Outcome of classifying one user message."""
    article_code: Optional[str]
    wants_supplementary: bool


def extract_article_code(message: str) -> Optional[str]:
    """Purpose: Find the first article-code-like token in a message.
    Inputs/Outputs: Input is raw message text; output is the lower-cased code or None.
    Side Effects / State: None; pure function.
    Dependencies: Uses ARTICLE_CODE_RE.
    Failure Modes: Returns None when no mixed letter/digit token of length >= 3 exists.
    If Removed: Product-code lookups never trigger and every question goes to the LLM.
    Testing Notes: "у вас есть MS110 в наличии?" -> "ms110"; "артикул 12345" -> None.
    """
    # Only the leftmost match counts.
    match = ARTICLE_CODE_RE.search(message or "")
    if not match:
        return None
    return match.group(1).lower()


def wants_supplementary(message: str) -> bool:
    """Return True when the message asks for photos, textures, or interior shots."""
    return contains_any(lower_text(message), SUPPLEMENTARY_KEYWORDS)


def classify(message: str) -> IntentResult:
    """Classify a message into an optional article code and a supplementary-material flag."""
    return IntentResult(
        article_code=extract_article_code(message),
        wants_supplementary=wants_supplementary(message),
    )
