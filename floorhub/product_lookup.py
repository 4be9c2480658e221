from __future__ import annotations

"""Article-code resolution against the session product index.

The resolver returns one of four decisions, in priority order:
exact product, similar suggestions, not found, or a hand-off to the
knowledge selector when the user asked for supplementary material.
"""

from dataclasses import dataclass
from typing import Callable, List, Sequence, Union

from .models import KnowledgeItem, ProductRecord
from .product_index import ProductIndex


@dataclass(frozen=True)
class ExactProduct:
    record: ProductRecord


@dataclass(frozen=True)
class SimilarSuggestions:
    code: str
    candidates: List[ProductRecord]


@dataclass(frozen=True)
class NotFound:
    code: str


@dataclass(frozen=True)
class SupplementaryMaterial:
    code: str
    items: List[KnowledgeItem]


@dataclass(frozen=True)
class NoSupplementaryMaterial:
    code: str


LookupDecision = Union[ExactProduct, SimilarSuggestions, NotFound, SupplementaryMaterial, NoSupplementaryMaterial]


def find_similar(code: str, index: ProductIndex) -> List[ProductRecord]:
    """Purpose: Collect products whose code starts with the query but is not equal to it.
    Inputs/Outputs: Inputs are the query code and the index; output is a list of records.
    Side Effects / State: None; the index is only read.
    Dependencies: Uses ProductIndex.items.
    Failure Modes: Returns an empty list when nothing shares the prefix.
    If Removed: Near-miss codes fall straight to "not found".
    Testing Notes: Result has one record per vendor code, sorted ascending by code.
    """
    # Index keys are already lower-cased, so one key is one vendor code.
    prefix = code.lower()
    matches = [
        (key, records[0])
        for key, records in index.items()
        if key != prefix and key.startswith(prefix) and records
    ]
    matches.sort(key=lambda match: match[0])
    return [record for _, record in matches]


def resolve(
    code: str,
    wants_supplementary: bool,
    index: ProductIndex,
    select_supplementary: Callable[[], Sequence[KnowledgeItem]],
) -> LookupDecision:
    """Purpose: Decide how to answer a message that contains an article code.
    Inputs/Outputs: Inputs are the code, the supplementary flag, the index, and a callable
        that runs the knowledge selector; output is exactly one LookupDecision.
    Side Effects / State: None locally; select_supplementary may call the LLM.
    Dependencies: Uses find_similar; the selector is injected to keep this module pure.
    Failure Modes: Errors raised by select_supplementary propagate unchanged.
    If Removed: Product codes are answered by the general knowledge path only.
    Testing Notes: Exact code with "фото" in the message must not return ExactProduct.
    """
    # Priority 1 and 2 only apply when no supplementary material was requested.
    if not wants_supplementary:
        matched = index.get(code)
        if matched:
            return ExactProduct(record=matched[0])
        similar = find_similar(code, index)
        if similar:
            return SimilarSuggestions(code=code, candidates=similar)
        return NotFound(code=code)

    items = list(select_supplementary())
    if not items:
        return NoSupplementaryMaterial(code=code)
    return SupplementaryMaterial(code=code, items=items)
