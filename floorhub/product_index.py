from __future__ import annotations

"""In-memory vendor-code index over the product feed."""

from typing import Dict, Iterable, Iterator, List, Tuple

from .models import ProductRecord


class ProductIndex:
    """Read-only mapping of lower-cased vendor code -> records in feed order."""

    def __init__(self, entries: Dict[str, Tuple[ProductRecord, ...]]) -> None:
        self._entries = entries

    @classmethod
    def build(cls, feed: Iterable[ProductRecord]) -> "ProductIndex":
        """Purpose: Build the index from the product feed in a single pass.
        Inputs/Outputs: Input is an iterable of ProductRecord; output is a ProductIndex.
        Side Effects / State: None.
        Dependencies: None beyond ProductRecord.
        Failure Modes: None; records without a vendor code are skipped and an empty
            feed yields an empty index.
        If Removed: Article-code lookups have nothing to match against.
        Testing Notes: Duplicate codes keep every record with the first one first.
        """
        # Group records by lower-cased code, preserving feed order.
        grouped: Dict[str, List[ProductRecord]] = {}
        for record in feed:
            code = (record.vendorCode or "").strip().lower()
            if not code:
                continue
            grouped.setdefault(code, []).append(record)
        return cls({code: tuple(records) for code, records in grouped.items()})

    def get(self, code: str) -> Tuple[ProductRecord, ...]:
        return self._entries.get(code.lower(), ())

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[Tuple[str, Tuple[ProductRecord, ...]]]:
        return iter(self._entries.items())

    def keys(self) -> List[str]:
        return list(self._entries)
