from __future__ import annotations

"""Assistant response payloads as a tagged union.

Every assistant message carries exactly one payload. The ``kind`` field is the
tag; plain prose is always wrapped in ``PlainTextPayload`` so text typed by a
user (even text that happens to be valid JSON) is never read back as a card.
"""

from typing import Annotated, Dict, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class PlainTextPayload(BaseModel):
    kind: Literal["plain_text"] = "plain_text"
    text: str


class ProductInfoPayload(BaseModel):
    kind: Literal["product_info"] = "product_info"
    name: str
    vendorCode: str
    description: str = ""
    picture: str = ""
    price: str
    params: Dict[str, str] = Field(default_factory=dict)


class DownloadLinkPayload(BaseModel):
    kind: Literal["download_link"] = "download_link"
    text: str
    url: str


class DownloadEntry(BaseModel):
    text: str
    url: str
    title: str


class MultiDownloadLinksPayload(BaseModel):
    kind: Literal["multi_download_links"] = "multi_download_links"
    items: List[DownloadEntry]


ResponsePayload = Annotated[
    Union[PlainTextPayload, ProductInfoPayload, DownloadLinkPayload, MultiDownloadLinksPayload],
    Field(discriminator="kind"),
]

_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(ResponsePayload)


def serialize_payload(payload: ResponsePayload) -> str:
    """Purpose: Serialize a payload to its tagged JSON form for storage or transport.
    Inputs/Outputs: Input is any payload variant; output is a JSON string with "kind".
    Side Effects / State: None.
    Dependencies: Uses the pydantic TypeAdapter for the union.
    Failure Modes: None for constructed payloads.
    If Removed: Stored transcripts lose their structured cards.
    Testing Notes: parse_payload(serialize_payload(p)) == p for every variant.
    """
    # Dump through the union adapter so the tag is always present.
    return _PAYLOAD_ADAPTER.dump_json(payload).decode("utf-8")


def parse_payload(raw: str) -> ResponsePayload:
    """Purpose: Parse tagged JSON produced by serialize_payload back into a payload.
    Inputs/Outputs: Input is a JSON string; output is the matching payload variant.
    Side Effects / State: None.
    Dependencies: Uses the pydantic TypeAdapter discriminator on "kind".
    Failure Modes: Raises pydantic.ValidationError for anything that is not a tagged payload,
        including arbitrary prose and untagged JSON.
    If Removed: Stored payloads cannot be restored into typed objects.
    Testing Notes: Untagged JSON such as '{"type": "product_info"}' must fail validation.
    """
    # Validate strictly against the discriminated union.
    return _PAYLOAD_ADAPTER.validate_json(raw)


def payload_text(payload: ResponsePayload) -> str:
    """Return a readable text rendition used as message content and in prompt history."""
    if isinstance(payload, PlainTextPayload):
        return payload.text
    if isinstance(payload, ProductInfoPayload):
        return f"{payload.name} (артикул {payload.vendorCode}), цена: {payload.price}"
    if isinstance(payload, DownloadLinkPayload):
        return f"{payload.text}: {payload.url}"
    return "\n".join(f"{entry.text}: {entry.url}" for entry in payload.items)
