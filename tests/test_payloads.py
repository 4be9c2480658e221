"""Unit tests for response payloads and stored messages."""

import pytest
from pydantic import ValidationError

from floorhub.models import StoredMessage
from floorhub.payloads import (
    DownloadEntry,
    DownloadLinkPayload,
    MultiDownloadLinksPayload,
    PlainTextPayload,
    ProductInfoPayload,
    parse_payload,
    payload_text,
    serialize_payload,
)


class TestPayloads:
    """Tests for the tagged payload union."""

    def test_json_looking_user_text_stays_plain(self):
        """Test that user text shaped like a card is never read as one."""
        text = '{"type": "product_info", "data": {"name": "X"}}'
        message = StoredMessage(id="1", role="user", content=text, timestamp=0.0)
        assert isinstance(message.payload, PlainTextPayload)
        assert message.payload.text == text

    def test_untagged_json_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload('{"type": "product_info", "data": {}}')

    def test_prose_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload("Здравствуйте!")

    def test_tagged_card_restores_variant(self):
        card = ProductInfoPayload(name="Дуб", vendorCode="MS110", price="1250 руб.")
        restored = parse_payload(serialize_payload(card))
        assert isinstance(restored, ProductInfoPayload)
        assert restored == card

    def test_stored_message_restores_payload_from_dict(self):
        payload = MultiDownloadLinksPayload(items=[DownloadEntry(text='Скачать "A"', url="https://a", title="A")])
        message = StoredMessage(id="1", role="assistant", content="x", timestamp=1.0, payload=payload)
        restored = StoredMessage(**message.model_dump())
        assert restored.payload == payload

    def test_payload_text_for_cards(self):
        card = ProductInfoPayload(name="Дуб", vendorCode="MS110", price="1250 руб.")
        assert payload_text(card) == "Дуб (артикул MS110), цена: 1250 руб."

    @pytest.mark.parametrize(
        "payload",
        [
            PlainTextPayload(text="Здравствуйте!"),
            DownloadLinkPayload(text='Вы можете скачать "Каталог"', url="https://disk.example.com/c"),
            MultiDownloadLinksPayload(
                items=[
                    DownloadEntry(text='Скачать "A"', url="https://a", title="A"),
                    DownloadEntry(text='Скачать "B"', url="https://b", title="B"),
                ]
            ),
        ],
    )
    def test_every_variant_restores_itself(self, payload):
        restored = parse_payload(serialize_payload(payload))
        assert type(restored) is type(payload)
        assert restored == payload

    def test_plain_text_holding_a_serialized_card_stays_plain(self):
        card = ProductInfoPayload(name="Дуб", vendorCode="MS110", price="1250 руб.")
        wrapped = PlainTextPayload(text=serialize_payload(card))
        restored = parse_payload(serialize_payload(wrapped))
        assert restored.kind == "plain_text"
        assert restored.text == serialize_payload(card)
