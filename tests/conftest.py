"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from floorhub.config import Settings
from floorhub.gemini_client import validate_json_output
from floorhub.models import KnowledgeItem, ProductRecord

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "floorhub" / "prompts"

SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<yml_catalog date="2024-05-01 10:00">
  <shop>
    <offers>
      <offer id="1" available="true">
        <vendorCode>MS110</vendorCode>
        <name>Ламинат Дуб Светлый</name>
        <description>Влагостойкий ламинат 33 класса</description>
        <picture>https://cdn.example.com/ms110.jpg</picture>
        <picture>https://cdn.example.com/ms110-2.jpg</picture>
        <price>1250</price>
        <param name="Кол-во м2 в упаковке">2,13</param>
        <param name="Класс">33</param>
      </offer>
      <offer id="2" available="true">
        <vendorCode>MS1105</vendorCode>
        <name>Ламинат Дуб Серый</name>
        <price>1300</price>
      </offer>
      <offer id="3" available="true">
        <vendorCode>MS1102</vendorCode>
        <name>Ламинат Дуб Белёный</name>
        <price>1280</price>
      </offer>
    </offers>
  </shop>
</yml_catalog>
""".encode("utf-8")


class FakeLLM:
    """Scripted stand-in for GeminiClient; replies are consumed in order."""

    def __init__(self):
        self.text_replies = []
        self.json_replies = []
        self.calls = []

    def queue_text(self, *replies):
        self.text_replies.extend(replies)

    def queue_json(self, *replies):
        self.json_replies.extend(replies)

    def generate_text(self, prompt, system_instruction=None, **kwargs):
        self.calls.append({"kind": "text", "prompt": prompt, "system_instruction": system_instruction})
        reply = self.text_replies.pop(0) if self.text_replies else "Ответ модели"
        if isinstance(reply, Exception):
            raise reply
        return reply

    def generate_json(self, prompt, schema_model, **kwargs):
        self.calls.append({"kind": "json", "prompt": prompt, "schema": schema_model})
        reply = self.json_replies.pop(0) if self.json_replies else {"relevant_titles": []}
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply, ensure_ascii=False)
        return validate_json_output(reply, schema_model)

    def calls_of(self, kind):
        return [call for call in self.calls if call["kind"] == kind]


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def prompts_dir():
    return PROMPTS_DIR


@pytest.fixture
def sample_feed():
    return SAMPLE_FEED


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gemini_api_key="test-key",
        gemini_model="gemini-2.5-flash",
        data_dir=tmp_path / "data",
        prompts_dir=PROMPTS_DIR,
        history_turns=5,
        max_sessions=None,
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_username="bot@example.com",
        smtp_password="secret",
        mail_sender="bot@example.com",
        sales_email="sales@example.com",
    )


def make_item(title, type="link", **fields):
    fields.setdefault("id", title.lower().replace(" ", "-"))
    fields.setdefault("is_ai_source", True)
    return KnowledgeItem(title=title, type=type, **fields)


def make_product(code, name="Ламинат", price="1000", **fields):
    return ProductRecord(vendorCode=code, name=name, price=price, **fields)
