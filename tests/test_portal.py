"""Unit tests for portal listings and assistant settings."""

import pytest

from floorhub.composer import DEFAULT_PERSONA
from floorhub.entity_store import EntityStore
from floorhub.knowledge.knowledge_store import KnowledgeStore
from floorhub.models import AISettingsUpdate
from floorhub.portal import get_ai_settings, list_faqs, list_videos, search_knowledge, update_ai_settings


@pytest.fixture
def store():
    store = EntityStore()
    knowledge = store.entity("KnowledgeBase")
    knowledge.create({"title": "Каталог 2024", "type": "yandex_disk", "is_public": True, "categories": ["Ламинат"]})
    knowledge.create(
        {"title": "Укладка", "type": "link", "is_public": True, "description": "Инструкция по укладке", "article_code": "MS110"}
    )
    knowledge.create({"title": "Внутренний прайс", "type": "document", "is_public": False})
    knowledge.create({"title": "Фид", "type": "xml_feed", "is_public": True, "xml_data": {"products": []}})
    return store


class TestSearchKnowledge:
    """Tests for the public knowledge-base listing."""

    def test_only_public_items_without_feed_data(self, store):
        titles = {record["title"] for record in search_knowledge(store)}
        assert titles == {"Каталог 2024", "Укладка", "Фид"}
        assert all("xml_data" not in record for record in search_knowledge(store))

    def test_type_and_category_filters(self, store):
        assert [record["title"] for record in search_knowledge(store, item_type="yandex_disk")] == ["Каталог 2024"]
        assert [record["title"] for record in search_knowledge(store, category="Ламинат")] == ["Каталог 2024"]
        assert len(search_knowledge(store, item_type="all", category="all")) == 3

    def test_text_search_covers_description_code_and_categories(self, store):
        assert [record["title"] for record in search_knowledge(store, query="инструкция")] == ["Укладка"]
        assert [record["title"] for record in search_knowledge(store, query="ms110")] == ["Укладка"]
        assert [record["title"] for record in search_knowledge(store, query="ламин")] == ["Каталог 2024"]


class TestFaqAndVideos:
    """Tests for the FAQ and video listings."""

    def test_faq_published_in_order_with_search(self):
        store = EntityStore()
        faq = store.entity("FAQ")
        faq.create({"question": "Как ухаживать?", "answer": "Влажная уборка", "order": 2, "is_published": True})
        faq.create(
            {"question": "Гарантия?", "answer": "10 лет", "order": 1, "is_published": True, "keywords": ["срок"]}
        )
        faq.create({"question": "Черновик", "answer": "-", "order": 0, "is_published": False})
        store.entity("FAQCategory").create({"name": "Уход", "order": 1, "is_active": True})
        store.entity("FAQCategory").create({"name": "Архив", "order": 2, "is_active": False})

        listing = list_faqs(store)
        assert [record["question"] for record in listing["items"]] == ["Гарантия?", "Как ухаживать?"]
        assert [category["name"] for category in listing["categories"]] == ["Уход"]
        assert [record["question"] for record in list_faqs(store, query="СРОК")["items"]] == ["Гарантия?"]

    def test_videos_filtered_by_category(self):
        store = EntityStore()
        video = store.entity("Video")
        video.create({"title": "Укладка ёлочкой", "url": "https://v/1", "is_published": True, "categories": ["c1"]})
        video.create({"title": "Уход", "url": "https://v/2", "is_published": True, "categories": ["c2"]})
        assert [record["title"] for record in list_videos(store, category="c1")["items"]] == ["Укладка ёлочкой"]
        assert [record["title"] for record in list_videos(store, query="уход")["items"]] == ["Уход"]


class TestAISettings:
    """Tests for assistant settings."""

    def test_defaults_until_saved(self):
        settings = get_ai_settings(EntityStore(), "gemini-2.5-flash")
        assert settings["system_prompt"] == DEFAULT_PERSONA
        assert settings["model"] == "gemini-2.5-flash"

    def test_saves_keep_a_single_record(self):
        store = EntityStore()
        update_ai_settings(store, AISettingsUpdate(system_prompt="Вы эксперт по полам."), "gemini-2.5-flash")
        saved = update_ai_settings(store, AISettingsUpdate(temperature=0.2), "gemini-2.5-flash")
        assert len(store.entity("AISettings").list()) == 1
        assert saved["system_prompt"] == "Вы эксперт по полам."
        assert saved["temperature"] == 0.2

    def test_saved_persona_reaches_new_snapshots(self):
        store = EntityStore()
        update_ai_settings(store, AISettingsUpdate(system_prompt="Вы эксперт по полам."), "gemini-2.5-flash")
        assert KnowledgeStore(store).snapshot().persona == "Вы эксперт по полам."
