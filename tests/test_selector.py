"""Unit tests for the knowledge relevance selector."""

import pytest

from floorhub.gemini_client import LLMError, LLMSchemaError
from floorhub.knowledge.selector import KnowledgeSelector, RelevanceResult, apply_keyword_rules

from conftest import make_item


@pytest.fixture
def catalog():
    return [
        make_item("Каталог 2024", type="yandex_disk", url="https://disk.example.com/catalog"),
        make_item("Логотип компании", type="yandex_disk", url="https://disk.example.com/logo"),
        make_item("Укладка ламината", description="Инструкция по монтажу"),
        make_item("Фид товаров", type="xml_feed", xml_data={"products": []}),
    ]


class TestKnowledgeSelector:
    """Tests for KnowledgeSelector.select."""

    def test_empty_catalog_makes_no_call(self, fake_llm, prompts_dir):
        """Test that a catalog with only feeds never reaches the model."""
        selector = KnowledgeSelector(fake_llm, prompts_dir)
        feeds_only = [make_item("Фид товаров", type="xml_feed")]
        assert selector.select("привет", [], feeds_only) == []
        assert fake_llm.calls == []

    def test_titles_map_to_items_in_catalog_order(self, fake_llm, prompts_dir, catalog):
        fake_llm.queue_json({"relevant_titles": ["Укладка ламината", "Каталог 2024", "Нет такого"]})
        selector = KnowledgeSelector(fake_llm, prompts_dir)
        selected = selector.select("как уложить ламинат", ["user: как уложить ламинат"], catalog)
        assert [item.title for item in selected] == ["Каталог 2024", "Укладка ламината"]

    def test_prompt_lists_candidates_and_history(self, fake_llm, prompts_dir, catalog):
        selector = KnowledgeSelector(fake_llm, prompts_dir)
        selector.select("вопрос", ["user: раньше", "assistant: ответ"], catalog)
        call = fake_llm.calls_of("json")[0]
        assert call["schema"] is RelevanceResult
        assert "Каталог 2024" in call["prompt"]
        assert "Фид товаров" not in call["prompt"]
        assert "assistant: ответ" in call["prompt"]

    def test_schema_mismatch_means_no_items(self, fake_llm, prompts_dir, catalog):
        fake_llm.queue_json({"titles": "Каталог 2024"})
        selector = KnowledgeSelector(fake_llm, prompts_dir)
        assert selector.select("каталог", [], catalog) == []

    def test_prose_answer_means_no_items(self, fake_llm, prompts_dir, catalog):
        fake_llm.queue_json("Вот подходящие материалы: Каталог 2024")
        selector = KnowledgeSelector(fake_llm, prompts_dir)
        assert selector.select("каталог", [], catalog) == []

    def test_explicit_schema_error_means_no_items(self, fake_llm, prompts_dir, catalog):
        fake_llm.queue_json(LLMSchemaError("bad output"))
        selector = KnowledgeSelector(fake_llm, prompts_dir)
        assert selector.select("каталог", [], catalog) == []

    def test_transport_error_propagates(self, fake_llm, prompts_dir, catalog):
        fake_llm.queue_json(LLMError("quota exceeded"))
        selector = KnowledgeSelector(fake_llm, prompts_dir)
        with pytest.raises(LLMError):
            selector.select("каталог", [], catalog)

    def test_duplicate_titles_keep_first_item(self, fake_llm, prompts_dir):
        catalog = [
            make_item("Сертификат", id="a", url="https://a"),
            make_item("Сертификат", id="b", url="https://b"),
        ]
        fake_llm.queue_json({"relevant_titles": ["Сертификат"]})
        selected = KnowledgeSelector(fake_llm, prompts_dir).select("документы", [], catalog)
        assert [item.id for item in selected] == ["a"]


class TestKeywordRules:
    """Tests for the ordered keyword re-filter."""

    def test_logo_rule_beats_catalog_rule(self, catalog):
        kept = apply_keyword_rules("скачать логотип и каталог", catalog)
        assert [item.title for item in kept] == ["Логотип компании"]

    def test_rule_can_empty_the_selection(self, catalog):
        items = [item for item in catalog if item.title == "Укладка ламината"]
        assert apply_keyword_rules("нужен сертификат", items) == []

    def test_no_rule_keeps_everything(self, catalog):
        assert apply_keyword_rules("как уложить", catalog) == catalog
