"""Unit tests for the intent classifier."""

from floorhub.intent import classify, extract_article_code, wants_supplementary


class TestExtractArticleCode:
    """Tests for article-code extraction."""

    def test_code_is_lowercased(self):
        """Test that a mixed letter/digit token is returned in lower case."""
        assert extract_article_code("у вас есть MS110 в наличии?") == "ms110"

    def test_first_code_wins(self):
        """Test that only the leftmost code is used when several are present."""
        assert extract_article_code("сравните AB12 и CD34") == "ab12"

    def test_digits_only_is_not_a_code(self):
        """Test that plain numbers and plain words are ignored."""
        assert extract_article_code("артикул 12345") is None
        assert extract_article_code("ламинат дуб") is None

    def test_short_tokens_are_ignored(self):
        """Test that tokens shorter than three characters never match."""
        assert extract_article_code("модель A1 подойдёт?") is None

    def test_cyrillic_letters_do_not_count(self):
        """Test that Cyrillic letters next to digits do not form a code."""
        assert extract_article_code("тип ДК300 есть?") is None


class TestSupplementary:
    """Tests for the supplementary-material flag."""

    def test_keyword_stems_match_case_insensitively(self):
        messages = [
            "Покажите ТЕКСТУРУ ms110",
            "есть фото в интерьере?",
            "как выглядит на полу",
            "а картинки есть?",
        ]
        for message in messages:
            assert wants_supplementary(message) is True, message

    def test_plain_question_is_not_supplementary(self):
        assert wants_supplementary("сколько стоит ms110") is False

    def test_classify_combines_both(self):
        result = classify("фото ms110")
        assert result.article_code == "ms110"
        assert result.wants_supplementary is True

    def test_texture_request_with_code(self):
        result = classify("покажите текстуру артикула AB12 в интерьере")
        assert result.article_code == "ab12"
        assert result.wants_supplementary is True
