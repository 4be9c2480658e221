"""Unit tests for the entity store, session store, and knowledge snapshots."""

import pytest

from floorhub.entity_store import EntityNotFound, EntityStore
from floorhub.feed_loader import sync_feed
from floorhub.knowledge.knowledge_store import KnowledgeStore
from floorhub.models import StoredMessage
from floorhub.session_store import SessionStore


def _message(role, content, timestamp):
    return StoredMessage(id=f"{role}-{timestamp}", role=role, content=content, timestamp=timestamp)


class TestEntityStore:
    """Tests for EntityStore verbs."""

    def test_create_stamps_bookkeeping_fields(self):
        record = EntityStore().entity("FAQ").create({"question": "Q"})
        assert record["id"]
        assert record["created_date"] == record["updated_date"]

    def test_filter_and_sort(self):
        faq = EntityStore().entity("FAQ")
        faq.create({"question": "b", "order": 2, "published": True})
        faq.create({"question": "a", "order": 1, "published": True})
        faq.create({"question": "c", "order": 3, "published": False})
        faq.create({"question": "d", "published": True})
        published = faq.filter({"published": True}, sort="-order")
        assert [record["question"] for record in published] == ["b", "a", "d"]

    def test_update_and_delete(self):
        faq = EntityStore().entity("FAQ")
        record = faq.create({"question": "Q"})
        assert faq.update(record["id"], {"question": "Q2", "id": "other"})["question"] == "Q2"
        assert faq.get(record["id"])["id"] == record["id"]
        faq.delete(record["id"])
        with pytest.raises(EntityNotFound):
            faq.get(record["id"])
        with pytest.raises(EntityNotFound):
            faq.delete(record["id"])

    def test_unknown_entity_type(self):
        with pytest.raises(ValueError):
            EntityStore().entity("Nope")

    def test_records_survive_reload(self, tmp_path):
        path = tmp_path / "entities.json"
        created = EntityStore(path).entity("Order").create({"order_number": "ORD-1"})
        assert EntityStore(path).entity("Order").get(created["id"])["order_number"] == "ORD-1"


class TestSessionStore:
    """Tests for SessionStore."""

    def test_title_is_first_line_of_first_message(self, tmp_path):
        store = SessionStore(tmp_path / "sessions.json")
        long_line = "Подскажите по ламинату " * 4
        store.append("s1", _message("user", long_line + "\nвторая строка", 1.0), _message("assistant", "ok", 2.0))
        summary = store.list_sessions()[0]
        assert summary.title == long_line[:48]
        assert summary.updated_at == 2.0

    def test_append_keeps_previous_messages(self, tmp_path):
        store = SessionStore(tmp_path / "sessions.json")
        store.append("s1", _message("user", "one", 1.0))
        store.append("s1", _message("user", "two", 2.0))
        assert [message.content for message in store.get_messages("s1")] == ["one", "two"]

    def test_clear_returns_fresh_session(self, tmp_path):
        store = SessionStore(tmp_path / "sessions.json")
        store.append("s1", _message("user", "one", 1.0))
        fresh = store.clear_session("s1")
        assert fresh != "s1"
        assert store.get_messages("s1") == []
        assert store.has_session(fresh)
        assert not store.has_session("s1")

    def test_prune_oldest(self, tmp_path):
        store = SessionStore(tmp_path / "sessions.json", max_sessions=2)
        store.append("old", _message("user", "a", 1.0))
        store.append("mid", _message("user", "b", 2.0))
        store.append("new", _message("user", "c", 3.0))
        assert [summary.session_id for summary in store.list_sessions()] == ["new", "mid"]

    def test_eviction_listeners_receive_dropped_ids(self, tmp_path):
        store = SessionStore(tmp_path / "sessions.json", max_sessions=1)
        dropped = []
        store.add_eviction_listener(dropped.append)
        store.append("old", _message("user", "a", 1.0))
        store.append("new", _message("user", "b", 2.0))
        assert dropped == ["old"]
        assert store.max_sessions == 1

    def test_reload_from_disk(self, tmp_path):
        path = tmp_path / "sessions.json"
        SessionStore(path).append("s1", _message("user", "one", 1.0))
        restored = SessionStore(path).get_messages("s1")
        assert restored[0].payload.kind == "plain_text"

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "sessions.json"
        path.write_text("{not json", encoding="utf-8")
        assert SessionStore(path).list_sessions() == []


class TestKnowledgeStore:
    """Tests for KnowledgeStore.snapshot."""

    def setup_method(self):
        self.store = EntityStore()
        self.knowledge = self.store.entity("KnowledgeBase")

    def test_without_feed_item_index_is_none(self):
        self.knowledge.create({"title": "Статья", "type": "link", "is_ai_source": True})
        self.knowledge.create({"title": "Черновик", "type": "link", "is_ai_source": False})
        snapshot = KnowledgeStore(self.store).snapshot()
        assert [item.title for item in snapshot.items] == ["Статья"]
        assert snapshot.product_index is None
        assert snapshot.persona is None

    def test_feed_item_builds_index(self, sample_feed):
        feed = self.knowledge.create({"title": "Фид", "type": "xml_feed", "is_ai_source": True})
        sync_feed(self.store, feed["id"], sample_feed)
        self.store.entity("AISettings").create({"system_prompt": "Вы консультант."})
        snapshot = KnowledgeStore(self.store).snapshot()
        assert "ms110" in snapshot.product_index
        assert len(snapshot.product_index) == 3
        assert snapshot.persona == "Вы консультант."

    def test_feed_item_without_products_is_ignored(self):
        self.knowledge.create({"title": "Пустой фид", "type": "xml_feed", "is_ai_source": True})
        assert KnowledgeStore(self.store).snapshot().product_index is None
