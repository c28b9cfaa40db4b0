"""
Unit tests for knowledge_recall/memory/message_store.py
"""

from datetime import timedelta

import pytest

from knowledge_recall.errors import InvalidArgument
from knowledge_recall.memory.message_store import TITLE_LENGTH, MessageStore, make_thread_title
from tests.fixtures import BASE_TIME, make_thread


class TestThreads:
    def test_create_and_get(self, message_store):
        thread = message_store.create_thread("user-1", title="Trip planning", thread_id="t1")

        assert thread.id == "t1"
        assert thread.resource_id == "user-1"
        assert message_store.get_thread("t1").title == "Trip planning"
        assert message_store.get_thread("missing") is None

    def test_create_is_idempotent_for_owner(self, message_store):
        message_store.create_thread("user-1", thread_id="t1")
        again = message_store.create_thread("user-1", thread_id="t1")
        assert again.id == "t1"

    def test_thread_cannot_change_owner(self, message_store):
        message_store.create_thread("user-1", thread_id="t1")
        with pytest.raises(InvalidArgument):
            message_store.create_thread("user-2", thread_id="t1")

    def test_generated_thread_id(self, message_store):
        thread = message_store.create_thread("user-1")
        assert thread.id

    def test_list_threads_per_resource(self, message_store):
        message_store.create_thread("user-1", thread_id="a")
        message_store.create_thread("user-1", thread_id="b")
        message_store.create_thread("user-2", thread_id="c")

        ids = {t.id for t in message_store.list_threads("user-1")}
        assert ids == {"a", "b"}


class TestMessages:
    def test_save_creates_thread(self, message_store):
        message = message_store.save_message("t1", "user-1", "user", "hello")

        assert message.sequence > 0
        assert message_store.get_thread("t1").resource_id == "user-1"

    def test_save_rejects_empty_content(self, message_store):
        with pytest.raises(InvalidArgument):
            message_store.save_message("t1", "user-1", "user", "   ")

    def test_save_into_foreign_thread(self, message_store):
        message_store.save_message("t1", "user-1", "user", "hello")
        with pytest.raises(InvalidArgument):
            message_store.save_message("t1", "user-2", "user", "hijack")

    def test_get_messages_batch(self, message_store):
        make_thread(message_store, count=5)

        found = message_store.get_messages(["thread-1-m2", "thread-1-m4", "nope"])

        assert set(found) == {"thread-1-m2", "thread-1-m4"}
        assert found["thread-1-m2"].content == "filler line number 2 in thread-1"
        assert found["thread-1-m2"].created_at == BASE_TIME + timedelta(minutes=2)

    def test_get_messages_empty(self, message_store):
        assert message_store.get_messages([]) == {}

    def test_get_messages_beyond_parameter_limit(self, message_store):
        make_thread(message_store, count=3)
        ids = [f"missing-{i}" for i in range(2000)] + ["thread-1-m3"]

        assert list(message_store.get_messages(ids)) == ["thread-1-m3"]

    def test_thread_order_uses_sequence_for_ties(self, message_store):
        for n in range(3):
            message_store.save_message(
                "t1", "user-1", "user", f"same time {n}",
                message_id=f"tie-{n}", created_at=BASE_TIME,
            )
        message_store.save_message(
            "t1", "user-1", "user", "earlier", message_id="early",
            created_at=BASE_TIME - timedelta(minutes=1),
        )

        assert message_store.get_thread_message_ids("t1") == ["early", "tie-0", "tie-1", "tie-2"]

    def test_recent_messages_oldest_first(self, message_store):
        make_thread(message_store, count=6)

        recent = message_store.get_recent_messages("thread-1", limit=3)

        assert [m.id for m in recent] == ["thread-1-m4", "thread-1-m5", "thread-1-m6"]
        assert message_store.get_recent_messages("thread-1", limit=0) == []

    def test_count_and_delete(self, message_store):
        make_thread(message_store, count=4)
        make_thread(message_store, thread_id="other", resource_id="user-2", count=2)

        assert message_store.count_messages() == 6
        assert message_store.count_messages("user-2") == 2

        assert message_store.delete_message("thread-1-m1") is True
        assert message_store.delete_message("thread-1-m1") is False
        assert message_store.count_messages("user-1") == 3

    def test_persists_across_instances(self, temp_db_path):
        MessageStore(temp_db_path).save_message("t1", "user-1", "user", "remember me", message_id="m")
        assert MessageStore(temp_db_path).get_messages(["m"])["m"].content == "remember me"


class TestThreadTitles:
    def test_first_user_message_titles_thread(self, message_store):
        message_store.save_message("t1", "user-1", "assistant", "Hi, how can I help?")
        message_store.save_message("t1", "user-1", "user", "Plan a safari in Kenya\nin October")
        message_store.save_message("t1", "user-1", "user", "Something else entirely")

        assert message_store.get_thread("t1").title == "Plan a safari in Kenya"

    def test_long_title_is_shortened(self, message_store):
        message_store.save_message("t1", "user-1", "user", "word " * 40)
        title = message_store.get_thread("t1").title
        assert title.endswith("...")
        assert len(title) <= TITLE_LENGTH + 3

    def test_explicit_title_is_kept(self, message_store):
        message_store.create_thread("user-1", title="Trip planning", thread_id="t1")
        message_store.save_message("t1", "user-1", "user", "Plan a safari")
        assert message_store.get_thread("t1").title == "Trip planning"

    def test_titles_can_be_disabled(self, temp_db_path):
        store = MessageStore(temp_db_path, generate_titles=False)
        store.save_message("t1", "user-1", "user", "Plan a safari")
        assert store.get_thread("t1").title == ""

    def test_make_thread_title(self):
        assert make_thread_title("  short  ") == "short"
        assert make_thread_title("abcdefgh", length=4) == "abcd..."
