import pytest

from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import Conversation, Message


def _store_with_messages():
    store = ConversationStore()
    conv = store.create()
    store.append_user_message(conv.id, "q1")
    store.append_model_message(conv.id, "a1")
    store.append_user_message(conv.id, "q2")
    store.append_model_message(conv.id, "a2")
    return store, conv.id


def test_create_assigns_unique_id_and_becomes_current():
    store = ConversationStore()
    seen = set()
    for i in range(5):
        before = {c.id for c in store.conversations}
        conv = store.create()
        assert conv.id not in before
        assert conv.id not in seen
        seen.add(conv.id)
        assert store.current_id == conv.id
        assert conv.name == f"Conversation {i + 1}"
        assert conv.messages == []
        assert conv.system_instruction == ""


def test_switch_to_unknown_id_is_noop():
    store = ConversationStore()
    a = store.create()
    store.create()
    store.switch_to(a.id)
    assert store.current_id == a.id
    store.switch_to("missing")
    assert store.current_id == a.id


def test_rename_replaces_name():
    store = ConversationStore()
    conv = store.create()
    store.rename(conv.id, "Trip plan")
    assert store.get(conv.id).name == "Trip plan"


def test_delete_current_moves_to_first_remaining():
    store = ConversationStore()
    a = store.create()
    b = store.create()
    c = store.create()
    assert store.current_id == c.id
    store.delete(c.id)
    assert store.current_id == a.id
    assert [x.id for x in store.conversations] == [a.id, b.id]


def test_delete_last_conversation_creates_exactly_one_new():
    store = ConversationStore()
    only = store.create()
    store.delete(only.id)
    assert len(store) == 1
    assert store.current is not None
    assert store.current.id != only.id


def test_delete_non_current_keeps_pointer():
    store = ConversationStore()
    a = store.create()
    b = store.create()
    store.delete(a.id)
    assert store.current_id == b.id


def test_clear_empties_messages():
    store, cid = _store_with_messages()
    store.clear(cid)
    assert store.get(cid).messages == []


def test_replace_messages_from_truncates_and_substitutes():
    store, cid = _store_with_messages()
    store.replace_messages_from(cid, 2, [Message(role="user", text="q2'")])
    assert [m.text for m in store.get(cid).messages] == ["q1", "a1", "q2'"]


def test_replace_messages_from_rejects_out_of_range():
    store, cid = _store_with_messages()
    with pytest.raises(ValidationError) as exc:
        store.replace_messages_from(cid, 9, [])
    assert exc.value.code == "MESSAGE_NOT_FOUND"
    with pytest.raises(ValidationError):
        store.replace_messages_from(cid, -1, [])
    assert len(store.get(cid).messages) == 4


def test_replace_messages_from_at_end_appends():
    store, cid = _store_with_messages()
    store.replace_messages_from(cid, 4, [Message(role="user", text="q3")])
    assert [m.text for m in store.get(cid).messages] == ["q1", "a1", "q2", "a2", "q3"]


def test_edit_message_changes_only_that_text():
    store, cid = _store_with_messages()
    store.edit_message(cid, 1, "fixed")
    messages = store.get(cid).messages
    assert len(messages) == 4
    assert [m.text for m in messages] == ["q1", "fixed", "q2", "a2"]
    assert messages[1].role == "model"


def test_edit_message_rejects_negative_and_out_of_range_index():
    store, cid = _store_with_messages()
    for index in (-1, 4, 9):
        with pytest.raises(ValidationError) as exc:
            store.edit_message(cid, index, "x")
        assert exc.value.code == "MESSAGE_NOT_FOUND"
    # 负下标不能悄悄改到最后一条
    assert [m.text for m in store.get(cid).messages] == ["q1", "a1", "q2", "a2"]


def test_mutations_replace_object_by_id():
    store, cid = _store_with_messages()
    before = store.get(cid)
    store.set_system_instruction(cid, "be terse")
    after = store.get(cid)
    assert after is not before
    assert before.system_instruction == ""
    assert after.system_instruction == "be terse"


def test_listener_called_on_every_mutation():
    calls = []
    store = ConversationStore(on_change=lambda s: calls.append(len(s)))
    conv = store.create()
    store.append_user_message(conv.id, "hi")
    store.rename(conv.id, "x")
    assert len(calls) == 3
    store.rename("missing", "y")
    assert len(calls) == 3


def test_unresolvable_current_id_falls_back_to_first():
    convs = [Conversation(id="a", name="A"), Conversation(id="b", name="B")]
    store = ConversationStore(convs, current_id="gone")
    assert store.current_id == "a"


def test_ensure_current_creates_when_empty():
    store = ConversationStore()
    conv = store.ensure_current()
    assert conv.name == "Conversation 1"
    assert store.current_id == conv.id
