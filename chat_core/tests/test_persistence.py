import json
import tempfile
from pathlib import Path

from chat_core.domain.exceptions import StorageError
from chat_core.domain.models import Conversation, Message, SystemInstructionPreset
from chat_core.infrastructure.storage.kv_store import FileKeyValueStore
from chat_core.infrastructure.storage.persistence import (
    CONVERSATIONS_KEY,
    SELECTED_MODEL_KEY,
    SYSTEM_INSTRUCTION_PRESETS_KEY,
    PersistenceAdapter,
)


class BrokenStorage:
    def get(self, key):
        raise StorageError(code="STORE_READ_ERROR", message="disk gone")

    def set(self, key, value):
        raise StorageError(code="STORE_WRITE_ERROR", message="disk gone")

    def delete(self, key):
        raise StorageError(code="STORE_DELETE_ERROR", message="disk gone")


def test_conversations_round_trip_uses_original_layout():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        adapter = PersistenceAdapter(kv)
        conv = Conversation(
            id="c1",
            name="Conversation 1",
            messages=[Message(role="user", text="hi"), Message(role="model", text="hello")],
            system_instruction="be kind",
        )
        adapter.save_conversations([conv])
        raw = json.loads(kv.get(CONVERSATIONS_KEY))
        assert raw == [{
            "id": "c1",
            "name": "Conversation 1",
            "messages": [{"role": "user", "text": "hi"}, {"role": "model", "text": "hello"}],
            "systemInstruction": "be kind",
        }]
        assert adapter.load_conversations() == [conv]


def test_missing_slots_load_as_defaults():
    with tempfile.TemporaryDirectory() as d:
        adapter = PersistenceAdapter(FileKeyValueStore(root=d))
        assert adapter.load_conversations() is None
        assert adapter.load_current_id() is None
        assert adapter.load_presets() == []
        assert adapter.load_selected_model("gemini-2.5-flash") == "gemini-2.5-flash"
        assert adapter.load_credential() == ""


def test_corrupted_slot_loads_as_default():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        kv.set(CONVERSATIONS_KEY, "{not json")
        kv.set(SELECTED_MODEL_KEY, "[1, 2]")
        adapter = PersistenceAdapter(kv)
        assert adapter.load_conversations() is None
        assert adapter.load_selected_model("gemini-2.5-flash") == "gemini-2.5-flash"


def test_malformed_entries_are_skipped():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        kv.set(CONVERSATIONS_KEY, json.dumps([
            {"id": "ok", "name": "A", "messages": [], "systemInstruction": ""},
            {"name": "no id"},
            {"id": "bad-role", "name": "B", "messages": [{"role": "system", "text": "x"}]},
        ]))
        adapter = PersistenceAdapter(kv)
        assert [c.id for c in adapter.load_conversations()] == ["ok"]


def test_storage_failures_never_escape():
    adapter = PersistenceAdapter(BrokenStorage())
    adapter.save_conversations([Conversation(id="c1", name="x")])
    adapter.save_presets([SystemInstructionPreset(name="p", instruction="i")])
    adapter.save_selected_model("gemini-2.5-pro")
    adapter.save_credential("secret")
    assert adapter.load_conversations() is None
    assert adapter.load_presets() == []
    assert adapter.load_credential() == ""


def test_presets_model_and_credential_slots():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        adapter = PersistenceAdapter(kv)
        adapter.save_presets([SystemInstructionPreset(name="p", instruction="i")])
        adapter.save_selected_model("gemini-2.5-pro")
        adapter.save_current_id("c9")
        adapter.save_credential("AIza-test-key")
        assert adapter.load_presets() == [SystemInstructionPreset(name="p", instruction="i")]
        assert adapter.load_selected_model("gemini-2.5-flash") == "gemini-2.5-pro"
        assert adapter.load_current_id() == "c9"
        # 密钥以原始文本保存，不做 JSON 编码
        assert kv.get("gemini_api_key") == "AIza-test-key"
        assert adapter.load_credential() == "AIza-test-key"


def test_non_object_entries_are_skipped():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        kv.set(CONVERSATIONS_KEY, json.dumps([
            1,
            "stray",
            None,
            ["c1"],
            {"id": "ok", "name": "A", "messages": [], "systemInstruction": ""},
        ]))
        adapter = PersistenceAdapter(kv)
        assert [c.id for c in adapter.load_conversations()] == ["ok"]


def test_wrongly_typed_fields_are_rejected():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        kv.set(CONVERSATIONS_KEY, json.dumps([
            {"id": 7, "name": "numeric id", "messages": []},
            {"id": "name-list", "name": ["x"], "messages": []},
            {"id": "si-dict", "name": "B", "messages": [], "systemInstruction": {"a": 1}},
            {"id": "msgs-str", "name": "C", "messages": "hello"},
            {"id": "msg-str", "name": "D", "messages": ["hello"]},
            {"id": "text-num", "name": "E", "messages": [{"role": "user", "text": 5}]},
            {"id": "ok", "name": None, "messages": [{"role": "user"}], "systemInstruction": None},
        ]))
        loaded = PersistenceAdapter(kv).load_conversations()
        assert loaded == [Conversation(id="ok", name="", messages=[Message(role="user", text="")])]
        # 解码出的字段都是字符串
        assert all(isinstance(m.text, str) for c in loaded for m in c.messages)


def test_duplicate_conversation_ids_keep_first():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        kv.set(CONVERSATIONS_KEY, json.dumps([
            {"id": "c1", "name": "first", "messages": []},
            {"id": "c1", "name": "second", "messages": []},
        ]))
        assert [c.name for c in PersistenceAdapter(kv).load_conversations()] == ["first"]


def test_undecodable_slot_loads_as_default():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        (Path(d) / "kv" / f"{CONVERSATIONS_KEY}.txt").write_bytes(b"\xff\xfe[broken")
        assert PersistenceAdapter(kv).load_conversations() is None


def test_malformed_presets_are_skipped():
    with tempfile.TemporaryDirectory() as d:
        kv = FileKeyValueStore(root=d)
        kv.set(SYSTEM_INSTRUCTION_PRESETS_KEY, json.dumps([
            "stray",
            {"name": "no instruction"},
            {"name": 3, "instruction": "numeric name"},
            {"name": "p", "instruction": ["not", "text"]},
            {"name": "ok", "instruction": "be brief"},
        ]))
        assert PersistenceAdapter(kv).load_presets() == [SystemInstructionPreset(name="ok", instruction="be brief")]
