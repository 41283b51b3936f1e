import dataclasses

import pytest

from chat_core.domain.models import ChatRequest, Conversation, Message, SystemInstructionPreset


def test_models_exist():
    m = Message(role="user", text="hi")
    assert m.role == "user"
    conv = Conversation(id="c1", name="Conversation 1")
    assert conv.messages == []
    assert conv.system_instruction == ""
    preset = SystemInstructionPreset(name="p", instruction="be brief")
    assert preset.instruction == "be brief"
    req = ChatRequest(model="gemini-2.5-flash", messages=[m])
    assert req.system_instruction == ""


def test_message_is_immutable():
    m = Message(role="model", text="a")
    with pytest.raises(dataclasses.FrozenInstanceError):
        m.text = "b"
