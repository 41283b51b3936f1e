import tempfile

from chat_core.domain.models import Conversation, Message
from chat_core.export.markdown import export_conversation, render_markdown, safe_filename


def test_render_markdown_transcript():
    conv = Conversation(
        id="c1",
        name="Trip",
        messages=[Message(role="user", text="Where to?"), Message(role="model", text="Kyoto.")],
    )
    assert render_markdown(conv) == (
        "# Conversation: Trip\n\n"
        "**User:**\n\nWhere to?"
        "\n\n---\n\n"
        "**Model:**\n\nKyoto."
    )


def test_safe_filename_strips_illegal_characters():
    assert safe_filename('a\\b/c:d*e?f"g<h>i|j') == "a_b_c_d_e_f_g_h_i_j.md"
    assert safe_filename("Conversation 1") == "Conversation 1.md"


def test_export_conversation_writes_file():
    with tempfile.TemporaryDirectory() as d:
        conv = Conversation(id="c1", name="Q?", messages=[Message(role="user", text="hi")])
        path = export_conversation(conv, d)
        assert path.name == "Q_.md"
        assert path.read_text(encoding="utf-8").startswith("# Conversation: Q?")
