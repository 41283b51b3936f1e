"""会话导出为 Markdown 文稿。"""

import re
from pathlib import Path

from chat_core.domain.models import Conversation


_ILLEGAL_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def render_markdown(conv: Conversation) -> str:
    """按角色标注渲染整段对话，消息之间用水平线分隔。"""

    body = "\n\n---\n\n".join(
        f"**{m.role.capitalize()}:**\n\n{m.text}" for m in conv.messages
    )
    return f"# Conversation: {conv.name}\n\n{body}"


def safe_filename(name: str) -> str:
    """把文件系统不允许的字符替换为下划线，并加上 .md 后缀。"""

    return f"{_ILLEGAL_FILENAME_CHARS.sub('_', name)}.md"


def export_conversation(conv: Conversation, directory: str | Path) -> Path:
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / safe_filename(conv.name)
    path.write_text(render_markdown(conv), encoding="utf-8")
    return path
