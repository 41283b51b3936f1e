"""领域层模型与存储。

包含：
- models: Message / Conversation / SystemInstructionPreset 以及 ChatRequest / ChatResult。
- conversation: ConversationStore，会话集合与当前会话指针。
- presets: PresetStore，命名的系统指令预设。
- exceptions: 业务异常类型定义。
"""
