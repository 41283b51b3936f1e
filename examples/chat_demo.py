"""Minimal demonstration of the chat client without the GUI."""

from chat_core.api.service import get_default_state, send_message

if __name__ == "__main__":
    question = "请用三句话介绍一下你自己"
    state = get_default_state()
    result = send_message(question)
    print("Conversation:", state.current.name)
    print("User:", question)
    print("Model:", result["model_message"])
