from chat_core.domain.exceptions import ApiError
from chat_core.domain.models import ChatResult, ChatUsage, Message
from chat_core.providers.completion import (
    EMPTY_REPLY,
    ERROR_REPLY_PREFIX,
    MISSING_API_KEY_REPLY,
    UNKNOWN_ERROR_REPLY,
    CompletionService,
)


class SettingsStub:
    gemini_api_key = None


class FakeProvider:
    name = "fake"

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.requests = []

    def generate(self, req, api_key=None):
        self.requests.append((req, api_key))
        if self.error is not None:
            raise self.error
        return self.result


MESSAGES = [Message(role="user", text="hi")]


def test_returns_reply_text():
    provider = FakeProvider(ChatResult(model="m", text="hello", usage=ChatUsage(1, 1, 2)))
    service = CompletionService(provider, credential=lambda: "stored-key", cfg=SettingsStub())
    assert service(MESSAGES, "be kind", "gemini-2.5-pro") == "hello"
    req, key = provider.requests[0]
    assert key == "stored-key"
    assert req.model == "gemini-2.5-pro"
    assert req.system_instruction == "be kind"
    assert req.messages == MESSAGES


def test_missing_credential_does_not_call_provider():
    provider = FakeProvider(ChatResult(model="m", text="hello"))
    service = CompletionService(provider, credential=lambda: "  ", cfg=SettingsStub())
    assert service(MESSAGES, "", "gemini-2.5-flash") == MISSING_API_KEY_REPLY
    assert provider.requests == []


def test_credential_falls_back_to_settings():
    class WithKey:
        gemini_api_key = "env-key-0123456789"

    provider = FakeProvider(ChatResult(model="m", text="ok"))
    service = CompletionService(provider, credential=lambda: "", cfg=WithKey())
    assert service(MESSAGES, "", "gemini-2.5-flash") == "ok"
    assert provider.requests[0][1] == "env-key-0123456789"


def test_empty_reply_sentinel():
    service = CompletionService(FakeProvider(ChatResult(model="m", text=None)), credential=lambda: "k")
    assert service(MESSAGES, "", "gemini-2.5-flash") == EMPTY_REPLY
    service = CompletionService(FakeProvider(ChatResult(model="m", text="")), credential=lambda: "k")
    assert service(MESSAGES, "", "gemini-2.5-flash") == EMPTY_REPLY


def test_errors_become_placeholder_text():
    err = ApiError(code="API_ERROR", message="API key not valid", http_status=400)
    service = CompletionService(FakeProvider(error=err), credential=lambda: "k")
    assert service(MESSAGES, "", "gemini-2.5-flash") == f"{ERROR_REPLY_PREFIX}API key not valid"

    service = CompletionService(FakeProvider(error=RuntimeError("boom")), credential=lambda: "k")
    assert service(MESSAGES, "", "gemini-2.5-flash") == f"{ERROR_REPLY_PREFIX}boom"

    service = CompletionService(FakeProvider(error=RuntimeError()), credential=lambda: "k")
    assert service(MESSAGES, "", "gemini-2.5-flash") == UNKNOWN_ERROR_REPLY
