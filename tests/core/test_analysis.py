# tests/core/test_analysis.py
import pytest
import requests
from loguru import logger

from codescope.config.schema import AnalysisConfig
from codescope.core.analysis import (
    AnalysisSession, HttpAnalysisService, MessageRole, build_context_block, build_prompt,
    DEFAULT_PREAMBLE, GENERIC_FAILURE_MESSAGE, NO_CONTEXT_MESSAGE,
)
from codescope.core.context_selection import ContextSelection
from codescope.core.errors import AnalysisRequestFailure
from codescope.core.models import ContextFile
from codescope.core.store import FileStore


class StubService:
    def __init__(self, answer="42", error=None):
        self.answer = answer
        self.error = error
        self.prompts = []

    async def analyze(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.answer


@pytest.fixture
def workspace():
    store = FileStore()
    a = store.create_file("a.ts", "const a = 1;")
    b = store.create_file("b.ts", "const b = 2;")
    selection = ContextSelection()
    selection.add_to_context(a)
    selection.add_to_context(b)
    return store, selection, a, b


def test_context_block_with_active_file():
    block = build_context_block([ContextFile("b.ts", "B")], "a.ts", "A")
    assert block == "File: b.ts\nB\n\nCurrent file: a.ts\nA"

def test_context_block_active_only_is_bare_content():
    assert build_context_block([], "a.ts", "A") == "A"

def test_context_block_without_active():
    block = build_context_block([ContextFile("a.ts", "A"), ContextFile("b.ts", "B")])
    assert block == "File: a.ts\nA\n\nFile: b.ts\nB"

def test_build_prompt_layout():
    prompt = build_prompt("File: a.ts\nA", "What is a?")
    assert prompt == f"{DEFAULT_PREAMBLE}\n\nFile: a.ts\nA\n\nQuestion: What is a?"

def test_build_prompt_without_context_fails():
    with pytest.raises(AnalysisRequestFailure, match=NO_CONTEXT_MESSAGE):
        build_prompt("", "anything")


@pytest.mark.asyncio
async def test_ask_deduplicates_active_file(workspace):
    store, selection, a, _ = workspace
    store.open_file(a)
    service = StubService()

    reply = await AnalysisSession(service).ask("Explain", selection, store)

    assert reply.content == "42"
    prompt = service.prompts[0]
    assert prompt.count("const a = 1;") == 1
    assert "File: b.ts\nconst b = 2;\n\nCurrent file: a.ts\nconst a = 1;" in prompt
    assert prompt.endswith("Question: Explain")

@pytest.mark.asyncio
async def test_ask_records_messages(workspace):
    store, selection, _, _ = workspace
    session = AnalysisSession(StubService("fine"))

    await session.ask("How?", selection, store)

    assert [(m.role, m.content) for m in session.messages] == [
        (MessageRole.USER, "How?"), (MessageRole.ASSISTANT, "fine"),
    ]
    assert not any(m.is_loading for m in session.messages)
    assert session.is_analyzing is False

@pytest.mark.asyncio
async def test_blank_question_does_nothing(workspace):
    store, selection, _, _ = workspace
    service = StubService()
    session = AnalysisSession(service)

    assert await session.ask("   ", selection, store) is None
    assert session.messages == []
    assert service.prompts == []

@pytest.mark.asyncio
async def test_no_context_is_reported_not_raised():
    service = StubService()
    reply = await AnalysisSession(service).ask("Why?", ContextSelection(), FileStore())

    assert reply.content == NO_CONTEXT_MESSAGE
    assert service.prompts == []

@pytest.mark.asyncio
async def test_service_failure_becomes_message(workspace):
    store, selection, _, _ = workspace
    session = AnalysisSession(StubService(error=AnalysisRequestFailure("service down")))

    reply = await session.ask("Q", selection, store)

    assert reply.role is MessageRole.ASSISTANT
    assert reply.content == "service down"

@pytest.mark.asyncio
async def test_unexpected_failure_gets_generic_message(workspace):
    store, selection, _, _ = workspace
    reply = await AnalysisSession(StubService(error=RuntimeError("boom"))).ask("Q", selection, store)
    assert reply.content == GENERIC_FAILURE_MESSAGE

def test_prepare_prompt_warns_over_budget(workspace):
    store, selection, _, _ = workspace
    warnings = []
    handler_id = logger.add(warnings.append, level="WARNING", format="{message}")
    try:
        AnalysisSession(StubService(), max_context_tokens=1).prepare_prompt("Q", selection, store)
    finally:
        logger.remove(handler_id)
    assert any("above the configured budget" in w for w in warnings)


# --- HTTP client ---

@pytest.fixture
def http_service(monkeypatch):
    monkeypatch.setenv("CODESCOPE_TEST_KEY", "sk-test")
    return HttpAnalysisService(AnalysisConfig(endpoint="https://example.invalid/v1/chat", model="m",
                                              api_key_env="CODESCOPE_TEST_KEY", timeout=3))

@pytest.mark.asyncio
async def test_http_service_posts_prompt(http_service, mocker):
    response = mocker.Mock()
    response.json.return_value = {"choices": [{"message": {"content": "answer"}}]}
    post = mocker.patch("codescope.core.analysis.requests.post", return_value=response)

    assert await http_service.analyze("prompt") == "answer"

    _, kwargs = post.call_args
    assert kwargs["json"] == {"model": "m", "messages": [{"role": "user", "content": "prompt"}]}
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["timeout"] == 3

@pytest.mark.asyncio
async def test_http_service_wraps_request_errors(http_service, mocker):
    mocker.patch("codescope.core.analysis.requests.post", side_effect=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(AnalysisRequestFailure, match="refused"):
        await http_service.analyze("prompt")

@pytest.mark.asyncio
async def test_http_service_rejects_malformed_reply(http_service, mocker):
    response = mocker.Mock()
    response.json.return_value = {"unexpected": True}
    mocker.patch("codescope.core.analysis.requests.post", return_value=response)
    with pytest.raises(AnalysisRequestFailure, match="unexpected response"):
        await http_service.analyze("prompt")

@pytest.mark.asyncio
async def test_http_service_requires_api_key(monkeypatch):
    monkeypatch.delenv("CODESCOPE_MISSING_KEY", raising=False)
    service = HttpAnalysisService(AnalysisConfig(api_key_env="CODESCOPE_MISSING_KEY"))
    with pytest.raises(AnalysisRequestFailure, match="CODESCOPE_MISSING_KEY"):
        await service.analyze("prompt")
