"""Translator prompt, reply parsing and the two LLM-backed providers (fake clients, no network)."""

from types import SimpleNamespace

import pytest

from config import Settings
from querygate.translator import build_menu_context, build_system_prompt, parse_reply
from server.llm import AnthropicTranslator, OpenAITranslator, build_translator


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))])


class FakeMessages:
    def __init__(self, text):
        self.text = text
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


@pytest.mark.parametrize(
    "content,expected",
    [
        ('{"resource": "sites"}', {"resource": "sites"}),
        ('```json\n{"resource": "sites", "limit": 5}\n```', {"resource": "sites", "limit": 5}),
        ('Sure! {"clarification": "Which site?"} Hope that helps.', {"clarification": "Which site?"}),
        ("no json here", None),
        ("[1, 2, 3]", None),
        ("", None),
        (None, None),
        ("{not valid}", None),
    ],
)
def test_parse_reply(content, expected):
    assert parse_reply(content) == expected


def test_menu_only_lists_allowed_resources(make_guard):
    menu = make_guard("Janitor").menu()
    context = build_menu_context(menu)
    assert context.startswith("- sites: Sites with name, location, code. Fields: id, site_name")
    assert "purchase_orders" not in context
    prompt = build_system_prompt(menu)
    assert context in prompt
    assert "clarification" in prompt
    assert "between 1 and 500" in prompt


@pytest.mark.asyncio
async def test_openai_translator_sends_menu_and_parses(make_guard):
    completions = FakeCompletions('```json\n{"resource": "sites"}\n```')
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    translator = OpenAITranslator("http://localhost:11434/v1", "", "llama3.2", client=client)
    menu = make_guard("default").menu()

    assert translator.configured
    assert await translator.translate("which sites do I have?", menu) == {"resource": "sites"}
    assert completions.kwargs["model"] == "llama3.2"
    assert completions.kwargs["temperature"] == 0.1
    system, user = completions.kwargs["messages"]
    assert system["role"] == "system" and "- sites:" in system["content"]
    assert user == {"role": "user", "content": "which sites do I have?"}


@pytest.mark.asyncio
async def test_anthropic_translator(make_guard):
    messages = FakeMessages('{"clarification": "Which PO?"}')
    translator = AnthropicTranslator(api_key="", model="claude-test", client=SimpleNamespace(messages=messages))
    assert translator.configured
    out = await translator.translate("status of my order", make_guard().menu())
    assert out == {"clarification": "Which PO?"}
    assert messages.kwargs["model"] == "claude-test"
    assert "purchase_orders" in messages.kwargs["system"]


def test_anthropic_without_key_is_not_configured():
    assert AnthropicTranslator(api_key="", model="claude-test").configured is False


def test_build_translator_selects_provider():
    assert isinstance(build_translator(Settings(translator_provider="anthropic", anthropic_api_key="k")), AnthropicTranslator)
    openai = build_translator(Settings(translator_provider="OpenAI", openai_model="gpt-4o-mini"))
    assert isinstance(openai, OpenAITranslator)
    assert openai.configured
