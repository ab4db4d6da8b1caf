# QueryGate - Intent translators backed by hosted LLMs
#
# LLM: OpenAI-compatible API. Default = Ollama at http://localhost:11434/v1, model "llama3.2".
#      Or Anthropic (TRANSLATOR_PROVIDER=anthropic, ANTHROPIC_API_KEY).
# The model only sees the caller's resource menu and the question; its reply is untrusted.
#
import logging
from typing import Any

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from config import Settings
from querygate.models import MenuEntry
from querygate.translator import build_system_prompt, parse_reply

logger = logging.getLogger(__name__)

TEMPERATURE = 0.1
MAX_TOKENS = 1024


class OpenAITranslator:
    def __init__(self, base_url: str, api_key: str, model: str, client: AsyncOpenAI | None = None):
        self._base_url = base_url
        self._api_key = api_key
        self._model = model
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._model)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            # Ollama ignores the key but the client requires one
            self._client = AsyncOpenAI(base_url=self._base_url, api_key=self._api_key or "ollama")
        return self._client

    async def translate(self, question: str, menu: list[MenuEntry]) -> dict[str, Any] | None:
        response = await self._get_client().chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": build_system_prompt(menu)},
                {"role": "user", "content": question},
            ],
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
        )
        content = response.choices[0].message.content if response.choices else None
        logger.debug("Translator replied (%d chars)", len(content or ""))
        return parse_reply(content)


class AnthropicTranslator:
    def __init__(self, api_key: str, model: str, client: AsyncAnthropic | None = None):
        self._api_key = api_key
        self._model = model
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def translate(self, question: str, menu: list[MenuEntry]) -> dict[str, Any] | None:
        response = await self._get_client().messages.create(
            model=self._model,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            system=build_system_prompt(menu),
            messages=[{"role": "user", "content": question}],
        )
        content = "".join(getattr(block, "text", "") for block in response.content)
        logger.debug("Translator replied (%d chars)", len(content))
        return parse_reply(content)


def build_translator(settings: Settings) -> OpenAITranslator | AnthropicTranslator:
    provider = (settings.translator_provider or "openai").strip().lower()
    if provider == "anthropic":
        return AnthropicTranslator(api_key=settings.anthropic_api_key, model=settings.anthropic_model)
    return OpenAITranslator(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        model=settings.openai_model,
    )
