# QueryGate - Intent Translator interface (question + resource menu -> untrusted intent)
import json
import re
from typing import Any, Protocol

from .models import MenuEntry
from .resources import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

NOT_CONFIGURED_MESSAGE = (
    "Natural language query is not configured. Please use structured filters or contact your administrator."
)
TRANSLATOR_ERROR_MESSAGE = "I couldn't process that question. Please try rephrasing or ask something simpler."


class IntentTranslator(Protocol):
    """External reasoner. Whatever it returns is untrusted and goes through the sanitizer."""

    @property
    def configured(self) -> bool:
        ...

    async def translate(self, question: str, menu: list[MenuEntry]) -> Any:
        ...


def build_menu_context(menu: list[MenuEntry]) -> str:
    return "\n".join(f"- {m.key}: {m.description}. Fields: {', '.join(m.fields)}" for m in menu)


def build_system_prompt(menu: list[MenuEntry]) -> str:
    return f"""You translate natural language into read-only query specs for a document store.
Given the user question and ONLY the allowed resources and their fields below, output a single JSON object with:
- resource: one of the allowed resource keys (string)
- filter: query filter (object). Use only field names from the allowed fields. Use $eq, $ne, $in, $nin, $gt, $gte, $lt, $lte, $regex for matching and $and / $or to combine.
- projection: object of field names to 1 (to return). Use only allowed fields. Omit for all allowed fields.
- limit: number between 1 and {MAX_QUERY_LIMIT} (default {DEFAULT_QUERY_LIMIT})

Allowed resources and fields:
{build_menu_context(menu)}

Rules:
- Read-only. No update, delete, aggregation or $where.
- Use only the resource keys and field names listed above.
- If the question is unclear or cannot be answered with the given resources, set "clarification" to a short question string and omit resource.
- Output ONLY valid JSON, no markdown or extra text."""


def parse_reply(content: str | None) -> dict[str, Any] | None:
    """Outermost {...} block of a model reply as a dict; None if there is none."""
    text = (content or "").strip()
    match = _JSON_OBJECT.search(text)
    candidate = match.group(0) if match else text
    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None
