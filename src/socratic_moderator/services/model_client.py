import json
import logging
import re
from typing import Any, Protocol

from openai import AsyncOpenAI

from ..models import MESSAGE_TYPES, ModeratorResponse
from ..prompts import TASK_TEMPLATES, ModerationTask
from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)

MAX_FIELD_CHARS = 80
DEFAULT_FEEDBACK = "Identify your reasoning basis."
DEFAULT_QUESTION = "What evidence supports this?"

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def canned_response() -> ModeratorResponse:
    """Response used whenever the model fails or returns garbage."""
    return ModeratorResponse(
        type="question",
        short_feedback="Reasoning basis unclear.",
        guiding_question="What evidence supports this claim?",
    )


class ModelClient(Protocol):
    async def call(self, task: ModerationTask, prompt: str) -> str: ...


class OpenAIModelClient:
    """Single-shot chat completion against an OpenAI-compatible endpoint (Groq by default)."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._client: AsyncOpenAI | None = None

    def _make_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._settings.openai_api_key,
                base_url=self._settings.openai_base_url,
                timeout=self._settings.request_timeout_seconds,
            )
        return self._client

    async def call(self, task: ModerationTask, prompt: str) -> str:
        """Send the task template plus prompt; return the raw reply text."""
        response = await self._make_client().chat.completions.create(
            model=self._settings.model,
            temperature=self._settings.temperature,
            max_tokens=self._settings.max_tokens,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": TASK_TEMPLATES[task]},
                {"role": "user", "content": prompt},
            ],
        )
        if not response.choices:
            return "{}"
        return response.choices[0].message.content or "{}"

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def truncate(text: Any, max_chars: int = MAX_FIELD_CHARS) -> str:
    if not text:
        return ""
    t = str(text).strip()
    return t if len(t) <= max_chars else t[:max_chars].rstrip() + "…"


def normalize_type(raw: Any) -> str:
    t = str(raw or "").lower().strip()
    return t if t in MESSAGE_TYPES else "question"


def _load_json_object(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        match = _JSON_OBJECT_RE.search(raw)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def parse_model_response(raw: str) -> ModeratorResponse:
    """Validate untrusted model text into a ModeratorResponse.

    Unknown types become ``question``; text fields are capped at 80 characters.
    Anything that is not a JSON object falls back to the canned response.
    """
    parsed = _load_json_object(raw or "")
    if parsed is None:
        logger.warning("Unparseable model response, using canned reply: %.200s", raw)
        return canned_response()

    reason = parsed.get("contradiction_reason") or parsed.get("reason") or ""
    return ModeratorResponse(
        type=normalize_type(parsed.get("type")),
        short_feedback=truncate(parsed.get("short_feedback") or DEFAULT_FEEDBACK),
        guiding_question=truncate(parsed.get("guiding_question") or DEFAULT_QUESTION),
        contradicts=parsed.get("contradicts") is True,
        contradiction_reason=truncate(reason),
    )


async def request_moderation(
    client: ModelClient, task: ModerationTask, prompt: str
) -> ModeratorResponse:
    """Call the model once and validate the reply. Model faults never propagate."""
    try:
        raw = await client.call(task, prompt)
    except Exception as e:
        logger.warning("Model call for %s failed, using canned reply: %s", task.value, e)
        return canned_response()
    return parse_model_response(raw)
