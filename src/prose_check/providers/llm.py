"""Correction model provider on top of OpenAI Chat Completions tool calling.

RU: Провайдер модели-корректора поверх Chat Completions OpenAI (tool calling).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from dotenv import find_dotenv, load_dotenv
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from prose_check.core.errors import ExternalCallFailure, MalformedModelOutput
from prose_check.core.prompts import get_system_prompt, get_user_prompt
from prose_check.core.reconcile import RawCorrection

_dotenv_path = find_dotenv(filename=".env", usecwd=True)
if _dotenv_path:
    load_dotenv(_dotenv_path, override=False)

logger = logging.getLogger(__name__)

TOOL_NAME = "grammar_corrections"

CORRECTIONS_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": "Lists only clear spelling and grammar errors in the input text",
        "parameters": {
            "type": "object",
            "properties": {
                "corrections": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "category": {"type": "string", "enum": ["spelling", "grammar"]},
                            "start_index": {"type": "integer"},
                            "end_index": {"type": "integer"},
                            "original_text": {"type": "string"},
                            "suggested_replacement": {"type": "string"},
                            "explanation": {"type": "string"},
                        },
                        "required": [
                            "category",
                            "start_index",
                            "end_index",
                            "original_text",
                            "suggested_replacement",
                            "explanation",
                        ],
                    },
                },
            },
            "required": ["corrections"],
        },
    },
}

# Error text fragments that mean "this model is not available to you"
_RETRYABLE_MARKERS = ("model", "availability", "not found")


@dataclass
class ChatMessage:
    """Single chat message compatible with OpenAI format."""

    role: str
    content: str


class Corrector(Protocol):
    async def correct(self, masked_text: str) -> List[RawCorrection]: ...


def parse_tool_arguments(message: Any) -> List[RawCorrection]:
    """
    Extract corrections from a chat completion message.

    Newer models answer with ``tool_calls``, older ones with ``function_call``.
    """
    args: Optional[str] = None
    tool_calls = getattr(message, "tool_calls", None)
    if tool_calls:
        args = tool_calls[0].function.arguments
    else:
        function_call = getattr(message, "function_call", None)
        if function_call is not None:
            args = function_call.arguments

    if not args:
        raise MalformedModelOutput("No function/tool call arguments in model response")

    try:
        parsed = json.loads(args)
    except json.JSONDecodeError as exc:
        raise MalformedModelOutput(f"Unparsable tool arguments: {args[:120]!r}") from exc

    items = parsed.get("corrections") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        raise MalformedModelOutput("Tool arguments have no 'corrections' list")

    try:
        return [RawCorrection.model_validate(item) for item in items]
    except ValidationError as exc:
        raise MalformedModelOutput(f"Invalid correction item: {exc}") from exc


class OpenAICorrector:
    """Asks an OpenAI chat model for corrections of one (masked) chunk."""

    def __init__(
        self,
        model: str,
        *,
        fallback_model: Optional[str] = None,
        temperature: float = 0.0,
        client: Optional[AsyncOpenAI] = None,
        prompts_path: Optional[str | Path] = None,
    ) -> None:
        self.model = model
        self.fallback_model = fallback_model
        self.temperature = temperature
        self.prompts_path = prompts_path
        self._client = client or AsyncOpenAI()

    def _messages(self, text: str) -> Sequence[ChatMessage]:
        return [
            ChatMessage(role="system", content=get_system_prompt(self.prompts_path)),
            ChatMessage(role="user", content=get_user_prompt(text, self.prompts_path)),
        ]

    def _request(self, model: str, text: str) -> Dict[str, Any]:
        return {
            "model": model,
            "temperature": self.temperature,
            "messages": [{"role": m.role, "content": m.content} for m in self._messages(text)],
            "tools": [CORRECTIONS_TOOL],
            "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
        }

    async def _complete(self, text: str) -> Any:
        logger.debug("Correction request: model=%s, chars=%d", self.model, len(text))
        try:
            return await self._client.chat.completions.create(**self._request(self.model, text))
        except OpenAIError as exc:
            msg = str(exc).lower()
            retryable = any(marker in msg for marker in _RETRYABLE_MARKERS)
            if not self.fallback_model or not retryable:
                raise ExternalCallFailure(f"Model {self.model} failed: {exc}") from exc
            logger.warning("Model %s failed (%s), retrying with %s", self.model, exc, self.fallback_model)

        try:
            response = await self._client.chat.completions.create(**self._request(self.fallback_model, text))
        except OpenAIError as exc:
            raise ExternalCallFailure(f"Fallback model {self.fallback_model} failed: {exc}") from exc
        logger.info("Correction request succeeded with fallback model %s", self.fallback_model)
        return response

    async def correct(self, masked_text: str) -> List[RawCorrection]:
        """
        Return the model's raw corrections for ``masked_text``.

        RU: Возвращает сырые исправления модели для замаскированного текста.
        """
        if not masked_text.strip():
            return []

        response = await self._complete(masked_text)
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise MalformedModelOutput("Model response has no choices")
        return parse_tool_arguments(choices[0].message)
