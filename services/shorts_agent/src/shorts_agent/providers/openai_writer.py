"""Script writer backed by the OpenAI Responses API with a JSON schema."""

from __future__ import annotations

import json
import logging
from typing import Any

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from ..clients import ClientProfile
from ..exceptions import ProviderError, RetryableProviderError
from ..models import Script

logger = logging.getLogger(__name__)

SCRIPT_SCHEMA_NAME = "short_script"
SCRIPT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "hook": {"type": "string"},
        "body": {"type": "string"},
        "cta": {"type": "string"},
        "titleSuggestions": {"type": "array", "items": {"type": "string"}},
        "description": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
        "durationSecTarget": {"type": "integer"},
    },
    "required": ["hook", "body", "cta", "titleSuggestions", "description", "tags", "durationSecTarget"],
}

_RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)


def build_prompt(client: ClientProfile, topic: str) -> str:
    return (
        f"Write a YouTube Shorts narration script about \"{topic}\" for the channel "
        f"\"{client.display_name}\" in the {client.niche} niche.\n"
        f"Language: {client.language}. Tone: {client.tone}.\n"
        "Constraints: hook of at most 16 words; hook, body and call to action together "
        "between 130 and 190 words; the call to action must ask viewers to follow, "
        "subscribe, learn or save; target duration at most 60 seconds.\n"
        "Return three title suggestions, a description with #Shorts and up to 12 tags."
    )


class OpenAIScriptWriter:
    name = "openai"

    def __init__(
        self,
        *,
        model: str,
        api_key: str | None = None,
        client: Any | None = None,
        timeout: float | None = 120.0,
        max_output_tokens: int = 1200,
    ) -> None:
        self._model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)
        self._max_output_tokens = max_output_tokens

    async def aclose(self) -> None:
        await self._client.close()

    async def write_script(self, client: ClientProfile, topic: str) -> Script:
        prompt = build_prompt(client, topic)
        logger.info(
            "OpenAI write_script model=%s client=%s prompt_len=%d",
            self._model,
            client.id,
            len(prompt),
        )
        try:
            response = await self._client.responses.create(
                model=self._model,
                input=prompt,
                max_output_tokens=self._max_output_tokens,
                text={
                    "format": {
                        "type": "json_schema",
                        "name": SCRIPT_SCHEMA_NAME,
                        "schema": SCRIPT_SCHEMA,
                        "strict": True,
                    }
                },
            )
        except _RETRYABLE_ERRORS as exc:
            raise RetryableProviderError("OpenAI request failed", provider=self.name, cause=exc) from exc
        except openai.OpenAIError as exc:
            raise ProviderError("OpenAI request failed", provider=self.name, cause=exc) from exc

        text = getattr(response, "output_text", None)
        if not text or not text.strip():
            raise ProviderError("OpenAI returned an empty response", provider=self.name)
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise ProviderError("OpenAI returned invalid JSON", provider=self.name, cause=exc) from exc

        try:
            return Script.model_validate(
                {
                    **payload,
                    "topic": topic,
                    "niche": client.niche,
                    "language": client.language,
                    "tone": client.tone,
                }
            )
        except ValidationError as exc:
            raise ProviderError("OpenAI script does not match the schema", provider=self.name, cause=exc) from exc


__all__ = ["OpenAIScriptWriter", "SCRIPT_SCHEMA", "build_prompt"]
