"""Google Gemini models through the google-genai SDK's async surface."""

import logging

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from agent_team.models import Message, ModelResponse
from agent_team.providers.base import ConfiguredModel, split_system

logger = logging.getLogger(__name__)


def _to_contents(turns: list[dict[str, str]]) -> list[genai_types.Content]:
    # Gemini names the assistant role "model"
    return [
        genai_types.Content(
            role="model" if turn["role"] == "assistant" else "user",
            parts=[genai_types.Part(text=turn["content"])],
        )
        for turn in turns
    ]


class GeminiProvider(ConfiguredModel):
    """Gemini via generate_content; system text becomes system_instruction."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        self._client = genai.Client(api_key=self._api_key)

    async def invoke(self, messages: list[Message]) -> ModelResponse:
        system, turns = split_system(messages)
        if not turns:
            turns = [{"role": "user", "content": system}]
            system = ""

        response, latency = await self._request(
            self._client.aio.models.generate_content(
                model=self._config.model,
                contents=_to_contents(turns),
                config=genai_types.GenerateContentConfig(
                    max_output_tokens=self._config.max_tokens,
                    system_instruction=system or None,
                ),
            )
        )

        if not response.text:
            raise self._fail("Empty response text")

        usage = response.usage_metadata
        token_count = usage.total_token_count if usage else None
        logger.info("Gemini %s: %.2fs, %s tokens", self._config.model, latency, token_count)

        return self._response(response.text, latency, token_count)
