"""OpenAI chat models, plus OpenAI-compatible APIs (xAI, DeepSeek) via base_url."""

import logging

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from agent_team.models import Message, ModelResponse
from agent_team.providers.base import ConfiguredModel

logger = logging.getLogger(__name__)


class OpenAIProvider(ConfiguredModel):
    """Chat Completions client. Role-tagged messages are passed through as-is."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        client_args = {"api_key": self._api_key}
        if config.base_url:
            client_args["base_url"] = config.base_url
        self._client = AsyncOpenAI(**client_args)

    async def invoke(self, messages: list[Message]) -> ModelResponse:
        response, latency = await self._request(
            self._client.chat.completions.create(
                model=self._config.model,
                messages=[{"role": m.role.value, "content": m.content} for m in messages],
                max_tokens=self._config.max_tokens,
            )
        )

        choice = response.choices[0] if response.choices else None
        if choice is None or not choice.message.content:
            raise self._fail("Empty response content")

        token_count = response.usage.total_tokens if response.usage else None
        logger.info("OpenAI-compatible %s: %.2fs, %s tokens", self._config.model, latency, token_count)

        return self._response(choice.message.content, latency, token_count)
