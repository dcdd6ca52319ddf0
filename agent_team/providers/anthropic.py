"""Anthropic Claude models through the anthropic SDK's async client."""

import logging

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from agent_team.models import Message, ModelResponse
from agent_team.providers.base import ConfiguredModel, split_system

logger = logging.getLogger(__name__)


class AnthropicProvider(ConfiguredModel):
    """Claude via the Messages API. System text goes in its own parameter."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        self._client = anthropic_sdk.AsyncAnthropic(api_key=self._api_key)

    async def invoke(self, messages: list[Message]) -> ModelResponse:
        system, turns = split_system(messages)
        if not turns:
            # The Messages API rejects a conversation without a user turn
            turns = [{"role": "user", "content": system}]
            system = ""

        request = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": turns,
        }
        if system:
            request["system"] = system

        response, latency = await self._request(self._client.messages.create(**request))

        if not response.content:
            raise self._fail("Empty response content")
        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise self._fail("No text blocks in response")

        usage = response.usage
        token_count = usage.input_tokens + usage.output_tokens if usage else None
        logger.info("Anthropic %s: %.2fs, %s tokens", self._config.model, latency, token_count)

        return self._response("\n".join(text_blocks), latency, token_count)
