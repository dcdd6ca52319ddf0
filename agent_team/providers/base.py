"""Abstract base for all leader-model providers."""

import asyncio
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

from agent_team.models import Message, ModelResponse, Role

if TYPE_CHECKING:
    from config.config_loader import ModelConfig

T = TypeVar("T")

EMPTY_TURN_TEXT = "(empty request)"


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class LeaderModel(ABC):
    """Abstract base for all language-model handles used by a team."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def invoke(self, messages: list[Message]) -> ModelResponse:
        """Send an ordered list of role-tagged messages to the model.

        Args:
            messages: system/user/assistant messages, oldest first.

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...


def split_system(messages: list[Message]) -> tuple[str, list[dict[str, str]]]:
    """Separate system messages from the chat turns.

    SDKs that take the system prompt as its own parameter (Anthropic, Gemini)
    get all system texts joined; the remaining turns keep their order.
    Those APIs reject empty text blocks, so a blank turn is sent as
    EMPTY_TURN_TEXT.
    """
    system_parts = [m.content for m in messages if m.role == Role.SYSTEM]
    turns = [
        {"role": m.role.value, "content": m.content if m.content.strip() else EMPTY_TURN_TEXT}
        for m in messages
        if m.role != Role.SYSTEM
    ]
    return "\n\n".join(system_parts), turns


class ConfiguredModel(LeaderModel):
    """Shared plumbing for SDK-backed models described by a ModelConfig.

    Subclasses build their client in __init__ from self._api_key and
    implement invoke() around self._request().
    """

    def __init__(self, config: "ModelConfig") -> None:
        self._config = config
        self._api_key = os.environ.get(config.api_key_env, "").strip()
        if not self._api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def _request(self, call: Awaitable[T]) -> tuple[T, float]:
        """Await an SDK call under the configured timeout. Returns (result, latency)."""
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(call, timeout=self._config.timeout_sec)
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc
        return result, time.monotonic() - start

    def _fail(self, message: str) -> ProviderError:
        return ProviderError(self._config.name, message)

    def _response(self, content: str, latency: float, token_count: int | None) -> ModelResponse:
        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=content,
            latency_sec=latency,
            token_count=token_count,
        )
