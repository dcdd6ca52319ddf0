"""Member capability contract and the single-responder member."""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from agent_team.models import Message, Role, RunResponse, TeamEvent
from agent_team.providers.base import LeaderModel, ProviderError

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 50       # characters per streamed slice
STREAM_CHUNK_DELAY = 0.01    # seconds between slices

ChunkCallback = Callable[[str], Awaitable[None] | None]


class MemberError(Exception):
    """Raised when a member cannot produce a response."""

    def __init__(self, member_name: str, message: str) -> None:
        self.member_name = member_name
        super().__init__(f"[{member_name}] {message}")


async def stream_text(
    text: str,
    on_chunk: ChunkCallback,
    chunk_size: int = STREAM_CHUNK_SIZE,
    delay: float = STREAM_CHUNK_DELAY,
) -> None:
    """Re-emit finished text in fixed-size slices.

    on_chunk may be a plain function or a coroutine function. Anything it
    raises stops the stream and propagates to the caller.
    """
    for i in range(0, len(text), chunk_size):
        result = on_chunk(text[i:i + chunk_size])
        if inspect.isawaitable(result):
            await result
        await asyncio.sleep(delay)


class Member(ABC):
    """Anything that answers a prompt: a single responder or a whole team."""

    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def role(self) -> str:
        ...

    @abstractmethod
    async def run(self, prompt: str) -> RunResponse:
        """Answer the prompt in full.

        Raises:
            Exception: Any failure; teams record it as a member failure.
        """
        ...

    async def run_stream(self, prompt: str, on_chunk: ChunkCallback) -> None:
        """Answer the prompt, emitting the text incrementally."""
        response = await self.run(prompt)
        await stream_text(response.text_content, on_chunk)


class ModelMember(Member):
    """A member backed by one language-model call per prompt."""

    def __init__(
        self,
        name: str,
        role: str,
        model: LeaderModel,
        instructions: str = "",
    ) -> None:
        self._name = name
        self._role = role
        self._model = model
        self._instructions = instructions

    def name(self) -> str:
        return self._name

    def role(self) -> str:
        return self._role

    @property
    def model(self) -> LeaderModel:
        return self._model

    def _system_prompt(self) -> str:
        parts = [f"You are {self._name}, {self._role}."] if self._role else [f"You are {self._name}."]
        if self._instructions:
            parts.append(self._instructions)
        return "\n\n".join(parts)

    async def run(self, prompt: str) -> RunResponse:
        messages = [
            Message(Role.SYSTEM, self._system_prompt()),
            Message(Role.USER, prompt),
        ]
        start = time.monotonic()
        try:
            resp = await self._model.invoke(messages)
        except ProviderError as exc:
            raise MemberError(self._name, str(exc)) from exc

        logger.debug("Member %s answered in %.2fs", self._name, time.monotonic() - start)

        return RunResponse(
            text_content=resp.content,
            event=TeamEvent.MEMBER,
            prompt=prompt,
            model=resp.model,
            messages=[Message(Role.ASSISTANT, resp.content)],
            created_at=int(time.time()),
            duration_sec=time.monotonic() - start,
        )
