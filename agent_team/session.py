"""Session connector: memory / storage contracts and in-process adapters."""

import json
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any

from agent_team.models import Message, Role, SessionSummary, TeamSession, UserMemory
from agent_team.providers.base import LeaderModel

logger = logging.getLogger(__name__)


class MemoryManager(ABC):
    """User memories and rolling session summaries, keyed by user and session."""

    @abstractmethod
    async def get_session_summary(self, user_id: str, session_id: str) -> SessionSummary | None:
        ...

    @abstractmethod
    async def create_memory(self, user_id: str, input_text: str, response: str) -> UserMemory:
        ...

    @abstractmethod
    async def create_session_summary(
        self,
        user_id: str,
        session_id: str,
        messages: list[dict[str, str]],
    ) -> SessionSummary:
        ...


class SessionStorage(ABC):
    """Persisted team sessions."""

    @abstractmethod
    async def read(self, session_id: str, user_id: str | None = None) -> TeamSession | None:
        ...

    @abstractmethod
    async def upsert(self, session: TeamSession) -> TeamSession:
        ...


def messages_to_dicts(messages: list[Message]) -> list[dict[str, str]]:
    return [{"role": m.role.value, "content": m.content} for m in messages]


def messages_from_dicts(raw: Any) -> list[Message]:
    """Rebuild history from stored dicts, skipping malformed entries."""
    if not isinstance(raw, list):
        return []
    messages: list[Message] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if not role or not isinstance(content, str):
            continue
        try:
            messages.append(Message(Role(role), content))
        except ValueError:
            logger.debug("Skipping stored message with unknown role %r", role)
    return messages


class InMemorySessionStorage(SessionStorage):
    """Process-local storage keyed by (session_id, user_id)."""

    def __init__(self) -> None:
        self._sessions: dict[tuple[str, str], TeamSession] = {}

    async def read(self, session_id: str, user_id: str | None = None) -> TeamSession | None:
        if user_id is not None:
            return self._sessions.get((session_id, user_id))
        for (sid, _), session in self._sessions.items():
            if sid == session_id:
                return session
        return None

    async def upsert(self, session: TeamSession) -> TeamSession:
        key = (session.session_id, session.user_id)
        now = int(time.time())
        existing = self._sessions.get(key)
        # First write fixes created_at; later writes only move updated_at
        created_at = existing.created_at if existing else (session.created_at or now)
        stored = TeamSession(
            session_id=session.session_id,
            user_id=session.user_id,
            team_id=session.team_id,
            team_data=json.loads(json.dumps(session.team_data)),
            session_data=json.loads(json.dumps(session.session_data)),
            memory=dict(session.memory),
            extra_data=dict(session.extra_data),
            created_at=created_at,
            updated_at=now,
        )
        self._sessions[key] = stored
        return stored


_SUMMARY_INSTRUCTIONS = [
    "Analyze the following conversation between a user and an assistant.",
    "Create a concise summary that captures:",
    "- The main topics discussed",
    "- Key questions asked by the user",
    "- Important decisions or conclusions reached",
    "- Any action items or next steps",
    "",
    "Keep the summary under 200 words and focus on the most important aspects.",
    "",
    "Conversation:",
]

_SUMMARY_FORMAT = [
    "Provide your output as a JSON containing the following field:",
    '"summary": "The conversation summary"',
    "Start your response with `{` and end it with `}`.",
    "Make sure it only contains valid JSON.",
]


def extract_json(text: str) -> dict | list | None:
    """Pull a JSON value out of model output that may wrap it in fences or prose."""
    if not text or not text.strip():
        return None
    text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if fence_match:
        try:
            return json.loads(fence_match.group(1).strip())
        except json.JSONDecodeError:
            pass

    for start_char, end_char in [("{", "}"), ("[", "]")]:
        start_idx = text.find(start_char)
        end_idx = text.rfind(end_char)
        if start_idx == -1 or end_idx <= start_idx:
            continue
        try:
            return json.loads(text[start_idx:end_idx + 1])
        except json.JSONDecodeError:
            pass
    return None


def build_summary_prompt(messages: list[dict[str, str]]) -> str:
    lines = list(_SUMMARY_INSTRUCTIONS)
    for msg in messages:
        role = msg.get("role", "")
        if role == Role.USER.value:
            lines.append(f"User: {msg.get('content', '')}")
        elif role == Role.ASSISTANT.value:
            lines.append(f"Assistant: {msg.get('content', '')}")
    lines.append("")
    lines.extend(_SUMMARY_FORMAT)
    return "\n".join(lines)


class ModelMemoryManager(MemoryManager):
    """Memory kept in process; session summaries written by a language model."""

    def __init__(self, model: LeaderModel) -> None:
        self._model = model
        self._memories: dict[str, list[UserMemory]] = {}
        self._summaries: dict[tuple[str, str], SessionSummary] = {}

    def memories_for(self, user_id: str) -> list[UserMemory]:
        return list(self._memories.get(user_id, []))

    async def get_session_summary(self, user_id: str, session_id: str) -> SessionSummary | None:
        return self._summaries.get((user_id, session_id))

    async def create_memory(self, user_id: str, input_text: str, response: str) -> UserMemory:
        memory = UserMemory(
            id=str(uuid.uuid4()),
            user_id=user_id,
            memory=f"User asked: {input_text}\nAnswer: {response}",
            input=input_text,
            created_at=int(time.time()),
        )
        self._memories.setdefault(user_id, []).append(memory)
        return memory

    async def create_session_summary(
        self,
        user_id: str,
        session_id: str,
        messages: list[dict[str, str]],
    ) -> SessionSummary:
        if not any(m.get("role") == Role.USER.value for m in messages):
            raise ValueError("no user messages provided for summarization")

        resp = await self._model.invoke([
            Message(Role.SYSTEM, build_summary_prompt(messages)),
            Message(Role.USER, "Provide the summary of the conversation."),
        ])

        parsed = extract_json(resp.content)
        if isinstance(parsed, dict) and isinstance(parsed.get("summary"), str):
            text = parsed["summary"].strip()
        else:
            logger.debug("Summary was not JSON, keeping raw model text")
            text = resp.content.strip()

        now = int(time.time())
        existing = self._summaries.get((user_id, session_id))
        summary = SessionSummary(
            user_id=user_id,
            session_id=session_id,
            summary=text,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._summaries[(user_id, session_id)] = summary
        return summary
