"""Team coordinator: dispatches a prompt to the mode's strategy and keeps session state."""

import asyncio
import logging
import time

from agent_team.members import Member
from agent_team.models import Message, Role, RunResponse, TeamEvent, TeamMode, TeamSession
from agent_team.prompts import PromptTemplates
from agent_team.providers.base import LeaderModel
from agent_team.session import MemoryManager, SessionStorage, messages_from_dicts, messages_to_dicts
from agent_team.strategies import STRATEGIES

logger = logging.getLogger(__name__)


def coerce_mode(mode: TeamMode | str | None) -> TeamMode:
    """Map a mode name onto TeamMode. Empty or unknown names mean coordinate."""
    if isinstance(mode, TeamMode):
        return mode
    try:
        return TeamMode(str(mode or "").strip().lower())
    except ValueError:
        if mode:
            logger.warning("Unknown team mode %r, defaulting to %s", mode, TeamMode.COORDINATE.value)
        return TeamMode.COORDINATE


class Team(Member):
    """A group of members answering as one.

    A Team is itself a Member, so teams can be nested inside other teams.
    Configuration is fixed at construction; only the conversation history
    changes between runs.
    """

    def __init__(
        self,
        name: str,
        leader: LeaderModel,
        members: list[Member] | None = None,
        *,
        mode: TeamMode | str | None = TeamMode.COORDINATE,
        role: str = "",
        description: str = "",
        instructions: list[str] | None = None,
        async_mode: bool = False,
        show_member_responses: bool = False,
        debug: bool = False,
        session_id: str = "",
        user_id: str = "",
        memory: MemoryManager | None = None,
        storage: SessionStorage | None = None,
        templates: PromptTemplates | None = None,
        quorum: int = 0,
        member_timeout_sec: float | None = None,
        read_chat_history: bool = True,
        enable_user_memories: bool = False,
        enable_session_summaries: bool = False,
        add_history_to_messages: bool = False,
        num_history_runs: int = 3,
    ) -> None:
        self._name = name
        self._leader = leader
        self._members = list(members or [])
        self._mode = coerce_mode(mode)
        self._role = role
        self._description = description
        self._instructions = list(instructions or [])
        self._async_mode = async_mode
        self._show_member_responses = show_member_responses
        self._debug = debug
        self._session_id = session_id
        self._user_id = user_id
        self._memory = memory
        self._storage = storage
        self._templates = templates or PromptTemplates()
        self._quorum = quorum
        self._member_timeout_sec = member_timeout_sec
        self._read_chat_history = read_chat_history
        self._enable_user_memories = enable_user_memories
        self._enable_session_summaries = enable_session_summaries
        self._add_history_to_messages = add_history_to_messages
        self._num_history_runs = num_history_runs

        self._messages: list[Message] = []
        self._session_loaded = False
        self._lock = asyncio.Lock()

    # -- Member contract ---------------------------------------------------

    def name(self) -> str:
        return self._name

    def role(self) -> str:
        return self._role

    async def run(self, prompt: str) -> RunResponse:
        """Answer the prompt with the configured mode.

        Raises:
            ProviderError: If a routing, planning or synthesis call to the
                leader fails.
            QuorumNotMetError: If a quorum is configured and not reached.
        """
        async with self._lock:
            await self._load_session()

        logger.info(
            "Team %s: %s mode, %d members%s",
            self._name,
            self._mode.value,
            len(self._members),
            " (async)" if self._async_mode and self._mode == TeamMode.COLLABORATE else "",
        )
        response = await STRATEGIES[self._mode](self, prompt)

        if response.event != TeamEvent.ERROR:
            async with self._lock:
                await self._save_turn(prompt, response)

        logger.info("Team %s finished with %s in %.2fs", self._name, response.event.value, response.duration_sec)
        return response

    # -- Read-only configuration used by the strategies --------------------

    @property
    def leader(self) -> LeaderModel:
        return self._leader

    @property
    def members(self) -> list[Member]:
        return self._members

    @property
    def mode(self) -> TeamMode:
        return self._mode

    @property
    def description(self) -> str:
        return self._description

    @property
    def instructions(self) -> list[str]:
        return self._instructions

    @property
    def templates(self) -> PromptTemplates:
        return self._templates

    @property
    def async_mode(self) -> bool:
        return self._async_mode

    @property
    def show_member_responses(self) -> bool:
        return self._show_member_responses

    @property
    def debug(self) -> bool:
        return self._debug

    @property
    def quorum(self) -> int:
        return self._quorum

    @property
    def member_timeout_sec(self) -> float | None:
        return self._member_timeout_sec

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def messages(self) -> list[Message]:
        """Conversation history, oldest first."""
        return list(self._messages)

    def bind_session(self, session_id: str, user_id: str = "") -> None:
        """Point the team at another session; history is reloaded on the next run."""
        self._session_id = session_id
        self._user_id = user_id
        self._messages = []
        self._session_loaded = False

    def leader_history(self) -> list[Message]:
        """History inserted into leader calls when add_history_to_messages is on."""
        if not self._add_history_to_messages:
            return []
        summaries = [m for m in self._messages if m.role == Role.SYSTEM]
        turns = [m for m in self._messages if m.role != Role.SYSTEM]
        if self._num_history_runs > 0:
            turns = turns[-2 * self._num_history_runs:]
        return summaries + turns

    # -- Session load / save -----------------------------------------------

    async def load_session(self) -> list[Message]:
        """Load prior history now instead of on the first run."""
        async with self._lock:
            await self._load_session()
        return self.messages

    async def _load_session(self) -> None:
        if self._session_loaded:
            return
        self._session_loaded = True
        if not self._session_id or (self._memory is None and self._storage is None):
            return

        if self._memory is not None and self._read_chat_history:
            try:
                summary = await self._memory.get_session_summary(self._user_id, self._session_id)
            except Exception as exc:
                logger.warning("Failed to load session summary for %s: %s", self._session_id, exc)
            else:
                if summary is not None and summary.summary:
                    self._messages.insert(
                        0, Message(Role.SYSTEM, f"Previous session summary: {summary.summary}")
                    )
                    logger.debug("Loaded session summary for session %s", self._session_id)
                else:
                    logger.debug("No session summary found for session %s", self._session_id)

        if self._storage is not None:
            try:
                record = await self._storage.read(self._session_id, self._user_id)
            except Exception as exc:
                logger.warning("Failed to load team session %s: %s", self._session_id, exc)
            else:
                if record is not None:
                    restored = messages_from_dicts(record.team_data.get("messages"))
                    self._messages.extend(restored)
                    logger.debug("Loaded %d messages for session %s", len(restored), self._session_id)
                else:
                    logger.debug("No team session found for session %s", self._session_id)

    async def _save_turn(self, prompt: str, response: RunResponse) -> None:
        turn = [
            Message(Role.USER, prompt),
            Message(Role.ASSISTANT, response.text_content),
        ]
        persist = bool(self._session_id)

        if persist and self._memory is not None:
            if self._enable_user_memories:
                try:
                    await self._memory.create_memory(self._user_id, prompt, response.text_content)
                except Exception as exc:
                    logger.warning("Failed to create user memory: %s", exc)
            if self._enable_session_summaries:
                try:
                    await self._memory.create_session_summary(
                        self._user_id, self._session_id, messages_to_dicts(self._messages + turn)
                    )
                except Exception as exc:
                    logger.warning("Failed to create session summary: %s", exc)
                else:
                    logger.debug("Session summary updated for session %s", self._session_id)

        self._messages.extend(turn)

        if persist and self._storage is not None:
            try:
                await self._storage.upsert(self._session_record())
            except Exception as exc:
                logger.warning("Failed to save team session %s: %s", self._session_id, exc)
            else:
                logger.debug("Team session saved for session %s", self._session_id)

    def _session_record(self) -> TeamSession:
        now = int(time.time())
        # Summaries come from the memory adapter on load; storing them would duplicate them
        history = [m for m in self._messages if m.role != Role.SYSTEM]
        return TeamSession(
            session_id=self._session_id,
            user_id=self._user_id,
            team_id=self._name,
            team_data={
                "messages": messages_to_dicts(history),
                "team_name": self._name,
                "team_role": self._role,
                "team_mode": self._mode.value,
            },
            session_data={
                "mode": self._mode.value,
                "member_count": len(self._members),
                "last_interaction": now,
            },
            created_at=now,
            updated_at=now,
        )
