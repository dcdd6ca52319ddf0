"""Pure dataclasses for the team coordination engine. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class TeamMode(str, Enum):
    ROUTE = "route"
    COORDINATE = "coordinate"
    COLLABORATE = "collaborate"


class TeamEvent(str, Enum):
    ROUTE = "TeamRouteResponse"
    COORDINATE = "TeamCoordinateResponse"
    COLLABORATE = "TeamCollaborateResponse"
    COLLABORATE_ASYNC = "TeamCollaborateAsyncResponse"
    ERROR = "TeamError"
    MEMBER = "RunResponse"


@dataclass
class Message:
    role: Role
    content: str


@dataclass
class ModelResponse:
    provider: str          # "claude", "openai", "gemini", ...
    model: str             # actual model string used
    content: str
    role: Role = Role.ASSISTANT
    latency_sec: float = 0.0
    token_count: int | None = None


@dataclass
class MemberOutcome:
    index: int             # position in the team's member list
    name: str
    content: str = ""
    error: str | None = None
    latency_sec: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ConflictVerdict:
    has_conflicts: bool
    analysis: str = ""


@dataclass
class RunResponse:
    text_content: str
    event: TeamEvent
    prompt: str = ""
    model: str = ""
    content_type: str = "text"
    messages: list[Message] = field(default_factory=list)
    member_outcomes: list[MemberOutcome] = field(default_factory=list)  # member order
    evidence: list[str] = field(default_factory=list)                   # synthesis order
    verdict: ConflictVerdict | None = None
    plan: str = ""
    created_at: int = 0
    duration_sec: float = 0.0


@dataclass
class SessionSummary:
    user_id: str
    session_id: str
    summary: str
    created_at: int = 0
    updated_at: int = 0


@dataclass
class UserMemory:
    id: str
    user_id: str
    memory: str
    input: str = ""
    created_at: int = 0


@dataclass
class TeamSession:
    session_id: str
    user_id: str
    team_id: str
    team_data: dict[str, Any] = field(default_factory=dict)
    session_data: dict[str, Any] = field(default_factory=dict)
    memory: dict[str, Any] = field(default_factory=dict)
    extra_data: dict[str, Any] = field(default_factory=dict)
    created_at: int = 0
    updated_at: int = 0
