"""Shared pytest fixtures and test doubles."""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from config.config_loader import AppConfig, MemberConfig, ModelConfig, TeamConfig
from agent_team.members import Member, MemberError
from agent_team.models import Message, ModelResponse, Role, RunResponse, TeamEvent
from agent_team.prompts import CONFLICT_ANALYST_SYSTEM, CONFLICT_RESOLVER_SYSTEM, PromptTemplates
from agent_team.providers.base import LeaderModel, ProviderError

Reply = str | Callable[[list[Message]], str]


def phase_of(messages: list[Message]) -> str:
    """Name the leader phase a call belongs to, from its system message."""
    system = messages[0].content if messages and messages[0].role == Role.SYSTEM else ""
    if system == CONFLICT_ANALYST_SYSTEM:
        return "analysis"
    if system == CONFLICT_RESOLVER_SYSTEM:
        return "resolution"
    if "routing user requests" in system:
        return "routing"
    if "coordinating team members" in system:
        return "planning"
    if "synthesizing collaborative responses" in system:
        return "collaboration_synthesis"
    if "synthesizing team member responses" in system:
        return "synthesis"
    if "summary" in system.lower():
        return "summary"
    return "other"


def _echo_synthesis(messages: list[Message]) -> str:
    return "SYNTHESIS:\n" + messages[-1].content


class StubLeader(LeaderModel):
    """Scripted leader model: one reply per phase, every call recorded."""

    def __init__(
        self,
        replies: dict[str, Reply] | None = None,
        fail_phases: tuple[str, ...] = (),
        provider_name: str = "stub",
    ) -> None:
        self._name = provider_name
        self.replies: dict[str, Reply] = {
            "routing": "",
            "planning": "PLAN: everyone answers",
            "analysis": "NO CONFLICTS",
            "resolution": "RESOLVED ANSWER",
            "synthesis": _echo_synthesis,
            "collaboration_synthesis": _echo_synthesis,
            "summary": '{"summary": "talked about config formats"}',
            "other": "OK",
        }
        self.replies.update(replies or {})
        self.fail_phases = fail_phases
        self.calls: list[tuple[str, list[Message]]] = []

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "stub-model-1"

    @property
    def phases(self) -> list[str]:
        return [phase for phase, _ in self.calls]

    def calls_for(self, phase: str) -> list[list[Message]]:
        return [msgs for p, msgs in self.calls if p == phase]

    async def invoke(self, messages: list[Message]) -> ModelResponse:
        phase = phase_of(messages)
        self.calls.append((phase, list(messages)))
        if phase in self.fail_phases:
            raise ProviderError(self._name, f"{phase} call failed")
        reply = self.replies[phase]
        content = reply(messages) if callable(reply) else reply
        return ModelResponse(provider=self._name, model="stub-model-1", content=content)


class StubMember(Member):
    """Member with a fixed answer, optional latency and optional failure."""

    def __init__(
        self,
        member_name: str,
        reply: str | None = None,
        *,
        role: str = "generalist",
        delay: float = 0.0,
        fail: bool = False,
    ) -> None:
        self._name = member_name
        self._role = role
        self._reply = reply if reply is not None else f"Answer from {member_name}"
        self.delay = delay
        self.fail = fail
        self.prompts: list[str] = []

    def name(self) -> str:
        return self._name

    def role(self) -> str:
        return self._role

    async def run(self, prompt: str) -> RunResponse:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise MemberError(self._name, "backend unavailable")
        return RunResponse(text_content=self._reply, event=TeamEvent.MEMBER, prompt=prompt)


@pytest.fixture
def leader() -> StubLeader:
    return StubLeader()


@pytest.fixture
def three_members() -> list[StubMember]:
    return [
        StubMember("Researcher", "Use YAML for config.", role="research specialist"),
        StubMember("Writer", "YAML is friendlier to edit.", role="writing specialist"),
        StubMember("Critic", "YAML, but validate it with a schema.", role="review specialist"),
    ]


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_app_config(tmp_path: Path) -> AppConfig:
    models = {
        "claude": ModelConfig("claude", "anthropic", "claude-sonnet-4-20250514", "ANTHROPIC_API_KEY", 60, 4096),
        "openai": ModelConfig("openai", "openai", "gpt-4.1", "OPENAI_API_KEY", 60, 4096),
        "gemini": ModelConfig("gemini", "gemini", "gemini-2.5-pro", "GEMINI_API_KEY", 60, 4096),
    }
    return AppConfig(
        team=TeamConfig(
            name="Test Team",
            leader="claude",
            mode="collaborate",
            description="A test team.",
            instructions=["Be brief."],
            async_mode=True,
        ),
        members=[
            MemberConfig("Analyst", "data analyst", "openai"),
            MemberConfig("Reviewer", "code reviewer", "gemini", instructions="Be strict."),
        ],
        models=models,
        prompts=PromptTemplates(),
        available_providers={"claude", "openai", "gemini"},
    )
