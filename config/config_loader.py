"""Load settings.yaml into typed dataclasses. Checks API keys at startup."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from agent_team.prompts import PromptTemplates

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class MemberConfig:
    name: str
    role: str
    model: str             # key into AppConfig.models
    instructions: str = ""


@dataclass
class TeamConfig:
    name: str
    leader: str            # key into AppConfig.models
    mode: str = "coordinate"
    role: str = ""
    description: str = ""
    instructions: list[str] = field(default_factory=list)
    async_mode: bool = False
    show_member_responses: bool = False
    debug: bool = False
    quorum: int = 0
    member_timeout_sec: float | None = None
    read_chat_history: bool = True
    enable_user_memories: bool = False
    enable_session_summaries: bool = False
    add_history_to_messages: bool = False
    num_history_runs: int = 3


@dataclass
class AppConfig:
    team: TeamConfig
    members: list[MemberConfig]
    models: dict[str, ModelConfig]
    prompts: PromptTemplates = field(default_factory=PromptTemplates)
    available_providers: set[str] = field(default_factory=set)


def _load_team(raw: dict) -> TeamConfig:
    memory_raw = raw.get("memory") or {}
    timeout = raw.get("member_timeout_sec")
    return TeamConfig(
        name=str(raw["name"]),
        leader=str(raw["leader"]),
        mode=str(raw.get("mode", "coordinate")),
        role=str(raw.get("role", "")),
        description=str(raw.get("description", "")),
        instructions=[str(i) for i in raw.get("instructions") or []],
        async_mode=bool(raw.get("async", False)),
        show_member_responses=bool(raw.get("show_member_responses", False)),
        debug=bool(raw.get("debug", False)),
        quorum=int(raw.get("quorum", 0)),
        member_timeout_sec=float(timeout) if timeout is not None else None,
        read_chat_history=bool(memory_raw.get("read_chat_history", True)),
        enable_user_memories=bool(memory_raw.get("enable_user_memories", False)),
        enable_session_summaries=bool(memory_raw.get("enable_session_summaries", False)),
        add_history_to_messages=bool(memory_raw.get("add_history_to_messages", False)),
        num_history_runs=int(memory_raw.get("num_history_runs", 3)),
    )


def _load_prompts(raw: dict | None) -> PromptTemplates:
    """Overrides from the optional prompts section; unknown keys are ignored."""
    if not raw:
        return PromptTemplates()
    known = {f.name for f in fields(PromptTemplates)}
    overrides = {k: str(v) for k, v in raw.items() if k in known}
    for key in raw:
        if key not in known:
            logger.warning("Unknown prompt template '%s' in settings, ignoring", key)
    return PromptTemplates(**overrides)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if the
    leader or a member names a model that is not defined.
    Logs missing API keys but does not raise; callers check
    available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    team = _load_team(raw["team"])
    if team.leader not in models:
        raise ValueError(f"Leader model '{team.leader}' is not defined under models")

    members: list[MemberConfig] = []
    for member_raw in raw.get("members") or []:
        member = MemberConfig(
            name=str(member_raw["name"]),
            role=str(member_raw.get("role", "")),
            model=str(member_raw["model"]),
            instructions=str(member_raw.get("instructions", "")),
        )
        if member.model not in models:
            raise ValueError(f"Member '{member.name}' uses undefined model '{member.model}'")
        members.append(member)

    return AppConfig(
        team=team,
        members=members,
        models=models,
        prompts=_load_prompts(raw.get("prompts")),
        available_providers=available_providers,
    )
