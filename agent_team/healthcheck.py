"""Startup connectivity checks for the leader and member models."""

import asyncio
import logging
import time
from dataclasses import dataclass

from agent_team.models import Message, Role
from agent_team.providers.base import LeaderModel

logger = logging.getLogger(__name__)

LEADER_USER = "leader"

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


@dataclass
class ModelHealth:
    """Result of pinging one configured model."""

    name: str
    ok: bool
    error: str = ""
    latency_sec: float = 0.0
    used_by: tuple[str, ...] = ()

    def describe(self) -> str:
        if self.ok:
            return f"{self.name} ({self.latency_sec:.1f}s)"
        first_line = self.error.splitlines()[0][:120] if self.error else "unknown error"
        text = f"{self.name}: {first_line}"
        if self.used_by:
            text += f" (used by {', '.join(self.used_by)})"
        return text


def model_usage(leader: str, members: list[tuple[str, str]]) -> dict[str, tuple[str, ...]]:
    """Map each model name to the team seats that call it.

    members holds (member name, model name) pairs. The leader seat is
    listed first.
    """
    usage: dict[str, list[str]] = {leader: [LEADER_USER]}
    for member_name, model_name in members:
        usage.setdefault(model_name, []).append(member_name)
    return {name: tuple(users) for name, users in usage.items()}


async def _ping(name: str, model: LeaderModel, timeout_sec: float, used_by: tuple[str, ...]) -> ModelHealth:
    start = time.monotonic()
    try:
        await asyncio.wait_for(model.invoke([Message(Role.USER, _PING_PROMPT)]), timeout=timeout_sec)
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", name, exc)
        return ModelHealth(
            name=name,
            ok=False,
            error=str(exc) or type(exc).__name__,
            latency_sec=time.monotonic() - start,
            used_by=used_by,
        )
    return ModelHealth(name=name, ok=True, latency_sec=time.monotonic() - start, used_by=used_by)


async def run_health_checks(
    models: dict[str, LeaderModel],
    usage: dict[str, tuple[str, ...]] | None = None,
    timeout_sec: float | None = None,
) -> dict[str, ModelHealth]:
    """Ping all models in parallel, keyed by the names they were given under.

    usage, when given, is attached to each result so a failure can name
    the team seats it takes down.
    """
    usage = usage or {}
    timeout = timeout_sec or _TIMEOUT_SEC
    results = await asyncio.gather(
        *(_ping(name, model, timeout, usage.get(name, ())) for name, model in models.items())
    )
    return {health.name: health for health in results}


def leader_failed(results: dict[str, ModelHealth]) -> bool:
    return any(not h.ok and LEADER_USER in h.used_by for h in results.values())
