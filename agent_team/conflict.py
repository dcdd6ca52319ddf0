"""Conflict detection and resolution over a set of member answers."""

import logging

from agent_team.models import ConflictVerdict, Message, Role
from agent_team.prompts import (
    CONFLICT_ANALYST_SYSTEM,
    CONFLICT_RESOLVER_SYSTEM,
    CONFLICTS_DETECTED,
    PromptTemplates,
    build_conflict_analysis_prompt,
    build_conflict_resolution_prompt,
)
from agent_team.providers.base import LeaderModel

logger = logging.getLogger(__name__)


class ConflictResolutionError(Exception):
    """Raised when the leader cannot produce a reconciled answer."""


def has_conflict_sentinel(analysis: str) -> bool:
    """Case-insensitive check for the CONFLICTS DETECTED sentinel."""
    return CONFLICTS_DETECTED in analysis.upper()


async def analyze_conflicts(leader: LeaderModel, responses: list[str]) -> ConflictVerdict:
    """Classify member answers as consistent or contradictory.

    Fewer than two answers never conflict and cost no model call. Otherwise
    the leader decides, even for identical answers. A failed leader call is
    treated as no conflict.
    """
    if len(responses) < 2:
        return ConflictVerdict(has_conflicts=False)

    messages = [
        Message(Role.SYSTEM, CONFLICT_ANALYST_SYSTEM),
        Message(Role.USER, build_conflict_analysis_prompt(responses)),
    ]
    try:
        resp = await leader.invoke(messages)
    except Exception as exc:
        logger.warning("Conflict detection failed, assuming no conflicts: %s", exc)
        return ConflictVerdict(has_conflicts=False)

    analysis = resp.content.strip()
    verdict = ConflictVerdict(has_conflicts=has_conflict_sentinel(analysis), analysis=analysis)
    logger.info("Conflict analysis over %d responses: conflicts=%s", len(responses), verdict.has_conflicts)
    return verdict


async def resolve_conflicts(
    leader: LeaderModel,
    templates: PromptTemplates,
    prompt: str,
    responses: list[str],
    analysis: str,
) -> str:
    """Ask the leader for one answer that reconciles contradictory responses.

    Raises:
        ConflictResolutionError: If the leader call fails or returns nothing.
    """
    messages = [
        Message(Role.SYSTEM, CONFLICT_RESOLVER_SYSTEM),
        Message(Role.USER, build_conflict_resolution_prompt(templates, prompt, responses, analysis)),
    ]
    try:
        resp = await leader.invoke(messages)
    except Exception as exc:
        raise ConflictResolutionError(f"conflict resolution failed: {exc}") from exc

    resolved = resp.content.strip()
    if not resolved:
        raise ConflictResolutionError(f"Leader {leader.name()} returned an empty resolution")
    return resolved
