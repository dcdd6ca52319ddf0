"""Execution strategies: how members are selected, run, and combined per mode."""

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from agent_team.conflict import ConflictResolutionError, analyze_conflicts, resolve_conflicts
from agent_team.members import Member
from agent_team.models import (
    MemberOutcome,
    Message,
    ModelResponse,
    Role,
    RunResponse,
    TeamEvent,
    TeamMode,
)
from agent_team.prompts import (
    build_collaboration_request,
    build_collaboration_synthesis_prompt,
    build_coordination_prompt,
    build_routing_prompt,
    build_synthesis_prompt,
    build_synthesis_request,
)

if TYPE_CHECKING:
    from agent_team.team import Team

logger = logging.getLogger(__name__)

NO_MEMBERS_TEXT = "No team members available"


class QuorumNotMetError(RuntimeError):
    """Raised when fewer members succeeded than the team's configured quorum."""

    def __init__(self, succeeded: int, quorum: int) -> None:
        self.succeeded = succeeded
        self.quorum = quorum
        super().__init__(f"Only {succeeded} member(s) responded, quorum is {quorum}")


async def _call_member(
    member: Member,
    index: int,
    prompt: str,
    timeout_sec: float | None,
) -> MemberOutcome:
    """Run one member. Never raises: failures come back on MemberOutcome.error.

    A blank answer counts as a failure.
    """
    start = time.monotonic()
    try:
        if timeout_sec:
            resp = await asyncio.wait_for(member.run(prompt), timeout=timeout_sec)
        else:
            resp = await member.run(prompt)
    except TimeoutError:
        logger.warning("Member %s timed out after %ss", member.name(), timeout_sec)
        return MemberOutcome(
            index=index,
            name=member.name(),
            error=f"timed out after {timeout_sec}s",
            latency_sec=time.monotonic() - start,
        )
    except Exception as exc:
        logger.warning("Member %s failed: %s", member.name(), exc)
        return MemberOutcome(
            index=index,
            name=member.name(),
            error=str(exc) or type(exc).__name__,
            latency_sec=time.monotonic() - start,
        )

    if not resp.text_content or not resp.text_content.strip():
        logger.warning("Member %s returned no content", member.name())
        return MemberOutcome(
            index=index,
            name=member.name(),
            error="returned no content",
            latency_sec=time.monotonic() - start,
        )

    return MemberOutcome(
        index=index,
        name=member.name(),
        content=resp.text_content,
        latency_sec=time.monotonic() - start,
    )


async def dispatch_sequential(team: "Team", prompt: str) -> list[MemberOutcome]:
    """Run members one after another. Result order is member order."""
    outcomes: list[MemberOutcome] = []
    for i, member in enumerate(team.members):
        outcomes.append(await _call_member(member, i, prompt, team.member_timeout_sec))
    return outcomes


async def dispatch_concurrent(team: "Team", prompt: str) -> list[MemberOutcome]:
    """Run all members at once. Result order is completion order.

    Waits for exactly one outcome per member before returning.
    """
    tasks = [
        asyncio.create_task(_call_member(member, i, prompt, team.member_timeout_sec))
        for i, member in enumerate(team.members)
    ]
    outcomes: list[MemberOutcome] = []
    try:
        for next_done in asyncio.as_completed(tasks):
            outcomes.append(await next_done)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
    return outcomes


def _evidence_entry(team: "Team", outcome: MemberOutcome) -> str | None:
    if not outcome.ok:
        if team.debug:
            return f"Member {outcome.index + 1} ({outcome.name}) error: {outcome.error}"
        return None
    if team.show_member_responses:
        return f"**{outcome.name} Response:**\n{outcome.content}"
    return outcome.content


def collect_evidence(team: "Team", outcomes: list[MemberOutcome]) -> list[str]:
    """Turn outcomes into the text entries handed to synthesis, keeping their order."""
    entries = (_evidence_entry(team, o) for o in outcomes)
    return [e for e in entries if e is not None]


def _check_quorum(team: "Team", outcomes: list[MemberOutcome]) -> None:
    succeeded = sum(1 for o in outcomes if o.ok)
    if succeeded < len(outcomes):
        logger.warning("%d/%d members responded", succeeded, len(outcomes))
    if team.quorum and succeeded < team.quorum:
        raise QuorumNotMetError(succeeded, team.quorum)


async def _invoke_leader(team: "Team", system_prompt: str, user_content: str) -> ModelResponse:
    messages = [
        Message(Role.SYSTEM, system_prompt),
        *team.leader_history(),
        Message(Role.USER, user_content),
    ]
    return await team.leader.invoke(messages)


def _require_text(team: "Team", content: str) -> str:
    text = content.strip()
    if not text:
        raise RuntimeError(f"Leader {team.leader.name()} returned empty content")
    return text


def _by_member_order(outcomes: list[MemberOutcome]) -> list[MemberOutcome]:
    return sorted(outcomes, key=lambda o: o.index)


_LEADING_NUMBER = re.compile(r"^\W*(?:member\s*)?#?(\d+)\b", re.IGNORECASE)


def parse_route_selection(reply: str, members: list[Member]) -> int:
    """Find which member the leader picked.

    The member whose name appears earliest in the reply wins (longer names
    win ties, so 'Writer Pro' beats 'Writer'). Failing that, a leading
    member number like '2.' is used. Falls back to index 0.
    """
    best: tuple[int, int, int] | None = None  # (position, -name length, index)
    for i, member in enumerate(members):
        name = member.name().strip()
        if not name:
            continue
        match = re.search(rf"(?<!\w){re.escape(name)}(?!\w)", reply, re.IGNORECASE)
        if match:
            candidate = (match.start(), -len(name), i)
            if best is None or candidate < best:
                best = candidate
    if best is not None:
        return best[2]

    number = _LEADING_NUMBER.match(reply)
    if number:
        n = int(number.group(1))
        if 1 <= n <= len(members):
            return n - 1
    return 0


async def run_route(team: "Team", prompt: str) -> RunResponse:
    """Ask the leader which member fits best and return that member's answer verbatim."""
    start = time.monotonic()
    if not team.members:
        return RunResponse(
            text_content=NO_MEMBERS_TEXT,
            event=TeamEvent.ERROR,
            prompt=prompt,
            created_at=int(time.time()),
        )

    routing_prompt = build_routing_prompt(team.templates, team.members, team.description, team.instructions)
    decision = await _invoke_leader(team, routing_prompt, prompt)

    index = parse_route_selection(decision.content, team.members)
    member = team.members[index]
    logger.info("Routing to member %d (%s)", index + 1, member.name())

    outcome = await _call_member(member, index, prompt, team.member_timeout_sec)
    if not outcome.ok:
        return RunResponse(
            text_content=f"Team member {member.name()} failed to respond",
            event=TeamEvent.ERROR,
            prompt=prompt,
            model=decision.model,
            member_outcomes=[outcome],
            plan=decision.content,
            created_at=int(time.time()),
            duration_sec=time.monotonic() - start,
        )

    return RunResponse(
        text_content=outcome.content,
        event=TeamEvent.ROUTE,
        prompt=prompt,
        model=decision.model,
        messages=[Message(Role.ASSISTANT, outcome.content)],
        member_outcomes=[outcome],
        evidence=[outcome.content],
        plan=decision.content,
        created_at=int(time.time()),
        duration_sec=time.monotonic() - start,
    )


async def run_coordinate(team: "Team", prompt: str) -> RunResponse:
    """Plan with the leader, run every member, then synthesize their answers."""
    start = time.monotonic()
    plan_prompt = build_coordination_prompt(team.templates, team.members, team.description, team.instructions)
    plan = await _invoke_leader(team, plan_prompt, prompt)
    logger.debug("Coordination plan: %s", plan.content)

    outcomes = await dispatch_sequential(team, prompt)
    _check_quorum(team, outcomes)
    evidence = collect_evidence(team, outcomes)

    synthesis_prompt = build_synthesis_prompt(team.templates, prompt, team.description, team.instructions)
    final = await _invoke_leader(team, synthesis_prompt, build_synthesis_request(prompt, evidence))
    text = _require_text(team, final.content)

    return RunResponse(
        text_content=text,
        event=TeamEvent.COORDINATE,
        prompt=prompt,
        model=final.model,
        messages=[Message(final.role, text)],
        member_outcomes=outcomes,
        evidence=evidence,
        plan=plan.content,
        created_at=int(time.time()),
        duration_sec=time.monotonic() - start,
    )


async def run_collaborate(team: "Team", prompt: str) -> RunResponse:
    """Give every member the same prompt and reconcile their answers.

    With async_mode the members run concurrently and synthesis sees their
    answers in completion order; otherwise in member order.
    """
    start = time.monotonic()
    if team.async_mode:
        outcomes = await dispatch_concurrent(team, prompt)
        event = TeamEvent.COLLABORATE_ASYNC
    else:
        outcomes = await dispatch_sequential(team, prompt)
        event = TeamEvent.COLLABORATE

    _check_quorum(team, outcomes)
    evidence = collect_evidence(team, outcomes)

    verdict = await analyze_conflicts(team.leader, evidence)

    text: str | None = None
    if verdict.has_conflicts:
        try:
            text = await resolve_conflicts(team.leader, team.templates, prompt, evidence, verdict.analysis)
        except ConflictResolutionError as exc:
            logger.warning("Conflict resolution failed, proceeding with standard synthesis: %s", exc)

    if text is None:
        synthesis_prompt = build_collaboration_synthesis_prompt(
            team.templates, prompt, team.description, team.instructions
        )
        final = await _invoke_leader(team, synthesis_prompt, build_collaboration_request(prompt, evidence))
        text = _require_text(team, final.content)

    return RunResponse(
        text_content=text,
        event=event,
        prompt=prompt,
        model=team.leader.model_string(),
        messages=[Message(Role.ASSISTANT, text)],
        member_outcomes=_by_member_order(outcomes),
        evidence=evidence,
        verdict=verdict,
        created_at=int(time.time()),
        duration_sec=time.monotonic() - start,
    )


Strategy = Callable[["Team", str], Awaitable[RunResponse]]

STRATEGIES: dict[TeamMode, Strategy] = {
    TeamMode.ROUTE: run_route,
    TeamMode.COORDINATE: run_coordinate,
    TeamMode.COLLABORATE: run_collaborate,
}
