"""Tests for agent_team/strategies.py through the Team that owns them."""

import asyncio
import logging

import pytest

from agent_team.models import TeamEvent
from agent_team.strategies import (
    NO_MEMBERS_TEXT,
    QuorumNotMetError,
    collect_evidence,
    dispatch_concurrent,
    dispatch_sequential,
    parse_route_selection,
)
from agent_team.team import Team
from agent_team.providers.base import ProviderError
from tests.conftest import StubLeader, StubMember


def _team(leader, members, **kwargs) -> Team:
    return Team("Test Team", leader, members, description="A test team.", **kwargs)


# --- Route selection parsing ---

def test_parse_route_selection_by_name(three_members):
    assert parse_route_selection("Writer is best suited for this.", three_members) == 1


def test_parse_route_selection_is_case_insensitive(three_members):
    assert parse_route_selection("route to the CRITIC", three_members) == 2


def test_parse_route_selection_earliest_mention_wins(three_members):
    reply = "Critic, because unlike the Researcher they review designs."
    assert parse_route_selection(reply, three_members) == 2


def test_parse_route_selection_prefers_longer_name_at_same_position():
    members = [StubMember("Writer"), StubMember("Writer Pro")]
    assert parse_route_selection("Writer Pro should take it", members) == 1
    assert parse_route_selection("Writer should take it", members) == 0


def test_parse_route_selection_requires_whole_word():
    members = [StubMember("Ann"), StubMember("Bob")]
    assert parse_route_selection("Annotation work, so Bob.", members) == 1


def test_parse_route_selection_by_number(three_members):
    assert parse_route_selection("3. because reviews matter", three_members) == 2
    assert parse_route_selection("Member #2", three_members) == 1


def test_parse_route_selection_falls_back_to_first(three_members):
    assert parse_route_selection("I am not sure.", three_members) == 0
    assert parse_route_selection("7. out of range", three_members) == 0
    assert parse_route_selection("", three_members) == 0


# --- Route ---

async def test_route_returns_selected_member_text_verbatim(three_members):
    leader = StubLeader({"routing": "Writer - they handle prose."})
    result = await _team(leader, three_members, mode="route").run("Draft a README intro")

    assert result.text_content == "YAML is friendlier to edit."
    assert result.event == TeamEvent.ROUTE
    assert result.model == "stub-model-1"
    assert three_members[1].prompts == ["Draft a README intro"]
    assert three_members[0].prompts == []
    assert leader.phases == ["routing"]


async def test_route_defaults_to_first_member(leader, three_members):
    result = await _team(leader, three_members, mode="route").run("anything")
    assert result.text_content == "Use YAML for config."
    assert result.event == "TeamRouteResponse"


async def test_route_with_no_members_returns_placeholder(leader):
    result = await _team(leader, [], mode="route").run("anything")
    assert result.text_content == NO_MEMBERS_TEXT
    assert result.event == TeamEvent.ERROR
    assert leader.calls == []


async def test_route_member_failure_returns_placeholder(leader):
    members = [StubMember("Broken", fail=True), StubMember("Fine")]
    result = await _team(leader, members, mode="route").run("anything")
    assert result.event == TeamEvent.ERROR
    assert result.text_content == "Team member Broken failed to respond"
    assert result.member_outcomes[0].error


@pytest.mark.parametrize("blank", ["", "   \n\t"])
async def test_route_blank_member_answer_is_a_failure(leader, blank):
    members = [StubMember("A", blank), StubMember("B")]
    result = await _team(leader, members, mode="route").run("anything")

    assert result.event == TeamEvent.ERROR
    assert result.text_content == "Team member A failed to respond"
    assert result.member_outcomes[0].error == "returned no content"
    assert result.messages == []


async def test_route_blank_member_answer_is_not_saved(leader):
    team = _team(leader, [StubMember("A", "")], mode="route")
    await team.run("anything")
    assert team.messages == []


async def test_route_leader_failure_propagates(three_members):
    leader = StubLeader(fail_phases=("routing",))
    with pytest.raises(ProviderError):
        await _team(leader, three_members, mode="route").run("anything")


# --- Coordinate ---

async def test_coordinate_plans_runs_all_then_synthesizes(leader, three_members):
    result = await _team(leader, three_members, mode="coordinate").run("Pick a config format")

    assert leader.phases == ["planning", "synthesis"]
    assert all(m.prompts == ["Pick a config format"] for m in three_members)
    assert result.event == TeamEvent.COORDINATE
    assert result.plan == "PLAN: everyone answers"
    assert result.text_content.startswith("SYNTHESIS:")
    assert "Use YAML for config.\n\n---\n\nYAML is friendlier to edit." in result.text_content


async def test_coordinate_synthesis_changes_with_member_output(leader):
    first = await _team(leader, [StubMember("A", "Use YAML.")]).run("Q")
    second = await _team(leader, [StubMember("A", "Use TOML.")]).run("Q")
    assert first.text_content != second.text_content


async def test_coordinate_skips_failed_member(leader):
    members = [StubMember("Good", "Good answer"), StubMember("Bad", fail=True)]
    result = await _team(leader, members).run("Q")

    assert result.evidence == ["Good answer"]
    assert result.text_content
    assert [o.ok for o in result.member_outcomes] == [True, False]


async def test_coordinate_drops_blank_member_answers(leader):
    members = [StubMember("Good", "Good answer"), StubMember("Blank", "  ")]
    result = await _team(leader, members).run("Q")

    assert result.evidence == ["Good answer"]
    assert [o.ok for o in result.member_outcomes] == [True, False]
    assert result.member_outcomes[1].error == "returned no content"


async def test_collaborate_blank_answers_do_not_meet_quorum(leader):
    members = [StubMember("A"), StubMember("B", "")]
    with pytest.raises(QuorumNotMetError):
        await _team(leader, members, mode="collaborate", quorum=2).run("Q")


async def test_coordinate_debug_records_member_errors(leader):
    members = [StubMember("Good", "Good answer"), StubMember("Bad", fail=True)]
    result = await _team(leader, members, debug=True).run("Q")

    assert result.evidence[0] == "Good answer"
    assert result.evidence[1].startswith("Member 2 (Bad) error:")
    assert "backend unavailable" in result.evidence[1]


async def test_coordinate_labels_member_responses(leader, three_members):
    result = await _team(leader, three_members, show_member_responses=True).run("Q")
    assert result.evidence[0] == "**Researcher Response:**\nUse YAML for config."


async def test_coordinate_all_members_fail_still_synthesizes(leader):
    members = [StubMember("A", fail=True), StubMember("B", fail=True)]
    result = await _team(leader, members).run("Q")

    assert result.evidence == []
    assert leader.phases == ["planning", "synthesis"]
    assert result.text_content.startswith("SYNTHESIS:")


async def test_coordinate_synthesis_failure_propagates(three_members):
    leader = StubLeader(fail_phases=("synthesis",))
    with pytest.raises(ProviderError):
        await _team(leader, three_members).run("Q")


async def test_empty_synthesis_is_an_error(three_members):
    leader = StubLeader({"synthesis": "   "})
    with pytest.raises(RuntimeError, match="empty content"):
        await _team(leader, three_members).run("Q")


async def test_quorum_not_met_raises(leader):
    members = [StubMember("A"), StubMember("B", fail=True), StubMember("C", fail=True)]
    with pytest.raises(QuorumNotMetError, match="Only 1 member"):
        await _team(leader, members, quorum=2).run("Q")
    assert "synthesis" not in leader.phases


async def test_quorum_met_runs_normally(leader):
    members = [StubMember("A"), StubMember("B"), StubMember("C", fail=True)]
    result = await _team(leader, members, quorum=2, mode="collaborate").run("Q")
    assert result.event == TeamEvent.COLLABORATE


async def test_member_timeout_counts_as_failure(leader):
    members = [StubMember("Fast", "quick"), StubMember("Slow", "late", delay=1.0)]
    result = await _team(leader, members, member_timeout_sec=0.05).run("Q")

    assert result.evidence == ["quick"]
    slow = result.member_outcomes[1]
    assert not slow.ok
    assert "timed out" in slow.error


# --- Collaborate ---

async def test_collaborate_sequential_event_and_order(leader, three_members):
    result = await _team(leader, three_members, mode="collaborate").run("Q")

    assert result.event == TeamEvent.COLLABORATE
    assert result.evidence == [
        "Use YAML for config.",
        "YAML is friendlier to edit.",
        "YAML, but validate it with a schema.",
    ]
    assert leader.phases == ["analysis", "collaboration_synthesis"]
    assert result.verdict is not None and result.verdict.has_conflicts is False


async def test_collaborate_async_event(leader, three_members):
    result = await _team(leader, three_members, mode="collaborate", async_mode=True).run("Q")
    assert result.event == TeamEvent.COLLABORATE_ASYNC
    assert sorted(result.evidence) == sorted(m._reply for m in three_members)


async def test_dispatch_order_differs_by_mode(leader):
    """Staggered latencies: sequential keeps member order, async keeps finish order."""
    def members():
        return [StubMember("Slow", "slow", delay=0.12), StubMember("Fast", "fast"), StubMember("Mid", "mid", delay=0.06)]

    seq = await _team(leader, members(), mode="collaborate").run("Q")
    conc = await _team(leader, members(), mode="collaborate", async_mode=True).run("Q")

    assert seq.evidence == ["slow", "fast", "mid"]
    assert conc.evidence == ["fast", "mid", "slow"]
    # Outcomes are always reported in member order
    assert [o.name for o in conc.member_outcomes] == ["Slow", "Fast", "Mid"]
    assert "slow\n\n---\n\nfast" in seq.text_content
    assert "fast\n\n---\n\nmid" in conc.text_content


async def test_concurrent_dispatch_runs_members_in_parallel(leader):
    members = [StubMember(f"M{i}", delay=0.2) for i in range(5)]
    team = _team(leader, members, mode="collaborate", async_mode=True)

    start = asyncio.get_running_loop().time()
    outcomes = await dispatch_concurrent(team, "Q")
    elapsed = asyncio.get_running_loop().time() - start

    assert len(outcomes) == 5
    assert elapsed < 0.8


@pytest.mark.parametrize("count", [0, 1, 5, 50])
@pytest.mark.parametrize("async_mode", [False, True])
async def test_collaborate_member_counts(leader, count, async_mode):
    members = [StubMember(f"M{i}", f"answer {i}", delay=(i % 7) * 0.002) for i in range(count)]
    result = await asyncio.wait_for(
        _team(leader, members, mode="collaborate", async_mode=async_mode).run("Q"),
        timeout=5,
    )

    expected = TeamEvent.COLLABORATE_ASYNC if async_mode else TeamEvent.COLLABORATE
    assert result.event == expected
    assert result.text_content
    assert len(result.member_outcomes) == count
    assert sorted(result.evidence) == sorted(f"answer {i}" for i in range(count))


async def test_concurrent_gather_has_no_drops_or_duplicates(leader):
    members = [StubMember(f"M{i}", f"answer {i}", delay=(10 - i) * 0.01) for i in range(10)]
    team = _team(leader, members, mode="collaborate", async_mode=True)
    outcomes = await dispatch_concurrent(team, "Q")

    assert sorted(o.index for o in outcomes) == list(range(10))
    assert [o.name for o in outcomes] == [f"M{i}" for i in reversed(range(10))]


async def test_sequential_dispatch_keeps_member_order(leader, three_members):
    outcomes = await dispatch_sequential(_team(leader, three_members), "Q")
    assert [o.index for o in outcomes] == [0, 1, 2]


async def test_collect_evidence_filters_failures(leader):
    members = [StubMember("A", "a"), StubMember("B", fail=True)]
    team = _team(leader, members)
    outcomes = await dispatch_sequential(team, "Q")
    assert collect_evidence(team, outcomes) == ["a"]


async def test_collaborate_conflict_invokes_resolver_once():
    leader = StubLeader({"analysis": "CONFLICTS DETECTED: YAML vs JSON", "resolution": "Use YAML, export JSON."})
    members = [StubMember("A", "Use YAML."), StubMember("B", "Use JSON.")]
    result = await _team(leader, members, mode="collaborate").run("Q")

    assert leader.phases.count("resolution") == 1
    assert "collaboration_synthesis" not in leader.phases
    assert result.text_content == "Use YAML, export JSON."
    assert result.verdict.has_conflicts is True


async def test_collaborate_identical_outputs_still_analyzed(leader):
    members = [StubMember("A", "Same."), StubMember("B", "Same.")]
    result = await _team(leader, members, mode="collaborate").run("Q")

    assert result.verdict.has_conflicts is False
    assert leader.phases == ["analysis", "collaboration_synthesis"]


async def test_collaborate_resolver_failure_falls_back_to_synthesis(caplog):
    leader = StubLeader({"analysis": "CONFLICTS DETECTED"}, fail_phases=("resolution",))
    members = [StubMember("A", "Use YAML."), StubMember("B", "Use JSON.")]

    with caplog.at_level(logging.WARNING):
        result = await _team(leader, members, mode="collaborate").run("Q")

    assert leader.phases == ["analysis", "resolution", "collaboration_synthesis"]
    assert result.text_content.startswith("SYNTHESIS:")
    assert any("proceeding with standard synthesis" in m for m in caplog.messages)


async def test_collaborate_async_also_checks_conflicts():
    leader = StubLeader({"analysis": "CONFLICTS DETECTED", "resolution": "merged"})
    members = [StubMember("A", "Use YAML."), StubMember("B", "Use JSON.")]
    result = await _team(leader, members, mode="collaborate", async_mode=True).run("Q")

    assert result.text_content == "merged"
    assert result.event == TeamEvent.COLLABORATE_ASYNC


async def test_collaborate_total_failure_synthesizes_empty_evidence(leader):
    members = [StubMember("A", fail=True), StubMember("B", fail=True)]
    result = await _team(leader, members, mode="collaborate", async_mode=True).run("Q")

    assert result.evidence == []
    assert leader.phases == ["collaboration_synthesis"]
    assert result.text_content


async def test_empty_prompt_still_answers(leader, three_members):
    for mode in ("route", "coordinate", "collaborate"):
        result = await _team(leader, three_members, mode=mode).run("")
        assert result.text_content
