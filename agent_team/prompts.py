"""Instruction text for every leader-model phase.

All builders are pure: the same team metadata always yields the same text.
Leader-phase templates live on PromptTemplates so settings.yaml can override
them; the conflict analysis text is fixed because the verdict depends on the
sentinel phrases it asks for.
"""

from dataclasses import dataclass

from agent_team.members import Member

RESPONSE_SEPARATOR = "\n\n---\n\n"

CONFLICTS_DETECTED = "CONFLICTS DETECTED"
NO_CONFLICTS = "NO CONFLICTS"

CONFLICT_ANALYST_SYSTEM = (
    "You are a conflict detection specialist. "
    "Analyze team responses for contradictions and conflicts."
)

CONFLICT_RESOLVER_SYSTEM = (
    "You are an expert at resolving conflicts and synthesizing diverse "
    "viewpoints into coherent solutions."
)

_CONFLICT_ANALYSIS = """Analyze the following responses from team members and identify any conflicts or contradictions.

Responses:
{responses}

Identify:
1. Direct contradictions (members saying opposite things)
2. Inconsistent recommendations
3. Conflicting data or facts
4. Different approaches that cannot coexist

If conflicts exist, respond with "CONFLICTS DETECTED" followed by a detailed analysis.
If no significant conflicts exist, respond with "NO CONFLICTS"."""

_ROUTING = """You are a team leader responsible for routing user requests to the most appropriate team member.

Team Members:
{members}
Your task is to analyze the user's request and determine which team member is best suited to handle it.

Instructions:
- Read the user's request carefully
- Consider each team member's role and expertise
- Route the request to the member who can best address the user's needs
- If multiple members could help, choose the most specialized one
- Respond with the member's name and a brief explanation of why they were chosen

Team Description: {description}
Team Instructions: {instructions}"""

_COORDINATION = """You are a team leader responsible for coordinating team members to complete complex tasks.

Team Members:
{members}
Your task is to create a coordination plan that assigns specific sub-tasks to appropriate team members.

Instructions:
- Break down the user's request into sub-tasks if needed
- Assign tasks to team members based on their expertise
- Consider dependencies between tasks
- Plan the sequence of execution
- Ensure all aspects of the request are covered

Team Description: {description}
Team Instructions: {instructions}"""

_SYNTHESIS = """You are a team leader responsible for synthesizing team member responses into a cohesive final answer.

Original User Request: {prompt}

Your task is to:
- Review all team member responses
- Identify key insights and information
- Resolve any conflicts or contradictions
- Create a comprehensive, well-structured response
- Ensure the final answer directly addresses the user's request

Team Description: {description}
Team Instructions: {instructions}

Guidelines:
- Combine the best elements from each response
- Maintain consistency in tone and style
- Include all relevant information
- Present the information in a logical flow
- Cite team members when appropriate"""

_COLLABORATION_SYNTHESIS = """You are a team leader responsible for synthesizing collaborative responses from team members who all worked on the same task.

Original User Request: {prompt}

Your task is to:
- Compare and contrast the different approaches taken by team members
- Identify areas of agreement and disagreement
- Highlight the most valuable insights from each response
- Create a balanced, comprehensive final answer
- Leverage the diversity of perspectives to provide a richer response

Team Description: {description}
Team Instructions: {instructions}

Guidelines:
- Show how different perspectives complement each other
- Address any contradictions with balanced analysis
- Highlight unique contributions from each member
- Create a response that's better than any individual response
- Maintain objectivity while leveraging all viewpoints"""

_CONFLICT_RESOLUTION = """You are a conflict resolution specialist for a team of AI agents.

Original Request: {prompt}

Team Member Responses:
{responses}

Conflict Analysis:
{analysis}

Your task is to resolve these conflicts and provide a unified, coherent response that:
1. Acknowledges the different perspectives
2. Identifies the most accurate or appropriate information
3. Reconciles contradictions with logical reasoning
4. Provides a balanced final answer
5. Explains the resolution approach when necessary

Provide a clear, unified response that addresses the original request while resolving all conflicts."""


@dataclass
class PromptTemplates:
    routing: str = _ROUTING
    coordination: str = _COORDINATION
    synthesis: str = _SYNTHESIS
    collaboration_synthesis: str = _COLLABORATION_SYNTHESIS
    conflict_resolution: str = _CONFLICT_RESOLUTION


def format_members(members: list[Member]) -> str:
    """One numbered line per member: '1. Name - role'."""
    return "".join(f"{i}. {m.name()} - {m.role()}\n" for i, m in enumerate(members, start=1))


def join_responses(responses: list[str]) -> str:
    return RESPONSE_SEPARATOR.join(responses)


def build_routing_prompt(
    templates: PromptTemplates,
    members: list[Member],
    description: str,
    instructions: list[str],
) -> str:
    return templates.routing.format(
        members=format_members(members),
        description=description,
        instructions="\n".join(instructions),
    )


def build_coordination_prompt(
    templates: PromptTemplates,
    members: list[Member],
    description: str,
    instructions: list[str],
) -> str:
    return templates.coordination.format(
        members=format_members(members),
        description=description,
        instructions="\n".join(instructions),
    )


def build_synthesis_prompt(
    templates: PromptTemplates,
    prompt: str,
    description: str,
    instructions: list[str],
) -> str:
    return templates.synthesis.format(
        prompt=prompt,
        description=description,
        instructions="\n".join(instructions),
    )


def build_collaboration_synthesis_prompt(
    templates: PromptTemplates,
    prompt: str,
    description: str,
    instructions: list[str],
) -> str:
    return templates.collaboration_synthesis.format(
        prompt=prompt,
        description=description,
        instructions="\n".join(instructions),
    )


def build_synthesis_request(prompt: str, responses: list[str]) -> str:
    """User turn for Coordinate synthesis."""
    return (
        f"Original request: {prompt}\n\n"
        "Please synthesize the following responses into a cohesive answer:\n\n"
        f"{join_responses(responses)}"
    )


def build_collaboration_request(prompt: str, responses: list[str]) -> str:
    """User turn for Collaborate synthesis."""
    return (
        f"Original request: {prompt}\n\n"
        "Please synthesize the following collaborative responses:\n\n"
        f"{join_responses(responses)}"
    )


def build_conflict_analysis_prompt(responses: list[str]) -> str:
    return _CONFLICT_ANALYSIS.format(responses=join_responses(responses))


def build_conflict_resolution_prompt(
    templates: PromptTemplates,
    prompt: str,
    responses: list[str],
    analysis: str,
) -> str:
    return templates.conflict_resolution.format(
        prompt=prompt,
        responses=join_responses(responses),
        analysis=analysis,
    )
