"""Click CLI: loads config, builds providers, members and the team, runs prompts."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from agent_team.healthcheck import leader_failed, model_usage, run_health_checks
from agent_team.members import Member, ModelMember
from agent_team.models import TeamMode
from agent_team.output import print_result
from agent_team.providers.anthropic import AnthropicProvider
from agent_team.providers.base import LeaderModel
from agent_team.providers.gemini import GeminiProvider
from agent_team.providers.openai_provider import OpenAIProvider
from agent_team.session import InMemorySessionStorage, ModelMemoryManager
from agent_team.team import Team

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

PROVIDER_CLASSES: dict[str, type[LeaderModel]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}

_EXIT_WORDS = {"exit", "quit", ":q"}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, LeaderModel]:
    """Build all available providers. Returns dict keyed by model name."""
    providers: dict[str, LeaderModel] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Model '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _build_members(config: AppConfig, providers: dict[str, LeaderModel]) -> list[Member]:
    """One ModelMember per configured member whose model is available."""
    members: list[Member] = []
    for member_cfg in config.members:
        model = providers.get(member_cfg.model)
        if model is None:
            logger.warning("Member '%s' skipped: model '%s' unavailable", member_cfg.name, member_cfg.model)
            continue
        members.append(
            ModelMember(
                name=member_cfg.name,
                role=member_cfg.role,
                model=model,
                instructions=member_cfg.instructions,
            )
        )
    return members


def _build_team(
    config: AppConfig,
    leader: LeaderModel,
    members: list[Member],
    mode: str | None,
    async_mode: bool | None,
    show_members: bool | None,
    debug: bool | None,
    session_id: str,
    user_id: str,
) -> Team:
    """Assemble the team. CLI flags that were given override settings.yaml."""
    team_cfg = config.team
    memory = ModelMemoryManager(leader) if session_id else None
    storage = InMemorySessionStorage() if session_id else None
    return Team(
        name=team_cfg.name,
        leader=leader,
        members=members,
        mode=mode if mode is not None else team_cfg.mode,
        role=team_cfg.role,
        description=team_cfg.description,
        instructions=team_cfg.instructions,
        async_mode=async_mode if async_mode is not None else team_cfg.async_mode,
        show_member_responses=show_members if show_members is not None else team_cfg.show_member_responses,
        debug=debug if debug is not None else team_cfg.debug,
        session_id=session_id,
        user_id=user_id,
        memory=memory,
        storage=storage,
        templates=config.prompts,
        quorum=team_cfg.quorum,
        member_timeout_sec=team_cfg.member_timeout_sec,
        read_chat_history=team_cfg.read_chat_history,
        enable_user_memories=team_cfg.enable_user_memories,
        enable_session_summaries=team_cfg.enable_session_summaries,
        add_history_to_messages=team_cfg.add_history_to_messages,
        num_history_runs=team_cfg.num_history_runs,
    )


def _models_in_use(config: AppConfig, providers: dict[str, LeaderModel]) -> dict[str, LeaderModel]:
    names = {config.team.leader} | {m.model for m in config.members}
    return {n: p for n, p in providers.items() if n in names}


def _check_and_filter_providers(
    config: AppConfig,
    providers: dict[str, LeaderModel],
) -> dict[str, LeaderModel]:
    """Ping the models the team uses and ask what to do on failures.

    Exits if the leader model fails or the user declines to continue.
    """
    console.print("\n[bold]Checking models...[/bold]")
    usage = model_usage(config.team.leader, [(m.name, m.model) for m in config.members])
    results = asyncio.run(run_health_checks(_models_in_use(config, providers), usage))

    failed = [results[name] for name in sorted(results) if not results[name].ok]
    for name in sorted(results):
        health = results[name]
        if health.ok:
            console.print(f"  [green]OK  [/green] {health.describe()}")
        else:
            console.print(f"  [red]FAIL[/red] {health.describe()}")

    if not failed:
        console.print()
        return providers

    if leader_failed(results):
        console.print(f"\n[bold red]Error:[/bold red] Leader model '{config.team.leader}' failed the health check.")
        sys.exit(1)

    dropped = [member for h in failed for member in h.used_by]
    console.print(f"\n[yellow]{len(failed)} model(s) failed.[/yellow] Members affected: {', '.join(dropped)}")
    if not click.confirm("Continue without these members?", default=True):
        sys.exit(0)

    console.print()
    failed_names = {h.name for h in failed}
    return {n: p for n, p in providers.items() if n not in failed_names}


async def _answer(team: Team, prompt: str, stream: bool, show_members: bool) -> None:
    if stream:
        def on_chunk(chunk: str) -> None:
            console.print(chunk, end="", markup=False, highlight=False, soft_wrap=True)

        await team.run_stream(prompt, on_chunk)
        console.print()
        return

    result = await team.run(prompt)
    print_result(result, show_members=show_members)


async def _run_prompts(
    team: Team,
    first_prompt: str | None,
    interactive: bool,
    stream: bool,
    show_members: bool,
) -> None:
    """Answer the given prompt, then keep reading prompts in interactive mode."""
    if first_prompt is not None:
        await _answer(team, first_prompt, stream, show_members)
    while interactive:
        prompt = click.prompt("\nYou", default="", show_default=False).strip()
        if not prompt or prompt.lower() in _EXIT_WORDS:
            break
        await _answer(team, prompt, stream, show_members)


@click.command()
@click.argument("prompt", required=False)
@click.option("--mode", type=click.Choice([m.value for m in TeamMode]), default=None,
              help="Collaboration mode (default: from config)")
@click.option("--async/--sequential", "async_mode", default=None,
              help="Collaborate mode: run members concurrently or in order (default: from config)")
@click.option("--session-id", default="", help="Bind a session so follow-up prompts share history")
@click.option("--user-id", default="", help="User the session belongs to")
@click.option("--interactive", "-i", is_flag=True, help="Keep reading prompts until an empty line or 'exit'")
@click.option("--stream", is_flag=True, help="Print the answer incrementally")
@click.option("--show-members/--hide-members", "show_members", default=None,
              help="Label member answers for the leader and print a member table")
@click.option("--debug/--no-debug", default=None, help="Pass member errors to the leader as evidence")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Path to settings.yaml (default: bundled config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    prompt: str | None,
    mode: str | None,
    async_mode: bool | None,
    session_id: str,
    user_id: str,
    interactive: bool,
    stream: bool,
    show_members: bool | None,
    debug: bool | None,
    verbose: bool,
    config_path: str | None,
    skip_health_check: bool,
) -> None:
    """Agent Team -- ask a team of language models one question.

    \b
    Examples:
      agent-team "Should we use REST or GraphQL?"
      agent-team "Monorepo vs polyrepo?" --mode coordinate
      agent-team "SQL or NoSQL?" --mode collaborate --sequential --show-members
      agent-team --interactive --session-id design-review
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config(Path(config_path)) if config_path else load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if prompt is None and not interactive:
        console.print("[bold red]Error:[/bold red] Provide a PROMPT argument or --interactive.")
        sys.exit(1)

    providers = _build_all_providers(config)
    if config.team.leader not in providers:
        console.print(
            f"[bold red]Error:[/bold red] Leader model '{config.team.leader}' is not available. "
            "Check API keys in .env."
        )
        sys.exit(1)

    if not skip_health_check:
        providers = _check_and_filter_providers(config, providers)

    members = _build_members(config, providers)
    if not members:
        console.print("[yellow]Warning:[/yellow] No members available; the team can only report that.")

    team = _build_team(
        config,
        leader=providers[config.team.leader],
        members=members,
        mode=mode,
        async_mode=async_mode,
        show_members=show_members,
        debug=debug,
        session_id=session_id or ("cli" if interactive else ""),
        user_id=user_id,
    )

    console.print(
        f"\n[bold cyan]{team.name()}[/bold cyan] -- {len(members)} members, {team.mode.value} mode"
        + (" (async)" if team.async_mode and team.mode == TeamMode.COLLABORATE else "")
    )
    console.print(f"Members: {', '.join(m.name() for m in members) or 'none'}\n")

    asyncio.run(
        _run_prompts(
            team,
            first_prompt=prompt,
            interactive=interactive,
            stream=stream,
            show_members=team.show_member_responses,
        )
    )


if __name__ == "__main__":
    main()
