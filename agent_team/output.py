"""Rich console output for team runs."""

from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from agent_team.models import MemberOutcome, RunResponse

console = Console(legacy_windows=False)


def _preview(text: str, words: int = 30) -> str:
    """Return first N words of a text."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def member_table(outcomes: list[MemberOutcome]) -> Table:
    """One row per member: status, latency and a short preview or the error."""
    table = Table(title="Members", show_lines=False, expand=True)
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Member", style="bold")
    table.add_column("Status", width=6)
    table.add_column("Latency", justify="right", width=8)
    table.add_column("Answer")
    for outcome in outcomes:
        status = "[green]OK[/green]" if outcome.ok else "[red]FAIL[/red]"
        detail = _preview(outcome.content) if outcome.ok else (outcome.error or "")
        table.add_row(
            str(outcome.index + 1),
            outcome.name,
            status,
            f"{outcome.latency_sec:.1f}s",
            detail,
        )
    return table


def run_summary_line(result: RunResponse) -> Text:
    parts = [
        f"Event: {result.event.value}",
        f"Model: {result.model or 'n/a'}",
        f"Duration: {result.duration_sec:.1f}s",
    ]
    if result.verdict is not None:
        parts.append("Conflicts: " + ("yes" if result.verdict.has_conflicts else "no"))
    return Text(" | ".join(parts), style="dim")


def print_result(result: RunResponse, show_members: bool = False) -> None:
    """Print the team's answer to the console using Rich markdown."""
    if show_members and result.member_outcomes:
        console.print(member_table(result.member_outcomes))
    console.print(Rule("[bold green]Team Answer[/bold green]"))
    console.print(run_summary_line(result))
    console.print(Markdown(result.text_content))
