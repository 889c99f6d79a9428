"""Command-line interface for the skillscope disclosure engine."""

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .config import settings
from .engine import DisclosureEngine
from .skills.errors import CorpusLoadError, InvalidArgumentError, UnknownRuleError, UnknownSkillError
from .skills.session import Disclosure

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# CLI app
app = typer.Typer(
    name="skillscope",
    help="skillscope: skill selection and progressive disclosure for coding-assistant corpora",
    add_completion=False,
)
console = Console()

# Exit codes
EXIT_CORPUS_ERROR = 1
EXIT_INVALID_ARGUMENT = 2

CORPUS_OPTION = typer.Option(
    None, "--corpus", "-c", help="Corpus directory (default: SKILLSCOPE_CORPUS_DIR or ./skills)"
)


def _load_engine(corpus: Optional[Path]) -> DisclosureEngine:
    """Load the corpus or exit with the corpus error code."""
    try:
        return DisclosureEngine.from_settings(corpus_dir=corpus)
    except CorpusLoadError as e:
        console.print(f"[red]Failed to load corpus: {e}[/red]")
        for diagnostic in e.diagnostics[:20]:
            console.print(f"  [yellow]• [{diagnostic.code}] {diagnostic.message}[/yellow]")
        raise typer.Exit(EXIT_CORPUS_ERROR)


def _print_disclosure(result: Disclosure, title: str, show_body: bool) -> None:
    """Render one disclosure step."""
    if result.items:
        table = Table(title=title)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Skill", style="cyan")
        table.add_column("Rule", style="green")
        table.add_column("Priority", style="magenta")
        table.add_column("Category", style="white")
        table.add_column("Size", style="yellow", justify="right")
        for n, item in enumerate(result.items, 1):
            table.add_row(str(n), item.skill_id, item.rule_id, item.priority.value, item.category, str(item.size))
        console.print(table)
    else:
        console.print(f"[dim]{title}: no items[/dim]")

    summary = (
        f"state=[bold]{result.state.value}[/bold]  "
        f"used={result.used_budget}  remaining={result.remaining_budget}"
    )
    if result.truncated_to_empty:
        summary += "  [yellow]budget smaller than any remaining rule[/yellow]"
    console.print(summary)

    if show_body:
        for item in result.items:
            console.print(Panel(
                Markdown(item.body or "_(empty)_"),
                title=f"{item.skill_id}/{item.rule_id}",
                border_style="green",
            ))


@app.command()
def config():
    """Show current configuration (for debugging)."""
    console.print(Panel("Current Configuration", style="bold blue"))

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    corpus_dir = settings.resolve_corpus_dir()
    corpus_status = "" if corpus_dir.is_dir() else "  [red](not found)[/red]"
    table.add_row("SKILLSCOPE_CORPUS_DIR", f"{corpus_dir}{corpus_status}")
    table.add_row("SKILLSCOPE_SIZE_UNIT", settings.size_unit)
    table.add_row("SKILLSCOPE_DEFAULT_BUDGET", str(settings.default_budget))
    table.add_row("SKILLSCOPE_EXTRA_STOPWORDS", ", ".join(settings.extra_stopwords) or "-")
    table.add_row("SKILLSCOPE_SESSION_TTL_SECONDS", str(settings.session_ttl_seconds))
    table.add_row("SKILLSCOPE_MAX_SESSIONS", str(settings.max_sessions))
    table.add_row("SKILLSCOPE_API_HOST", settings.api_host)
    table.add_row("SKILLSCOPE_API_PORT", str(settings.api_port))
    table.add_row("SKILLSCOPE_LOG_LEVEL", settings.log_level)

    console.print(table)


@app.command()
def skills(corpus: Optional[Path] = CORPUS_OPTION):
    """List the skills in the corpus."""
    engine = _load_engine(corpus)

    table = Table(title="Skills")
    table.add_column("Skill", style="cyan")
    table.add_column("Enabled", style="green")
    table.add_column("Rules", style="yellow", justify="right")
    table.add_column("Trigger terms", style="white", max_width=60)

    for skill in engine.list_skills():
        enabled = "Yes" if skill.enabled else "[red]No[/red]"
        table.add_row(skill.id, enabled, str(len(skill.rules)), ", ".join(sorted(skill.trigger_terms)))

    console.print(table)


@app.command()
def show(
    skill_id: str = typer.Argument(..., help="Skill id"),
    rule_id: Optional[str] = typer.Argument(None, help="Rule id (prints the rule body)"),
    corpus: Optional[Path] = CORPUS_OPTION,
):
    """Show a skill's rules, or a single rule's body."""
    engine = _load_engine(corpus)

    try:
        if rule_id:
            rule = engine.get_rule(skill_id, rule_id)
            console.print(Panel(
                Markdown(rule.body or "_(empty)_"),
                title=f"{rule.skill_id}/{rule.id} [{rule.priority.value}] {rule.title}",
                border_style="green",
            ))
            return
        skill = engine.get_skill(skill_id)
    except (UnknownSkillError, UnknownRuleError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(EXIT_INVALID_ARGUMENT)

    console.print(Panel(skill.description or "(no description)", title=skill.id, style="bold blue"))

    table = Table(title="Rules")
    table.add_column("Rule", style="green")
    table.add_column("Priority", style="magenta")
    table.add_column("Category", style="white")
    table.add_column("Tags", style="dim", max_width=40)
    table.add_column("Size", style="yellow", justify="right")
    for rule in skill.rules:
        table.add_row(rule.id, rule.priority.value, rule.category, ", ".join(sorted(rule.tags)), str(rule.size_estimate))
    console.print(table)


@app.command()
def validate(
    corpus: Optional[Path] = CORPUS_OPTION,
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero if any diagnostic was recorded"),
):
    """Load the corpus and report data-quality diagnostics."""
    engine = _load_engine(corpus)
    index = engine.index

    console.print(f"[green]Loaded {len(index)} skills, {index.rule_count} rules[/green]")

    if not index.diagnostics:
        console.print("[green]No diagnostics.[/green]")
        return

    table = Table(title="Diagnostics")
    table.add_column("Level", style="magenta")
    table.add_column("Code", style="cyan")
    table.add_column("Skill/Rule", style="green")
    table.add_column("Message", style="white", max_width=70)
    for d in index.diagnostics:
        level = "[red]error[/red]" if d.level == "error" else "[yellow]warning[/yellow]"
        target = f"{d.skill_id}/{d.rule_id}" if d.rule_id else d.skill_id
        table.add_row(level, d.code, target, d.message)
    console.print(table)

    if strict:
        raise typer.Exit(EXIT_CORPUS_ERROR)


@app.command()
def match(
    task: str = typer.Argument(..., help="Task description"),
    corpus: Optional[Path] = CORPUS_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """Show which skills a task activates."""
    engine = _load_engine(corpus)
    matches = engine.match(task)

    if as_json:
        typer.echo(json.dumps({"matches": [m.to_dict() for m in matches]}, indent=2))
        return

    if not matches:
        console.print("[yellow]No applicable skill.[/yellow]")
        return

    table = Table(title="Activated skills")
    table.add_column("Skill", style="cyan")
    table.add_column("Score", style="yellow", justify="right")
    table.add_column("Matched terms", style="green")
    for m in matches:
        table.add_row(m.skill_id, str(m.score), ", ".join(m.matched_terms))
    console.print(table)


@app.command()
def disclose(
    task: str = typer.Argument(..., help="Task description"),
    budget: Optional[int] = typer.Option(None, "--budget", "-b", help="Size budget (default: SKILLSCOPE_DEFAULT_BUDGET)"),
    more: Optional[List[int]] = typer.Option(
        None, "--more", "-m", help="Additional budget for a follow-up 'load more' call (repeatable)"
    ),
    corpus: Optional[Path] = CORPUS_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
    show_body: bool = typer.Option(False, "--show-body", help="Render disclosed rule bodies"),
):
    """Disclose rules for a task, optionally continuing with --more budgets."""
    engine = _load_engine(corpus)
    budget = budget if budget is not None else settings.default_budget

    try:
        steps = [engine.disclose(task, budget)]
        for extra in more or []:
            steps.append(engine.disclose_more(steps[0].session_id, extra))
    except InvalidArgumentError as e:
        console.print(f"[red]Invalid argument: {e}[/red]")
        raise typer.Exit(EXIT_INVALID_ARGUMENT)

    if as_json:
        typer.echo(json.dumps({"steps": [s.to_dict(include_body=show_body) for s in steps]}, indent=2))
        return

    first = steps[0]
    if not first.activated:
        console.print("[yellow]No applicable skill.[/yellow]")
    else:
        activated = ", ".join(f"{m.skill_id} ({m.score})" for m in first.activated)
        console.print(Panel(f"Session {first.session_id}\nActivated: {activated}", style="bold blue"))

    for n, step in enumerate(steps):
        title = "Initial disclosure" if n == 0 else f"Load more #{n}"
        _print_disclosure(step, title, show_body)


@app.command()
def serve(
    host: str = typer.Option(settings.api_host, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.api_port, "--port", "-p", help="Port to bind to"),
    corpus: Optional[Path] = CORPUS_OPTION,
):
    """Start the HTTP API."""
    engine = _load_engine(corpus)

    console.print(Panel(
        f"skillscope API\nServing {len(engine.index)} skills at http://{host}:{port}",
        style="bold cyan"
    ))

    try:
        import uvicorn
        from .api import create_app

        console.print("[dim]Press Ctrl+C to stop[/dim]\n")
        uvicorn.run(create_app(engine), host=host, port=port, log_level=settings.log_level.lower())

    except Exception as e:
        console.print(f"[red]Failed to start server: {e}[/red]")
        logger.exception("Server error")
        raise typer.Exit(1)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
