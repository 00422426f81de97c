"""Command line interface for git-pivotal."""

from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from git_pivotal.config import load_trunk
from git_pivotal.errors import PivotalError
from git_pivotal.git import GitRepo
from git_pivotal.logger import setup_logging
from git_pivotal.models import StartRequest
from git_pivotal.selector import UserCancelled
from git_pivotal.workflow import WorkflowEngine, criteria_from_options


class UsageOnUnknownCommand(TyperGroup):
    """Show usage instead of failing when the first argument is not a command or a known option."""

    def known_options(self, ctx: typer.Context) -> set[str]:
        """Every option string the top-level command accepts, ``-h`` and ``--help`` included."""
        return {opt for param in self.get_params(ctx) for opt in (*param.opts, *param.secondary_opts)}

    def show_usage(self, ctx: typer.Context) -> None:
        """Print the help text and exit successfully."""
        typer.echo(ctx.get_help())
        ctx.exit(0)

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        """Parse top-level options, treating an unrecognised leading option as a request for usage."""
        if args and args[0].startswith("-") and args[0].split("=", 1)[0] not in self.known_options(ctx):
            self.show_usage(ctx)
        return super().parse_args(ctx, args)

    def resolve_command(self, ctx: typer.Context, args: list[str]) -> tuple[Optional[str], Any, list[str]]:
        """Find the subcommand named by ``args[0]``, or print usage when there is none."""
        if args and args[0] not in self.list_commands(ctx):
            self.show_usage(ctx)
        return super().resolve_command(ctx, args)


app = typer.Typer(
    cls=UsageOnUnknownCommand,
    help="Pivotal Tracker integration: start stories as branches, bump them, clean them up.",
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
)
console = Console()
err_console = Console(stderr=True)


def fail(err: PivotalError) -> typer.Exit:
    """Print an error and return the exit to raise."""
    err_console.print(f"[red bold]Error:[/red bold] {escape(str(err))}", highlight=False)
    return typer.Exit(code=1)


def prompt(question: str) -> str:
    """Read one line from the terminal; end of input reads as an empty answer."""
    try:
        return console.input(question)
    except EOFError:
        return ""


def get_engine(path: Path) -> WorkflowEngine:
    """Get a workflow engine for the repository at ``path``."""
    try:
        repo = GitRepo(path)
    except PivotalError as err:
        raise fail(err) from err
    return WorkflowEngine(repo, console, prompt)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log git commands and API requests"),
) -> None:
    """Set up logging, and print usage when no command is given."""
    setup_logging("DEBUG" if verbose else "WARNING")
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command()
def start(
    story_id: Annotated[Optional[str], typer.Argument(help="Start this story instead of choosing from a list")] = None,
    feature: bool = typer.Option(False, "--feature", help="Search feature stories"),
    chore: bool = typer.Option(False, "--chore", help="Search chores"),
    bug: bool = typer.Option(False, "--bug", help="Search bugs"),
    unstarted: bool = typer.Option(False, "--unstarted", help="Search unstarted stories"),
    unscheduled: bool = typer.Option(False, "--unscheduled", help="Search unscheduled stories"),
    started: bool = typer.Option(False, "--started", help="Search started stories"),
    label: Optional[str] = typer.Option(None, "--label", help="Comma-separated labels; prefix with - to exclude"),
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
) -> None:
    """Choose a story, mark it started and create its branch.

    Without flags all story types are searched, in the states from pivotal.states
    (default unscheduled, unstarted and planned).
    """
    engine = get_engine(path)
    story_types = [name for name, flag in (("feature", feature), ("chore", chore), ("bug", bug)) if flag]
    states = [name for name, flag in (("unscheduled", unscheduled), ("unstarted", unstarted), ("started", started)) if flag]

    try:
        config = engine.load_config()
        criteria = criteria_from_options(config, story_types, states, label)
        branch = engine.start(config, StartRequest(story_id=story_id, criteria=criteria))
    except UserCancelled:
        console.print("Changed your mind??")
        return
    except PivotalError as err:
        raise fail(err) from err

    console.print(f"\n[green]Switched to new branch[/green] [cyan]{escape(str(branch))}[/cyan]")


@app.command()
def bump(
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
) -> None:
    """Create the next version of the current branch (name.v1, name.v2, ...) for a clean rebase."""
    engine = get_engine(path)
    try:
        branch = engine.bump()
    except PivotalError as err:
        raise fail(err) from err

    console.print(f"[green]Switched to new branch[/green] [cyan]{escape(str(branch))}[/cyan]")


@app.command()
def done(
    story_id: Annotated[str, typer.Argument(help="Story whose branches to delete")],
    path: Annotated[Path, typer.Option(help="Path to git repository")] = Path("."),
) -> None:
    """Switch to trunk and delete every local branch of a story."""
    engine = get_engine(path)
    try:
        deleted = engine.done(load_trunk(engine.repo), story_id)
    except PivotalError as err:
        raise fail(err) from err

    if not deleted:
        console.print(f"[yellow]No branches found for story {escape(story_id)}[/yellow]")
        return

    result_table = Table(
        title=f"Deleted {len(deleted)} branch(es)",
        show_header=True,
        header_style="bold",
        title_style="bold green",
        show_edge=True,
    )
    result_table.add_column("Branch", style="cyan", no_wrap=True)
    for branch in sorted(deleted):
        result_table.add_row(branch)
    console.print(result_table)


if __name__ == "__main__":
    app()
