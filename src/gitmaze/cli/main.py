"""Main CLI interface for gitmaze."""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gitmaze.cli.commands import Terminal
from gitmaze.core.config import ConfigError, GitMazeConfig, load_config
from gitmaze.core.engine import GitEngine
from gitmaze.core.errors import GitMazeError
from gitmaze.core.layout import calculate_layout
from gitmaze.core.storage import SaveFile

console = Console()

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(verbose: bool = False) -> None:
    """Route engine logs to stderr; quiet unless ``verbose``."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level="DEBUG" if verbose else "WARNING")


def _load_snapshot(snapshot_path: Optional[str], config: GitMazeConfig) -> dict:
    if snapshot_path is None:
        return {config.position_key: {"x": 0, "z": 0}}
    try:
        data = json.loads(Path(snapshot_path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: {snapshot_path} is not valid JSON: {e}[/red]")
        raise click.Abort() from e
    if not isinstance(data, dict):
        console.print("[red]Error: snapshot file must contain a JSON object[/red]")
        raise click.Abort()
    return data


def open_terminal(ctx: click.Context, snapshot_path: Optional[str] = None) -> Terminal:
    """Build an engine for this session, restoring the save file if present."""
    config: GitMazeConfig = ctx.obj["config"]
    save_file = SaveFile(ctx.obj["save_file"] or config.save_file)

    engine = GitEngine(
        _load_snapshot(snapshot_path, config),
        position_key=config.position_key,
        palette=config.branch_palette,
    )
    terminal = Terminal(engine, save_file=save_file)

    if save_file.exists():
        try:
            terminal.set_state(engine.import_graph(save_file.load()))
        except GitMazeError as e:
            console.print(f"[red]Error: could not restore {save_file.path}: {e}[/red]")
            raise click.Abort() from e
    return terminal


def _print_lines(lines) -> None:
    for line in lines:
        if line.startswith("Error:"):
            console.print(f"[red]{escape(line)}[/red]", highlight=False)
        else:
            console.print(line, markup=False, highlight=False)


@click.group()
@click.version_option(package_name="gitmaze")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a JSON config file",
)
@click.option(
    "--save-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Where push/pull store the graph (overrides config)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show engine debug logs")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], save_file: Optional[str], verbose: bool):
    """gitmaze - a version-controlled world you can branch, reset and merge."""
    configure_logging(verbose)
    try:
        config = load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.Abort() from e

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["save_file"] = save_file


@main.command()
@click.option(
    "--snapshot",
    "snapshot_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the initial world state",
)
@click.pass_context
def shell(ctx: click.Context, snapshot_path: Optional[str]):
    """Start an interactive git terminal."""
    terminal = open_terminal(ctx, snapshot_path)
    console.print("[bold]Welcome to gitMaze.[/bold] Type 'help' for commands, 'exit' to quit.")

    while True:
        try:
            cmd = console.input("[bold green]gitmaze>[/bold green] ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break
        if cmd.strip() in ("exit", "quit"):
            break
        _print_lines(terminal.execute(cmd))


@main.command()
@click.argument("commands", nargs=-1, required=True)
@click.option("--snapshot", "snapshot_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--no-save", is_flag=True, help="Do not write the graph back afterwards")
@click.pass_context
def run(ctx: click.Context, commands, snapshot_path: Optional[str], no_save: bool):
    """Run git commands against the save file, e.g. 'git commit -m "first"'."""
    terminal = open_terminal(ctx, snapshot_path)
    for cmd in commands:
        console.print(f"> {cmd}", markup=False, highlight=False)
        _print_lines(terminal.execute(cmd))

    if not no_save:
        terminal.save_file.save(terminal.git.export())


@main.command()
@click.option("--all", "show_all", is_flag=True, help="Include unreachable commits")
@click.pass_context
def graph(ctx: click.Context, show_all: bool):
    """Show the commit graph layout."""
    terminal = open_terminal(ctx)
    config: GitMazeConfig = ctx.obj["config"]
    view = terminal.git.get_graph()

    nodes = calculate_layout(
        view,
        reachable_only=not show_all,
        lane_width=config.lane_width,
        depth_height=config.depth_height,
    )

    labels = {}
    for name, target in view.branches.items():
        labels.setdefault(target, []).append(f"[{view.branch_colors.get(name, 'white')}]{name}[/]")
    head_id = view.head_commit_id()

    table = Table(title="Commit graph")
    table.add_column("Commit", style="cyan")
    table.add_column("Lane", justify="right")
    table.add_column("Depth", justify="right")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    table.add_column("Refs")
    table.add_column("Message")

    for node in nodes:
        commit = view.commits[node.id]
        refs = labels.get(node.id, [])
        if node.id == head_id:
            refs = ["[bold]HEAD[/bold]"] + refs
        table.add_row(
            commit.short_id,
            str(node.lane),
            str(node.depth),
            f"{node.x:.1f}",
            f"{node.y:.1f}",
            ", ".join(refs),
            escape(commit.message),
        )
    console.print(table)


@main.command()
@click.option("--limit", default=10, help="Number of commits to show")
@click.pass_context
def log(ctx: click.Context, limit: int):
    """Show first-parent history from HEAD."""
    terminal = open_terminal(ctx)
    for commit in terminal.git.history(limit=limit):
        marker = "M" if commit.is_merge else "*"
        console.print(
            f"{marker} [yellow]{commit.short_id}[/yellow] {escape(commit.message)} "
            f"[dim]({commit.branch})[/dim]"
        )


if __name__ == "__main__":
    main()
