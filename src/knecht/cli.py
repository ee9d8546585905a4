"""CLI interface for knecht."""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from knecht import __version__
from knecht.config import ConfigError, KnechtConfig, load_config, resolve_root, setup_logging
from knecht.display import TaskDisplay, task_label
from knecht.errors import KnechtError
from knecht.storage.blockers import BlockerGraph
from knecht.storage.friction import FrictionLog
from knecht.storage.repository import TaskRepository
from knecht.tasks.engine import TaskEngine

# Load environment variables from .env file
load_dotenv()

console = Console()
error_console = Console(stderr=True)

REFLECT_REMINDER = (
    "REQUIRED: run /reflect now. Record any friction you hit with "
    "'knecht pain -t task-N -d \"...\"' and commit your work."
)


def _strip_prefix(task_id: str) -> str:
    """Accept ``task-abc123`` as well as ``abc123``."""
    return task_id[len("task-"):] if task_id.startswith("task-") else task_id


def _build_engine(root: Path) -> TaskEngine:
    """Wire the engine to file-backed collaborators under root."""
    try:
        config = KnechtConfig(root, load_config(root))
    except ConfigError as e:
        error_console.print(f"[yellow]Warning: {escape(str(e))}[/yellow]")
        config = KnechtConfig(root)

    setup_logging(config)

    return TaskEngine(
        repository=TaskRepository(root),
        graph=BlockerGraph(root / "blockers"),
        friction_log=FrictionLog(config.friction_log_file, enabled=config.friction_enabled),
    )


class KnechtCommandError(click.ClickException):
    """An engine error reported as ``Error: ...`` with exit status 1."""


class KnechtGroup(click.Group):
    """Command group that turns engine errors into CLI errors."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except (KnechtError, ValueError) as e:
            raise KnechtCommandError(str(e)) from e


def _engine(ctx: click.Context) -> TaskEngine:
    return ctx.obj["engine"]


def _display(ctx: click.Context) -> TaskDisplay:
    return ctx.obj["display"]


@click.group(cls=KnechtGroup)
@click.version_option(version=__version__)
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    help="knecht data directory (default: $KNECHT_DIR or ./.knecht)",
)
@click.pass_context
def cli(ctx: click.Context, root: Path | None) -> None:
    """knecht - a task tracker for autonomous agents."""
    ctx.ensure_object(dict)
    root = resolve_root(root)
    ctx.obj["root"] = root
    ctx.obj["engine"] = _build_engine(root)
    ctx.obj["display"] = TaskDisplay(console)


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize a knecht data directory."""
    _engine(ctx).init()
    console.print(f"Initialized knecht in {ctx.obj['root']}")


@cli.command()
@click.argument("title", nargs=-1, required=True)
@click.option("--description", "-d", help="Task description")
@click.option("--acceptance-criteria", "-a", help="What done means for this task")
@click.pass_context
def add(ctx: click.Context, title: tuple[str, ...], description: str | None, acceptance_criteria: str | None) -> None:
    """Add a new task."""
    task = _engine(ctx).add(" ".join(title), description, acceptance_criteria)
    console.print(f"Created {task_label(task.id)}", highlight=False)


@cli.command("list")
@click.option("--all", "-a", "include_done", is_flag=True, help="Include done tasks")
@click.pass_context
def list_cmd(ctx: click.Context, include_done: bool) -> None:
    """List tasks, most urgent first."""
    tasks = _engine(ctx).list_tasks(include_done=include_done)
    _display(ctx).show_list(tasks)


@cli.command()
@click.argument("task_id")
@click.pass_context
def show(ctx: click.Context, task_id: str) -> None:
    """Show a task with its blockers."""
    engine = _engine(ctx)
    task_id = _strip_prefix(task_id)
    detail = engine.show(task_id)
    friction = engine.friction_log.entries(task_id) if engine.friction_log else None
    _display(ctx).show_detail(detail, friction)


@cli.command("next")
@click.pass_context
def next_cmd(ctx: click.Context) -> None:
    """Suggest the task to work on next."""
    task = _engine(ctx).suggest_next()
    if task is None:
        console.print("No open tasks. Nothing to do.")
        return
    _display(ctx).show_task(task, title="Next")


@cli.command()
@click.argument("task_id")
@click.pass_context
def start(ctx: click.Context, task_id: str) -> None:
    """Claim a task and start working on it."""
    task = _engine(ctx).claim(_strip_prefix(task_id))
    console.print(f"[green]Started {task_label(task.id)}[/green]", highlight=False)
    _display(ctx).show_task(task)


@cli.command()
@click.argument("task_id")
@click.pass_context
def deliver(ctx: click.Context, task_id: str) -> None:
    """Mark a task as delivered and awaiting verification."""
    task = _engine(ctx).deliver(_strip_prefix(task_id))
    console.print(f"[cyan]> {task_label(task.id)}: {escape(task.title)}[/cyan]", highlight=False)


@cli.command()
@click.argument("task_id")
@click.pass_context
def done(ctx: click.Context, task_id: str) -> None:
    """Mark a task as done."""
    engine = _engine(ctx)
    task_id = _strip_prefix(task_id)

    completion = engine.complete_with_penalty(task_id)
    task = completion.task

    console.print(f"[green]✓ {task_label(task.id)}: {escape(task.title)}[/green]", highlight=False)
    if completion.penalty is not None:
        console.print(
            f"[yellow]Skipped {task_label(completion.penalty.task.id)}: its pain count went up by 1[/yellow]",
            highlight=False,
        )
    console.print(f"\n{'=' * 60}\n{REFLECT_REMINDER}\n{'=' * 60}", highlight=False, markup=False)


@cli.command()
@click.option("--task", "-t", "task_id", required=True, help="Task that caused friction")
@click.option("--description", "-d", required=True, help="What went wrong")
@click.pass_context
def pain(ctx: click.Context, task_id: str, description: str) -> None:
    """Report friction against a task."""
    task = _engine(ctx).add_friction(_strip_prefix(task_id), description)
    console.print(
        f"{task_label(task.id)} pain count: {task.friction_score}",
        highlight=False,
    )


@cli.command()
@click.argument("task_id")
@click.option("--title", "-t", help="New title")
@click.option("--description", "-d", help="New description (empty string clears)")
@click.option("--acceptance-criteria", "-a", help="New acceptance criteria (empty string clears)")
@click.pass_context
def update(
    ctx: click.Context,
    task_id: str,
    title: str | None,
    description: str | None,
    acceptance_criteria: str | None,
) -> None:
    """Update a task's title, description or acceptance criteria."""
    task = _engine(ctx).update(_strip_prefix(task_id), title, description, acceptance_criteria)
    console.print(f"Updated {task_label(task.id)}", highlight=False)


@cli.command()
@click.argument("task_id")
@click.pass_context
def delete(ctx: click.Context, task_id: str) -> None:
    """Delete a task."""
    task_id = _strip_prefix(task_id)
    _engine(ctx).delete(task_id)
    console.print(f"Deleted {task_label(task_id)}", highlight=False)


@cli.command()
@click.argument("blocked")
@click.argument("keyword", type=click.Choice(["by"]), metavar="by")
@click.argument("blocker")
@click.pass_context
def block(ctx: click.Context, blocked: str, keyword: str, blocker: str) -> None:
    """Record that BLOCKED cannot start until BLOCKER is done."""
    blocked, blocker = _strip_prefix(blocked), _strip_prefix(blocker)
    _engine(ctx).block(blocked, blocker)
    console.print(
        f"Blocker added: {task_label(blocked)} is blocked by {task_label(blocker)}",
        highlight=False,
    )


@cli.command()
@click.argument("blocked")
@click.argument("keyword", type=click.Choice(["from"]), metavar="from")
@click.argument("blocker")
@click.pass_context
def unblock(ctx: click.Context, blocked: str, keyword: str, blocker: str) -> None:
    """Remove BLOCKER from BLOCKED's blockers."""
    blocked, blocker = _strip_prefix(blocked), _strip_prefix(blocker)
    _engine(ctx).unblock(blocked, blocker)
    console.print(
        f"Blocker removed: {task_label(blocked)} is no longer blocked by {task_label(blocker)}",
        highlight=False,
    )


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        error_console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()
