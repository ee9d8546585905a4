"""Rich console rendering for tasks."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from knecht.tasks.engine import TaskDetail
from knecht.tasks.models import FrictionEntry, Task, TaskStatus

STATUS_MARKERS = {
    TaskStatus.OPEN: "[ ]",
    TaskStatus.CLAIMED: "[~]",
    TaskStatus.DELIVERED: "[>]",
    TaskStatus.DONE: "[x]",
}

STATUS_COLORS = {
    TaskStatus.OPEN: "white",
    TaskStatus.CLAIMED: "yellow",
    TaskStatus.DELIVERED: "cyan",
    TaskStatus.DONE: "green",
}

USAGE_HINT = (
    "knecht show task-N    show details\n"
    "knecht start task-N   claim a task\n"
    "knecht done task-N    mark a task done"
)


def task_label(task_id: str) -> str:
    return f"task-{task_id}"


class TaskDisplay:
    """Formats tasks for the terminal."""

    def __init__(self, console: Console | None = None):
        """
        Initialize display.

        Args:
            console: Rich Console instance (creates new if None)
        """
        self.console = console or Console()

    def format_line(self, task: Task) -> str:
        """One-line summary used by list."""
        marker = escape(STATUS_MARKERS[task.status])
        color = STATUS_COLORS[task.status]
        line = f"[{color}]{marker}[/{color}] [bold]{task_label(task.id)}[/bold]  {escape(task.title)}"
        if task.friction_score:
            line += f" (pain count: {task.friction_score})"
        return line

    def show_list(self, tasks: list[Task]) -> None:
        if not tasks:
            self.console.print("[dim]No tasks[/dim]")
        for task in tasks:
            self.console.print(self.format_line(task), highlight=False)
        self.console.print(f"\n[dim]{USAGE_HINT}[/dim]", highlight=False)

    def show_task(self, task: Task, title: Optional[str] = None) -> None:
        """Print a task's title, status and text fields."""
        lines = [
            f"[bold]{task_label(task.id)}[/bold]: {escape(task.title)}",
            f"Status: {task.status.value}",
        ]
        if task.friction_score:
            lines.append(f"pain count: {task.friction_score}")
        if task.description:
            lines.append(f"\nDescription:\n{escape(task.description)}")
        if task.acceptance_criteria:
            lines.append(f"\nAcceptance Criteria:\n{escape(task.acceptance_criteria)}")

        self.console.print(
            Panel(
                "\n".join(lines),
                title=title,
                border_style=STATUS_COLORS[task.status],
                expand=True,
            ),
            highlight=False,
        )

    def _related(self, label: str, related: list[tuple[str, Optional[Task]]]) -> None:
        if not related:
            return
        self.console.print(f"\n[cyan]{label}[/cyan]")
        for task_id, task in related:
            if task is None:
                self.console.print(f"  {task_label(task_id)} [dim](missing)[/dim]", highlight=False)
            else:
                self.console.print(
                    f"  {task_label(task_id)} [{task.status.value}] {escape(task.title)}",
                    highlight=False,
                    markup=False,
                )

    def show_detail(self, detail: TaskDetail, friction: Optional[list[FrictionEntry]] = None) -> None:
        """Print a task with its blockers, dependents and friction history."""
        self.show_task(detail.task)
        self._related("Blocked by:", detail.blockers)
        self._related("Blocks:", detail.blocks)

        if friction:
            self.console.print("\n[cyan]Friction log:[/cyan]")
            for entry in friction:
                stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M")
                self.console.print(
                    f"  {stamp} ({entry.source.value}) {entry.description}",
                    highlight=False,
                    markup=False,
                )
