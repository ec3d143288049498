"""Terminal observer for pipeline events."""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from reviewchain_core.notify import EventType


class ConsoleObserver:
    """Prints run progress and renders the displayed result as Markdown."""

    def __init__(self, console: Console | None = None, show_result: bool = True):
        self.console = console or Console()
        self.show_result = show_result
        self.completed: dict | None = None

    def deliver(self, event_type: EventType, payload: dict) -> bool:
        if event_type == EventType.REVIEW_STARTED:
            self.console.print(f"[cyan]Starting review {payload['runId']}...[/cyan]")
        elif event_type == EventType.STEP_STARTED:
            self.console.print(f"  Running [bold]{payload['stepName']}[/bold]...")
        elif event_type == EventType.STEP_COMPLETED:
            self.console.print(f"  [green]{payload['stepName']} completed.[/green]")
        elif event_type == EventType.STEP_ERROR:
            self.console.print(f"  [red]{payload['stepName']} failed: {payload['error']}[/red]")
        elif event_type == EventType.REVIEW_COMPLETED:
            self.completed = payload
            self.console.print(f"[bold]Review complete: {len(payload['steps'])} step(s) succeeded.[/bold]\n")
            if self.show_result:
                self.console.print(Panel(Markdown(payload["content"]), title="Review result"))
        elif event_type == EventType.REVIEW_ERROR:
            self.console.print(f"[red]Review error: {payload['error']}[/red]")
        else:
            return False
        return True
