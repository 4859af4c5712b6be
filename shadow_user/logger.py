"""
Logging and artifact management for Shadow User.

Handles JSONL step logging and rich console output.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .utils import redact_secrets, truncate_text

# Shorter answers, and plain confirmations, are never treated as secrets
MIN_SECRET_LENGTH = 4
CONFIRMATION_ANSWERS = {
    "y", "yes", "n", "no", "ok", "okay", "sure", "confirm",
    "д", "да", "н", "нет", "ок", "подтверждаю",
}


def slugify(text: str, max_length: int = 30) -> str:
    """Convert text to a filesystem-safe slug."""
    slug = re.sub(r'[^\w\s-]', '', text.lower())
    slug = re.sub(r'[-\s]+', '_', slug).strip('_')
    return slug[:max_length]


class RunLogger:
    """Manages logging and artifacts for a single agent run."""

    def __init__(self, goal: str, runs_dir: Path, enable_console: bool = True):
        """Initialize the run logger.

        Args:
            goal: The goal being executed (used for directory naming)
            runs_dir: Parent directory for run artifacts
            enable_console: Whether to print to console
        """
        self.goal = goal
        self.console = Console() if enable_console else None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.run_dir = Path(runs_dir) / f"{timestamp}_{slugify(goal)}"
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.steps_file = self.run_dir / "steps.jsonl"
        self.steps_file.touch()

        self.step_count = 0
        self._secrets: set[str] = set()

    @property
    def run_path(self) -> Path:
        """Get the path to the run directory."""
        return self.run_dir

    def register_secret(self, value: str) -> None:
        """Keep a human-supplied value out of every later log line.

        Confirmations and values shorter than MIN_SECRET_LENGTH are ignored.
        """
        value = value.strip()
        if len(value) < MIN_SECRET_LENGTH or value.lower() in CONFIRMATION_ANSWERS:
            return
        self._secrets.add(value)

    def log_step(
        self,
        step: int,
        url: str,
        title: str,
        tool_calls: list[dict[str, Any]],
        outcomes: list[dict[str, Any]],
        reply: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """Append a single step to the JSONL file.

        Args:
            step: Step number
            url: Page URL the decision was made on
            title: Page title the decision was made on
            tool_calls: Tool calls requested by the model
            outcomes: Tool outcomes, in call order
            reply: Free-text model reply, if any
            error: Optional error message
        """
        self.step_count = step

        step_data = {
            "step": step,
            "timestamp": datetime.now().isoformat(),
            "state_summary": {"url": url, "title": title},
            "tool_calls": tool_calls,
            "outcomes": outcomes,
            "reply": reply,
            "error": error,
        }

        with open(self.steps_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(redact_secrets(step_data, self._secrets), ensure_ascii=False) + "\n")

    def print_header(self) -> None:
        """Print the run header to console."""
        if not self.console:
            return

        self.console.print()
        self.console.print(Panel(
            f"[bold cyan]Goal:[/bold cyan] {self.goal}",
            title="🤖 Shadow User",
            border_style="cyan",
        ))
        self.console.print()

    def print_thinking(self, step: int, max_steps: int) -> None:
        """Announce a decision step."""
        if not self.console:
            return
        self.console.print(f"[bold]📍 Step {step}/{max_steps}:[/bold] [dim]thinking about the next action...[/dim]")

    def print_tool_call(self, name: str, arguments: str) -> None:
        """Print a tool call about to be executed."""
        if not self.console:
            return
        step_text = Text()
        step_text.append("  🔧 ")
        step_text.append(name, style="bold cyan")
        step_text.append(f"({redact_secrets(arguments, self._secrets)})", style="dim")
        self.console.print(step_text)

    def print_result(self, ok: bool, detail: str) -> None:
        """Print a tool outcome to console."""
        if not self.console:
            return

        detail = truncate_text(redact_secrets(detail, self._secrets), 100)
        if ok:
            self.console.print(f"    [green]✓[/green] {detail}")
        else:
            self.console.print(f"    [red]✗[/red] {detail}")

    def print_agent_message(self, text: str) -> None:
        """Print a free-text reply from the model."""
        if not self.console:
            return
        self.console.print()
        self.console.print(Panel(text, title="💬 Agent", border_style="blue"))

    def print_warning(self, message: str) -> None:
        """Print a corrective message injected into the transcript."""
        if not self.console:
            return
        self.console.print(f"  [bold yellow]⚠[/bold yellow] {message}")

    def print_error(self, error: str) -> None:
        """Print an error message to console."""
        if not self.console:
            return
        self.console.print(f"  [bold red]Error:[/bold red] {error}")

    def print_summary(self, steps: int, finished_reason: str) -> None:
        """Print the run summary to console."""
        if not self.console:
            return

        table = Table(title="Run Summary", show_header=False)
        table.add_column("Property", style="dim")
        table.add_column("Value")

        table.add_row("Steps Executed", str(steps))
        table.add_row("Finished", finished_reason)
        table.add_row("Logs Directory", str(self.run_dir))
        table.add_row("Steps Log", str(self.steps_file))

        self.console.print()
        self.console.print(table)
