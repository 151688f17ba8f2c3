"""Interactive prompts.

Ctrl+C or end-of-input at a prompt cancels only that question. Prompt
methods return None for a cancelled answer and never raise for it.
"""

from __future__ import annotations

from dataclasses import dataclass

from rich import box
from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table


@dataclass
class Choice:
    """One selectable entry in a multi-select prompt."""

    label: str
    value: str
    checked: bool = False


def parse_selection(answer: str, choices: list[Choice]) -> list[str] | None:
    """Interpret a multi-select answer.

    Accepts an empty answer (keep the pre-selection), "all", "none", or
    comma/space separated 1-based numbers and ranges like "1,3-5".
    Returns None when the answer cannot be understood.
    """
    text = answer.strip().lower()
    if not text:
        return [c.value for c in choices if c.checked]
    if text == "all":
        return [c.value for c in choices]
    if text == "none":
        return []

    picked: set[int] = set()
    for token in text.replace(",", " ").split():
        start, sep, end = token.partition("-")
        if not start.isdigit() or (sep and not end.isdigit()):
            return None
        first = int(start)
        last = int(end) if sep else first
        if first < 1 or last > len(choices) or first > last:
            return None
        picked.update(range(first, last + 1))

    return [choices[i - 1].value for i in sorted(picked)]


class ConsolePrompter:
    """Prompts on the terminal with rich."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def confirm(self, message: str, default: bool = True) -> bool | None:
        """Yes/no question. Returns None if cancelled."""
        try:
            return Confirm.ask(message, default=default, console=self.console)
        except (KeyboardInterrupt, EOFError):
            self.console.print()
            return None

    def select_many(self, message: str, choices: list[Choice]) -> list[str] | None:
        """Pick any number of choices. Returns None if cancelled."""
        table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
        table.add_column("#", justify="right", style="dim")
        table.add_column("", width=3)
        table.add_column("Package")
        for number, choice in enumerate(choices, start=1):
            table.add_row(str(number), "[green]x[/]" if choice.checked else " ", choice.label)

        self.console.print(f"[bold]{message}[/]")
        self.console.print(table)

        while True:
            try:
                answer = Prompt.ask(
                    "Numbers to update (e.g. 1,3-5), 'all', 'none', Enter keeps [green]x[/]",
                    default="",
                    show_default=False,
                    console=self.console,
                )
            except (KeyboardInterrupt, EOFError):
                self.console.print()
                return None

            selected = parse_selection(answer, choices)
            if selected is not None:
                return selected
            self.console.print("[red]Could not understand that selection, try again.[/]")
