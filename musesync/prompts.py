from __future__ import annotations

import typing as t

from rich import get_console
from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt


class Prompter(t.Protocol):
    """The blocking questions a sync session may ask the operator."""

    def confirm(self, question: str, *, default: bool = False) -> bool: ...

    def await_volume(self, expected_name: str) -> bool:
        """Block until the operator says the drive is in (True) or gives up (False)."""
        ...

    def ask_ordinal(self, question: str, low: int, high: int) -> int | None: ...


class ConsolePrompter:
    """
    Terminal prompts via rich. EOF and Ctrl-C at a prompt count as "no" /
    "stop" so the session can still print how to resume.
    """

    def __init__(self, console: Console | None = None):
        self.console = console or get_console()

    def confirm(self, question: str, *, default: bool = False) -> bool:
        try:
            return Confirm.ask(question, default=default, console=self.console)
        except (EOFError, KeyboardInterrupt):
            return False

    def await_volume(self, expected_name: str) -> bool:
        try:
            response = Prompt.ask(
                f"Insert [bold]{expected_name}[/bold] and press Enter (or q to stop)",
                default="",
                show_default=False,
                console=self.console,
            )
        except (EOFError, KeyboardInterrupt):
            return False
        return response.strip().lower() not in {"q", "quit"}

    def ask_ordinal(self, question: str, low: int, high: int) -> int | None:
        while True:
            try:
                value = IntPrompt.ask(f"{question} ({low}-{high})", console=self.console)
            except (EOFError, KeyboardInterrupt):
                return None
            if low <= value <= high:
                return value
            self.console.print(f"Please enter a number between {low} and {high}.")


class ScriptedPrompter:
    """
    Answers questions from a fixed script, for tests and unattended runs.
    ``confirm`` and ``await_volume`` consume booleans, ``ask_ordinal`` consumes
    ints; when the script runs out every question gets a "no".
    """

    def __init__(self, answers: t.Iterable[t.Any] = ()):
        self._answers = list(answers)
        self.asked: list[str] = []

    def _next(self, question: str) -> t.Any:
        self.asked.append(question)
        return self._answers.pop(0) if self._answers else None

    def confirm(self, question: str, *, default: bool = False) -> bool:
        return bool(self._next(question))

    def await_volume(self, expected_name: str) -> bool:
        return bool(self._next(f"insert {expected_name}"))

    def ask_ordinal(self, question: str, low: int, high: int) -> int | None:
        answer = self._next(question)
        return int(answer) if answer is not None else None
