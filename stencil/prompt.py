"""Interactive input via Rich prompts.

Provides the default :class:`InteractiveInputProvider` used to answer
variable declarations, plus the yes/no confirmation used for overwrite
conflicts, hooks and applying output.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import PurePosixPath
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, IntPrompt, Prompt

from .template.errors import VariableValidationError
from .template.variable import Value, Variable, VariableKind
from .utils import console as default_console


def confirm(question: str, default: bool = True, console: Console | None = None) -> bool:
    return Confirm.ask(question, default=default, console=console or default_console)


def confirm_overwrite(path: PurePosixPath) -> bool:
    """Default conflict resolver: ask before overwriting an existing file."""
    return Confirm.ask(f"Overwrite '{path}'?", default=False, console=default_console)


class InteractiveInputProvider:
    """Asks the user for each variable, re-asking until the value is valid."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or default_console

    def provide(self, variable: Variable, context: Mapping[str, Any]) -> Value:
        while True:
            value = self._ask(variable)
            try:
                return variable.check(value)
            except VariableValidationError as e:
                self.console.print(f"[prompt.invalid]{escape(str(e))}")

    def _ask(self, variable: Variable) -> Value:
        kind = variable.kind
        if kind is VariableKind.BOOLEAN:
            return Confirm.ask(variable.prompt, default=variable.default, console=self.console)
        if kind is VariableKind.INTEGER:
            return IntPrompt.ask(variable.prompt, default=variable.default, console=self.console)
        if kind is VariableKind.ARRAY:
            return self._ask_many(variable)
        options: dict[str, Any] = {"console": self.console}
        if variable.choices is not None:
            options["choices"] = variable.choices
        if variable.default:
            options["default"] = variable.default
        return Prompt.ask(variable.prompt, **options)

    def _ask_many(self, variable: Variable) -> list[str]:
        choices = variable.choices or []
        self.console.print(f"Choose any of: {escape(', '.join(choices))} (comma separated)")
        answer = Prompt.ask(
            variable.prompt,
            default=", ".join(variable.default),
            console=self.console,
        )
        return variable.parse_text(answer)
