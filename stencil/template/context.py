"""Render context and declaration-order variable resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any, Protocol

from .errors import InvalidVariableCause, ReadOnlyKeyError, VariableValidationError
from .variable import StringShape, Value, Variable

logger = logging.getLogger(__name__)


class RenderContext(Mapping[str, Any]):
    """Ordered mapping of name -> resolved value.

    Injected values (identity, date, ...) are seeded first and cannot be
    replaced afterwards.  Variables are then added one at a time in
    declaration order; a skipped variable is simply never added.
    """

    def __init__(self, injected: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = {}
        self._injected: set[str] = set()
        for name, value in (injected or {}).items():
            self.inject(name, value)

    def inject(self, name: str, value: Any) -> None:
        if self._resolved_names():
            raise RuntimeError("injected values must be seeded before any variable")
        if name in self._injected:
            raise ReadOnlyKeyError(name)
        self._values[name] = value
        self._injected.add(name)

    def set(self, name: str, value: Value) -> None:
        if name in self._injected:
            raise ReadOnlyKeyError(name)
        self._values[name] = value

    @property
    def injected(self) -> frozenset[str]:
        return frozenset(self._injected)

    def _resolved_names(self) -> list[str]:
        return [name for name in self._values if name not in self._injected]

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"RenderContext({self._values!r})"


class InputProvider(Protocol):
    """Supplies one value for a variable that satisfies its constraints."""

    def provide(self, variable: Variable, context: Mapping[str, Any]) -> Value: ...


def resolve_variables(
    variables: Mapping[str, Variable],
    provider: InputProvider,
    context: RenderContext,
) -> RenderContext:
    """Resolve *variables* in declaration order into *context*.

    Each condition is evaluated against the context built so far.  A variable
    whose condition is false is skipped entirely: it is absent from the
    context, so later conditions see it as undefined rather than defaulted.

    Raises:
        RenderError: A condition failed to evaluate.
        VariableValidationError: The provider returned a value that violates
            the declaration.
        ReadOnlyKeyError: A variable is named like an injected key.
    """
    for name, variable in variables.items():
        if name in context.injected:
            raise ReadOnlyKeyError(name)
        if variable.condition is not None and not variable.condition.eval(context):
            logger.info("Skipping variable '%s': condition %r is false", name, variable.condition.source)
            continue
        value = variable.check(provider.provide(variable, context))
        context.set(name, value)
        logger.debug("Resolved variable '%s' = %r", name, value)
    return context


# ---------------------------------------------------------------------------
# Non-interactive providers
# ---------------------------------------------------------------------------


class DefaultInputProvider:
    """Answers every variable with its declared default.

    An empty string default on a variable with choices or a pattern is not a
    usable answer, so it raises instead of failing the value check later.
    """

    def provide(self, variable: Variable, context: Mapping[str, Any]) -> Value:
        default = variable.default
        if isinstance(variable.shape, StringShape) and default == "":
            try:
                variable.check(default)
            except VariableValidationError as e:
                raise VariableValidationError(
                    variable.name,
                    InvalidVariableCause.MISSING_DEFAULT,
                    f"pass --set {variable.name}=VALUE",
                ) from e
        return list(default) if isinstance(default, list) else default


class PresetInputProvider:
    """Answers from preset values, deferring to *fallback* for the rest.

    Presets may be given as text (``--set name=value``); they are converted to
    the variable's kind before being returned.
    """

    def __init__(self, presets: Mapping[str, Any], fallback: InputProvider | None = None) -> None:
        self.presets = dict(presets)
        self.fallback: InputProvider = fallback or DefaultInputProvider()

    def provide(self, variable: Variable, context: Mapping[str, Any]) -> Value:
        if variable.name not in self.presets:
            return self.fallback.provide(variable, context)
        value = self.presets[variable.name]
        if isinstance(value, str):
            return variable.parse_text(value)
        return value
