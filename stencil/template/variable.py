"""Typed variable declarations.

A declaration is a TOML table with a ``prompt``, an optional ``condition`` and
the fields of exactly one shape::

    String   {default: str, pattern?: regex, choices?: [str]}
    Array    {default: [str], choices: [str]}
    Integer  {default: int, range?: [min, max]}
    Boolean  {default: bool}

The shape is selected explicitly from the type of ``default`` and then
validated with a strict pydantic model that forbids foreign fields, so a
declaration like ``{default = "x", range = [1, 2]}`` fails with a schema error
naming the offending key instead of silently matching something else.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, ClassVar, Optional, Union

from jinja2 import Environment
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .condition import Condition
from .errors import CompileError, InvalidVariableCause, SchemaError, VariableValidationError

Value = Union[str, list[str], int, bool]


class VariableKind(str, Enum):
    STRING = "string"
    ARRAY = "array"
    INTEGER = "integer"
    BOOLEAN = "boolean"


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------


class _Shape(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)

    kind: ClassVar[VariableKind]


class StringShape(_Shape):
    kind: ClassVar[VariableKind] = VariableKind.STRING

    default: str
    pattern: str | None = None
    choices: list[str] | None = None


class ArrayShape(_Shape):
    kind: ClassVar[VariableKind] = VariableKind.ARRAY

    default: list[str]
    choices: list[str]


class IntegerShape(_Shape):
    kind: ClassVar[VariableKind] = VariableKind.INTEGER

    default: int
    range: Optional[Annotated[list[int], Field(min_length=2, max_length=2)]] = None


class BooleanShape(_Shape):
    kind: ClassVar[VariableKind] = VariableKind.BOOLEAN

    default: bool


Shape = Union[StringShape, ArrayShape, IntegerShape, BooleanShape]


# ---------------------------------------------------------------------------
# Variable
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Variable:
    """A validated variable declaration.

    Attributes:
        name: Declaration key; unique within a template.
        prompt: Text shown when asking for a value.
        shape: The kind-specific fields (default and constraints).
        condition: Optional gate, evaluated against already-resolved values.
    """

    name: str
    prompt: str
    shape: Shape
    condition: Condition | None = None
    regex: re.Pattern[str] | None = field(default=None, compare=False, repr=False)

    @property
    def kind(self) -> VariableKind:
        return self.shape.kind

    @property
    def default(self) -> Value:
        return self.shape.default

    @property
    def choices(self) -> list[str] | None:
        return getattr(self.shape, "choices", None)

    @property
    def range(self) -> tuple[int, int] | None:
        bounds = getattr(self.shape, "range", None)
        return (bounds[0], bounds[1]) if bounds is not None else None

    # -- Invariants ----------------------------------------------------------

    def validate(self) -> Variable:
        """Check the declaration invariants and return ``self``.

        Raises:
            VariableValidationError: naming the variable and the violated
                invariant.
        """
        shape = self.shape
        if isinstance(shape, StringShape):
            if shape.choices is not None:
                if shape.pattern is not None:
                    self._fail(InvalidVariableCause.PATTERN_WITH_CHOICES)
                if not shape.choices:
                    self._fail(InvalidVariableCause.EMPTY_CHOICES)
                if shape.default and shape.default not in shape.choices:
                    self._fail(
                        InvalidVariableCause.DEFAULT_OUTSIDE_CHOICES, repr(shape.default)
                    )
            elif self.regex is not None:
                if shape.default and not self.regex.search(shape.default):
                    self._fail(
                        InvalidVariableCause.DEFAULT_MISMATCH_PATTERN,
                        f"{shape.default!r} !~ {shape.pattern!r}",
                    )
        elif isinstance(shape, ArrayShape):
            if not shape.choices:
                self._fail(InvalidVariableCause.EMPTY_CHOICES)
            outside = [d for d in shape.default if d not in shape.choices]
            if outside:
                self._fail(InvalidVariableCause.DEFAULT_OUTSIDE_CHOICES, repr(outside))
        elif isinstance(shape, IntegerShape) and shape.range is not None:
            low, high = shape.range
            if low >= high:
                self._fail(InvalidVariableCause.UNREASONABLE_RANGE, f"[{low}, {high}]")
            if not low <= shape.default <= high:
                self._fail(
                    InvalidVariableCause.DEFAULT_OUTSIDE_RANGE,
                    f"{shape.default} not in [{low}, {high}]",
                )
        return self

    def check(self, value: Any) -> Value:
        """Check that a provided *value* satisfies this declaration.

        Returns:
            The value, unchanged.

        Raises:
            VariableValidationError: with cause ``VALUE_OUTSIDE_CONSTRAINTS``.
        """
        shape = self.shape
        if isinstance(shape, StringShape):
            if not isinstance(value, str):
                self._reject(value, "expected a string")
            if shape.choices is not None and value not in shape.choices:
                self._reject(value, f"expected one of {shape.choices}")
            if self.regex is not None and not self.regex.search(value):
                self._reject(value, f"does not match pattern {shape.pattern!r}")
        elif isinstance(shape, ArrayShape):
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                self._reject(value, "expected a list of strings")
            outside = [v for v in value if v not in shape.choices]
            if outside:
                self._reject(value, f"{outside} not in {shape.choices}")
        elif isinstance(shape, IntegerShape):
            if isinstance(value, bool) or not isinstance(value, int):
                self._reject(value, "expected an integer")
            if shape.range is not None:
                low, high = shape.range
                if not low <= value <= high:
                    self._reject(value, f"out of range [{low}, {high}]")
        elif not isinstance(value, bool):
            self._reject(value, "expected a boolean")
        return value

    def parse_text(self, text: str) -> Value:
        """Convert a textual value (e.g. from ``--set``) to this variable's kind."""
        kind = self.kind
        if kind is VariableKind.STRING:
            return text
        if kind is VariableKind.ARRAY:
            return [item.strip() for item in text.split(",") if item.strip()]
        if kind is VariableKind.INTEGER:
            try:
                return int(text.strip())
            except ValueError:
                self._reject(text, "expected an integer")
        lowered = text.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        self._reject(text, "expected a boolean")

    # -- Helpers -------------------------------------------------------------

    def _fail(self, cause: InvalidVariableCause, detail: str = "") -> None:
        raise VariableValidationError(self.name, cause, detail)

    def _reject(self, value: Any, detail: str) -> None:
        raise VariableValidationError(
            self.name,
            InvalidVariableCause.VALUE_OUTSIDE_CONSTRAINTS,
            f"{value!r}: {detail}",
        )


_TRUE_WORDS = frozenset({"true", "yes", "y", "1", "on"})
_FALSE_WORDS = frozenset({"false", "no", "n", "0", "off"})


# ---------------------------------------------------------------------------
# Declaration parsing
# ---------------------------------------------------------------------------


def parse_variable(name: str, raw: Any, environment: Environment) -> Variable:
    """Parse and validate a single declaration table.

    Args:
        name: The declaration key.
        raw: The TOML value under that key.
        environment: Environment used to compile the condition.

    Raises:
        SchemaError: The table matches no variable shape or carries fields
            that are illegal for its shape.
        CompileError: The condition or the pattern does not compile.
        VariableValidationError: A declaration invariant is violated.
    """
    if not isinstance(raw, Mapping):
        raise SchemaError(name, f"expected a table, got {type(raw).__name__}")

    fields = dict(raw)
    prompt = fields.pop("prompt", None)
    if not isinstance(prompt, str):
        raise SchemaError(name, "missing or non-string field 'prompt'")
    condition_source = fields.pop("condition", None)
    if condition_source is not None and not isinstance(condition_source, str):
        raise SchemaError(name, "field 'condition' must be a string")

    shape_cls = _select_shape(name, fields)
    try:
        shape = shape_cls.model_validate(fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise SchemaError(name, f"not a valid {shape_cls.kind.value} variable: {problems}") from e

    regex = None
    if isinstance(shape, StringShape) and shape.pattern is not None:
        try:
            regex = re.compile(shape.pattern)
        except re.error as e:
            raise CompileError(f"pattern for variable '{name}'", f"{shape.pattern!r}: {e}") from e

    condition = None
    if condition_source is not None:
        condition = Condition(condition_source, environment, owner=name)

    return Variable(
        name=name,
        prompt=prompt,
        shape=shape,
        condition=condition,
        regex=regex,
    ).validate()


def parse_variables(
    declarations: Mapping[str, Any], environment: Environment
) -> dict[str, Variable]:
    """Parse every declaration, preserving source order.

    A condition may only look at variables declared before its own; naming
    itself or a later declaration is rejected here rather than evaluating to
    undefined at resolution time.
    """
    names = list(declarations)
    variables: dict[str, Variable] = {}
    for index, name in enumerate(names):
        variable = parse_variable(name, declarations[name], environment)
        if variable.condition is not None:
            later = variable.condition.names.intersection(names[index:])
            if later:
                raise VariableValidationError(
                    name,
                    InvalidVariableCause.FORWARD_REFERENCE,
                    ", ".join(sorted(later)),
                )
        variables[name] = variable
    return variables


def _select_shape(name: str, fields: Mapping[str, Any]) -> type[_Shape]:
    if "default" not in fields:
        raise SchemaError(name, "missing field 'default'; matches no variable shape")
    default = fields["default"]
    # bool is checked before int: True is an int in Python, not in TOML.
    if isinstance(default, bool):
        return BooleanShape
    if isinstance(default, int):
        return IntegerShape
    if isinstance(default, str):
        return StringShape
    if isinstance(default, list):
        return ArrayShape
    raise SchemaError(
        name, f"'default' of type {type(default).__name__} matches no variable shape"
    )
