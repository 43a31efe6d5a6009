"""Error taxonomy for the template engine.

Every user-facing failure raised by :mod:`stencil.template` derives from
:class:`StencilError` and carries enough context (operation plus the offending
path or variable name) to locate the source artefact without further
instrumentation.  Two ``RuntimeError`` subclasses at the bottom of this module
signal programming errors rather than bad templates.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .output import ApplyResult, StagedOutput


class StencilError(Exception):
    """Base class for every error a template author or user can cause."""


# ---------------------------------------------------------------------------
# Load-time errors (generation never starts)
# ---------------------------------------------------------------------------


class LoadError(StencilError):
    """Raised when the definition file is missing, unreadable or malformed."""

    def __init__(self, message: str, path: Any = None) -> None:
        self.path = path
        super().__init__(message)


class SchemaError(LoadError):
    """Raised when a declaration matches none (or several) of the variable shapes."""

    def __init__(self, name: str, message: str) -> None:
        self.variable = name
        super().__init__(f"invalid declaration for variable '{name}': {message}")


class InvalidVariableCause(str, Enum):
    """The specific invariant a variable declaration (or value) violated."""

    PATTERN_WITH_CHOICES = "pattern with choices"
    EMPTY_CHOICES = "empty choices"
    DEFAULT_OUTSIDE_CHOICES = "default outside choices"
    DEFAULT_MISMATCH_PATTERN = "default mismatch pattern"
    UNREASONABLE_RANGE = "unreasonable range"
    DEFAULT_OUTSIDE_RANGE = "default outside range"
    FORWARD_REFERENCE = "condition references a later variable"
    VALUE_OUTSIDE_CONSTRAINTS = "value outside constraints"
    MISSING_DEFAULT = "no default value"


class VariableValidationError(StencilError):
    """Raised when a variable violates one of its declaration invariants."""

    def __init__(
        self, name: str, cause: InvalidVariableCause, detail: str = ""
    ) -> None:
        self.variable = name
        self.cause = cause
        message = f"invalid variable '{name}': {cause.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ReadOnlyKeyError(StencilError):
    """Raised when a variable would shadow an injected context key."""

    def __init__(self, name: str) -> None:
        self.variable = name
        super().__init__(f"'{name}' is an injected read-only context key")


class PathResolutionError(StencilError):
    """Raised when ``__base__`` cannot be resolved to an existing directory."""

    def __init__(self, base: Any, reason: str) -> None:
        self.base = base
        super().__init__(f"failed to resolve base path '{base}': {reason}")


class CompileError(StencilError):
    """Raised when a condition, pattern or template fails to compile at load."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"failed to compile {source}: {message}")


# ---------------------------------------------------------------------------
# Generation / merge errors
# ---------------------------------------------------------------------------


class RenderError(StencilError):
    """Raised on an undefined reference or expression failure while rendering.

    ``staged`` is the partially staged output when the failure happened inside
    :meth:`Template.generate`; the caller owns disposing it.
    """

    def __init__(self, target: str, message: str) -> None:
        self.target = target
        self.staged: StagedOutput | None = None
        super().__init__(f"failed to render {target}: {message}")


class StencilIOError(StencilError):
    """Raised on a read, write or copy failure."""

    def __init__(self, operation: str, path: Any, reason: str) -> None:
        self.operation = operation
        self.path = path
        self.staged: StagedOutput | None = None
        super().__init__(f"failed to {operation} '{path}': {reason}")


class MergeError(StencilIOError):
    """Raised when :meth:`OutputManager.apply` fails mid-walk.

    ``result`` holds the counts accumulated before the failure; files written
    up to that point are not rolled back.
    """

    def __init__(
        self, operation: str, path: Any, reason: str, result: ApplyResult
    ) -> None:
        self.result = result
        super().__init__(operation, path, reason)


# ---------------------------------------------------------------------------
# Programming errors
# ---------------------------------------------------------------------------


class BasenameInvariantError(RuntimeError):
    """No staged entry corresponded to the resolved base path."""


class OutputConsumedError(RuntimeError):
    """A staged output was applied or disposed more than once."""
