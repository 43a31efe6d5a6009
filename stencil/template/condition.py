"""Boolean gating expressions for variable declarations.

A condition is compiled once, when the template loads, so a malformed
expression fails before any value is asked for.  Evaluation sees only the
variables resolved so far; anything else (including a variable whose own
condition was false) is undefined and therefore falsy.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from jinja2 import Environment, TemplateSyntaxError, nodes
from jinja2.parser import Parser

from .errors import CompileError, RenderError

logger = logging.getLogger(__name__)


class Condition:
    """A compiled condition expression.

    Attributes:
        source: The original expression text.
        names: Every context name the expression looks up.
    """

    def __init__(self, source: str, environment: Environment, *, owner: str = "") -> None:
        self.source = source
        self.owner = owner
        label = f"condition for variable '{owner}'" if owner else "condition"
        try:
            self._expression = environment.compile_expression(
                source, undefined_to_none=False
            )
            expression = Parser(environment, source, state="variable").parse_expression()
        except TemplateSyntaxError as e:
            raise CompileError(label, f"{source!r}: {e.message}") from e
        # Expressions cannot bind names, so every Name node is a context lookup.
        self.names: frozenset[str] = frozenset(
            node.name for node in expression.find_all(nodes.Name) if node.ctx == "load"
        )

    def eval(self, context: Mapping[str, Any]) -> bool:
        """Evaluate against *context*, coercing the result by truthiness.

        Raises:
            RenderError: The expression failed at evaluation time (e.g. a type
                error between operands).
        """
        try:
            value = self._expression(dict(context))
            result = bool(value)
        except Exception as e:
            target = f"condition for variable '{self.owner}'" if self.owner else "condition"
            raise RenderError(target, f"{self.source!r}: {e}") from e
        logger.debug("Condition %r evaluated to %s", self.source, result)
        return result

    def __repr__(self) -> str:
        return f"Condition({self.source!r})"
