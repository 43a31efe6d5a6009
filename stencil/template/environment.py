"""jinja2 environment construction for templates, paths and conditions.

Environments are built explicitly and handed to the components that need
them; nothing in this module is cached at import time.  Two flavours exist:

* the *strict* environment renders file contents and file/directory names.
  Undefined references raise, so a typo in a template fails generation
  instead of silently producing an empty string.
* the *lenient* environment compiles variable conditions.  A skipped variable
  is simply undefined there, as is any attribute or item looked up on it,
  and undefined is falsy.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date

from jinja2 import BaseLoader, ChainableUndefined, DictLoader, Environment, StrictUndefined


def create_environment(
    sources: Mapping[str, str] | None = None,
    *,
    strict: bool = True,
) -> Environment:
    """Build a jinja2 environment with the stencil filters and globals.

    Args:
        sources: Optional mapping of template name -> template source that
            backs a ``DictLoader``, so registered templates can include one
            another by their root-relative path.
        strict: Use ``StrictUndefined`` (content/path rendering) when true,
            ``ChainableUndefined`` (condition evaluation) otherwise.

    Returns:
        A configured ``Environment``.
    """
    loader: BaseLoader | None = DictLoader(dict(sources)) if sources is not None else None
    env = Environment(
        loader=loader,
        undefined=StrictUndefined if strict else ChainableUndefined,
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["slugify"] = _slugify_filter
    env.filters["pascal_case"] = _pascal_case_filter
    env.filters["snake_case"] = _snake_case_filter
    env.filters["camel_case"] = _camel_case_filter
    env.globals["year"] = _current_year
    return env


# ---------------------------------------------------------------------------
# Globals
# ---------------------------------------------------------------------------


def _current_year() -> str:
    return str(date.today().year)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", str(value))
    return "".join(word.capitalize() for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", str(value))
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""
