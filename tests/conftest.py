"""Shared pytest fixtures for the stencil test suite.

Provides reusable fixtures for:
- Building template directories (definition file plus files) under tmp_path
- A destination directory for applied output
- Non-interactive collaborators (conflict resolvers, input providers)
"""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from stencil.template import DefaultInputProvider, OutputManager


# ---------------------------------------------------------------------------
# Template directories
# ---------------------------------------------------------------------------

TemplateFactory = Callable[..., Path]


@pytest.fixture
def make_template(tmp_path: Path) -> TemplateFactory:
    """Factory that writes a template directory and returns its root.

    Usage::

        root = make_template(
            '''
            __name__ = "demo"
            __author__ = "me"
            ''',
            {"{{ project_name }}.txt": "Hello {{ project_name }}!"},
        )

    File values may be ``str`` (written as UTF-8) or ``bytes``.  Keys ending
    in ``/`` create empty directories.
    """
    counter = {"n": 0}

    def _make(
        definition: str,
        files: dict[str, str | bytes] | None = None,
        *,
        name: str = "stencil.toml",
    ) -> Path:
        counter["n"] += 1
        root = tmp_path / f"template-{counter['n']}"
        root.mkdir()
        (root / name).write_text(textwrap.dedent(definition).lstrip(), encoding="utf-8")
        for rel, content in (files or {}).items():
            target = root / rel
            if rel.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def simple_definition() -> str:
    """Definition with one String variable ``project_name`` defaulting to demo."""
    return """
        __name__ = "simple"
        __author__ = "Stencil Tests"

        [project_name]
        prompt = "Project name?"
        default = "demo"
    """


@pytest.fixture
def dst_dir(tmp_path: Path) -> Path:
    """Empty destination directory for applied output."""
    dst = tmp_path / "dst"
    dst.mkdir()
    return dst


# ---------------------------------------------------------------------------
# Non-interactive collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def defaults() -> DefaultInputProvider:
    return DefaultInputProvider()


@pytest.fixture
def never_overwrite() -> OutputManager:
    """OutputManager whose conflict resolver always declines."""
    return OutputManager(lambda path: False)


@pytest.fixture
def always_overwrite() -> OutputManager:
    """OutputManager whose conflict resolver always accepts."""
    return OutputManager(lambda path: True)
