"""Unit tests for interactive prompts (stencil.prompt).

Rich prompt classes are mocked; nothing reads from stdin.

Tests cover:
- confirm / confirm_overwrite
- InteractiveInputProvider per variable kind
- Re-asking until a value satisfies the declaration
"""

from __future__ import annotations

import io
from pathlib import PurePosixPath
from unittest.mock import patch

import pytest
from rich.console import Console

from stencil.prompt import InteractiveInputProvider, confirm, confirm_overwrite
from stencil.template import create_environment
from stencil.template.variable import parse_variable


def _var(**fields):
    return parse_variable("var", {"prompt": "Value?", **fields}, create_environment(strict=False))


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def provider(output) -> InteractiveInputProvider:
    return InteractiveInputProvider(Console(file=output, width=120))


class TestConfirm:
    @pytest.mark.unit
    def test_confirm(self):
        with patch("stencil.prompt.Confirm.ask", return_value=False) as mock_ask:
            assert confirm("Apply output?") is False
        args, kwargs = mock_ask.call_args
        assert args == ("Apply output?",)
        assert kwargs["default"] is True

    @pytest.mark.unit
    def test_confirm_overwrite(self):
        with patch("stencil.prompt.Confirm.ask", return_value=True) as mock_ask:
            assert confirm_overwrite(PurePosixPath("src/main.py")) is True
        args, kwargs = mock_ask.call_args
        assert args == ("Overwrite 'src/main.py'?",)
        assert kwargs["default"] is False


class TestInteractiveInputProvider:
    @pytest.mark.unit
    def test_string(self, provider):
        with patch("stencil.prompt.Prompt.ask", return_value="acme") as mock_ask:
            assert provider.provide(_var(default="demo"), {}) == "acme"
        kwargs = mock_ask.call_args.kwargs
        assert kwargs["default"] == "demo"
        assert "choices" not in kwargs

    @pytest.mark.unit
    def test_string_without_default(self, provider):
        with patch("stencil.prompt.Prompt.ask", return_value="x") as mock_ask:
            provider.provide(_var(default=""), {})
        assert "default" not in mock_ask.call_args.kwargs

    @pytest.mark.unit
    def test_string_choices(self, provider):
        with patch("stencil.prompt.Prompt.ask", return_value="b") as mock_ask:
            assert provider.provide(_var(default="a", choices=["a", "b"]), {}) == "b"
        assert mock_ask.call_args.kwargs["choices"] == ["a", "b"]

    @pytest.mark.unit
    def test_reasks_until_valid(self, provider, output):
        variable = _var(default="", pattern="^[a-z]+$")
        with patch("stencil.prompt.Prompt.ask", side_effect=["BAD", "good"]) as mock_ask:
            assert provider.provide(variable, {}) == "good"
        assert mock_ask.call_count == 2
        assert "value outside constraints" in output.getvalue()

    @pytest.mark.unit
    def test_boolean(self, provider):
        with patch("stencil.prompt.Confirm.ask", return_value=True) as mock_ask:
            assert provider.provide(_var(default=False), {}) is True
        assert mock_ask.call_args.kwargs["default"] is False

    @pytest.mark.unit
    def test_integer_range(self, provider):
        variable = _var(default=5, range=[1, 10])
        with patch("stencil.prompt.IntPrompt.ask", side_effect=[99, 7]) as mock_ask:
            assert provider.provide(variable, {}) == 7
        assert mock_ask.call_count == 2

    @pytest.mark.unit
    def test_array(self, provider, output):
        variable = _var(default=["a"], choices=["a", "b", "c"])
        with patch("stencil.prompt.Prompt.ask", side_effect=["a, z", "a, c"]) as mock_ask:
            assert provider.provide(variable, {}) == ["a", "c"]
        assert mock_ask.call_args.kwargs["default"] == "a"
        assert "Choose any of: a, b, c" in output.getvalue()
