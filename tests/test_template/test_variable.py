"""Unit tests for variable declarations (stencil.template.variable).

Tests cover:
- Shape selection from the type of ``default``
- Schema errors (missing fields, foreign fields, wrong types)
- Declaration invariants (choices, pattern, range)
- Forward references in conditions
- Variable.check and Variable.parse_text
"""

from __future__ import annotations

import pytest

from stencil.template import (
    CompileError,
    InvalidVariableCause,
    SchemaError,
    VariableKind,
    VariableValidationError,
    create_environment,
)
from stencil.template.variable import (
    ArrayShape,
    BooleanShape,
    IntegerShape,
    StringShape,
    parse_variable,
    parse_variables,
)


@pytest.fixture
def env():
    return create_environment(strict=False)


def _parse(env, **fields):
    return parse_variable("var", {"prompt": "Value?", **fields}, env)


# ---------------------------------------------------------------------------
# Shape selection
# ---------------------------------------------------------------------------


class TestShapeSelection:
    @pytest.mark.unit
    def test_string(self, env):
        var = _parse(env, default="demo")
        assert isinstance(var.shape, StringShape)
        assert var.kind is VariableKind.STRING
        assert var.default == "demo"
        assert var.choices is None

    @pytest.mark.unit
    def test_array(self, env):
        var = _parse(env, default=["a"], choices=["a", "b"])
        assert isinstance(var.shape, ArrayShape)
        assert var.kind is VariableKind.ARRAY
        assert var.choices == ["a", "b"]

    @pytest.mark.unit
    def test_integer(self, env):
        var = _parse(env, default=3, range=[1, 5])
        assert isinstance(var.shape, IntegerShape)
        assert var.range == (1, 5)

    @pytest.mark.unit
    def test_integer_without_range(self, env):
        var = _parse(env, default=3)
        assert var.range is None

    @pytest.mark.unit
    def test_boolean_is_not_integer(self, env):
        var = _parse(env, default=True)
        assert isinstance(var.shape, BooleanShape)
        assert var.kind is VariableKind.BOOLEAN

    @pytest.mark.unit
    def test_prompt_and_name_kept(self, env):
        var = parse_variable("project_name", {"prompt": "Name?", "default": "x"}, env)
        assert var.name == "project_name"
        assert var.prompt == "Name?"
        assert var.condition is None


# ---------------------------------------------------------------------------
# Schema errors
# ---------------------------------------------------------------------------


class TestSchemaErrors:
    @pytest.mark.unit
    def test_not_a_table(self, env):
        with pytest.raises(SchemaError, match="expected a table"):
            parse_variable("var", "oops", env)

    @pytest.mark.unit
    def test_missing_prompt(self, env):
        with pytest.raises(SchemaError, match="prompt"):
            parse_variable("var", {"default": "x"}, env)

    @pytest.mark.unit
    def test_missing_default(self, env):
        with pytest.raises(SchemaError, match="default"):
            _parse(env)

    @pytest.mark.unit
    def test_unsupported_default_type(self, env):
        with pytest.raises(SchemaError, match="float"):
            _parse(env, default=1.5)

    @pytest.mark.unit
    def test_foreign_field_for_shape(self, env):
        with pytest.raises(SchemaError) as exc_info:
            _parse(env, default="x", range=[1, 2])
        assert exc_info.value.variable == "var"
        assert "range" in str(exc_info.value)

    @pytest.mark.unit
    def test_array_requires_choices(self, env):
        with pytest.raises(SchemaError, match="choices"):
            _parse(env, default=["a"])

    @pytest.mark.unit
    def test_array_items_must_be_strings(self, env):
        with pytest.raises(SchemaError):
            _parse(env, default=[1], choices=["1"])

    @pytest.mark.unit
    def test_range_needs_two_bounds(self, env):
        with pytest.raises(SchemaError):
            _parse(env, default=2, range=[1, 2, 3])

    @pytest.mark.unit
    def test_condition_must_be_string(self, env):
        with pytest.raises(SchemaError, match="condition"):
            _parse(env, default="x", condition=True)

    @pytest.mark.unit
    def test_schema_error_is_load_error(self, env):
        from stencil.template import LoadError

        with pytest.raises(LoadError):
            parse_variable("var", {"prompt": 1, "default": "x"}, env)


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class TestInvariants:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "fields, cause",
        [
            (
                {"default": "a", "choices": ["a"], "pattern": "^a$"},
                InvalidVariableCause.PATTERN_WITH_CHOICES,
            ),
            ({"default": "", "choices": []}, InvalidVariableCause.EMPTY_CHOICES),
            ({"default": "z", "choices": ["a", "b"]}, InvalidVariableCause.DEFAULT_OUTSIDE_CHOICES),
            ({"default": "ABC", "pattern": "^[a-z]+$"}, InvalidVariableCause.DEFAULT_MISMATCH_PATTERN),
            ({"default": [], "choices": []}, InvalidVariableCause.EMPTY_CHOICES),
            ({"default": ["c"], "choices": ["a"]}, InvalidVariableCause.DEFAULT_OUTSIDE_CHOICES),
            ({"default": 5, "range": [5, 5]}, InvalidVariableCause.UNREASONABLE_RANGE),
            ({"default": 5, "range": [9, 1]}, InvalidVariableCause.UNREASONABLE_RANGE),
            ({"default": 9, "range": [1, 3]}, InvalidVariableCause.DEFAULT_OUTSIDE_RANGE),
        ],
    )
    def test_violations(self, env, fields, cause):
        with pytest.raises(VariableValidationError) as exc_info:
            _parse(env, **fields)
        assert exc_info.value.cause is cause
        assert exc_info.value.variable == "var"

    @pytest.mark.unit
    def test_empty_default_allowed_with_choices(self, env):
        var = _parse(env, default="", choices=["a", "b"])
        assert var.default == ""

    @pytest.mark.unit
    def test_empty_default_allowed_with_pattern(self, env):
        var = _parse(env, default="", pattern="^[a-z]+$")
        assert var.regex is not None

    @pytest.mark.unit
    def test_range_bounds_inclusive(self, env):
        assert _parse(env, default=1, range=[1, 3]).default == 1
        assert _parse(env, default=3, range=[1, 3]).default == 3

    @pytest.mark.unit
    def test_pattern_is_searched(self, env):
        var = _parse(env, default="my-app", pattern="app")
        assert var.default == "my-app"

    @pytest.mark.unit
    def test_invalid_pattern_is_compile_error(self, env):
        with pytest.raises(CompileError, match="pattern"):
            _parse(env, default="", pattern="(")


# ---------------------------------------------------------------------------
# Conditions and ordering
# ---------------------------------------------------------------------------


class TestParseVariables:
    @pytest.mark.unit
    def test_preserves_declaration_order(self, env):
        declarations = {
            "zeta": {"prompt": "z", "default": "z"},
            "alpha": {"prompt": "a", "default": "a"},
            "mid": {"prompt": "m", "default": 1},
        }
        assert list(parse_variables(declarations, env)) == ["zeta", "alpha", "mid"]

    @pytest.mark.unit
    def test_condition_on_earlier_variable(self, env):
        declarations = {
            "use_db": {"prompt": "DB?", "default": True},
            "db_name": {"prompt": "Name?", "default": "app", "condition": "use_db"},
        }
        variables = parse_variables(declarations, env)
        assert variables["db_name"].condition.names == {"use_db"}

    @pytest.mark.unit
    def test_condition_on_later_variable_rejected(self, env):
        declarations = {
            "db_name": {"prompt": "Name?", "default": "app", "condition": "use_db"},
            "use_db": {"prompt": "DB?", "default": True},
        }
        with pytest.raises(VariableValidationError) as exc_info:
            parse_variables(declarations, env)
        assert exc_info.value.cause is InvalidVariableCause.FORWARD_REFERENCE
        assert exc_info.value.variable == "db_name"

    @pytest.mark.unit
    def test_condition_on_itself_rejected(self, env):
        declarations = {"loop": {"prompt": "?", "default": True, "condition": "loop"}}
        with pytest.raises(VariableValidationError) as exc_info:
            parse_variables(declarations, env)
        assert exc_info.value.cause is InvalidVariableCause.FORWARD_REFERENCE

    @pytest.mark.unit
    def test_condition_on_unknown_name_allowed(self, env):
        declarations = {"x": {"prompt": "?", "default": "", "condition": "_git is defined"}}
        assert "x" in parse_variables(declarations, env)

    @pytest.mark.unit
    def test_malformed_condition(self, env):
        with pytest.raises(CompileError, match="condition for variable 'var'"):
            _parse(env, default="x", condition="a ==")


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


class TestCheck:
    @pytest.mark.unit
    def test_valid_values_returned_unchanged(self, env):
        assert _parse(env, default="a", choices=["a", "b"]).check("b") == "b"
        assert _parse(env, default=["a"], choices=["a", "b"]).check(["b"]) == ["b"]
        assert _parse(env, default=2, range=[1, 3]).check(3) == 3
        assert _parse(env, default=False).check(True) is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "fields, value",
        [
            ({"default": "a", "choices": ["a", "b"]}, "c"),
            ({"default": "", "pattern": "^[a-z]+$"}, "ABC"),
            ({"default": "x"}, 3),
            ({"default": ["a"], "choices": ["a", "b"]}, ["a", "z"]),
            ({"default": ["a"], "choices": ["a", "b"]}, "a"),
            ({"default": 2, "range": [1, 3]}, 4),
            ({"default": 2}, True),
            ({"default": 2}, "2"),
            ({"default": False}, "yes"),
        ],
    )
    def test_rejected_values(self, env, fields, value):
        with pytest.raises(VariableValidationError) as exc_info:
            _parse(env, **fields).check(value)
        assert exc_info.value.cause is InvalidVariableCause.VALUE_OUTSIDE_CONSTRAINTS


class TestParseText:
    @pytest.mark.unit
    def test_string_unchanged(self, env):
        assert _parse(env, default="").parse_text(" spaced ") == " spaced "

    @pytest.mark.unit
    def test_array_split_on_commas(self, env):
        var = _parse(env, default=[], choices=["a", "b"])
        assert var.parse_text("a, b,,") == ["a", "b"]
        assert var.parse_text("") == []

    @pytest.mark.unit
    def test_integer(self, env):
        assert _parse(env, default=0).parse_text(" 42 ") == 42

    @pytest.mark.unit
    def test_integer_invalid(self, env):
        with pytest.raises(VariableValidationError):
            _parse(env, default=0).parse_text("forty")

    @pytest.mark.unit
    @pytest.mark.parametrize("text, expected", [("Yes", True), ("on", True), ("0", False), ("n", False)])
    def test_boolean(self, env, text, expected):
        assert _parse(env, default=False).parse_text(text) is expected

    @pytest.mark.unit
    def test_boolean_invalid(self, env):
        with pytest.raises(VariableValidationError):
            _parse(env, default=False).parse_text("maybe")
