"""Template engine: load a parameterized template, resolve its variables,
render it into a staging area and merge the result into a destination.

Quick usage::

    from stencil.template import DefaultInputProvider, OutputManager, Template

    template = Template.load("path/to/stencil.toml")
    context = template.resolve(DefaultInputProvider())
    staged = template.generate(context)
    result = OutputManager(lambda path: False).apply(staged, "./out")
"""

from stencil.template.condition import Condition
from stencil.template.context import (
    DefaultInputProvider,
    InputProvider,
    PresetInputProvider,
    RenderContext,
    resolve_variables,
)
from stencil.template.entries import Entry, EntryKind, EntryTree, build_entry_tree
from stencil.template.environment import create_environment
from stencil.template.errors import (
    BasenameInvariantError,
    CompileError,
    InvalidVariableCause,
    LoadError,
    MergeError,
    OutputConsumedError,
    PathResolutionError,
    ReadOnlyKeyError,
    RenderError,
    SchemaError,
    StencilError,
    StencilIOError,
    VariableValidationError,
)
from stencil.template.metadata import GlobPatterns, Metadata
from stencil.template.output import ApplyResult, ConflictResolver, OutputManager, StagedOutput
from stencil.template.template import DEFINITION_NAME, Template
from stencil.template.variable import Variable, VariableKind

__all__ = [
    "ApplyResult",
    "BasenameInvariantError",
    "CompileError",
    "Condition",
    "ConflictResolver",
    "DEFINITION_NAME",
    "DefaultInputProvider",
    "Entry",
    "EntryKind",
    "EntryTree",
    "GlobPatterns",
    "InputProvider",
    "InvalidVariableCause",
    "LoadError",
    "MergeError",
    "Metadata",
    "OutputConsumedError",
    "OutputManager",
    "PathResolutionError",
    "PresetInputProvider",
    "ReadOnlyKeyError",
    "RenderContext",
    "RenderError",
    "SchemaError",
    "StagedOutput",
    "StencilError",
    "StencilIOError",
    "Template",
    "Variable",
    "VariableKind",
    "VariableValidationError",
    "build_entry_tree",
    "create_environment",
    "resolve_variables",
]
