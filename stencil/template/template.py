"""Template loading (definition file -> model) and rendering (model -> staging)."""

from __future__ import annotations

import logging
import shutil
import tempfile
import tomllib
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath
from typing import Any

from jinja2 import Environment, Template as JinjaTemplate, TemplateSyntaxError

from .context import InputProvider, RenderContext, resolve_variables
from .entries import Entry, EntryTree, build_entry_tree
from .environment import create_environment
from .errors import (
    BasenameInvariantError,
    CompileError,
    LoadError,
    PathResolutionError,
    RenderError,
    StencilIOError,
)
from .metadata import Metadata, is_metadata_key
from .output import StagedOutput
from .variable import Variable, parse_variables

logger = logging.getLogger(__name__)

DEFINITION_NAME = "stencil.toml"
STAGING_PREFIX = "stencil-"


class Template:
    """A loaded template: metadata, ordered variables and the entry tree.

    Attributes:
        path: Canonical path of the definition file.
        root: Template root (the definition file's directory).
        base: Resolved base directory.
        metadata: Parsed metadata; owns the copy/exclude pattern sets.
        variables: Declarations in source order.
        entries: Depth-ordered entry tree.
        environment: Strict environment used for contents and paths.
    """

    def __init__(
        self,
        path: Path,
        root: Path,
        base: Path,
        metadata: Metadata,
        variables: dict[str, Variable],
        entries: EntryTree,
        environment: Environment,
        *,
        staging_prefix: str = STAGING_PREFIX,
    ) -> None:
        self.path = path
        self.root = root
        self.base = base
        self.metadata = metadata
        self.variables = variables
        self.entries = entries
        self.environment = environment
        self.staging_prefix = staging_prefix
        self._templates = entries.compile(environment)
        self._path_templates = self._compile_paths(entries)

    # -- Loading -------------------------------------------------------------

    @classmethod
    def load(
        cls,
        path: str | Path,
        *,
        definition_name: str = DEFINITION_NAME,
        ignore: Iterable[str] = (),
        prune_excluded: bool = False,
        staging_prefix: str = STAGING_PREFIX,
    ) -> Template:
        """Load a template from its definition file (or containing directory).

        Args:
            path: Definition file, or the directory holding *definition_name*.
            definition_name: File name looked up when *path* is a directory.
            ignore: Extra root-relative paths kept out of the output (hook
                scripts).  The definition file itself is always ignored.
            prune_excluded: Exclude whole subtrees of excluded directories.
            staging_prefix: Prefix of staging directory names.

        Raises:
            LoadError: Missing, unreadable or malformed definition file, or
                invalid metadata.
            SchemaError: A declaration matches no variable shape.
            VariableValidationError: A declaration violates an invariant.
            CompileError: A condition, pattern or template does not compile.
            PathResolutionError: ``__base__`` does not resolve.
            StencilIOError: A template file could not be read.
        """
        path = Path(path)
        if path.is_dir():
            path = path / definition_name
        try:
            path = path.resolve(strict=True)
            contents = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise LoadError(f"definition file not found: {path}", path) from e
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(f"failed to read definition file {path}: {e}", path) from e
        try:
            table = tomllib.loads(contents)
        except tomllib.TOMLDecodeError as e:
            raise LoadError(f"malformed definition file {path}: {e}", path) from e

        metadata = Metadata.from_table(table, path)
        declarations = {k: v for k, v in table.items() if not is_metadata_key(k)}
        variables = parse_variables(declarations, create_environment(strict=False))

        root = path.parent
        base = resolve_base(root, metadata.base)
        ignored = {path.name, *ignore}
        entries = build_entry_tree(
            root, base, metadata, ignore=ignored, prune_excluded=prune_excluded
        )
        environment = create_environment(entries.sources)
        template = cls(
            path,
            root,
            base,
            metadata,
            variables,
            entries,
            environment,
            staging_prefix=staging_prefix,
        )
        logger.info(
            "Loaded template '%s' from %s (%d variables, %d entries)",
            metadata.name,
            path,
            len(variables),
            len(entries),
        )
        return template

    @staticmethod
    def _compile_paths(entries: EntryTree) -> dict[str, JinjaTemplate]:
        # Paths are rendered with their own environment: no loader, same
        # filters, and always strict about undefined names.
        environment = create_environment()
        compiled: dict[str, JinjaTemplate] = {}
        for entry in entries:
            if "{" not in entry.path:
                continue
            try:
                compiled[entry.path] = environment.from_string(entry.path)
            except TemplateSyntaxError as e:
                raise CompileError(f"path '{entry.path}'", e.message or str(e)) from e
        return compiled

    # -- Variables -----------------------------------------------------------

    def resolve(
        self,
        provider: InputProvider,
        injected: Mapping[str, Any] | None = None,
    ) -> RenderContext:
        """Build a render context: *injected* values first, then every variable."""
        return resolve_variables(self.variables, provider, RenderContext(injected))

    # -- Rendering -----------------------------------------------------------

    def render_path(self, raw: str, context: Mapping[str, Any]) -> str:
        """Render a root-relative POSIX path as a template.

        Raises:
            RenderError: Undefined reference or expression failure, naming
                the path.
        """
        template = self._path_templates.get(raw)
        try:
            if template is None:
                if "{" not in raw:
                    return raw
                template = create_environment().from_string(raw)
            return template.render(dict(context))
        except Exception as e:
            raise RenderError(f"path '{raw}'", str(e)) from e

    def generate(self, context: Mapping[str, Any]) -> StagedOutput:
        """Render the entry tree into a fresh staging directory.

        Entries are processed in ascending depth order, so a directory always
        exists before anything is written beneath it.

        Raises:
            RenderError: A path or file failed to render.
            StencilIOError: A read/write/copy failed.
            BasenameInvariantError: No entry corresponded to the base path.

        On ``RenderError``/``StencilIOError`` the partially staged output is
        attached to the exception as ``staged``; disposing it is up to the
        caller.
        """
        try:
            staging = Path(tempfile.mkdtemp(prefix=self.staging_prefix))
        except OSError as e:
            raise StencilIOError("create staging directory", tempfile.gettempdir(), str(e)) from e
        staged = StagedOutput(staging)
        base_rel = _relative(self.base, self.root)
        basename: str | None = None

        try:
            for entry in self.entries:
                rendered = self.render_path(entry.path, context)
                target = _staged_target(staging, rendered, entry)
                if entry.path == base_rel:
                    basename = rendered
                self._stage(entry, target, context)
        except (RenderError, StencilIOError) as e:
            e.staged = staged
            raise

        if basename is None:
            raise BasenameInvariantError(
                f"no staged entry corresponds to base path '{base_rel}'"
            )
        staged.basename = basename
        logger.info("Generated %d entries into %s", len(self.entries), staging)
        return staged

    def _stage(self, entry: Entry, target: Path, context: Mapping[str, Any]) -> None:
        source = entry.source(self.root)
        if entry.is_dir:
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StencilIOError("create directory", target, e.strerror or str(e)) from e
            return

        if self.metadata.copy_patterns.matches(entry.path):
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy(source, target)
            except OSError as e:
                raise StencilIOError("copy file", source, e.strerror or str(e)) from e
            return

        try:
            text = self._templates[entry.path].render(dict(context))
        except Exception as e:
            raise RenderError(f"file '{entry.path}'", str(e)) from e
        # jinja2 normalises line endings to "\n"; CRLF sources stay CRLF.
        if "\r\n" in self.entries.sources[entry.path]:
            text = text.replace("\r\n", "\n").replace("\n", "\r\n")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8", newline="") as fh:
                fh.write(text)
            shutil.copymode(source, target)
        except OSError as e:
            raise StencilIOError("write file", target, e.strerror or str(e)) from e

    def __repr__(self) -> str:
        return f"Template({self.metadata.name!r}, root={str(self.root)!r})"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def resolve_base(root: Path, base: Path) -> Path:
    """Join *base* to *root* and require an existing directory inside it.

    Raises:
        PathResolutionError: The base is absolute, missing, not a directory
            or outside the template root.
    """
    if base.is_absolute():
        raise PathResolutionError(base, "must be relative to the template root")
    try:
        resolved = (root / base).resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise PathResolutionError(base, str(e)) from e
    if not resolved.is_dir():
        raise PathResolutionError(base, "not a directory")
    if resolved != root and root not in resolved.parents:
        raise PathResolutionError(base, "outside the template root")
    return resolved


def _relative(path: Path, root: Path) -> str:
    rel = path.relative_to(root).as_posix()
    return "" if rel == "." else rel


def _staged_target(staging: Path, rendered: str, entry: Entry) -> Path:
    if not rendered:
        if entry.is_file:
            raise RenderError(f"path '{entry.path}'", "rendered to an empty name")
        return staging
    parts = PurePosixPath(rendered).parts
    if PurePosixPath(rendered).is_absolute() or ".." in parts or "" in rendered.split("/"):
        raise RenderError(
            f"path '{entry.path}'", f"rendered name {rendered!r} escapes the output directory"
        )
    return staging.joinpath(*parts)
