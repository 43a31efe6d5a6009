"""File entry tree: the template directory as a depth-ordered model.

The walk starts at the resolved base directory and visits children in
lexicographic order.  Every surviving entry is filed under its depth (number
of path components relative to the template root).  Iterating the tree yields
depths in ascending order and, within a depth, entries in discovery order.
That ordering is part of the contract: a directory is always produced before
anything beneath it, whatever traversal strategy built the tree.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from jinja2 import Environment, Template, TemplateSyntaxError

from .errors import CompileError, StencilIOError
from .metadata import Metadata

logger = logging.getLogger(__name__)


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Entry:
    """A file or directory discovered under the template root.

    ``path`` is POSIX-style and relative to the template root; the root itself
    is the empty string.
    """

    path: str
    kind: EntryKind
    depth: int

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    def source(self, root: Path) -> Path:
        return root / self.path if self.path else root


@dataclass
class EntryTree:
    """Depth-keyed entries plus the text templates registered while walking."""

    levels: dict[int, list[Entry]] = field(default_factory=dict)
    sources: dict[str, str] = field(default_factory=dict)

    def add(self, entry: Entry) -> None:
        self.levels.setdefault(entry.depth, []).append(entry)

    def __iter__(self) -> Iterator[Entry]:
        for depth in sorted(self.levels):
            yield from self.levels[depth]

    def __len__(self) -> int:
        return sum(len(level) for level in self.levels.values())

    def paths(self) -> list[str]:
        return [entry.path for entry in self]

    def compile(self, environment: Environment) -> dict[str, Template]:
        """Compile every registered text template.

        Raises:
            CompileError: naming the file whose syntax is invalid.
        """
        compiled: dict[str, Template] = {}
        for name in self.sources:
            try:
                compiled[name] = environment.get_template(name)
            except TemplateSyntaxError as e:
                raise CompileError(f"template '{name}'", f"line {e.lineno}: {e.message}") from e
        return compiled


def build_entry_tree(
    root: Path,
    base: Path,
    metadata: Metadata,
    *,
    ignore: Iterable[str] = (),
    prune_excluded: bool = False,
) -> EntryTree:
    """Walk *base* and classify every entry relative to *root*.

    Files containing a NUL byte (or that are not UTF-8) are binary: their
    path is appended to ``metadata.copy_patterns`` so they are copied verbatim.
    Other files that match a copy pattern are left alone; everything else is
    registered as a renderable template.

    Args:
        root: Template root (the directory holding the definition file).
        base: Resolved base directory, equal to or beneath *root*.
        metadata: Template metadata; its copy set may grow.
        ignore: Root-relative paths that are never part of the output.
        prune_excluded: Skip the whole subtree of an excluded directory
            instead of testing each descendant on its own.

    Raises:
        StencilIOError: A directory or file could not be read.
    """
    tree = EntryTree()
    ignored = set(ignore)
    base_rel = _relative(base, root)
    tree.add(Entry(path=base_rel, kind=EntryKind.DIRECTORY, depth=_depth(base_rel)))
    _walk(base, root, metadata, tree, ignored, prune_excluded)
    logger.debug(
        "Built entry tree: %d entries, %d templates, %d copy patterns",
        len(tree),
        len(tree.sources),
        len(metadata.copy_patterns),
    )
    return tree


def _walk(
    directory: Path,
    root: Path,
    metadata: Metadata,
    tree: EntryTree,
    ignored: set[str],
    prune_excluded: bool,
) -> None:
    try:
        children = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as e:
        raise StencilIOError("read directory", directory, e.strerror or str(e)) from e

    for child in children:
        path = Path(child.path)
        rel = _relative(path, root)
        if rel in ignored:
            continue
        is_dir = child.is_dir(follow_symlinks=False)
        if metadata.exclude_patterns.matches(rel):
            logger.debug("Excluded %s", rel)
            if is_dir and not prune_excluded:
                _walk(path, root, metadata, tree, ignored, prune_excluded)
            continue

        if is_dir:
            tree.add(Entry(path=rel, kind=EntryKind.DIRECTORY, depth=_depth(rel)))
            _walk(path, root, metadata, tree, ignored, prune_excluded)
        elif child.is_file():
            _classify_file(path, rel, metadata, tree)
            tree.add(Entry(path=rel, kind=EntryKind.FILE, depth=_depth(rel)))
        else:
            logger.warning("Skipping %s: not a regular file or directory", rel)


def _classify_file(path: Path, rel: str, metadata: Metadata, tree: EntryTree) -> None:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise StencilIOError("read file", path, e.strerror or str(e)) from e

    text = None if b"\x00" in data else _decode(data)
    if text is None:
        logger.debug("Binary file %s will be copied verbatim", rel)
        metadata.copy_patterns.push_literal(rel)
    elif not metadata.copy_patterns.matches(rel):
        tree.sources[rel] = text


def _decode(data: bytes) -> str | None:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _relative(path: Path, root: Path) -> str:
    rel = PurePosixPath(path.relative_to(root).as_posix())
    return "" if rel == PurePosixPath(".") else str(rel)


def _depth(rel: str) -> int:
    return len(PurePosixPath(rel).parts) if rel else 0
