"""Staged output and its merge into a destination directory.

A :class:`StagedOutput` is consumed exactly once: either merged into a
destination by :meth:`OutputManager.apply` or thrown away by
:meth:`OutputManager.dispose`.  A second terminal call (of either kind) raises
:class:`OutputConsumedError`.
"""

from __future__ import annotations

import errno
import logging
import shutil
from collections.abc import Callable
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field, computed_field

from .errors import MergeError, OutputConsumedError, StencilIOError

logger = logging.getLogger(__name__)

ConflictResolver = Callable[[PurePosixPath], bool]


class ApplyResult(BaseModel):
    """Per-file outcome counts of a merge.  Directories are never counted."""

    created: int = Field(default=0, ge=0)
    overwritten: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> int:
        return self.created + self.overwritten + self.skipped

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.created, self.overwritten, self.skipped)


# ---------------------------------------------------------------------------
# StagedOutput
# ---------------------------------------------------------------------------


class StagedOutput:
    """An ephemeral rendered tree plus the rendered name of the base entry.

    Attributes:
        path: The staging directory.
        basename: Rendered, root-relative name of the base entry (empty when
            the base is the template root itself).
    """

    def __init__(self, path: Path, basename: str = "") -> None:
        self.path = path
        self.basename = basename
        self._consumed = False

    @property
    def base_path(self) -> Path:
        return self.path / self.basename if self.basename else self.path

    @property
    def consumed(self) -> bool:
        return self._consumed

    def relative_paths(self) -> set[str]:
        """Every file and directory below the staging root, POSIX-style."""
        return {p.relative_to(self.path).as_posix() for p in self.path.rglob("*")}

    def consume(self) -> None:
        if self._consumed:
            raise OutputConsumedError(f"staged output at {self.path} was already consumed")
        self._consumed = True

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else "pending"
        return f"StagedOutput({str(self.path)!r}, basename={self.basename!r}, {state})"


# ---------------------------------------------------------------------------
# OutputManager
# ---------------------------------------------------------------------------


class OutputManager:
    """Merges or discards staged output.

    Args:
        resolver: Called with the destination-relative path of every file that
            already exists when ``force`` is false; returning True overwrites
            it.  Defaults to an interactive confirmation prompt.
    """

    def __init__(self, resolver: ConflictResolver | None = None) -> None:
        if resolver is None:
            from ..prompt import confirm_overwrite

            resolver = confirm_overwrite
        self.resolver = resolver

    def apply(self, staged: StagedOutput, dst: str | Path, force: bool = False) -> ApplyResult:
        """Merge *staged* into *dst*, then delete the staging tree.

        Missing files are created; existing files are overwritten when *force*
        is set or the resolver accepts, and left untouched otherwise.

        Raises:
            OutputConsumedError: *staged* was already applied or disposed.
            MergeError: An I/O failure stopped the walk.  Files already
                written stay written; ``error.result`` has the partial counts.
        """
        staged.consume()
        dst_root = Path(dst)
        result = ApplyResult()
        try:
            self._merge(staged.path, dst_root, dst_root, force, result)
        except OSError as e:
            shutil.rmtree(staged.path, ignore_errors=True)
            raise MergeError(
                "apply output to", e.filename or dst_root, e.strerror or str(e), result.model_copy()
            ) from e
        _remove_tree(staged.path)
        logger.info(
            "Applied output to %s: %d created, %d overwritten, %d skipped",
            dst_root,
            result.created,
            result.overwritten,
            result.skipped,
        )
        return result

    def dispose(self, staged: StagedOutput) -> None:
        """Delete the entire staged tree.

        Raises:
            OutputConsumedError: *staged* was already applied or disposed.
            StencilIOError: The tree could not be removed.
        """
        staged.consume()
        _remove_tree(staged.path)
        logger.info("Disposed staged output at %s", staged.path)

    def _merge(
        self, src: Path, dst: Path, dst_root: Path, force: bool, result: ApplyResult
    ) -> None:
        dst.mkdir(parents=True, exist_ok=True)
        for child in sorted(src.iterdir(), key=lambda p: p.name):
            target = dst / child.name
            if child.is_dir():
                self._merge(child, target, dst_root, force, result)
                continue
            if target.is_dir():
                raise IsADirectoryError(
                    errno.EISDIR, "destination is a directory", str(target)
                )
            if not target.exists():
                shutil.copy(child, target)
                result.created += 1
                continue
            rel = PurePosixPath(target.relative_to(dst_root).as_posix())
            if force or self.resolver(rel):
                shutil.copy(child, target)
                result.overwritten += 1
                logger.debug("Overwrote %s", rel)
            else:
                result.skipped += 1
                logger.debug("Skipped %s", rel)


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise StencilIOError("remove staged output", path, e.strerror or str(e)) from e
