"""Template metadata: the ``__double_underscore__`` keys of ``stencil.toml``."""

from __future__ import annotations

import fnmatch
import glob
import re
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator

from .errors import LoadError

_URL_PATTERN = re.compile(
    r"https?://(www\.)?[-a-zA-Z0-9@:%._+~#=]{1,256}\.[a-zA-Z0-9()]{1,6}\b"
    r"([-a-zA-Z0-9()@:%_+.~#?&/=]*)"
)


def is_metadata_key(key: str) -> bool:
    """Return True for reserved ``__key__`` names."""
    return len(key) > 4 and key.startswith("__") and key.endswith("__")


# ---------------------------------------------------------------------------
# Glob pattern sets
# ---------------------------------------------------------------------------


class GlobPatterns:
    """An ordered set of glob patterns matched against root-relative paths.

    Matching follows ``fnmatch`` semantics on POSIX-style paths, so ``*`` may
    cross separators.  A ``**/`` segment additionally matches zero
    directories, which lets ``**/*.png`` match a top-level ``logo.png``.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns: list[str] = []
        for pattern in patterns:
            self.push(pattern)

    @classmethod
    def coerce(cls, value: Any) -> GlobPatterns:
        if isinstance(value, cls):
            return value
        if isinstance(value, list) and all(isinstance(p, str) for p in value):
            return cls(value)
        raise ValueError("expected a list of glob pattern strings")

    def push(self, pattern: str) -> None:
        if pattern not in self._patterns:
            self._patterns.append(pattern)

    def push_literal(self, path: str) -> None:
        """Add a pattern that matches exactly *path*."""
        self.push(glob.escape(path))

    def matches(self, path: str) -> bool:
        return any(_match(path, pattern) for pattern in self._patterns)

    def __iter__(self) -> Iterator[str]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._patterns

    def __repr__(self) -> str:
        return f"GlobPatterns({self._patterns!r})"


def _match(path: str, pattern: str) -> bool:
    if fnmatch.fnmatchcase(path, pattern):
        return True
    if pattern.startswith("**/"):
        return _match(path, pattern[3:])
    if "/**/" in pattern:
        return _match(path, pattern.replace("/**/", "/", 1))
    return False


Patterns = Annotated[GlobPatterns, BeforeValidator(GlobPatterns.coerce)]


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class Metadata(BaseModel):
    """Template metadata and the copy/exclude pattern sets it owns."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    name: str = Field(..., alias="__name__")
    author: str = Field(..., alias="__author__")
    url: str | None = Field(default=None, alias="__url__")
    description: str | None = Field(default=None, alias="__description__")
    base: Path = Field(default=Path("."), alias="__base__", description="Relative to the template root")
    copy_patterns: Patterns = Field(default_factory=GlobPatterns, alias="__copy__")
    exclude_patterns: Patterns = Field(default_factory=GlobPatterns, alias="__exclude__")

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        if value is not None and not _URL_PATTERN.match(value):
            raise ValueError(f"invalid url: {value!r}")
        return value

    @classmethod
    def from_table(cls, table: Mapping[str, Any], path: Path | None = None) -> Metadata:
        """Validate the metadata keys of a definition table.

        Raises:
            LoadError: A required key is missing, a value has the wrong type,
                or a reserved key is not a known metadata field.
        """
        fields = {key: value for key, value in table.items() if is_metadata_key(key)}
        try:
            return cls.model_validate(fields)
        except ValidationError as e:
            problems = "; ".join(_describe(err) for err in e.errors())
            raise LoadError(f"invalid template metadata in {path or 'definition'}: {problems}", path) from e


def _describe(err: Mapping[str, Any]) -> str:
    loc = ".".join(str(part) for part in err["loc"])
    if err["type"] == "extra_forbidden":
        return f"unknown metadata field '{loc}'"
    if err["type"] == "missing":
        return f"missing metadata field '{loc}'"
    return f"{loc}: {err['msg']}"
