"""Template source resolution.

A *source* is what the user types on the command line:

* ``github:owner/repo[/sub/dir]`` (also ``gitlab:`` and ``bitbucket:``) --
  cloned into ``<prefix>/<owner>/<repo>`` on first use, offered a fast-forward
  pull afterwards.
* ``@:sub/dir`` -- a template already stored under the prefix.
* anything else -- a local path.

The resolver returns the path of the definition file; a directory source has
the configured definition name appended.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from . import git
from .config import Config
from .template.errors import StencilError

logger = logging.getLogger(__name__)

GIT_HOSTS: dict[str, str] = {
    "github": "github.com",
    "gitlab": "gitlab.com",
    "bitbucket": "bitbucket.org",
}

_GIT_SOURCE = re.compile(
    r"^(?P<host>github|gitlab|bitbucket):(?P<owner>[a-zA-Z0-9._-]+)/(?P<repo>[a-zA-Z0-9._-]+)"
    r"(/(?P<path>[^/]+(/[^/]+)*))?$"
)
_PREFIX_SOURCE = re.compile(r"^@:(?P<path>[^/]+(/[^/]+)*)$")


class SourceError(StencilError):
    """Raised when a template source cannot be resolved to a local path."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"failed to resolve source '{source}': {reason}")


class SourceResolver(Protocol):
    def resolve(self, source: str) -> Path: ...


@dataclass(frozen=True)
class GitSource:
    host: str
    owner: str
    repo: str
    path: PurePosixPath | None = None

    @property
    def url(self) -> str:
        return f"https://{GIT_HOSTS[self.host]}/{self.owner}/{self.repo}.git"

    @classmethod
    def parse(cls, source: str) -> GitSource | None:
        match = _GIT_SOURCE.match(source)
        if match is None:
            return None
        path = match.group("path")
        return cls(
            host=match.group("host"),
            owner=match.group("owner"),
            repo=match.group("repo"),
            path=PurePosixPath(path) if path else None,
        )

    def __str__(self) -> str:
        return self.url


class DefaultSourceResolver:
    """Resolves git, prefix and local sources.

    Args:
        config: Supplies the prefix directory and definition file name.
        confirm: Asked before pulling an outdated clone; defaults to always
            pulling.
    """

    def __init__(self, config: Config, confirm: Callable[[str], bool] | None = None) -> None:
        self.config = config
        self.confirm = confirm or (lambda question: True)

    def resolve(self, source: str) -> Path:
        """Return the path of the definition file for *source*.

        Raises:
            SourceError: The source does not exist or git failed.
        """
        git_source = GitSource.parse(source)
        if git_source is not None:
            path = self._resolve_git(source, git_source)
        else:
            prefix_match = _PREFIX_SOURCE.match(source)
            if prefix_match is not None:
                path = self.config.prefix.joinpath(*prefix_match.group("path").split("/"))
            else:
                path = Path(source).expanduser()

        try:
            path = path.resolve(strict=True)
        except (OSError, RuntimeError) as e:
            raise SourceError(source, f"path does not exist: {path}") from e
        if path.is_dir():
            path = path / self.config.definition_name
        logger.debug("Resolved source %s -> %s", source, path)
        return path

    def _resolve_git(self, source: str, git_source: GitSource) -> Path:
        if not git.check_installed():
            raise SourceError(source, "git is not installed; required for git sources")
        dst = self.config.prefix / git_source.owner / git_source.repo
        try:
            if dst.exists():
                logger.info("Repository already exists: %s; checking for updates", dst)
                if git.check_fastforwardable(dst) and self.confirm("Outdated. Pull to update?"):
                    git.pull(dst)
            else:
                git.clone(git_source.url, dst)
        except git.GitError as e:
            raise SourceError(source, str(e)) from e
        if git_source.path is not None:
            return dst.joinpath(*git_source.path.parts)
        return dst
