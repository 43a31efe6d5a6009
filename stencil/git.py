"""Git operations used to fetch and refresh remote templates.

All commands run synchronously and raise :class:`GitError` (carrying the
command line and stderr) when git exits non-zero.
"""

from __future__ import annotations

from pathlib import Path

from .utils import run_command


class GitError(Exception):
    """Raised when a git operation fails."""

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        self.command = command
        self.stderr = stderr
        super().__init__(message)


def run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: int | None = 300,
    capture: bool = True,
) -> str:
    """Run a git command and return its stdout.

    Raises GitError if git is missing, times out, or exits non-zero.
    """
    cmd = ["git", *args]
    cmd_str = " ".join(cmd)

    try:
        returncode, stdout, stderr = run_command(cmd, cwd=cwd, timeout=timeout, capture=capture)
    except OSError as e:
        raise GitError(f"Failed to execute git: {e}", command=cmd_str) from e

    if returncode == -1 and stderr.startswith("Command timed out"):
        raise GitError(stderr, command=cmd_str, stderr=stderr)
    if returncode != 0:
        raise GitError(
            f"Git command failed (exit {returncode}): {cmd_str}\n{stderr}",
            command=cmd_str,
            stderr=stderr,
        )
    return stdout


def check_installed() -> bool:
    """Return True when a working ``git`` executable is on PATH."""
    try:
        run_git("--version", timeout=30)
    except GitError:
        return False
    return True


def clone(url: str, dst: Path) -> Path:
    """Clone *url* into *dst*, streaming git's progress to the terminal."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    run_git("clone", url, str(dst), timeout=None, capture=False)
    return dst


def pull(repo: Path) -> None:
    run_git("pull", cwd=repo, timeout=None, capture=False)


def check_fastforwardable(repo: Path) -> bool:
    """Fetch remote refs and report whether ``repo`` is behind its upstream."""
    run_git("remote", "update", cwd=repo)
    status = run_git("status", "-uno", cwd=repo)
    return "can be fast-forwarded" in status


def obtain_identity() -> dict[str, str]:
    """Read ``user.name`` / ``user.email`` from the global git config.

    Missing keys are omitted from the result.
    """
    identity: dict[str, str] = {}
    for key, name in (("name", "user.name"), ("email", "user.email")):
        try:
            value = run_git("config", "--global", name, timeout=30)
        except GitError:
            continue
        if value:
            identity[key] = value
    return identity
