"""Hook script execution.

A template may ship two executable scripts at its root: a *before* hook that
runs in the template root before any variable is asked for, and an *after*
hook that is first rendered as a template against the final context and then
runs inside the applied output.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment

from .template.errors import RenderError, StencilError
from .utils import run_command

logger = logging.getLogger(__name__)

_SCRIPT_MODE = 0o744


class HookError(StencilError):
    """Raised when a hook script cannot be read, rendered or started."""

    def __init__(self, script: Path, reason: str) -> None:
        self.script = script
        super().__init__(f"failed to run hook script '{script}': {reason}")


class HookRunner(Protocol):
    def run(self, script: Path, cwd: Path) -> bool: ...


class SubprocessHookRunner:
    """Runs hooks as child processes attached to the current terminal."""

    def run(self, script: Path, cwd: Path) -> bool:
        """Execute *script* in *cwd* and report whether it exited with 0.

        Raises:
            HookError: The script could not be started.
        """
        logger.info("Running hook %s in %s", script, cwd)
        try:
            returncode, _, _ = run_command([str(script)], cwd=cwd, timeout=None, capture=False)
        except OSError as e:
            raise HookError(script, e.strerror or str(e)) from e
        if returncode != 0:
            logger.warning("Hook %s exited with status %d", script, returncode)
        return returncode == 0


def render_script(
    script: Path, environment: Environment, context: Mapping[str, Any]
) -> Path:
    """Render *script* as a template into an executable temporary file.

    The caller owns the returned file and should unlink it after running.

    Raises:
        HookError: The script could not be read or written.
        RenderError: The script failed to render.
    """
    try:
        source = script.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise HookError(script, str(e)) from e
    try:
        rendered = environment.from_string(source).render(dict(context))
    except Exception as e:
        raise RenderError(f"hook script '{script.name}'", str(e)) from e

    fd, tmp_name = tempfile.mkstemp(prefix=f".{script.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp:
            tmp.write(rendered)
        os.chmod(tmp_name, _SCRIPT_MODE)
    except OSError as e:
        os.unlink(tmp_name)
        raise HookError(script, str(e)) from e
    return Path(tmp_name)
