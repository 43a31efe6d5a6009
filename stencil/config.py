"""Stencil process configuration.

Typed settings for the command-line front end: where remote templates are
cached and which file names a template uses for its definition and hooks.
All settings are a Pydantic v2 model so they validate at construction time
and round-trip through JSON without boiler-plate.  A ``Config`` is built once
by the CLI and passed to the components that need it.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .template.errors import StencilError

DEFAULT_PREFIX = Path.home() / ".stencil"


class ConfigError(StencilError):
    """Raised when the persisted configuration cannot be read or written."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"configuration file '{path}': {reason}")


class Config(BaseModel):
    """Global stencil configuration."""

    prefix: Path = Field(
        default=DEFAULT_PREFIX, description="Directory that caches cloned templates"
    )
    definition_name: str = Field(default="stencil.toml", min_length=1)
    before_hook: str = Field(default="stencil.before.hook", min_length=1)
    after_hook: str = Field(default="stencil.after.hook", min_length=1)
    staging_prefix: str = Field(default="stencil-")

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def config_path(self) -> Path:
        """Default location of the persisted configuration file."""
        return self.prefix / "config.json"

    @property
    def hook_names(self) -> tuple[str, str]:
        return (self.before_hook, self.after_hook)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<prefix>/config.json``.

        Returns:
            The path where the file was written.
        """
        target = path or self.config_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional): STENCIL_PREFIX,
        STENCIL_DEFINITION_NAME.
        """
        kwargs: dict[str, object] = {}
        if os.environ.get("STENCIL_PREFIX"):
            kwargs["prefix"] = Path(os.environ["STENCIL_PREFIX"]).expanduser()
        if os.environ.get("STENCIL_DEFINITION_NAME"):
            kwargs["definition_name"] = os.environ["STENCIL_DEFINITION_NAME"]
        return cls(**kwargs)

    @classmethod
    def init(cls) -> "Config":
        """Load ``<prefix>/config.json``, writing the defaults on first run.

        The prefix comes from the environment (or the default) so that the
        configuration file itself can be relocated.

        Raises:
            ConfigError: The file is unreadable, unwritable or not a valid
                configuration.
        """
        config = cls.from_env()
        path = config.config_path
        try:
            if path.exists():
                config = cls.load(path)
            else:
                config.save()
            config.ensure_directories()
        except ValidationError as e:
            raise ConfigError(path, f"{e.error_count()} validation error(s)") from e
        except OSError as e:
            raise ConfigError(path, e.strerror or str(e)) from e
        return config

    def ensure_directories(self) -> None:
        """Create the template cache directory."""
        self.prefix.mkdir(parents=True, exist_ok=True)
