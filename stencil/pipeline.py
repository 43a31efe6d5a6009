"""Stencil generation pipeline.

Drives one generation run from a template source to an applied destination:

1. RESOLVE  -- turn the source into a local definition file (git/prefix/path).
2. LOAD     -- parse metadata and variables, build the entry tree.
3. BEFORE   -- optionally run the template's before hook in its root.
4. PROMPT   -- resolve variables in declaration order.
5. GENERATE -- render the tree into a staging directory and show it.
6. APPLY    -- merge into the destination (or dispose), then optionally run
               the rendered after hook inside the applied output.

Usage::

    stencil github:owner/repo ./my-project
    stencil ./templates/python --set project_name=acme --defaults --yes
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Mapping
from datetime import date
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from . import git
from .config import Config
from .hooks import HookRunner, SubprocessHookRunner, render_script
from .sources import DefaultSourceResolver, SourceResolver
from .template import (
    ApplyResult,
    DefaultInputProvider,
    InputProvider,
    OutputManager,
    PresetInputProvider,
    RenderError,
    StencilError,
    StencilIOError,
    Template,
)
from .template.metadata import Metadata
from .utils import (
    build_tree,
    console,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)

logger = logging.getLogger(__name__)


class Pipeline:
    """Runs a single generation from source to destination.

    Every collaborator is injectable so the pipeline can run unattended (and
    be tested) without a terminal, git or real hook scripts.

    Attributes:
        config: Process configuration (prefix, file names).
        resolver: Turns a source string into a definition file path.
        provider: Supplies variable values.
        output: Merges or disposes staged output.
        hooks: Executes hook scripts.
        confirm: Yes/no question callback (apply output, run hooks).
        run_hooks: When false, hook scripts are never offered.
    """

    def __init__(
        self,
        config: Config,
        *,
        resolver: SourceResolver | None = None,
        provider: InputProvider | None = None,
        output: OutputManager | None = None,
        hooks: HookRunner | None = None,
        confirm: Callable[[str], bool] | None = None,
        injected: Mapping[str, Any] | None = None,
        run_hooks: bool = True,
        console: Console = console,
    ) -> None:
        if confirm is None:
            from .prompt import confirm as ask

            confirm = ask
        if provider is None:
            from .prompt import InteractiveInputProvider

            provider = InteractiveInputProvider()
        self.config = config
        self.confirm = confirm
        self.resolver = resolver or DefaultSourceResolver(config, confirm)
        self.provider = provider
        self.output = output or OutputManager()
        self.hooks = hooks or SubprocessHookRunner()
        self.injected = injected
        self.run_hooks = run_hooks
        self.console = console

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self, source: str) -> Template:
        path = self.resolver.resolve(source)
        return Template.load(
            path,
            definition_name=self.config.definition_name,
            ignore=self.config.hook_names,
            staging_prefix=self.config.staging_prefix,
        )

    def run(self, source: str, dst: str | Path, force: bool = False) -> ApplyResult | None:
        """Generate from *source* into *dst*.

        Returns:
            The merge counts, or ``None`` when the user declined to apply.

        Raises:
            StencilError: Any load, resolution, render, I/O or hook failure.
        """
        dst = Path(dst)
        template = self.load(source)
        self._print_metadata(template.metadata)
        if isinstance(self.provider, PresetInputProvider):
            for name in sorted(set(self.provider.presets) - set(template.variables)):
                print_warning(f"Ignoring preset for undeclared variable '{name}'")

        before = template.root / self.config.before_hook
        if self._offer_hook(before):
            self.hooks.run(before, template.root)

        context = template.resolve(self.provider, self._injected_values())

        try:
            staged = template.generate(context)
        except (RenderError, StencilIOError) as e:
            if e.staged is not None and not e.staged.consumed:
                self.output.dispose(e.staged)
            raise

        self.console.print()
        self.console.print(build_tree(staged.base_path, label=staged.basename or dst.name))

        if not self.confirm("Apply output?"):
            self.output.dispose(staged)
            logger.info("Output for %s declined; staging disposed", dst)
            print_warning("Disposed output!")
            return None

        base = dst / staged.basename if staged.basename else dst
        result = self.output.apply(staged, dst, force)
        print_summary_table(
            {
                "Created": str(result.created),
                "Overwritten": str(result.overwritten),
                "Skipped": str(result.skipped),
            },
            title=f"Applied to {dst}",
        )
        print_success("Successfully applied output to destination!")

        after = template.root / self.config.after_hook
        if self._offer_hook(after):
            script = render_script(after, template.environment, context)
            try:
                self.hooks.run(script, base)
            finally:
                script.unlink(missing_ok=True)
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _injected_values(self) -> dict[str, Any]:
        if self.injected is not None:
            return dict(self.injected)
        values: dict[str, Any] = {"_today": date.today().isoformat()}
        if git.check_installed():
            values["_git"] = git.obtain_identity()
        return values

    def _offer_hook(self, script: Path) -> bool:
        if not self.run_hooks or not script.is_file():
            return False
        return self.confirm(f"Run hook script '{script.name}'?")

    def _print_metadata(self, metadata: Metadata) -> None:
        lines = [
            f"You are currently using [bold]{escape(metadata.name)}[/bold]"
            f" by {escape(metadata.author)}."
        ]
        if metadata.description:
            lines.append(escape(metadata.description))
        if metadata.url:
            lines.append(f"> {escape(metadata.url)}")
        self.console.print(Panel("\n".join(lines), title="stencil", expand=False))


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _parse_presets(values: list[str]) -> dict[str, str]:
    presets: dict[str, str] = {}
    for item in values:
        if "=" not in item:
            raise ValueError(f"Must be NAME=VALUE, got: {item!r}")
        name, value = item.split("=", 1)
        presets[name.strip()] = value
    return presets


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``stencil``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="stencil",
        description="Stencil -- generate a project from a parameterized template",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Sources:\n"
            "  ./path/to/template          local directory or stencil.toml\n"
            "  github:owner/repo[/subdir]  also gitlab: and bitbucket:\n"
            "  @:subdir                    template stored under the prefix\n"
        ),
    )
    parser.add_argument("source", help="Source of the template to generate from")
    parser.add_argument(
        "destination",
        nargs="?",
        default=".",
        help="Destination the generated output is applied to (default: .)",
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing files without asking",
    )
    parser.add_argument(
        "--set", "-s",
        dest="presets",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Preset a variable value (repeatable)",
    )
    parser.add_argument(
        "--defaults", "-d",
        action="store_true",
        help="Use declared defaults and keep existing files instead of prompting",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Answer yes to apply/hook confirmations",
    )
    parser.add_argument(
        "--no-hooks",
        action="store_true",
        help="Never run template hook scripts",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        presets = _parse_presets(args.presets)
    except ValueError as e:
        parser.error(str(e))

    from .prompt import InteractiveInputProvider

    fallback: InputProvider = DefaultInputProvider() if args.defaults else InteractiveInputProvider()
    provider: InputProvider = PresetInputProvider(presets, fallback) if presets else fallback
    output = OutputManager((lambda path: False) if args.defaults else None)
    confirm = (lambda question: True) if args.yes else None

    try:
        config = Config.init()
        pipeline = Pipeline(
            config,
            provider=provider,
            output=output,
            confirm=confirm,
            run_hooks=not args.no_hooks,
        )
        pipeline.run(args.source, Path(args.destination), force=args.force)
    except StencilError as e:
        logger.debug("Generation failed", exc_info=True)
        print_error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("[bold red]Aborted.[/bold red]")
        sys.exit(130)


if __name__ == "__main__":
    main()
