"""Cyclopts CLI entrypoint for building and serving livepages sites.

The ``livepages`` console script renders every configured page from its API
data (``build``), keeps rebuilding on source changes (``watch``), serves the
output with live reload (``dev``), and removes generated output (``clean``).
Options can also be supplied through ``LIVEPAGES_*`` environment variables.

Examples
--------
Build the site described by the default configuration:

>>> from livepages.cli import main
>>> main()  # doctest: +SKIP

Serve on a different port:

>>> from livepages.cli import app
>>> app(["dev", "--port", "4000"])  # doctest: +SKIP
"""

from __future__ import annotations

import dataclasses as dc
import logging
import shutil
import threading
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter
from ruamel.yaml.error import YAMLError

from .config import SiteConfig, SiteConfigError, load_site_config
from .errors import LivePagesError
from .orchestrator import BuildOrchestrator, failed_results
from .server import DevServer
from .watcher import ChangeDetector, WatchTarget

DEFAULT_CONFIG = Path("config/site.yaml")

app = App(name="livepages", config=cyclopts.config.Env("LIVEPAGES_", command=False))  # type: ignore[unknown-argument]

ConfigOption = typ.Annotated[
    Path, Parameter(help="Path to site config", env_var="LIVEPAGES_CONFIG")
]
OutputOption = typ.Annotated[
    Path | None,
    Parameter(help="Override the output folder", env_var="LIVEPAGES_OUTPUT_DIR"),
]
VerboseOption = typ.Annotated[bool, Parameter(help="Log debug output")]


def _format_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    if path.is_absolute():
        try:
            return str(path.relative_to(Path.cwd()))
        except ValueError:  # pragma: no cover - fallback for different roots
            return str(path)
    return str(path)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load(config: Path, output_dir: Path | None) -> SiteConfig:
    """Load the site config, exiting with status 1 when it is unusable."""
    try:
        site = load_site_config(config)
    except (OSError, TypeError, SiteConfigError, YAMLError) as exc:
        print(f"invalid configuration {_format_path(config)}: {exc}")
        raise SystemExit(1) from exc
    if output_dir is not None:
        site = dc.replace(site, paths=dc.replace(site.paths, output_dir=output_dir))
    return site


def _run_build(orchestrator: BuildOrchestrator, *, initial: bool) -> int:
    """Rebuild, print one line per page, and return the failure count."""
    results = orchestrator.rebuild(initial=initial) or []
    output_dir = orchestrator.config.paths.output_dir
    for result in results:
        if result.success:
            print(f"wrote {_format_path(output_dir / result.output)}")
        else:
            print(f"failed {result.template}: {result.error}")
    failures = len(failed_results(results))
    print(f"{len(results) - failures} page(s) built, {failures} failed")
    return failures


@app.command(help="Render every configured page into the output directory.")
def build(
    *,
    config: ConfigOption = DEFAULT_CONFIG,
    output_dir: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Clear the output directory and build every page once.

    Raises
    ------
    SystemExit
        With status 1 when the configuration cannot be loaded or any page
        failed to build.
    """
    _configure_logging(verbose)
    orchestrator = BuildOrchestrator(_load(config, output_dir))
    if _run_build(orchestrator, initial=True):
        raise SystemExit(1)


@app.command(help="Build once, then rebuild whenever sources change.")
def watch(
    *,
    config: ConfigOption = DEFAULT_CONFIG,
    output_dir: OutputOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Rebuild on change without serving; stop with Ctrl+C."""
    _configure_logging(verbose)
    site = _load(config, output_dir)
    orchestrator = BuildOrchestrator(site)
    _run_build(orchestrator, initial=True)

    targets = [WatchTarget(site.paths.template_dir)]
    if site.paths.assets_dir is not None:
        targets.append(WatchTarget(site.paths.assets_dir))
    if site.source is not None:
        targets.append(WatchTarget(site.source, is_file=True))
    detector = ChangeDetector(
        targets,
        on_change=lambda _paths: _run_build(orchestrator, initial=False),
        is_busy=lambda: orchestrator.is_building,
        debounce=site.dev.debounce,
        extensions=site.dev.watch_extensions,
        ignored=[site.paths.output_dir],
        max_depth=site.dev.watch_depth,
    )
    detector.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        print("stopped watching")
    finally:
        detector.stop()


@app.command(help="Serve the output directory with live reload.")
def dev(
    *,
    config: ConfigOption = DEFAULT_CONFIG,
    output_dir: OutputOption = None,
    port: typ.Annotated[
        int | None, Parameter(help="Override the dev server port")
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Build, watch, and serve until interrupted.

    Raises
    ------
    SystemExit
        With status 1 when the configuration cannot be loaded or the initial
        build cannot run.
    """
    _configure_logging(verbose)
    site = _load(config, output_dir)
    if port is not None:
        site = dc.replace(site, dev=dc.replace(site.dev, port=port))
    server = DevServer(site)
    try:
        server.serve_forever()
    except (OSError, LivePagesError) as exc:
        print(f"dev server failed to start: {exc}")
        raise SystemExit(1) from exc


@app.command(help="Remove the output directory.")
def clean(
    *,
    config: ConfigOption = DEFAULT_CONFIG,
    output_dir: OutputOption = None,
) -> None:
    """Delete generated output."""
    target = _load(config, output_dir).paths.output_dir
    if target.exists():
        shutil.rmtree(target)
        print(f"removed {_format_path(target)}")
    else:
        print(f"nothing to remove at {_format_path(target)}")


def main() -> None:
    """Invoke the Cyclopts application that powers the ``livepages`` command."""
    app()


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    main()
