"""Run the page builder over a whole site with a re-entrancy guard.

:class:`BuildOrchestrator` renders every configured page in declaration
order, mirrors the static assets directory into the output root, and exposes
:meth:`BuildOrchestrator.rebuild`, which refuses to start while another build
is running instead of queueing one behind it.

Example
-------
>>> from pathlib import Path
>>> from livepages.config import load_site_config
>>> from livepages.orchestrator import BuildOrchestrator
>>> orchestrator = BuildOrchestrator(load_site_config(Path("config/site.yaml")))  # doctest: +SKIP
>>> results = orchestrator.rebuild(initial=True)  # doctest: +SKIP
>>> all(result.success for result in results)  # doctest: +SKIP
True
"""

from __future__ import annotations

import contextlib
import enum
import logging
import shutil
import threading
import typing as typ

from livepages._constants import ASSETS_OUTPUT_DIR
from livepages.builder import BuildResult, PageBuilder

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from livepages.config import SiteConfig

logger = logging.getLogger(__name__)


class BuildState(enum.Enum):
    """Whether a rebuild is currently running."""

    IDLE = "idle"
    BUILDING = "building"


class BuildGuard:
    """Atomic ``Idle -> Building -> Idle`` transitions for one build at a time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = BuildState.IDLE

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state is BuildState.BUILDING

    def try_begin(self) -> bool:
        """Enter ``BUILDING`` unless already there; report whether we did."""
        with self._lock:
            if self._state is BuildState.BUILDING:
                return False
            self._state = BuildState.BUILDING
            return True

    def finish(self) -> None:
        with self._lock:
            self._state = BuildState.IDLE

    @contextlib.contextmanager
    def hold(self) -> cabc.Iterator[bool]:
        """Yield whether the guard was acquired, releasing it on exit."""
        acquired = self.try_begin()
        try:
            yield acquired
        finally:
            if acquired:
                self.finish()


class BuildOrchestrator:
    """Build every configured page and copy static assets."""

    def __init__(
        self,
        config: SiteConfig,
        *,
        builder: PageBuilder | None = None,
        guard: BuildGuard | None = None,
    ) -> None:
        self.config = config
        self.builder = builder or PageBuilder(config)
        self.guard = guard or BuildGuard()

    @property
    def is_building(self) -> bool:
        return self.guard.busy

    def rebuild_all(self) -> list[BuildResult]:
        """Build each page sequentially, then mirror the assets directory.

        Returns
        -------
        list[BuildResult]
            One result per configured page, in configuration order.
        """
        results = [self.builder.build(page) for page in self.config.pages]
        self.copy_assets()
        return results

    def copy_assets(self) -> Path | None:
        """Copy the static assets tree into ``<output>/assets`` when present."""
        assets_dir = self.config.paths.assets_dir
        if assets_dir is None or not assets_dir.is_dir():
            return None
        target = self.config.paths.output_dir / ASSETS_OUTPUT_DIR
        shutil.copytree(assets_dir, target, dirs_exist_ok=True)
        return target

    def rebuild(self, *, initial: bool = False) -> list[BuildResult] | None:
        """Run a full build unless one is already in flight.

        Parameters
        ----------
        initial : bool, optional
            Clear the output directory first. Later rebuilds keep existing
            output in place and only drop the template cache.

        Returns
        -------
        list[BuildResult] or None
            Per-page results, or ``None`` when another build was running and
            this call did nothing.
        """
        with self.guard.hold() as acquired:
            if not acquired:
                logger.warning("build already in progress; skipping rebuild request")
                return None
            logger.info("rebuilding %d page(s)", len(self.config.pages))
            if initial:
                _empty_dir(self.config.paths.output_dir)
            else:
                self.builder.renderer.clear_cache()
            results = self.rebuild_all()
            _log_results(results)
            return results


def failed_results(results: cabc.Iterable[BuildResult]) -> list[BuildResult]:
    return [result for result in results if not result.success]


def _empty_dir(path: Path) -> None:
    """Remove everything inside ``path`` while keeping the directory itself."""
    path.mkdir(parents=True, exist_ok=True)
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _log_results(results: list[BuildResult]) -> None:
    failures = failed_results(results)
    if not failures:
        logger.info("build complete: %d page(s) built", len(results))
        return
    logger.warning(
        "build complete with %d failed page(s) of %d", len(failures), len(results)
    )
    for result in failures:
        logger.warning("  %s: %s", result.template, result.error)


__all__ = ["BuildGuard", "BuildOrchestrator", "BuildState", "failed_results"]
