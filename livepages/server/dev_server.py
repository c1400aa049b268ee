"""Development server coordinating the watcher, rebuilds, and live reload.

:class:`DevServer` performs the initial build, serves the output directory
through :func:`~livepages.server.app.create_app`, and runs one rebuild cycle
per debounced change:

1. broadcast ``build-start`` and detach the watcher so the build's own writes
   cannot trigger it;
2. rebuild without clearing the output directory;
3. broadcast ``build-complete`` or, when any page failed, ``build-error``,
   then ``reload`` after ``reload_delay``; a rebuild that raises sends
   ``build-error`` only;
4. attach a fresh watcher after ``rewatch_delay``.

A second change arriving before step 4 finishes is ignored; the reattached
watcher compares file hashes and picks it up if the file still differs.

Example
-------
>>> from pathlib import Path
>>> from livepages.config import load_site_config
>>> from livepages.server import DevServer
>>> server = DevServer(load_site_config(Path("config/site.yaml")))  # doctest: +SKIP
>>> server.serve_forever()  # doctest: +SKIP
"""

from __future__ import annotations

import dataclasses as dc
import logging
import signal
import threading
import typing as typ

from werkzeug.serving import make_server

from livepages.orchestrator import BuildGuard, BuildOrchestrator, failed_results
from livepages.watcher import ChangeDetector, WatchTarget

from . import livereload
from .app import create_app

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from livepages.builder import BuildResult
    from livepages.config import SiteConfig
    from livepages.watcher import TimerFactory

logger = logging.getLogger(__name__)


@dc.dataclass(frozen=True, slots=True)
class RebuildOutcome:
    """Result of a manual rebuild request."""

    status: typ.Literal["busy", "success", "error"]
    message: str
    failures: dict[str, str] = dc.field(default_factory=dict)


class DevServer:
    """Serve built output, watch sources, and push live-reload events."""

    def __init__(
        self,
        config: SiteConfig,
        *,
        orchestrator: BuildOrchestrator | None = None,
        hub: livereload.LiveReloadHub | None = None,
        timer_factory: TimerFactory = threading.Timer,
        detector: ChangeDetector | None = None,
    ) -> None:
        """Wire the orchestrator, live-reload hub, and change detector.

        Parameters
        ----------
        config : SiteConfig
            Site configuration; ``config.dev`` supplies host, port, and delays.
        orchestrator : BuildOrchestrator, optional
            Builds the site; defaults to one built from ``config``.
        hub : LiveReloadHub, optional
            Open live-reload subscribers.
        timer_factory : callable, optional
            Creates the delayed reload and reattach timers.
        detector : ChangeDetector, optional
            Watcher to drive; defaults to one observing the template and
            assets directories plus the configuration file.
        """
        self.config = config
        self.orchestrator = orchestrator or BuildOrchestrator(config)
        self.hub = hub if hub is not None else livereload.LiveReloadHub()
        self.cycle = BuildGuard()
        self._timer_factory = timer_factory
        self._timers: set[typ.Any] = set()
        self._timers_lock = threading.Lock()
        self._closing = False
        self.detector = detector or self._build_detector()
        self.app = create_app(self)
        self._server: typ.Any | None = None

    @property
    def is_building(self) -> bool:
        return self.cycle.busy or self.orchestrator.is_building

    def _build_detector(self) -> ChangeDetector:
        paths = self.config.paths
        targets = [WatchTarget(paths.template_dir)]
        if paths.assets_dir is not None:
            targets.append(WatchTarget(paths.assets_dir))
        if self.config.source is not None:
            targets.append(WatchTarget(self.config.source, is_file=True))
        return ChangeDetector(
            targets,
            on_change=self.handle_change,
            is_busy=lambda: self.is_building,
            debounce=self.config.dev.debounce,
            extensions=self.config.dev.watch_extensions,
            ignored=[paths.output_dir],
            max_depth=self.config.dev.watch_depth,
            timer_factory=self._timer_factory,
        )

    def handle_change(self, paths: frozenset[Path]) -> None:
        """Run one rebuild cycle for a debounced batch of changed files."""
        if not self.cycle.try_begin():
            logger.info("rebuild cycle in progress; ignoring %d change(s)", len(paths))
            return
        logger.info("change detected in %d file(s); rebuilding", len(paths))
        try:
            self.hub.broadcast(livereload.BUILD_START)
            self.detector.stop()
            self._run_rebuild()
        finally:
            self._schedule(self.config.dev.rewatch_delay, self._reattach)

    def manual_rebuild(self) -> RebuildOutcome:
        """Rebuild on request, refusing while another rebuild is running."""
        if not self.cycle.try_begin():
            return RebuildOutcome("busy", "A build is already in progress.")
        try:
            self.hub.broadcast(livereload.BUILD_START)
            return self._run_rebuild()
        finally:
            self.cycle.finish()

    def _run_rebuild(self) -> RebuildOutcome:
        try:
            results = self.orchestrator.rebuild()
        except Exception as exc:  # noqa: BLE001 - reported to clients, server keeps running
            logger.exception("rebuild failed")
            self.hub.broadcast(livereload.BUILD_ERROR, error=str(exc))
            return RebuildOutcome("error", str(exc))
        if results is None:
            return RebuildOutcome("busy", "A build is already in progress.")
        return self._report(results)

    def _report(self, results: cabc.Sequence[BuildResult]) -> RebuildOutcome:
        failures = {
            result.template: result.error or "unknown error"
            for result in failed_results(results)
        }
        built = len(results)
        if failures:
            message = "; ".join(f"{name}: {error}" for name, error in failures.items())
            self.hub.broadcast(livereload.BUILD_ERROR, error=message)
            outcome = RebuildOutcome("error", message, failures)
        else:
            self.hub.broadcast(livereload.BUILD_COMPLETE, pages=built)
            outcome = RebuildOutcome("success", f"Rebuilt {built} page(s).")
        self._schedule(
            self.config.dev.reload_delay,
            lambda: self.hub.broadcast(livereload.RELOAD),
        )
        return outcome

    def _reattach(self) -> None:
        try:
            if not self._closing:
                self.detector.start()
        except Exception:  # noqa: BLE001 - keep serving without a watcher
            logger.exception("unable to reattach watcher")
        finally:
            self.cycle.finish()

    def _schedule(self, delay: float, callback: typ.Callable[[], None]) -> None:
        if self._closing:
            return

        def _run() -> None:
            with self._timers_lock:
                self._timers.discard(timer)
            callback()

        timer = self._timer_factory(delay, _run)
        timer.daemon = True
        with self._timers_lock:
            self._timers.add(timer)
        timer.start()

    def start(self) -> None:
        """Build the site from scratch and attach the watcher.

        Exceptions from the initial build propagate: without it there is
        nothing to serve.
        """
        results = self.orchestrator.rebuild(initial=True)
        for result in failed_results(results or []):
            logger.warning("initial build failed for %s: %s", result.template, result.error)
        self.detector.start()

    def serve_forever(self) -> None:
        """Run the initial build, then serve until interrupted."""
        self.start()
        dev = self.config.dev
        self._server = make_server(dev.host, dev.port, self.app, threaded=True)
        logger.info("serving %s on http://%s:%d", self.config.paths.output_dir, dev.host, dev.port)
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGTERM, _raise_interrupt)
        try:
            self._server.serve_forever()
        except KeyboardInterrupt:
            logger.info("shutting down")
        finally:
            self.close()

    def shutdown(self) -> None:
        """Stop :meth:`serve_forever` from another thread."""
        if self._server is not None:
            self._server.shutdown()

    def close(self) -> None:
        """Close the watcher, every live-reload stream, then the socket."""
        self._closing = True
        with self._timers_lock:
            timers, self._timers = self._timers, set()
        for timer in timers:
            timer.cancel()
        self.detector.stop()
        self.hub.close_all()
        if self._server is not None:
            self._server.server_close()
            self._server = None
        self.orchestrator.builder.client.close()


def _raise_interrupt(signum: int, frame: object) -> None:  # noqa: ARG001
    raise KeyboardInterrupt


__all__ = ["DevServer", "RebuildOutcome"]
