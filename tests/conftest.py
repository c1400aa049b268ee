"""Shared fixtures for livepages tests.

``site_dirs`` lays out template, asset, and output directories under
``tmp_path``; ``make_site`` turns page descriptors into a ``SiteConfig`` rooted
there. ``FakeSession`` stands in for ``requests.Session`` so fetches are served
from in-memory payloads, and ``TimerRecorder`` replaces ``threading.Timer`` so
debounce and delayed callbacks fire only when a test says so. ``FakeObserver``
lets a real ``ChangeDetector`` attach without touching the filesystem.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path
from types import SimpleNamespace

import pytest
import requests

from livepages.config import ApiConfig, DevConfig, PageDescriptor, PathsConfig, SiteConfig

API_BASE = "http://api.invalid"


class FakeSession:
    """Minimal ``requests.Session`` replacement keyed by endpoint path."""

    def __init__(self, routes: dict[str, typ.Any] | None = None) -> None:
        self.routes: dict[str, typ.Any] = dict(routes or {})
        self.calls: list[tuple[str, str, dict[str, typ.Any]]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: typ.Any) -> SimpleNamespace:
        self.calls.append((method, url, kwargs))
        endpoint = url.removeprefix(API_BASE)
        outcome = self.routes.get(endpoint)
        if outcome is None:
            msg = f"connection refused: {url}"
            raise requests.ConnectionError(msg)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, SimpleNamespace):
            return outcome
        return SimpleNamespace(status_code=200, reason="OK", json=lambda: outcome)

    def close(self) -> None:
        self.closed = True


@dc.dataclass(eq=False)
class ManualTimer:
    """Timer that only runs its callback when :meth:`fire` is called."""

    interval: float
    function: typ.Callable[[], None]
    daemon: bool = False
    started: bool = False
    cancelled: bool = False
    fired: bool = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return self.started and not self.cancelled and not self.fired

    def fire(self) -> None:
        if self.pending:
            self.fired = True
            self.function()


class TimerRecorder:
    """``threading.Timer``-compatible factory that records every timer."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, interval: float, function: typ.Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [timer for timer in self.timers if timer.pending]

    def fire_pending(self) -> int:
        """Fire every pending timer, including ones created while firing."""
        fired = 0
        while self.pending:
            for timer in self.pending:
                timer.fire()
                fired += 1
        return fired


class FakeObserver:
    """``watchdog`` observer stand-in that records schedules without watching."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[str, bool]] = []
        self.running = False

    def schedule(self, handler: object, path: str, *, recursive: bool) -> None:
        self.scheduled.append((path, recursive))

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def join(self, timeout: float | None = None) -> None:
        return None


@pytest.fixture
def site_dirs(tmp_path: Path) -> SimpleNamespace:
    """Create ``templates``, ``assets``, and ``dist`` under ``tmp_path``."""
    dirs = SimpleNamespace(
        root=tmp_path,
        templates=tmp_path / "templates",
        assets=tmp_path / "assets",
        output=tmp_path / "dist",
    )
    dirs.templates.mkdir()
    dirs.assets.mkdir()
    return dirs


@pytest.fixture
def make_site(site_dirs: SimpleNamespace) -> typ.Callable[..., SiteConfig]:
    """Return a factory building a ``SiteConfig`` over ``site_dirs``."""

    def _make(*pages: PageDescriptor, **dev_overrides: typ.Any) -> SiteConfig:
        return SiteConfig(
            pages=tuple(pages),
            api=ApiConfig(base_url=API_BASE, timeout=1.0),
            paths=PathsConfig(
                template_dir=site_dirs.templates,
                output_dir=site_dirs.output,
                assets_dir=site_dirs.assets,
            ),
            dev=dc.replace(DevConfig(), **dev_overrides),
        )

    return _make


@pytest.fixture
def timers() -> TimerRecorder:
    return TimerRecorder()


def write_template(directory: Path, name: str, content: str) -> Path:
    """Write ``content`` to ``directory/name``, creating parents."""
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


PAGE_SHELL = (
    "<html>\n<head>\n<title>{{ title }}</title>\n</head>\n<body>\n"
    "{body}\n</body>\n</html>\n"
)


def page_template(body: str) -> str:
    """Wrap ``body`` in a minimal HTML document."""
    return PAGE_SHELL.replace("{body}", body)
