"""Behaviour tests for change-triggered rebuilds in a dev session.

A :class:`DevServer` is wired to a real :class:`ChangeDetector` whose
observer and timers are replaced by test doubles, so file events are fed in
directly and the debounce window "passes" when the pending timers are fired.
"""

from __future__ import annotations

import json
import typing as typ
from pathlib import Path

import pytest
from conftest import (
    FakeObserver,
    FakeSession,
    TimerRecorder,
    page_template,
    write_template,
)
from pytest_bdd import given, scenarios, then, when

from livepages.builder import PageBuilder
from livepages.config import PageDescriptor
from livepages.fetcher import ApiClient
from livepages.orchestrator import BuildOrchestrator
from livepages.server import DevServer
from livepages.watcher import ChangeDetector, EventKind, WatchTarget

if typ.TYPE_CHECKING:
    from types import SimpleNamespace

FEATURE_FILE = (
    Path(__file__).resolve().parents[2] / "features" / "incremental_rebuild.feature"
)
scenarios(FEATURE_FILE)

ScenarioState = dict[str, typ.Any]


@pytest.fixture
def scenario_state() -> ScenarioState:
    """Share mutable scenario data across pytest-bdd steps."""
    return {}


@given("a dev server over a built site")
def given_dev_server(
    site_dirs: SimpleNamespace,
    make_site: typ.Callable[..., typ.Any],
    timers: TimerRecorder,
    scenario_state: ScenarioState,
) -> None:
    write_template(
        site_dirs.templates, "index.html", page_template("<h1>{{ title }}</h1>")
    )
    config = make_site(PageDescriptor(template="index.html", api="/api/home"))
    client = ApiClient(config.api, session=FakeSession({"/api/home": {"title": "Home"}}))
    orchestrator = BuildOrchestrator(config, builder=PageBuilder(config, client=client))
    server = DevServer(config, orchestrator=orchestrator, timer_factory=timers)
    server.detector = ChangeDetector(
        [WatchTarget(site_dirs.templates), WatchTarget(site_dirs.assets)],
        on_change=server.handle_change,
        is_busy=lambda: server.is_building,
        debounce=config.dev.debounce,
        extensions=config.dev.watch_extensions,
        ignored=[site_dirs.output],
        timer_factory=timers,
        observer_factory=FakeObserver,
    )
    server.start()
    scenario_state["server"] = server
    scenario_state["index"] = site_dirs.templates / "index.html"


@given("a browser is listening for live-reload events")
def given_browser(scenario_state: ScenarioState) -> None:
    server = typ.cast("DevServer", scenario_state["server"])
    scenario_state["subscriber"] = server.hub.subscribe()


@when("a template is edited and the debounce window passes")
def when_template_edited(timers: TimerRecorder, scenario_state: ScenarioState) -> None:
    server = typ.cast("DevServer", scenario_state["server"])
    index = typ.cast("Path", scenario_state["index"])
    index.write_text(page_template("<h1>{{ title }} (edited)</h1>"), encoding="utf-8")
    assert server.detector.handle_event(EventKind.CHANGE, index)
    timers.fire_pending()


@when("a template is saved with identical content")
def when_template_resaved(timers: TimerRecorder, scenario_state: ScenarioState) -> None:
    server = typ.cast("DevServer", scenario_state["server"])
    index = typ.cast("Path", scenario_state["index"])
    index.write_text(index.read_text(encoding="utf-8"), encoding="utf-8")
    scenario_state["accepted"] = server.detector.handle_event(EventKind.CHANGE, index)
    timers.fire_pending()


def _event_types(scenario_state: ScenarioState) -> list[str]:
    subscriber = scenario_state["subscriber"]
    subscriber.close()
    return [
        json.loads(frame.removeprefix("data: "))["type"]
        for frame in subscriber.stream(keepalive=0.01)
    ]


@then("the browser is told the build started and completed before reloading")
def then_events(scenario_state: ScenarioState) -> None:
    assert _event_types(scenario_state) == [
        "connected",
        "build-start",
        "build-complete",
        "reload",
    ]
    server = typ.cast("DevServer", scenario_state["server"])
    assert server.detector.is_watching, "watcher should be reattached"
    assert not server.is_building


@then("the output page contains the edit")
def then_output_updated(site_dirs: SimpleNamespace) -> None:
    html = (site_dirs.output / "index.html").read_text(encoding="utf-8")
    assert "<h1>Home (edited)</h1>" in html


@then("no rebuild is triggered")
def then_no_rebuild(scenario_state: ScenarioState) -> None:
    assert scenario_state["accepted"] is False
    assert _event_types(scenario_state) == ["connected"]
