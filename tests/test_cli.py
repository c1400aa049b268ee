"""Tests for the ``livepages`` command functions."""

from __future__ import annotations

import typing as typ
from textwrap import dedent

import pytest
from conftest import FakeObserver, TimerRecorder

from livepages import cli
from livepages.orchestrator import BuildOrchestrator
from livepages.watcher import ChangeDetector, EventKind

if typ.TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture


def _site(tmp_path: Path, pages: str) -> Path:
    (tmp_path / "templates").mkdir()
    (tmp_path / "templates" / "about.html").write_text(
        "<html><body><p>About</p></body></html>\n", encoding="utf-8"
    )
    config = tmp_path / "config" / "site.yaml"
    config.parent.mkdir()
    config.write_text(
        dedent(
            f"""
            pages: {pages}
            paths:
              template_dir: ../templates
              output_dir: ../dist
              assets_dir: ../assets
            """
        ).strip()
        + "\n",
        encoding="utf-8",
    )
    return config


def test_build_writes_pages_and_reports(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _site(tmp_path, "[about.html]")

    cli.build(config=config)

    assert (tmp_path / "dist" / "about.html").is_file()
    out = capsys.readouterr().out
    assert "1 page(s) built, 0 failed" in out


def test_build_exits_non_zero_on_page_failure(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _site(tmp_path, "[about.html, missing.html]")

    with pytest.raises(SystemExit) as excinfo:
        cli.build(config=config)

    assert excinfo.value.code == 1
    out = capsys.readouterr().out
    assert "failed missing.html: Template not found" in out
    assert (tmp_path / "dist" / "about.html").is_file(), (
        "other pages should still be built"
    )


def test_output_dir_override(tmp_path: Path) -> None:
    config = _site(tmp_path, "[about.html]")
    target = tmp_path / "public"

    cli.build(config=config, output_dir=target)

    assert (target / "about.html").is_file()
    assert not (tmp_path / "dist").exists()


def test_clean_removes_output(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = _site(tmp_path, "[about.html]")
    cli.build(config=config)

    cli.clean(config=config)
    cli.clean(config=config)

    assert not (tmp_path / "dist").exists()
    out = capsys.readouterr().out
    assert "removed" in out
    assert "nothing to remove" in out


def _edit_about(tmp_path: Path, text: str) -> Path:
    about = tmp_path / "templates" / "about.html"
    about.write_text(f"<html><body><p>{text}</p></body></html>\n", encoding="utf-8")
    return about


def test_watch_rebuilds_on_change_and_stops_on_interrupt(
    tmp_path: Path, mocker: MockerFixture, capsys: pytest.CaptureFixture[str]
) -> None:
    config = _site(tmp_path, "[about.html]")
    detector_cls = mocker.patch.object(cli, "ChangeDetector")
    threading_ = mocker.patch.object(cli, "threading")

    def _wait() -> typ.NoReturn:
        _edit_about(tmp_path, "Edited")
        detector_cls.call_args.kwargs["on_change"](frozenset())
        raise KeyboardInterrupt

    threading_.Event.return_value.wait.side_effect = _wait

    cli.watch(config=config)

    kwargs = detector_cls.call_args.kwargs
    assert [path.resolve() for path in kwargs["ignored"]] == [
        (tmp_path / "dist").resolve()
    ], "the output directory must never be watched"
    detector = detector_cls.return_value
    detector.start.assert_called_once_with()
    detector.stop.assert_called_once_with()
    assert "<p>Edited</p>" in (tmp_path / "dist" / "about.html").read_text()
    out = capsys.readouterr().out
    assert out.count("1 page(s) built, 0 failed") == 2
    assert out.rstrip().endswith("stopped watching")


def test_watch_rebuilds_edit_made_during_a_build(
    tmp_path: Path, timers: TimerRecorder, mocker: MockerFixture
) -> None:
    """An edit saved while a rebuild runs is built once that rebuild ends."""
    config = _site(tmp_path, "[about.html]")
    detectors: list[ChangeDetector] = []

    def _detector(*args: typ.Any, **kwargs: typ.Any) -> ChangeDetector:
        detector = ChangeDetector(
            *args, timer_factory=timers, observer_factory=FakeObserver, **kwargs
        )
        detectors.append(detector)
        return detector

    mocker.patch.object(cli, "ChangeDetector", side_effect=_detector)

    copy_assets = BuildOrchestrator.copy_assets
    late_edits = ["Third"]

    def _copy_then_edit(self: BuildOrchestrator) -> Path | None:
        target = copy_assets(self)
        if detectors and late_edits:
            about = _edit_about(tmp_path, late_edits.pop())
            assert detectors[0].handle_event(EventKind.CHANGE, about)
        return target

    mocker.patch.object(
        BuildOrchestrator, "copy_assets", autospec=True, side_effect=_copy_then_edit
    )

    def _wait() -> typ.NoReturn:
        about = _edit_about(tmp_path, "Second")
        assert detectors[0].handle_event(EventKind.CHANGE, about)
        timers.fire_pending()
        raise KeyboardInterrupt

    threading_ = mocker.patch.object(cli, "threading")
    threading_.Event.return_value.wait.side_effect = _wait

    cli.watch(config=config)

    assert late_edits == [], "the edit should land while the rebuild holds the guard"
    assert "<p>Third</p>" in (tmp_path / "dist" / "about.html").read_text()


@pytest.mark.parametrize("command", [cli.build, cli.watch, cli.dev, cli.clean])
@pytest.mark.parametrize(
    ("pages", "message"),
    [("[]", "No pages defined"), ("[about.html", "")],
    ids=["no-pages", "bad-yaml"],
)
def test_invalid_config_exits_with_message(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    command: typ.Callable[..., None],
    pages: str,
    message: str,
) -> None:
    config = _site(tmp_path, pages)

    with pytest.raises(SystemExit) as excinfo:
        command(config=config)

    assert excinfo.value.code == 1
    out = capsys.readouterr().out
    assert out.startswith("invalid configuration")
    assert message in out
    assert not (tmp_path / "dist").exists()


def test_missing_config_exits_with_message(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.build(config=tmp_path / "absent.yaml")

    assert excinfo.value.code == 1
    assert "not found" in capsys.readouterr().out
