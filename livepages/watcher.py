"""Watch template, asset, and config sources and trigger debounced rebuilds.

:class:`ChangeDetector` owns the watch state for a dev session: the content
hash of every watched file, the pending debounce timer, and the live
``watchdog`` observer. Filesystem events pass through
:meth:`ChangeDetector.handle_event`, which drops events that leave a file's
content unchanged, and a burst of real changes collapses into a single
``on_change`` call once the debounce window stays quiet.

Hashes survive :meth:`ChangeDetector.stop`, so a detector that is detached
during a rebuild and started again compares the files on disk with the
content last handed to ``on_change`` and fires for anything edited in the
meantime. A detector that stays attached while a build runs holds its
trigger back until the build is over.

Example
-------
>>> from pathlib import Path
>>> from livepages.watcher import ChangeDetector, WatchTarget
>>> detector = ChangeDetector(
...     [WatchTarget(Path("templates"))],
...     on_change=lambda paths: print(sorted(paths)),
... )  # doctest: +SKIP
>>> detector.start()  # doctest: +SKIP
"""

from __future__ import annotations

import dataclasses as dc
import enum
import hashlib
import logging
import os
import threading
import typing as typ
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from livepages._constants import IGNORED_DIR_NAMES, STAGING_PREFIX
from livepages.errors import WatchError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = logging.getLogger(__name__)

ChangeCallback = typ.Callable[[frozenset[Path]], None]

_HASH_CHUNK = 64 * 1024


class Timer(typ.Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = typ.Callable[[float, typ.Callable[[], None]], Timer]


class EventKind(enum.Enum):
    """Raw filesystem event kinds the detector understands."""

    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"


@dc.dataclass(frozen=True, slots=True)
class WatchTarget:
    """A directory observed recursively, or a single file."""

    path: Path
    is_file: bool = False


def hash_file(path: Path) -> str | None:
    """Return the SHA-256 digest of ``path`` or None when it cannot be read."""
    digest = hashlib.sha256()
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(_HASH_CHUNK), b""):
                digest.update(chunk)
    except OSError:
        return None
    return digest.hexdigest()


class ChangeDetector:
    """Hash-checked, debounced change detection over a set of watch targets."""

    def __init__(
        self,
        targets: cabc.Sequence[WatchTarget],
        *,
        on_change: ChangeCallback,
        is_busy: typ.Callable[[], bool] = lambda: False,
        debounce: float = 0.5,
        extensions: cabc.Iterable[str] | None = None,
        ignored: cabc.Iterable[Path] = (),
        max_depth: int = 8,
        timer_factory: TimerFactory = threading.Timer,
        observer_factory: typ.Callable[[], typ.Any] = Observer,
    ) -> None:
        """Configure what to watch and whom to notify.

        Parameters
        ----------
        targets : Sequence[WatchTarget]
            Directories and files to observe.
        on_change : Callable[[frozenset[Path]], None]
            Called from the timer thread with the paths whose content differs
            from the last notification.
        is_busy : Callable[[], bool], optional
            Reports whether a rebuild is running; the debounce timer does
            not fire while it returns True and waits another window instead.
        debounce : float, optional
            Quiet period in seconds before a burst of changes fires.
        extensions : Iterable[str], optional
            Suffixes observed inside directory targets; ``None`` accepts all.
        ignored : Iterable[Path], optional
            Directories never observed, such as the build output.
        max_depth : int, optional
            Deepest directory level below a target that is observed.
        timer_factory, observer_factory : callables, optional
            Seams for substituting the debounce timer and watchdog observer.
        """
        self.targets = tuple(
            WatchTarget(target.path.resolve(), target.is_file) for target in targets
        )
        self.on_change = on_change
        self.is_busy = is_busy
        self.debounce = debounce
        self.extensions = (
            frozenset(ext.lower() for ext in extensions) if extensions else None
        )
        self.ignored = tuple(path.resolve() for path in ignored)
        self.max_depth = max_depth
        self._timer_factory = timer_factory
        self._observer_factory = observer_factory

        self._lock = threading.Lock()
        self._hashes: dict[Path, str] = {}
        self._notified: dict[Path, str] = {}
        self._baselined = False
        self._timer: Timer | None = None
        self._observer: typ.Any | None = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def hashes(self) -> dict[Path, str]:
        """Snapshot of the last-known content hash per watched file."""
        with self._lock:
            return dict(self._hashes)

    def start(self) -> None:
        """Attach a fresh observer and record or reconcile file hashes.

        The first start records a baseline so pre-existing files never count
        as changes. Later starts compare the files on disk with the last
        notified state and arm the debounce timer for anything that moved.

        Raises
        ------
        WatchError
            If none of the targets could be observed.
        """
        if self._observer is not None:
            return
        self._rescan()

        observer = self._observer_factory()
        handler = _DetectorEventHandler(self)
        scheduled = 0
        for watch_dir, recursive in self._watch_dirs():
            try:
                observer.schedule(handler, str(watch_dir), recursive=recursive)
            except OSError as exc:
                logger.error("unable to watch %s: %s", watch_dir, exc)
                continue
            scheduled += 1
        if not scheduled:
            msg = "No watch targets could be observed."
            raise WatchError(msg)
        try:
            observer.start()
        except OSError as exc:
            msg = f"Unable to start filesystem observer: {exc}"
            raise WatchError(msg) from exc
        self._observer = observer
        logger.info("watching %d target(s)", scheduled)

    def stop(self) -> None:
        """Detach the observer and drop any pending trigger; hashes are kept."""
        with self._lock:
            observer, self._observer = self._observer, None
            self._cancel_timer()
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)

    def accepts(self, path: Path) -> bool:
        """Return whether events for ``path`` should be considered at all."""
        for ignored in self.ignored:
            if path == ignored or ignored in path.parents:
                return False
        for target in self.targets:
            if target.is_file:
                if path == target.path:
                    return True
                continue
            try:
                relative = path.relative_to(target.path)
            except ValueError:
                continue
            if any(_is_ignored_dir(part) for part in relative.parts[:-1]):
                return False
            if len(relative.parts) - 1 > self.max_depth:
                return False
            if self.extensions is None:
                return True
            return path.suffix.lower() in self.extensions
        return False

    def handle_event(self, kind: EventKind, path: Path) -> bool:
        """Apply one raw event and report whether it counts as a change.

        ``add`` and ``change`` events whose content hash matches the stored
        hash are suppressed silently. ``unlink`` always drops the stored
        hash. Passing events arm the debounce timer. While a rebuild is
        running the timer keeps re-arming instead of firing, so the change is
        delivered after the rebuild finishes.
        """
        path = path.resolve()
        if not self.accepts(path):
            return False
        if kind is EventKind.UNLINK:
            with self._lock:
                self._hashes.pop(path, None)
        else:
            digest = hash_file(path)
            if digest is None:
                return False
            with self._lock:
                if self._hashes.get(path) == digest:
                    return False
                self._hashes[path] = digest

        logger.info("%s %s", kind.value, _display_path(path))
        if self.is_busy():
            logger.info("build in progress; rebuild will follow once it finishes")
        with self._lock:
            self._arm_timer()
        return True

    def flush(self) -> frozenset[Path]:
        """Fire the pending trigger now instead of waiting for the timer."""
        with self._lock:
            self._cancel_timer()
        return self._fire()

    def _fire(self) -> frozenset[Path]:
        with self._lock:
            self._timer = None
            changed = self._diff()
            if not changed:
                return frozenset()
            if self.is_busy():
                logger.debug("build in progress; deferring %d change(s)", len(changed))
                if self._observer is not None:
                    self._arm_timer()
                return frozenset()
            for path in changed:
                digest = self._hashes.get(path)
                if digest is None:
                    self._notified.pop(path, None)
                else:
                    self._notified[path] = digest
        self.on_change(changed)
        return changed

    def _diff(self) -> frozenset[Path]:
        """Paths whose current hash differs from the last notified hash."""
        keys = self._hashes.keys() | self._notified.keys()
        return frozenset(
            path for path in keys if self._hashes.get(path) != self._notified.get(path)
        )

    def _arm_timer(self) -> None:
        self._cancel_timer()
        timer = self._timer_factory(self.debounce, self._fire)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _rescan(self) -> None:
        current = {path: digest for path, digest in self._scan()}
        with self._lock:
            self._hashes = current
            if not self._baselined:
                self._notified = dict(current)
                self._baselined = True
                return
            pending = bool(self._diff())
            if pending:
                self._arm_timer()
        if pending:
            logger.info("changes detected while detached; scheduling rebuild")

    def _scan(self) -> cabc.Iterator[tuple[Path, str]]:
        for target in self.targets:
            if target.is_file:
                digest = hash_file(target.path)
                if digest is not None:
                    yield target.path, digest
                continue
            if not target.path.is_dir():
                continue
            for dirpath, dirnames, filenames in os.walk(target.path):
                current = Path(dirpath)
                depth = len(current.relative_to(target.path).parts)
                dirnames[:] = [
                    name
                    for name in dirnames
                    if not _is_ignored_dir(name)
                    and depth < self.max_depth
                    and (current / name) not in self.ignored
                ]
                for name in filenames:
                    path = current / name
                    if not self.accepts(path):
                        continue
                    digest = hash_file(path)
                    if digest is not None:
                        yield path, digest

    def _watch_dirs(self) -> list[tuple[Path, bool]]:
        dirs: dict[Path, bool] = {}
        for target in self.targets:
            if target.is_file:
                parent = target.path.parent
                if parent.is_dir():
                    dirs.setdefault(parent, False)
            elif target.path.is_dir():
                dirs[target.path] = True
            else:
                logger.warning("watch target %s does not exist", target.path)
        return list(dirs.items())


class _DetectorEventHandler(FileSystemEventHandler):
    """Translate watchdog events into :class:`EventKind` calls."""

    def __init__(self, detector: ChangeDetector) -> None:
        super().__init__()
        self.detector = detector

    def on_created(self, event: FileSystemEvent) -> None:
        self._dispatch(EventKind.ADD, event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._dispatch(EventKind.CHANGE, event.src_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._dispatch(EventKind.UNLINK, event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._dispatch(EventKind.UNLINK, event.src_path, event.is_directory)
        self._dispatch(EventKind.ADD, event.dest_path, event.is_directory)

    def _dispatch(self, kind: EventKind, raw: bytes | str, is_directory: bool) -> None:
        if is_directory:
            return
        try:
            self.detector.handle_event(kind, Path(os.fsdecode(raw)))
        except OSError as exc:
            logger.error("error handling %s event for %s: %s", kind.value, raw, exc)


def _is_ignored_dir(name: str) -> bool:
    return name in IGNORED_DIR_NAMES or name.startswith(STAGING_PREFIX)


def _display_path(path: Path) -> str:
    """Return a cwd-relative path when possible, otherwise the absolute path."""
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


__all__ = [
    "ChangeCallback",
    "ChangeDetector",
    "EventKind",
    "WatchTarget",
    "hash_file",
]
