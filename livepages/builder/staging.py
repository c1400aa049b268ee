"""Temporary template roots holding cleaned sub-templates for one render."""

from __future__ import annotations

import contextlib
import logging
import shutil
import tempfile
import typing as typ
from pathlib import Path

from livepages._constants import STAGING_PREFIX
from livepages.builder.templates import template_filename
from livepages.errors import StagingError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def staged_template_root(
    parent: Path,
    cleaned: cabc.Mapping[str, str],
    originals: cabc.Mapping[str, Path],
) -> cabc.Iterator[Path]:
    """Yield a fresh directory containing the templates one render needs.

    Parameters
    ----------
    parent : Path
        Directory the staging root is created in; it must not be watched.
    cleaned : Mapping[str, str]
        Sub-template names mapped to markup with extracted blocks removed.
    originals : Mapping[str, Path]
        Sub-template names mapped to source files copied in unchanged.

    Raises
    ------
    StagingError
        If the root cannot be created or populated, or cannot be removed.
        The directory is removed on every exit path, including when the
        body of the ``with`` block raises.
    """
    try:
        parent.mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=parent))
    except OSError as exc:
        msg = f"Unable to create template staging directory in {parent}: {exc}"
        raise StagingError(msg) from exc

    try:
        try:
            for name, content in cleaned.items():
                target = root / template_filename(name)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
            for name, source in originals.items():
                target = root / template_filename(name)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
        except OSError as exc:
            msg = f"Unable to stage templates in {root}: {exc}"
            raise StagingError(msg) from exc
        logger.debug("staged %d template(s) in %s", len(cleaned) + len(originals), root)
        yield root
    finally:
        _remove_root(root)


def _remove_root(root: Path) -> None:
    try:
        shutil.rmtree(root)
    except FileNotFoundError:
        return
    except OSError as exc:
        msg = f"Unable to remove template staging directory {root}: {exc}"
        raise StagingError(msg) from exc


__all__ = ["staged_template_root"]
