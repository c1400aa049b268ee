"""Jinja-backed rendering with ``{{include "name"}}`` directives.

Page templates reference sub-templates with the ``{{include "name"}}``
directive. :class:`IncludeDirectiveLoader` rewrites each directive into a
Jinja ``{% include %}`` tag as sources are loaded, so the rest of the
template is ordinary Jinja syntax. The template search path is an explicit
argument of :meth:`TemplateRenderer.render` rather than shared state, which
lets a build render against a staging root without affecting other renders.
"""

from __future__ import annotations

import re
import typing as typ

from jinja2 import (
    BaseLoader,
    Environment,
    FileSystemLoader,
    TemplateError,
    select_autoescape,
)

from livepages._constants import TEMPLATE_EXTENSION
from livepages.errors import RenderError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

INCLUDE_PATTERN = re.compile(r"""\{\{\s*include\s+['"]([^'"]+)['"]\s*\}\}""")


def template_filename(name: str) -> str:
    """Return the file name a sub-template identifier resolves to."""
    if name.endswith(TEMPLATE_EXTENSION):
        return name
    return f"{name}{TEMPLATE_EXTENSION}"


def rewrite_includes(source: str) -> str:
    """Translate include directives into Jinja include tags."""

    def _repl(match: re.Match[str]) -> str:
        return f'{{% include "{template_filename(match.group(1))}" %}}'

    return INCLUDE_PATTERN.sub(_repl, source)


class IncludeDirectiveLoader(FileSystemLoader):
    """File system loader that understands ``{{include "name"}}``."""

    def get_source(
        self, environment: Environment, template: str
    ) -> tuple[str, str, cabc.Callable[[], bool]]:
        source, filename, uptodate = super().get_source(environment, template)
        return rewrite_includes(source), filename, uptodate


class TemplateRenderer:
    """Compile page templates and render them against JSON data."""

    def __init__(self, template_dir: Path) -> None:
        """Initialize a renderer resolving includes against ``template_dir``."""
        self.template_dir = template_dir
        self._env = self._build_environment(IncludeDirectiveLoader(str(template_dir)))

    @staticmethod
    def _build_environment(loader: BaseLoader) -> Environment:
        return Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml"], default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(
        self,
        source: str,
        data: typ.Any,
        *,
        search_path: cabc.Sequence[Path] | None = None,
    ) -> str:
        """Render ``source`` with ``data`` as the template context.

        Parameters
        ----------
        source : str
            Top-level template text.
        data : Any
            JSON payload; mappings become the template context directly and
            any other value is exposed as ``data``.
        search_path : Sequence[Path], optional
            Directories searched for included templates, first match wins.
            Defaults to the renderer's template directory and its cache.

        Raises
        ------
        RenderError
            If the template fails to compile, include, or evaluate.
        """
        if search_path is None:
            env = self._env
        else:
            env = self._build_environment(
                IncludeDirectiveLoader([str(path) for path in search_path])
            )
        context = dict(data) if isinstance(data, dict) else {"data": data}
        try:
            template = env.from_string(rewrite_includes(source))
            return template.render(context)
        except TemplateError as exc:
            msg = f"Template rendering failed: {exc.message or exc}"
            raise RenderError(msg) from exc

    def clear_cache(self) -> None:
        """Drop compiled templates so edited sources are read again."""
        if self._env.cache is not None:
            self._env.cache.clear()


__all__ = [
    "INCLUDE_PATTERN",
    "IncludeDirectiveLoader",
    "TemplateRenderer",
    "rewrite_includes",
    "template_filename",
]
