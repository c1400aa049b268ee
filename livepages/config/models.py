"""Typed dataclasses describing livepages site configuration structures."""

from __future__ import annotations

import dataclasses as dc
import typing as typ
from pathlib import Path

Transform = typ.Callable[[typ.Any], typ.Any]


class SiteConfigError(ValueError):
    """Raised when the site configuration is invalid or incomplete."""


@dc.dataclass(frozen=True, slots=True)
class PageDescriptor:
    """One template rendered against one data source into one output file.

    Attributes
    ----------
    template : str
        Template file name relative to the template directory.
    output : str
        Output file name relative to the output directory; defaults to
        ``template``.
    api : str | None
        Endpoint appended to the API base URL; ``None`` renders with empty data.
    method : str
        Upper-cased HTTP method used for the request.
    params : Mapping[str, Any]
        Query parameters (``GET``) or JSON body (other methods).
    transform : Callable or None
        Pure function applied to the fetched payload before rendering.
    """

    template: str
    output: str = ""
    api: str | None = None
    method: str = "GET"
    params: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)
    transform: Transform | None = None

    def __post_init__(self) -> None:
        if not self.output:
            object.__setattr__(self, "output", self.template)


@dc.dataclass(frozen=True, slots=True)
class ApiConfig:
    """Connection settings shared by every page fetch."""

    base_url: str = "http://localhost:3001"
    timeout: float = 10.0
    headers: typ.Mapping[str, str] = dc.field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )


@dc.dataclass(frozen=True, slots=True)
class PathsConfig:
    """Source and output directories for a build."""

    template_dir: Path = Path("templates")
    output_dir: Path = Path("dist")
    assets_dir: Path | None = Path("assets")


@dc.dataclass(frozen=True, slots=True)
class DevConfig:
    """Development server and watcher tuning."""

    host: str = "127.0.0.1"
    port: int = 3000
    watch_extensions: tuple[str, ...] = (".html", ".css", ".js")
    debounce: float = 0.5
    reload_delay: float = 0.5
    rewatch_delay: float = 5.0
    watch_depth: int = 8


@dc.dataclass(frozen=True, slots=True)
class SiteConfig:
    """Page descriptors alongside shared API, path, and dev settings."""

    pages: tuple[PageDescriptor, ...]
    api: ApiConfig = dc.field(default_factory=ApiConfig)
    paths: PathsConfig = dc.field(default_factory=PathsConfig)
    dev: DevConfig = dc.field(default_factory=DevConfig)
    source: Path | None = None

    def get_page(self, template: str) -> PageDescriptor:
        """Return the descriptor rendering ``template``."""
        for page in self.pages:
            if page.template == template:
                return page
        available = ", ".join(page.template for page in self.pages)
        msg = f"Unknown page '{template}'. Known pages: {available}"
        raise KeyError(msg)


__all__ = [
    "ApiConfig",
    "DevConfig",
    "PageDescriptor",
    "PathsConfig",
    "SiteConfig",
    "SiteConfigError",
    "Transform",
]
