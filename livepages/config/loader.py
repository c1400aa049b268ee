"""Load site configuration YAML into typed dataclasses."""

from __future__ import annotations

import typing as typ
from pathlib import Path

from ruamel.yaml import YAML

from .helpers import (
    _coerce_float,
    _load_transform,
    _normalize_extensions,
    _normalize_method,
    _optional_str,
    _resolve_path,
)
from .models import (
    ApiConfig,
    DevConfig,
    PageDescriptor,
    PathsConfig,
    SiteConfig,
    SiteConfigError,
)


def load_site_config(path: Path) -> SiteConfig:
    """Load the YAML configuration describing pages, API access, and paths.

    Parameters
    ----------
    path : Path
        Filesystem path to the YAML site configuration (for example,
        ``config/site.yaml``). Relative directories inside the file are
        resolved against the file's parent directory.

    Returns
    -------
    SiteConfig
        Parsed configuration with page descriptors in declaration order.

    Raises
    ------
    FileNotFoundError
        If the configuration file does not exist at ``path``.
    TypeError
        If the top-level YAML structure is not a mapping.
    SiteConfigError
        If required sections or fields are missing or invalid (for example,
        no pages are defined or a transform cannot be imported).
    YAMLError
        If the YAML content cannot be parsed by the underlying loader.

    Examples
    --------
    >>> from pathlib import Path
    >>> from livepages.config import load_site_config
    >>> config = load_site_config(Path("config/site.yaml"))  # doctest: +SKIP
    >>> [page.template for page in config.pages]  # doctest: +SKIP
    ['index.html', 'about.html', 'product.html']
    """
    if not path.exists():
        msg = f"Configuration file '{path}' not found."
        raise FileNotFoundError(msg)

    loader = YAML(typ="safe")
    loader.version = (1, 2)
    with path.open("r", encoding="utf-8") as handle:
        loaded = loader.load(handle) or {}
    if not isinstance(loaded, dict):  # pragma: no cover - config error guard
        msg = "Top-level YAML structure must be a mapping."
        raise TypeError(msg)
    raw: dict[str, typ.Any] = dict(loaded)
    base_dir = path.resolve().parent

    pages_raw = raw.get("pages") or []
    if not isinstance(pages_raw, list) or not pages_raw:
        msg = "No pages defined in site configuration."
        raise SiteConfigError(msg)

    pages: list[PageDescriptor] = []
    for index, payload in enumerate(pages_raw):
        match payload:
            case dict():
                pages.append(_build_page_descriptor(index, payload))
            case str() as template:
                pages.append(PageDescriptor(template=template, output=template))
            case _:
                msg = f"Page entry #{index} must be a mapping or a template name."
                raise SiteConfigError(msg)

    return SiteConfig(
        pages=tuple(pages),
        api=_build_api_config(raw.get("api") or {}),
        paths=_build_paths_config(base_dir, raw.get("paths") or {}),
        dev=_build_dev_config(raw.get("dev") or {}),
        source=path.resolve(),
    )


def _build_page_descriptor(
    index: int, payload: typ.Mapping[str, typ.Any]
) -> PageDescriptor:
    """Build a PageDescriptor for a single ``pages`` entry."""
    template = _optional_str(payload.get("template") or payload.get("name"))
    if not template:
        msg = f"Page entry #{index} is missing 'template'."
        raise SiteConfigError(msg)
    params = payload.get("params") or {}
    if not isinstance(params, dict):
        msg = f"Page '{template}' params must be a mapping."
        raise SiteConfigError(msg)
    return PageDescriptor(
        template=template,
        output=_optional_str(payload.get("output")) or template,
        api=_optional_str(payload.get("api")),
        method=_normalize_method(template, payload.get("method")),
        params=dict(params),
        transform=_load_transform(template, payload.get("transform")),
    )


def _build_api_config(payload: typ.Mapping[str, typ.Any]) -> ApiConfig:
    base = ApiConfig()
    headers = payload.get("headers")
    if headers is not None and not isinstance(headers, dict):
        msg = "'api.headers' must be a mapping."
        raise SiteConfigError(msg)
    return ApiConfig(
        base_url=(_optional_str(payload.get("base_url")) or base.base_url).rstrip("/"),
        timeout=_coerce_float("api.timeout", payload.get("timeout"), base.timeout),
        headers=(
            {str(k): str(v) for k, v in headers.items()}
            if headers is not None
            else dict(base.headers)
        ),
    )


def _build_paths_config(base_dir: Path, payload: typ.Mapping[str, typ.Any]) -> PathsConfig:
    assets_value = payload.get("assets_dir", "assets")
    return PathsConfig(
        template_dir=_resolve_path(base_dir, payload.get("template_dir"), "templates"),
        output_dir=_resolve_path(base_dir, payload.get("output_dir"), "dist"),
        assets_dir=(
            _resolve_path(base_dir, assets_value, "assets")
            if assets_value is not None
            else None
        ),
    )


def _build_dev_config(payload: typ.Mapping[str, typ.Any]) -> DevConfig:
    base = DevConfig()
    port = payload.get("port", base.port)
    depth = payload.get("watch_depth", base.watch_depth)
    if not isinstance(port, int) or not isinstance(depth, int) or depth < 1:
        msg = "'dev.port' and 'dev.watch_depth' must be positive integers."
        raise SiteConfigError(msg)
    return DevConfig(
        host=_optional_str(payload.get("host")) or base.host,
        port=port,
        watch_extensions=(
            _normalize_extensions(payload.get("watch_extensions"))
            or base.watch_extensions
        ),
        debounce=_coerce_float("dev.debounce", payload.get("debounce"), base.debounce),
        reload_delay=_coerce_float(
            "dev.reload_delay", payload.get("reload_delay"), base.reload_delay
        ),
        rewatch_delay=_coerce_float(
            "dev.rewatch_delay", payload.get("rewatch_delay"), base.rewatch_delay
        ),
        watch_depth=depth,
    )


__all__ = ["load_site_config"]
