"""Load and validate site configuration YAML for livepages builds.

This subpackage parses the project's ``site.yaml`` file, resolves source and
output directories relative to the file, imports optional data transforms,
and produces immutable dataclasses (:class:`SiteConfig`,
:class:`PageDescriptor`, etc.) that the builder, watcher, and dev server
consume. The primary entry point is :func:`load_site_config`.

Examples
--------
>>> from pathlib import Path
>>> from livepages.config import load_site_config
>>> site = load_site_config(Path("config/site.yaml"))  # doctest: +SKIP
>>> site.get_page("index.html").api  # doctest: +SKIP
'/api/home'
"""

from .loader import load_site_config
from .models import (
    ApiConfig,
    DevConfig,
    PageDescriptor,
    PathsConfig,
    SiteConfig,
    SiteConfigError,
    Transform,
)

__all__ = [
    "ApiConfig",
    "DevConfig",
    "PageDescriptor",
    "PathsConfig",
    "SiteConfig",
    "SiteConfigError",
    "Transform",
    "load_site_config",
]
