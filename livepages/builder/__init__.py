"""Utilities for extracting component assets, rendering, and writing pages."""

from .models import BuildResult, SubTemplateAsset
from .page_builder import PageBuilder, build_page
from .templates import TemplateRenderer

__all__ = [
    "BuildResult",
    "PageBuilder",
    "SubTemplateAsset",
    "TemplateRenderer",
    "build_page",
]
