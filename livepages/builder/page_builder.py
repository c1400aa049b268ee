"""Build one HTML page from a template, API data, and sub-template assets.

:class:`PageBuilder` consumes a :class:`~livepages.config.PageDescriptor`,
fetches its data through :class:`~livepages.fetcher.ApiClient`, extracts
component assets from included sub-templates, renders the page with
:class:`~livepages.builder.templates.TemplateRenderer`, and writes the result
under the configured output directory. Every failure is reported as a
:class:`~livepages.builder.models.BuildResult` so one broken page never stops
the rest of a build.

Example
-------
>>> from pathlib import Path
>>> from livepages.config import load_site_config
>>> from livepages.builder import PageBuilder
>>> config = load_site_config(Path("config/site.yaml"))  # doctest: +SKIP
>>> builder = PageBuilder(config)  # doctest: +SKIP
>>> builder.build(config.pages[0])  # doctest: +SKIP
BuildResult(template='index.html', output='index.html', success=True, error=None)
"""

from __future__ import annotations

import logging
import typing as typ

from livepages.builder.assets import (
    extract_component_assets,
    inject_assets,
    parse_includes,
)
from livepages.builder.models import BuildResult, SubTemplateAsset
from livepages.builder.staging import staged_template_root
from livepages.builder.templates import TemplateRenderer, template_filename
from livepages.errors import DataError, FetchError, TemplateNotFoundError
from livepages.fetcher import ApiClient

if typ.TYPE_CHECKING:
    from pathlib import Path

    from livepages.config import PageDescriptor, SiteConfig

logger = logging.getLogger(__name__)


class PageBuilder:
    """Render page descriptors into HTML files on disk."""

    def __init__(
        self,
        config: SiteConfig,
        *,
        client: ApiClient | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        """Initialize the builder for a site configuration.

        Parameters
        ----------
        config : SiteConfig
            Site configuration providing paths and API settings.
        client : ApiClient, optional
            Client used for page data; defaults to one built from
            ``config.api``.
        renderer : TemplateRenderer, optional
            Renderer shared across pages; defaults to one rooted at the
            configured template directory.
        """
        self.config = config
        self.client = client or ApiClient(config.api)
        self.renderer = renderer or TemplateRenderer(config.paths.template_dir)

    @property
    def template_dir(self) -> Path:
        return self.config.paths.template_dir

    @property
    def output_dir(self) -> Path:
        return self.config.paths.output_dir

    def build(self, page: PageDescriptor) -> BuildResult:
        """Build ``page`` and report the outcome without raising."""
        try:
            self._build(page)
        except Exception as exc:  # noqa: BLE001 - every failure becomes a result
            logger.debug("page %s failed", page.template, exc_info=True)
            return BuildResult.failed(page.template, page.output, str(exc))
        return BuildResult.ok(page.template, page.output)

    def _build(self, page: PageDescriptor) -> None:
        source = self._read_template(page)
        data = self._load_data(page)

        assets = self._extract_assets(parse_includes(source))
        html = self._render(source, data, assets)

        css_files = [asset.css_path for asset in assets if asset.css_path]
        js_files = [asset.js_path for asset in assets if asset.js_path]
        if css_files or js_files:
            html = inject_assets(html, css_files, js_files)

        output_path = self.output_dir / page.output
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(html, encoding="utf-8")
        logger.debug("wrote %s", output_path)

    def _read_template(self, page: PageDescriptor) -> str:
        template_path = self.template_dir / page.template
        if not template_path.is_file():
            msg = f"Template not found: {template_path}"
            raise TemplateNotFoundError(msg)
        return template_path.read_text(encoding="utf-8")

    def _load_data(self, page: PageDescriptor) -> typ.Any:
        if not page.api:
            return {}
        try:
            data = self.client.fetch(page.api, page.method, page.params)
        except FetchError as exc:
            msg = f"API request failed: {exc}"
            raise DataError(msg) from exc
        if page.transform is None:
            return data
        try:
            return page.transform(data)
        except Exception as exc:  # noqa: BLE001 - user transform code
            msg = f"Data transform failed: {exc}"
            raise DataError(msg) from exc

    def _extract_assets(self, names: list[str]) -> list[SubTemplateAsset]:
        assets: list[SubTemplateAsset] = []
        for name in names:
            asset = extract_component_assets(name, self.template_dir, self.output_dir)
            if asset is not None:
                assets.append(asset)
        return assets

    def _render(
        self, source: str, data: typ.Any, assets: list[SubTemplateAsset]
    ) -> str:
        cleaned = {
            asset.name: typ.cast("str", asset.cleaned_content)
            for asset in assets
            if asset.extracted
        }
        if not cleaned:
            return self.renderer.render(source, data)

        originals = {
            asset.name: self.template_dir / template_filename(asset.name)
            for asset in assets
            if not asset.extracted
        }
        with staged_template_root(self.output_dir, cleaned, originals) as root:
            return self.renderer.render(
                source, data, search_path=[root, self.template_dir]
            )


def build_page(page: PageDescriptor, config: SiteConfig) -> BuildResult:
    """Build a single page with a throwaway builder."""
    return PageBuilder(config).build(page)


__all__ = ["PageBuilder", "build_page"]
