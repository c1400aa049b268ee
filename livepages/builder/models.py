"""Shared dataclasses used by the page build pipeline."""

from __future__ import annotations

import dataclasses as dc


@dc.dataclass(frozen=True, slots=True)
class BuildResult:
    """Outcome of building one page.

    Attributes
    ----------
    template : str
        Template identifier from the page descriptor.
    output : str
        Output path relative to the output directory.
    success : bool
        Whether the HTML file was written.
    error : str | None
        Failure message; present exactly when ``success`` is false.
    """

    template: str
    output: str
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls, template: str, output: str) -> BuildResult:
        return cls(template=template, output=output, success=True)

    @classmethod
    def failed(cls, template: str, output: str, error: str) -> BuildResult:
        return cls(template=template, output=output, success=False, error=error)


@dc.dataclass(frozen=True, slots=True)
class SubTemplateAsset:
    """Style and script blocks extracted from one included sub-template.

    Attributes
    ----------
    name : str
        Sub-template identifier as written in the include directive.
    css_path : str | None
        Output-relative path of the extracted stylesheet, if any.
    js_path : str | None
        Output-relative path of the extracted script, if any.
    cleaned_content : str | None
        Sub-template markup with extracted blocks removed; ``None`` when
        nothing was extracted and the original file can be used as-is.
    """

    name: str
    css_path: str | None = None
    js_path: str | None = None
    cleaned_content: str | None = None

    @property
    def extracted(self) -> bool:
        return self.cleaned_content is not None


__all__ = ["BuildResult", "SubTemplateAsset"]
