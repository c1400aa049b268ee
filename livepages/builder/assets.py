"""Extract sub-template style/script blocks and inject asset references.

Sub-templates may carry their own ``<style>`` and inline ``<script>`` blocks.
When a page includes them, the blocks are moved into standalone files under
``assets/components/<name>/`` and the rendered page links to those files
instead, so each component's CSS lands in ``<head>`` and its JS before
``</body>``.
"""

from __future__ import annotations

import re
import typing as typ
from html import escape

from livepages._constants import COMPONENT_ASSET_TEMPLATE
from livepages.builder.models import SubTemplateAsset
from livepages.builder.templates import INCLUDE_PATTERN, template_filename

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

STYLE_PATTERN = re.compile(r"<style[^>]*>(.*?)</style>", re.IGNORECASE | re.DOTALL)
INLINE_SCRIPT_PATTERN = re.compile(
    r"<script(?![^>]*\bsrc\b)[^>]*>(.*?)</script>", re.IGNORECASE | re.DOTALL
)
HEAD_CLOSE_PATTERN = re.compile(r"</head\s*>", re.IGNORECASE)
BODY_CLOSE_PATTERN = re.compile(r"</body\s*>", re.IGNORECASE)


def parse_includes(source: str) -> list[str]:
    """Return sub-template names referenced by ``source`` in discovery order.

    Repeated includes of the same sub-template are reported once.
    """
    seen: dict[str, None] = {}
    for match in INCLUDE_PATTERN.finditer(source):
        seen.setdefault(match.group(1), None)
    return list(seen)


def extract_blocks(pattern: re.Pattern[str], html: str) -> tuple[list[str], str]:
    """Return the trimmed bodies matched by ``pattern`` and the remaining markup."""
    blocks = [match.group(1).strip() for match in pattern.finditer(html)]
    return blocks, pattern.sub("", html)


def extract_component_assets(
    name: str, template_dir: Path, output_dir: Path
) -> SubTemplateAsset | None:
    """Move ``name``'s style and inline script blocks into component files.

    Parameters
    ----------
    name : str
        Sub-template identifier from the include directive.
    template_dir : Path
        Directory holding the source templates.
    output_dir : Path
        Build output root; assets are written beneath ``assets/components``.

    Returns
    -------
    SubTemplateAsset or None
        ``None`` when the sub-template does not exist; otherwise the asset
        record, whose ``cleaned_content`` is set only if blocks were extracted.
    """
    source_path = template_dir / template_filename(name)
    if not source_path.is_file():
        return None
    content = source_path.read_text(encoding="utf-8")
    styles, without_styles = extract_blocks(STYLE_PATTERN, content)
    scripts, cleaned = extract_blocks(INLINE_SCRIPT_PATTERN, without_styles)
    if not styles and not scripts:
        return SubTemplateAsset(name=name)

    css_path = _write_component_file(output_dir, name, "css", styles)
    js_path = _write_component_file(output_dir, name, "js", scripts)
    return SubTemplateAsset(
        name=name, css_path=css_path, js_path=js_path, cleaned_content=cleaned
    )


def _write_component_file(
    output_dir: Path, name: str, ext: str, blocks: list[str]
) -> str | None:
    if not blocks:
        return None
    relative = COMPONENT_ASSET_TEMPLATE.format(name=name, ext=ext)
    target = output_dir / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("\n\n".join(blocks), encoding="utf-8")
    return relative


def inject_assets(
    html: str, css_files: cabc.Sequence[str], js_files: cabc.Sequence[str]
) -> str:
    """Link ``css_files`` before ``</head>`` and ``js_files`` before ``</body>``.

    Markup without the corresponding closing tag is left unchanged.
    """
    result = html
    if css_files:
        links = "\n".join(
            f'  <link rel="stylesheet" href="{escape(path, quote=True)}">'
            for path in css_files
        )
        result = HEAD_CLOSE_PATTERN.sub(
            lambda match: f"{links}\n{match.group(0)}", result, count=1
        )
    if js_files:
        tags = "\n".join(
            f'  <script src="{escape(path, quote=True)}"></script>'
            for path in js_files
        )
        matches = list(BODY_CLOSE_PATTERN.finditer(result))
        if matches:
            last = matches[-1]
            result = f"{result[: last.start()]}{tags}\n{result[last.start() :]}"
    return result


__all__ = [
    "INLINE_SCRIPT_PATTERN",
    "STYLE_PATTERN",
    "extract_blocks",
    "extract_component_assets",
    "inject_assets",
    "parse_includes",
]
