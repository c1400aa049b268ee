"""Utility helpers shared by the livepages configuration loader."""

from __future__ import annotations

import importlib
import typing as typ
from pathlib import Path

from .models import SiteConfigError, Transform

ALLOWED_METHODS = frozenset({"GET", "POST"})


def _optional_str(value: object | None) -> str | None:
    """Return a stripped string value or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _resolve_path(base: Path, value: object | None, default: str) -> Path:
    """Resolve ``value`` (or ``default``) relative to ``base`` unless absolute."""
    candidate = Path(_optional_str(value) or default)
    if candidate.is_absolute():
        return candidate
    return base / candidate


def _normalize_method(key: str, value: object | None) -> str:
    """Upper-case the HTTP method, rejecting verbs the fetcher does not send."""
    method = (_optional_str(value) or "GET").upper()
    if method not in ALLOWED_METHODS:
        msg = f"Page '{key}' uses unsupported method '{method}'."
        raise SiteConfigError(msg)
    return method


def _normalize_extensions(value: object | None) -> tuple[str, ...] | None:
    """Return dotted, lower-cased extensions or None when not configured."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split()
    if not isinstance(value, list):
        msg = "'watch_extensions' must be a list of file extensions."
        raise SiteConfigError(msg)
    normalized: list[str] = []
    for item in value:
        text = str(item).strip().lower()
        if not text:
            continue
        normalized.append(text if text.startswith(".") else f".{text}")
    return tuple(normalized)


def _load_transform(key: str, spec: object | None) -> Transform | None:
    """Import a ``module:function`` reference naming a data transform."""
    reference = _optional_str(spec)
    if reference is None:
        return None
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        msg = (
            f"Page '{key}' transform '{reference}' must use the "
            "'module:function' form."
        )
        raise SiteConfigError(msg)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        msg = f"Page '{key}' transform module '{module_name}' cannot be imported."
        raise SiteConfigError(msg) from exc
    target: typ.Any = module
    for part in attr.split("."):
        target = getattr(target, part, None)
        if target is None:
            break
    if not callable(target):
        msg = f"Page '{key}' transform '{reference}' is not callable."
        raise SiteConfigError(msg)
    return typ.cast("Transform", target)


def _coerce_float(name: str, value: object | None, default: float) -> float:
    """Return ``value`` as a non-negative float, falling back to ``default``."""
    if value is None:
        return default
    try:
        number = float(typ.cast("typ.Any", value))
    except (TypeError, ValueError) as exc:
        msg = f"'{name}' must be a number, got {value!r}."
        raise SiteConfigError(msg) from exc
    if number < 0:
        msg = f"'{name}' must not be negative."
        raise SiteConfigError(msg)
    return number


__all__ = [
    "ALLOWED_METHODS",
    "_coerce_float",
    "_load_transform",
    "_normalize_extensions",
    "_normalize_method",
    "_optional_str",
    "_resolve_path",
]
