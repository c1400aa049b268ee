"""Build static pages from JSON API data, with a live-reloading dev server.

This package exposes the CLI entry points used by the ``livepages`` console
script to build a site once, rebuild it on change, or serve it with live
reload while templates and assets are edited.

Exports
-------
- ``app``: Cyclopts application entry for subcommands.
- ``main``: Convenience function that invokes the Cyclopts app.

Examples
--------
>>> from livepages import main
>>> main()  # doctest: +SKIP
"""

from __future__ import annotations

from .cli import app, main

__all__ = ["app", "main"]
