"""Common literal values used across livepages.

These constants keep directory names, asset locations, and live-reload routes
centralized so the builder, the watcher, the dev server, and tests import the
same values without drifting. Intended for internal use within the livepages
package.

Examples
--------
>>> from livepages import _constants
>>> _constants.COMPONENT_ASSET_TEMPLATE.format(name="header", ext="css")
'assets/components/header/header.css'
>>> _constants.STAGING_PREFIX.startswith(".")
True
"""

TEMPLATE_EXTENSION = ".html"
COMPONENT_ASSET_TEMPLATE = "assets/components/{name}/{name}.{ext}"
ASSETS_OUTPUT_DIR = "assets"
STAGING_PREFIX = ".staging-templates-"

HOT_RELOAD_SCRIPT_ROUTE = "/hot-reload.js"
HOT_RELOAD_EVENTS_ROUTE = "/hot-reload-events"

IGNORED_DIR_NAMES = frozenset(
    {".git", "node_modules", "__pycache__", ".venv", ".pytest_cache"}
)
