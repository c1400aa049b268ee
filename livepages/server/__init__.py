"""Development server, HTTP surface, and live-reload channel."""

from .app import create_app
from .dev_server import DevServer, RebuildOutcome
from .livereload import LiveReloadHub, Subscriber

__all__ = ["DevServer", "LiveReloadHub", "RebuildOutcome", "Subscriber", "create_app"]
