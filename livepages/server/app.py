"""Flask application serving built output and the live-reload stream."""

from __future__ import annotations

import datetime as dt
import typing as typ
from http import HTTPStatus

from flask import Flask, Response, jsonify, send_from_directory

from livepages._constants import HOT_RELOAD_EVENTS_ROUTE, HOT_RELOAD_SCRIPT_ROUTE

from .livereload import HOT_RELOAD_SCRIPT

if typ.TYPE_CHECKING:
    from pathlib import Path

    from .dev_server import DevServer

INDEX_FILE = "index.html"
RELOAD_SCRIPT_TAG = f'<script src="{HOT_RELOAD_SCRIPT_ROUTE}"></script>'

NOT_BUILT_PAGE = """\
<html>
  <head><title>Page not found</title></head>
  <body>
    <h1>404 - Page not found</h1>
    <p>The site has not been built yet. Run <code>livepages build</code>.</p>
  </body>
</html>
"""


def inject_reload_script(html: str) -> str:
    """Add the live-reload client before ``</body>`` unless already present."""
    if HOT_RELOAD_SCRIPT_ROUTE in html:
        return html
    index = html.lower().rfind("</body>")
    if index == -1:
        return f"{html}{RELOAD_SCRIPT_TAG}\n"
    return f"{html[:index]}{RELOAD_SCRIPT_TAG}\n{html[index:]}"


def create_app(dev_server: DevServer) -> Flask:
    """Build the HTTP surface for ``dev_server``.

    Routes
    ------
    ``GET /health``
        Build-in-progress status.
    ``GET /hot-reload.js`` and ``GET /hot-reload-events``
        Browser client and its event stream.
    ``POST /rebuild``
        Manual rebuild; 429 while busy, 500 when the build failed.
    ``GET /<path>``
        Files from the output directory, falling back to ``index.html``.
    """
    app = Flask(__name__, static_folder=None)
    output_dir = dev_server.config.paths.output_dir

    @app.get("/health")
    def health() -> Response:
        return jsonify(
            status="ok",
            timestamp=dt.datetime.now(dt.UTC).isoformat(),
            building=dev_server.is_building,
        )

    @app.get(HOT_RELOAD_SCRIPT_ROUTE)
    def hot_reload_script() -> Response:
        script = HOT_RELOAD_SCRIPT % {"events_route": HOT_RELOAD_EVENTS_ROUTE}
        return Response(script, mimetype="application/javascript")

    @app.get(HOT_RELOAD_EVENTS_ROUTE)
    def hot_reload_events() -> Response:
        subscriber = dev_server.hub.subscribe()

        def _generate() -> typ.Iterator[str]:
            try:
                yield from subscriber.stream()
            finally:
                dev_server.hub.unsubscribe(subscriber)

        return Response(
            _generate(),
            mimetype="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "Access-Control-Allow-Origin": "*",
                "X-Accel-Buffering": "no",
            },
        )

    @app.post("/rebuild")
    def rebuild() -> tuple[Response, int]:
        outcome = dev_server.manual_rebuild()
        body: dict[str, typ.Any] = {
            "success": outcome.status == "success",
            "message": outcome.message,
        }
        if outcome.failures:
            body["failures"] = outcome.failures
        status = {
            "busy": HTTPStatus.TOO_MANY_REQUESTS,
            "success": HTTPStatus.OK,
        }.get(outcome.status, HTTPStatus.INTERNAL_SERVER_ERROR)
        return jsonify(body), int(status)

    @app.get("/")
    @app.get("/<path:path>")
    def serve(path: str = "") -> Response | tuple[str, int]:
        target = _resolve_output_file(output_dir, path)
        if target is None:
            target = output_dir / INDEX_FILE
            if not target.is_file():
                return NOT_BUILT_PAGE, int(HTTPStatus.NOT_FOUND)
        if target.suffix.lower() in {".html", ".htm"}:
            html = target.read_text(encoding="utf-8")
            response = Response(inject_reload_script(html), mimetype="text/html")
            response.headers["Cache-Control"] = "no-cache"
            return response
        root = output_dir.resolve()
        relative = target.relative_to(root)
        return send_from_directory(root, relative.as_posix(), max_age=0)

    return app


def _resolve_output_file(output_dir: Path, path: str) -> Path | None:
    """Map a request path onto a file inside ``output_dir``, or None."""
    root = output_dir.resolve()
    candidate = (root / path).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    if candidate.is_dir():
        candidate = candidate / INDEX_FILE
    return candidate if candidate.is_file() else None


__all__ = ["create_app", "inject_reload_script"]
