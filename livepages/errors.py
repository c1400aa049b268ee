"""Error taxonomy shared by the fetch, build, and watch pipeline.

Per-page errors (:class:`TemplateNotFoundError`, :class:`DataError`,
:class:`RenderError`, :class:`StagingError`) are raised inside the page
builder and converted into failed :class:`~livepages.builder.BuildResult`
values at its boundary. Fetch errors are wrapped into :class:`DataError`
before they reach that boundary.
"""

from __future__ import annotations


class LivePagesError(RuntimeError):
    """Base class for livepages pipeline failures."""


class TemplateNotFoundError(LivePagesError):
    """Raised when a page template cannot be located on disk."""


class DataError(LivePagesError):
    """Raised when page data cannot be fetched or transformed."""


class RenderError(LivePagesError):
    """Raised when a template fails to compile or evaluate."""


class StagingError(LivePagesError):
    """Raised when the temporary template root cannot be prepared."""


class FetchError(LivePagesError):
    """Base class for failures reported by the API fetcher."""


class ApiError(FetchError):
    """Raised when the API responds with a non-2xx status."""

    def __init__(self, message: str, *, status: int) -> None:
        super().__init__(message)
        self.status = status


class NetworkError(FetchError):
    """Raised when no response arrives within the configured timeout."""


class RequestConfigError(FetchError):
    """Raised when a request cannot be assembled from its configuration."""


class WatchError(LivePagesError):
    """Raised when filesystem observation cannot be started."""


__all__ = [
    "ApiError",
    "DataError",
    "FetchError",
    "LivePagesError",
    "NetworkError",
    "RenderError",
    "RequestConfigError",
    "StagingError",
    "TemplateNotFoundError",
    "WatchError",
]
