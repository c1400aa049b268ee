r"""Fetch page data from the JSON API backing a site.

This module wraps the single request shape the page builder needs: a
``GET`` or ``POST`` against ``<base_url><endpoint>`` that returns a JSON
document. Transport and HTTP failures are mapped onto the
:class:`~livepages.errors.FetchError` family so callers can tell a dead
server from a bad response from a malformed request.

Example
-------
>>> from livepages.config import ApiConfig
>>> from livepages.fetcher import ApiClient
>>> client = ApiClient(ApiConfig(base_url="http://localhost:3001"))  # doctest: +SKIP
>>> client.fetch("/api/home")  # doctest: +SKIP
{'title': 'Home', ...}
"""

from __future__ import annotations

import concurrent.futures as cf
import dataclasses as dc
import typing as typ

import requests

from .errors import ApiError, FetchError, NetworkError, RequestConfigError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .config import ApiConfig


@dc.dataclass(frozen=True, slots=True)
class FetchRequest:
    """Endpoint, method, and parameters for one API call."""

    endpoint: str
    method: str = "GET"
    params: typ.Mapping[str, typ.Any] = dc.field(default_factory=dict)


class ApiClient:
    """Thin wrapper around the site's JSON API.

    The client never retries: a failed request surfaces immediately so the
    page builder can report it, and retry policy stays with the caller.
    """

    def __init__(
        self,
        api_config: ApiConfig,
        *,
        session: requests.Session | None = None,
    ) -> None:
        """Initialise the client for ``api_config``.

        Parameters
        ----------
        api_config : ApiConfig
            Base URL, timeout in seconds, and headers sent with every request.
        session : requests.Session, optional
            Preconfigured session to reuse connections; defaults to a new
            session that ignores proxy settings from the environment.
        """
        self.config = api_config
        if session is None:
            session = requests.Session()
            session.trust_env = False
        self._session = session

    def fetch(
        self,
        endpoint: str,
        method: str = "GET",
        params: typ.Mapping[str, typ.Any] | None = None,
    ) -> typ.Any:
        """Request ``endpoint`` and return the decoded JSON body.

        Parameters
        ----------
        endpoint : str
            Path appended to the configured base URL.
        method : str, optional
            HTTP method; ``GET`` sends ``params`` as the query string, any
            other method sends them as a JSON body.
        params : Mapping[str, Any], optional
            Request parameters.

        Returns
        -------
        Any
            Parsed JSON payload.

        Raises
        ------
        ApiError
            The server answered with a non-2xx status.
        NetworkError
            No response arrived (connection refused, timeout).
        RequestConfigError
            The request could not be assembled (bad URL, unserialisable body).
        FetchError
            The response body was not valid JSON.
        """
        verb = (method or "GET").upper()
        url = f"{self.config.base_url.rstrip('/')}{endpoint}"
        payload = dict(params or {})
        kwargs: dict[str, typ.Any] = {
            "headers": dict(self.config.headers),
            "timeout": self.config.timeout,
        }
        if verb == "GET":
            kwargs["params"] = payload
        else:
            kwargs["json"] = payload

        try:
            response = self._session.request(verb, url, **kwargs)
        except (requests.Timeout, requests.ConnectionError) as exc:
            msg = f"Network error: unable to reach {url}"
            raise NetworkError(msg) from exc
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            TypeError,
            ValueError,
        ) as exc:
            msg = f"Request configuration error: {exc}"
            raise RequestConfigError(msg) from exc
        except requests.RequestException as exc:  # pragma: no cover - requests guard
            msg = f"Network error: unable to reach {url}: {exc}"
            raise NetworkError(msg) from exc

        status = response.status_code
        if not 200 <= status < 300:  # noqa: PLR2004 - HTTP success range
            msg = f"API error ({status}): {response.reason}"
            raise ApiError(msg, status=status)

        try:
            return response.json()
        except ValueError as exc:
            msg = f"API response from {url} was not valid JSON"
            raise FetchError(msg) from exc

    def fetch_batch(
        self,
        requests_: cabc.Sequence[FetchRequest],
        *,
        max_workers: int | None = None,
    ) -> list[typ.Any]:
        """Issue every request concurrently and return payloads in order.

        The batch fails as a whole: the first error raised by any request is
        re-raised as soon as it happens. Requests that have not started yet
        are cancelled and requests still in flight are left to finish in the
        background.
        """
        if not requests_:
            return []
        workers = max_workers or len(requests_)
        pool = cf.ThreadPoolExecutor(max_workers=workers)
        try:
            futures = [
                pool.submit(self.fetch, item.endpoint, item.method, item.params)
                for item in requests_
            ]
            done, _pending = cf.wait(futures, return_when=cf.FIRST_EXCEPTION)
            for future in futures:
                error = future.exception() if future in done else None
                if error is not None:
                    raise error
            return [future.result() for future in futures]
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def close(self) -> None:
        """Release pooled connections held by the session."""
        self._session.close()


def fetch_data(
    endpoint: str,
    method: str,
    params: typ.Mapping[str, typ.Any] | None,
    api_config: ApiConfig,
    *,
    session: requests.Session | None = None,
) -> typ.Any:
    """Fetch a single endpoint with a short-lived client."""
    client = ApiClient(api_config, session=session)
    try:
        return client.fetch(endpoint, method, params)
    finally:
        if session is None:
            client.close()


__all__ = ["ApiClient", "FetchRequest", "fetch_data"]
