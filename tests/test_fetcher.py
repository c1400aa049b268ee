"""Unit tests for the JSON API fetcher."""

from __future__ import annotations

import threading
import typing as typ
from types import SimpleNamespace

import pytest
import requests

from livepages.config import ApiConfig
from livepages.errors import ApiError, FetchError, NetworkError, RequestConfigError
from livepages.fetcher import ApiClient, FetchRequest, fetch_data

if typ.TYPE_CHECKING:
    from pytest_mock import MockerFixture

CONFIG = ApiConfig(
    base_url="http://api.invalid", timeout=3.0, headers={"X-Token": "abc"}
)


def _response(payload: object, status: int = 200, reason: str = "OK") -> SimpleNamespace:
    return SimpleNamespace(status_code=status, reason=reason, json=lambda: payload)


def test_get_sends_query_params_headers_and_timeout(mocker: MockerFixture) -> None:
    """GET requests carry params as the query string."""
    session = mocker.Mock(spec=requests.Session)
    session.request.return_value = _response({"title": "Home"})

    payload = ApiClient(CONFIG, session=session).fetch("/api/home", "get", {"page": 2})

    assert payload == {"title": "Home"}
    session.request.assert_called_once_with(
        "GET",
        "http://api.invalid/api/home",
        headers={"X-Token": "abc"},
        timeout=3.0,
        params={"page": 2},
    )


def test_post_sends_json_body(mocker: MockerFixture) -> None:
    session = mocker.Mock(spec=requests.Session)
    session.request.return_value = _response([1, 2])

    ApiClient(CONFIG, session=session).fetch("/api/search", "POST", {"q": "x"})

    kwargs = session.request.call_args.kwargs
    assert kwargs["json"] == {"q": "x"}, "expected POST params sent as JSON body"
    assert "params" not in kwargs


def test_non_2xx_status_raises_api_error(mocker: MockerFixture) -> None:
    session = mocker.Mock(spec=requests.Session)
    session.request.return_value = _response(None, 503, "Service Unavailable")

    with pytest.raises(ApiError, match="503") as excinfo:
        ApiClient(CONFIG, session=session).fetch("/api/home")
    assert excinfo.value.status == 503


@pytest.mark.parametrize("error", [requests.Timeout, requests.ConnectionError])
def test_missing_response_raises_network_error(
    mocker: MockerFixture, error: type[Exception]
) -> None:
    session = mocker.Mock(spec=requests.Session)
    session.request.side_effect = error("boom")

    with pytest.raises(NetworkError, match="http://api.invalid/api/home"):
        ApiClient(CONFIG, session=session).fetch("/api/home")


def test_malformed_url_raises_request_config_error(mocker: MockerFixture) -> None:
    session = mocker.Mock(spec=requests.Session)
    session.request.side_effect = requests.exceptions.MissingSchema("no scheme")

    with pytest.raises(RequestConfigError):
        ApiClient(CONFIG, session=session).fetch("/api/home")


def test_invalid_json_raises_fetch_error(mocker: MockerFixture) -> None:
    session = mocker.Mock(spec=requests.Session)
    response = mocker.Mock(status_code=200, reason="OK")
    response.json.side_effect = ValueError("not json")
    session.request.return_value = response

    with pytest.raises(FetchError, match="not valid JSON"):
        ApiClient(CONFIG, session=session).fetch("/api/home")


def test_client_does_not_retry(mocker: MockerFixture) -> None:
    session = mocker.Mock(spec=requests.Session)
    session.request.side_effect = requests.ConnectionError("down")

    with pytest.raises(NetworkError):
        ApiClient(CONFIG, session=session).fetch("/api/home")
    assert session.request.call_count == 1, "expected a single attempt"


def test_fetch_batch_returns_payloads_in_request_order(mocker: MockerFixture) -> None:
    session = mocker.Mock(spec=requests.Session)

    def _request(method: str, url: str, **_kwargs: object) -> SimpleNamespace:
        return _response({"url": url})

    session.request.side_effect = _request
    client = ApiClient(CONFIG, session=session)

    payloads = client.fetch_batch(
        [FetchRequest("/a"), FetchRequest("/b", "POST", {"x": 1}), FetchRequest("/c")]
    )

    assert [item["url"] for item in payloads] == [
        "http://api.invalid/a",
        "http://api.invalid/b",
        "http://api.invalid/c",
    ]


def test_fetch_batch_fails_when_any_request_fails(mocker: MockerFixture) -> None:
    """One failing request fails the batch without waiting on slow peers."""
    session = mocker.Mock(spec=requests.Session)
    release = threading.Event()
    slow_finished = threading.Event()

    def _request(method: str, url: str, **_kwargs: object) -> SimpleNamespace:
        if url.endswith("/bad"):
            return _response(None, 500, "Internal Server Error")
        release.wait(timeout=5)
        slow_finished.set()
        return _response({})

    session.request.side_effect = _request
    client = ApiClient(CONFIG, session=session)

    try:
        with pytest.raises(ApiError) as excinfo:
            client.fetch_batch([FetchRequest("/slow"), FetchRequest("/bad")])
        assert not slow_finished.is_set(), (
            "the error should surface while the slow request is still running"
        )
    finally:
        release.set()
    assert excinfo.value.status == 500


def test_fetch_data_uses_the_supplied_session(mocker: MockerFixture) -> None:
    session = mocker.Mock(spec=requests.Session)
    session.request.return_value = _response({"ok": True})

    assert fetch_data("/api/ok", "GET", None, CONFIG, session=session) == {"ok": True}
    session.close.assert_not_called()
