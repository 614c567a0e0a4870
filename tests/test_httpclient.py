"""Test module for the authenticated HTTP client."""

import pytest
import requests
import yaml
from datapack.datapack_exceptions import (
    Forbidden,
    NetworkError,
    NotFound,
    TransportError,
)
from datapack.httpclient import HttpClient, normalize_url
from conftest import FakeResponse


def test_url_scheme_and_suffix_added(session):
    """Confirm a bare host gets 'http://' and the '/api/v1' suffix."""
    http = HttpClient("Datadex.IO", session=session)
    assert http.base_url == "http://datadex.io"
    assert http.url == "http://datadex.io/api/v1"


def test_url_keeps_https_and_existing_suffix(session):
    """Confirm an https URL already ending in the API suffix is kept."""
    http = HttpClient("https://datadex.io/api/v1/", session=session)
    assert http.base_url == "https://datadex.io"
    assert http.url == "https://datadex.io/api/v1"


def test_url_without_suffix(session):
    """Confirm the suffix can be left out (blob stores)."""
    http = HttpClient("blobs.test/bucket", api_suffix=False, session=session)
    assert http.url == "http://blobs.test/bucket"
    assert http.sub_url("/blob/abc") == "http://blobs.test/bucket/blob/abc"


def test_normalize_url_empty():
    """Confirm an empty URL is rejected."""
    with pytest.raises(ValueError):
        normalize_url("  ")


def test_get_sends_credentials(session):
    """Confirm the user and token headers are sent."""
    session.routes[("GET", "http://datadex.io/api/v1/jbenet/foo")] = FakeResponse(
        200, b"versions: {}\n"
    )
    http = HttpClient("datadex.io", user="jbenet", token="abc", session=session)
    response = http.get("jbenet/foo")
    assert response.status_code == 200
    headers = session.requests[0]["headers"]
    assert headers == {"X-Data-User": "jbenet", "X-Data-Token": "abc"}


def test_post_sends_yaml(session):
    """Confirm POST bodies are YAML with the YAML content type."""
    url = "http://datadex.io/api/v1/jbenet/foo/1.0"
    session.routes[("POST", url)] = FakeResponse(200)
    http = HttpClient("datadex.io", user="jbenet", token="abc", session=session)
    http.post("jbenet/foo/1.0", {"ref": "f572d396fae9206628714fb2ce00f72e94f2258f"})
    request = session.requests[0]
    assert request["headers"]["Content-Type"] == "application/yaml"
    assert yaml.safe_load(request["data"]) == {
        "ref": "f572d396fae9206628714fb2ce00f72e94f2258f"
    }


def test_redirect_status_is_success(session):
    """Confirm 3xx statuses count as success."""
    session.routes[("GET", "http://datadex.io/api/v1/x")] = FakeResponse(302)
    assert HttpClient("datadex.io", session=session).get("x").status_code == 302


@pytest.mark.parametrize(
    "status, error",
    [(404, NotFound), (403, Forbidden), (400, TransportError), (500, TransportError)],
)
def test_error_statuses(session, status, error):
    """Confirm HTTP error statuses map onto error kinds and carry the response text."""
    response = FakeResponse(status, b"  server says no \n")
    session.routes[("GET", "http://datadex.io/api/v1/x")] = response
    with pytest.raises(error) as excinfo:
        HttpClient("datadex.io", session=session).get("x")
    assert excinfo.value.status == status
    assert f"HTTP error status code: {status} (server says no)" in str(excinfo.value)
    assert response.closed


def test_connection_refused(session):
    """Confirm a refused connection is a NetworkError."""
    session.routes[("GET", "http://datadex.io/api/v1/x")] = requests.exceptions.ConnectionError(
        "Connection refused"
    )
    with pytest.raises(NetworkError):
        HttpClient("datadex.io", session=session).get("x")
