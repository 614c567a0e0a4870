"""Authenticated HTTP access to a dataset index or an HTTP blob store."""

import logging
import requests
import yaml
from datapack import datapack_config as config
from datapack.datapack_exceptions import (
    Forbidden,
    NetworkError,
    NotFound,
    TransportError,
)


def normalize_url(url):
    """Lower-case `url` and make sure it carries a scheme, `http://` by default.

    :param str url: URL as found in the user config.

    :return: Normalized URL without a trailing slash.
    :rtype: str
    """
    if url is None or url.strip() == "":
        exception_string = "HttpClient - normalize_url: url cannot be None or empty."
        logging.error(exception_string)
        raise ValueError(exception_string)
    url = url.strip().lower()
    if not url.startswith("http://") and not url.startswith("https://"):
        url = "http://" + url
    return url.rstrip("/")


class HttpClient:
    """Sends requests carrying the user and token headers, and maps HTTP error
    statuses onto the packaging error kinds:

    - 2xx/3xx: success, the response is returned.
    - 404: `NotFound`
    - 403: `Forbidden`
    - any other 4xx/5xx: `TransportError` with the status and response text.
    - connection refused, unreachable, timeouts: `NetworkError`

    :param str url: Index or blob store URL.
    :param str user: Value of the 'X-Data-User' header.
    :param str token: Value of the 'X-Data-Token' header.
    :param bool api_suffix: Append '/api/v1' to the URL when missing.
    :param session: A `requests.Session`-like object (injected by tests).
    """

    def __init__(self, url, user=None, token=None, api_suffix=True, session=None):
        url = normalize_url(url)
        if url.endswith(config.API_URL_SUFFIX):
            self.base_url = url[: -len(config.API_URL_SUFFIX)]
        else:
            self.base_url = url
        self.url = self.base_url + config.API_URL_SUFFIX if api_suffix else url
        self.user = user or ""
        self.token = token or ""
        self.session = session if session is not None else requests.Session()

    def sub_url(self, path):
        """Return the absolute URL of `path` below the client URL."""
        return self.url + "/" + path.lstrip("/")

    def get(self, path, stream=False):
        """GET `path`; with `stream` the body is left unread for the caller."""
        return self.request("GET", path, stream=stream)

    def head(self, path):
        """HEAD `path`."""
        return self.request("HEAD", path)

    def put(self, path, data):
        """PUT the bytes or readable stream `data` to `path`."""
        return self.request("PUT", path, data=data)

    def post(self, path, body=None):
        """POST `body`, serialized as YAML, to `path`."""
        data = None
        if body is not None:
            data = yaml.safe_dump(body, default_flow_style=False).encode("utf-8")
        return self.request(
            "POST", path, data=data, content_type=config.HTTP_CONTENT_TYPE_YAML
        )

    def request(self, method, path, data=None, content_type=None, stream=False):
        """Send a request and return the response if its status is a success.

        :param str method: HTTP method.
        :param str path: Path below the client URL.
        :param data: Request body (bytes or readable stream).
        :param str content_type: Optional 'Content-Type' header.
        :param bool stream: Whether to defer reading the response body.

        :return: The response object.
        """
        url = self.sub_url(path)
        logging.debug("HttpClient - request: %s %s", method, url)
        headers = {
            config.HTTP_HEADER_USER: self.user,
            config.HTTP_HEADER_TOKEN: self.token,
        }
        if content_type is not None:
            headers[config.HTTP_HEADER_CONTENT_TYPE] = content_type

        try:
            response = self.session.request(
                method, url, headers=headers, data=data, stream=stream
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as err:
            exception_string = (
                f"HttpClient - request: connection to {self.base_url} refused."
                + f" Is the index reachable? ({err})"
            )
            logging.error(exception_string)
            raise NetworkError(exception_string) from err
        except requests.exceptions.RequestException as err:
            exception_string = f"HttpClient - request: {method} {url} failed: {err}"
            logging.error(exception_string)
            raise TransportError(exception_string) from err

        return self._check_response(method, url, response)

    @staticmethod
    def _check_response(method, url, response):
        status = response.status_code
        if 200 <= status < 400:
            return response

        try:
            text = (response.text or "").strip()
        finally:
            response.close()
        exception_string = f"HTTP error status code: {status} ({text})"
        logging.debug("HttpClient - request: %s %s -> %s", method, url, exception_string)
        if status == 404:
            raise NotFound(exception_string)
        if status == 403:
            raise Forbidden(exception_string)
        raise TransportError(exception_string, status=status)
