"""Pytest overall configuration file for fixtures"""

import io
import pytest
from datapack.context import Context
from datapack.index import DataIndex


class FakeRaw(io.BytesIO):
    """Stands in for `requests`' raw urllib3 response body."""

    decode_content = False


class FakeResponse:
    """Minimal `requests.Response` stand-in."""

    def __init__(self, status_code=200, content=b""):
        self.status_code = status_code
        self.content = content
        self.text = content.decode("utf-8")
        self.raw = FakeRaw(content)
        self.closed = False

    def close(self):
        self.closed = True


class FakeSession:
    """Minimal `requests.Session` stand-in. Records every request; answers from
    `routes` ((method, url) -> FakeResponse or exception), and behaves like an
    object store for PUT/HEAD/GET on URLs that were PUT. Anything else is a 404.
    """

    def __init__(self):
        self.routes = {}
        self.objects = {}
        self.requests = []

    def request(self, method, url, headers=None, data=None, stream=False):
        if hasattr(data, "read"):
            data = data.read()
        self.requests.append(
            {"method": method, "url": url, "headers": headers or {}, "data": data}
        )
        route = self.routes.get((method, url))
        if isinstance(route, Exception):
            raise route
        if route is not None:
            return route
        if method == "PUT":
            self.objects[url] = data
            return FakeResponse(200)
        if method in ("HEAD", "GET") and url in self.objects:
            content = self.objects[url] if method == "GET" else b""
            return FakeResponse(200, content)
        return FakeResponse(404, b"404 page not found")

    def count(self, method):
        """Number of requests sent with `method`."""
        return sum(1 for request in self.requests if request["method"] == method)


def write_files(root, files):
    """Create `files` ({relative path: bytes}) below `root`."""
    for relpath, content in files.items():
        path = root / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)


@pytest.fixture(name="hashes")
def init_hashes():
    """Known sha1 hex digests of small contents."""
    return {
        b"hello\n": "f572d396fae9206628714fb2ce00f72e94f2258f",
        b"": "da39a3ee5e6b4b0d3255bfef95601890afd80709",
        b"x": "11f6ad8ec52a2984abaafd7c3b516503785c2072",
        b"abc": "a9993e364706816aba3e25717850c26c9cd0d89d",
        b"hello world": "2aae6c35c94fcfb415dbe95f408b9ce91ee846ed",
    }


@pytest.fixture(name="dataset_dir")
def init_dataset_dir(tmp_path):
    """A dataset working directory with a few files, one of them hidden."""
    directory = tmp_path / "work" / "My Data"
    directory.mkdir(parents=True)
    write_files(
        directory,
        {
            "a.txt": b"hello\n",
            "b/c.txt": b"",
            ".hidden": b"x",
        },
    )
    return directory


@pytest.fixture(name="index")
def init_index():
    """In-memory index (blob store and ref server)."""
    return DataIndex.memory(name="testdex", base_url="http://testdex.io")


@pytest.fixture(name="ctx")
def init_ctx(dataset_dir, index):
    """Non-interactive context working in `dataset_dir` as user 'jbenet'."""
    return Context(
        index=index,
        user="jbenet",
        cwd=str(dataset_dir),
        out=io.StringIO(),
        err=io.StringIO(),
        interactive=False,
    )


@pytest.fixture(name="session")
def init_session():
    """Fake HTTP session."""
    return FakeSession()
