"""Test module for BlobStore implementations and the BlobStoreFactory."""

import io
import pytest
from datapack.blobstore import (
    BlobStoreFactory,
    HttpBlobStore,
    MemoryBlobStore,
)
from datapack.datapack_exceptions import NotFound, TransportError
from conftest import FakeResponse

KEY = "/blob/da39a3ee5e6b4b0d3255bfef95601890afd80709"


def test_memory_put_has_get():
    """Confirm a blob put in memory can be probed and read back."""
    store = MemoryBlobStore()
    assert not store.has(KEY)
    store.put(KEY, io.BytesIO(b"content"))
    assert store.has(KEY)
    with store.get(KEY) as reader:
        assert reader.read() == b"content"


def test_memory_put_twice_is_idempotent():
    """Confirm putting the same key twice leaves the same content."""
    store = MemoryBlobStore()
    store.put(KEY, io.BytesIO(b"content"))
    store.put(KEY, io.BytesIO(b"content"))
    assert store.blobs == {KEY: b"content"}
    assert store.puts == 2


def test_memory_get_missing():
    """Confirm getting a missing key raises NotFound."""
    with pytest.raises(NotFound):
        MemoryBlobStore().get(KEY)


def test_http_put_has_get(session):
    """Confirm the HTTP store maps has/put/get onto HEAD/PUT/GET of url + key."""
    store = HttpBlobStore({"url": "blobs.test/bucket", "session": session})
    assert not store.has(KEY)
    store.put(KEY, io.BytesIO(b"content"))
    assert store.has(KEY)
    reader = store.get(KEY)
    assert reader.read() == b"content"
    reader.close()

    urls = {request["url"] for request in session.requests}
    assert urls == {"http://blobs.test/bucket" + KEY}
    assert [request["method"] for request in session.requests] == [
        "HEAD",
        "PUT",
        "HEAD",
        "GET",
    ]


def test_http_sends_credentials(session):
    """Confirm credentials travel as headers on blob requests."""
    store = HttpBlobStore(
        {"url": "http://blobs.test", "user": "jbenet", "token": "s3cr3t", "session": session}
    )
    store.has(KEY)
    headers = session.requests[0]["headers"]
    assert headers["X-Data-User"] == "jbenet"
    assert headers["X-Data-Token"] == "s3cr3t"


def test_http_get_missing(session):
    """Confirm a 404 on GET raises NotFound."""
    store = HttpBlobStore({"url": "http://blobs.test", "session": session})
    with pytest.raises(NotFound):
        store.get(KEY)


def test_http_has_error_status(session):
    """Confirm a server error on HEAD is a TransportError, not a missing blob."""
    session.routes[("HEAD", "http://blobs.test" + KEY)] = FakeResponse(500, b"oops")
    store = HttpBlobStore({"url": "http://blobs.test", "session": session})
    with pytest.raises(TransportError) as excinfo:
        store.has(KEY)
    assert excinfo.value.status == 500


def test_factory_get_blobstore():
    """Confirm the factory builds a store from a module and class name."""
    store = BlobStoreFactory.get_blobstore(
        "datapack.blobstore", "MemoryBlobStore", {"blobs": {KEY: b"x"}}
    )
    assert isinstance(store, MemoryBlobStore)
    assert store.has(KEY)


def test_factory_unknown_module():
    """Confirm the factory raises ModuleNotFoundError for an unknown module."""
    with pytest.raises(ModuleNotFoundError):
        BlobStoreFactory.get_blobstore("datapack.nostore", "MemoryBlobStore")


def test_factory_unknown_class():
    """Confirm the factory raises AttributeError for an unknown class."""
    with pytest.raises(AttributeError):
        BlobStoreFactory.get_blobstore("datapack.blobstore", "NoStore")
