"""Blob store interface, its implementations and the factory selecting one."""

from abc import ABC, abstractmethod
import importlib
import importlib.util
import io
import logging
import threading
from datapack import datapack_config as config
from datapack.datapack_exceptions import NotFound
from datapack.hasher import Stream
from datapack.httpclient import HttpClient


class BlobStore(ABC):
    """BlobStore is a key -> bytes object store over opaque string keys. Keys are
    derived from blob hashes by the caller ('/blob/<hash>'); the store itself makes
    no hashing or integrity claims. Verifying downloaded content against the key is
    the caller's responsibility.

    Blobs are write-once: content is fixed by the key, so putting an existing key
    again has no observable effect besides bandwidth.
    """

    @abstractmethod
    def has(self, key):
        """Report whether `key` exists without transferring its content.

        :param str key: Blob key.

        :return: bool - `True` if the store holds `key`.
        """
        raise NotImplementedError()

    @abstractmethod
    def put(self, key, reader):
        """Upload the stream `reader` under `key`.

        :param str key: Blob key.
        :param io.BufferedReader reader: Readable stream of the blob contents.
        """
        raise NotImplementedError()

    @abstractmethod
    def get(self, key):
        """Download the blob stored under `key`. The caller is responsible for
        closing the returned stream.

        :param str key: Blob key.

        :return: A readable stream of the blob contents.

        :raises NotFound: If `key` is not in the store.
        """
        raise NotImplementedError()


class MemoryBlobStore(BlobStore):
    """BlobStore keeping blobs in a dictionary. Counts the puts and gets it served."""

    def __init__(self, properties=None):
        self.blobs = dict((properties or {}).get("blobs", {}))
        self.puts = 0
        self.gets = 0
        self._lock = threading.Lock()

    def has(self, key):
        with self._lock:
            return key in self.blobs

    def put(self, key, reader):
        content = b"".join(Stream(reader)) if hasattr(reader, "read") else bytes(reader)
        with self._lock:
            self.blobs[key] = content
            self.puts += 1
        logging.debug("MemoryBlobStore - put: %s (%s bytes)", key, len(content))

    def get(self, key):
        with self._lock:
            if key not in self.blobs:
                exception_string = f"MemoryBlobStore - get: no blob for key: {key}"
                logging.debug(exception_string)
                raise NotFound(exception_string)
            self.gets += 1
            return io.BytesIO(self.blobs[key])


class HttpBlobStore(BlobStore):
    """BlobStore over an S3-like HTTP endpoint: HEAD to probe, PUT to upload and
    GET to download `<url><key>`.

    :param dict properties: A Python dictionary with the following keys:
        - url (str): Base URL of the bucket.
        - user (str): Optional 'X-Data-User' credential.
        - token (str): Optional 'X-Data-Token' credential.
        - session: Optional `requests.Session`-like object.
    """

    def __init__(self, properties=None):
        properties = properties or {}
        self.http = HttpClient(
            properties.get("url") or config.DEFAULT_BLOBSTORE["url"],
            user=properties.get("user"),
            token=properties.get("token"),
            api_suffix=False,
            session=properties.get("session"),
        )

    def has(self, key):
        try:
            response = self.http.head(key)
        except NotFound:
            return False
        response.close()
        return True

    def put(self, key, reader):
        logging.debug("HttpBlobStore - put: %s", self.http.sub_url(key))
        response = self.http.put(key, reader)
        response.close()

    def get(self, key):
        logging.debug("HttpBlobStore - get: %s", self.http.sub_url(key))
        response = self.http.get(key, stream=True)
        raw = response.raw
        raw.decode_content = True
        return raw


class BlobStoreFactory:
    """A factory class for creating `BlobStore`-like objects (classes that implement
    the 'BlobStore' abstract methods) from a module and class name, such as
    "datapack.blobstore" and "HttpBlobStore".
    """

    @staticmethod
    def get_blobstore(module_name, class_name, properties=None):
        """Get a `BlobStore`-like object based on `module_name` and `class_name`.

        :param str module_name: Name of the module (ex. "datapack.blobstore").
        :param str class_name: Name of the class in that module (ex. "HttpBlobStore").
        :param dict properties: Properties handed to the class constructor.

        :return: BlobStore - A blob store object.

        :raises ModuleNotFoundError: If the module is not found.
        :raises AttributeError: If the class does not exist within the module.
        """
        if importlib.util.find_spec(module_name) is None:
            raise ModuleNotFoundError(f"No module found for '{module_name}'")

        imported_module = importlib.import_module(module_name)

        if hasattr(imported_module, class_name):
            blobstore_class = getattr(imported_module, class_name)
            return blobstore_class(properties=properties)
        raise AttributeError(
            f"Class name '{class_name}' is not an attribute of module '{module_name}'"
        )
