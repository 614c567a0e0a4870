"""Dataset index: version refs per dataset, and the blob store datasets live in."""

from abc import ABC, abstractmethod
from contextlib import closing
import functools
import hashlib
import io
import logging
import os
import threading
from tempfile import NamedTemporaryFile
import yaml
from datapack import datapack_config as config
from datapack.blobstore import BlobStoreFactory, MemoryBlobStore
from datapack.datapack_exceptions import (
    Forbidden,
    IntegrityError,
    NoRefForVersion,
    NoSuchVersion,
    NotFound,
)
from datapack.hasher import Stream, blob_key, check_hash
from datapack.httpclient import HttpClient


class RefIndex(ABC):
    """RefIndex holds, for one `author/name` dataset, the ordered published versions
    and the manifest hash (ref) each one points to, plus the 'latest' alias. The
    server is authoritative; records are cached in memory once fetched.

    Subclasses implement the transport: `_fetch` and `_put`.

    :param str path: Dataset path, 'author/name'.
    """

    def __init__(self, path):
        self.path = path
        self.versions = None
        self.latest = None

    @abstractmethod
    def _fetch(self):
        """Download the dataset record.

        :return: tuple - versions, latest
            - versions (dict): Published version -> ref, in publishing order.
            - latest (str): Version the 'latest' alias points to, or None.
        """
        raise NotImplementedError()

    @abstractmethod
    def _put(self, version, ref):
        """Publish `ref` for `version`."""
        raise NotImplementedError()

    def fetch_refs(self, force=False):
        """Download the dataset's refs unless a copy is already cached (or `force`)."""
        if self.versions is not None and not force:
            return
        versions, latest = self._fetch()
        self.versions = dict(versions)
        self.latest = latest
        logging.debug(
            "RefIndex - fetch_refs: %s has %s published versions",
            self.path,
            len(self.versions),
        )

    def ref_version(self, version):
        """Resolve a version alias into a published version string.

        - 'latest' resolves to the most recently published version.
        - A published version resolves to itself.
        - A numeric prefix ('1') resolves to the most recent version it prefixes
          ('1.2'). Anything else is returned unchanged.

        :raises NoSuchVersion: If the dataset has no published versions at all.
        """
        self.fetch_refs()
        if not self.versions:
            exception_string = f"No published versions of {self.path}."
            logging.error("RefIndex - ref_version: %s", exception_string)
            raise NoSuchVersion(exception_string)

        if version == config.LATEST_VERSION:
            if self.latest in self.versions:
                return self.latest
            return list(self.versions)[-1]
        if version in self.versions:
            return version
        prefixed = [v for v in self.versions if v.startswith(version + ".")]
        if prefixed:
            return prefixed[-1]
        return version

    def version_ref(self, version):
        """Return the manifest hash published for `version`.

        :raises NoRefForVersion: If `version` has no published ref.
        :raises NotFound: If the index does not know the dataset.
        """
        self.fetch_refs()
        ref = self.versions.get(version)
        if ref is None:
            exception_string = f"No ref for version {version} of {self.path}."
            logging.debug("RefIndex - version_ref: %s", exception_string)
            raise NoRefForVersion(exception_string)
        return ref

    def put(self, ref, version):
        """Publish manifest hash `ref` as `version` of this dataset.

        :raises Forbidden: If the index refuses the publish.
        """
        check_hash(ref)
        self._put(version, ref)
        logging.info("RefIndex - put: published %s@%s -> %s", self.path, version, ref)
        if self.versions is not None:
            if version not in self.versions:
                self.latest = version
            self.versions[version] = ref


def parse_refs(yaml_data):
    """Read a dataset record of the form:

        versions:
          "1.0": <hash>
          "1.1": <hash>
        latest: "1.1"

    `versions` may also be a list of `{version: ..., ref: ...}` mappings.

    :return: tuple - versions (dict), latest (str or None)
    """
    yaml_data = yaml_data or {}
    entries = yaml_data.get("versions") or {}
    versions = {}
    if isinstance(entries, dict):
        for version, ref in entries.items():
            versions[str(version)] = str(ref)
    else:
        for entry in entries:
            versions[str(entry["version"])] = str(entry["ref"])
    latest = yaml_data.get("latest")
    return versions, (str(latest) if latest is not None else None)


class HttpRefIndex(RefIndex):
    """RefIndex over the index HTTP API:

    - GET  /<author>/<name>            -> YAML dataset record (see `parse_refs`)
    - POST /<author>/<name>/<version>  <- YAML `{ref: <manifest hash>}`

    :param HttpClient http: Authenticated client of the index.
    :param str path: Dataset path, 'author/name'.
    """

    def __init__(self, http, path):
        super().__init__(path)
        self.http = http

    def _fetch(self):
        response = self.http.get(self.path)
        try:
            yaml_data = yaml.safe_load(response.content)
        finally:
            response.close()
        return parse_refs(yaml_data)

    def _put(self, version, ref):
        response = self.http.post(f"{self.path}/{version}", {"ref": ref})
        response.close()


class MemoryRefServer:
    """In-memory stand-in for the index server. Keeps every dataset record and counts
    the requests served."""

    def __init__(self):
        self.records = {}
        self.forbidden = set()
        self.fetches = 0
        self.posts = 0
        self._lock = threading.Lock()

    def ref_index(self, path):
        """Return a `MemoryRefIndex` for `path` backed by this server."""
        return MemoryRefIndex(self, path)

    def publish(self, path, version, ref):
        """Record `ref` for `path@version`, as a POST would."""
        with self._lock:
            if path in self.forbidden:
                raise Forbidden(f"HTTP error status code: 403 (forbidden: {path})")
            self.posts += 1
            record = self.records.setdefault(path, {"versions": {}, "latest": None})
            record["versions"][version] = ref
            record["latest"] = version

    def record(self, path):
        """Return a copy of the record for `path`, as a GET would.

        :raises NotFound: If the dataset was never published.
        """
        with self._lock:
            self.fetches += 1
            if path not in self.records:
                raise NotFound(f"HTTP error status code: 404 (no dataset {path})")
            record = self.records[path]
            return dict(record["versions"]), record["latest"]


class MemoryRefIndex(RefIndex):
    """RefIndex against a `MemoryRefServer`."""

    def __init__(self, server, path):
        super().__init__(path)
        self.server = server

    def _fetch(self):
        return self.server.record(self.path)

    def _put(self, version, ref):
        self.server.publish(self.path, version, ref)


class DataIndex:
    """A named dataset index: the ref indexes of its datasets and the blob store
    holding their blobs.

    :param str name: Index name (ex. 'datadex').
    :param BlobStore blobstore: Store for the blobs of this index.
    :param callable ref_index_factory: Builds a `RefIndex` from an 'author/name' path.
    :param str base_url: Human-facing URL of the index (dataset web pages).
    """

    # Mode of files written by `get_blob`
    fmode = 0o664

    def __init__(self, name, blobstore, ref_index_factory, base_url=""):
        self.name = name
        self.blobstore = blobstore
        self.ref_index_factory = ref_index_factory
        self.base_url = base_url
        self.url = base_url
        self._ref_indexes = {}

    @classmethod
    def from_config(cls, name, index_config, session=None):
        """Build an HTTP index from its user config entry `{url, user, token}` with
        an optional `blobstore` entry `{module, class, url}`.

        :param str name: Index name.
        :param dict index_config: Config entry of the index.
        :param session: Optional `requests.Session`-like object.
        """
        if not index_config or not index_config.get("url"):
            exception_string = (
                f"DataIndex - from_config: index '{name}' has no url configured."
            )
            logging.error(exception_string)
            raise ValueError(exception_string)

        http = HttpClient(
            index_config["url"],
            user=index_config.get("user"),
            token=index_config.get("token"),
            session=session,
        )
        blobstore_config = dict(config.DEFAULT_BLOBSTORE)
        blobstore_config.update(index_config.get("blobstore") or {})
        properties = {
            "url": blobstore_config["url"],
            "user": http.user,
            "token": http.token,
            "session": http.session,
        }
        blobstore = BlobStoreFactory.get_blobstore(
            blobstore_config["module"], blobstore_config["class"], properties
        )
        index = cls(
            name,
            blobstore,
            functools.partial(HttpRefIndex, http),
            base_url=http.base_url,
        )
        index.url = http.url
        return index

    @classmethod
    def memory(cls, name="memory", base_url="http://localhost"):
        """Build an index kept entirely in memory. Its `MemoryRefServer` is exposed
        as the `refs` attribute."""
        server = MemoryRefServer()
        index = cls(name, MemoryBlobStore(), server.ref_index, base_url=base_url)
        index.refs = server
        return index

    def ref_index(self, path):
        """Return the (cached) `RefIndex` of dataset `path`."""
        if path not in self._ref_indexes:
            self._ref_indexes[path] = self.ref_index_factory(path)
        return self._ref_indexes[path]

    def handle_ref(self, handle):
        """Resolve `handle` (and its version alias) into its published manifest hash.
        `handle.version` is replaced by the resolved version.

        :raises NotFound: If the index does not know the dataset.
        :raises NoSuchVersion: If the dataset has no published versions.
        :raises NoRefForVersion: If the version has no published ref.
        """
        ref_index = self.ref_index(handle.path())
        try:
            ref_index.fetch_refs()
        except NotFound as err:
            raise NotFound(f"Error: {handle.dataset()} not found. ({err})") from err
        handle.version = ref_index.ref_version(handle.version)
        return ref_index.version_ref(handle.version)

    # Blobs

    def has_blob(self, hash_id):
        """Return `True` if the blob store holds the blob `hash_id`."""
        return self.blobstore.has(blob_key(hash_id))

    def put_blob(self, hash_id, source):
        """Upload the file at `source` (or the bytes/stream `source`) as blob `hash_id`.

        :raises OSError: If the file cannot be read.
        """
        key = blob_key(hash_id)
        logging.debug("DataIndex - put_blob: %s", key)
        if isinstance(source, (bytes, bytearray)):
            self.blobstore.put(key, io.BytesIO(source))
        elif hasattr(source, "read"):
            self.blobstore.put(key, source)
        else:
            with open(source, "rb") as blob_file:
                self.blobstore.put(key, blob_file)

    def get_blob(self, hash_id, path):
        """Download blob `hash_id` into the file at `path`, creating parent
        directories. The content is written to a temporary file next to `path` and
        hashed on the way; it only replaces `path` when it hashes to `hash_id`.

        :raises NotFound: If the blob store does not have the blob.
        :raises IntegrityError: If the received bytes do not hash to `hash_id`. The
            temporary file and any previous file at `path` are removed.
        """
        key = blob_key(hash_id)
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        logging.debug("DataIndex - get_blob: %s -> %s", key, path)

        reader = self.blobstore.get(key)
        tmp = NamedTemporaryFile(dir=directory, prefix=".tmp-", delete=False)
        tmp_file_completion_flag = False
        try:
            hashobj = hashlib.new(config.HASH_ALGORITHM)
            with closing(reader), tmp as tmp_file:
                for data in Stream(reader):
                    tmp_file.write(data)
                    hashobj.update(data)
            received = hashobj.hexdigest()

            if received != hash_id:
                if os.path.exists(path):
                    os.remove(path)
                exception_string = (
                    f"DataIndex - get_blob: blob {hash_id} received from"
                    + f" {self.name} hashes to {received}. Removed {path}."
                )
                logging.error(exception_string)
                raise IntegrityError(exception_string, expected=hash_id, actual=received)

            os.chmod(tmp.name, self.fmode)
            os.replace(tmp.name, path)
            tmp_file_completion_flag = True
        finally:
            if not tmp_file_completion_flag and os.path.exists(tmp.name):
                os.remove(tmp.name)
