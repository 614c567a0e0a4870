"""Streaming sha1 hashing of files and byte streams, and blob key derivation."""

import hashlib
import io
import logging
import os
import string
from datapack import datapack_config as config
from datapack.datapack_exceptions import InvalidHash


def is_hash(value):
    """Recognize the string form of a blob hash: exactly 40 lowercase hex characters.

    :param str value: Candidate string.

    :return: True if `value` is a hash.
    :rtype: bool
    """
    if not isinstance(value, str) or len(value) != config.HASH_LENGTH:
        return False
    return all(ch in string.hexdigits and not ch.isupper() for ch in value)


def check_hash(value):
    """Raise `InvalidHash` unless `value` is a hash.

    :param str value: Candidate string.

    :return: The given value.
    :rtype: str
    """
    if not is_hash(value):
        exception_string = f"Hasher - check_hash: not a valid hash: {value}"
        logging.error(exception_string)
        raise InvalidHash(exception_string)
    return value


def blob_key(hash_id):
    """Derive the blob store key for a hash. This is the only key format used
    against a blob store.

    :param str hash_id: Hex digest of the blob.

    :return: Key of the form '/blob/<hash>'.
    :rtype: str
    """
    check_hash(hash_id)
    return config.BLOB_KEY_PREFIX + hash_id


def hash_stream(stream):
    """Compute the hex sha1 of a `Stream`, a readable file-like object or bytes.

    :param mixed stream: Stream, buffered reader or bytes.

    :return: Lowercase hex digest.
    :rtype: str
    """
    if isinstance(stream, (bytes, bytearray)):
        stream = io.BytesIO(stream)
    if not isinstance(stream, Stream):
        stream = Stream(stream)
    hashobj = hashlib.new(config.HASH_ALGORITHM)
    try:
        for data in stream:
            hashobj.update(data)
    finally:
        stream.close()
    return hashobj.hexdigest()


def hash_file(path):
    """Open the file at `path` and compute the hex sha1 of its contents.

    :param str path: Path to the file.

    :return: Lowercase hex digest.
    :rtype: str

    :raises OSError: If the file cannot be read.
    """
    if not os.path.isfile(path):
        exception_string = f"Hasher - hash_file: not a readable file: {path}"
        logging.error(exception_string)
        raise FileNotFoundError(exception_string)
    hex_digest = hash_stream(Stream(path))
    logging.debug("Hasher - hash_file: %s %s", hex_digest, path)
    return hex_digest


class Stream(object):
    """Common interface for file-like objects.

    The input `obj` can be a file-like object or a path to a file. If `obj` is
    a path to a file, then it will be opened until :meth:`close` is called.
    If `obj` is a file-like object that supports seeking, its original position
    is restored when :meth:`close` is called instead of closing it; the caller
    keeps ownership. Non-seekable objects (such as network responses) are read
    once from where they are.
    """

    def __init__(self, obj):
        if hasattr(obj, "read"):
            pos = obj.tell() if _seekable(obj) else None
            owned = False
        elif isinstance(obj, (str, os.PathLike)) and os.path.isfile(obj):
            obj = io.open(obj, "rb")
            pos = None
            owned = True
        else:
            raise ValueError("Object must be a valid file path or a readable object")

        try:
            buffer_size = os.fstat(obj.fileno()).st_blksize or config.BUFFER_SIZE
        except (AttributeError, OSError, io.UnsupportedOperation):
            buffer_size = config.BUFFER_SIZE

        self._obj = obj
        self._pos = pos
        self._owned = owned
        self._buffer_size = buffer_size

    def __iter__(self):
        """Read underlying IO object and yield results. Return object to
        original position if we didn't open it originally.
        """
        if self._pos is not None or self._owned:
            self._obj.seek(0)

        while True:
            data = self._obj.read(self._buffer_size)

            if not data:
                break

            yield data

        if self._pos is not None:
            self._obj.seek(self._pos)

    def close(self):
        """Close underlying IO object if we opened it, else return it to
        original position.
        """
        if self._owned:
            self._obj.close()
        elif self._pos is not None:
            self._obj.seek(self._pos)


def _seekable(obj):
    try:
        return obj.seekable()
    except (AttributeError, ValueError):
        return False
