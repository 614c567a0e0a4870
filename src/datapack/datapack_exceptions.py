"""DataPack custom exception module."""


class DataPackError(Exception):
    """Base class of every error the packaging engine raises on purpose."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors


class TransportError(DataPackError):
    """Custom exception thrown when the index or blob store answers with an HTTP
    error status. `status` holds the status code and the message holds the
    server's response string."""

    def __init__(self, message, status=None, errors=None):
        super().__init__(message, errors)
        self.status = status


class NotFound(TransportError):
    """Custom exception thrown when a ref or blob lookup answers 404."""

    def __init__(self, message, errors=None):
        super().__init__(message, 404, errors)


class Forbidden(TransportError):
    """Custom exception thrown when the index refuses a request with 403, typically
    a publish by a user who does not own the dataset."""

    def __init__(self, message, errors=None):
        super().__init__(message, 403, errors)


class NetworkError(DataPackError):
    """Custom exception thrown when the index or blob store cannot be reached at all
    (connection refused, unreachable host). Retrying later may succeed."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class IntegrityError(DataPackError):
    """Custom exception thrown when content received from a blob store does not hash
    to the hash it was requested by."""

    def __init__(self, message, expected=None, actual=None, errors=None):
        super().__init__(message, errors)
        self.expected = expected
        self.actual = actual


class ManifestIncomplete(DataPackError):
    """Custom exception thrown when an operation requires every manifest entry to
    be hashed, but some are still waiting to be hashed."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class DescriptorInvalid(DataPackError):
    """Custom exception thrown when the Datafile lacks a valid author, name
    or version."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class BlobsNotUploaded(DataPackError):
    """Custom exception thrown when publishing a pack whose blobs are not all
    present in the blob store."""

    def __init__(self, count, errors=None):
        message = (
            f"{count} objects must be uploaded first. Run 'data pack upload'."
        )
        super().__init__(message, errors)
        self.count = count


class VersionConflict(DataPackError):
    """Custom exception thrown when publishing a version that is already published
    with different contents, without forcing."""

    def __init__(self, version, existing, dataset, errors=None):
        message = (
            f"Version {version} ({existing[:7]}) already published, but contents differ.\n"
            "If you're trying to publish a new version, increment the version\n"
            "number in Datafile, and then try again:\n\n"
            f"    dataset: {dataset}  <--- change this number\n\n"
            "If you're trying to _overwrite_ the published version with this one,\n"
            "you may do so with the '--force' flag. However, this is not advised.\n"
            "You might break compatibility for everyone else using this dataset."
        )
        super().__init__(message, errors)
        self.version = version
        self.existing = existing
        self.dataset = dataset


class NoSuchVersion(DataPackError):
    """Custom exception thrown when a version alias cannot be resolved because the
    dataset has no published versions."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class NoRefForVersion(DataPackError):
    """Custom exception thrown when a version has no published manifest ref."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class InvalidHandle(DataPackError):
    """Custom exception thrown when a dataset identifier is not of the form
    `author/name[@version]`."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class InvalidHash(DataPackError):
    """Custom exception thrown when a string is not a 40 character hex sha1 digest."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class InvalidPath(DataPackError):
    """Custom exception thrown when a path cannot be tracked in a manifest: it is
    hidden, inside the installed datasets directory, outside the dataset root or
    the manifest file itself."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class PathNotTracked(DataPackError):
    """Custom exception thrown when a path is not an entry of the manifest."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)


class HashNotTracked(DataPackError):
    """Custom exception thrown when no manifest entry has the given hash."""

    def __init__(self, message, errors=None):
        super().__init__(message, errors)
