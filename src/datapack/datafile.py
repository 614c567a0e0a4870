"""Dataset descriptor (Datafile) and dataset handles"""

import logging
import os
import re
from datapack import datapack_config as config
from datapack.datapack_exceptions import InvalidHandle
from datapack.serialize import SerializedFile

IDENT_PATTERN = re.compile(r"^[a-z0-9_-]+$")
VERSION_PATTERN = re.compile(r"^(latest|[0-9]+(\.[0-9]+)*)$")
_NOT_IDENT = re.compile(r"[^a-z0-9_-]+")


def ident_string(value):
    """Sanitize `value` into the identifier character class: lower-case, with every
    run of other characters replaced by a single '-'.

    Example: 'My Data Set!' -> 'my-data-set'
    """
    return _NOT_IDENT.sub("-", value.lower()).strip("-")


class Handle:
    """Parsed dataset identifier `author/name@version`. Author and name are
    lower-cased; an omitted version means 'latest'.

    :param str author: Author id.
    :param str name: Dataset id.
    :param str version: 'latest' or a dotted numeric tag.
    """

    def __init__(self, author="", name="", version=config.LATEST_VERSION):
        self.author = (author or "").lower()
        self.name = (name or "").lower()
        self.version = (version or config.LATEST_VERSION).lower()

    @classmethod
    def parse(cls, dataset):
        """Parse `author/name[@version]`. Never raises; check `valid()`."""
        dataset = (dataset or "").strip().lower()
        path, _, version = dataset.partition("@")
        author, _, name = path.rpartition("/")
        return cls(author, name, version)

    def valid(self):
        """Return `True` if author, name and version are present and well-formed."""
        return bool(
            IDENT_PATTERN.match(self.author)
            and IDENT_PATTERN.match(self.name)
            and VERSION_PATTERN.match(self.version)
        )

    def path(self):
        """Return 'author/name'."""
        return f"{self.author}/{self.name}"

    def dataset(self):
        """Return the canonical 'author/name@version'."""
        return f"{self.path()}@{self.version}"

    def install_path(self, cwd="."):
        """Return where the dataset installs: 'datasets/<author>/<name>' below `cwd`."""
        return os.path.join(cwd, config.DATASET_DIR, self.author, self.name)

    def __eq__(self, other):
        if not isinstance(other, Handle):
            return NotImplemented
        return self.dataset() == other.dataset()

    def __hash__(self):
        return hash(self.dataset())

    def __str__(self):
        return self.dataset()

    def __repr__(self):
        return f"Handle({self.dataset()!r})"


def parse_handle(dataset):
    """Parse `dataset` and return its `Handle`.

    :raises InvalidHandle: If the identifier is not valid.
    """
    handle = Handle.parse(dataset)
    if not handle.valid():
        exception_string = (
            f"Unclear how to handle dataset identifier: {dataset}."
            + " Expected <author>/<name>[@<version>]."
        )
        logging.error("Handle - parse_handle: %s", exception_string)
        raise InvalidHandle(exception_string)
    return handle


class Datafile(SerializedFile):
    """The dataset descriptor. `dataset` (the canonical `author/name@version` string)
    is authoritative; `handle()` is a parsed view of it.

    :param str path: Location of the Datafile.
    :param bool read: Load the file when it exists.
    """

    fields = ("dataset", "tagline", "description", "license", "website")

    def __init__(self, path=config.DATAFILE_NAME, read=True):
        super().__init__(path)
        self.dataset = ""
        self.tagline = ""
        self.description = ""
        self.license = ""
        self.website = ""
        self.dependencies = []
        if read and os.path.exists(self.path):
            self.read_file()

    def to_yaml_dict(self):
        yaml_dict = {"dataset": self.dataset}
        for field in self.fields[1:]:
            value = getattr(self, field)
            if value:
                yaml_dict[field] = value
        if self.dependencies:
            yaml_dict["dependencies"] = list(self.dependencies)
        return yaml_dict

    def from_yaml_dict(self, yaml_data):
        if not isinstance(yaml_data, dict):
            exception_string = (
                f"Datafile - from_yaml_dict: {self.path} must hold a mapping,"
                + f" found: {type(yaml_data).__name__}"
            )
            logging.error(exception_string)
            raise ValueError(exception_string)
        for field in self.fields:
            value = yaml_data.get(field)
            setattr(self, field, "" if value is None else str(value))
        self.dependencies = [str(dep) for dep in yaml_data.get("dependencies") or []]

    def handle(self):
        """Return the `Handle` parsed from the `dataset` field."""
        return Handle.parse(self.dataset)

    def set_handle(self, handle):
        """Replace the `dataset` field with the canonical form of `handle`."""
        self.dataset = handle.dataset()

    def valid(self):
        """Return `True` if the dataset field names a valid author, name and version."""
        return self.handle().valid()

    def valid_dependencies(self):
        """Return the dependencies that parse as valid handles."""
        return [dep for dep in self.dependencies if Handle.parse(dep).valid()]
