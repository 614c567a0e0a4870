"""YAML documents persisted on disk (Manifest, Datafile)."""

import logging
import os
from tempfile import NamedTemporaryFile
import yaml


class SerializedFile:
    """A YAML document bound to a path. Subclasses provide `to_yaml_dict` and
    `from_yaml_dict`; this class handles marshalling and atomic file writes.

    :param str path: Location of the document.
    """

    # Whether mapping keys are sorted when marshalling
    sort_keys = False
    fmode = 0o664
    dmode = 0o755

    def __init__(self, path):
        self.path = str(path)

    def to_yaml_dict(self):
        """Return the python structure to serialize."""
        raise NotImplementedError()

    def from_yaml_dict(self, yaml_data):
        """Populate this object from a deserialized python structure."""
        raise NotImplementedError()

    def marshal(self):
        """Serialize this document.

        :return: UTF-8 encoded YAML.
        :rtype: bytes
        """
        return dump_yaml(self.to_yaml_dict(), sort_keys=self.sort_keys)

    def unmarshal(self, buf):
        """Populate this document from YAML bytes or text."""
        yaml_data = yaml.safe_load(buf)
        self.from_yaml_dict(yaml_data if yaml_data is not None else {})

    def read_file(self):
        """Read and unmarshal the document at `self.path`.

        :raises OSError: If the file cannot be read.
        """
        with open(self.path, "rb") as yaml_file:
            self.unmarshal(yaml_file.read())
        logging.debug("%s - read_file: Loaded %s", type(self).__name__, self.path)

    def write_file(self):
        """Marshal the document and write it atomically: the bytes go to a temporary
        file in the destination directory which then replaces `self.path`.

        :raises OSError: If the file cannot be written.
        """
        buf = self.marshal()
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, self.dmode, exist_ok=True)

        tmp = NamedTemporaryFile(dir=directory, prefix=".tmp-", delete=False)
        try:
            with tmp as tmp_file:
                tmp_file.write(buf)
            os.chmod(tmp.name, self.fmode)
            os.replace(tmp.name, self.path)
        except BaseException as err:
            if os.path.exists(tmp.name):
                os.remove(tmp.name)
            logging.error(
                "%s - write_file: failed to write %s. Unexpected %r",
                type(self).__name__,
                self.path,
                err,
            )
            raise
        logging.debug("%s - write_file: Wrote %s", type(self).__name__, self.path)


def dump_yaml(data, sort_keys=False):
    """Serialize `data` as block-style YAML.

    :return: UTF-8 encoded YAML.
    :rtype: bytes
    """
    text = yaml.safe_dump(
        data, default_flow_style=False, sort_keys=sort_keys, allow_unicode=True
    )
    return text.encode("utf-8")
