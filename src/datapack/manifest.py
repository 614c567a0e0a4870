"""Core module for the dataset Manifest"""

import logging
import os
from datapack import datapack_config as config
from datapack.datapack_exceptions import (
    HashNotTracked,
    InvalidPath,
    PathNotTracked,
)
from datapack.hasher import hash_file, hash_stream, is_hash
from datapack.serialize import SerializedFile, dump_yaml

# Sentinel written by manifests of the legacy layout
LEGACY_NO_HASH = "h"


class Manifest(SerializedFile):
    """The Manifest maps every tracked file of a dataset (a POSIX path relative to the
    dataset root) to the hex sha1 of its contents, or to the `NO_HASH` sentinel while
    the file is tracked but not hashed yet.

    Every mutation is persisted immediately, so an interrupted run leaves a consistent
    partial manifest on disk. Reading tolerates a missing file (empty manifest).

    A path can be tracked unless it is the manifest itself, lies under a hidden
    directory (or is a hidden file), or lies under the installed datasets directory.

    :param str root: Dataset root directory.
    :param str path: Manifest location relative to `root`, 'Manifest' by default.
    :param callable out: Sink for progress messages, `logging.info` by default.
    """

    sort_keys = True

    def __init__(self, root=".", path=None, out=None):
        self.root = os.path.abspath(str(root))
        self.relpath = (path or config.MANIFEST_NAME).replace(os.sep, "/")
        super().__init__(os.path.join(self.root, self.relpath))
        self.out = out if out is not None else logging.info
        self.files = {}

        if os.path.exists(self.path):
            self.read_file()
        else:
            self._read_legacy_file()

    # Serialization

    def to_yaml_dict(self):
        return dict(self.files)

    def from_yaml_dict(self, yaml_data):
        if not isinstance(yaml_data, dict):
            exception_string = (
                f"Manifest - from_yaml_dict: {self.path} must hold a mapping of"
                + f" path to hash, found: {type(yaml_data).__name__}"
            )
            logging.error(exception_string)
            raise ValueError(exception_string)
        files = {}
        for path, hash_id in yaml_data.items():
            if hash_id is None or str(hash_id) == LEGACY_NO_HASH:
                hash_id = config.NO_HASH
            # loaded keys obey the same skip rules as added ones
            files[self.trackable_path(str(path))] = str(hash_id)
        self.files = files

    def _read_legacy_file(self):
        legacy_path = os.path.join(self.root, config.LEGACY_MANIFEST_NAME)
        if self.relpath == config.MANIFEST_NAME and os.path.exists(legacy_path):
            logging.info(
                "Manifest - _read_legacy_file: migrating %s to %s",
                legacy_path,
                self.path,
            )
            with open(legacy_path, "rb") as legacy_file:
                self.unmarshal(legacy_file.read())

    # Public API

    def add(self, path):
        """Track `path` with the `NO_HASH` sentinel. Already tracked paths keep their
        value. Persists the manifest.

        :param str path: Path of the file, relative to the dataset root or absolute.

        :raises InvalidPath: If the path cannot be tracked.
        """
        if self._add(self.trackable_path(path)):
            self.write_file()

    def remove(self, path):
        """Stop tracking `path` if it is tracked. Persists the manifest.

        :param str path: Path of the file.
        """
        relpath = self.normalize(path)
        if relpath in self.files:
            del self.files[relpath]
            self.write_file()
            self.out(f"data manifest: removed {relpath}")

    def hash(self, path):
        """Hash the file at `path` and record its hash, overwriting any existing
        value. Persists the manifest.

        :param str path: Path of the file.

        :return: The file's hash.
        :rtype: str

        :raises InvalidPath: If the path cannot be tracked.
        :raises OSError: If the file cannot be read.
        """
        relpath = self.trackable_path(path)
        hash_id = hash_file(self.abspath(relpath))
        self.files[relpath] = hash_id
        self.write_file()
        self.out(f"data manifest: hashed {hash_id[:7]} {relpath}")
        return hash_id

    def check(self, path):
        """Re-hash the file at `path` and compare it with the recorded hash.

        :param str path: Path of the file.

        :return: `True` (pass) if the file's current hash equals the recorded one,
            `False` (fail) if it differs, is not hashed yet, is missing on disk or
            `path` is not tracked.
        :rtype: bool
        """
        relpath = self.normalize(path)
        stored = self.files.get(relpath)
        if stored is None:
            self.out(f"data manifest: check {relpath} FAIL (not tracked)")
            return False
        if not is_hash(stored):
            self.out(f"data manifest: check {relpath} FAIL (not hashed)")
            return False

        try:
            current = hash_file(self.abspath(relpath))
        except FileNotFoundError:
            self.out(f"data manifest: check {stored[:7]} {relpath} FAIL (missing)")
            return False

        if current != stored:
            self.out(f"data manifest: check {stored[:7]} {relpath} FAIL")
            return False
        self.out(f"data manifest: check {stored[:7]} {relpath} PASS")
        return True

    def generate(self):
        """Patch the manifest from the dataset directory: first track every file not
        excluded by the skip rules, then hash every entry that is not hashed yet.
        Entries already hashed are not re-hashed.
        """
        self.out("Generating manifest...")

        added = [relpath for relpath in self.list_all_files() if self._add(relpath)]
        if added:
            self.write_file()

        for relpath in sorted(self.files):
            if not is_hash(self.files[relpath]):
                self.hash(relpath)

    def clear(self):
        """Drop every entry and persist the empty manifest."""
        self.files = {}
        self.write_file()

    def complete(self):
        """Return `True` if every entry holds a valid hash."""
        return all(is_hash(hash_id) for hash_id in self.files.values())

    def manifest_hash(self):
        """Return the sha1 of the canonical serialization of the hashed entries
        (sorted by path). Sentinel entries never take part in it, so the value is
        only meaningful for a complete manifest.

        :rtype: str
        """
        hashed = {
            path: hash_id for path, hash_id in self.files.items() if is_hash(hash_id)
        }
        return hash_stream(dump_yaml(hashed, sort_keys=True))

    def paths_for_hash(self, hash_id):
        """Return the tracked paths whose content hashes to `hash_id`.

        :raises HashNotTracked: If no entry has that hash.
        """
        paths = sorted(p for p, h in self.files.items() if h == hash_id)
        if not paths:
            exception_string = f"Hash {hash_id} is not tracked in the manifest."
            logging.debug("Manifest - paths_for_hash: %s", exception_string)
            raise HashNotTracked(exception_string)
        return paths

    def hash_for_path(self, path):
        """Return the value recorded for `path`.

        :raises PathNotTracked: If `path` is not tracked.
        """
        relpath = self.normalize(path)
        if relpath not in self.files:
            exception_string = f"Path {relpath} is not tracked in the manifest."
            logging.debug("Manifest - hash_for_path: %s", exception_string)
            raise PathNotTracked(exception_string)
        return self.files[relpath]

    def pair(self, path_or_hash):
        """Resolve either a hash or a path into a `(hash, path)` tuple."""
        if is_hash(path_or_hash):
            return path_or_hash, self.paths_for_hash(path_or_hash)[0]
        path = self.normalize(path_or_hash)
        return self.hash_for_path(path), path

    def all_paths(self):
        """Return every tracked path, sorted."""
        return sorted(self.files)

    # Paths

    def normalize(self, path):
        """Turn `path` into the POSIX path relative to the dataset root used as key.

        :raises InvalidPath: If `path` is outside the dataset root.
        """
        path = os.fspath(path)
        if os.path.isabs(path):
            path = os.path.relpath(path, self.root)
        relpath = os.path.normpath(path).replace(os.sep, "/")
        if relpath == ".." or relpath.startswith("../") or relpath in ("", "."):
            exception_string = f"Manifest - normalize: path outside the dataset: {path}"
            logging.error(exception_string)
            raise InvalidPath(exception_string)
        return relpath

    def trackable_path(self, path):
        """Normalize `path` and make sure the skip rules allow tracking it.

        :raises InvalidPath: If the path cannot be tracked.
        """
        relpath = self.normalize(path)
        parts = relpath.split("/")
        reason = None
        if relpath == self.relpath:
            reason = "is the manifest itself"
        elif any(part.startswith(".") for part in parts):
            reason = "is hidden"
        elif parts[0] == config.DATASET_DIR:
            reason = f"is inside the {config.DATASET_DIR}/ directory"
        if reason is not None:
            exception_string = f"Manifest - trackable_path: {relpath} {reason}."
            logging.error(exception_string)
            raise InvalidPath(exception_string)
        return relpath

    def abspath(self, relpath):
        """Return the location on disk of a manifest path."""
        return os.path.join(self.root, *relpath.split("/"))

    def contained_abspath(self, relpath):
        """Return `abspath(relpath)` once its resolved location (symlinks followed)
        is known to lie inside the dataset root.

        :raises InvalidPath: If the path resolves outside the dataset root.
        """
        abspath = self.abspath(relpath)
        root = os.path.realpath(self.root)
        if os.path.commonpath([root, os.path.realpath(abspath)]) != root:
            exception_string = (
                f"Manifest - contained_abspath: {relpath} resolves outside {self.root}."
            )
            logging.error(exception_string)
            raise InvalidPath(exception_string)
        return abspath

    def list_all_files(self):
        """Walk the dataset root depth-first and return the POSIX relative paths of
        the regular files that can be tracked. Hidden directories and the installed
        datasets directory are not descended into; hidden files and the manifest
        itself are left out.

        :rtype: list
        """
        files = []
        for dirpath, dirnames, filenames in os.walk(self.root, topdown=True):
            reldir = os.path.relpath(dirpath, self.root).replace(os.sep, "/")
            prefix = "" if reldir == "." else reldir + "/"

            kept = []
            for dirname in sorted(dirnames):
                if dirname.startswith(".") or prefix + dirname == config.DATASET_DIR:
                    logging.debug("Manifest - list_all_files: skipping %s/", prefix + dirname)
                    continue
                kept.append(dirname)
            dirnames[:] = kept

            for filename in sorted(filenames):
                relpath = prefix + filename
                if filename.startswith(".") or relpath == self.relpath:
                    logging.debug("Manifest - list_all_files: skipping %s", relpath)
                    continue
                if not os.path.isfile(os.path.join(dirpath, filename)):
                    continue
                files.append(relpath)
        return files

    def _add(self, relpath):
        if relpath in self.files:
            return False
        self.files[relpath] = config.NO_HASH
        self.out(f"data manifest: added {relpath}")
        return True
