"""Core module for dataset packs: make, upload, download, publish and check."""

import logging
import os
from multiprocessing.pool import ThreadPool
import yaml
from datapack import datapack_config as config
from datapack.datafile import Datafile, Handle, ident_string
from datapack.datapack_exceptions import (
    BlobsNotUploaded,
    DescriptorInvalid,
    Forbidden,
    ManifestIncomplete,
    NetworkError,
    NoRefForVersion,
    NotFound,
    VersionConflict,
)
from datapack.hasher import hash_file, is_hash
from datapack.manifest import Manifest

MANIFEST_INCOMPLETE_MSG = """Manifest incomplete. Before uploading, either:
  - Generate new package manifest with 'data pack make' (uses all files).
  - Finish manifest with 'data manifest' (add and hash specific files)."""

PUBLISHED_VERSION_SAME_MSG = """Version {} ({:.7}) already published.
It has the same contents you're trying to publish, so seems like
your work here is done :)"""

PUBLISHING_FORBIDDEN_MSG = """You ({}) lack permissions to publish to {}.
Either, fork your own copy of the dataset.
Or ask the owner ({}) for collaboration privileges.
({})"""

NET_ERR_MSG = """Connection to the index refused.
Are you connected to the internet?
Is the dataset index down? Check {}"""

# Datafile fields filled out by `fill_out_datafile`: (field, prompt, required)
DATAFILE_PROMPTS = (
    ("author", "author id (required)", True),
    ("name", "dataset id (required)", True),
    ("version", "dataset version (required)", True),
    ("tagline", "tagline description (required)", True),
    ("description", "long description (optional)", False),
    ("license", "license name (optional)", False),
)


class Pack:
    """A dataset pack: the Datafile and Manifest found in a dataset root, together
    with the index (blob store and refs) of the context.

    A Datafile that fails to load is tolerated; `make` fills out a new one.

    :param Context ctx: Invocation context.
    :param str root: Dataset root directory, the context's working directory
        by default.
    """

    def __init__(self, ctx, root=None):
        self.ctx = ctx
        self.root = os.path.abspath(root or ctx.cwd)
        self.manifest = Manifest(self.root, out=ctx.out)

        datafile_path = os.path.join(self.root, config.DATAFILE_NAME)
        try:
            self.datafile = Datafile(datafile_path)
        except (OSError, ValueError, yaml.YAMLError) as err:
            logging.warning("Pack - __init__: ignoring unreadable Datafile: %s", err)
            self.datafile = Datafile(datafile_path, read=False)

    @property
    def index(self):
        """The `DataIndex` packs are uploaded to and published in."""
        return self.ctx.index

    def blob_paths(self):
        """Return `{path: hash}` for every hashed manifest entry, plus the manifest
        itself under its own hash. These are the blobs uploads and downloads move.

        :rtype: dict
        """
        blobs = {
            path: hash_id
            for path, hash_id in self.manifest.files.items()
            if is_hash(hash_id)
        }
        blobs[self.manifest.relpath] = self.manifest.manifest_hash()
        return blobs

    def make(self, clean=False, fields=None):
        """Create or update the pack's Datafile and Manifest. The Datafile is part of
        the pack, its manifest entry is re-hashed on every make.

        :param bool clean: Start from an empty manifest.
        :param dict fields: Datafile values given up front (see `DATAFILE_PROMPTS`).

        :raises DescriptorInvalid: If the Datafile is still invalid once filled out.
        """
        if clean:
            self.manifest.clear()

        if not self.datafile.dataset:
            name = ident_string(os.path.basename(self.root))
            self.datafile.dataset = (
                f"{self.ctx.user}/{name}@{config.DEFAULT_VERSION}"
            )

        fill_out_datafile(self.datafile, self.ctx, fields)

        if not self.datafile.website:
            try:
                base_url = self.index.base_url
            except ValueError as err:
                logging.debug("Pack - make: no index for a default website: %s", err)
            else:
                self.datafile.website = f"{base_url}/{self.datafile.handle().dataset()}"
                self.datafile.write_file()

        self.manifest.generate()
        # generate keeps recorded hashes; the Datafile was just rewritten
        self.manifest.hash(config.DATAFILE_NAME)

    def upload(self, workers=None):
        """Upload every blob of the pack that the blob store does not hold yet.
        Each hash is transferred at most once, so re-running is cheap.

        :param int workers: Number of concurrent transfers (context default).

        :raises ManifestIncomplete: If some manifest entries are not hashed.
        """
        self._check_complete()
        blobs = {}
        for path, hash_id in sorted(self.blob_paths().items()):
            blobs.setdefault(hash_id, path)
        manifest_blob = self.manifest.marshal()
        index = self.index

        def upload_blob(item):
            hash_id, path = item
            if index.has_blob(hash_id):
                logging.debug("Pack - upload: blobstore has %s %s", hash_id, path)
                return False
            self.ctx.out(f"put blob {hash_id[:7]} {path}")
            if path == self.manifest.relpath:
                index.put_blob(hash_id, manifest_blob)
            else:
                index.put_blob(hash_id, self.manifest.abspath(path))
            return True

        uploaded = self._transfer(upload_blob, sorted(blobs.items()), workers)
        self.ctx.out(
            f"data pack: uploaded {sum(uploaded)} blobs, {len(blobs) - sum(uploaded)}"
            + " already in the blobstore."
        )

    def download(self, workers=None):
        """Make every file of the manifest present with the right contents, fetching
        from the blob store the ones that are missing or differ.

        :param int workers: Number of concurrent transfers (context default).

        :raises ManifestIncomplete: If some manifest entries are not hashed.
        :raises IntegrityError: If a downloaded blob does not match its hash.
        :raises InvalidPath: If a manifest path resolves outside the dataset root.
            Nothing is downloaded then.
        """
        if not self.manifest.complete():
            raise ManifestIncomplete("Manifest incomplete. Get new manifest copy.")

        blobs = [
            (self.manifest.contained_abspath(path), path, hash_id)
            for path, hash_id in sorted(self.blob_paths().items())
        ]
        index = self.index

        def download_blob(item):
            abspath, path, hash_id = item
            if os.path.isfile(abspath) and hash_file(abspath) == hash_id:
                logging.debug("Pack - download: have %s %s", hash_id, path)
                return False
            self.ctx.out(f"get blob {hash_id[:7]} {path}")
            index.get_blob(hash_id, abspath)
            return True

        downloaded = self._transfer(download_blob, blobs, workers)
        self.ctx.out(
            f"data pack: downloaded {sum(downloaded)} blobs,"
            + f" {len(blobs) - sum(downloaded)} already present."
        )

    def blobs_to_upload(self):
        """Return the hashes of the pack's blobs missing from the blob store."""
        missing = []
        for hash_id in sorted(set(self.blob_paths().values())):
            if not self.index.has_blob(hash_id):
                logging.debug("Pack - blobs_to_upload: blobstore missing %s", hash_id)
                missing.append(hash_id)
        return missing

    def publish(self, force=False):
        """Publish the manifest hash as the Datafile's version in the index.

        :param bool force: Overwrite a version already published with other contents.

        :return: The published manifest hash.
        :rtype: str

        :raises DescriptorInvalid: If the Datafile is invalid.
        :raises ManifestIncomplete: If some manifest entries are not hashed.
        :raises BlobsNotUploaded: If the blob store lacks some of the pack's blobs.
        :raises NetworkError: If the index cannot be reached.
        :raises VersionConflict: If the version is taken by other contents and
            `force` is not set.
        :raises Forbidden: If the user may not publish this dataset.
        """
        if not self.datafile.valid():
            raise DescriptorInvalid("Datafile invalid. Try running 'data pack make'")
        self._check_complete()

        missing = self.blobs_to_upload()
        if missing:
            raise BlobsNotUploaded(len(missing))

        mfh = self.manifest.manifest_hash()
        handle = self.datafile.handle()
        ref_index = self.index.ref_index(handle.path())

        ref = None
        try:
            ref = ref_index.version_ref(handle.version)
        except NetworkError as err:
            raise NetworkError(NET_ERR_MSG.format(self.index.url)) from err
        except (NoRefForVersion, NotFound):
            logging.debug("Pack - publish: %s is not published yet", handle.dataset())

        if ref is not None:
            self.ctx.out(f"Found published version {handle.version} ({ref:.7}).")
            if ref == mfh:
                self.ctx.out(PUBLISHED_VERSION_SAME_MSG.format(handle.version, ref))
                return mfh
            if not force:
                raise VersionConflict(handle.version, ref, handle.dataset())
            self.ctx.out(
                f"Using --force. Overwriting {handle.version} ({ref:.7} -> {mfh:.7})."
            )

        try:
            ref_index.put(mfh, handle.version)
        except Forbidden as err:
            raise Forbidden(
                PUBLISHING_FORBIDDEN_MSG.format(
                    self.ctx.user, handle.path(), handle.author, err
                )
            ) from err

        self.ctx.out(f"data pack: published {handle.dataset()} ({mfh:.7}).")
        self.ctx.out(f"Webpage at {self.index.base_url}/{handle.dataset()}")
        return mfh

    def check(self):
        """Re-hash every manifest entry and compare with the recorded hashes.

        :return: `True` if every checksum passes.
        :rtype: bool
        """
        if not self.manifest.complete():
            self.ctx.err("Warning: manifest incomplete. Checksums may be incorrect.")

        paths = self.manifest.all_paths()
        failures = sum(1 for path in paths if not self.manifest.check(path))
        if failures > 0:
            self.ctx.err(f"data pack: {failures}/{len(paths)} checksums failed!")
            return False
        self.ctx.out(f"data pack: {len(paths)} checksums pass")
        return True

    def _check_complete(self):
        if not self.manifest.complete():
            logging.error("Pack - _check_complete: manifest %s incomplete", self.manifest.path)
            raise ManifestIncomplete(MANIFEST_INCOMPLETE_MSG)

    def _transfer(self, task, items, workers=None):
        workers = workers or self.ctx.workers or 1
        if workers <= 1 or len(items) <= 1:
            return [task(item) for item in items]
        with ThreadPool(min(workers, len(items))) as pool:
            return pool.map(task, items)


def fill_out_datafile(datafile, ctx, fields=None):
    """Make sure `datafile` has the required information, prompting for it.

    Each field of `DATAFILE_PROMPTS` is taken from `fields` when given there; else,
    in an interactive context, the user is prompted showing the current value in
    brackets. An empty answer keeps the current value; required fields are asked
    again until non-empty. The Datafile is written whenever it is valid.

    :raises DescriptorInvalid: If the Datafile is invalid once filled out, or input
        ends while prompting.
    """
    fields = fields or {}
    handle = datafile.handle()
    values = {
        "author": handle.author,
        "name": handle.name,
        "version": handle.version,
        "tagline": datafile.tagline,
        "description": datafile.description,
        "license": datafile.license,
    }

    if ctx.interactive:
        ctx.out("Verifying Datafile fields...")

    for field, prompt, required in DATAFILE_PROMPTS:
        if fields.get(field):
            values[field] = str(fields[field])
        elif ctx.interactive:
            values[field] = _prompt_field(ctx, prompt, values[field], required)
        else:
            continue

        datafile.set_handle(Handle(values["author"], values["name"], values["version"]))
        datafile.tagline = values["tagline"]
        datafile.description = values["description"]
        datafile.license = values["license"]
        if datafile.valid():
            datafile.write_file()

    if not datafile.valid():
        exception_string = (
            f"Datafile invalid: '{datafile.dataset}' is not <author>/<name>@<version>."
        )
        logging.error("Pack - fill_out_datafile: %s", exception_string)
        raise DescriptorInvalid(exception_string)
    datafile.write_file()


def _prompt_field(ctx, prompt, value, required):
    first = True
    while first or (required and not value):
        first = False
        try:
            line = ctx.prompt(f"Enter {prompt} [{value}]: ")
        except EOFError as err:
            raise DescriptorInvalid(f"Input ended while asking for {prompt}.") from err
        if line:
            value = line
    logging.debug("Pack - fill_out_datafile: entered: %s", value)
    return value
