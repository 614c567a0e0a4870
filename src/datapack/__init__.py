"""DataPack publishes, discovers and fetches versioned datasets.

A dataset is a directory of files described by two YAML documents at its root:

- Datafile: the dataset identity (`author/name@version`) and its metadata
- Manifest: every file path mapped to the sha1 of the file's contents

Files are stored as content-addressed blobs in a remote blob store, under the key
`/blob/<sha1>`, so identical files are stored once and every download can be
verified. The Manifest itself is stored as a blob too; publishing a dataset version
records the Manifest's hash in the dataset index. Some properties:

- Blobs are immutable and written once
- Uploads skip blobs the store already has, so they can be safely retried
- Manifests are persisted after every change, so interrupted runs resume
- Published versions are not overwritten unless forced
"""

from datapack.blobstore import BlobStore, BlobStoreFactory
from datapack.context import Context
from datapack.datafile import Datafile, Handle
from datapack.index import DataIndex, RefIndex
from datapack.manifest import Manifest
from datapack.pack import Pack

__all__ = (
    "BlobStore",
    "BlobStoreFactory",
    "Context",
    "DataIndex",
    "Datafile",
    "Handle",
    "Manifest",
    "Pack",
    "RefIndex",
)
__version__ = "0.1.0"
