"""Default configuration variables for DataPack"""
# Descriptor file at the root of every dataset
DATAFILE_NAME = "Datafile"
# Manifest file at the root of every dataset (legacy repositories used ".data/manifest.yml")
MANIFEST_NAME = "Manifest"
LEGACY_MANIFEST_NAME = ".data/manifest.yml"
# Installed dependencies live under this directory, skipped when generating manifests
DATASET_DIR = "datasets"
# Manifest value for a tracked file that has not been hashed yet
NO_HASH = "<to be hashed>"
# Hash algorithm used for blob identity. DO NOT CHANGE, blob keys depend on it.
HASH_ALGORITHM = "sha1"
HASH_LENGTH = 40
# Prefix of every key used against a blob store. DO NOT CHANGE.
BLOB_KEY_PREFIX = "/blob/"
# Fallback read size when the filesystem block size is unavailable
BUFFER_SIZE = 8192

############### Index ###############
DEFAULT_INDEX = "datadex"
DEFAULT_VERSION = "1.0"
LATEST_VERSION = "latest"
API_URL_SUFFIX = "/api/v1"
HTTP_HEADER_USER = "X-Data-User"
HTTP_HEADER_TOKEN = "X-Data-Token"
HTTP_HEADER_CONTENT_TYPE = "Content-Type"
HTTP_CONTENT_TYPE_YAML = "application/yaml"
DEFAULT_BLOBSTORE = {
    "module": "datapack.blobstore",
    "class": "HttpBlobStore",
    "url": "https://s3.amazonaws.com/datadex.archives",
}

############### User configuration ###############
CONFIG_ENV_VAR = "DATA_CONFIG"
CONFIG_FILE = "~/.dataconfig"
