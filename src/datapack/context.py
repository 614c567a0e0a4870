"""Per-invocation context: user configuration, the dataset index, and output sinks."""

import logging
import os
import sys
import yaml
from datapack import datapack_config as config
from datapack.index import DataIndex


def config_path(path=None):
    """Return the user config location: `path`, else $DATA_CONFIG, else ~/.dataconfig."""
    if path:
        return os.path.expanduser(path)
    return os.path.expanduser(os.environ.get(config.CONFIG_ENV_VAR) or config.CONFIG_FILE)


def load_config(path=None):
    """Get and return the contents of the user configuration file. A missing file
    is an empty configuration.

    :param str path: Optional config location.

    :return: User configuration with the following keys (and values):
        - user (dict): `name` of the current user.
        - index (dict): Index name -> `{url, user, token, blobstore}`.
    :rtype: dict
    """
    location = config_path(path)
    if not os.path.exists(location):
        logging.debug("Context - load_config: no config file at %s", location)
        return {}

    with open(location, "r", encoding="utf-8") as config_file:
        yaml_data = yaml.safe_load(config_file) or {}
    if not isinstance(yaml_data, dict):
        exception_string = f"Context - load_config: {location} must hold a mapping."
        logging.error(exception_string)
        raise ValueError(exception_string)
    logging.debug("Context - load_config: loaded %s", location)
    return yaml_data


class Context:
    """Everything a workflow needs from its surroundings, passed explicitly.

    :param DataIndex index: Index to use; built lazily from `settings` when None.
    :param str user: Current user, defaults to the config's `user.name`.
    :param str cwd: Working directory datasets are installed below.
    :param dict settings: User configuration (see `load_config`).
    :param str index_name: Which configured index to use.
    :param out: Text stream for progress messages.
    :param err: Text stream for warnings.
    :param callable input_fn: Reads one line of user input.
    :param bool interactive: Whether prompts may be shown.
    :param int workers: Number of concurrent blob transfers.
    """

    def __init__(
        self,
        index=None,
        user=None,
        cwd=None,
        settings=None,
        index_name=config.DEFAULT_INDEX,
        out=None,
        err=None,
        input_fn=input,
        interactive=True,
        workers=1,
    ):
        self.settings = settings or {}
        self.index_name = index_name
        self._index = index
        self.user = user if user is not None else self._config_user()
        self.cwd = os.path.abspath(cwd or os.getcwd())
        self.out_stream = out if out is not None else sys.stdout
        self.err_stream = err if err is not None else sys.stderr
        self.input_fn = input_fn
        self.interactive = interactive
        self.workers = workers

    @classmethod
    def from_config(cls, path=None, **kwargs):
        """Build a context from the user configuration file."""
        return cls(settings=load_config(path), **kwargs)

    @property
    def index(self):
        """The configured `DataIndex`, created on first use."""
        if self._index is None:
            index_config = (self.settings.get("index") or {}).get(self.index_name)
            self._index = DataIndex.from_config(self.index_name, index_config)
        return self._index

    def _config_user(self):
        user = self.settings.get("user") or {}
        if isinstance(user, dict):
            return str(user.get("name") or "")
        return str(user)

    def out(self, message):
        """Write a progress line."""
        self.out_stream.write(message + "\n")
        self.out_stream.flush()

    def err(self, message):
        """Write a warning line."""
        self.err_stream.write(message + "\n")
        self.err_stream.flush()

    def prompt(self, text):
        """Show `text` and return the user's answer, stripped.

        :raises EOFError: If input is exhausted.
        """
        self.out_stream.write(text)
        self.out_stream.flush()
        return self.input_fn().strip()
