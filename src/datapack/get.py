"""Download and install datasets, and list the installed ones."""

import logging
import os
import shutil
import yaml
from datapack import datapack_config as config
from datapack.datafile import Datafile, parse_handle
from datapack.datapack_exceptions import DataPackError
from datapack.pack import Pack


def get_dataset(ctx, dataset):
    """Install `dataset` ('author/name[@version]') below `datasets/` of the working
    directory:

    1. Resolve the version alias and the published manifest hash in the index.
    2. Clear and recreate `datasets/<author>/<name>`.
    3. Download the manifest blob into it and verify it hashes to the ref.
    4. Download the pack the manifest describes.

    :param Context ctx: Invocation context.
    :param str dataset: Dataset identifier.

    :return: The installed dataset, with its version resolved.
    :rtype: str

    :raises InvalidHandle: If `dataset` is not a valid identifier.
    :raises NotFound: If the index does not know the dataset.
    :raises IntegrityError: If the manifest or a blob does not match its hash.
    :raises InvalidPath: If the manifest names a path the install directory cannot
        hold (outside it, hidden, or under `datasets/`).
    """
    handle = parse_handle(dataset)
    index = ctx.index
    ctx.err(f"Downloading {handle.dataset()} from {index.name} ({index.url}).")

    mref = index.handle_ref(handle)
    logging.info("Get - get_dataset: %s resolved to manifest %s", handle.dataset(), mref)

    directory = handle.install_path(ctx.cwd)
    if os.path.exists(directory):
        shutil.rmtree(directory)
    os.makedirs(directory)

    index.get_blob(mref, os.path.join(directory, config.MANIFEST_NAME))

    pack = Pack(ctx, root=directory)
    pack.download()
    return handle.dataset()


def get_datasets(ctx, datasets=None):
    """Install each of `datasets`, or, when none are given, the valid dependencies
    listed in the working directory's Datafile. Reports where each one landed.

    :return: The installed datasets.
    :rtype: list

    :raises DataPackError: If there is nothing to install.
    """
    if not datasets:
        datafile = Datafile(os.path.join(ctx.cwd, config.DATAFILE_NAME))
        datasets = datafile.valid_dependencies()

    if not datasets:
        raise DataPackError(
            "data get: no datasets specified.\nEither enter a <dataset> argument,"
            + " or add dependencies in a Datafile."
        )

    installed = [get_dataset(ctx, dataset) for dataset in datasets]

    ctx.err("---------")
    for dataset in installed:
        installed_dataset_message(ctx, dataset)
    return installed


def installed_dataset_message(ctx, dataset):
    """Report the installed dataset's Datafile identity and location."""
    directory = parse_handle(dataset).install_path(ctx.cwd)
    datafile_path = os.path.join(directory, config.DATAFILE_NAME)
    try:
        datafile = Datafile(datafile_path)
    except (OSError, ValueError, yaml.YAMLError) as err:
        ctx.err(f"Error: {err}")
        return
    ctx.out(f"Installed {datafile.dataset or dataset} at {os.path.relpath(directory, ctx.cwd)}")


def list_datasets(ctx):
    """Return (and print) the datasets installed in the working directory, as found
    in `datasets/<author>/<name>/Datafile`. Hidden entries are skipped; unreadable
    Datafiles are reported and skipped.

    :rtype: list

    :raises FileNotFoundError: If there is no datasets directory.
    """
    dataset_dir = os.path.join(ctx.cwd, config.DATASET_DIR)
    if not os.path.isdir(dataset_dir):
        exception_string = f"data: error reading dataset directory \"{config.DATASET_DIR}\""
        logging.error("Get - list_datasets: %s", exception_string)
        raise FileNotFoundError(exception_string)

    datasets = []
    for author in sorted(os.listdir(dataset_dir)):
        author_dir = os.path.join(dataset_dir, author)
        if author.startswith(".") or not os.path.isdir(author_dir):
            continue
        for name in sorted(os.listdir(author_dir)):
            datafile_path = os.path.join(author_dir, name, config.DATAFILE_NAME)
            if name.startswith(".") or not os.path.isdir(os.path.dirname(datafile_path)):
                continue
            try:
                datafile = Datafile(datafile_path)
            except (OSError, ValueError, yaml.YAMLError) as err:
                ctx.err(f"Error: {err}")
                continue
            if not datafile.dataset:
                ctx.err(f"Error: no Datafile for {author}/{name}")
                continue
            ctx.out(datafile.dataset)
            datasets.append(datafile.dataset)
    return datasets
