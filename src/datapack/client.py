"""DataPack Command Line App"""
import logging
import sys
from argparse import ArgumentParser
import yaml
from datapack.context import Context
from datapack.datapack_exceptions import DataPackError
from datapack.get import get_datasets, list_datasets
from datapack.hasher import check_hash
from datapack.manifest import Manifest
from datapack.pack import Pack


class DataParser:
    """Class to set up parsing arguments via argparse."""

    def __init__(self):
        """Initialize the argparse 'parser'."""

        program_name = "data"
        description = (
            "Command line tool to publish, discover and fetch versioned datasets."
            + " Datasets are directories described by a Datafile and a Manifest,"
            + " stored as content-addressed blobs."
        )

        self.parser = ArgumentParser(prog=program_name, description=description)
        self.parser.add_argument(
            "-config",
            dest="config_path",
            help="Path of the user config file (default: $DATA_CONFIG or ~/.dataconfig)",
        )
        self.parser.add_argument(
            "-loglevel",
            dest="logging_level",
            default="WARNING",
            help="Set logging level for the client",
        )
        self.parser.add_argument(
            "-workers",
            dest="workers",
            type=int,
            default=1,
            help="Number of concurrent blob transfers",
        )
        commands = self.parser.add_subparsers(dest="command", metavar="<command>")
        commands.required = True

        commands.add_parser("list", help="List installed datasets.")

        get_parser = commands.add_parser("get", help="Download and install dataset.")
        get_parser.add_argument(
            "datasets", nargs="*", help="<author>/<name>[@<version>] (default: Datafile dependencies)"
        )

        blob_parser = commands.add_parser("blob", help="Manage blobs in the blobstore.")
        blob_parser.add_argument("blob_command", choices=["put", "get"])
        blob_parser.add_argument("hash", help="Name (sha1 checksum) of the blob")

        manifest_parser = commands.add_parser("manifest", help="Generate dataset manifest.")
        manifest_parser.add_argument(
            "manifest_command", nargs="?", choices=["add", "rm", "hash"]
        )
        manifest_parser.add_argument("paths", nargs="*", help="Files to add, remove or hash")

        pack_parser = commands.add_parser(
            "pack", help="Dataset packaging, upload, and download."
        )
        pack_commands = pack_parser.add_subparsers(dest="pack_command", metavar="<command>")
        pack_commands.required = True
        make_parser = pack_commands.add_parser(
            "make", help="Create or update package description."
        )
        make_parser.add_argument(
            "--clean", action="store_true", help="make pack from scratch"
        )
        pack_commands.add_parser("manifest", help="Show current package manifest.")
        pack_commands.add_parser("upload", help="Upload package contents to remote storage.")
        pack_commands.add_parser(
            "download", help="Download package contents from remote storage."
        )
        publish_parser = pack_commands.add_parser(
            "publish", help="Publish package reference to dataset index."
        )
        publish_parser.add_argument(
            "--force", action="store_true", help="overwrite published version"
        )
        pack_commands.add_parser("check", help="Verify all file checksums match.")

    def get_parser_args(self, argv=None):
        """Get command line arguments."""
        return self.parser.parse_args(argv)


def blob_command(ctx, command, hash_id):
    """Upload or download the blob `hash_id`, using the working Manifest to find the
    file it belongs to."""
    check_hash(hash_id)
    manifest = Manifest(ctx.cwd, out=ctx.out)
    path = manifest.paths_for_hash(hash_id)[0]
    ctx.out(f"{command} blob {hash_id} {path}")
    if command == "put":
        ctx.index.put_blob(hash_id, manifest.abspath(path))
    else:
        ctx.index.get_blob(hash_id, manifest.abspath(path))


def manifest_command(ctx, command, paths):
    """Generate the working Manifest, or add, remove or hash specific files."""
    manifest = Manifest(ctx.cwd, out=ctx.out)
    if command is None:
        manifest.generate()
        return
    if not paths:
        raise DataPackError(f"data manifest {command}: <file> argument required.")
    for path in paths:
        if command == "add":
            manifest.add(path)
        elif command == "rm":
            manifest.remove(path)
        else:
            manifest.hash(path)


def pack_command(ctx, args):
    """Run one of the 'data pack' workflows. Returns False if checksums fail."""
    pack = Pack(ctx)
    command = args.pack_command
    if command == "make":
        pack.make(clean=args.clean)
    elif command == "manifest":
        ctx.out_stream.write(pack.manifest.marshal().decode("utf-8"))
    elif command == "upload":
        pack.upload()
    elif command == "download":
        pack.download()
    elif command == "publish":
        pack.publish(force=args.force)
    elif command == "check":
        return pack.check()
    return True


def main(argv=None):
    """Entry point of the data client. Returns the process exit code."""

    parser = DataParser()
    args = parser.get_parser_args(argv)

    logging.basicConfig(
        level=args.logging_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        ctx = Context.from_config(args.config_path, workers=args.workers)
        if args.command == "list":
            list_datasets(ctx)
        elif args.command == "get":
            get_datasets(ctx, args.datasets)
        elif args.command == "blob":
            blob_command(ctx, args.blob_command, args.hash)
        elif args.command == "manifest":
            manifest_command(ctx, args.manifest_command, args.paths)
        elif args.command == "pack":
            if not pack_command(ctx, args):
                return 1
    except (DataPackError, OSError, ValueError, yaml.YAMLError) as err:
        logging.debug("DataClient - main: %r", err)
        print(str(err), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
