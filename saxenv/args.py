"""Module defining the command-line arguments and providing a parser for them."""

from __future__ import annotations

import argparse
from typing import List, Optional

from saxenv.constants import PROTOCOL_VERSION, VERSION


class Arguments(argparse.Namespace):
    """Parsed command-line arguments."""

    sax_root: Optional[str]
    config: str
    debug: bool

    command: str

    # Arguments of individual commands
    path: str
    atomic: bool
    dir: bool
    port: int

    @classmethod
    def parse(cls, args: Optional[List[str]] = None) -> Arguments:
        """
        Parse command-line arguments from the given list of strings.

        Defaults to sys.argv if none are specified.
        """
        return cls._get_parser().parse_args(args, namespace=cls())

    @classmethod
    def _get_parser(cls) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Access Sax cell metadata on local disks and object stores.",
            usage="saxenv [option...] command [arg...]",
        )

        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {VERSION} (protocol {PROTOCOL_VERSION})",
            help="show the program version and protocol version",
        )

        # Root of all cell metadata, takes precedence over SAX_ROOT
        parser.add_argument(
            "--sax_root",
            type=str,
            help="Sax cell root, e.g. /local/dir or s3://bucket/dir",
        )

        parser.add_argument(
            "--config",
            type=str,
            help="path to config file (default is ~/.saxenv/config)",
            default="~/.saxenv/config",
        )

        # Enable debug output for development
        parser.add_argument(
            "--debug", action="store_true", help="enable debug information"
        )

        commands = parser.add_subparsers(dest="command", metavar="command")
        commands.required = True

        commands.add_parser("root", help="print the resolved root directory")

        cat = commands.add_parser("cat", help="write the contents of a file to stdout")
        cat.add_argument("path", type=str, help="file to read")

        put = commands.add_parser("put", help="write stdin to a file")
        put.add_argument("path", type=str, help="file to write")
        put.add_argument(
            "--atomic",
            action="store_true",
            help="write to a temporary file first and rename it into place",
        )

        ls = commands.add_parser("ls", help="list the entries of a directory")
        ls.add_argument("path", type=str, help="directory to list")

        mkdir = commands.add_parser("mkdir", help="create a directory")
        mkdir.add_argument("path", type=str, help="directory to create")

        exists = commands.add_parser("exists", help="check if a file exists")
        exists.add_argument("path", type=str, help="path to check")
        exists.add_argument(
            "--dir", action="store_true", help="check for a directory instead"
        )

        serve = commands.add_parser("serve", help="expose file access over RPC")
        serve.add_argument(
            "--port", type=cls._parse_port, help="port to listen on", default=0
        )

        return parser

    @staticmethod
    def _parse_port(arg: str) -> int:
        try:
            val = int(arg)
            assert 0 <= val < 65536
            return val
        except (ValueError, AssertionError):
            raise argparse.ArgumentTypeError("expected port number")
