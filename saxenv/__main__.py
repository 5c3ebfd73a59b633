"""
Module implementing the command-line interface of saxenv.

The commands give direct access to the cell metadata root as the environment sees it,
which is mostly useful for inspecting and seeding roots by hand:

    saxenv --sax_root=s3://bucket/sax-root ls /s3/bucket/sax-root
    echo data | saxenv put --atomic /tmp/sax-root/cell/file
"""

import logging
import os
import signal
import sys
from typing import List, NoReturn, Optional

from saxenv.args import Arguments
from saxenv.config import Config
import saxenv.constants as constants
from saxenv.environment import Environment
from saxenv.errors import EnvError
from saxenv.filesystem import to_internal
from saxenv.logger import log


def main(arguments: Optional[List[str]] = None) -> NoReturn:
    """
    Run a single saxenv command with the given arguments.

    Defaults to parsing command-line arguments from sys.argv if none are specified.
    """
    args = Arguments.parse(arguments)

    # Configure debug logging.
    if args.debug:
        log.setLevel(logging.DEBUG)
    else:
        log.setLevel(logging.ERROR)

    config = Config.load(os.path.expanduser(args.config))

    env = Environment.from_config(config)
    env.init(args)

    try:
        exit_code = run(env, args)
    except KeyboardInterrupt:
        exit_code = 128 + signal.SIGINT
    except (EnvError, OSError) as e:
        log.error(f"{args.command} failed: {e}")
        exit_code = constants.SAXENV_ERROR_CODE

    sys.exit(exit_code)


def run(env: Environment, args: Arguments) -> int:
    """Run the command selected by the arguments and return the exit code."""
    if args.command == "root":
        print(env.root_dir())
        return 0
    elif args.command == "serve":
        serve(env, args.port)

    path = to_internal(args.path)

    if args.command == "cat":
        sys.stdout.buffer.write(env.read_file(path))
        sys.stdout.flush()
    elif args.command == "put":
        data = sys.stdin.buffer.read()

        if args.atomic:
            env.write_file_atomically(path, data)
        else:
            env.write_file(path, data)
    elif args.command == "ls":
        for name in sorted(env.list_subdirs(path)):
            print(name)
    elif args.command == "mkdir":
        env.create_dir(path)
    elif args.command == "exists":
        if args.dir:
            found = env.dir_exists(path)
        else:
            found = env.file_exists(path)

        print("true" if found else "false")
    else:
        raise ValueError(f"unknown command {args.command}")

    return 0


def serve(env: Environment, port: int) -> NoReturn:
    """Expose the file system service over RPC until interrupted."""
    if port == 0:
        port = env.pick_unused_port()

    server = env.new_server(env.fs)

    print(f"listening on port {port}", flush=True)
    server.serve(f"tcp://0.0.0.0:{port}")


if __name__ == "__main__":
    main()
