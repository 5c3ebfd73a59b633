"""Module that creates the RPC connections and servers used between cell members."""

import contextlib
import socket
from typing import Any

import semver

from saxenv.constants import PROTOCOL_VERSION
from saxenv.errors import FailedPreconditionError
import saxenv.rpc as rpc


def connect(
    target: str,
    service_type: type,
    timeout_ms: int = 5000,
    check_protocol: bool = False,
) -> rpc.Client:
    """
    Open an unencrypted RPC connection to the service at the target address.

    The target may be "host:port" or a full ZeroMQ endpoint like "tcp://host:port".
    Connecting is lazy: nothing is sent until the first call, so the server does not
    have to be up yet. With check_protocol the server is asked to describe itself right
    away, see check_compatible().
    """
    endpoint = target if "://" in target else f"tcp://{target}"

    client = rpc.Client(service_type, endpoint, timeout_ms=timeout_ms)

    if check_protocol:
        try:
            check_compatible(client)
        except Exception:
            client.close()
            raise

    return client


def check_compatible(client: rpc.Client) -> None:
    """Refuse a server that speaks a different major protocol version."""
    remote_protocol = semver.VersionInfo.parse(client.describe()["protocol"])
    local_protocol = semver.VersionInfo.parse(PROTOCOL_VERSION)

    if remote_protocol.major != local_protocol.major:
        raise FailedPreconditionError(
            f"incompatible protocol at {client.endpoint} "
            f"({remote_protocol} != {local_protocol})"
        )


def new_server(service: Any, worker_count: int = 4) -> rpc.Server:
    """Create an RPC server for the service with introspection enabled."""
    return rpc.Server(service, worker_count=worker_count, introspection=True)


def pick_unused_port() -> int:
    """Pick a TCP port that is currently unused."""
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        return s.getsockname()[1]


def required_acl_name_prefix() -> str:
    """Return the string required to prefix all ACL names, which is nothing here."""
    return ""
