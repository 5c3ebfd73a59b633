"""
RPC client and server for exposing Python classes, based on ZeroMQ and MessagePack.

Cell coordination runs on top of this: one process exposes a service object, others
call its methods by name as if it were local. The transport is plain TCP without
encryption, so it is only meant for trusted networks.

* Every public method of the service object is callable by clients.
* Servers distribute calls over a number of worker threads.
* Clients can be shared between threads and use a socket per thread.
* Dataclasses in type annotations are serialized and recreated automatically.
* Builtin exceptions and saxenv errors are recreated faithfully on the client side,
  so a FileNotFoundError or FailedPreconditionError can be caught as such.
* A server can describe itself (protocol version and method names) to clients, which
  is used to check compatibility before making calls.
"""

from abc import ABC
import builtins
from dataclasses import is_dataclass
from enum import auto, Enum
import json
import logging
import threading
import time
import typing
from typing import Any, Callable, Dict, IO, List, NoReturn, Optional, Tuple

import msgpack
import zmq

from saxenv.constants import PROTOCOL_VERSION
from saxenv.errors import EXPORTED_ERRORS, UnimplementedError
from saxenv.logger import log, summarize

# Reserved function name used to describe the service.
DESCRIBE_CALL = "__describe__"

_EXPORTED_ERRORS = {exc.__qualname__: exc for exc in EXPORTED_ERRORS}


class Encoding:
    """
    Serialization and deserialization of objects using JSON or MessagePack.

    MessagePack serialization is used for network transfer and JSON serialization for
    debugging output and simple disk storage.
    """

    def __init__(self, *dataclasses: type):
        """Initialize a (de)serializer with support for the given dataclass types."""
        self._dataclasses: Dict[str, type] = {}

        for dataclass in dataclasses:
            self.register_dataclasses(dataclass)

    def register_dataclasses(self, seed_type: type) -> None:
        """Register all dataclass types used within the specified type."""
        for dataclass in self._discover_dataclasses(seed_type):
            self._dataclasses[dataclass.__qualname__] = dataclass

    def pack(self, obj: Any) -> bytes:
        return msgpack.packb(obj, default=self.serialize_obj)

    def unpack(self, data: bytes) -> Any:
        return msgpack.unpackb(data, object_hook=self.deserialize_obj)

    def dump_json(self, obj: Any, fp: IO[str]) -> None:
        json.dump(obj, fp, default=self.serialize_obj)

    def load_json(self, fp: IO[str]) -> Any:
        return json.load(fp, object_hook=self.deserialize_obj)

    def serialize_obj(self, obj: Any) -> Any:
        """Turn a dataclass or exception into a serialization friendly dict."""
        if isinstance(obj, BaseException):
            return {
                "__exception__": {"name": obj.__class__.__qualname__, "args": obj.args}
            }
        elif obj.__class__.__qualname__ in self._dataclasses:
            return {
                "__data__": {"type": obj.__class__.__qualname__, "data": obj.__dict__}
            }
        else:
            raise ValueError(f"unserializable object {obj}")

    def deserialize_obj(self, obj: Any) -> Any:
        """Reconstruct a dataclass or exception from a serialized representation."""
        if isinstance(obj, dict) and "__exception__" in obj:
            return self._deserialize_exception(obj["__exception__"])
        elif isinstance(obj, dict) and "__data__" in obj:
            return self._deserialize_dataclass(obj["__data__"])
        else:
            return obj

    @staticmethod
    def _deserialize_exception(obj: Dict) -> BaseException:
        """
        Reconstruct an exception.

        saxenv errors and builtin exceptions (like FileNotFoundError) are recreated
        with their original type, anything else becomes a generic Exception with the
        original arguments.
        """
        name = obj["name"]
        args = obj["args"]

        exc_type = _EXPORTED_ERRORS.get(name) or getattr(builtins, name, None)

        if isinstance(exc_type, type) and issubclass(exc_type, BaseException):
            try:
                return exc_type(*args)
            except TypeError:
                pass

        return Exception(*args)

    def _deserialize_dataclass(self, obj: Dict) -> Any:
        """Reconstruct a dataclass, which must be of a previously registered type."""
        type_name = obj["type"]

        if type_name not in self._dataclasses:
            raise TypeError(f"unknown dataclass '{type_name}'")

        try:
            return self._dataclasses[type_name](**obj["data"])
        except Exception as e:
            raise TypeError(f"failed to deserialize {type_name}: {e}")

    @staticmethod
    def _discover_dataclasses(*seed_types: type) -> List[type]:
        """
        Find all dataclass types used with the specified types.

        This includes the classes themselves, their members, nested dataclasses, and
        container types like List and Optional.
        """
        candidates = set(seed_types)
        explored = set()
        dataclasses = set()

        while candidates:
            candidate = candidates.pop()

            if candidate in explored:
                continue
            explored.add(candidate)

            if is_dataclass(candidate):
                dataclasses.add(candidate)
                candidates.update(typing.get_type_hints(candidate).values())
            elif hasattr(candidate, "__origin__"):
                # Types nested in constructs like Union[T] and List[T]
                candidates.update(getattr(candidate, "__args__", ()))

        return list(dataclasses)


class ReturnType(Enum):
    """Type of result for an RPC call."""

    NORMAL = auto()
    EXCEPTION = auto()


def exposed_methods(service_type: type) -> List[str]:
    """List the names of the public methods that a service type exposes."""
    return sorted(
        name
        for name in dir(service_type)
        if not name.startswith("_") and callable(getattr(service_type, name))
    )


class Base(ABC):
    """Shared logic between RPC client and server implementation."""

    def __init__(self, service_type: type):
        """Initialize RPC (de)serialization to support the specified service class."""
        function_types: List[type] = []

        for name in exposed_methods(service_type):
            function_types += typing.get_type_hints(getattr(service_type, name)).values()

        self._encoding = Encoding(*function_types)


class Server(Base):
    """
    RPC server to expose the public methods of a class instance.

    Example:
    ```
    class Foo:
        def bar(self, a, b):
            return a + b

    server = rpc.Server(Foo())
    server.serve("tcp://0.0.0.0:1234")
    ```
    """

    def __init__(
        self, service: Any, worker_count: int = 1, introspection: bool = True
    ):
        """
        Instantiate an RPC server for the given service class instance.

        Incoming calls are distributed across the specified number of worker threads.
        With introspection enabled, clients can ask the server to describe itself.
        """
        super().__init__(service.__class__)

        self.context = zmq.Context()

        self.service = service
        self.worker_count = worker_count
        self.introspection = introspection

        self._methods = exposed_methods(service.__class__)

    @staticmethod
    def check_acls(acls: List[str]) -> None:
        """
        Check if the caller passes the given access control lists.

        ACLs are not enforced: only the absence of ACLs passes, anything else is
        rejected as unsupported.
        """
        if acls:
            raise UnimplementedError(f"ACL check is not supported: {acls}")

    def describe(self) -> Dict[str, Any]:
        """Describe the protocol version and methods of this server."""
        return {"protocol": PROTOCOL_VERSION, "methods": self._methods}

    def serve(self, endpoint: str) -> NoReturn:
        """
        Start listening and handling calls for clients on the specified endpoint.

        The endpoint should have the format of endpoint in zmq_bind
        (http://api.zeromq.org/2-1:zmq-bind), for example "tcp://0.0.0.0:1234".
        """
        socket = self.context.socket(zmq.ROUTER)
        socket.bind(endpoint)

        workers_socket = self.context.socket(zmq.DEALER)
        workers_socket.bind(f"inproc://{id(self)}")

        for _ in range(self.worker_count):
            t = threading.Thread(target=self._run_worker, daemon=True)
            t.start()

        log.info(f"serving {self.service.__class__.__name__} on {endpoint}")
        zmq.proxy(socket, workers_socket)

        assert False, "unreachable"

    def start(self, endpoint: str) -> threading.Thread:
        """Serve in a background (daemon) thread."""
        t = threading.Thread(target=self.serve, args=(endpoint,), daemon=True)
        t.start()
        return t

    def _run_worker(self) -> NoReturn:
        """Request/response loop to handle calls for a single worker thread."""
        socket = self.context.socket(zmq.REP)
        socket.connect(f"inproc://{id(self)}")

        while True:
            function, *args = self._encoding.unpack(socket.recv())

            try:
                ret = self._invoke(function, args)
                socket.send(self._encoding.pack((ReturnType.NORMAL.value, ret)))
            except Exception as e:
                socket.send(self._encoding.pack((ReturnType.EXCEPTION.value, e)))

    def _invoke(self, function: Optional[str], args: List[Any]) -> Any:
        if function is None:
            return None
        elif function == DESCRIBE_CALL:
            if not self.introspection:
                raise UnimplementedError("introspection is disabled")
            return self.describe()
        elif function not in self._methods:
            raise AttributeError(f"no exposed method '{function}'")
        else:
            return getattr(self.service, function)(*args)


class Client(Base):
    """
    RPC client to invoke methods on a service instance exposed by an RPC server.

    A single client can be used by multiple threads and will internally create a
    socket per thread as needed.

    Example:
    ```
    foo = rpc.Client(Foo, "tcp://localhost:1234")
    c = foo.bar(1, 2)
    ```
    """

    def __init__(self, service_type: type, endpoint: str, timeout_ms: int = -1):
        """
        Instantiate an RPC client for the service type at the given endpoint.

        The endpoint should follow the format of endpoint in zmq_connect
        (http://api.zeromq.org/3-2:zmq-connect), for example "tcp://localhost:1234".
        """
        super().__init__(service_type)

        self.endpoint = endpoint
        self.timeout_ms = timeout_ms

        self.context = zmq.Context()

        self._socket_pool: Dict[threading.Thread, zmq.Socket] = {}
        self._socket_pool_lock = threading.Lock()

    def _socket(self) -> zmq.Socket:
        """
        Return a socket to be used for the current thread.

        Each thread needs its own socket because REQUEST-REPLY need to happen in
        lockstep per socket. Sockets of threads that have exited are closed whenever a
        new one is created.
        """
        t = threading.current_thread()

        with self._socket_pool_lock:
            if t not in self._socket_pool:
                self._prune_sockets()

                sock = self.context.socket(zmq.REQ)

                sock.setsockopt(zmq.RCVTIMEO, self.timeout_ms)
                sock.setsockopt(zmq.SNDTIMEO, self.timeout_ms)
                sock.setsockopt(zmq.LINGER, 0)

                sock.connect(self.endpoint)

                self._socket_pool[t] = sock

            return self._socket_pool[t]

    def _prune_sockets(self) -> None:
        for owner in [owner for owner in self._socket_pool if not owner.is_alive()]:
            self._socket_pool.pop(owner).close(linger=0)

    def ping(self) -> None:
        """Check if the service is available."""
        self._call(None)

    def describe(self) -> Dict[str, Any]:
        """Ask the server for its protocol version and exposed methods."""
        return self._call(DESCRIBE_CALL)

    def close(self) -> None:
        """Close the client sockets and their ZeroMQ context."""
        with self._socket_pool_lock:
            for sock in self._socket_pool.values():
                sock.close(linger=0)
            self._socket_pool.clear()

            self.context.destroy(linger=0)

    @property
    def socket_count(self) -> int:
        """Return the number of sockets for this client."""
        with self._socket_pool_lock:
            return len(self._socket_pool)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        """Retrieve a wrapper to call the specified remote function."""
        if name.startswith("_"):
            raise AttributeError(name)

        def fn(*args: Any) -> Any:
            return self._call(name, *args)

        return fn

    @staticmethod
    def _summarize_args(args: tuple) -> Tuple[str, ...]:
        return tuple([summarize(arg) for arg in args])

    def _call(self, name: Optional[str], *args: Any) -> Any:
        """
        Call a remote function with the given arguments.

        Returns the deserialized return value or raises the exception that the remote
        function raised. A missing answer within the timeout is raised as an IOError
        and leaves the socket of this thread unusable, so it is discarded.
        """
        sock = self._socket()

        t_call = time.time()

        try:
            sock.send(self._encoding.pack((name, *args)))
            typ, *ret = self._encoding.unpack(sock.recv())
        except zmq.ZMQError:
            self._discard_socket()
            raise IOError(f"rpc call {name} to {self.endpoint} timed out")

        t_return = time.time()

        # Explicit check before logging because _summarize_args is relatively slow
        if log.isEnabledFor(logging.DEBUG):
            t_millis = round((t_return - t_call) * 1000)
            log.debug(f"rpc::{name}{self._summarize_args(args)} - {t_millis} ms")

        if typ == ReturnType.NORMAL.value:
            return ret[0] if len(ret) == 1 else ret
        elif typ == ReturnType.EXCEPTION.value:
            raise ret[0]
        else:
            raise ValueError(f"unexpected return type {typ}")

    def _discard_socket(self) -> None:
        with self._socket_pool_lock:
            sock = self._socket_pool.pop(threading.current_thread(), None)

        if sock is not None:
            sock.close(linger=0)
