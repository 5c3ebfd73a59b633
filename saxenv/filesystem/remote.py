"""
Adapter around the object store client.

The client is created once when the environment starts. If that fails (no
credentials, bad endpoint configuration) the error is kept and every remote operation
fails with a FailedPreconditionError from then on. There is no reconnect.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from saxenv.config import StorageConfig
from saxenv.constants import REMOTE_PATH_PREFIX
from saxenv.errors import FailedPreconditionError, InvalidArgumentError, StorageIOError
from saxenv.logger import log

# Error codes returned by S3 compatible stores for missing objects.
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

# Errors returned by the service as well as connection, timeout and parameter errors.
_BACKEND_ERRORS = (ClientError, BotoCoreError)


def is_not_found(e: ClientError) -> bool:
    """Check if a client error signals a missing object."""
    return e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


class RemoteStore:
    """Object store handle that holds either a client or the reason there is none."""

    def __init__(self, client: Any = None, init_error: Optional[str] = None):
        """
        Wrap an existing client.

        Use connect() to create one from configuration. A store without a client
        rejects all operations with the given initialization error.
        """
        self._client = client
        self._init_error = init_error or "no object store client"

    @staticmethod
    def connect(config: StorageConfig) -> RemoteStore:
        """
        Create the S3 client from ambient credentials and the storage configuration.

        This never raises: a failure is logged and captured in the returned store.
        """
        try:
            session = boto3.session.Session(region_name=config.region)

            if session.get_credentials() is None:
                raise FailedPreconditionError("no credentials found")

            client = session.client(
                "s3",
                endpoint_url=config.endpoint_url,
                config=BotoConfig(connect_timeout=config.connect_timeout),
            )
        except (BotoCoreError, FailedPreconditionError, ValueError) as e:
            log.warning(f"no object store access, only local files are usable: {e}")
            return RemoteStore(init_error=str(e))

        return RemoteStore(client)

    @property
    def available(self) -> bool:
        """Check if a client was established at startup."""
        return self._client is not None

    @property
    def client(self) -> Any:
        """Return the underlying client or fail if there is none."""
        if self._client is None:
            raise self._unavailable()

        return self._client

    def _unavailable(self) -> FailedPreconditionError:
        return FailedPreconditionError(
            f"no object store connection: {self._init_error}"
        )

    def resolve(self, path: str) -> Tuple[str, str]:
        """
        Split a canonical remote path into its bucket and object key.

        "/s3/bucket/dir/file" resolves to ("bucket", "dir/file").
        """
        if self._client is None:
            raise self._unavailable()

        stripped = path[len(REMOTE_PATH_PREFIX) :]
        bucket, sep, key = stripped.partition("/")

        if not sep:
            raise InvalidArgumentError(f"invalid object store path {path}")

        return bucket, key

    #
    # Object primitives
    #

    def read_object(self, path: str) -> bytes:
        """Read all contents of an object through a streaming body."""
        bucket, key = self.resolve(path)
        log.debug(f"get_object {bucket}/{key}")

        try:
            response = self.client.get_object(Bucket=bucket, Key=key)

            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except _BACKEND_ERRORS as e:
            raise StorageIOError("read", path, str(e)) from e

    def write_object(self, path: str, data: bytes) -> None:
        """Write an object in a single shot, which is visible only once complete."""
        bucket, key = self.resolve(path)
        log.debug(f"put_object {bucket}/{key} ({len(data)} bytes)")

        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=data)
        except _BACKEND_ERRORS as e:
            raise StorageIOError("write", path, str(e)) from e

    def object_exists(self, path: str) -> bool:
        """
        Check if an object exists by fetching its attributes.

        Only "not found" maps to False. Other failures like denied access are not
        distinguished from each other and are raised.
        """
        bucket, key = self.resolve(path)

        try:
            self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                return False
            raise StorageIOError("stat", path, str(e)) from e
        except BotoCoreError as e:
            raise StorageIOError("stat", path, str(e)) from e

        return True

    def list_prefixes(self, path: str) -> List[str]:
        """List the names of the key prefixes exactly one level below a path."""
        bucket, key = self.resolve(path)

        prefix = key.rstrip("/")
        if prefix:
            prefix += "/"

        names: List[str] = []

        try:
            paginator = self.client.get_paginator("list_objects_v2")

            for page in paginator.paginate(
                Bucket=bucket, Prefix=prefix, Delimiter="/"
            ):
                for common_prefix in page.get("CommonPrefixes", []):
                    names.append(common_prefix["Prefix"][len(prefix) :].rstrip("/"))
        except _BACKEND_ERRORS as e:
            raise StorageIOError("list", path, str(e)) from e

        return names

