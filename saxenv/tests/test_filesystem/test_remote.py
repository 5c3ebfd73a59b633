import logging
from unittest import mock

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError, ReadTimeoutError
import pytest

from saxenv.config import StorageConfig
from saxenv.errors import FailedPreconditionError, InvalidArgumentError, StorageIOError
from saxenv.filesystem.remote import is_not_found, RemoteStore
import saxenv.transport as transport


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


def test_resolve():
    store = RemoteStore(mock.Mock())

    assert store.resolve("/s3/bucket/dir/file") == ("bucket", "dir/file")
    assert store.resolve("/s3/bucket/") == ("bucket", "")


def test_resolve_without_separator():
    store = RemoteStore(mock.Mock())

    with pytest.raises(InvalidArgumentError):
        store.resolve("/s3/bucket")


def test_no_client_fails_every_operation():
    store = RemoteStore(init_error="no credentials found")

    assert not store.available

    with pytest.raises(FailedPreconditionError) as e:
        store.resolve("/s3/bucket/key")
    assert "no credentials found" in str(e.value)

    with pytest.raises(FailedPreconditionError):
        store.read_object("/s3/bucket/key")
    with pytest.raises(FailedPreconditionError):
        store.write_object("/s3/bucket/key", b"")
    with pytest.raises(FailedPreconditionError):
        store.object_exists("/s3/bucket/key")
    with pytest.raises(FailedPreconditionError):
        store.list_prefixes("/s3/bucket/key")


def test_no_client_checked_before_path():
    store = RemoteStore()

    with pytest.raises(FailedPreconditionError):
        store.resolve("/s3/bucket")


def test_connect_without_credentials(caplog):
    caplog.set_level(logging.WARNING, logger="saxenv")

    with mock.patch("boto3.session.Session") as mock_session:
        mock_session().get_credentials.return_value = None

        store = RemoteStore.connect(StorageConfig())

    assert not store.available
    assert "no object store access" in caplog.text


def test_connect_with_credentials(aws_credentials):
    store = RemoteStore.connect(StorageConfig(region="us-east-1"))

    assert store.available
    assert store.client.meta.region_name == "us-east-1"


def test_connect_with_endpoint(aws_credentials):
    store = RemoteStore.connect(StorageConfig(endpoint_url="http://localhost:9000"))

    assert store.client.meta.endpoint_url == "http://localhost:9000"


@pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
def test_is_not_found(code):
    assert is_not_found(client_error(code))


def test_is_not_found_other_errors():
    assert not is_not_found(client_error("403"))
    assert not is_not_found(client_error("AccessDenied"))


def test_object_exists_propagates_other_errors():
    client = mock.Mock()
    client.head_object.side_effect = client_error("403")
    store = RemoteStore(client)

    with pytest.raises(StorageIOError) as e:
        store.object_exists("/s3/bucket/key")
    assert e.value.operation == "stat"
    assert e.value.path == "/s3/bucket/key"


def test_read_closes_body():
    client = mock.Mock()
    client.get_object.return_value = {"Body": mock.Mock(**{"read.return_value": b"x"})}
    store = RemoteStore(client)

    assert store.read_object("/s3/bucket/key") == b"x"
    client.get_object.assert_called_with(Bucket="bucket", Key="key")
    assert client.get_object.return_value["Body"].close.called


def test_read_missing_object(store):
    with pytest.raises(StorageIOError) as e:
        store.read_object("/s3/sax-bucket/nonexistent")
    assert e.value.operation == "read"


def test_write_and_read(store):
    store.write_object("/s3/sax-bucket/a/b", b"contents")

    assert store.read_object("/s3/sax-bucket/a/b") == b"contents"
    assert store.object_exists("/s3/sax-bucket/a/b")
    assert not store.object_exists("/s3/sax-bucket/a")


def test_write_to_missing_bucket(store):
    with pytest.raises(StorageIOError) as e:
        store.write_object("/s3/no-such-bucket/key", b"")
    assert e.value.operation == "write"


def test_list_prefixes_one_level(store):
    for key in ["root/a/METADATA", "root/b/METADATA", "root/b/c/METADATA", "root/f"]:
        store.write_object(f"/s3/sax-bucket/{key}", b"")

    assert sorted(store.list_prefixes("/s3/sax-bucket/root")) == ["a", "b"]
    assert sorted(store.list_prefixes("/s3/sax-bucket/root/")) == ["a", "b"]
    assert store.list_prefixes("/s3/sax-bucket/root/b") == ["c"]
    assert store.list_prefixes("/s3/sax-bucket/") == ["root"]


def test_list_prefixes_paginates():
    client = mock.Mock()
    client.get_paginator().paginate.return_value = [
        {"CommonPrefixes": [{"Prefix": "root/a/"}, {"Prefix": "root/b/"}]},
        {"CommonPrefixes": [{"Prefix": "root/c/"}]},
        {"Contents": [{"Key": "root/file"}]},
    ]
    store = RemoteStore(client)

    assert store.list_prefixes("/s3/bucket/root") == ["a", "b", "c"]
    client.get_paginator.assert_called_with("list_objects_v2")
    client.get_paginator().paginate.assert_called_with(
        Bucket="bucket", Prefix="root/", Delimiter="/"
    )


def test_unreachable_endpoint_fails_every_operation(aws_credentials):
    port = transport.pick_unused_port()
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        endpoint_url=f"http://127.0.0.1:{port}",
        config=BotoConfig(connect_timeout=1, retries={"total_max_attempts": 1}),
    )
    store = RemoteStore(client)

    with pytest.raises(StorageIOError) as e:
        store.read_object("/s3/bucket/key")
    assert e.value.operation == "read"
    assert e.value.path == "/s3/bucket/key"

    with pytest.raises(StorageIOError) as e:
        store.write_object("/s3/bucket/key", b"")
    assert e.value.operation == "write"

    with pytest.raises(StorageIOError) as e:
        store.object_exists("/s3/bucket/key")
    assert e.value.operation == "stat"

    with pytest.raises(StorageIOError) as e:
        store.list_prefixes("/s3/bucket/dir")
    assert e.value.operation == "list"


def test_invalid_key_is_wrapped(store):
    with pytest.raises(StorageIOError) as e:
        store.object_exists("/s3/sax-bucket/")
    assert e.value.operation == "stat"
    assert e.value.path == "/s3/sax-bucket/"


def test_read_body_failure_is_wrapped():
    body = mock.Mock()
    body.read.side_effect = ReadTimeoutError(endpoint_url="http://store")
    client = mock.Mock()
    client.get_object.return_value = {"Body": body}
    store = RemoteStore(client)

    with pytest.raises(StorageIOError) as e:
        store.read_object("/s3/bucket/key")
    assert e.value.operation == "read"
    assert body.close.called
