"""Module with fixtures for tests against an in-memory object store."""

import boto3
from moto import mock_aws
import pytest

from saxenv.filesystem import RemoteStore

BUCKET = "sax-bucket"


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def s3_client(aws_credentials):
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def store(s3_client):
    return RemoteStore(s3_client)


@pytest.fixture
def remote_root():
    return f"/s3/{BUCKET}/sax-root"
