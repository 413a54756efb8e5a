"""
Test configuration and fixtures for unit tests
"""
import gzip
import os
import threading
from typing import Dict, List

import boto3
import pytest
from moto import mock_aws

from cloudfront_logs_shipper.errors import LokiPushError
from cloudfront_logs_shipper.models.options import Options

TEST_BUCKET = 'cf-logs'


class RecordingBatch:
    """Batch double that keeps every added line in memory"""

    def __init__(self, sink: "RecordingSink", labels: Dict[str, str]):
        self.sink = sink
        self.labels = dict(labels)
        self.entries = []
        self.flushed = False

    def add(self, timestamp, line: str) -> None:
        if self.sink.fail_on_add:
            raise LokiPushError("Loki push failed: 500", status_code=500)
        self.entries.append((timestamp, line))

    def flush(self) -> None:
        if self.sink.fail_on_flush:
            raise LokiPushError("Loki push failed: 503", status_code=503)
        self.flushed = True


class RecordingSink:
    """Sink double exposing the LokiClient.open contract"""

    def __init__(self):
        self.batches: List[RecordingBatch] = []
        self.fail_on_add = False
        self.fail_on_flush = False
        self._lock = threading.Lock()

    def open(self, labels: Dict[str, str]) -> RecordingBatch:
        batch = RecordingBatch(self, labels)
        with self._lock:
            self.batches.append(batch)
        return batch

    @property
    def shipped_lines(self) -> List[str]:
        return [line for batch in self.batches if batch.flushed for _, line in batch.entries]


def gzip_lines(lines: List[str]) -> bytes:
    """Build a gzip log file body from text lines"""
    return gzip.compress(('\n'.join(lines) + '\n').encode('utf-8'))


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
    os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
    os.environ['AWS_SECURITY_TOKEN'] = 'testing'
    os.environ['AWS_SESSION_TOKEN'] = 'testing'
    os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock all AWS services."""
    with mock_aws():
        yield


@pytest.fixture
def s3_client(mock_aws_services):
    """S3 client with an empty source bucket"""
    client = boto3.client('s3', region_name='us-east-1')
    client.create_bucket(Bucket=TEST_BUCKET)
    return client


@pytest.fixture
def put_log(s3_client):
    """Upload a gzip log file built from text lines"""
    def _put(key: str, lines: List[str]) -> str:
        s3_client.put_object(Bucket=TEST_BUCKET, Key=key, Body=gzip_lines(lines))
        return key
    return _put


@pytest.fixture
def options():
    """Shipper options used across tests"""
    return Options(
        bucket_name=TEST_BUCKET,
        wait_interval=0.05,
        cluster_name='prod',
        labels={'env': 'production'},
        workers=2,
        loki_url='http://loki:3100'
    )


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def environment_variables():
    """Set up test environment variables."""
    test_env = {
        'BUCKET_NAME': 'env-bucket',
        'LOKI_URL': 'http://loki:3100/',
        'CLUSTER_NAME': 'edge',
        'LABELS': 'env=staging, team=cdn',
        'WORKERS': '3',
        'WAIT_INTERVAL': '15',
        'PORT': '9100',
    }

    # Store original values
    original_env = {}
    for key, value in test_env.items():
        original_env[key] = os.environ.get(key)
        os.environ[key] = value

    yield test_env

    # Restore original values
    for key, value in original_env.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
