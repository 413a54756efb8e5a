"""
Grafana Loki push client

Lines are collected per label set in a LokiBatch and sent to
/loki/api/v1/push as JSON, gzip-compressed. A batch pushes on its own when it
reaches the configured entry or byte limit; flush() sends whatever is left.
"""

import gzip
import json
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Mapping, Optional, Union

import requests

from cloudfront_logs_shipper.errors import LokiPushError
from cloudfront_logs_shipper.models.options import Options

logger = logging.getLogger(__name__)

PUSH_PATH = '/loki/api/v1/push'
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Per-entry overhead used when estimating request size
ENTRY_OVERHEAD_BYTES = 26

Timestamp = Union[datetime, int]


def to_unix_nanos(timestamp: Timestamp) -> str:
    """Loki expects nanoseconds since epoch as a decimal string"""
    if isinstance(timestamp, int):
        return str(timestamp)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    micros = (timestamp - EPOCH) // timedelta(microseconds=1)
    return str(micros * 1000)


class LokiClient:
    """
    Thin client for the Loki push API

    One client is shared by all workers; requests.Session is used for
    connection pooling only and carries no per-batch state.
    """

    def __init__(
        self,
        url: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        tenant_id: Optional[str] = None,
        batch_size: int = 1000,
        batch_bytes: int = 1048576,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        self.url = url.rstrip('/') + PUSH_PATH
        self.batch_size = batch_size
        self.batch_bytes = batch_bytes
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.session = session or requests.Session()

        self.headers = {
            'Content-Type': 'application/json',
            'Content-Encoding': 'gzip',
        }
        if tenant_id:
            self.headers['X-Scope-OrgID'] = tenant_id

        self.auth = (user, password or '') if user else None

    @classmethod
    def from_options(cls, options: Options) -> "LokiClient":
        return cls(
            url=options.loki_url,
            user=options.loki_user,
            password=options.loki_password,
            tenant_id=options.loki_tenant_id,
            batch_size=options.loki_batch_size,
            batch_bytes=options.loki_batch_bytes,
            retry_attempts=options.loki_retry_attempts,
        )

    def open(self, labels: Mapping[str, str]) -> "LokiBatch":
        """Start a new batch for one label set"""
        return LokiBatch(self, labels)

    def push(self, labels: Mapping[str, str], values: List[List[str]]) -> None:
        """
        Send one stream to Loki, retrying throttling and server errors

        Args:
            labels: Stream labels
            values: [timestamp_ns, line] pairs

        Raises:
            LokiPushError: If the push is rejected or all attempts fail
        """
        payload = {'streams': [{'stream': dict(labels), 'values': values}]}
        body = gzip.compress(json.dumps(payload, separators=(',', ':')).encode('utf-8'))

        retry_delay = self.retry_delay
        for attempt in range(self.retry_attempts):
            last_attempt = attempt == self.retry_attempts - 1
            try:
                response = self.session.post(
                    self.url,
                    data=body,
                    headers=self.headers,
                    auth=self.auth,
                    timeout=self.timeout
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                if last_attempt:
                    raise LokiPushError(f"Failed to reach Loki after {self.retry_attempts} attempts: {str(e)}")
                logger.warning(f"Loki unreachable, retrying in {retry_delay}s (attempt {attempt + 1}/{self.retry_attempts}): {str(e)}")
                time.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, 30)
                continue
            except requests.RequestException as e:
                raise LokiPushError(f"Loki push request failed: {str(e)}")

            status = response.status_code
            if status < 300:
                logger.debug(f"Pushed {len(values)} entries to Loki")
                return

            if status == 429 or status >= 500:
                if last_attempt:
                    raise LokiPushError(
                        f"Loki push failed after {self.retry_attempts} attempts: {status} {response.text[:200]}",
                        status_code=status
                    )
                logger.warning(f"Loki returned {status}, retrying in {retry_delay}s (attempt {attempt + 1}/{self.retry_attempts})")
                time.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, 30)
                continue

            # Other client errors will not succeed on retry
            raise LokiPushError(f"Loki rejected push: {status} {response.text[:200]}", status_code=status)


class LokiBatch:
    """Pending lines for a single, fixed label set"""

    def __init__(self, client: LokiClient, labels: Mapping[str, str]):
        self.client = client
        self._labels: Dict[str, str] = dict(labels)
        self._values: List[List[str]] = []
        self._size = 0
        self.pushed = 0

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self._labels)

    def __len__(self) -> int:
        return len(self._values)

    def add(self, timestamp: Timestamp, line: str) -> None:
        """
        Queue a line, pushing the batch once it is full

        Raises:
            LokiPushError: If an automatic push fails
        """
        self._values.append([to_unix_nanos(timestamp), line])
        self._size += len(line.encode('utf-8')) + ENTRY_OVERHEAD_BYTES

        if len(self._values) >= self.client.batch_size or self._size >= self.client.batch_bytes:
            self._send()

    def flush(self) -> None:
        """
        Push all pending lines

        Raises:
            LokiPushError: If the push fails
        """
        if self._values:
            self._send()

    def _send(self) -> None:
        values = self._values
        self.client.push(self._labels, values)
        self.pushed += len(values)
        self._values = []
        self._size = 0
