"""
CloudFront log processor

Scans the source bucket, queues object keys, and runs a pool of worker
threads that decode each file, push its lines to Loki and delete it.

A worker that fails to ship a file leaves the object in the bucket and exits;
the whole pipeline is then stopped so the process can be restarted and the
file picked up again.
"""

import logging
import threading
import time
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from cloudfront_logs_shipper.decoder import iter_entries, iter_gzip_lines, to_json_line
from cloudfront_logs_shipper.errors import (
    DecodeError,
    FetchError,
    FileProcessingError,
    QueueClosedError,
    SinkError,
)
from cloudfront_logs_shipper.labels import build_labels
from cloudfront_logs_shipper.models.options import Options
from cloudfront_logs_shipper.services.loki import LokiClient
from cloudfront_logs_shipper.work_queue import WorkQueue

logger = logging.getLogger(__name__)

# No pager, tune the scan interval to have less files per run
MAX_KEYS = 100

NOT_FOUND_CODES = ('NoSuchKey', 'NotFound', '404')


class LogProcessor:
    """Lister, work queue and worker pool around one source bucket"""

    def __init__(self, options: Options, s3_client, sink: LokiClient):
        self.options = options
        self.s3_client = s3_client
        self.sink = sink
        self.queue: WorkQueue[str] = WorkQueue(options.queue_capacity)
        self.worker_errors: List[Exception] = []

        self._stopped = threading.Event()
        self._stop_lock = threading.RLock()
        self._threads: List[threading.Thread] = []

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def stop(self) -> bool:
        """
        Stop listing and close the queue so workers drain it and exit

        Returns:
            True for the call that stopped the pipeline, False afterwards
        """
        with self._stop_lock:
            if self._stopped.is_set():
                return False
            self._stopped.set()
            self.queue.close()

        logger.info("Stopping log processor, draining work queue")
        return True

    def queue_length(self) -> int:
        return len(self.queue)

    def scan(self) -> int:
        """
        List one page of objects and queue their keys

        Blocks while the queue is full. Listing errors are raised to the
        caller, the next scan is the retry.

        Returns:
            Number of keys queued
        """
        start = time.monotonic()
        response = self.s3_client.list_objects_v2(
            Bucket=self.options.bucket_name,
            MaxKeys=MAX_KEYS
        )

        num = 0
        for obj in response.get('Contents', []):
            object_key = obj.get('Key')
            if not object_key or self.stopped:
                continue
            try:
                self.queue.put(object_key)
            except QueueClosedError:
                break
            num += 1

        if num > 0:
            logger.info(f"New files found: {num}, duration: {time.monotonic() - start:.3f}s, queue: {len(self.queue)}")
        return num

    def worker(self) -> Optional[Exception]:
        """
        Process queued keys until the queue is closed and drained

        Returns:
            None on a clean exit, or the error that stopped this worker
        """
        for object_key in self.queue:
            try:
                self.parse_file(object_key)
            except FileProcessingError as e:
                # Leave the file in place, it is picked up again after a restart
                logger.error(f"Failed to ship file {object_key}: {str(e)}")
                return e
            except Exception as e:
                logger.error(f"Unexpected error shipping file {object_key}: {str(e)}", exc_info=True)
                return e

            self.delete_file(object_key)

        return None

    def delete_file(self, object_key: str) -> bool:
        """Delete a shipped object, failures are logged only"""
        try:
            self.s3_client.delete_object(Bucket=self.options.bucket_name, Key=object_key)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete file {object_key}: {str(e)}")
            return False

    def parse_file(self, object_key: str) -> int:
        """
        Download, decode and ship a single log file

        Returns:
            Number of lines shipped, 0 when the object no longer exists

        Raises:
            FileProcessingError: Any failure that must keep the object in the bucket
        """
        start = time.monotonic()

        labels = build_labels(object_key, self.options.cluster_name, self.options.labels)

        try:
            response = self.s3_client.get_object(Bucket=self.options.bucket_name, Key=object_key)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code in NOT_FOUND_CODES:
                # Already shipped and deleted by an earlier run
                logger.debug(f"Skipping non-existent file {object_key}")
                return 0
            raise FetchError(f"Failed to get object {object_key}: {str(e)}", key=object_key) from e
        except BotoCoreError as e:
            raise FetchError(f"Failed to get object {object_key}: {str(e)}", key=object_key) from e

        batch = self.sink.open(labels)
        body = response['Body']
        line_count = 0

        try:
            for entry in iter_entries(iter_gzip_lines(body)):
                batch.add(time.time_ns(), to_json_line(entry))
                line_count += 1
            batch.flush()
        except (DecodeError, SinkError) as e:
            e.key = object_key
            raise
        except (BotoCoreError, OSError) as e:
            raise FetchError(f"Failed to read object {object_key}: {str(e)}", key=object_key) from e
        finally:
            body.close()

        duration = time.monotonic() - start
        rate = line_count / duration if duration > 0 else float(line_count)
        logger.debug(f"Shipped file {object_key} labels={labels} lines={line_count} duration={duration:.3f}s lines/s={rate:.2f}")
        logger.info(f"Parsed {object_key}: {line_count} lines")
        return line_count

    def _run_worker(self) -> None:
        error = self.worker()
        if error is not None:
            self.worker_errors.append(error)
            self.stop()

    def start_workers(self) -> List[threading.Thread]:
        for i in range(self.options.workers):
            thread = threading.Thread(target=self._run_worker, name=f"worker-{i}", daemon=True)
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {self.options.workers} workers, queue capacity {self.queue.maxsize}")
        return self._threads

    def workers_alive(self) -> int:
        return sum(1 for thread in self._threads if thread.is_alive())

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def run(self) -> int:
        """
        Scan the bucket every wait_interval seconds until stopped

        Returns:
            Process exit code, 1 if a worker failed
        """
        logger.info(f"Scanning bucket {self.options.bucket_name} every {self.options.wait_interval}s")
        self.start_workers()

        while not self.stopped:
            try:
                self.scan()
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Failed to list bucket {self.options.bucket_name}: {str(e)}")
            self._stopped.wait(self.options.wait_interval)

        self.join()

        if self.worker_errors:
            logger.error(f"Log processor stopped after {len(self.worker_errors)} worker failure(s)")
            return 1
        logger.info("Log processor stopped")
        return 0
