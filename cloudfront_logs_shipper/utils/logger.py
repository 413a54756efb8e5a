"""
Logging configuration for the shipper process
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JsonFormatter(logging.Formatter):
    """Render each log record as a single JSON object"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'msg': record.getMessage(),
        }
        if record.exc_info:
            payload['exc'] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(',', ':'))


def setup_logging(level: str = 'INFO', fmt: str = 'text', stream: TextIO = None) -> logging.Logger:
    """
    Set up logging configuration for the shipper

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        fmt: Output format, "text" or "json"
        stream: Destination stream (defaults to stdout)

    Returns:
        Configured package logger
    """
    level_value = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stdout)
    if fmt == 'json':
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logging.basicConfig(level=level_value, handlers=[handler], force=True)

    # boto and urllib3 are noisy at DEBUG
    for name in ('botocore', 'boto3', 'urllib3', 's3transfer'):
        logging.getLogger(name).setLevel(max(level_value, logging.INFO))

    logger = logging.getLogger('cloudfront_logs_shipper')
    logger.setLevel(level_value)
    return logger
