"""
Data models for the shipper
"""

from cloudfront_logs_shipper.models.options import Options, parse_labels
from cloudfront_logs_shipper.models.w3c import LogEntry, W3CLog

__all__ = ['Options', 'parse_labels', 'LogEntry', 'W3CLog']
