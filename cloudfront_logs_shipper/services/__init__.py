"""
Clients for the external services the shipper talks to
"""

from cloudfront_logs_shipper.services.loki import LokiBatch, LokiClient
from cloudfront_logs_shipper.services.s3 import create_s3_client

__all__ = ['LokiBatch', 'LokiClient', 'create_s3_client']
