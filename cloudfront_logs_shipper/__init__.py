"""
CloudFront logs shipper

Polls an S3 bucket for gzip-compressed CloudFront access logs, decodes the
W3C records and pushes them to Grafana Loki, deleting each file once shipped.
"""

__version__ = "1.0.0"
