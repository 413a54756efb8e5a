"""
S3 client construction
"""

import logging

import boto3

from cloudfront_logs_shipper.models.options import Options

logger = logging.getLogger(__name__)


def create_s3_client(options: Options):
    """Create an S3 client, honoring an endpoint override for MinIO or localstack"""
    s3_config = {
        'region_name': options.aws_region
    }

    if options.s3_endpoint_url:
        s3_config['endpoint_url'] = options.s3_endpoint_url

    logger.info(f"S3 endpoint: {options.s3_endpoint_url or 'default (AWS S3)'}, region: {options.aws_region}")
    return boto3.client('s3', **s3_config)
