"""
Pydantic model for shipper runtime options
"""

import os
from typing import Dict, Mapping, Optional, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from cloudfront_logs_shipper.errors import ConfigurationError


def parse_labels(value: Optional[str]) -> Dict[str, str]:
    """
    Parse static labels given as comma separated key=value pairs

    Args:
        value: String such as "env=prod,team=edge"

    Returns:
        Dictionary of labels, empty when value is empty
    """
    labels = {}
    if not value:
        return labels

    for pair in value.split(','):
        pair = pair.strip()
        if not pair:
            continue
        if '=' not in pair:
            raise ValueError(f"Label '{pair}' must be in key=value form")
        key, val = pair.split('=', 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Label '{pair}' has an empty name")
        labels[key] = val.strip()
    return labels


class Options(BaseModel):
    """Runtime options for the shipper daemon"""
    bucket_name: str = Field(..., min_length=1, description="Source S3 bucket")
    wait_interval: float = Field(default=30.0, gt=0, description="Seconds between bucket scans")
    log_format: Literal["text", "json"] = Field(default="text", description="Process log output format")
    log_level: str = Field(default="INFO", description="Process log level")
    loki_url: Optional[str] = Field(default=None, description="Base URL of the Loki server")
    loki_user: Optional[str] = Field(default=None, description="Basic auth user for Loki")
    loki_password: Optional[str] = Field(default=None, description="Basic auth password for Loki")
    loki_tenant_id: Optional[str] = Field(default=None, description="Value of the X-Scope-OrgID header")
    loki_batch_size: int = Field(default=1000, ge=1, description="Entries per push request")
    loki_batch_bytes: int = Field(default=1048576, ge=1, description="Bytes per push request")
    loki_retry_attempts: int = Field(default=3, ge=1, description="Attempts per push request")
    cluster_name: str = Field(default="default", min_length=1, description="Value of the cluster label")
    labels: Dict[str, str] = Field(default_factory=dict, description="Static labels added to every stream")
    workers: int = Field(default=4, ge=1, description="Number of worker threads")
    port: int = Field(default=8080, ge=0, le=65535, description="Metrics listen port")
    aws_region: str = Field(default="us-east-1", description="AWS region of the bucket")
    s3_endpoint_url: Optional[str] = Field(default=None, description="S3 endpoint override")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Normalize and validate the log level name"""
        v = v.upper()
        if v not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"Unknown log level: {v}")
        return v

    @field_validator('loki_url')
    @classmethod
    def validate_loki_url(cls, v):
        """Loki URL must be http(s), trailing slash is dropped"""
        if v is None or v == '':
            return None
        if not v.startswith(('http://', 'https://')):
            raise ValueError('loki_url must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('loki_user', 'loki_password', 'loki_tenant_id', 's3_endpoint_url')
    @classmethod
    def empty_to_none(cls, v):
        return v or None

    @property
    def queue_capacity(self) -> int:
        """Work queue bound, ten pending files per worker"""
        return 10 * self.workers

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Options":
        """
        Build options from environment variables

        Args:
            environ: Mapping to read from (defaults to os.environ)
            overrides: Explicit values taking precedence over the environment,
                       None values are ignored

        Returns:
            Validated Options instance

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        if environ is None:
            environ = os.environ

        env_map = {
            'bucket_name': 'BUCKET_NAME',
            'wait_interval': 'WAIT_INTERVAL',
            'log_format': 'LOG_FORMAT',
            'log_level': 'LOG_LEVEL',
            'loki_url': 'LOKI_URL',
            'loki_user': 'LOKI_USER',
            'loki_password': 'LOKI_PASSWORD',
            'loki_tenant_id': 'LOKI_TENANT_ID',
            'loki_batch_size': 'LOKI_BATCH_SIZE',
            'loki_batch_bytes': 'LOKI_BATCH_BYTES',
            'loki_retry_attempts': 'LOKI_RETRY_ATTEMPTS',
            'cluster_name': 'CLUSTER_NAME',
            'workers': 'WORKERS',
            'port': 'PORT',
            'aws_region': 'AWS_REGION',
            's3_endpoint_url': 'S3_ENDPOINT_URL',
        }

        values = {}
        for field_name, env_name in env_map.items():
            if env_name in environ:
                values[field_name] = environ[env_name]

        try:
            values['labels'] = parse_labels(environ.get('LABELS'))
        except ValueError as e:
            raise ConfigurationError(f"Invalid LABELS: {str(e)}")

        for field_name, value in overrides.items():
            if value is None:
                continue
            if field_name == 'labels':
                values['labels'] = {**values['labels'], **value}
            else:
                values[field_name] = value

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {str(e)}")
