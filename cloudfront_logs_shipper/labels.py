"""
Loki stream labels derived from the S3 object key
"""

from typing import Dict, Mapping, Optional, Tuple

from cloudfront_logs_shipper.errors import InvalidObjectKeyError


def split_object_key(object_key: str) -> Tuple[str, str]:
    """
    Extract namespace and CloudFront distribution id from an object key
    Expected format: namespace/distribution_id/anything...

    Raises:
        InvalidObjectKeyError: If either of the first two segments is missing or empty
    """
    path_parts = object_key.split('/')

    if len(path_parts) < 2:
        raise InvalidObjectKeyError(
            f"Invalid object key format. Expected at least 2 path segments, got {len(path_parts)}: {object_key}",
            key=object_key
        )

    for i, segment_name in enumerate(['namespace', 'cloudfront']):
        if not path_parts[i].strip():
            raise InvalidObjectKeyError(
                f"Invalid object key format. {segment_name} (segment {i}) cannot be empty: {object_key}",
                key=object_key
            )

    return path_parts[0], path_parts[1]


def build_labels(
    object_key: str,
    cluster_name: str,
    static_labels: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """
    Build the label set for every line shipped from one object

    Dynamic labels come first (namespace, cloudfront, cluster, index) and
    static labels are applied on top, so a static label wins over a dynamic
    one with the same name.

    Args:
        object_key: S3 object key
        cluster_name: Configured cluster name
        static_labels: Labels from configuration

    Returns:
        New label dictionary, never shared between calls
    """
    namespace, distribution_id = split_object_key(object_key)

    labels = {
        'namespace': namespace,
        'cloudfront': distribution_id,
        'cluster': cluster_name,
        'index': f"{cluster_name}-{namespace}",
    }

    if static_labels:
        labels.update(static_labels)

    return labels
