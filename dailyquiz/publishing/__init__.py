"""
Template artifact publishers.
"""
from typing import Optional

from dailyquiz.core.config import Settings, settings as app_settings

from .base import ArtifactPublisher, HealthStatus, PublishResult
from .http_store import HttpObjectStorePublisher
from .local import LocalDirectoryPublisher


def get_publisher(source: Optional[Settings] = None) -> ArtifactPublisher:
    """Build the publisher selected by PUBLISHER_BACKEND."""
    source = source or app_settings
    if source.PUBLISHER_BACKEND == "http":
        return HttpObjectStorePublisher(
            store_url=source.OBJECT_STORE_URL,
            public_base_url=source.CDN_BASE_URL,
            token=source.OBJECT_STORE_TOKEN,
            timeout=source.PUBLISH_TIMEOUT_SECONDS,
        )
    return LocalDirectoryPublisher(source.LOCAL_PUBLISH_DIR)


__all__ = [
    "ArtifactPublisher",
    "HealthStatus",
    "PublishResult",
    "HttpObjectStorePublisher",
    "LocalDirectoryPublisher",
    "get_publisher",
]
