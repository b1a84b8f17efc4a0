"""
Artifact publisher interface.

A publisher stores serialized quiz templates under versioned keys and
reports the public URL clients fetch them from. Uploads fail loudly with
PublishError; deletes of superseded artifacts are best effort.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional

from dailyquiz.core.datetime_utils import utc_now
from dailyquiz.core.graceful_failure import graceful_failure

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json"
CACHE_CONTROL = "public, max-age=86400"


@dataclass
class PublishResult:
    url: str
    key: str


@dataclass
class HealthStatus:
    is_healthy: bool
    message: str


class ArtifactPublisher(ABC):
    """Stores template documents and reports their public URLs."""

    def __init__(self, public_base_url: str):
        self.public_base_url = public_base_url.rstrip("/")

    def generate_key(self, quiz_id: str, version: int, on: Optional[date] = None) -> str:
        """``quiz/{YYYY-MM-DD}/{quizId}/v{version}-{unixMillis}.json``.

        Args:
            quiz_id: Daily quiz id.
            version: Template version being published.
            on: Date segment of the key (defaults to today, UTC).
        """
        now = utc_now()
        day = on or now.date()
        millis = int(now.timestamp() * 1000)
        return f"quiz/{day.isoformat()}/{quiz_id}/v{version}-{millis}.json"

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    @abstractmethod
    def upload(self, key: str, content: bytes) -> PublishResult:
        """Store ``content`` under ``key``.

        Raises:
            PublishError: The artifact could not be stored.
        """

    @abstractmethod
    def health_check(self) -> HealthStatus:
        """Report whether the backing store is reachable. Never raises."""

    @abstractmethod
    def _delete(self, key: str) -> None:
        """Remove ``key`` from the backing store, raising on failure."""

    def delete(self, key: str) -> None:
        """Remove a superseded artifact. Failures are logged, not raised."""
        with graceful_failure("delete template", logger, context={"key": key}):
            self._delete(key)
            logger.debug(f"Deleted template: {key}")
