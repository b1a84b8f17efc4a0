"""
Filesystem publisher for development and tests.
"""
import logging
from pathlib import Path
from typing import Optional

from dailyquiz.core.errors import PublishError
from dailyquiz.publishing.base import ArtifactPublisher, HealthStatus, PublishResult

logger = logging.getLogger(__name__)


class LocalDirectoryPublisher(ArtifactPublisher):
    """Writes templates under a root directory, mirroring object keys as paths."""

    def __init__(self, root: str, public_base_url: Optional[str] = None):
        self.root = Path(root)
        super().__init__(public_base_url or self.root.resolve().as_uri())

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Key escapes publish directory: {key}")
        return path

    def upload(self, key: str, content: bytes) -> PublishResult:
        try:
            path = self._path(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to write template {key}: {e}")
            raise PublishError(key, e)
        url = self.public_url(key)
        logger.info(f"Template written: {path}")
        return PublishResult(url=url, key=key)

    def health_check(self) -> HealthStatus:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return HealthStatus(is_healthy=False, message=f"Publish directory unusable: {e}")
        if not self.root.is_dir():
            return HealthStatus(is_healthy=False, message=f"Not a directory: {self.root}")
        return HealthStatus(is_healthy=True, message=f"Publishing to {self.root}")

    def _delete(self, key: str) -> None:
        self._path(key).unlink()
