"""
Publisher for bearer-authenticated HTTP object stores.

Objects are written with PUT to ``{OBJECT_STORE_URL}/{key}`` and served to
clients from ``{CDN_BASE_URL}/{key}``. Requests carry a bearer token when one
is configured. The endpoint must accept plain PUT/HEAD/DELETE with that token:
an object store or upload gateway with bearer auth, or a gateway that signs
requests on our behalf. Native S3 SigV4 signing is not done here.
"""
import logging
from typing import Dict, Optional

import httpx

from dailyquiz.core.datetime_utils import utc_now
from dailyquiz.core.errors import PublishError
from dailyquiz.publishing.base import (
    CACHE_CONTROL,
    CONTENT_TYPE,
    ArtifactPublisher,
    HealthStatus,
    PublishResult,
)

logger = logging.getLogger(__name__)


class HttpObjectStorePublisher(ArtifactPublisher):
    """Uploads templates to an object store with httpx.

    Attributes:
        store_url: Base URL of the object store or upload gateway
        token: Bearer token (empty for unsigned endpoints)
        timeout: HTTP request timeout in seconds
    """

    def __init__(
        self,
        store_url: str,
        public_base_url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(public_base_url)
        self.store_url = store_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            headers=self._get_headers(),
            transport=self._transport,
        )

    def _object_url(self, key: str) -> str:
        return f"{self.store_url}/{key}"

    def upload(self, key: str, content: bytes) -> PublishResult:
        headers = {
            "Content-Type": CONTENT_TYPE,
            "Cache-Control": CACHE_CONTROL,
            "x-amz-meta-uploaded-at": utc_now().isoformat(),
            "x-amz-meta-service": "daily-quiz-composer",
        }
        logger.debug(f"Uploading template to object store: {key}")
        try:
            with self._client() as client:
                response = client.put(self._object_url(key), content=content, headers=headers)
                response.raise_for_status()
        except httpx.ConnectError as e:
            logger.error(f"Connection error when uploading template {key}: {e}")
            raise PublishError(key, e)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout when uploading template {key}: {e}")
            raise PublishError(key, e)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Failed to upload template {key}: HTTP {e.response.status_code}"
            )
            raise PublishError(key, e)
        except httpx.HTTPError as e:
            logger.error(f"Unexpected HTTP error when uploading template {key}: {e}")
            raise PublishError(key, e)

        url = self.public_url(key)
        logger.info(f"Template uploaded successfully: {url}")
        return PublishResult(url=url, key=key)

    def health_check(self) -> HealthStatus:
        try:
            with self._client() as client:
                response = client.head(self.store_url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Object store health check failed: HTTP {e.response.status_code}")
            return HealthStatus(
                is_healthy=False,
                message=f"Object store returned HTTP {e.response.status_code}",
            )
        except httpx.HTTPError as e:
            logger.warning(f"Object store health check failed: {e}")
            return HealthStatus(is_healthy=False, message=f"Object store connection failed: {e}")
        return HealthStatus(
            is_healthy=True, message=f"Object store connection healthy: {self.store_url}"
        )

    def _delete(self, key: str) -> None:
        with self._client() as client:
            response = client.delete(self._object_url(key))
            response.raise_for_status()
