"""
Tests for HttpObjectStorePublisher using httpx.MockTransport.
"""
from datetime import date

import httpx
import pytest

from dailyquiz.core.errors import PublishError
from dailyquiz.publishing import HttpObjectStorePublisher

STORE_URL = "https://store.test/bucket"
CDN_URL = "https://cdn.test"
KEY = "quiz/2025-03-12/quiz-1/v1-1741737600000.json"


def _publisher(handler, token="secret-token"):
    return HttpObjectStorePublisher(
        store_url=STORE_URL + "/",
        public_base_url=CDN_URL + "/",
        token=token,
        transport=httpx.MockTransport(handler),
    )


class TestUpload:
    """Tests for upload."""

    def test_put_with_headers(self):
        """Objects are PUT with content type, cache control and auth."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        result = _publisher(handler).upload(KEY, b'{"version":1}')

        request = seen[0]
        assert request.method == "PUT"
        assert str(request.url) == f"{STORE_URL}/{KEY}"
        assert request.content == b'{"version":1}'
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Cache-Control"] == "public, max-age=86400"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.headers["x-amz-meta-service"] == "daily-quiz-composer"
        assert result.url == f"{CDN_URL}/{KEY}"
        assert result.key == KEY

    def test_no_auth_header_without_token(self):
        """Unsigned endpoints get no Authorization header."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        _publisher(handler, token="").upload(KEY, b"{}")

        assert "Authorization" not in seen[0].headers

    def test_bearer_auth_only(self):
        """Requests are not SigV4 signed; the token is the only credential."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        _publisher(handler).upload(KEY, b"{}")

        headers = seen[0].headers
        assert headers["Authorization"].startswith("Bearer ")
        assert "x-amz-date" not in headers
        assert "x-amz-content-sha256" not in headers

    def test_http_error_raises_publish_error(self):
        """A non-2xx response fails the upload."""
        publisher = _publisher(lambda request: httpx.Response(403))

        with pytest.raises(PublishError) as exc_info:
            publisher.upload(KEY, b"{}")

        assert exc_info.value.key == KEY
        assert isinstance(exc_info.value.original_error, httpx.HTTPStatusError)

    @pytest.mark.parametrize(
        "error", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")]
    )
    def test_transport_errors_raise_publish_error(self, error):
        """Connection failures and timeouts fail the upload."""

        def handler(request):
            raise error

        with pytest.raises(PublishError) as exc_info:
            _publisher(handler).upload(KEY, b"{}")

        assert exc_info.value.original_error is error


class TestHealthCheck:
    """Tests for health_check."""

    def test_healthy(self):
        """A reachable store endpoint is healthy."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        status = _publisher(handler).health_check()

        assert status.is_healthy is True
        assert seen[0].method == "HEAD"

    def test_error_status(self):
        """Error statuses are reported, not raised."""
        status = _publisher(lambda request: httpx.Response(503)).health_check()

        assert status.is_healthy is False
        assert status.message == "Object store returned HTTP 503"

    def test_connection_failure(self):
        """Connection errors are reported, not raised."""

        def handler(request):
            raise httpx.ConnectError("refused")

        status = _publisher(handler).health_check()

        assert status.is_healthy is False
        assert status.message.startswith("Object store connection failed")


class TestDeleteAndKeys:
    """Tests for delete and generate_key."""

    def test_delete_sends_delete(self):
        """Superseded objects are removed with DELETE."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        _publisher(handler).delete(KEY)

        assert seen[0].method == "DELETE"
        assert str(seen[0].url) == f"{STORE_URL}/{KEY}"

    def test_delete_failure_is_swallowed(self):
        """A failed delete does not raise."""
        _publisher(lambda request: httpx.Response(500)).delete(KEY)

    def test_key_layout(self):
        """Keys are quiz/{date}/{id}/v{version}-{millis}.json."""
        key = _publisher(lambda request: httpx.Response(200)).generate_key(
            "quiz-1", 3, on=date(2025, 3, 12)
        )

        prefix, _, suffix = key.rpartition("/")
        assert prefix == "quiz/2025-03-12/quiz-1"
        assert suffix.startswith("v3-")
        assert suffix.endswith(".json")
        assert suffix[len("v3-"):-len(".json")].isdigit()
