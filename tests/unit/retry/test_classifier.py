"""Unit tests for error classification and Retry-After parsing."""

import asyncio
from datetime import datetime, timezone
from email.utils import format_datetime
from unittest.mock import Mock

import pytest

from request_governor.exceptions import (
    ApiError,
    AuthExpiredError,
    RetriesExhaustedError,
    TerminalError,
    TransientError,
)
from request_governor.retry import (
    classify_error,
    parse_retry_after,
    retry_after_from_headers,
    server_limit_from_error,
    server_limit_from_headers,
)

NOW = 1_700_000_000.0


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("3", now=NOW) == 3.0
        assert parse_retry_after(2.5, now=NOW) == 2.5

    def test_http_date(self):
        moment = datetime.fromtimestamp(NOW + 10, tz=timezone.utc)
        header = format_datetime(moment, usegmt=True)
        assert parse_retry_after(header, now=NOW) == pytest.approx(10.0)

    def test_iso_timestamp(self):
        moment = datetime.fromtimestamp(NOW + 30, tz=timezone.utc)
        header = moment.strftime("%Y-%m-%dT%H:%M:%SZ")
        assert parse_retry_after(header, now=NOW) == pytest.approx(30.0)

    def test_epoch_timestamp(self):
        assert parse_retry_after(str(int(NOW) + 45), now=NOW) == pytest.approx(45.0)

    def test_past_date_is_zero(self):
        moment = datetime.fromtimestamp(NOW - 60, tz=timezone.utc)
        assert parse_retry_after(format_datetime(moment, usegmt=True), now=NOW) == 0.0

    @pytest.mark.parametrize("value", [None, "", "   ", "soon", "-1", "nan"])
    def test_unparseable(self, value):
        assert parse_retry_after(value, now=NOW) is None


class TestRetryAfterFromHeaders:
    def test_case_insensitive(self):
        assert retry_after_from_headers({"Retry-After": "4"}, now=NOW) == 4.0

    def test_rate_limit_reset_alias(self):
        headers = {"X-Rate-Limit-Reset": str(int(NOW) + 7)}
        assert retry_after_from_headers(headers, now=NOW) == pytest.approx(7.0)

    def test_retry_after_preferred(self):
        headers = {"retry-after": "2", "x-rate-limit-reset": "9"}
        assert retry_after_from_headers(headers, now=NOW) == 2.0

    def test_missing(self):
        assert retry_after_from_headers({}, now=NOW) is None


class TestServerLimit:
    def test_exhausted_quota_headers(self):
        headers = {"X-Rate-Limit-Remaining": "0", "X-Rate-Limit-Reset": str(int(NOW) + 12)}
        remaining, reset_in = server_limit_from_headers(headers, now=NOW)
        assert remaining == 0
        assert reset_in == pytest.approx(12.0)

    def test_remaining_quota(self):
        headers = {"x-rate-limit-remaining": "42"}
        assert server_limit_from_headers(headers, now=NOW) == (42, None)

    @pytest.mark.parametrize("value", ["", "many", "1e400"])
    def test_unparseable_remaining(self, value):
        remaining, _ = server_limit_from_headers(
            {"X-Rate-Limit-Remaining": value}, now=NOW
        )
        assert remaining is None

    def test_no_headers(self):
        assert server_limit_from_headers({}, now=NOW) == (None, None)

    def test_429_means_no_quota_left(self):
        error = ApiError(
            "slow down",
            status_code=429,
            headers={"X-Rate-Limit-Remaining": "3", "Retry-After": "30"},
        )
        assert server_limit_from_error(error, now=NOW) == (0, 30.0)

    def test_429_without_hint(self):
        error = ApiError("slow down", status_code=429)
        assert server_limit_from_error(error, now=NOW) == (0, None)

    def test_headers_on_other_failures(self):
        error = ApiError(
            "busy",
            status_code=503,
            headers={"X-Rate-Limit-Remaining": "0", "Retry-After": "8"},
        )
        assert server_limit_from_error(error, now=NOW) == (0, 8.0)

    def test_plain_exception(self):
        assert server_limit_from_error(ConnectionError("reset"), now=NOW) == (None, None)


class TestClassifyHttpStatus:
    def test_429_is_transient_with_hint(self):
        error = ApiError("slow down", status_code=429, headers={"retry-after": "3"})
        classified = classify_error(error, operation="getDocument", now=NOW)
        assert isinstance(classified, TransientError)
        assert classified.status_code == 429
        assert classified.retry_after == 3.0
        assert classified.operation == "getDocument"
        assert classified.__cause__ is error

    def test_429_without_hint(self):
        classified = classify_error(ApiError("slow down", status_code=429), now=NOW)
        assert isinstance(classified, TransientError)
        assert classified.retry_after is None

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failures(self, status):
        classified = classify_error(ApiError("expired", status_code=status))
        assert isinstance(classified, AuthExpiredError)
        assert classified.status_code == status

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_transient(self, status):
        assert isinstance(classify_error(ApiError("x", status_code=status)), TransientError)

    @pytest.mark.parametrize("status", [400, 404, 409, 422])
    def test_client_errors_terminal(self, status):
        classified = classify_error(ApiError("x", status_code=status))
        assert isinstance(classified, TerminalError)
        assert not isinstance(classified, AuthExpiredError)

    def test_status_on_response_attribute(self):
        """httpx-style errors carry the status on ``response``."""

        class HTTPStatusError(Exception):
            pass

        error = HTTPStatusError("Server error")
        error.response = Mock(status_code=429, headers={"Retry-After": "5"})
        classified = classify_error(error, now=NOW)
        assert isinstance(classified, TransientError)
        assert classified.retry_after == 5.0

    def test_aiohttp_style_status(self):
        class ClientResponseError(Exception):
            def __init__(self, status):
                super().__init__(f"status {status}")
                self.status = status
                self.headers = {}

        assert isinstance(classify_error(ClientResponseError(403)), AuthExpiredError)

    def test_mock_attributes_ignored(self):
        """Non-integer status attributes do not count as HTTP statuses."""
        error = RuntimeError("odd")
        error.response = Mock()
        assert isinstance(classify_error(error), TerminalError)


class TestClassifyExceptionTypes:
    @pytest.mark.parametrize(
        "error",
        [
            TimeoutError("read timeout"),
            asyncio.TimeoutError(),
            ConnectionResetError("reset"),
            ConnectionRefusedError("refused"),
            OSError("network unreachable"),
        ],
    )
    def test_transient(self, error):
        assert isinstance(classify_error(error), TransientError)

    @pytest.mark.parametrize(
        "error",
        [ValueError("bad json"), TypeError("None"), KeyError("uuid"), RuntimeError("?")],
    )
    def test_terminal(self, error):
        assert isinstance(classify_error(error), TerminalError)

    def test_classified_errors_pass_through(self):
        for error in (
            TransientError("x"),
            TerminalError("y"),
            AuthExpiredError("z"),
            RetriesExhaustedError("w", last_error=TransientError("x"), attempts=2),
        ):
            assert classify_error(error) is error

    def test_message_kept(self):
        classified = classify_error(ValueError("missing field uuid"))
        assert "missing field uuid" in str(classified)
