from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from shipping_mcp.services.retry import RetryPolicy, parse_retry_after


def fixed(value):
    return lambda: value


class TestRetryPolicy:
    def test_exponential_without_jitter(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0, random=fixed(0.0))
        assert [policy.compute_delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_jitter_stays_below_base(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0, random=fixed(0.999))
        assert 2.0 <= policy.compute_delay(2) < 3.0

    def test_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0, random=fixed(0.5))
        assert policy.compute_delay(10) == 5.0

    def test_retry_after_is_a_floor(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0, random=fixed(0.0))
        assert policy.compute_delay(1, retry_after=12.0) == 12.0
        assert policy.compute_delay(4, retry_after=2.0) == 8.0
        assert policy.compute_delay(1, retry_after=90.0) == 30.0

    @pytest.mark.parametrize(
        "attempt, retryable, expected",
        [(1, True, True), (3, True, True), (4, True, False), (1, False, False)],
    )
    def test_should_retry(self, attempt, retryable, expected):
        assert RetryPolicy(max_retries=3).should_retry(attempt, retryable) is expected


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("5") == 5.0
        assert parse_retry_after(" 1.5 ") == 1.5

    def test_missing_or_garbage(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None
        assert parse_retry_after("soon") is None

    def test_negative_clamped(self):
        assert parse_retry_after("-3") == 0.0

    def test_http_date(self):
        when = datetime.now(timezone.utc) + timedelta(seconds=60)
        delay = parse_retry_after(format_datetime(when, usegmt=True))
        assert 55 <= delay <= 61

    def test_past_http_date(self):
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
