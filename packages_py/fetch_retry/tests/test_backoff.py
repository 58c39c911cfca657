"""
Tests for fetch_retry backoff policy.

Test coverage includes:
- Decision/Branch coverage: default budgets, override vs computed delay
- Boundary value testing: exhausted budgets, retry-after edge values
- State transition testing: RetryState across successive retries
"""

import pytest
from unittest.mock import patch, AsyncMock

from fetch_retry.config import (
    INITIAL_DELAY_MS,
    DEFAULT_IDEMPOTENT_RETRIES,
    default_retries,
    calculate_backoff_delay,
    grow_timeout,
    parse_retry_after,
    create_retry_state,
    advance_retry_state,
    async_sleep,
)
from fetch_retry.types import RetryState, RetryEvent, IDEMPOTENT_METHODS


class TestDefaultRetries:
    """Tests for default_retries function."""

    @pytest.mark.parametrize("method", ["get", "GET", "put", "Put"])
    def test_idempotent_methods_get_one_retry(self, method):
        """Should give GET and PUT one retry."""
        assert default_retries(method) == DEFAULT_IDEMPOTENT_RETRIES == 1

    @pytest.mark.parametrize("method", ["post", "patch", "delete", "head", "options", "trace", "mkcol"])
    def test_other_methods_get_none(self, method):
        """Should give every other method zero retries."""
        assert default_retries(method) == 0

    def test_idempotent_method_list(self):
        """Should list only GET and PUT."""
        assert IDEMPOTENT_METHODS == ["GET", "PUT"]


class TestCalculateBackoffDelay:
    """Tests for calculate_backoff_delay function."""

    @patch("random.random", return_value=0.0)
    def test_doubles_without_fuzz(self, mock_random):
        """Should double the delay when random returns 0."""
        assert calculate_backoff_delay(100) == 200

    @patch("random.random", return_value=0.999)
    def test_fuzz_stays_below_triple(self, mock_random):
        """Should stay below three times the delay."""
        delay = calculate_backoff_delay(100)
        assert 200 <= delay < 300

    @patch("random.random", return_value=0.5)
    def test_applies_fuzz(self, mock_random):
        """Should add delay * random on top of the doubling."""
        assert calculate_backoff_delay(100) == 250

    def test_handles_zero_delay(self):
        """Should keep a zero delay at zero."""
        assert calculate_backoff_delay(0) == 0


class TestGrowTimeout:
    """Tests for grow_timeout function."""

    @patch("random.random", return_value=0.0)
    def test_adds_base_timeout(self, mock_random):
        """Should add the base timeout when random returns 0."""
        assert grow_timeout(1000, 1000) == 2000

    @patch("random.random", return_value=0.5)
    def test_adds_fuzzed_base_timeout(self, mock_random):
        """Should add base + random * base."""
        assert grow_timeout(3000, 1000) == 4500


class TestParseRetryAfter:
    """Tests for parse_retry_after function."""

    def test_parses_whole_seconds(self):
        """Should parse an all-digit value."""
        assert parse_retry_after("3") == 3

    def test_parses_zero(self):
        """Should parse zero."""
        assert parse_retry_after("0") == 0

    def test_strips_whitespace(self):
        """Should tolerate surrounding whitespace."""
        assert parse_retry_after(" 12 ") == 12

    def test_accepts_integer_values(self):
        """Should accept a non-string header value."""
        assert parse_retry_after(5) == 5

    def test_returns_none_for_missing(self):
        """Should return None for a missing header."""
        assert parse_retry_after(None) is None

    @pytest.mark.parametrize("value", ["", "1.5", "-1", "soon", "Wed, 21 Oct 2015 07:28:00 GMT"])
    def test_returns_none_for_non_numeric(self, value):
        """Should reject anything that is not whole seconds."""
        assert parse_retry_after(value) is None


class TestRetryState:
    """Tests for create_retry_state and advance_retry_state."""

    def test_creates_fresh_state(self):
        """Should start at the initial delay with the request timeout."""
        state = create_retry_state(retries=2, timeout_ms=5000)
        assert state == RetryState(
            retries_left=2,
            delay_ms=INITIAL_DELAY_MS,
            timeout_ms=5000,
            base_timeout_ms=5000,
            attempt=0,
        )

    @patch("random.random", return_value=0.0)
    def test_advance_consumes_budget_and_grows(self, mock_random):
        """Should decrement the budget and grow delay and timeout."""
        state = create_retry_state(retries=2, timeout_ms=1000)

        delay = advance_retry_state(state)

        assert delay == 200
        assert state.retries_left == 1
        assert state.attempt == 1
        assert state.delay_ms == 200
        assert state.timeout_ms == 2000

    @patch("random.random", return_value=0.0)
    def test_successive_advances_grow_monotonically(self, mock_random):
        """Should produce increasing delays across retries."""
        state = create_retry_state(retries=4, timeout_ms=1000)

        delays = [advance_retry_state(state) for _ in range(4)]

        assert delays == [200, 400, 800, 1600]
        assert state.timeout_ms == 5000
        assert state.retries_left == 0

    @patch("random.random", return_value=0.5)
    def test_override_replaces_computed_delay(self, mock_random):
        """Should use the server-directed delay exactly."""
        state = create_retry_state(retries=1, timeout_ms=10000)

        delay = advance_retry_state(state, override_delay_ms=3000)

        assert delay == 3000
        assert state.delay_ms == 3000
        assert state.timeout_ms == 25000

    @patch("random.random", return_value=0.0)
    def test_override_becomes_base_for_next_growth(self, mock_random):
        """Should grow from the overridden delay afterwards."""
        state = create_retry_state(retries=2, timeout_ms=10000)

        advance_retry_state(state, override_delay_ms=1000)

        assert advance_retry_state(state) == 2000

    def test_raises_when_budget_exhausted(self):
        """Should refuse to advance with no retries left."""
        state = create_retry_state(retries=0, timeout_ms=1000)

        with pytest.raises(ValueError, match="exhausted"):
            advance_retry_state(state)

        assert state.retries_left == 0
        assert state.attempt == 0


class TestRetryEvent:
    """Tests for RetryEvent dataclass."""

    def test_defaults_data_to_empty_dict(self):
        """Should default data to a fresh dict."""
        first = RetryEvent(type="attempt:start", attempt=0)
        second = RetryEvent(type="attempt:start", attempt=0)
        first.data["x"] = 1
        assert second.data == {}


class TestAsyncSleep:
    """Tests for async_sleep function."""

    @pytest.mark.asyncio
    async def test_delegates_to_asyncio_sleep(self):
        """Should await asyncio.sleep with the given seconds."""
        with patch("fetch_retry.config.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await async_sleep(0.25)
        mock_sleep.assert_awaited_once_with(0.25)
