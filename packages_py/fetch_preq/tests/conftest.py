"""
Shared fixtures for fetch_preq tests.
"""
import pytest
from unittest.mock import AsyncMock, patch

import httpx

from fetch_preq.client import Preq
from fetch_preq.types import RawResponse


MAIN_PAGE = "https://en.wikipedia.org/wiki/Main_Page"


class FakeTransport:
    """Transport replaying scripted outcomes, one per attempt.

    The last outcome repeats once the script runs out. Exceptions are
    raised, anything else is returned.
    """

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    async def send(self, descriptor):
        self.calls.append(descriptor)
        index = min(len(self.calls), len(self._outcomes)) - 1
        outcome = self._outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self):
        self.closed = True


def raw_response(status=200, headers=None, body=b"", final_uri=MAIN_PAGE):
    """Build a RawResponse with sensible defaults."""
    return RawResponse(
        status=status,
        headers=dict(headers or {}),
        body=body,
        final_uri=final_uri,
    )


@pytest.fixture
def no_sleep():
    """Replace backoff sleeps with an AsyncMock recording the delays."""
    with patch("fetch_preq.executor.async_sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture
def make_preq():
    """Factory for a Preq whose HTTP traffic goes to an httpx.MockTransport."""

    def factory(handler):
        httpx_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return Preq(httpx_client=httpx_client)

    return factory


@pytest.fixture
def make_transport():
    """Factory for FakeTransport instances."""
    return FakeTransport


@pytest.fixture
def make_raw():
    """Factory for RawResponse instances."""
    return raw_response
