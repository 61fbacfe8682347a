import asyncio

import httpx
import pytest
from tenacity import wait_none

from matrikelkort.gsearch import GSearchClient
from matrikelkort.settings import rate_limiter


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GSearchClient._get.retry, "wait", wait_none())


@pytest.fixture
def mocked_gsearch(monkeypatch):
    """Replace httpx.AsyncClient in the gsearch module with a scripted client.

    `routes` maps a matrikel number to one of:
      - a JSON-serialisable payload (answered with HTTP 200)
      - a (status_code, payload) tuple
      - an exception instance, raised from get()
    Unknown matrikel numbers answer with an empty match list.
    """
    captured = {'calls': [], 'routes': {}, 'delays': {}}

    class MockResponse:
        def __init__(self, status_code, data):
            self.status_code = status_code
            self._data = data

        @property
        def is_success(self):
            return 200 <= self.status_code < 300

        def json(self):
            if isinstance(self._data, str):
                raise ValueError("Expecting value: line 1 column 1 (char 0)")
            return self._data

    class MockAsyncClient:
        def __init__(self, *args, **kwargs):
            captured['timeout'] = kwargs.get('timeout')

        async def get(self, url, params=None, headers=None):
            captured['calls'].append({'url': url, 'params': params, 'headers': headers})
            matrikel = params['q']
            delay = captured['delays'].get(matrikel)
            if delay:
                await asyncio.sleep(delay)

            route = captured['routes'].get(matrikel, [])
            if isinstance(route, Exception):
                raise route
            if isinstance(route, tuple):
                return MockResponse(*route)
            return MockResponse(200, route)

        async def aclose(self):
            return None

    monkeypatch.setattr("matrikelkort.gsearch.httpx.AsyncClient", MockAsyncClient)
    return captured


@pytest.fixture
def connect_error():
    return httpx.ConnectError("Connection refused")
