import json
import os
import tempfile

import pytest

# Keep app logs out of the source tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="saucesearch-logs-"))

from sources import SearchManager
from sources.config import SearchConfig


class FakeResponse:
    def __init__(self, status_code=200, text="", json_data=None, url="", reason="OK", headers=None):
        self.status_code = status_code
        self._json = json_data
        self.text = text if json_data is None else json.dumps(json_data)
        self.url = url
        self.reason = reason
        self.headers = headers or {}

    def json(self):
        if self._json is None:
            return json.loads(self.text)
        return self._json


class FakeSession:
    """Records requests and answers them through a handler(method, url, kwargs)."""

    def __init__(self, handler=None):
        self.handler = handler or (lambda method, url, kwargs: FakeResponse(url=url))
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.handler(method, url, kwargs)
        if isinstance(response, Exception):
            raise response
        if not response.url:
            response.url = url
        return response

    def close(self):
        pass


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def make_manager(tmp_path):
    def factory(handler=None, **config):
        config.setdefault("saucenao_api_key", "test-key")
        session = FakeSession(handler)
        manager = SearchManager(SearchConfig(**config), session=session)
        manager.resolver.temp_dir = str(tmp_path)
        return manager, session
    return factory
