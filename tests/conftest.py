"""
Shared fakes for aiohttp sessions.
"""

import pytest

from doorcontrol.dahua.logger import LoggerConfig
from doorcontrol.dahua.models import DeviceCredentials

DIGEST_HEADER = 'Digest realm="Login to 7L0A", qop="auth", nonce="1234567890", opaque="abcdef"'


class MockResponse:
    """Mock for aiohttp response."""

    def __init__(self, status=200, body=b"", headers=None):
        self.status = status
        self.body = body if isinstance(body, bytes) else body.encode()
        self.headers = headers or {}

    async def read(self):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


class FailingRequest:
    """Request whose connection fails when entered."""

    def __init__(self, error):
        self.error = error

    async def __aenter__(self):
        raise self.error

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


class MockSession:
    """Replays scripted responses (or exceptions) in order and records calls."""

    def __init__(self, *script):
        self.script = list(script)
        self.calls = []

    def request(self, method, url, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": dict(headers or {})})
        if not self.script:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            return FailingRequest(item)
        return item


def challenge_response(header=DIGEST_HEADER):
    return MockResponse(401, b"Unauthorized", {"WWW-Authenticate": header})


@pytest.fixture(autouse=True)
def quiet_logs():
    LoggerConfig.set_level("ERROR")
    yield
    LoggerConfig.set_level("INFO")


@pytest.fixture
def credentials():
    return DeviceCredentials(host="192.168.1.108", username="admin", password="secret")
