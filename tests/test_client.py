"""
Tests for the DahuaDeviceClient request flow.
"""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from doorcontrol.dahua.client import ChallengeResolver, DahuaDeviceClient
from doorcontrol.dahua.config import DeviceClientConfig
from doorcontrol.dahua.digest import DigestSigner
from doorcontrol.dahua.errors import (
    ChallengeParseFailure,
    ConfigurationError,
    DeviceError,
    NetworkFailure,
)
from doorcontrol.dahua.models import DeviceCredentials

from multidict import CIMultiDict, CIMultiDictProxy

from conftest import DIGEST_HEADER, MockResponse, MockSession, challenge_response

URL = "http://192.168.1.108/cgi-bin/accessControl.cgi?action=openDoor&channel=1"


def make_client(session, **config):
    signer = DigestSigner(cnonce_factory=lambda: "cafebabe")
    return DahuaDeviceClient(DeviceClientConfig(**config), signer=signer, session=session)


@pytest.mark.asyncio
async def test_bare_success_skips_signer(credentials):
    session = MockSession(MockResponse(200, b"OK"))
    signer = MagicMock()
    client = DahuaDeviceClient(signer=signer, session=session)

    result = await client.execute(URL, credentials)

    assert result.success
    assert result.status == 200
    assert result.body == b"OK"
    signer.sign.assert_not_called()
    assert len(session.calls) == 1
    assert "Authorization" not in session.calls[0]["headers"]


@pytest.mark.asyncio
async def test_digest_challenge_then_signed_retry(credentials):
    session = MockSession(
        challenge_response(),
        MockResponse(200, b"OK", {"Content-Type": "text/plain"}),
    )
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert result.success
    assert result.content_type == "text/plain"
    assert len(session.calls) == 2
    auth = session.calls[1]["headers"]["Authorization"]
    assert auth.startswith('Digest username="admin", realm="Login to 7L0A"')
    assert 'uri="/cgi-bin/accessControl.cgi?action=openDoor&channel=1"' in auth
    assert 'cnonce="cafebabe"' in auth


@pytest.mark.asyncio
async def test_signed_retry_failure_is_final(credentials):
    session = MockSession(challenge_response(), MockResponse(401, b"Still no"))
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert not result.success
    assert result.status == 401
    assert result.body == b"Still no"
    assert isinstance(result.error, DeviceError)
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_non_digest_401_is_terminal(credentials):
    session = MockSession(MockResponse(401, b"nope", {"WWW-Authenticate": 'Basic realm="x"'}))
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert not result.success
    assert result.status == 401
    assert isinstance(result.error, ChallengeParseFailure)
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_other_status_is_device_error(credentials):
    session = MockSession(MockResponse(500, b"Error\r\nBad Request!"))
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert not result.success
    assert result.status == 500
    assert result.body == b"Error\r\nBad Request!"
    assert isinstance(result.error, DeviceError)
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_transport_failure_triggers_one_fallback(credentials):
    session = MockSession(
        asyncio.TimeoutError(),
        challenge_response(),
        MockResponse(200, b"OK"),
    )
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert result.success
    assert len(session.calls) == 3
    assert "Authorization" not in session.calls[1]["headers"]
    assert "Authorization" in session.calls[2]["headers"]


@pytest.mark.asyncio
async def test_fallback_transport_failure_is_network_failure(credentials):
    session = MockSession(
        aiohttp.ClientConnectionError("refused"),
        aiohttp.ClientConnectionError("refused again"),
    )
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert not result.success
    assert isinstance(result.error, NetworkFailure)
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_fallback_without_challenge_uses_bare_response(credentials):
    session = MockSession(asyncio.TimeoutError(), MockResponse(200, b"OK"))
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert result.success
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_fallback_attempts_is_configurable(credentials):
    session = MockSession(asyncio.TimeoutError())
    client = make_client(session, fallback_attempts=0)

    result = await client.execute(URL, credentials)

    assert isinstance(result.error, NetworkFailure)
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_signed_request_transport_failure(credentials):
    session = MockSession(challenge_response(), asyncio.TimeoutError())
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert isinstance(result.error, NetworkFailure)
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_missing_credentials_make_no_requests():
    session = MockSession()
    client = make_client(session)

    result = await client.execute(URL, DeviceCredentials("192.168.1.108", "admin", ""))

    assert not result.success
    assert result.status == 400
    assert isinstance(result.error, ConfigurationError)
    assert session.calls == []


@pytest.mark.asyncio
async def test_each_call_gets_a_fresh_challenge(credentials):
    session = MockSession(
        challenge_response('Digest realm="r", nonce="first", qop="auth"'),
        MockResponse(200, b"OK"),
        challenge_response('Digest realm="r", nonce="second", qop="auth"'),
        MockResponse(200, b"OK"),
    )
    client = make_client(session)

    await client.execute(URL, credentials)
    await client.execute(URL, credentials)

    assert 'nonce="first"' in session.calls[1]["headers"]["Authorization"]
    assert 'nonce="second"' in session.calls[3]["headers"]["Authorization"]


@pytest.mark.asyncio
async def test_resolver_classifies_unusable_digest():
    session = MockSession(challenge_response('Digest qop="auth"'))
    resolver = ChallengeResolver(timeout=None)

    probe = await resolver.resolve(session, URL)

    assert probe.unauthorized
    assert probe.other_unauthorized
    assert probe.challenge is None


def test_config_defaults_and_validation():
    config = DeviceClientConfig.from_dict({})
    assert config.timeout == 20.0
    assert config.fallback_attempts == 1
    assert DeviceClientConfig.from_dict({"timeout": "5"}).timeout == 5.0
    with pytest.raises(ValueError):
        DeviceClientConfig(timeout=0)
    with pytest.raises(ValueError):
        DeviceClientConfig(scheme="ftp")


@pytest.mark.asyncio
async def test_digest_found_among_repeated_challenge_headers(credentials):
    headers = CIMultiDictProxy(CIMultiDict([
        ("WWW-Authenticate", DIGEST_HEADER),
        ("WWW-Authenticate", 'Basic realm="Login to 7L0A"'),
    ]))
    session = MockSession(MockResponse(401, b"Unauthorized", headers), MockResponse(200, b"OK"))
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert result.success
    assert len(session.calls) == 2
    assert session.calls[1]["headers"]["Authorization"].startswith('Digest username="admin"')


@pytest.mark.asyncio
async def test_fallback_probe_without_digest_is_terminal(credentials):
    session = MockSession(
        asyncio.TimeoutError(),
        MockResponse(401, b"nope", {"WWW-Authenticate": 'Basic realm="x"'}),
    )
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert not result.success
    assert result.status == 401
    assert isinstance(result.error, ChallengeParseFailure)
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_fallback_probe_server_error_is_device_error(credentials):
    session = MockSession(
        aiohttp.ClientConnectionError("refused"),
        MockResponse(500, b"Internal Error"),
    )
    client = make_client(session)

    result = await client.execute(URL, credentials)

    assert not result.success
    assert result.status == 500
    assert result.body == b"Internal Error"
    assert isinstance(result.error, DeviceError)
    assert len(session.calls) == 2
