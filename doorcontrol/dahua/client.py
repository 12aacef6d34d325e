import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .config import DeviceClientConfig
from .digest import DigestSigner, is_digest, parse_challenge, request_uri
from .errors import (
    ChallengeParseFailure,
    ConfigurationError,
    DahuaError,
    DeviceError,
    NetworkFailure,
)
from .logger import ColorLogger
from .models import Challenge, DeviceResponse, OperationResult

logger = ColorLogger(name="DAHUA_Client", show_time=True)


def validate_credentials(credentials):
    missing = credentials.missing_fields()
    if missing:
        raise ConfigurationError(f"Missing device settings: {', '.join(missing)}")


def _summary(response, limit=200):
    text = response.text.strip()
    return text if len(text) <= limit else text[:limit] + "..."


async def send_request(session, method, url, timeout, headers=None):
    """Send one request and read the whole body before releasing it."""
    try:
        async with session.request(
            method, url, headers=headers or {}, timeout=timeout
        ) as resp:
            body = await resp.read()
            response_headers = {}
            challenges = []
            # items() keeps repeated headers, e.g. one challenge per scheme
            for key, value in resp.headers.items():
                key = key.lower()
                if key == "www-authenticate":
                    challenges.append(value)
                response_headers.setdefault(key, value)
            return DeviceResponse(
                status=resp.status,
                body=body,
                content_type=response_headers.get("content-type"),
                headers=response_headers,
                challenges=tuple(challenges),
            )
    except asyncio.TimeoutError as e:
        raise NetworkFailure(f"Timed out talking to {url}", cause=e) from e
    except aiohttp.ClientError as e:
        raise NetworkFailure(f"Connection to {url} failed: {e}", cause=e) from e


@dataclass(frozen=True)
class Probe:
    """Outcome of an unauthenticated request."""
    response: DeviceResponse
    challenge: Optional[Challenge] = None

    @property
    def unauthorized(self):
        return self.response.status == 401

    @property
    def other_unauthorized(self):
        return self.unauthorized and self.challenge is None


class ChallengeResolver:
    def __init__(self, timeout):
        self.timeout = timeout

    async def resolve(self, session, url, method="GET"):
        response = await send_request(session, method, url, self.timeout)
        if response.status != 401:
            return Probe(response)

        www = next((value for value in response.challenges if is_digest(value)), "")
        if not is_digest(www):
            logger.warning(f"401 from {url} without a Digest challenge")
            return Probe(response)

        challenge = parse_challenge(www)
        if challenge is None:
            logger.warning(f"Unusable Digest challenge from {url}: {www}")
        else:
            logger.debug(f"Received Digest challenge (realm '{challenge.realm}')")
        return Probe(response, challenge)


class DahuaDeviceClient:
    """
    Runs one request against a device: a bare attempt, a Digest-signed
    retry when challenged, and a fresh probe+sign when the bare attempt
    fails at the transport level.

    Nothing is cached between calls. Each call opens its own session
    unless one is injected.
    """

    def __init__(self, config=None, signer=None, session=None):
        self.config = config or DeviceClientConfig()
        self.signer = signer or DigestSigner()
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self.resolver = ChallengeResolver(self.timeout)

    # ----------------------------------------------------------------------

    async def execute(self, url, credentials, method="GET"):
        try:
            validate_credentials(credentials)
            async with self._session() as session:
                response = await self._run(session, url, credentials, method)
        except DahuaError as e:
            logger.error(f"{method} {request_uri(url)} on {credentials.host} failed: {e.message}")
            return OperationResult.from_error(e)

        logger.debug(f"{method} {request_uri(url)} on {credentials.host} -> {response.status}")
        return OperationResult.from_response(response)

    # ----------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self):
        if self.session is not None:
            yield self.session
            return
        async with aiohttp.ClientSession() as session:
            yield session

    async def _run(self, session, url, credentials, method):
        try:
            probe = await self.resolver.resolve(session, url, method)
        except NetworkFailure as e:
            logger.warning(f"{e.message}; trying a fresh Digest handshake")
            return await self._fallback(session, url, credentials, method, e)
        return await self._complete(session, url, credentials, method, probe)

    async def _fallback(self, session, url, credentials, method, error):
        for attempt in range(1, self.config.fallback_attempts + 1):
            logger.debug(f"Fallback attempt {attempt}/{self.config.fallback_attempts}")
            try:
                probe = await self.resolver.resolve(session, url, method)
            except NetworkFailure as e:
                error = e
                continue
            return await self._complete(session, url, credentials, method, probe)
        raise NetworkFailure(
            f"{error.message} (no response after {self.config.fallback_attempts} fallback attempt(s))",
            cause=error.cause,
        )

    async def _complete(self, session, url, credentials, method, probe):
        if probe.response.ok:
            return probe.response

        if probe.other_unauthorized:
            raise ChallengeParseFailure(
                f"Authentication failed (not Digest): {probe.response.status} {_summary(probe.response)}",
                status=probe.response.status,
                body=probe.response.body,
            )

        if probe.challenge is None:
            raise DeviceError(
                f"Device returned {probe.response.status}: {_summary(probe.response)}",
                status=probe.response.status,
                body=probe.response.body,
            )

        response = await self._signed(session, url, credentials, method, probe.challenge)
        if not response.ok:
            raise DeviceError(
                f"Device rejected signed request: {response.status} {_summary(response)}",
                status=response.status,
                body=response.body,
            )
        logger.info(f"Authenticated against {credentials.host} as '{credentials.username}'")
        return response

    async def _signed(self, session, url, credentials, method, challenge):
        auth_header = self.signer.sign(credentials, challenge, method, request_uri(url))
        logger.debug("Sending authenticated request")
        return await send_request(
            session, method, url, self.timeout, headers={"Authorization": auth_header}
        )

    def get_config(self):
        """Return the configuration as a dictionary."""
        return self.config.get_config()
