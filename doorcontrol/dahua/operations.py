"""
Device operations: open a door, grab a camera snapshot, list today's
access-control records.

Each operation checks the credentials before touching the network and
returns an ``OperationResult``; failures come back as results, never as
exceptions.
"""

from datetime import datetime
from urllib.parse import urlencode

from .client import DahuaDeviceClient, validate_credentials
from .errors import ConfigurationError
from .logger import ColorLogger
from .models import OperationResult
from .parser import AccessRecordParser

logger = ColorLogger(name="DAHUA_Operations", show_time=True)

DAY_SECONDS = 86400
DEFAULT_SNAPSHOT_TYPE = "image/jpeg"


def cgi_url(credentials, script, params=None, scheme="http"):
    url = f"{scheme}://{credentials.host}/cgi-bin/{script}"
    if params:
        url += "?" + urlencode(params)
    return url


def day_window(now=None):
    """Unix seconds for local midnight today and 24 hours later."""
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = int(midnight.timestamp())
    return start, start + DAY_SECONDS


def _prepare(credentials, client):
    validate_credentials(credentials)
    return client or DahuaDeviceClient()


async def open_door(credentials, channel=1, client=None):
    try:
        client = _prepare(credentials, client)
    except ConfigurationError as e:
        return OperationResult.from_error(e)

    url = cgi_url(
        credentials,
        "accessControl.cgi",
        {"action": "openDoor", "channel": channel},
        client.config.scheme,
    )
    result = await client.execute(url, credentials)

    result.message = "door opened" if result.success else "failed"
    result.body = result.text
    if result.success:
        logger.success(f"Door {channel} opened on {credentials.host}")
    return result


async def fetch_snapshot(credentials, client=None):
    try:
        client = _prepare(credentials, client)
    except ConfigurationError as e:
        return OperationResult.from_error(e)

    url = cgi_url(credentials, "snapshot.cgi", scheme=client.config.scheme)
    result = await client.execute(url, credentials)

    if not result.success:
        result.message = f"Failed to fetch snapshot: {result.message}"
        return result

    result.content_type = result.content_type or DEFAULT_SNAPSHOT_TYPE
    result.message = "snapshot fetched"
    logger.info(f"Snapshot from {credentials.host}: {len(result.body)} bytes ({result.content_type})")
    return result


async def fetch_events(credentials, client=None, now=None):
    try:
        client = _prepare(credentials, client)
    except ConfigurationError as e:
        return OperationResult.from_error(e)

    start, end = day_window(now)
    url = cgi_url(
        credentials,
        "recordFinder.cgi",
        {
            "action": "find",
            "name": "AccessControlCardRec",
            "StartTime": start,
            "EndTime": end,
        },
        client.config.scheme,
    )
    result = await client.execute(url, credentials)
    result.body = result.text

    if not result.success:
        result.message = f"Failed to fetch events: {result.message}"
        return result

    result.events = AccessRecordParser().parse(result.body)
    result.message = "events fetched"
    logger.info(f"Fetched {len(result.events)} access record(s) from {credentials.host}")
    return result
