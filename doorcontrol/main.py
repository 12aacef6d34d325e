import asyncio
import json
import os
import re

from .dahua.client import DahuaDeviceClient
from .dahua.config import DeviceClientConfig, load_settings
from .dahua.logger import ColorLogger, LoggerConfig
from .dahua.models import DeviceCredentials
from .dahua.operations import fetch_events, fetch_snapshot, open_door

log = ColorLogger("MAIN")

ACTIONS = ("open_door", "fetch_snapshot", "fetch_events")


def save_snapshot(directory, door_name, result):
    os.makedirs(directory, exist_ok=True)
    extension = "png" if "png" in (result.content_type or "") else "jpg"
    safe_name = re.sub(r"[^\w.-]", "_", door_name).lstrip(".") or "door"
    path = os.path.join(directory, f"{safe_name}.{extension}")
    with open(path, "wb") as f:
        f.write(result.body)
    log.info(f"Snapshot for '{door_name}' written to {path}")
    return path


async def run_door(door, actions, client, snapshot_dir):
    name = door.get("name") or door.get("host") or "door"
    credentials = DeviceCredentials(
        host=door.get("host", ""),
        username=door.get("username", ""),
        password=door.get("password", ""),
    )
    results = {}

    for action in actions:
        if action == "open_door":
            result = await open_door(credentials, door.get("channel", 1), client=client)
        elif action == "fetch_snapshot":
            result = await fetch_snapshot(credentials, client=client)
            if result.success and snapshot_dir:
                save_snapshot(snapshot_dir, name, result)
        else:
            result = await fetch_events(credentials, client=client)
        results[action] = result.to_dict()

    return name, results


async def main(path="settings.json"):
    config = load_settings(path)

    LoggerConfig.set_level(config.get("log_level", "INFO"))
    LoggerConfig.set_color(config.get("log_color", True))

    client = DahuaDeviceClient(DeviceClientConfig.from_dict(config.get("device_client")))
    log.debug(f"Device client config: {json.dumps(client.get_config(), indent=4)}")

    actions = config.get("actions", ["fetch_events"])
    unknown = [a for a in actions if a not in ACTIONS]
    if unknown:
        log.error(f"Unknown action(s) in settings: {', '.join(unknown)}")
        return 2

    doors = config.get("doors", [])
    if not doors:
        log.warning("No doors configured.")
        return 0

    log.info(f"Running {', '.join(actions)} on {len(doors)} door(s)")
    outcome = await asyncio.gather(
        *(run_door(door, actions, client, config.get("snapshot_dir")) for door in doors)
    )

    print(json.dumps(dict(outcome), indent=4, ensure_ascii=False))

    failed = [
        name for name, results in outcome
        if not all(r["success"] for r in results.values())
    ]
    if failed:
        log.warning(f"Failures on: {', '.join(failed)}")
        return 1

    log.success("All operations completed.")
    return 0
