from __future__ import annotations

import json
import sys
from typing import Any

from rich.console import Console


def _sort_key(resource_id: str) -> tuple[int, Any]:
    # numeric ids first in numeric order, then the rest (scene ids are opaque)
    if resource_id.isdigit():
        return (0, int(resource_id))
    return (1, resource_id)


def with_id(resource_id: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"id": resource_id, **data}


def resource_list(data: dict[str, Any]) -> list[dict[str, Any]]:
    return [with_id(k, data[k]) for k in sorted(data, key=_sort_key) if isinstance(data[k], dict)]


def scan_result(data: dict[str, Any]) -> dict[str, Any]:
    """Shape a /lights/new or /sensors/new payload."""
    resources = []
    for key in sorted((k for k in data if k != "lastscan"), key=_sort_key):
        value = data[key]
        name = value.get("name") if isinstance(value, dict) else None
        resources.append({"id": key, "name": name})
    return {"last_scan": data.get("lastscan"), "resources": resources}


def response_lines(responses: list[dict[str, Any]]) -> list[str]:
    lines: list[str] = []
    for item in responses or []:
        success = item.get("success") if isinstance(item, dict) else None
        if not isinstance(success, dict):
            continue
        for address, value in success.items():
            lines.append(f"Modified {address}: {json.dumps(value)}")
    return lines


def dump_json(data: Any) -> None:
    json.dump(data, sys.stdout, indent=2)
    sys.stdout.write("\n")


def echo(text: str) -> None:
    Console(soft_wrap=True, highlight=False).print(text, markup=False, emoji=False)


def pretty(data: Any) -> None:
    Console(soft_wrap=True).print(data)
