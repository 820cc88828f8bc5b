from __future__ import annotations

import dataclasses
import os
import tomllib
from typing import Any, Mapping

VAR_BRIDGE_IP = "HUECTL_BRIDGE_IP"
VAR_BRIDGE_USERNAME = "HUECTL_BRIDGE_USERNAME"
VAR_TIMEOUT = "HUECTL_TIMEOUT"

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".config", "huectl")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.toml")


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    ip: str | None = None
    username: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.ip) and bool(self.username)


def env_default(name: str, default: str, environ: Mapping[str, str] | None = None) -> str:
    return (os.environ if environ is None else environ).get(name, default)


def load_config(path: str = CONFIG_PATH) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return {}


def resolve_config(ip_arg: str | None = None, username_arg: str | None = None,
                   environ: Mapping[str, str] | None = None,
                   path: str = CONFIG_PATH) -> BridgeConfig:
    """Resolve bridge ip and username: args > environment > config file."""
    env = os.environ if environ is None else environ
    ip = ip_arg or env.get(VAR_BRIDGE_IP) or None
    username = username_arg or env.get(VAR_BRIDGE_USERNAME) or None
    if ip is None or username is None:
        section = load_config(path).get("bridge") or {}
        if isinstance(section, dict):
            ip = ip or section.get("ip") or None
            username = username or section.get("username") or None
    return BridgeConfig(ip=ip, username=username)
