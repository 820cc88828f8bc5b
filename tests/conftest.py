from __future__ import annotations

from typing import Any

import pytest

from huectl import cli


class RecordingBridge:
    """Stand-in for huectl.api.Bridge that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.responses: dict[str, Any] = {}
        self.constructed: list[dict[str, Any]] = []

    def __call__(self, ip: str, username: str, timeout: float = 5.0) -> "RecordingBridge":
        self.constructed.append({"ip": ip, "username": username, "timeout": timeout})
        return self

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def call(*args: Any) -> Any:
            self.calls.append((name, args))
            result = self.responses.get(name)
            if isinstance(result, Exception):
                raise result
            return result

        return call

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def bridge(monkeypatch) -> RecordingBridge:
    fake = RecordingBridge()
    monkeypatch.setattr(cli, "Bridge", fake)
    return fake


@pytest.fixture
def run():
    def _run(*argv: str) -> int:
        return cli.main(["--bridge-ip", "192.168.1.2", "--username", "user", *argv])
    return _run
