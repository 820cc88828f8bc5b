import json
import os

import pytest
import requests

from huectl import cli
from huectl.api import BridgeError, User
from huectl.config import VAR_BRIDGE_IP, VAR_BRIDGE_USERNAME


def _clear_bridge_env(monkeypatch):
    # setenv first so the variables are restored or removed again on teardown
    for name in (VAR_BRIDGE_IP, VAR_BRIDGE_USERNAME):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_set_without_flags_makes_no_calls(bridge, run, capsys):
    assert run("light", "set", "1") == 0
    assert run("group", "set", "1") == 0
    assert run("sensor", "set", "1") == 0
    assert run("config", "set") == 0
    assert bridge.calls == []
    assert capsys.readouterr().out == ""


def test_light_set_on_and_off_resolves_to_on(bridge, run):
    run("light", "set", "7", "--on", "--off")
    assert bridge.calls == [("set_light_state", ("7", {"on": True}))]


def test_light_set_sends_state_then_attributes(bridge, run, capsys):
    bridge.responses["set_light_state"] = [
        {"success": {"/lights/1/state/on": True}},
        {"success": {"/lights/1/state/bri": 127}},
    ]
    bridge.responses["set_light_attribute"] = [{"success": {"/lights/1/name": "Desk"}}]
    assert run("light", "set", "1", "--on", "-b", "50", "-n", "Desk") == 0
    assert bridge.names() == ["set_light_state", "set_light_attribute"]
    assert bridge.constructed == [{"ip": "192.168.1.2", "username": "user", "timeout": 5.0}]
    assert capsys.readouterr().out.splitlines() == [
        "Modified /lights/1/state/on: true",
        "Modified /lights/1/state/bri: 127",
        'Modified /lights/1/name: "Desk"',
    ]


@pytest.mark.parametrize("coords", [["0.3"], ["0.3", "0.4", "0.5"]])
def test_coordinate_arity_fails_before_bridge(bridge, run, coords):
    with pytest.raises(SystemExit) as exc:
        run("light", "set", "1", "-c", *coords)
    assert exc.value.code == 2
    assert bridge.constructed == []


def test_coordinates_reach_bridge_as_xy(bridge, run):
    run("light", "set", "1", "-c", "0.5", "0.25")
    assert bridge.calls == [("set_light_state", ("1", {"xy": [0.5, 0.25]}))]


def test_bridge_error_is_fatal_with_context(bridge, run, capsys):
    bridge.responses["set_light_state"] = BridgeError(3, "/lights/9/state", "resource, /lights/9/state, not available")
    with pytest.raises(SystemExit) as exc:
        run("light", "set", "9", "--on")
    assert exc.value.code == 1
    err = capsys.readouterr().err.splitlines()
    assert err[0] == "Error occurred while modifying the state of the light"
    assert err[1] == "resource, /lights/9/state, not available (type 3, address /lights/9/state)"


def test_network_error_is_fatal(bridge, run, capsys):
    bridge.responses["get_all_groups"] = requests.ConnectionError("unreachable")
    with pytest.raises(SystemExit) as exc:
        run("group", "get")
    assert exc.value.code == 1
    assert "Failed to get groups" in capsys.readouterr().err


def test_get_one_and_all(bridge, run, capsys):
    bridge.responses["get_light"] = {"name": "Desk", "state": {"on": True}}
    run("light", "get", "3")
    assert json.loads(capsys.readouterr().out) == {"id": "3", "name": "Desk", "state": {"on": True}}

    bridge.responses["get_all_lights"] = {"10": {"name": "B"}, "2": {"name": "A"}}
    run("light", "get")
    assert json.loads(capsys.readouterr().out) == [{"id": "2", "name": "A"}, {"id": "10", "name": "B"}]


def test_search_triggers_scan_only(bridge, run, capsys):
    run("light", "search")
    assert bridge.names() == ["search_new_lights"]
    assert capsys.readouterr().out.strip() == "Searching for new lights..."


def test_search_get_is_read_only(bridge, run, capsys):
    bridge.responses["get_new_sensors"] = {"lastscan": "active", "7": {"name": "Motion"}}
    run("sensor", "search", "--get")
    assert bridge.names() == ["get_new_sensors"]
    assert json.loads(capsys.readouterr().out) == {
        "last_scan": "active",
        "resources": [{"id": "7", "name": "Motion"}],
    }


def test_light_search_with_device_ids(bridge, run):
    run("light", "search", "--device-id", "45AF34", "--device-id", "543636")
    assert bridge.calls == [("search_new_lights", (["45AF34", "543636"],))]


def test_create_and_delete(bridge, run, capsys):
    bridge.responses["create_group"] = "5"
    run("group", "create", "-n", "Upstairs", "-l", "1", "2")
    assert bridge.calls == [("create_group", ({"name": "Upstairs", "lights": ["1", "2"], "type": "LightGroup"},))]
    assert capsys.readouterr().out.strip() == "Created group 5"

    run("scene", "delete", "abc")
    assert bridge.calls[-1] == ("delete_scene", ("abc",))
    assert capsys.readouterr().out.strip() == "Deleted scene abc"


def test_scene_set_light_state(bridge, run):
    run("scene", "set", "abc", "-n", "Evening", "--light", "2", "-b", "10")
    assert bridge.calls == [
        ("set_scene", ("abc", {"name": "Evening"})),
        ("set_scene_light_state", ("abc", "2", {"bri": 25})),
    ]


def test_scene_state_without_light_is_usage_error(bridge, run):
    with pytest.raises(SystemExit) as exc:
        run("scene", "set", "abc", "--on")
    assert exc.value.code == 2
    assert bridge.calls == []


def test_sensor_set_sends_each_modifier(bridge, run):
    run("sensor", "set", "4", "-n", "Hall", "--off", "--flag", "yes")
    assert bridge.calls == [
        ("set_sensor_state", ("4", {"flag": True})),
        ("set_sensor_attribute", ("4", {"name": "Hall"})),
        ("set_sensor_config", ("4", {"on": False})),
    ]


def test_config_get_error_is_reported_without_exiting(bridge, run, capsys):
    bridge.responses["get_config"] = BridgeError(1, "/", "unauthorized user")
    assert run("config", "get") == 1
    err = capsys.readouterr().err
    assert "Failed to get config" in err
    assert "unauthorized user" in err


def test_config_get_json(bridge, run, capsys):
    bridge.responses["get_config"] = {"name": "Philips hue", "zigbeechannel": 15}
    assert run("config", "get", "--json") == 0
    assert json.loads(capsys.readouterr().out) == {"name": "Philips hue", "zigbeechannel": 15}


def test_config_get_pretty(bridge, run, capsys):
    bridge.responses["get_config"] = {"name": "Philips hue"}
    assert run("config", "get") == 0
    assert "Philips hue" in capsys.readouterr().out


def test_missing_bridge_config_exits(monkeypatch, bridge):
    _clear_bridge_env(monkeypatch)
    monkeypatch.setattr(cli, "resolve_config", lambda ip, user: cli.BridgeConfig(ip, user))
    with pytest.raises(SystemExit) as exc:
        cli.main(["light", "get"])
    assert exc.value.code == 2
    assert bridge.constructed == []


def test_discover_prints_each_ip(monkeypatch, run, capsys):
    monkeypatch.setattr(cli, "discover", lambda timeout: ["192.168.1.2", "192.168.1.3"])
    assert run("discover") == 0
    assert capsys.readouterr().out.splitlines() == ["192.168.1.2", "192.168.1.3"]


def test_discover_with_no_bridges_prints_nothing(monkeypatch, run, capsys):
    monkeypatch.setattr(cli, "discover", lambda timeout: [])
    assert run("discover") == 0
    assert capsys.readouterr().out == ""


def test_register_without_bridges_fails_and_keeps_env(monkeypatch, run, capsys):
    _clear_bridge_env(monkeypatch)
    monkeypatch.setattr(cli, "discover", lambda timeout: [])

    def unexpected(*args, **kwargs):
        raise AssertionError("register_user must not be called")

    monkeypatch.setattr(cli, "register_user", unexpected)
    before = dict(os.environ)
    with pytest.raises(SystemExit) as exc:
        run("register", "--set-env")
    assert exc.value.code != 0
    assert dict(os.environ) == before
    assert "No bridges were found" in capsys.readouterr().err


def test_register_prints_variables(monkeypatch, run, capsys):
    seen = {}

    def fake_register(ip, devicetype, timeout):
        seen.update(ip=ip, devicetype=devicetype)
        return User(name="abc123")

    monkeypatch.setattr(cli, "register_user", fake_register)
    assert run("register", "10.0.0.5") == 0
    assert seen == {"ip": "10.0.0.5", "devicetype": "huectl-py"}
    assert capsys.readouterr().out.splitlines() == [
        f"{VAR_BRIDGE_IP}=10.0.0.5",
        f"{VAR_BRIDGE_USERNAME}=abc123",
    ]


def test_register_set_env_uses_first_discovered(monkeypatch, run, capsys):
    _clear_bridge_env(monkeypatch)
    monkeypatch.setattr(cli, "discover", lambda timeout: ["10.0.0.7", "10.0.0.8"])
    monkeypatch.setattr(cli, "register_user", lambda ip, devicetype, timeout: User(name="u1"))
    assert run("register", "-s") == 0
    assert os.environ[VAR_BRIDGE_IP] == "10.0.0.7"
    assert os.environ[VAR_BRIDGE_USERNAME] == "u1"
    assert capsys.readouterr().out == ""


def test_register_link_button_error(monkeypatch, run, capsys):
    def refuse(ip, devicetype, timeout):
        raise BridgeError(101, "", "link button not pressed")

    monkeypatch.setattr(cli, "register_user", refuse)
    with pytest.raises(SystemExit) as exc:
        run("register", "10.0.0.5")
    assert exc.value.code == 1
    err = capsys.readouterr().err
    assert "Failed to register user on bridge with the IP address '10.0.0.5'" in err
    assert "link button not pressed" in err


def test_timeout_from_env_is_parsed(monkeypatch, bridge, run):
    monkeypatch.setenv("HUECTL_TIMEOUT", "2.5")
    bridge.responses["get_all_lights"] = {}
    run("light", "get")
    assert bridge.constructed[0]["timeout"] == 2.5


@pytest.mark.parametrize("value", ["abc", "0"])
def test_invalid_timeout_from_env_is_usage_error(monkeypatch, bridge, run, value):
    monkeypatch.setenv("HUECTL_TIMEOUT", value)
    with pytest.raises(SystemExit) as exc:
        run("light", "get")
    assert exc.value.code == 2
    assert bridge.constructed == []


@pytest.mark.parametrize("value", ["0", "-3", "soon"])
def test_invalid_timeout_option_is_usage_error(bridge, run, value):
    with pytest.raises(SystemExit) as exc:
        run("--timeout", value, "light", "get")
    assert exc.value.code == 2
    assert bridge.constructed == []


def test_schedule_set_partial_command_is_usage_error(bridge, run, capsys):
    with pytest.raises(SystemExit) as exc:
        run("schedule", "set", "1", "--command-body", '{"on": false}')
    assert exc.value.code == 2
    assert bridge.calls == []
    assert "--command-address and --command-method" in capsys.readouterr().err


def test_schedule_set_full_command(bridge, run):
    run(
        "schedule", "set", "1", "--command-address", "/api/user/groups/0/action",
        "--command-method", "PUT", "--command-body", '{"on": false}',
    )
    assert bridge.calls == [
        ("set_schedule", ("1", {"command": {
            "address": "/api/user/groups/0/action",
            "method": "PUT",
            "body": {"on": False},
        }})),
    ]
