from __future__ import annotations

import argparse
import contextlib
import logging
import os
import sys
import tomllib
from typing import Any, Callable, Iterator, List, NoReturn

import requests
from rich.console import Console

from .api import Bridge, BridgeError, discover, register_user
from .config import (
    CONFIG_PATH,
    VAR_BRIDGE_IP,
    VAR_BRIDGE_USERNAME,
    VAR_TIMEOUT,
    BridgeConfig,
    env_default,
    resolve_config,
)
from .modifiers import (
    Modifier,
    config_modifier,
    group_attribute_modifier,
    group_definition,
    group_state_modifier,
    light_attribute_modifier,
    light_state_modifier,
    resourcelink_definition,
    resourcelink_modifier,
    rule_definition,
    rule_modifier,
    scene_attribute_modifier,
    scene_definition,
    scene_light_state_modifier,
    schedule_definition,
    schedule_modifier,
    sensor_attribute_modifier,
    sensor_config_modifier,
    sensor_state_modifier,
)
from .output import dump_json, echo, pretty, resource_list, response_lines, scan_result, with_id
from .values import (
    Alert,
    Effect,
    GroupKind,
    Method,
    Status,
    parse_action,
    parse_bool,
    parse_brightness,
    parse_color_hex,
    parse_color_temperature,
    parse_condition,
    parse_coordinate,
    parse_hue,
    parse_ip_address,
    parse_json_object,
    parse_port,
    parse_rgb_component,
    parse_saturation,
    parse_timeout,
    parse_transition_time,
)

CLIENT_NAME = "huectl-py"


def _exit(context: str, error: object | None = None, code: int = 1) -> NoReturn:
    _print_err(context, error)
    raise SystemExit(code)


def _print_err(context: str, error: object | None = None) -> None:
    console = Console(stderr=True, soft_wrap=True, highlight=False)
    console.print(context, style="red", markup=False, emoji=False)
    if error is not None:
        console.print(str(error), markup=False, emoji=False)


@contextlib.contextmanager
def _fatal(context: str) -> Iterator[None]:
    try:
        yield
    except (requests.RequestException, BridgeError) as e:
        _exit(context, e)


def _bridge(args: argparse.Namespace) -> Bridge:
    cfg: BridgeConfig = args.config
    if not cfg.is_complete:
        msg = (
            "No bridge configured. Provide --bridge-ip and --username, set\n"
            f"    {VAR_BRIDGE_IP} and {VAR_BRIDGE_USERNAME} (see 'huectl register'),\n"
            f"or add a [bridge] section to {CONFIG_PATH}"
        )
        _exit(msg, code=2)
    return Bridge(ip=cfg.ip, username=cfg.username, timeout=args.timeout)


def _send(context: str, call: Callable[..., Any], *call_args: str, modifier: Modifier) -> list[str]:
    if modifier.is_empty():
        return []
    with _fatal(context):
        return response_lines(call(*call_args, modifier.to_payload()))


def _plural(resource: str) -> str:
    return resource + "s"


# (builder, bridge method, what is being modified) per resource, sent in order
LIGHT_UPDATES = [
    (light_state_modifier, "set_light_state", "the state of the light"),
    (light_attribute_modifier, "set_light_attribute", "attributes of the light"),
]
GROUP_UPDATES = [
    (group_state_modifier, "set_group_state", "the state of the group"),
    (group_attribute_modifier, "set_group_attribute", "attributes of the group"),
]
SENSOR_UPDATES = [
    (sensor_state_modifier, "set_sensor_state", "the state of the sensor"),
    (sensor_attribute_modifier, "set_sensor_attribute", "attributes of the sensor"),
    (sensor_config_modifier, "set_sensor_config", "the config of the sensor"),
]
SCHEDULE_UPDATES = [(schedule_modifier, "set_schedule", "the schedule")]
RULE_UPDATES = [(rule_modifier, "set_rule", "the rule")]
RESOURCELINK_UPDATES = [(resourcelink_modifier, "set_resourcelink", "the resourcelink")]


def cmd_discover(args: argparse.Namespace) -> int:
    with _fatal("Failed to discover bridges"):
        ip_addresses = discover(timeout=args.timeout)
    for ip in ip_addresses:
        echo(ip)
    return 0


def cmd_register(args: argparse.Namespace) -> int:
    ip_address = args.ip_address
    if ip_address is None:
        with _fatal("Failed to discover bridges"):
            found = discover(timeout=args.timeout)
        if not found:
            _exit("No bridges were found")
        ip_address = found[0]
    with _fatal(f"Failed to register user on bridge with the IP address '{ip_address}'"):
        user = register_user(ip_address, CLIENT_NAME, timeout=args.timeout)
    if args.set_env:
        os.environ[VAR_BRIDGE_IP] = ip_address
        os.environ[VAR_BRIDGE_USERNAME] = user.name
        args.config = BridgeConfig(ip=ip_address, username=user.name)
    else:
        echo(f"{VAR_BRIDGE_IP}={ip_address}")
        echo(f"{VAR_BRIDGE_USERNAME}={user.name}")
    return 0


# Config commands report bridge errors without raising SystemExit.
def cmd_config_get(args: argparse.Namespace) -> int:
    bridge = _bridge(args)
    try:
        data = bridge.get_config()
    except (requests.RequestException, BridgeError) as e:
        _print_err("Failed to get config", e)
        return 1
    if args.json:
        dump_json(data)
    else:
        pretty(data)
    return 0


def cmd_config_set(args: argparse.Namespace) -> int:
    modifier = config_modifier(args)
    if modifier.is_empty():
        return 0
    bridge = _bridge(args)
    try:
        responses = bridge.set_config(modifier.to_payload())
    except (requests.RequestException, BridgeError) as e:
        _print_err("Failed to set config", e)
        return 1
    for line in response_lines(responses):
        echo(line)
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    bridge = _bridge(args)
    resource = args.resource
    if args.id is not None:
        with _fatal(f"Failed to get {resource}"):
            data = getattr(bridge, f"get_{resource}")(args.id)
        dump_json(with_id(args.id, data))
    else:
        plural = _plural(resource)
        with _fatal(f"Failed to get {plural}"):
            data = getattr(bridge, f"get_all_{plural}")()
        dump_json(resource_list(data))
    return 0


def cmd_set(args: argparse.Namespace) -> int:
    bridge = _bridge(args)
    lines: list[str] = []
    for build, method, what in args.updates:
        lines.extend(_send(
            f"Error occurred while modifying {what}",
            getattr(bridge, method), args.id,
            modifier=build(args),
        ))
    for line in lines:
        echo(line)
    return 0


def cmd_scene_set(args: argparse.Namespace) -> int:
    state = scene_light_state_modifier(args)
    if not state.is_empty() and args.light is None:
        _exit("Light state options require --light to select the light in the scene", code=2)
    bridge = _bridge(args)
    lines = _send(
        "Error occurred while modifying attributes of the scene",
        bridge.set_scene, args.id,
        modifier=scene_attribute_modifier(args),
    )
    if args.light is not None:
        lines += _send(
            f"Error occurred while modifying the state of light {args.light} in the scene",
            bridge.set_scene_light_state, args.id, args.light,
            modifier=state,
        )
    for line in lines:
        echo(line)
    return 0


def cmd_schedule_set(args: argparse.Namespace) -> int:
    # the bridge replaces the command object as a whole
    command = (args.command_address, args.command_method, args.command_body)
    if any(v is not None for v in command) and (args.command_address is None or args.command_method is None):
        _exit("--command-address and --command-method are required when changing the command", code=2)
    return cmd_set(args)


def cmd_create(args: argparse.Namespace) -> int:
    definition = args.build(args)
    bridge = _bridge(args)
    with _fatal(f"Failed to create {args.resource}"):
        new_id = getattr(bridge, f"create_{args.resource}")(definition)
    echo(f"Created {args.resource} {new_id}")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    bridge = _bridge(args)
    with _fatal(f"Failed to delete {args.resource}"):
        getattr(bridge, f"delete_{args.resource}")(args.id)
    echo(f"Deleted {args.resource} {args.id}")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    bridge = _bridge(args)
    plural = _plural(args.resource)
    if args.get:
        with _fatal(f"Failed to get new {plural}"):
            data = getattr(bridge, f"get_new_{plural}")()
        dump_json(scan_result(data))
        return 0
    with _fatal(f"Failed to search for new {plural}"):
        if args.resource == "light":
            bridge.search_new_lights(getattr(args, "device_ids", None))
        else:
            bridge.search_new_sensors()
    echo(f"Searching for new {plural}...")
    return 0


def _add_state_args(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("--on", action="store_true", help="Turn on (wins over --off)")
    ap.add_argument("--off", action="store_true", help="Turn off")
    ap.add_argument("-b", "--brightness", type=parse_brightness,
                    help="Brightness in percent, or +N/-N to step it")
    ap.add_argument("--hue", type=parse_hue, help="Hue 0-65535, or +N/-N to step it")
    ap.add_argument("-s", "--saturation", type=parse_saturation,
                    help="Saturation in percent, or +N/-N to step it")
    ap.add_argument("-t", "--color-temperature", type=parse_color_temperature,
                    help="Color temperature in mired (153-500), or +N/-N to step it")
    ap.add_argument("-c", "--color-space-coordinates", type=parse_coordinate, nargs=2,
                    metavar=("X", "Y"), help="x and y coordinates in the color space")
    ap.add_argument("-r", "--color-rgb", type=parse_rgb_component, nargs=3,
                    metavar=("R", "G", "B"), help="Color as red, green and blue values")
    ap.add_argument("-x", "--color-hex", type=parse_color_hex, help="Color as hex value, e.g. ff00aa")
    ap.add_argument("-a", "--alert", type=Alert.parse,
                    help=f"Alert effect ({', '.join(Alert.variants())})")
    ap.add_argument("-e", "--effect", type=Effect.parse,
                    help=f"Dynamic effect ({', '.join(Effect.variants())})")
    ap.add_argument("--transition-time", type=parse_transition_time,
                    help="Transition time in multiples of 100ms")


def _add_get_parser(sub: Any, resource: str) -> None:
    gp = sub.add_parser("get", help=f"Print {resource} JSON")
    gp.add_argument("id", nargs="?", help=f"Identifier of the {resource}, if omitted all are printed")
    gp.set_defaults(func=cmd_get, resource=resource)


def _add_delete_parser(sub: Any, resource: str) -> None:
    dp = sub.add_parser("delete", help=f"Delete a {resource}")
    dp.add_argument("id", help=f"Identifier of the {resource}")
    dp.set_defaults(func=cmd_delete, resource=resource)


def _add_search_parser(sub: Any, resource: str) -> argparse.ArgumentParser:
    sp = sub.add_parser("search", help=f"Search for new {_plural(resource)}")
    sp.add_argument("-g", "--get", action="store_true",
                    help=f"Print the {_plural(resource)} found by the last search")
    sp.set_defaults(func=cmd_search, resource=resource)
    return sp


def _add_status_arg(ap: argparse.ArgumentParser) -> None:
    ap.add_argument("--status", type=Status.parse, help=f"Status ({', '.join(Status.variants())})")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="huectl", description="A command line interface to Philips Hue")
    p.add_argument("--bridge-ip", default=None, help=f"Bridge IP address (overrides {VAR_BRIDGE_IP})")
    p.add_argument("--username", default=None, help=f"Bridge username (overrides {VAR_BRIDGE_USERNAME})")
    p.add_argument("--timeout", type=parse_timeout, default=env_default(VAR_TIMEOUT, "5"),
                   help=f"HTTP timeout seconds (default from {VAR_TIMEOUT}, else 5)")
    p.add_argument("-v", "--verbose", action="store_true", help="Log HTTP requests to stderr")
    sub = p.add_subparsers(dest="cmd", required=True)

    # discover / register
    dp = sub.add_parser("discover", help="Discover bridges in the local network")
    dp.set_defaults(func=cmd_discover)

    rp = sub.add_parser("register", help="Register a new user on a bridge")
    rp.add_argument("ip_address", nargs="?", type=parse_ip_address,
                    help="IP address of the bridge, if omitted the first discovered bridge is used")
    rp.add_argument("-s", "--set-env", action="store_true",
                    help="Set environment variables for the current process instead of printing them")
    rp.set_defaults(func=cmd_register)

    # config
    cp = sub.add_parser("config", help="Modify or print the bridge configuration")
    csub = cp.add_subparsers(dest="subcmd", required=True)
    cg = csub.add_parser("get", help="Print the bridge configuration")
    cg.add_argument("--json", action="store_true", help="Output JSON instead of formatted text")
    cg.set_defaults(func=cmd_config_get)

    cs = csub.add_parser("set", help="Modify the bridge configuration")
    cs.add_argument("-n", "--name", help="Name of the bridge")
    cs.add_argument("--proxy-address", help="Proxy address")
    cs.add_argument("--proxy-port", type=parse_port, help="Proxy port")
    cs.add_argument("--ip-address", type=parse_ip_address, help="Static IP address")
    cs.add_argument("--netmask", help="Network mask")
    cs.add_argument("--gateway", type=parse_ip_address, help="Gateway IP address")
    cs.add_argument("--dhcp", type=parse_bool, help="Whether to use DHCP (true/false)")
    cs.add_argument("--link-button", action="store_true", help="Simulate pressing the link button")
    cs.add_argument("--touchlink", action="store_true", help="Start a touchlink")
    cs.add_argument("--zigbee-channel", type=int, choices=[11, 15, 20, 25], help="ZigBee channel")
    cs.add_argument("--timezone", help="Timezone, e.g. Europe/Berlin")
    cs.set_defaults(func=cmd_config_set)

    # light
    lp = sub.add_parser("light", help="Modify, print, search or delete lights")
    lsub = lp.add_subparsers(dest="subcmd", required=True)
    ls = lsub.add_parser("set", help="Modify the state and attributes of a light")
    ls.add_argument("id", help="Identifier of the light")
    _add_state_args(ls)
    ls.add_argument("-n", "--name", help="Rename the light")
    ls.set_defaults(func=cmd_set, updates=LIGHT_UPDATES)
    _add_get_parser(lsub, "light")
    lsearch = _add_search_parser(lsub, "light")
    lsearch.add_argument("--device-id", dest="device_ids", action="append",
                         help="Serial number of a light to search for (repeatable)")
    _add_delete_parser(lsub, "light")

    # group
    gp = sub.add_parser("group", help="Modify, print, create or delete groups")
    gsub = gp.add_subparsers(dest="subcmd", required=True)
    gs = gsub.add_parser("set", help="Modify the state and attributes of a group")
    gs.add_argument("id", help="Identifier of the group")
    _add_state_args(gs)
    gs.add_argument("--scene", help="Recall a scene on the group")
    gs.add_argument("-n", "--name", help="Rename the group")
    gs.add_argument("-l", "--lights", nargs="+", help="Light identifiers of the group")
    gs.add_argument("--class", dest="class_", help="Room class, e.g. 'Living room'")
    gs.set_defaults(func=cmd_set, updates=GROUP_UPDATES)
    _add_get_parser(gsub, "group")
    gc = gsub.add_parser("create", help="Create a group")
    gc.add_argument("-n", "--name", required=True, help="Name of the group")
    gc.add_argument("-l", "--lights", nargs="*", default=[], help="Light identifiers of the group")
    gc.add_argument("-k", "--kind", type=GroupKind.parse, default=GroupKind.LIGHT_GROUP,
                    help=f"Kind of group ({', '.join(GroupKind.variants())})")
    gc.add_argument("--class", dest="class_", help="Room class, e.g. 'Living room'")
    gc.set_defaults(func=cmd_create, resource="group", build=group_definition)
    _add_delete_parser(gsub, "group")

    # resourcelink
    rlp = sub.add_parser("resourcelink", help="Modify, print, create or delete resourcelinks")
    rlsub = rlp.add_subparsers(dest="subcmd", required=True)
    rls = rlsub.add_parser("set", help="Modify a resourcelink")
    rls.add_argument("id", help="Identifier of the resourcelink")
    rls.add_argument("-n", "--name", help="Name of the resourcelink")
    rls.add_argument("-d", "--description", help="Description of the resourcelink")
    rls.add_argument("--class-id", type=int, help="Class id of the resourcelink")
    rls.add_argument("-l", "--links", nargs="+", help="Resource addresses, e.g. /scenes/abc")
    rls.set_defaults(func=cmd_set, updates=RESOURCELINK_UPDATES)
    _add_get_parser(rlsub, "resourcelink")
    rlc = rlsub.add_parser("create", help="Create a resourcelink")
    rlc.add_argument("-n", "--name", required=True, help="Name of the resourcelink")
    rlc.add_argument("-d", "--description", help="Description of the resourcelink")
    rlc.add_argument("--class-id", type=int, required=True, help="Class id of the resourcelink")
    rlc.add_argument("-l", "--links", nargs="+", required=True, help="Resource addresses, e.g. /scenes/abc")
    rlc.add_argument("--recycle", action="store_true", help="Let the bridge delete it when unused")
    rlc.set_defaults(func=cmd_create, resource="resourcelink", build=resourcelink_definition)
    _add_delete_parser(rlsub, "resourcelink")

    # rule
    rup = sub.add_parser("rule", help="Modify, print, create or delete rules")
    rusub = rup.add_subparsers(dest="subcmd", required=True)
    rus = rusub.add_parser("set", help="Modify a rule")
    rus.add_argument("id", help="Identifier of the rule")
    rus.add_argument("-n", "--name", help="Name of the rule")
    _add_status_arg(rus)
    rus.add_argument("-c", "--condition", dest="conditions", type=parse_condition, action="append",
                     help="Condition as 'ADDRESS OPERATOR [VALUE]' (repeatable, replaces all)")
    rus.add_argument("-a", "--action", dest="actions", type=parse_action, action="append",
                     help="Action as 'ADDRESS METHOD [JSON_BODY]' (repeatable, replaces all)")
    rus.set_defaults(func=cmd_set, updates=RULE_UPDATES)
    _add_get_parser(rusub, "rule")
    ruc = rusub.add_parser("create", help="Create a rule")
    ruc.add_argument("-n", "--name", help="Name of the rule")
    _add_status_arg(ruc)
    ruc.add_argument("-c", "--condition", dest="conditions", type=parse_condition, action="append",
                     required=True, help="Condition as 'ADDRESS OPERATOR [VALUE]' (repeatable)")
    ruc.add_argument("-a", "--action", dest="actions", type=parse_action, action="append",
                     required=True, help="Action as 'ADDRESS METHOD [JSON_BODY]' (repeatable)")
    ruc.set_defaults(func=cmd_create, resource="rule", build=rule_definition)
    _add_delete_parser(rusub, "rule")

    # scene
    scp = sub.add_parser("scene", help="Modify, print, create or delete scenes")
    scsub = scp.add_subparsers(dest="subcmd", required=True)
    scs = scsub.add_parser("set", help="Modify a scene or the state of a light in it")
    scs.add_argument("id", help="Identifier of the scene")
    scs.add_argument("-n", "--name", help="Name of the scene")
    scs.add_argument("-l", "--lights", nargs="+", help="Light identifiers of the scene")
    scs.add_argument("--store-light-states", action="store_true",
                     help="Store the current light states in the scene")
    scs.add_argument("--light", help="Light whose state in the scene is modified")
    _add_state_args(scs)
    scs.set_defaults(func=cmd_scene_set)
    _add_get_parser(scsub, "scene")
    scc = scsub.add_parser("create", help="Create a scene")
    scc.add_argument("-n", "--name", required=True, help="Name of the scene")
    members = scc.add_mutually_exclusive_group(required=True)
    members.add_argument("-l", "--lights", nargs="+", help="Light identifiers (creates a LightScene)")
    members.add_argument("-g", "--group", help="Group identifier (creates a GroupScene)")
    scc.add_argument("--recycle", action="store_true", help="Let the bridge delete it when unused")
    scc.add_argument("--transition-time", type=parse_transition_time,
                     help="Transition time in multiples of 100ms")
    scc.add_argument("--app-version", type=int, help="Version of the app data")
    scc.add_argument("--app-data", help="App specific data")
    scc.set_defaults(func=cmd_create, resource="scene", build=scene_definition)
    _add_delete_parser(scsub, "scene")

    # schedule
    shp = sub.add_parser("schedule", help="Modify, print, create or delete schedules")
    shsub = shp.add_subparsers(dest="subcmd", required=True)
    for name in ("set", "create"):
        creating = name == "create"
        sh = shsub.add_parser(name, help=f"{'Create' if creating else 'Modify'} a schedule")
        if not creating:
            sh.add_argument("id", help="Identifier of the schedule")
        sh.add_argument("-n", "--name", help="Name of the schedule")
        sh.add_argument("-d", "--description", help="Description of the schedule")
        sh.add_argument("--command-address", required=creating,
                        help="Address the command is sent to, e.g. /api/<user>/groups/0/action")
        sh.add_argument("--command-method", type=Method.parse, required=creating,
                        help=f"HTTP method of the command ({', '.join(Method.variants())})")
        sh.add_argument("--command-body", type=parse_json_object, help="JSON body of the command")
        sh.add_argument("--localtime", required=creating, help="Time pattern, e.g. W127/T07:00:00")
        _add_status_arg(sh)
        auto_grp = sh.add_mutually_exclusive_group()
        auto_grp.add_argument("--auto-delete", dest="auto_delete", action="store_true",
                              help="Delete the schedule after it expires")
        auto_grp.add_argument("--no-auto-delete", dest="auto_delete", action="store_false")
        sh.set_defaults(auto_delete=None)
        if creating:
            sh.add_argument("--recycle", action="store_true", help="Let the bridge delete it when unused")
            sh.set_defaults(func=cmd_create, resource="schedule", build=schedule_definition)
        else:
            sh.set_defaults(func=cmd_schedule_set, updates=SCHEDULE_UPDATES)
    _add_get_parser(shsub, "schedule")
    _add_delete_parser(shsub, "schedule")

    # sensor
    snp = sub.add_parser("sensor", help="Modify, print, search or delete sensors")
    snsub = snp.add_subparsers(dest="subcmd", required=True)
    sns = snsub.add_parser("set", help="Modify the state, attributes and config of a sensor")
    sns.add_argument("id", help="Identifier of the sensor")
    sns.add_argument("-n", "--name", help="Rename the sensor")
    sns.add_argument("--on", action="store_true", help="Enable the sensor (wins over --off)")
    sns.add_argument("--off", action="store_true", help="Disable the sensor")
    sns.add_argument("--presence", type=parse_bool, help="Presence state (true/false)")
    sns.add_argument("--flag", type=parse_bool, help="Flag state of a CLIPGenericFlag sensor")
    sns.add_argument("--status", type=int, help="Status of a CLIPGenericStatus sensor")
    sns.set_defaults(func=cmd_set, updates=SENSOR_UPDATES)
    _add_get_parser(snsub, "sensor")
    _add_search_parser(snsub, "sensor")
    _add_delete_parser(snsub, "sensor")

    return p


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    # Resolve bridge from arg > env > config file
    try:
        args.config = resolve_config(args.bridge_ip, args.username)
    except (OSError, tomllib.TOMLDecodeError) as e:
        _exit(f"Failed to read config file {CONFIG_PATH}", e, code=2)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
