import argparse
import json
import logging
import sys
from typing import Callable, Sequence

from dsctl.const import MAX_REPORT_SIZE
from dsctl.device import ReadTimeout, open_device, read_report
from dsctl.locate import (
    CandidateDevice,
    DeviceNotFound,
    NodeUnavailable,
    find_devices,
    resolve_first_node,
    resolve_hidraw_node,
)
from dsctl.logging import setup_logger
from dsctl.report import DecodedReport, DecodeError, decode

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1000


def get_version():
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("dsctl")
    except PackageNotFoundError:
        return "unknown"


def list_devices(devs: Sequence[CandidateDevice]):
    print(f"Found {len(devs)} DualSense controller(s)")
    for i, d in enumerate(devs):
        try:
            node = resolve_hidraw_node(d)
        except NodeUnavailable:
            node = "no hidraw node"
        print(f" - {i}: {d.syspath} ({d.subsystem}, {node})")


def select_node(devs: Sequence[CandidateDevice], device: str | None) -> str:
    if not device:
        return resolve_first_node(devs)
    if device.startswith("/dev/"):
        return device
    try:
        idx = int(device)
    except ValueError:
        idx = -1
    if not 0 <= idx < len(devs):
        raise DeviceNotFound(f"Device '{device}' not found.")
    return resolve_hidraw_node(devs[idx])


def render_report(rep: DecodedReport) -> str:
    out = f"Transport: {rep.transport.name}\n"
    out += f"Sequence Number: {rep.sequence_number}\n"
    out += f"Left Stick: x={rep.left.x}, y={rep.left.y}\n"
    out += f"Right Stick: x={rep.right.x}, y={rep.right.y}\n"
    out += f"Triggers: L={rep.triggers.x}, R={rep.triggers.y}\n"
    out += f"DPad: {rep.dpad.name}\n"
    pressed = [name for name, v in rep.as_dict()["buttons"].items() if v]
    out += f"Buttons: {' '.join(pressed) if pressed else '-'}\n"
    x, y, z = rep.gyro
    out += f"Gyro: x={x: >6}, y={y: >6}, z={z: >6}\n"
    x, y, z = rep.accel
    out += f"Accelerometer: x={x: >6}, y={y: >6}, z={z: >6}\n"
    out += f"Sensor Timestamp: {rep.sensor_timestamp}\n"
    for t in rep.touchpad:
        out += (
            f"Touchpoint: active={str(t.active): <5}, count={t.touch_count: >3},"
            + f" x={t.x:04}, y={t.y:04}"
            + f" raw=[ {' '.join(f'{b:08b}' for b in t.raw)} ]\n"
        )
    bat = rep.battery_state
    out += (
        f"Battery: {bat.percentage}% {bat.charging_status.name.lower()}"
        + f" (0x{bat.raw:02x})\n"
    )
    per = rep.peripheral_state
    out += (
        f"Peripherals: headphones={per.headphones}, microphone={per.microphone},"
        + f" muted={per.mic_muted} (0x{per.raw:02x})"
    )
    return out


def print_reports(
    read: Callable[[], bytes | None], count: int = 0, as_json: bool = False
):
    """Reads and prints reports until `count` were printed (0 is forever)."""
    n = 0
    while not count or n < count:
        buf = read()
        if not buf:
            continue

        try:
            rep = decode(buf)
        except DecodeError as e:
            logger.warning(f"Dropping report:\n{e}")
            continue

        if as_json:
            print(json.dumps(rep.as_dict()))
        else:
            print(render_report(rep))
            print()
        n += 1
    return n


def info(nodes: Sequence[str]):
    from hid import HIDException

    for node in nodes:
        try:
            with open_device(node) as d:
                print(f"Device: {node}")
                print(f"Manufacturer: '{d.manufacturer}'")
                print(f"Product: '{d.product}'")
                print(f"Serial: {d.serial}")
        except HIDException as e:
            logger.error(f"Could not read device info of '{node}':\n{e}")
            return 3
    return 0


def status(node: str, count: int, as_json: bool, timeout: int):
    from hid import HIDException

    logger.info(f"Reading reports from '{node}'.")
    try:
        with open_device(node) as d:

            def read():
                try:
                    return read_report(d, MAX_REPORT_SIZE * 2, timeout)
                except ReadTimeout as e:
                    logger.warning(f"Timed out waiting for a report ({e}).")
                    return None

            print_reports(read, count, as_json)
    except HIDException as e:
        logger.error(f"Could not read from '{node}':\n{e}")
        return 3
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="dsctl",
        description="Find DualSense controllers and decode their input reports.",
    )
    parser.add_argument(
        "-l", "--list", action="store_true", help="List available devices."
    )
    parser.add_argument(
        "-d",
        "--device",
        default=None,
        help="Device to use, as an index from `--list` or a /dev/hidraw# path.",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging."
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"%(prog)s {get_version()}"
    )
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("list", help="List available devices.")
    sub.add_parser("info", help="Print the manufacturer, product and serial.")
    st = sub.add_parser("status", help="Read and decode input reports.")
    st.add_argument("--json", action="store_true", help="Print reports as JSON.")
    st.add_argument(
        "-n", "--count", type=int, default=0, help="Stop after COUNT reports."
    )
    st.add_argument(
        "-t",
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help="Read timeout in milliseconds.",
    )
    args = parser.parse_args(argv)

    setup_logger(args.debug)

    devs = find_devices()
    cmd = "list" if args.list or not args.command else args.command
    try:
        match cmd:
            case "list":
                list_devices(devs)
            case "info":
                if args.device:
                    nodes = [select_node(devs, args.device)]
                else:
                    nodes = []
                    for d in devs:
                        try:
                            nodes.append(resolve_hidraw_node(d))
                        except NodeUnavailable as e:
                            logger.debug(str(e))
                    if not nodes:
                        # Raises the reason
                        resolve_first_node(devs)
                return info(nodes)
            case "status":
                return status(
                    select_node(devs, args.device),
                    args.count,
                    args.json,
                    args.timeout,
                )
    except DeviceNotFound as e:
        logger.error(str(e))
        return 1
    except NodeUnavailable as e:
        logger.error(str(e))
        return 2
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
