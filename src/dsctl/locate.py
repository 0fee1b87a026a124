import logging
import os
import subprocess
from typing import Callable, Iterator, Mapping, NamedTuple, Sequence

from dsctl.const import DS5_HID_ID_FMT, DS5_ID_FMT, DS5_PRODUCTS, DS5_VENDOR

logger = logging.getLogger(__name__)

SYS_ROOT = "/sys"
SUBSYSTEM_DIRS = {
    "input": "class/input",
    "hid": "bus/hid/devices",
}
HIDRAW_DIR = "hidraw"


class DeviceNotFound(Exception):
    pass


class NodeUnavailable(Exception):
    def __init__(self, syspath: str) -> None:
        self.syspath = syspath
        super().__init__(f"No hidraw node found for device '{syspath}'.")


class CandidateDevice(NamedTuple):
    syspath: str
    subsystem: str
    properties: Mapping[str, str]

    @property
    def vendor_id(self) -> str | None:
        return self.properties.get("ID_VENDOR_ID", None)

    @property
    def model_id(self) -> str | None:
        return self.properties.get("ID_MODEL_ID", None)

    @property
    def hid_id(self) -> str | None:
        return self.properties.get("HID_ID", None)


PropertyReader = Callable[[str], Mapping[str, str]]


def parse_properties(data: str) -> dict[str, str]:
    out = {}
    for line in data.splitlines():
        k, sep, v = line.strip().partition("=")
        if sep and k:
            out[k] = v
    return out


def get_device_properties(syspath: str) -> dict[str, str]:
    """Returns the kernel uevent properties of the device, updated with
    the ones in the udev database."""
    props = {}
    fn = os.path.join(syspath, "uevent")
    try:
        # Device names are not guaranteed to be utf-8
        with open(fn, "r", encoding="utf-8", errors="replace") as f:
            props.update(parse_properties(f.read()))
    except OSError as e:
        logger.debug(f"Could not read uevent of '{syspath}':\n{e}")

    try:
        stat = subprocess.run(
            ["udevadm", "info", "--query=property", f"--path={syspath}"],
            capture_output=True,
        )
    except FileNotFoundError:
        logger.debug("udevadm not found, using kernel properties only.")
        return props

    if stat.returncode:
        err = stat.stderr.decode(errors="replace")
        logger.debug(f"udevadm failed for '{syspath}':\n{err}")
    else:
        props.update(parse_properties(stat.stdout.decode(errors="replace")))
    return props


def scan_devices(
    subsystems: Sequence[str] = ("input", "hid"), sys_root: str = SYS_ROOT
) -> Iterator[tuple[str, str]]:
    """Yields `(subsystem, syspath)` for every registered device of the
    subsystems, in subsystem order and then by name."""
    for subsystem in subsystems:
        base = os.path.join(sys_root, SUBSYSTEM_DIRS[subsystem])
        if not os.path.isdir(base):
            logger.debug(f"Device directory '{base}' does not exist.")
            continue

        for fn in sorted(os.listdir(base)):
            yield subsystem, os.path.realpath(os.path.join(base, fn))


def matches_split_id(
    props: Mapping[str, str],
    vendor: int = DS5_VENDOR,
    products: Sequence[int] = DS5_PRODUCTS,
):
    vid = props.get("ID_VENDOR_ID", None)
    pid = props.get("ID_MODEL_ID", None)
    if vid is None or pid is None:
        return False
    return vid == DS5_ID_FMT.format(vendor) and pid in {
        DS5_ID_FMT.format(p) for p in products
    }


def matches_hid_id(
    props: Mapping[str, str],
    vendor: int = DS5_VENDOR,
    products: Sequence[int] = DS5_PRODUCTS,
):
    hid_id = props.get("HID_ID", None)
    if hid_id is None:
        return False
    return hid_id in {DS5_HID_ID_FMT.format(vendor, p) for p in products}


def find_devices(
    vendor: int = DS5_VENDOR,
    products: Sequence[int] = DS5_PRODUCTS,
    sys_root: str = SYS_ROOT,
    properties: PropertyReader = get_device_properties,
) -> list[CandidateDevice]:
    """Returns the input and hid devices that match the controller identity.

    A device matches if either its split vendor/model ids or its
    combined HID_ID do. An empty list means no controller is connected."""
    out = []
    for subsystem, syspath in scan_devices(sys_root=sys_root):
        props = properties(syspath)
        if matches_split_id(props, vendor, products):
            logger.debug(f"Found DualSense controller: {syspath}")
        elif matches_hid_id(props, vendor, products):
            logger.debug(f"Found DualSense controller via HID_ID: {syspath}")
        else:
            continue
        out.append(CandidateDevice(syspath, subsystem, props))
    return out


def resolve_hidraw_node(dev: CandidateDevice | str) -> str:
    """Returns the `/dev` path of the first hidraw node of the device."""
    syspath = dev.syspath if isinstance(dev, CandidateDevice) else dev
    hidraw = os.path.join(syspath, HIDRAW_DIR)
    if not os.path.isdir(hidraw):
        raise NodeUnavailable(syspath)

    entries = sorted(os.listdir(hidraw))
    if not entries:
        raise NodeUnavailable(syspath)
    return f"/dev/{entries[0]}"


def resolve_first_node(devs: Sequence[CandidateDevice]) -> str:
    if not devs:
        raise DeviceNotFound("No DualSense controller found.")

    for d in devs:
        try:
            return resolve_hidraw_node(d)
        except NodeUnavailable as e:
            logger.debug(str(e))
    raise NodeUnavailable(devs[-1].syspath)


__all__ = [
    "CandidateDevice",
    "DeviceNotFound",
    "NodeUnavailable",
    "find_devices",
    "get_device_properties",
    "matches_hid_id",
    "matches_split_id",
    "resolve_first_node",
    "resolve_hidraw_node",
    "scan_devices",
]
