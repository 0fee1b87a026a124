import enum
import logging
from typing import Any, NamedTuple

from dsctl.const import (
    ACCELERATION_RESOLUTION_PER_G,
    DS5_AXIS_MAP,
    DS5_BATTERY_LEVEL_MASK,
    DS5_BATTERY_STATUS_SHIFT,
    DS5_BTN_MAP,
    DS5_DPAD_MASK,
    DS5_DPAD_OFS,
    DS5_INPUT_REPORT_BT,
    DS5_INPUT_REPORT_SIZE,
    DS5_INPUT_REPORT_USB,
    DS5_LAYOUT,
    DS5_PAYLOAD_SIZE,
    DS5_PERIPHERAL_HEADPHONES,
    DS5_PERIPHERAL_KNOWN,
    DS5_PERIPHERAL_MIC,
    DS5_PERIPHERAL_MIC_MUTED,
    DS5_TOUCH_ACTIVE,
    DS5_TOUCHPOINT_SIZE,
    DS5_TOUCHPOINTS,
    Button,
)
from dsctl.lib.common import decode_int, get_button, get_field

logger = logging.getLogger(__name__)


class DecodeError(Exception):
    pass


class UnknownTransport(DecodeError):
    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(f"Unknown report type: 0x{value:02x}")


class Truncated(DecodeError):
    def __init__(self, length: int, required: int = DS5_INPUT_REPORT_SIZE) -> None:
        self.length = length
        self.required = required
        super().__init__(f"Report has {length} bytes, expected at least {required}.")


class ReportTransport(enum.IntEnum):
    USB = DS5_INPUT_REPORT_USB
    BLUETOOTH = DS5_INPUT_REPORT_BT


class DPad(enum.IntEnum):
    NORTH = 0
    NORTH_EAST = 1
    EAST = 2
    SOUTH_EAST = 3
    SOUTH = 4
    SOUTH_WEST = 5
    WEST = 6
    NORTH_WEST = 7
    CENTERED = 8


class ChargingStatus(enum.Enum):
    DISCHARGING = 0x0
    CHARGING = 0x1
    CHARGED = 0x2
    VOLTAGE_OR_TEMPERATURE_OUT_OF_RANGE = 0xA
    TEMPERATURE_ERROR = 0xB
    CHARGING_ERROR = 0xF
    UNKNOWN = -1

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class XY(NamedTuple):
    x: int
    y: int


class XYZ(NamedTuple):
    x: Any
    y: Any
    z: Any


class Touchpoint(NamedTuple):
    raw: bytes

    @property
    def active(self) -> bool:
        return get_button(self.raw, DS5_TOUCH_ACTIVE)

    @property
    def touch_count(self) -> int:
        return self.raw[0] & 0x7F

    @property
    def x(self) -> int:
        return self.raw[1] | ((self.raw[2] & 0x0F) << 8)

    @property
    def y(self) -> int:
        return ((self.raw[2] >> 4) & 0x0F) | (self.raw[3] << 4)

    def as_dict(self):
        return {
            "active": self.active,
            "touch_count": self.touch_count,
            "x": self.x,
            "y": self.y,
        }


class BatteryState(NamedTuple):
    raw: int

    @property
    def charging_status(self) -> ChargingStatus:
        return ChargingStatus(self.raw >> DS5_BATTERY_STATUS_SHIFT)

    @property
    def level(self) -> int:
        return self.raw & DS5_BATTERY_LEVEL_MASK

    @property
    def percentage(self) -> int:
        return min(self.level * 10 + 5, 100)


class PeripheralState(NamedTuple):
    raw: int

    @property
    def headphones(self) -> bool:
        return bool(self.raw & DS5_PERIPHERAL_HEADPHONES)

    @property
    def microphone(self) -> bool:
        return bool(self.raw & DS5_PERIPHERAL_MIC)

    @property
    def mic_muted(self) -> bool:
        return bool(self.raw & DS5_PERIPHERAL_MIC_MUTED)

    @property
    def unknown_bits(self) -> int:
        return self.raw & ~DS5_PERIPHERAL_KNOWN & 0xFF


def _button(name: Button):
    return property(lambda self: self.pressed(name))


class DecodedReport:
    """Read-only view of a DualSense input report.

    Holds a copy of the 63 payload bytes that follow the report id. Every
    accessor is computed from those bytes on access."""

    __slots__ = ("_transport", "_rep")

    def __init__(self, transport: ReportTransport, payload: bytes) -> None:
        if len(payload) < DS5_PAYLOAD_SIZE:
            raise Truncated(len(payload) + 1)
        self._transport = transport
        self._rep = bytes(payload[:DS5_PAYLOAD_SIZE])

    @property
    def transport(self) -> ReportTransport:
        return self._transport

    @property
    def raw(self) -> bytes:
        return self._rep

    @property
    def sequence_number(self) -> int:
        return self._rep[DS5_LAYOUT["sequence_number"].ofs]

    @property
    def left(self) -> XY:
        return XY(
            decode_int(self._rep, DS5_AXIS_MAP["ls_x"]),
            decode_int(self._rep, DS5_AXIS_MAP["ls_y"]),
        )

    @property
    def right(self) -> XY:
        return XY(
            decode_int(self._rep, DS5_AXIS_MAP["rs_x"]),
            decode_int(self._rep, DS5_AXIS_MAP["rs_y"]),
        )

    @property
    def triggers(self) -> XY:
        """Left trigger in `x`, right trigger in `y`."""
        return XY(
            decode_int(self._rep, DS5_AXIS_MAP["lt"]),
            decode_int(self._rep, DS5_AXIS_MAP["rt"]),
        )

    @property
    def buttons(self) -> bytes:
        return get_field(self._rep, DS5_LAYOUT["buttons"])

    @property
    def dpad_raw(self) -> int:
        """The dpad nibble as sent. Values above 8 are not a device state."""
        return self._rep[DS5_DPAD_OFS] & DS5_DPAD_MASK

    @property
    def dpad(self) -> DPad:
        v = self.dpad_raw
        if v > DPad.CENTERED:
            logger.debug(f"Invalid dpad value {v}, treating as centered.")
            return DPad.CENTERED
        return DPad(v)

    def pressed(self, name: Button) -> bool:
        return get_button(self._rep, DS5_BTN_MAP[name])

    square = _button("square")
    cross = _button("cross")
    circle = _button("circle")
    triangle = _button("triangle")
    left_trigger = _button("left_trigger")
    right_trigger = _button("right_trigger")
    left_bumper = _button("left_bumper")
    right_bumper = _button("right_bumper")
    create = _button("create")
    options = _button("options")
    left_stick = _button("left_stick")
    right_stick = _button("right_stick")
    home = _button("home")
    touchpad_click = _button("touchpad")
    mic_mute = _button("mic_mute")

    @property
    def gyro(self) -> XYZ:
        return XYZ(
            decode_int(self._rep, DS5_AXIS_MAP["gyro_x"]),
            decode_int(self._rep, DS5_AXIS_MAP["gyro_y"]),
            decode_int(self._rep, DS5_AXIS_MAP["gyro_z"]),
        )

    @property
    def accel(self) -> XYZ:
        return XYZ(
            decode_int(self._rep, DS5_AXIS_MAP["accel_x"]),
            decode_int(self._rep, DS5_AXIS_MAP["accel_y"]),
            decode_int(self._rep, DS5_AXIS_MAP["accel_z"]),
        )

    @property
    def accel_g(self) -> XYZ:
        return XYZ(*(v / ACCELERATION_RESOLUTION_PER_G for v in self.accel))

    @property
    def sensor_timestamp(self) -> int:
        return decode_int(self._rep, DS5_AXIS_MAP["sensor_timestamp"])

    @property
    def touchpad(self) -> tuple[Touchpoint, ...]:
        ofs = DS5_LAYOUT["touchpad"].ofs
        return tuple(
            Touchpoint(
                self._rep[
                    ofs + i * DS5_TOUCHPOINT_SIZE : ofs + (i + 1) * DS5_TOUCHPOINT_SIZE
                ]
            )
            for i in range(DS5_TOUCHPOINTS)
        )

    @property
    def battery_state(self) -> BatteryState:
        return BatteryState(self._rep[DS5_LAYOUT["battery_state"].ofs])

    @property
    def peripheral_state(self) -> PeripheralState:
        return PeripheralState(self._rep[DS5_LAYOUT["peripheral_state"].ofs])

    @property
    def aes_cmac(self) -> bytes:
        return get_field(self._rep, DS5_LAYOUT["aes_cmac"])

    def as_dict(self) -> dict[str, Any]:
        bat = self.battery_state
        per = self.peripheral_state
        return {
            "transport": self.transport.name.lower(),
            "sequence_number": self.sequence_number,
            "left": self.left._asdict(),
            "right": self.right._asdict(),
            "triggers": {"left": self.triggers.x, "right": self.triggers.y},
            "dpad": self.dpad.name.lower(),
            "dpad_raw": self.dpad_raw,
            "buttons": {name: self.pressed(name) for name in DS5_BTN_MAP},
            "gyro": self.gyro._asdict(),
            "accel": self.accel._asdict(),
            "sensor_timestamp": self.sensor_timestamp,
            "touchpad": [t.as_dict() for t in self.touchpad],
            "battery": {
                "charging_status": bat.charging_status.name.lower(),
                "level": bat.level,
                "percentage": bat.percentage,
            },
            "peripheral": {
                "headphones": per.headphones,
                "microphone": per.microphone,
                "mic_muted": per.mic_muted,
                "unknown_bits": per.unknown_bits,
            },
            "aes_cmac": self.aes_cmac.hex(),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecodedReport):
            return NotImplemented
        return self._transport == other._transport and self._rep == other._rep

    def __hash__(self) -> int:
        return hash((self._transport, self._rep))

    def __repr__(self) -> str:
        return (
            f"DecodedReport(transport={self.transport.name}, "
            + f"seq={self.sequence_number}, payload={self._rep.hex()})"
        )


def decode(buffer: bytes) -> DecodedReport:
    """Decodes a raw input report, report id included.

    Raises `Truncated` for buffers shorter than a full report and
    `UnknownTransport` for report ids other than USB (0x01) and
    Bluetooth (0x31). The buffer should be dropped in both cases."""
    if len(buffer) < DS5_INPUT_REPORT_SIZE:
        raise Truncated(len(buffer))

    try:
        transport = ReportTransport(buffer[0])
    except ValueError:
        raise UnknownTransport(buffer[0]) from None

    return DecodedReport(transport, bytes(buffer[1:DS5_INPUT_REPORT_SIZE]))


__all__ = [
    "BatteryState",
    "ChargingStatus",
    "DecodeError",
    "DecodedReport",
    "DPad",
    "PeripheralState",
    "ReportTransport",
    "Touchpoint",
    "Truncated",
    "UnknownTransport",
    "XY",
    "XYZ",
    "decode",
]
