from typing import Literal

from dsctl.lib.common import AM, BM, FM, bit, check_layout

DS5_VENDOR = 0x054C
DS5_PRODUCT = 0x0CE6
DS5_EDGE_PRODUCT = 0x0DF2
DS5_PRODUCTS = (DS5_PRODUCT, DS5_EDGE_PRODUCT)

# udev exposes the identity two ways. The split properties use 4 lowercase
# digits, HID_ID pads each id to 8 uppercase digits behind a fixed bus code.
DS5_ID_FMT = "{:04x}"
DS5_HID_ID_FMT = "0005:{:08X}:{:08X}"

ACCELERATION_RESOLUTION_PER_G = 8192

DS5_INPUT_REPORT_USB = 0x01
DS5_INPUT_REPORT_BT = 0x31

# Bytes after the report id. Both transports are decoded with the same layout.
DS5_PAYLOAD_SIZE = 63
DS5_INPUT_REPORT_SIZE = DS5_PAYLOAD_SIZE + 1
MAX_REPORT_SIZE = 78

DS5_LAYOUT = {
    "sequence_number": FM(0, 1),
    "left": FM(1, 2),
    "right": FM(3, 2),
    "triggers": FM(5, 2),
    "buttons": FM(7, 4),
    "reserved": FM(11, 4),
    "gyro": FM(15, 6),
    "accel": FM(21, 6),
    "sensor_timestamp": FM(27, 4),
    "reserved2": FM(31, 2),
    "touchpad": FM(33, 8),
    "reserved3": FM(41, 11),
    "battery_state": FM(52, 1),
    "peripheral_state": FM(53, 1),
    "unknown": FM(54, 1),
    "aes_cmac": FM(55, 8),
}
check_layout(DS5_LAYOUT, DS5_PAYLOAD_SIZE)

DS5_TOUCHPOINT_SIZE = 4
DS5_TOUCHPOINTS = 2
# Contact bit of a touchpoint, set while the finger is lifted
DS5_TOUCH_ACTIVE = bit(0, 7, flipped=True)

_btn = DS5_LAYOUT["buttons"].ofs

DS5_DPAD_MASK = 0x0F
DS5_DPAD_OFS = _btn + 1

Axis = Literal[
    "ls_x",
    "ls_y",
    "rs_x",
    "rs_y",
    "lt",
    "rt",
    "gyro_x",
    "gyro_y",
    "gyro_z",
    "accel_x",
    "accel_y",
    "accel_z",
    "sensor_timestamp",
]

DS5_AXIS_MAP: dict[Axis, AM] = {
    "ls_x": AM(1 << 3, "u8"),
    "ls_y": AM(2 << 3, "u8"),
    "rs_x": AM(3 << 3, "u8"),
    "rs_y": AM(4 << 3, "u8"),
    "lt": AM(5 << 3, "u8"),
    "rt": AM(6 << 3, "u8"),
    "gyro_x": AM(15 << 3, "i16"),
    "gyro_y": AM(17 << 3, "i16"),
    "gyro_z": AM(19 << 3, "i16"),
    "accel_x": AM(21 << 3, "i16"),
    "accel_y": AM(23 << 3, "i16"),
    "accel_z": AM(25 << 3, "i16"),
    "sensor_timestamp": AM(27 << 3, "u32"),
}

Button = Literal[
    "square",
    "cross",
    "circle",
    "triangle",
    "left_trigger",
    "right_trigger",
    "left_bumper",
    "right_bumper",
    "create",
    "options",
    "left_stick",
    "right_stick",
    "home",
    "touchpad",
    "mic_mute",
]

DS5_BTN_MAP: dict[Button, BM] = {
    # Shares its byte with the dpad
    "square": bit(_btn + 1, 4),
    "cross": bit(_btn + 1, 5),
    "circle": bit(_btn + 1, 6),
    "triangle": bit(_btn + 1, 7),
    "left_trigger": bit(_btn + 2, 0),
    "right_trigger": bit(_btn + 2, 1),
    "left_bumper": bit(_btn + 2, 2),
    "right_bumper": bit(_btn + 2, 3),
    "create": bit(_btn + 2, 4),
    "options": bit(_btn + 2, 5),
    "left_stick": bit(_btn + 2, 6),
    "right_stick": bit(_btn + 2, 7),
    "home": bit(_btn + 3, 0),
    # Click, not touch. Touch is the contact byte of each touchpoint.
    "touchpad": bit(_btn + 3, 1),
    "mic_mute": bit(_btn + 3, 2),
}

# Battery
# status: 4 high bits
# level: 4 low bits, bat = 10*lvl + 5
DS5_BATTERY_STATUS_SHIFT = 4
DS5_BATTERY_LEVEL_MASK = 0x0F

# Peripheral state
DS5_PERIPHERAL_HEADPHONES = 0x01
DS5_PERIPHERAL_MIC = 0x02
DS5_PERIPHERAL_MIC_MUTED = 0x04
DS5_PERIPHERAL_KNOWN = 0x07
