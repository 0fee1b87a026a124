from .locate import (
    CandidateDevice,
    DeviceNotFound,
    NodeUnavailable,
    find_devices,
    resolve_hidraw_node,
)
from .report import (
    ChargingStatus,
    DecodedReport,
    DecodeError,
    DPad,
    ReportTransport,
    Truncated,
    UnknownTransport,
    decode,
)

__all__ = [
    "CandidateDevice",
    "ChargingStatus",
    "DecodeError",
    "DecodedReport",
    "DeviceNotFound",
    "DPad",
    "NodeUnavailable",
    "ReportTransport",
    "Truncated",
    "UnknownTransport",
    "decode",
    "find_devices",
    "resolve_hidraw_node",
]
