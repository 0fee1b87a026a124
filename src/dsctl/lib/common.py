from typing import Literal, Mapping, NamedTuple


class BM(NamedTuple):
    """Button map. `loc` is a bit location, counted from the most significant
    bit of byte 0. `flipped` is for active-low bits."""

    loc: int
    flipped: bool = False


NumType = Literal["u32", "i32", "u16", "i16", "u8", "i8"]
"""Numerical type for axis.

Number is bit length. Letter signifies sign.
 - `u`: unsigned
 - 'i': signed
 """


class AM(NamedTuple):
    loc: int
    type: NumType
    order: Literal["little", "big"] = "little"


class FM(NamedTuple):
    """Field map, a byte range of the payload."""

    ofs: int
    size: int


class LayoutError(Exception):
    pass


def bit(ofs: int, n: int, flipped: bool = False):
    """Returns the button map of bit `n` (0 is the LSB) of byte `ofs`."""
    return BM((ofs << 3) + 7 - n, flipped)


def decode_int(buff: bytes, t: AM) -> int:
    match t.type:
        case "u8" | "i8":
            size = 1
        case "u16" | "i16":
            size = 2
        case "u32" | "i32":
            size = 4
        case _:
            assert False, f"Invalid formatting {t.type}."

    return int.from_bytes(
        buff[t.loc >> 3 : (t.loc >> 3) + size], t.order, signed=t.type[0] == "i"
    )


def get_button(rep: bytes, map: BM):
    v = bool(rep[map.loc // 8] & (1 << (7 - (map.loc % 8))))
    if map.flipped:
        return not v
    return v


def get_field(rep: bytes, map: FM) -> bytes:
    return bytes(rep[map.ofs : map.ofs + map.size])


def check_layout(layout: Mapping[str, FM], size: int):
    """Verifies that the fields of `layout` tile exactly `size` bytes,
    with no gaps or overlaps."""
    end = 0
    for name, f in sorted(layout.items(), key=lambda v: v[1].ofs):
        if f.size <= 0:
            raise LayoutError(f"Field '{name}' has invalid size {f.size}.")
        if f.ofs != end:
            raise LayoutError(
                f"Field '{name}' starts at offset {f.ofs}, expected {end}."
            )
        end = f.ofs + f.size

    if end != size:
        raise LayoutError(f"Layout spans {end} bytes, expected {size}.")
    return end
