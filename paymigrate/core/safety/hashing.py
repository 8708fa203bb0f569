"""Fast, non-cryptographic content hashing.

The hash is the classic 32-bit ``h = h * 31 + unit`` rolling hash over
UTF-16 code units, rendered in base 36. It only has to detect accidental
corruption and drift between two reads of the same file.
"""

import array
import sys

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return sign + "".join(reversed(digits))


def content_hash(text: str) -> str:
    """Hash ``text`` to a short base-36 string."""
    units = array.array("H", text.encode("utf-16-le", "surrogatepass"))
    if sys.byteorder == "big":
        units.byteswap()
    h = 0
    for unit in units:
        h = _to_int32((h << 5) - h + unit)
    return to_base36(h)
