import logging
from typing import Union

from eth_utils import is_hexstr, to_bytes

logger = logging.getLogger("zksync_signer")
logger.addHandler(logging.NullHandler())


def as_bytes(value: Union[bytes, bytearray, memoryview, str]) -> bytes:
    """
    Convert a byte-like value or ``0x``-prefixed hex string to ``bytes``.

    Raises:
        ValueError: If ``value`` is a string that is not valid hex, or of an
            unsupported type.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        if value in ("", "0x", "0X"):
            return b""
        if not value.startswith(("0x", "0X")) or not is_hexstr(value):
            raise ValueError(f"Expected 0x-prefixed hex string, got {value!r}")
        return to_bytes(hexstr=value)
    raise ValueError(f"Expected bytes or hex string, got {type(value).__name__}")


def as_int(value: Union[int, str]) -> int:
    """
    Convert an ``int`` or a decimal / ``0x``-hex string to ``int``.

    ``bool`` is rejected so that ``True`` never silently becomes ``1``.
    """
    if isinstance(value, bool):
        raise ValueError("Expected integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith(("0x", "-0x")):
            return int(text, 16)
        return int(text, 10)
    raise ValueError(f"Expected integer, got {type(value).__name__}")
