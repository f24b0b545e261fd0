"""Byte and integer encoding helpers."""

import base64

import base58


def pad(val: str) -> str:
    """Pad base64 values if need be."""
    padlen = 4 - len(val) % 4
    return val if padlen > 2 else (val + "=" * padlen)


def b64_to_bytes(val: str, urlsafe=False) -> bytes:
    """Convert a base 64 string to bytes."""
    if urlsafe:
        return base64.urlsafe_b64decode(pad(val))
    return base64.b64decode(pad(val))


def bytes_to_b64(val: bytes, urlsafe=False, encoding: str = "ascii") -> str:
    """Convert a byte string to base 64."""
    if urlsafe:
        return base64.urlsafe_b64encode(val).decode(encoding)
    return base64.b64encode(val).decode(encoding)


def bytes_to_b58(val: bytes) -> str:
    """Convert a byte string to base 58."""
    return base58.b58encode(val).decode("ascii")


def int_to_bytes32(val: int) -> bytes:
    """Encode a non-negative integer below 2^256 as 32 big-endian bytes."""
    return val.to_bytes(32, "big")


def bytes_to_int(val: bytes) -> int:
    """Decode big-endian bytes to an integer."""
    return int.from_bytes(val, "big")
