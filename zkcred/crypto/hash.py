"""String and byte hashing helpers."""

from typing import Sequence, Union

from web3 import Web3

from .field import field_hash

SPONGE_CHUNK_SIZE = 31
SPONGE_INPUTS = 16

MASK_160 = (1 << 160) - 1


def hash_bytes(msg: bytes, frame_size: int = SPONGE_INPUTS) -> int:
    """
    Hash a byte string into the field with a chunked sponge.

    The message is cut into 31-byte big-endian chunks which fill a frame of
    `frame_size` inputs. A full frame is hashed and its digest carried over as
    the first input of the next frame. A trailing partial chunk is right padded
    with zero bytes. Unused inputs are zero.

    Args:
        msg: The message to hash, must be non-empty
        frame_size: The number of hasher inputs per frame, 2 to 16

    Returns:
        The digest as a field element

    """
    if frame_size < 2 or frame_size > 16:
        raise ValueError(f"Incorrect frame size: {frame_size}")
    if not msg:
        raise ValueError("Cannot hash an empty message")

    inputs = [0] * frame_size
    dirty = False
    digest = None
    k = 0
    for i in range(len(msg) // SPONGE_CHUNK_SIZE):
        dirty = True
        chunk = msg[SPONGE_CHUNK_SIZE * i : SPONGE_CHUNK_SIZE * (i + 1)]
        inputs[k] = int.from_bytes(chunk, "big")
        if k == frame_size - 1:
            dirty = False
            digest = field_hash(inputs)
            inputs = [0] * frame_size
            inputs[0] = digest
            k = 1
        else:
            k += 1

    tail = len(msg) % SPONGE_CHUNK_SIZE
    if tail:
        chunk = msg[len(msg) - tail :].ljust(SPONGE_CHUNK_SIZE, b"\x00")
        inputs[k] = int.from_bytes(chunk, "big")
        dirty = True

    if dirty:
        digest = field_hash(inputs)
    return digest


def hash_str(msg: str) -> int:
    """Hash the UTF-8 encoding of a string into the field."""
    return hash_bytes(msg.encode("utf-8"))


def keccak256_int(data: Union[str, bytes]) -> int:
    """Keccak-256 of a string (UTF-8) or bytes, as an unsigned integer."""
    if isinstance(data, str):
        digest = Web3.keccak(text=data)
    else:
        digest = Web3.keccak(primitive=bytes(data))
    return int.from_bytes(digest, "big")


def solidity_keccak160(abi_types: Sequence[str], values: Sequence) -> int:
    """Low 160 bits of `keccak256(abi.encodePacked(values))`."""
    digest = Web3.solidity_keccak(list(abi_types), list(values))
    return int.from_bytes(digest, "big") & MASK_160
