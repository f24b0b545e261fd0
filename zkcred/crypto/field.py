"""Process-wide field hasher and its preparation lifecycle.

Everything that hashes into the proof system's scalar field goes through
`field_hash`. The hasher must be installed once with `prepare()` before any
credential, tree or proof operation; until then `NotPrepared` is raised.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from web3 import Web3

from ..core.error import NotPrepared

LOGGER = logging.getLogger(__name__)

# BN254 scalar field modulus
FIELD_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

MAX_UINT256 = (1 << 256) - 1


class FieldHasher(ABC):
    """Hash a sequence of field elements to one field element."""

    name: str = None

    @abstractmethod
    def hash(self, inputs: Sequence[int]) -> int:
        """Hash `inputs`, each in `[0, 2^256)`, to an element of the field."""

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return "<{}>".format(self.__class__.__name__)


class KeccakFieldHasher(FieldHasher):
    """Keccak-256 over 32-byte big-endian inputs, reduced modulo the field order."""

    name = "keccak"

    def hash(self, inputs: Sequence[int]) -> int:
        """Hash `inputs` to an element of the field."""
        if not inputs:
            raise ValueError("Cannot hash an empty input list")
        encoded = bytearray()
        for value in inputs:
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"Field hash input must be an int, got {value!r}")
            if value < 0 or value > MAX_UINT256:
                raise ValueError(f"Field hash input out of range: {value}")
            encoded += value.to_bytes(32, "big")
        digest = Web3.keccak(primitive=bytes(encoded))
        return int.from_bytes(digest, "big") % FIELD_MODULUS


class _FieldState:
    """Holder for the installed hasher."""

    def __init__(self):
        self.lock = threading.Lock()
        self.hasher: Optional[FieldHasher] = None


_STATE = _FieldState()


def prepare(hasher: FieldHasher = None) -> FieldHasher:
    """
    Install the process-wide field hasher.

    Calling again with the same hasher class is a no-op; installing a
    different hasher replaces the previous one.

    Args:
        hasher: The hasher to install, `KeccakFieldHasher` by default

    Returns:
        The installed hasher

    """
    with _STATE.lock:
        if hasher is None:
            if _STATE.hasher:
                return _STATE.hasher
            hasher = KeccakFieldHasher()
        if not isinstance(hasher, FieldHasher):
            raise TypeError(f"Expected a FieldHasher, got {hasher!r}")
        if _STATE.hasher is not hasher:
            LOGGER.debug("Installing field hasher %s", hasher)
        _STATE.hasher = hasher
        return hasher


def is_prepared() -> bool:
    """Check whether a field hasher has been installed."""
    return _STATE.hasher is not None


def reset():
    """Return to the uninitialized state."""
    with _STATE.lock:
        _STATE.hasher = None


def ensure_prepared() -> FieldHasher:
    """Fetch the installed hasher or raise `NotPrepared`."""
    hasher = _STATE.hasher
    if hasher is None:
        raise NotPrepared(
            "Cryptographic parameters are not prepared, call prepare() first"
        )
    return hasher


def field_hash(inputs: Sequence[int]) -> int:
    """Hash a sequence of integers with the installed field hasher."""
    return ensure_prepared().hash(list(inputs))


def in_field(value: int) -> bool:
    """Check that an integer is a canonical field element."""
    return isinstance(value, int) and 0 <= value < FIELD_MODULUS
