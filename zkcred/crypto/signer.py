"""Ed25519 issuer keys signing credential digests."""

import logging
from enum import IntEnum
from typing import Tuple, Union

import nacl.bindings
import nacl.exceptions
import nacl.utils

from ..core.error import BaseError
from ..utils.encoding import b64_to_bytes, bytes_to_b58, int_to_bytes32
from .hash import hash_bytes

LOGGER = logging.getLogger(__name__)


class SignerError(BaseError):
    """Invalid key material."""


class VerificationStack(IntEnum):
    """Proof system a signature is produced for. Zero is not a valid stack."""

    BABYZK = 1


def random_seed() -> bytes:
    """Generate a random 32-byte seed."""
    return nacl.utils.random(nacl.bindings.crypto_sign_SEEDBYTES)


def validate_seed(seed: Union[str, bytes]) -> bytes:
    """
    Convert a seed parameter to bytes and check its length.

    Strings containing padding are read as base64, other strings as ASCII.
    """
    if isinstance(seed, str):
        if "=" in seed:
            seed = b64_to_bytes(seed)
        else:
            seed = seed.encode("ascii")
    if not isinstance(seed, bytes):
        raise SignerError("Seed value is not a string or bytes")
    if len(seed) != nacl.bindings.crypto_sign_SEEDBYTES:
        raise SignerError("Seed value must be 32 bytes in length")
    return seed


def create_ed25519_keypair(seed: bytes = None) -> Tuple[bytes, bytes]:
    """
    Create a public and private ed25519 keypair from a seed value.

    Returns:
        A tuple of (public key, secret key)

    """
    if not seed:
        seed = random_seed()
    return nacl.bindings.crypto_sign_seed_keypair(seed)


def digest_bytes(digest: int) -> bytes:
    """Encode a field digest as the 32-byte message that gets signed."""
    return int_to_bytes32(digest)


def compute_key_id(public_key: bytes) -> int:
    """Derive the registry key id of a public key as a field element."""
    return hash_bytes(public_key)


def verify_digest(digest: int, signature: bytes, public_key: bytes) -> bool:
    """
    Verify an ed25519 signature over a field digest.

    Returns:
        True if verified, else False

    """
    try:
        nacl.bindings.crypto_sign_open(signature + digest_bytes(digest), public_key)
    except (nacl.exceptions.BadSignatureError, nacl.exceptions.ValueError):
        return False
    return True


class Ed25519Signer:
    """An issuer signing key."""

    stack = VerificationStack.BABYZK

    def __init__(self, secret: bytes):
        """Initialize the signer from a 64-byte ed25519 secret key."""
        if len(secret) != nacl.bindings.crypto_sign_SECRETKEYBYTES:
            raise SignerError("Secret key must be 64 bytes in length")
        self._secret = secret

    @classmethod
    def generate(cls, seed: Union[str, bytes] = None) -> "Ed25519Signer":
        """Create a signer from a seed, or a random one."""
        _, secret = create_ed25519_keypair(validate_seed(seed) if seed else None)
        return cls(secret)

    @property
    def public_key(self) -> bytes:
        """Accessor for the raw public key."""
        return self._secret[nacl.bindings.crypto_sign_SEEDBYTES :]

    @property
    def verkey(self) -> str:
        """Accessor for the public key in base58."""
        return bytes_to_b58(self.public_key)

    @property
    def key_id(self) -> int:
        """Accessor for the key id registered for this key."""
        return compute_key_id(self.public_key)

    def sign(self, digest: int) -> bytes:
        """Sign a field digest."""
        signed = nacl.bindings.crypto_sign(digest_bytes(digest), self._secret)
        return signed[: nacl.bindings.crypto_sign_BYTES]

    def __repr__(self) -> str:
        """Format without exposing the secret key."""
        return f"<{self.__class__.__name__} verkey={self.verkey}>"
