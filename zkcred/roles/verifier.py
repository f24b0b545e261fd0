"""Verifier: checks proofs and cross-checks their public signals."""

import logging
import time
from enum import Enum
from typing import Any, Mapping, NamedTuple, Optional, Sequence, Tuple

from ..backend.base import BaseProvingBackend, WholeProof
from ..compiler.circuit import Circuit
from ..compiler.signals import REVOCATION_ROOT, parse_public_signals
from ..config.base import BaseSettings
from ..config.settings import Settings
from ..core.error import CredentialError, PolicyRejected, ProofInvalid
from ..credential.primitive_types import create_type_from_spec
from ..crypto.signer import VerificationStack
from ..registry.base import BaseRegistry, RevocationRoot

LOGGER = logging.getLogger(__name__)


class PolicyReason(str, Enum):
    """Reasons a valid proof is rejected."""

    CONTEXT_MISMATCH = "CONTEXT_MISMATCH"
    ISSUER_MISMATCH = "ISSUER_MISMATCH"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    EXPIRED = "EXPIRED"
    KEY_INACTIVE = "KEY_INACTIVE"
    REVOCATION_ROOT_STALE = "REVOCATION_ROOT_STALE"


class VerifiedProof(NamedTuple):
    """Public signals of an accepted proof."""

    context: int
    type_id: int
    issuer_id: int
    key_id: int
    expiration_lb: int
    nullifier: int
    equal_check_id: int
    pseudonym: int
    revocation_root: Optional[int]
    outputs: Tuple[int, ...]

    @property
    def id_equals(self) -> bool:
        """Whether the credential id matched the requested equality check."""
        return bool(self.equal_check_id & 1)

    @property
    def id_checked_against(self) -> int:
        """The id value the equality check compared against."""
        return self.equal_check_id >> 1


def root_is_current(
    root: int, roots: Sequence[RevocationRoot], now: float, max_age: float
) -> bool:
    """
    Check a revocation root against an issuer's published roots, newest first.

    The newest root is always current. A superseded root stays acceptable
    while its successor was published less than `max_age` seconds ago.
    """
    successor = None
    for entry in roots:
        if entry.root == root and (
            successor is None or successor.published_at > now - max_age
        ):
            return True
        successor = entry
    return False


class Verifier:
    """Accepts or rejects proofs against verifier expectations and registries."""

    def __init__(
        self,
        backend: BaseProvingBackend,
        registry: BaseRegistry,
        settings: BaseSettings = None,
    ):
        """
        Initialize the verifier.

        Args:
            backend: The proving backend that checks proofs
            registry: Source of keys, types and revocation roots
            settings: Verifier settings

        """
        self.backend = backend
        self.registry = registry
        self.settings = settings or Settings.defaults()

    def _reject(self, reason: PolicyReason, message: str):
        LOGGER.warning("Proof rejected (%s): %s", reason.value, message)
        raise PolicyRejected(message, reason=reason)

    async def _circuit(self, type_id: int) -> Optional[Circuit]:
        spec = await self.registry.get_type(type_id)
        if not spec:
            return None
        try:
            return Circuit(create_type_from_spec(spec))
        except CredentialError as err:
            raise ProofInvalid(f"Registered type {type_id} is unusable") from err

    async def check(
        self,
        proof: WholeProof,
        expected_context: int,
        expected_issuer: int,
        expected_type: int,
        vkey: Mapping[str, Any] = None,
        revocable: bool = False,
        now: float = None,
    ) -> VerifiedProof:
        """
        Verify a proof and cross-check its public signals.

        Args:
            proof: The proof to check
            expected_context: The context the proof must be bound to
            expected_issuer: The issuer that must have signed the credential
            expected_type: The credential type
            vkey: Verifying key; fetched from the registry when omitted
            revocable: Whether the type is revocable, used when the type is
                not registered
            now: Current time in epoch seconds, the system clock by default

        Raises:
            ProofInvalid: If the proof does not verify or is malformed
            PolicyRejected: If a cross-check fails, with the reason attached

        """
        stack = VerificationStack.BABYZK
        if vkey is None:
            vkey = await self.registry.get_verifier(expected_type, stack)
            if vkey is None:
                raise ProofInvalid(f"No verifying key for type {expected_type}")

        if not await self.backend.verify(vkey, proof):
            raise ProofInvalid("Proof does not verify")

        circuit = await self._circuit(expected_type)
        if circuit:
            revocable = circuit.type.is_revocable

        version = self.settings.get_int("protocol.version", default=1)
        try:
            intrinsics = parse_public_signals(proof.public_signals, version, revocable)
        except CredentialError as err:
            raise ProofInvalid("Malformed public signals") from err

        if intrinsics["type"] != expected_type:
            self._reject(
                PolicyReason.TYPE_MISMATCH,
                f"Proof is for type {intrinsics['type']}, expected {expected_type}",
            )
        if circuit and not circuit.check_public_signals(proof.public_signals):
            raise ProofInvalid("Public signals do not fit the type's circuit")
        if intrinsics["context"] != expected_context:
            self._reject(
                PolicyReason.CONTEXT_MISMATCH,
                f"Proof is for context {intrinsics['context']}",
            )
        if intrinsics["issuer_id"] != expected_issuer:
            self._reject(
                PolicyReason.ISSUER_MISMATCH,
                f"Proof is from issuer {intrinsics['issuer_id']}",
            )

        now = time.time() if now is None else now
        skew = self.settings.get_float("verifier.clock_skew", default=0)
        if intrinsics["expiration_lb"] < now - skew:
            self._reject(
                PolicyReason.EXPIRED,
                f"Expiry lower bound {intrinsics['expiration_lb']} is in the past",
            )

        if not await self.registry.is_public_key_active_for_stack(
            intrinsics["issuer_id"], intrinsics["key_id"], stack
        ):
            self._reject(
                PolicyReason.KEY_INACTIVE,
                f"Key {intrinsics['key_id']} is not active",
            )

        root = intrinsics.get(REVOCATION_ROOT)
        if revocable:
            max_age = self.settings.get_float(
                "verifier.revocation_root_max_age", default=0
            )
            roots = await self.registry.get_revocation_roots(
                expected_type, expected_issuer
            )
            if not root_is_current(root, roots, now, max_age):
                self._reject(
                    PolicyReason.REVOCATION_ROOT_STALE,
                    f"Revocation root {root} is not current",
                )

        verified = VerifiedProof(
            context=intrinsics["context"],
            type_id=intrinsics["type"],
            issuer_id=intrinsics["issuer_id"],
            key_id=intrinsics["key_id"],
            expiration_lb=intrinsics["expiration_lb"],
            nullifier=intrinsics["nullifier"],
            equal_check_id=intrinsics["equal_check_id"],
            pseudonym=intrinsics["pseudonym"],
            revocation_root=root,
            outputs=tuple(proof.public_signals[len(intrinsics) :]),
        )
        LOGGER.info(
            "Accepted proof for type %s from issuer %s in context %s",
            verified.type_id,
            verified.issuer_id,
            verified.context,
        )
        return verified
