"""Reference proving backend evaluating signal plans in the clear."""

import json
import logging
from typing import Any, Mapping

from ..compiler.signals import parse_public_signals
from ..core.error import InvalidCredential, ProofGenerationFailed
from ..credential.claim_value import to_field_elements
from ..credential.credential import compute_digest
from ..crypto.field import field_hash
from ..crypto.identity import compute_nullifier, gen_identity_commitment
from ..crypto.signer import Ed25519Signer, compute_key_id, verify_digest
from ..crypto.smt import FNC_EXCLUSION, SMTProof, verify_smt_proof
from ..utils.encoding import b64_to_bytes, bytes_to_b64
from .base import (
    BaseCircuitCompiler,
    BaseProvingBackend,
    CompiledCircuit,
    ProofGadgets,
    WholeProof,
)

LOGGER = logging.getLogger(__name__)

PROTOCOL = "in_memory"


def _int_bytes(value: int, length: int) -> bytes:
    try:
        return value.to_bytes(length, "big")
    except OverflowError as err:
        raise ProofGenerationFailed(f"Value does not fit in {length} bytes") from err


class InMemoryProvingBackend(BaseProvingBackend):
    """
    Checks every constraint of a signal plan directly, then attests to its
    public signals with an ed25519 key.

    Proofs carry no zero knowledge; this backend is for tests and tooling.
    """

    def __init__(self, signer: Ed25519Signer = None):
        """Initialize the backend with its attestation key."""
        self._signer = signer or Ed25519Signer.generate()

    def verifying_key(self, type_id: int = None) -> dict:
        """The verifying key of proofs from this backend."""
        vkey = {
            "protocol": PROTOCOL,
            "public_key": bytes_to_b64(self._signer.public_key),
        }
        if type_id is not None:
            vkey["type_id"] = str(type_id)
        return vkey

    @staticmethod
    def _public_digest(public_signals) -> int:
        return field_hash([len(public_signals)] + [int(s) for s in public_signals])

    def _check(self, plan):
        private = plan.private

        for name, private_name in (
            ("context", "context"),
            ("type", "type"),
            ("issuer_id", "sig_issuer_id"),
        ):
            if plan.intrinsic(name) != private[private_name]:
                raise ProofGenerationFailed(f"Public {name} does not match the credential")

        for statement, value in zip(plan.statements, plan.values):
            if not statement.holds(value):
                raise ProofGenerationFailed(f"Statement is false: {statement!r}")

        if private["sig_expired_at"] < plan.intrinsic("expiration_lb"):
            raise ProofGenerationFailed("Signature expires before the proven bound")

        commitment = gen_identity_commitment(
            private["identity_secret"], private["internal_nullifier"]
        )
        if commitment != private["sig_identity_commitment"]:
            raise ProofGenerationFailed("Identity does not match the credential")

        public_key = _int_bytes(private["sig_pubkey"], 32)
        signature = _int_bytes(private["sig_signature"], 64)
        digest = compute_digest(
            [private[name] for name in ("version", "type", "context", "id")],
            [
                private[name]
                for name in (
                    "sig_verification_stack",
                    "sig_id",
                    "sig_expired_at",
                    "sig_identity_commitment",
                )
            ],
            [e for value in plan.values for e in to_field_elements(value)],
        )
        if not verify_digest(digest, signature, public_key):
            raise ProofGenerationFailed("Invalid issuer signature")
        if compute_key_id(public_key) != plan.intrinsic("key_id"):
            raise ProofGenerationFailed("Key id does not match the signing key")

        nullifier = compute_nullifier(
            private["internal_nullifier"], private["external_nullifier"]
        )
        if nullifier != plan.intrinsic("nullifier"):
            raise ProofGenerationFailed("Nullifier mismatch")

        hmac = field_hash(
            [
                private["identity_secret"],
                private["external_nullifier"],
                private["revealing_identity"],
            ]
        )
        if hmac != private["revealing_identity_hmac"]:
            raise ProofGenerationFailed("Revealed identity is not authenticated")

        if plan.revocable:
            proof = SMTProof(
                root=private["sig_revocation_smt_root"],
                old_key=private["sig_revocation_smt_old_key"],
                old_value=private["sig_revocation_smt_old_value"],
                is_old0=bool(private["sig_revocation_smt_is_old0"]),
                key=private["sig_id"],
                value=private["sig_revocation_smt_value"],
                fnc=FNC_EXCLUSION,
                siblings=private["sig_revocation_smt_siblings"],
            )
            if not verify_smt_proof(proof):
                raise ProofGenerationFailed("Revocation proof does not verify")
            if proof.root != plan.intrinsic("revocation_root"):
                raise ProofGenerationFailed("Revocation root mismatch")

    def prove(self, plan, gadgets: ProofGadgets) -> WholeProof:
        """
        Evaluate the plan and attest to its public signals.

        Raises:
            ProofGenerationFailed: If any constraint does not hold

        """
        if gadgets.type_id != plan.type_id:
            raise ProofGenerationFailed(
                f"Gadgets are for type {gadgets.type_id}, not {plan.type_id}"
            )
        self._check(plan)
        digest = self._public_digest(plan.public)
        LOGGER.debug("Attesting %d public signals", len(plan.public))
        return WholeProof(
            proof={
                "protocol": PROTOCOL,
                "signature": bytes_to_b64(self._signer.sign(digest)),
            },
            public_signals=plan.public,
        )

    async def verify(self, vkey: Mapping[str, Any], proof: WholeProof) -> bool:
        """Check the attestation over a proof's public signals."""
        if vkey.get("protocol") != PROTOCOL or proof.proof.get("protocol") != PROTOCOL:
            return False
        try:
            public_key = b64_to_bytes(vkey["public_key"])
            signature = b64_to_bytes(proof.proof["signature"])
        except (KeyError, TypeError, ValueError):
            return False
        if "type_id" in vkey:
            try:
                intrinsics = parse_public_signals(proof.public_signals)
            except InvalidCredential:
                return False
            if str(intrinsics["type"]) != vkey["type_id"]:
                return False
        digest = self._public_digest(proof.public_signals)
        return verify_digest(digest, signature, public_key)


class InMemoryCircuitCompiler(BaseCircuitCompiler):
    """Compiles circuit descriptions against an in-memory backend."""

    def __init__(self, backend: InMemoryProvingBackend):
        """Initialize the compiler."""
        self.backend = backend

    async def compile(self, source: str) -> CompiledCircuit:
        """Count public signals as constraints and issue the backend's key."""
        description = json.loads(source)
        type_id = int(description["type_id"])
        return CompiledCircuit(
            constraint_count=len(description["public_signals"]),
            verifying_key=self.backend.verifying_key(type_id),
            proving_key_artifact=f"memory://{type_id}",
        )
