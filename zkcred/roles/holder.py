"""Holder: keeps identity slices and proves statements about credentials."""

import asyncio
import logging
from typing import Dict, Optional, Sequence

from ..backend.base import BaseProvingBackend, ProofGadgets, WholeProof
from ..compiler.signals import compile_signals
from ..config.base import BaseSettings
from ..config.settings import Settings
from ..core.error import NotSigned, UnknownIdentity
from ..credential.credential import Credential
from ..credential.statement import ProofOptions
from ..crypto.identity import IdentitySlice
from ..crypto.smt import RevocationTree, SMTProof

LOGGER = logging.getLogger(__name__)


class Holder:
    """
    Manages a holder's identities and generates proofs with them.

    Each identity slice is stored under its commitment. Credentials are
    never modified by proving.
    """

    def __init__(self, backend: BaseProvingBackend, settings: BaseSettings = None):
        """
        Initialize the holder.

        Args:
            backend: The proving backend
            settings: Holder settings

        """
        self.backend = backend
        self.settings = settings or Settings.defaults()
        self._slices: Dict[int, IdentitySlice] = {}

    @property
    def identity_slices(self) -> Dict[int, IdentitySlice]:
        """Accessor for the identity slices by commitment."""
        return dict(self._slices)

    def add_identity_slice(self, identity: IdentitySlice) -> int:
        """Store an identity slice and return its commitment."""
        commitment = identity.commitment
        self._slices[commitment] = identity
        return commitment

    def create_identity_slice(self, domain: str = None) -> IdentitySlice:
        """Create and store a fresh identity slice."""
        identity = IdentitySlice.create(domain)
        self.add_identity_slice(identity)
        LOGGER.debug("Created identity slice for domain %s", domain)
        return identity

    def get_identity_commitment(self, domain: str = None) -> int:
        """
        Get the commitment of the first slice, or the first for a domain.

        Raises:
            UnknownIdentity: If no slice matches

        """
        for commitment, identity in self._slices.items():
            if domain is None or identity.domain == domain:
                return commitment
        raise UnknownIdentity(
            "No identity slice found"
            + (f" for domain {domain}" if domain is not None else "")
        )

    def get_identity_slice(self, commitment: int) -> IdentitySlice:
        """
        Look up a slice by commitment.

        Raises:
            UnknownIdentity: If the commitment is not held

        """
        identity = self._slices.get(commitment)
        if not identity:
            raise UnknownIdentity(f"No identity slice for commitment {commitment}")
        return identity

    async def prove(
        self,
        identity_commitment: int,
        credential: Credential,
        options: ProofOptions,
        gadgets: ProofGadgets,
        statements: Sequence,
        revocation_proof: Optional[SMTProof] = None,
        timeout: float = None,
        revocation_root: Optional[int] = None,
    ) -> WholeProof:
        """
        Prove statements about a signed credential.

        The backend runs in the default executor; cancelling the call or
        exceeding the timeout abandons the proof.

        Args:
            identity_commitment: Commitment of the slice the credential is bound to
            credential: The signed credential
            options: Proof-wide options
            gadgets: Proving artifacts of the credential type
            statements: At most one statement per claim
            revocation_proof: Non-membership proof, for revocable types
            timeout: Seconds to wait, `holder.proof_timeout` by default
            revocation_root: Current root of the issuer's revocation tree, for
                revocable types

        Raises:
            UnknownIdentity: If the commitment is not held
            MissingRevocationProof: If the revocation proof is missing or was
                taken at another root
            ProofGenerationFailed: If the backend fails
            asyncio.TimeoutError: If the backend takes too long

        """
        identity = self.get_identity_slice(identity_commitment)
        plan = compile_signals(
            credential,
            statements,
            options,
            identity,
            revocation_proof,
            revocation_root,
        )
        if timeout is None:
            timeout = self.settings.get_float("holder.proof_timeout")

        LOGGER.debug("Proving %r", plan)
        loop = asyncio.get_running_loop()
        proof = await asyncio.wait_for(
            loop.run_in_executor(None, self.backend.prove, plan, gadgets), timeout
        )
        LOGGER.debug(
            "Proof generated with %d public signals", len(proof.public_signals)
        )
        return proof

    async def prove_with_tree(
        self,
        identity_commitment: int,
        credential: Credential,
        options: ProofOptions,
        gadgets: ProofGadgets,
        statements: Sequence,
        tree: RevocationTree,
        timeout: float = None,
    ) -> WholeProof:
        """
        Prove with a non-membership proof taken from a revocation tree.

        Raises:
            NotSigned: If the credential is not signed
            SignatureRevoked: If the signature id is in the tree

        """
        if not credential.is_signed:
            raise NotSigned("Cannot prove an unsigned credential")
        revocation_proof = tree.generate_unrevoked_proof(
            credential.signature.metadata.signature_id
        )
        return await self.prove(
            identity_commitment,
            credential,
            options,
            gadgets,
            statements,
            revocation_proof,
            timeout,
            revocation_proof.root,
        )

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return f"<{self.__class__.__name__}(slices={len(self._slices)})>"
