"""Issuer: signs credentials and maintains their revocation status."""

import logging

from ..core.error import AlreadySigned, InvalidSignatureID, RangeError
from ..credential.credential import Credential, Signature, SignatureMetadata
from ..crypto.field import ensure_prepared
from ..crypto.signer import Ed25519Signer
from ..crypto.smt import RevocationTree
from ..models.valid import MAX_UINT256

LOGGER = logging.getLogger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class Issuer:
    """
    Signs credentials under one issuer id and chain.

    Signature ids must be unique per issuer and type; the issuer keeps that
    bookkeeping, the revocation tree does not enforce it.
    """

    def __init__(self, signing_key: Ed25519Signer, issuer_id: int, chain_id: int):
        """
        Initialize the issuer.

        Args:
            signing_key: The issuer's signing key
            issuer_id: The registered issuer id
            chain_id: The chain the issuer's registries live on

        """
        self.signing_key = signing_key
        self.issuer_id = issuer_id
        self.chain_id = chain_id

    @property
    def key_id(self) -> int:
        """Accessor for the id of the signing key."""
        return self.signing_key.key_id

    def sign(
        self,
        credential: Credential,
        sig_id: int,
        expired_at: int,
        identity_commitment: int,
    ) -> Signature:
        """
        Sign a credential in place.

        The signature covers the header, the body and the signature metadata.
        Attachments, if any, are signed separately.

        Args:
            credential: The unsigned credential
            sig_id: The signature id, nonzero and unique for this issuer
            expired_at: Expiry of the signature in epoch seconds
            identity_commitment: The holder identity the credential is bound to

        Raises:
            AlreadySigned: If the credential is already signed
            InvalidSignatureID: If `sig_id` is not an integer or does not fit the
                type's revocation tree
            RangeError: If the expiry or identity commitment is not a 256-bit
                integer

        """
        ensure_prepared()
        if credential.is_signed:
            raise AlreadySigned("Credential is already signed")
        height = credential.type.revocable
        if not _is_int(sig_id) or sig_id < 1 or sig_id > MAX_UINT256:
            raise InvalidSignatureID(f"Invalid signature id {sig_id}")
        if height is not None and sig_id >= 1 << height:
            raise InvalidSignatureID(
                f"Signature id {sig_id} does not fit a tree of height {height}"
            )
        for name, value in (
            ("Expiry", expired_at),
            ("Identity commitment", identity_commitment),
        ):
            if not _is_int(value):
                raise RangeError(f"{name} must be an integer: {value!r}")
            if value < 0 or value > MAX_UINT256:
                raise RangeError(f"{name} does not fit in 256 bits: {value}")

        metadata = SignatureMetadata(
            verification_stack=int(self.signing_key.stack),
            signature_id=sig_id,
            expired_at=expired_at,
            identity_commitment=identity_commitment,
            issuer_id=self.issuer_id,
            chain_id=self.chain_id,
            public_key=self.signing_key.public_key,
        )
        attachments_digest = credential.attachments_digest()
        signature = Signature(
            metadata=metadata,
            signature=self.signing_key.sign(credential.digest(metadata)),
            attachments_signature=(
                self.signing_key.sign(attachments_digest)
                if attachments_digest is not None
                else None
            ),
        )
        credential.add_signature(signature)
        LOGGER.info(
            "Issuer %s (key %s) signed credential of type %s with signature id %s",
            self.issuer_id,
            self.signing_key.verkey,
            credential.type.type_id,
            sig_id,
        )
        return signature

    def revoke(self, tree: RevocationTree, sig_id: int) -> int:
        """
        Revoke a signature id.

        Returns:
            The new tree root, to be published

        """
        tree.add(sig_id)
        root = tree.root()
        LOGGER.info("Issuer %s revoked signature %s", self.issuer_id, sig_id)
        return root

    def unrevoke(self, tree: RevocationTree, sig_id: int) -> int:
        """
        Lift the revocation of a signature id.

        Returns:
            The new tree root, to be published

        """
        tree.delete(sig_id)
        root = tree.root()
        LOGGER.info("Issuer %s unrevoked signature %s", self.issuer_id, sig_id)
        return root

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return (
            f"<{self.__class__.__name__}(issuer_id={self.issuer_id}, "
            f"chain_id={self.chain_id}, key_id={self.key_id})>"
        )
