"""Compile a signed credential and disclosure statements into proof signals."""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.error import (
    DuplicateStatement,
    InvalidCredential,
    MissingRevocationProof,
    NotSigned,
    TypeMismatch,
)
from ..credential.claim_type import claim_types_equal
from ..credential.claim_value import ClaimValue, to_field_elements
from ..credential.credential import Credential
from ..credential.statement import (
    STATEMENT_CLASSES,
    PropStatement,
    ProofOptions,
    ScalarStatement,
    compress_equality,
    hiding_statement,
)
from ..crypto.field import ensure_prepared, field_hash
from ..crypto.identity import IdentitySlice, compute_nullifier
from ..crypto.smt import FNC_EXCLUSION, SMTProof
from ..utils.encoding import bytes_to_int

LOGGER = logging.getLogger(__name__)

REVOCATION_ROOT = "revocation_root"

# Intrinsic public signals by credential version. Positions are part of the
# protocol: changing one requires a new version.
PUBLIC_SIGNAL_LAYOUT: Dict[int, Tuple[str, ...]] = {
    1: (
        "context",
        "type",
        "issuer_id",
        "key_id",
        "expiration_lb",
        "nullifier",
        "equal_check_id",
        "pseudonym",
    ),
}


def intrinsic_names(version: int, revocable: bool) -> Tuple[str, ...]:
    """
    Names of the intrinsic public signals of a credential version.

    Raises:
        InvalidCredential: For an unknown version

    """
    if version not in PUBLIC_SIGNAL_LAYOUT:
        raise InvalidCredential(f"Unsupported credential version {version}")
    names = PUBLIC_SIGNAL_LAYOUT[version]
    return names + (REVOCATION_ROOT,) if revocable else names


def statement_output_names(statement) -> List[str]:
    """Names of a statement's public signals."""
    name = statement.claim
    if isinstance(statement, ScalarStatement):
        return [f"out_{name}_lb", f"out_{name}_ub"]
    if isinstance(statement, PropStatement):
        return [f"out_{name}_eq{i}" for i in range(len(statement.equals_to))]
    return [f"out_{name}"]


class SignalPlan:
    """
    Public and private signals of one proof.

    Public signals are ordered: intrinsic signals, then each statement's
    outputs in claim order. Private signals are keyed by circuit input name.
    """

    def __init__(
        self,
        *,
        version: int,
        type_id: int,
        revocable: bool,
        public_names: Sequence[str],
        public: Sequence[int],
        private: Mapping[str, object],
        statements: Sequence,
        values: Sequence[ClaimValue],
    ):
        """Initialize the plan."""
        self.version = version
        self.type_id = type_id
        self.revocable = revocable
        self.public_names = tuple(public_names)
        self.public = tuple(public)
        self.private = dict(private)
        self.statements = tuple(statements)
        self.values = tuple(values)

    def intrinsic(self, name: str) -> int:
        """Read a named intrinsic public signal."""
        names = intrinsic_names(self.version, self.revocable)
        if name not in names:
            raise KeyError(name)
        return self.public[names.index(name)]

    def public_signal(self, name: str) -> int:
        """Read any public signal by name."""
        return self.public[self.public_names.index(name)]

    def __repr__(self) -> str:
        """Format without exposing private signals."""
        return (
            f"<{self.__class__.__name__}(type_id={self.type_id}, "
            f"public={len(self.public)}, private={len(self.private)})>"
        )


def parse_public_signals(
    signals: Sequence[int], version: int = 1, revocable: bool = False
) -> Dict[str, int]:
    """
    Decode the intrinsic signals at the head of a public signal vector.

    Raises:
        InvalidCredential: If the vector is too short for the layout

    """
    names = intrinsic_names(version, revocable)
    if len(signals) < len(names):
        raise InvalidCredential(
            f"Expected at least {len(names)} public signals, got {len(signals)}"
        )
    return {name: int(signals[i]) for i, name in enumerate(names)}


def _resolve_statements(credential: Credential, statements: Sequence) -> List:
    cred_type = credential.type
    by_claim = {}
    for statement in statements:
        if not isinstance(statement, STATEMENT_CLASSES):
            raise TypeMismatch(f"Not a statement: {statement!r}")
        claim = cred_type.claim(statement.claim)
        if statement.claim in by_claim:
            raise DuplicateStatement(f"Duplicate statement for {statement.claim}")
        if not claim_types_equal(statement.type, claim.type):
            raise TypeMismatch(
                f"Statement type {statement.type} does not match {claim}"
            )
        statement.validate()
        by_claim[statement.claim] = statement
    return [by_claim.get(c.name) or hiding_statement(c) for c in cred_type.claims]


def _check_revocation_proof(
    credential: Credential,
    revocation_proof: Optional[SMTProof],
    current_root: Optional[int],
) -> SMTProof:
    sig_id = credential.signature.metadata.signature_id
    if revocation_proof is None:
        raise MissingRevocationProof(
            "A revocable credential requires an unrevoked proof"
        )
    if revocation_proof.key != sig_id:
        raise MissingRevocationProof(
            f"Revocation proof is for {revocation_proof.key}, not {sig_id}"
        )
    if revocation_proof.fnc != FNC_EXCLUSION:
        raise MissingRevocationProof("Revocation proof is not a non-membership proof")
    if revocation_proof.height != credential.type.revocable:
        raise MissingRevocationProof(
            f"Revocation proof height {revocation_proof.height} does not match "
            f"tree height {credential.type.revocable}"
        )
    if current_root is None:
        raise MissingRevocationProof("The current revocation root is required")
    if revocation_proof.root != current_root:
        raise MissingRevocationProof(
            f"Revocation proof is for root {revocation_proof.root}, "
            f"the tree is at {current_root}"
        )
    return revocation_proof


def compile_signals(
    credential: Credential,
    statements: Sequence,
    options: ProofOptions,
    identity: IdentitySlice,
    revocation_proof: Optional[SMTProof] = None,
    current_root: Optional[int] = None,
) -> SignalPlan:
    """
    Lay out the signals proving `statements` about a signed credential.

    Claims without a statement are hidden. Predicates are not evaluated here;
    a false one fails in the proving backend.

    Args:
        credential: The signed credential
        statements: At most one statement per claim
        options: Proof-wide options
        identity: The identity slice the credential was issued to
        revocation_proof: Non-membership proof of the signature id, required
            for revocable types
        current_root: Root of the issuer's revocation tree the proof must
            have been taken at, required for revocable types

    Raises:
        NotSigned: If the credential carries no signature
        UnknownClaim: If a statement names no claim of the credential type
        TypeMismatch: If a statement type differs from its claim type
        RangeError: If a bound or option does not fit its width
        MissingRevocationProof: If a revocable credential lacks a matching proof

    """
    ensure_prepared()
    if not credential.is_signed:
        raise NotSigned("Cannot prove an unsigned credential")
    cred_type = credential.type
    header = credential.header
    sig = credential.signature
    metadata = sig.metadata
    revocable = cred_type.is_revocable
    names = intrinsic_names(header.version, revocable)

    options.validate()
    resolved = _resolve_statements(credential, statements)
    smt_proof = (
        _check_revocation_proof(credential, revocation_proof, current_root)
        if revocable
        else None
    )

    nullifier = compute_nullifier(
        identity.internal_nullifier, options.external_nullifier
    )
    intrinsics = {
        "context": header.context,
        "type": header.type,
        "issuer_id": metadata.issuer_id,
        "key_id": metadata.key_id,
        "expiration_lb": options.expired_at_lower_bound,
        "nullifier": nullifier,
        "equal_check_id": compress_equality(header.id, options.equal_check_id),
        "pseudonym": options.pseudonym,
    }
    if revocable:
        intrinsics[REVOCATION_ROOT] = smt_proof.root

    public_names = list(names)
    public = [intrinsics[name] for name in names]
    for statement, value in zip(resolved, credential.body.values):
        public_names.extend(statement_output_names(statement))
        public.extend(statement.outputs(value))

    private: Dict[str, object] = {
        "version": header.version,
        "type": header.type,
        "context": header.context,
        "id": header.id,
        "sig_verification_stack": int(metadata.verification_stack),
        "sig_id": metadata.signature_id,
        "sig_expired_at": metadata.expired_at,
        "sig_identity_commitment": metadata.identity_commitment,
        "sig_issuer_id": metadata.issuer_id,
        "sig_chain_id": metadata.chain_id,
        "sig_pubkey": bytes_to_int(metadata.public_key),
        "sig_signature": bytes_to_int(sig.signature),
        "identity_secret": identity.identity_secret,
        "internal_nullifier": identity.internal_nullifier,
        "external_nullifier": options.external_nullifier,
        "expiration_lb": options.expired_at_lower_bound,
        "id_equals_to": options.equal_check_id,
        "revealing_identity": options.pseudonym,
        "revealing_identity_hmac": field_hash(
            [
                identity.identity_secret,
                options.external_nullifier,
                options.pseudonym,
            ]
        ),
    }
    for claim, value, statement in zip(cred_type.claims, credential.body.values, resolved):
        (private[claim.name],) = to_field_elements(value)
        private.update(statement.operation_signals())
    if smt_proof:
        private.update(smt_proof.to_circuit_input())

    LOGGER.debug(
        "Compiled %d public and %d private signals for type %s",
        len(public),
        len(private),
        cred_type.type_id,
    )
    return SignalPlan(
        version=header.version,
        type_id=cred_type.type_id,
        revocable=revocable,
        public_names=public_names,
        public=public,
        private=private,
        statements=resolved,
        values=credential.body.values,
    )
