"""Credential data model, hashing and marshaling."""

import json
import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence

from marshmallow import EXCLUDE, fields, validate

from ..core.error import (
    AlreadySigned,
    CredentialError,
    CredentialImmutable,
    InvalidCredential,
    RangeError,
    UnknownClaim,
)
from ..crypto.field import field_hash
from ..crypto.hash import hash_str, solidity_keccak160
from ..crypto.signer import VerificationStack, compute_key_id, verify_digest
from ..models.base import BaseModel, BaseModelError, BaseModelSchema
from ..models.valid import MAX_UINT256, Base64Bytes, BigIntStr
from .claim_value import (
    ClaimValue,
    check_value_type,
    decode,
    encode,
    to_field_elements,
)
from .cred_type import CredentialType

LOGGER = logging.getLogger(__name__)

CURRENT_VERSION = 1


def compute_context_id(context: str) -> int:
    """Registry id of a context string: the low 160 bits of its keccak256."""
    return solidity_keccak160(["string"], [context])


def _check_uint256(value, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RangeError(f"{what} must be an integer")
    if value < 0 or value > MAX_UINT256:
        raise RangeError(f"{what} does not fit in 256 bits: {value}")
    return value


class CredentialHeader(BaseModel):
    """Version, type, context and subject of a credential."""

    class Meta:
        """CredentialHeader metadata."""

        schema_class = "CredentialHeaderSchema"

    def __init__(self, *, version: int, type: int, context: int, id: int):
        """Initialize the header."""
        super().__init__()
        self.version = version
        self.type = type
        self.context = context
        self.id = id

    def as_list(self) -> List[int]:
        """Header fields in hashing order."""
        return [self.version, self.type, self.context, self.id]


class CredentialHeaderSchema(BaseModelSchema):
    """CredentialHeader schema."""

    class Meta:
        """CredentialHeaderSchema metadata."""

        model_class = CredentialHeader
        unknown = EXCLUDE

    version = BigIntStr(required=True)
    type = BigIntStr(required=True)
    context = BigIntStr(required=True)
    id = BigIntStr(required=True)


class SignatureMetadata(BaseModel):
    """What an issuer binds into a signature besides the credential itself."""

    class Meta:
        """SignatureMetadata metadata."""

        schema_class = "SignatureMetadataSchema"

    def __init__(
        self,
        *,
        verification_stack: int,
        signature_id: int,
        expired_at: int,
        identity_commitment: int,
        issuer_id: int,
        chain_id: int,
        public_key: bytes,
    ):
        """Initialize the signature metadata."""
        super().__init__()
        self.verification_stack = verification_stack
        self.signature_id = signature_id
        self.expired_at = expired_at
        self.identity_commitment = identity_commitment
        self.issuer_id = issuer_id
        self.chain_id = chain_id
        self.public_key = public_key

    @property
    def key_id(self) -> int:
        """Accessor for the id of the signing key."""
        return compute_key_id(self.public_key)


class SignatureMetadataSchema(BaseModelSchema):
    """SignatureMetadata schema."""

    class Meta:
        """SignatureMetadataSchema metadata."""

        model_class = SignatureMetadata
        unknown = EXCLUDE

    verification_stack = fields.Int(
        required=True,
        validate=validate.OneOf([int(s) for s in VerificationStack]),
    )
    signature_id = BigIntStr(required=True)
    expired_at = BigIntStr(required=True)
    identity_commitment = BigIntStr(required=True)
    issuer_id = BigIntStr(required=True)
    chain_id = BigIntStr(required=True)
    public_key = Base64Bytes(required=True)


class Signature(BaseModel):
    """An issuer signature over a credential, and over its attachments if any."""

    class Meta:
        """Signature metadata."""

        schema_class = "SignatureSchema"

    def __init__(
        self,
        *,
        metadata: SignatureMetadata,
        signature: bytes,
        attachments_signature: Optional[bytes] = None,
    ):
        """Initialize the signature."""
        super().__init__()
        self.metadata = metadata
        self.signature = signature
        self.attachments_signature = attachments_signature


class SignatureSchema(BaseModelSchema):
    """Signature schema."""

    class Meta:
        """SignatureSchema metadata."""

        model_class = Signature
        unknown = EXCLUDE

    metadata = fields.Nested(SignatureMetadataSchema(), required=True)
    signature = Base64Bytes(required=True)
    attachments_signature = Base64Bytes(required=False, allow_none=True)


class CredentialBody:
    """The typed claim values of a credential, paired 1:1 with its type's claims."""

    def __init__(self, cred_type: CredentialType, values: Sequence[ClaimValue]):
        """
        Initialize the body.

        Raises:
            InvalidCredential: If the value count differs from the claim count
            TypeMismatch: If a value does not match its claim's type

        """
        values = tuple(values)
        if len(values) != len(cred_type.claims):
            raise InvalidCredential(
                f"Field count mismatch: {len(cred_type.claims)} != {len(values)}"
            )
        for claim, value in zip(cred_type.claims, values):
            check_value_type(claim, value)
        self.type = cred_type
        self.values = values

    def value_of(self, name: str) -> ClaimValue:
        """Fetch a claim's value by name."""
        return self.values[self.type.index_of(name)]

    def field_elements(self) -> List[int]:
        """All values flattened to field elements, in claim order."""
        flat = []
        for value in self.values:
            flat.extend(to_field_elements(value))
        return flat

    def marshal(self) -> Dict[str, object]:
        """Claim name to marshaled value, in claim order."""
        return {
            claim.name: decode(claim, value)
            for claim, value in zip(self.type.claims, self.values)
        }

    @classmethod
    def unmarshal(
        cls, cred_type: CredentialType, obj: Mapping[str, object]
    ) -> "CredentialBody":
        """
        Rebuild a body from its marshaled form.

        Raises:
            InvalidCredential: On missing, extra or invalid claim values

        """
        if not isinstance(obj, Mapping):
            raise InvalidCredential("Credential body must be an object")
        extra = set(obj) - set(cred_type.claim_names)
        if extra:
            raise InvalidCredential(f"Unknown claims in body: {sorted(extra)}")
        values = []
        for claim in cred_type.claims:
            if claim.name not in obj:
                raise InvalidCredential(f"Claim {claim.name} is missing")
            try:
                values.append(encode(claim, obj[claim.name]))
            except CredentialError as err:
                raise InvalidCredential(f"Invalid value for claim {claim.name}") from err
        return cls(cred_type, values)


def signed_metadata_fields(metadata: SignatureMetadata) -> List[int]:
    """The metadata fields covered by the signature, in hashing order."""
    return [
        int(metadata.verification_stack),
        metadata.signature_id,
        metadata.expired_at,
        metadata.identity_commitment,
    ]


def compute_digest(
    header_fields: Sequence[int],
    metadata_fields: Sequence[int],
    body_fields: Sequence[int],
) -> int:
    """
    Compute the digest an issuer signs.

    `H(H(header, metadata), H(body))`, where an empty body hashes to 0.
    """
    metadata_hash = field_hash(list(header_fields) + list(metadata_fields))
    body_hash = field_hash(list(body_fields)) if body_fields else 0
    return field_hash([metadata_hash, body_hash])


def sorted_json(obj: Mapping[str, str]) -> str:
    """Canonical JSON of a mapping: sorted keys, no whitespace."""
    return json.dumps(dict(obj), sort_keys=True, separators=(",", ":"))


class Credential:
    """
    A typed, signable credential.

    Created unsigned from a type, a context, a subject and raw claim inputs.
    Attachments may be added until the issuer signs; the credential is
    immutable afterwards.
    """

    def __init__(
        self,
        header: CredentialHeader,
        body: CredentialBody,
        attachments: Mapping[str, str] = None,
        signature: Optional[Signature] = None,
    ):
        """Initialize the credential."""
        if header.type != body.type.type_id:
            raise InvalidCredential(
                f"Type mismatch: {header.type} != {body.type.type_id}"
            )
        self.header = header
        self.body = body
        self._attachments = dict(attachments or {})
        self._signature = signature

    @classmethod
    def create(
        cls,
        cred_type: CredentialType,
        context_id: int,
        subject_id: int,
        raw_inputs: Mapping[str, object],
    ) -> "Credential":
        """
        Create an unsigned credential.

        Args:
            cred_type: The credential type
            context_id: The context the credential is issued for
            subject_id: The subject's id under that context
            raw_inputs: Claim name to raw input, encoded per claim type

        Raises:
            UnknownClaim: If an input names no claim or a claim has no input

        """
        _check_uint256(context_id, "Context id")
        _check_uint256(subject_id, "Subject id")
        unknown = set(raw_inputs) - set(cred_type.claim_names)
        if unknown:
            raise UnknownClaim(f"Unknown claims: {sorted(unknown)}")
        values = []
        for claim in cred_type.claims:
            if claim.name not in raw_inputs:
                raise UnknownClaim(f"Missing value for claim {claim.name}")
            values.append(encode(claim, raw_inputs[claim.name]))
        header = CredentialHeader(
            version=CURRENT_VERSION,
            type=cred_type.type_id,
            context=context_id,
            id=subject_id,
        )
        return cls(header, CredentialBody(cred_type, values))

    @property
    def type(self) -> CredentialType:
        """Accessor for the credential type."""
        return self.body.type

    @property
    def attachments(self) -> Mapping[str, str]:
        """Accessor for a read-only view of the attachments."""
        return MappingProxyType(self._attachments)

    @property
    def signature(self) -> Optional[Signature]:
        """Accessor for the issuer signature, if signed."""
        return self._signature

    @property
    def is_signed(self) -> bool:
        """Check whether the credential carries a signature."""
        return self._signature is not None

    def attach(self, key: str, value: str):
        """
        Add an attachment.

        Raises:
            CredentialImmutable: If the credential is already signed

        """
        if self.is_signed:
            raise CredentialImmutable("Cannot attach to a signed credential")
        if not isinstance(key, str) or not isinstance(value, str):
            raise InvalidCredential("Attachment keys and values must be strings")
        self._attachments[key] = value

    def digest(self, metadata: SignatureMetadata) -> int:
        """The field digest an issuer signs under `metadata`."""
        return compute_digest(
            self.header.as_list(),
            signed_metadata_fields(metadata),
            self.body.field_elements(),
        )

    def attachments_digest(self) -> Optional[int]:
        """The field digest of the attachments, None if there are none."""
        if not self._attachments:
            return None
        return hash_str(sorted_json(self._attachments))

    def add_signature(self, signature: Signature):
        """
        Record the issuer signature.

        Raises:
            AlreadySigned: If a signature is already present

        """
        if self.is_signed:
            raise AlreadySigned("Credential is already signed")
        self._signature = signature

    def verify_signature(self, include_attachments: bool = True) -> bool:
        """Check the signature, and the attachments signature when present."""
        sig = self._signature
        if not sig:
            return False
        public_key = sig.metadata.public_key
        if include_attachments and self._attachments:
            if not sig.attachments_signature:
                return False
            if not verify_digest(
                self.attachments_digest(), sig.attachments_signature, public_key
            ):
                return False
        return verify_digest(self.digest(sig.metadata), sig.signature, public_key)

    def serialize(self) -> Dict[str, object]:
        """Create the JSON-compatible dict of the credential."""
        result = {
            "header": self.header.serialize(),
            "body": self.body.marshal(),
        }
        if self._signature:
            result["signature"] = self._signature.serialize()
        if self._attachments:
            result["attachments"] = dict(sorted(self._attachments.items()))
        return result

    def marshal(self, indent: Optional[int] = None) -> str:
        """Serialize to JSON with a fixed field order."""
        return json.dumps(self.serialize(), indent=indent)

    @classmethod
    def unmarshal(cls, cred_type: CredentialType, text: str) -> "Credential":
        """
        Parse a marshaled credential of a known type.

        Raises:
            InvalidCredential: If the document is malformed or of another type

        """
        try:
            raw = json.loads(text)
        except ValueError as err:
            raise InvalidCredential("Failed to parse credential JSON") from err
        if not isinstance(raw, Mapping) or "header" not in raw or "body" not in raw:
            raise InvalidCredential("Credential header or body is missing")

        try:
            header = CredentialHeader.deserialize(raw["header"])
            signature = Signature.deserialize(raw.get("signature"), none2none=True)
        except BaseModelError as err:
            raise InvalidCredential("Invalid credential header or signature") from err
        if header.type != cred_type.type_id:
            raise InvalidCredential(
                f"Type mismatch: {header.type} != {cred_type.type_id}"
            )

        attachments = raw.get("attachments") or {}
        if not isinstance(attachments, Mapping) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in attachments.items()
        ):
            raise InvalidCredential("Attachments must map strings to strings")

        body = CredentialBody.unmarshal(cred_type, raw["body"])
        return cls(header, body, attachments, signature)

    def __eq__(self, other) -> bool:
        """Compare credentials by their marshaled form."""
        if not isinstance(other, Credential):
            return NotImplemented
        return self.body.type == other.body.type and self.marshal() == other.marshal()

    __hash__ = None

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return (
            f"<{self.__class__.__name__}(type={self.header.type}, "
            f"context={self.header.context}, id={self.header.id}, "
            f"signed={self.is_signed})>"
        )
