"""Holder identity slices and their commitments."""

from typing import Optional

import nacl.utils
from marshmallow import EXCLUDE, fields

from ..models.base import BaseModel, BaseModelSchema
from ..models.valid import BigIntStr
from .field import FIELD_MODULUS, field_hash


def random_field_element() -> int:
    """Draw a uniformly random nonzero field element."""
    while True:
        value = int.from_bytes(nacl.utils.random(32), "big") % FIELD_MODULUS
        if value:
            return value


def gen_identity_commitment(identity_secret: int, internal_nullifier: int) -> int:
    """Commit to an identity secret and internal nullifier."""
    return field_hash([identity_secret, internal_nullifier])


def compute_nullifier(internal_nullifier: int, external_nullifier: int) -> int:
    """Compute the per-event nullifier exposed by a proof."""
    return field_hash([internal_nullifier, external_nullifier])


class IdentitySlice(BaseModel):
    """
    One of a holder's identities.

    A holder keeps a separate slice per domain so that proofs made in one
    domain cannot be linked to another.
    """

    class Meta:
        """IdentitySlice metadata."""

        schema_class = "IdentitySliceSchema"
        repr_exclude = ["identity_secret", "internal_nullifier"]

    def __init__(
        self,
        *,
        identity_secret: int,
        internal_nullifier: int,
        domain: Optional[str] = None,
    ):
        """Initialize the identity slice."""
        super().__init__()
        self.identity_secret = identity_secret
        self.internal_nullifier = internal_nullifier
        self.domain = domain

    @classmethod
    def create(cls, domain: Optional[str] = None) -> "IdentitySlice":
        """Create a slice with fresh random secrets."""
        return cls(
            identity_secret=random_field_element(),
            internal_nullifier=random_field_element(),
            domain=domain,
        )

    @property
    def commitment(self) -> int:
        """Accessor for the identity commitment bound into credentials."""
        return gen_identity_commitment(self.identity_secret, self.internal_nullifier)


class IdentitySliceSchema(BaseModelSchema):
    """IdentitySlice schema."""

    class Meta:
        """IdentitySliceSchema metadata."""

        model_class = IdentitySlice
        unknown = EXCLUDE

    identity_secret = BigIntStr(required=True)
    internal_nullifier = BigIntStr(required=True)
    domain = fields.Str(required=False, allow_none=True)
