"""Issuance request/response encoding of credential headers and bodies."""

import json
from typing import Mapping, Optional

from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, validate

from ..core.error import CredentialError, InvalidCredential
from ..models.base import BaseModelError
from ..models.valid import CLAIM_NAME, BigIntStr
from .claim_type import (
    MAX_EQUAL_CHECKS,
    BoolType,
    ClaimDef,
    ClaimKind,
    PropHash,
    PropType,
    ScalarType,
    is_valid_claim_name,
)
from .credential import Credential, CredentialBody, CredentialHeader
from .cred_type import (
    MAX_REVOCABLE_TREE_DEPTH,
    MIN_REVOCABLE_TREE_DEPTH,
    CredentialType,
)
from .claim_value import decode, encode


class ClaimDefSchema(Schema):
    """A claim definition tagged with its kind."""

    class Meta:
        """ClaimDefSchema metadata."""

        ordered = True
        unknown = EXCLUDE

    name = fields.Str(required=True, **CLAIM_NAME)
    kind = fields.Str(
        required=True, validate=validate.OneOf([k.value for k in ClaimKind])
    )
    width = fields.Int(required=False)
    hash_algorithm = fields.Str(
        required=False, validate=validate.OneOf([h.value for h in PropHash])
    )
    equal_check_count = fields.Int(
        required=False, validate=validate.Range(min=1, max=MAX_EQUAL_CHECKS)
    )

    @post_load
    def make_claim_def(self, data: dict, **kwargs) -> ClaimDef:
        """Build the typed claim definition."""
        if not is_valid_claim_name(data["name"]):
            raise ValidationError(f"Invalid claim name: {data['name']}", "name")
        kind = ClaimKind(data["kind"])
        try:
            if kind is ClaimKind.BOOLEAN:
                claim_type = BoolType()
            elif kind is ClaimKind.SCALAR:
                claim_type = ScalarType.create(data.get("width"))
            else:
                claim_type = PropType.create(
                    data.get("width"),
                    PropHash(data.get("hash_algorithm", PropHash.CUSTOM.value)),
                    data.get("equal_check_count", 1),
                )
        except CredentialError as err:
            raise ValidationError(err.message, "kind") from err
        return ClaimDef(data["name"], claim_type)


def dump_claim_def(claim: ClaimDef) -> dict:
    """Render a claim definition in its tagged form."""
    tp = claim.type
    result = {"name": claim.name, "kind": tp.kind.value}
    if isinstance(tp, ScalarType):
        result["width"] = tp.width
    elif isinstance(tp, PropType):
        result["width"] = tp.width
        result["hash_algorithm"] = tp.hash_algorithm.value
        result["equal_check_count"] = tp.equal_check_count
    return result


class CredentialTypeSchema(Schema):
    """Type section of an issuance body."""

    class Meta:
        """CredentialTypeSchema metadata."""

        ordered = True
        unknown = EXCLUDE

    type_id = BigIntStr(required=True, data_key="typeID")
    revocable = fields.Int(
        required=False,
        allow_none=True,
        validate=validate.Range(min=0, max=MAX_REVOCABLE_TREE_DEPTH),
    )
    claims = fields.List(fields.Nested(ClaimDefSchema()), required=True)

    @post_load
    def make_cred_type(self, data: dict, **kwargs) -> CredentialType:
        """Build the credential type."""
        revocable = data.get("revocable") or None
        if revocable is not None and revocable < MIN_REVOCABLE_TREE_DEPTH:
            raise ValidationError(f"Revocable tree too small: {revocable}", "revocable")
        try:
            return CredentialType(data["claims"], revocable, data["type_id"])
        except CredentialError as err:
            raise ValidationError(err.message, "claims") from err


def marshal_issuance_obj(credential: Credential) -> dict:
    """The issuance encoding of a credential's header and body as a dict."""
    body = credential.body
    return {
        "header": credential.header.serialize(),
        "body": {
            "type": {
                "typeID": str(body.type.type_id),
                "revocable": body.type.revocable,
                "claims": [dump_claim_def(c) for c in body.type.claims],
            },
            "values": [decode(c, v) for c, v in zip(body.type.claims, body.values)],
        },
    }


def marshal_issuance(credential: Credential, indent: Optional[int] = None) -> str:
    """Encode a credential's header and body for an issuance request."""
    return json.dumps(marshal_issuance_obj(credential), indent=indent)


def unmarshal_issuance(text: str) -> Credential:
    """
    Decode an issuance request into an unsigned credential.

    Raises:
        InvalidCredential: On malformed JSON, unknown claim kinds or a
            claim/value count mismatch

    """
    try:
        raw = json.loads(text)
    except ValueError as err:
        raise InvalidCredential("Failed to parse issuance JSON") from err
    if not isinstance(raw, Mapping) or not isinstance(raw.get("body"), Mapping):
        raise InvalidCredential("Issuance header or body is missing")

    try:
        cred_type = CredentialTypeSchema().load(raw["body"].get("type") or {})
    except ValidationError as err:
        raise InvalidCredential(f"Invalid credential type: {err.messages}") from err

    values = raw["body"].get("values")
    if not isinstance(values, list):
        raise InvalidCredential("Issuance values must be a list")
    if len(values) != len(cred_type.claims):
        raise InvalidCredential(
            f"Length mismatch: {len(cred_type.claims)} claims, {len(values)} values"
        )
    try:
        encoded = [encode(c, v) for c, v in zip(cred_type.claims, values)]
    except CredentialError as err:
        raise InvalidCredential("Invalid issuance value") from err

    try:
        header = CredentialHeader.deserialize(raw.get("header") or {})
    except BaseModelError as err:
        raise InvalidCredential("Invalid issuance header") from err
    return Credential(header, CredentialBody(cred_type, encoded))
