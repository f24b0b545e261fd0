"""Registered type descriptions and the pre-registered primitive types."""

import json
from typing import Mapping, Optional

from marshmallow import EXCLUDE, fields

from ..models.base import BaseModel, BaseModelError, BaseModelSchema
from ..models.valid import BigIntStr
from .cred_type import CredentialType, parse_cred_type

# Verification stack key in type resource metadata
BABYZK = "babyzk"


class TypeResources(BaseModel):
    """Locations of the proving artifacts of one verification stack."""

    class Meta:
        """TypeResources metadata."""

        schema_class = "TypeResourcesSchema"

    def __init__(
        self,
        *,
        circuit_uri: Optional[str] = None,
        verifier_uri: Optional[str] = None,
        vkey_uri: Optional[str] = None,
        witness_wasm_uri: Optional[str] = None,
        zkey_uri: Optional[str] = None,
    ):
        """Initialize the resource list."""
        super().__init__()
        self.circuit_uri = circuit_uri
        self.verifier_uri = verifier_uri
        self.vkey_uri = vkey_uri
        self.witness_wasm_uri = witness_wasm_uri
        self.zkey_uri = zkey_uri


class TypeResourcesSchema(BaseModelSchema):
    """TypeResources schema."""

    class Meta:
        """TypeResourcesSchema metadata."""

        model_class = TypeResources
        unknown = EXCLUDE

    circuit_uri = fields.Str(required=False, data_key="circom_uri")
    verifier_uri = fields.Str(required=False)
    vkey_uri = fields.Str(required=False)
    witness_wasm_uri = fields.Str(required=False)
    zkey_uri = fields.Str(required=False)


def parse_type_resources(text: str, stack: str = BABYZK) -> TypeResources:
    """
    Parse a type resource metadata document.

    Documents keyed by verification stack and flat single-stack documents are
    both accepted.
    """
    try:
        doc = json.loads(text)
    except ValueError as err:
        raise BaseModelError("Type resource metadata is not JSON") from err
    if not isinstance(doc, Mapping):
        raise BaseModelError("Type resource metadata must be an object")
    return TypeResources.deserialize(doc.get(stack, doc))


class TypeSpec(BaseModel):
    """A registered type: id, name and claim definition."""

    class Meta:
        """TypeSpec metadata."""

        schema_class = "TypeSpecSchema"

    def __init__(
        self,
        *,
        type_id: int,
        name: str,
        definition: str,
        description: str = "",
        resource_meta_uri: Optional[str] = None,
        resources: Optional[TypeResources] = None,
    ):
        """Initialize the type spec."""
        super().__init__()
        self.type_id = type_id
        self.name = name
        self.definition = definition
        self.description = description
        self.resource_meta_uri = resource_meta_uri
        self.resources = resources


class TypeSpecSchema(BaseModelSchema):
    """TypeSpec schema."""

    class Meta:
        """TypeSpecSchema metadata."""

        model_class = TypeSpec
        unknown = EXCLUDE

    type_id = BigIntStr(required=True)
    name = fields.Str(required=True)
    definition = fields.Str(required=True)
    description = fields.Str(required=False)
    resource_meta_uri = fields.Str(required=False, allow_none=True)
    resources = fields.Nested(TypeResourcesSchema(), required=False, allow_none=True)


def create_type_from_spec(spec: TypeSpec) -> CredentialType:
    """Parse a type spec's definition and assign its registered id."""
    return parse_cred_type(spec.definition).with_type_id(spec.type_id)


UNIT = TypeSpec(type_id=1, name="Unit", definition="", description="Unit type")

BOOLEAN = TypeSpec(
    type_id=2, name="Boolean", definition="val:bool;", description="Boolean type"
)

SCALAR = TypeSpec(
    type_id=3,
    name="Scalar",
    definition="val:uint<248>;",
    description="248-bit unsigned integer Scalar type",
)

PROPERTY = TypeSpec(
    type_id=5,
    name="Property",
    definition="val:prop<248,c,1>;",
    description="248-bit property type with user-defined hash",
)

# Not an official primitive; registered under a reserved id as a reference
# for multi-claim types.
PASSPORT = TypeSpec(
    type_id=10000,
    name="Passport v2",
    definition=(
        "birthdate:uint<64>;"
        "gender:prop<8,c,1>;"
        "id_country:prop<16,c,1>;"
        "id_class:prop<8,c,1>;"
        "issue_date:uint<64>;"
        "first_verification_date:uint<64>;"
        "last_selfie_date:uint<64>;"
        "total_selfie_verified:uint<8>"
    ),
    description="Passport v2 type",
)

PRIMITIVE_TYPES = {spec.type_id: spec for spec in (UNIT, BOOLEAN, SCALAR, PROPERTY)}
