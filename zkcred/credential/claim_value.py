"""Claim values and their encoding against claim definitions."""

import re
from typing import List, Mapping, NamedTuple, Union

from ..core.error import InvalidClaimValue, RangeError, TypeMismatch
from ..crypto.hash import hash_str, keccak256_int
from .claim_type import (
    BoolType,
    ClaimDef,
    PropHash,
    PropType,
    ScalarType,
    claim_types_equal,
)

INTEGER_PATTERN = re.compile(r"^-?[0-9]+$")

# Marshaled form: a string for scalars and booleans, {"str", "value"} for properties
MarshaledClaimValue = Union[str, Mapping[str, str]]


class ScalarValue(NamedTuple):
    """Value of a scalar claim."""

    type: ScalarType
    value: int

    def __str__(self) -> str:
        """Render the raw value."""
        return str(self.value)


class PropValue(NamedTuple):
    """Value of a property claim: the raw string and its masked hash."""

    type: PropType
    raw: str
    hash: int

    def __str__(self) -> str:
        """Render the raw value."""
        return self.raw


class BoolValue(NamedTuple):
    """Value of a boolean claim."""

    value: bool

    @property
    def type(self) -> BoolType:
        """Accessor for the claim type."""
        return BoolType()

    def __str__(self) -> str:
        """Render the raw value."""
        return "true" if self.value else "false"


ClaimValue = Union[ScalarValue, PropValue, BoolValue]


def compute_prop_hash(prop_type: PropType, raw: str) -> int:
    """
    Hash a property's raw string with its type's algorithm, masked to width.

    Raises:
        InvalidClaimValue: For the custom algorithm, which has no built-in hash

    """
    if prop_type.hash_algorithm is PropHash.POSEIDON:
        if not raw:
            raise InvalidClaimValue("Cannot hash an empty property value")
        digest = hash_str(raw)
    elif prop_type.hash_algorithm is PropHash.KECCAK256:
        digest = keccak256_int(raw)
    else:
        raise InvalidClaimValue(
            "Hash value must be provided for the custom hash algorithm"
        )
    return prop_type.mask(digest)


def _parse_int(raw, what: str) -> int:
    if isinstance(raw, bool):
        raise TypeMismatch(f"Boolean given for {what}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        if not INTEGER_PATTERN.match(raw.strip()):
            raise InvalidClaimValue(f"Invalid integer for {what}: {raw!r}")
        return int(raw.strip())
    raise TypeMismatch(f"Expected an integer or decimal string for {what}")


def _encode_scalar(name: str, tp: ScalarType, raw) -> ScalarValue:
    value = _parse_int(raw, name)
    if value < 0 or value >= tp.ceiling:
        raise RangeError(f"Out of range value {value} for {name}:{tp}")
    return ScalarValue(tp, value)


def _encode_bool(name: str, raw) -> BoolValue:
    if isinstance(raw, bool):
        return BoolValue(raw)
    if raw == "true":
        return BoolValue(True)
    if raw == "false":
        return BoolValue(False)
    if isinstance(raw, str):
        raise InvalidClaimValue(f"Invalid boolean for {name}: {raw!r}")
    raise TypeMismatch(f"Expected a boolean for {name}")


def _encode_prop(name: str, tp: PropType, raw) -> PropValue:
    precomputed = None
    if isinstance(raw, Mapping):
        if "str" not in raw:
            raise InvalidClaimValue(f"Missing raw string for {name}")
        precomputed = raw.get("value")
        raw = raw["str"]
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise InvalidClaimValue(f"Property {name} is not valid UTF-8") from err
    if not isinstance(raw, str):
        raise TypeMismatch(f"Expected a string for {name}")

    if precomputed is None:
        return PropValue(tp, raw, compute_prop_hash(tp, raw))

    digest = _parse_int(precomputed, name)
    if digest < 0 or digest >= tp.ceiling:
        raise RangeError(f"Out of range hash {digest} for {name}:{tp}")
    if tp.hash_algorithm is not PropHash.CUSTOM:
        expected = compute_prop_hash(tp, raw)
        if expected != digest:
            raise InvalidClaimValue(
                f"Provided hash for {name} does not match {tp.hash_algorithm.name}: "
                f"{digest} != {expected}"
            )
    return PropValue(tp, raw, digest)


def encode(claim_def: ClaimDef, raw) -> ClaimValue:
    """
    Encode a raw input as the value of a claim.

    Scalars accept an int or a decimal string. Booleans accept True/False or
    "true"/"false". Properties accept a string, UTF-8 bytes or a mapping
    `{"str": raw, "value": hash}` carrying a precomputed hash.

    Raises:
        TypeMismatch: If the input's shape does not fit the claim kind
        RangeError: If a number does not fit the claim width
        InvalidClaimValue: If the input is otherwise malformed

    """
    tp = claim_def.type
    if isinstance(tp, ScalarType):
        return _encode_scalar(claim_def.name, tp, raw)
    if isinstance(tp, PropType):
        return _encode_prop(claim_def.name, tp, raw)
    if isinstance(tp, BoolType):
        return _encode_bool(claim_def.name, raw)
    raise TypeMismatch(f"Unsupported claim type {tp!r}")


def check_value_type(claim_def: ClaimDef, value: ClaimValue):
    """Raise `TypeMismatch` unless `value` belongs to `claim_def`'s type."""
    if not isinstance(value, (ScalarValue, PropValue, BoolValue)) or not (
        claim_types_equal(value.type, claim_def.type)
    ):
        raise TypeMismatch(
            f"Value {value!r} does not match {claim_def.name}:{claim_def.type}"
        )


def decode(claim_def: ClaimDef, value: ClaimValue) -> MarshaledClaimValue:
    """Render a value in its marshaled form, which `encode` accepts back."""
    check_value_type(claim_def, value)
    if isinstance(value, PropValue):
        return {"str": value.raw, "value": str(value.hash)}
    return str(value)


def to_field_elements(value: ClaimValue) -> List[int]:
    """The circuit-order field elements of a value."""
    if isinstance(value, ScalarValue):
        return [value.value]
    if isinstance(value, PropValue):
        return [value.hash]
    if isinstance(value, BoolValue):
        return [1 if value.value else 0]
    raise TypeMismatch(f"Unsupported claim value {value!r}")