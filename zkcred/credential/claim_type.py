"""Claim types and claim definitions."""

import re
from enum import Enum
from typing import NamedTuple, Union

from ..core.error import (
    InvalidClaimName,
    InvalidTypeDef,
    InvalidTypeName,
    InvalidTypeParameter,
)

MAX_WIDTH = 248
BOOL_WIDTH = 8
MAX_EQUAL_CHECKS = 8

CLAIM_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
CLAIM_TYPE_PATTERN = re.compile(r"^([a-zA-Z0-9_]+)\s*(?:<(.*)>)?$")

# Prefixes and names used by generated circuit signals
FORBIDDEN_CLAIM_NAME_PREFIXES = ("sig_", "out_", "in_", "agg_")
RESERVED_CLAIM_NAMES = frozenset(
    (
        "version",
        "type",
        "context",
        "id",
        "identity_secret",
        "internal_nullifier",
        "external_nullifier",
        "revealing_identity",
        "revealing_identity_hmac",
        "expiration_lb",
        "id_equals_to",
        "revocation_root",
    )
)


class ClaimKind(str, Enum):
    """Tag of a claim type, as written in type definitions."""

    SCALAR = "uint"
    PROPERTY = "prop"
    BOOLEAN = "bool"


class PropHash(str, Enum):
    """Algorithm hashing a property's raw string to its field value."""

    POSEIDON = "p"
    KECCAK256 = "k"
    CUSTOM = "c"

    @classmethod
    def parse(cls, value: str) -> "PropHash":
        """Look up an algorithm by its one-letter code."""
        try:
            return cls(value)
        except ValueError:
            raise InvalidTypeParameter(f"Unknown hash algorithm {value}") from None


def _check_width(width, kind: str):
    if (
        isinstance(width, bool)
        or not isinstance(width, int)
        or width <= 0
        or width % 8
        or width > MAX_WIDTH
    ):
        raise InvalidTypeParameter(f"Invalid {kind} width {width}")


class ScalarType(NamedTuple):
    """Unsigned integer of `width` bits."""

    width: int

    kind = ClaimKind.SCALAR

    @classmethod
    def create(cls, width: int) -> "ScalarType":
        """Create a validated scalar type."""
        _check_width(width, "scalar")
        return cls(width)

    @property
    def ceiling(self) -> int:
        """Smallest value that does not fit."""
        return 1 << self.width

    def __str__(self) -> str:
        """Render in definition syntax."""
        return f"uint<{self.width}>"


class PropType(NamedTuple):
    """Hashed string property compared for equality."""

    width: int
    hash_algorithm: PropHash
    equal_check_count: int = 1

    kind = ClaimKind.PROPERTY

    @classmethod
    def create(
        cls, width: int, hash_algorithm: PropHash, equal_check_count: int = 1
    ) -> "PropType":
        """Create a validated property type."""
        _check_width(width, "property")
        if (
            isinstance(equal_check_count, bool)
            or not isinstance(equal_check_count, int)
            or not 1 <= equal_check_count <= MAX_EQUAL_CHECKS
        ):
            raise InvalidTypeParameter(
                f"Invalid equal check count {equal_check_count}"
            )
        return cls(width, PropHash(hash_algorithm), equal_check_count)

    @property
    def ceiling(self) -> int:
        """Smallest hash value that does not fit."""
        return 1 << self.width

    def mask(self, value: int) -> int:
        """Keep the low `width` bits of a hash."""
        return value & (self.ceiling - 1)

    def __str__(self) -> str:
        """Render in definition syntax."""
        return (
            f"prop<{self.width},{self.hash_algorithm.value},{self.equal_check_count}>"
        )


class BoolType(NamedTuple):
    """Boolean, carried in one byte."""

    kind = ClaimKind.BOOLEAN

    @property
    def width(self) -> int:
        """Accessor for the fixed width."""
        return BOOL_WIDTH

    @property
    def ceiling(self) -> int:
        """Smallest value that does not fit."""
        return 2

    def __str__(self) -> str:
        """Render in definition syntax."""
        return "bool"


ClaimType = Union[ScalarType, PropType, BoolType]


def claim_types_equal(a: ClaimType, b: ClaimType) -> bool:
    """Compare two claim types, including their variant."""
    return type(a) is type(b) and tuple(a) == tuple(b)


def _parse_int(value: str) -> int:
    if not re.match(r"^[0-9]+$", value):
        raise InvalidTypeParameter(f"Invalid integer type parameter {value!r}")
    return int(value)


def parse_claim_type(text: str) -> ClaimType:
    """
    Parse a claim type such as `uint<32>`, `prop<8,k,2>` or `bool`.

    Raises:
        InvalidTypeName: For an unknown kind
        InvalidTypeParameter: For malformed or out of range parameters

    """
    match = CLAIM_TYPE_PATTERN.match(text.strip())
    if not match:
        raise InvalidTypeParameter(f"Invalid claim type: {text}")
    name, params = match.group(1), match.group(2)
    args = [a.strip() for a in params.split(",")] if params is not None else []

    if name == ClaimKind.SCALAR.value:
        if len(args) != 1:
            raise InvalidTypeParameter(f"Invalid type parameters {args}")
        return ScalarType.create(_parse_int(args[0]))
    if name == ClaimKind.PROPERTY.value:
        if len(args) not in (2, 3):
            raise InvalidTypeParameter(f"Invalid type parameters {args}")
        return PropType.create(
            _parse_int(args[0]),
            PropHash.parse(args[1]),
            _parse_int(args[2]) if len(args) == 3 else 1,
        )
    if name == ClaimKind.BOOLEAN.value:
        if args:
            raise InvalidTypeParameter(f"Invalid type parameters {args}")
        return BoolType()
    raise InvalidTypeName(f"Unknown claim type: {name}")


def is_valid_claim_name(name: str) -> bool:
    """Check a claim name against the identifier rule and reserved names."""
    return (
        bool(CLAIM_NAME_PATTERN.match(name))
        and not name.startswith(FORBIDDEN_CLAIM_NAME_PREFIXES)
        and name not in RESERVED_CLAIM_NAMES
    )


class ClaimDef(NamedTuple):
    """A named, typed claim slot of a credential type."""

    name: str
    type: ClaimType

    def __str__(self) -> str:
        """Render in definition syntax."""
        return f"{self.name}:{self.type}"


def parse_claim_def(text: str) -> ClaimDef:
    """
    Parse a claim definition such as `age:uint<8>`.

    Raises:
        InvalidTypeDef: If the text is not `name:type`
        InvalidClaimName: If the name is not a valid, unreserved identifier

    """
    parts = [p.strip() for p in text.split(":")]
    if len(parts) != 2:
        raise InvalidTypeDef(f"Invalid claim definition: {text}")
    name, type_text = parts
    if not is_valid_claim_name(name):
        raise InvalidClaimName(f"Invalid claim name: {name}")
    return ClaimDef(name, parse_claim_type(type_text))
