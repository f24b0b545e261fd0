"""Credential types: ordered claim definitions plus revocability."""

import re
from typing import Iterable, List, NamedTuple, Optional, Tuple

from web3 import Web3

from ..core.error import DuplicateClaimName, InvalidPragma, UnknownClaim
from ..crypto.hash import solidity_keccak160
from ..crypto.smt import MAX_TREE_HEIGHT, MIN_TREE_HEIGHT
from .claim_type import ClaimDef, parse_claim_def

MAX_REVOCABLE_TREE_DEPTH = MAX_TREE_HEIGHT
MIN_REVOCABLE_TREE_DEPTH = MIN_TREE_HEIGHT

PRAGMA_PATTERN = re.compile(r"^@([a-zA-Z0-9_]+)\((.*)\)$")


class CredentialType:
    """A credential type: its id, its ordered claims and its revocation height."""

    def __init__(
        self,
        claims: Iterable[ClaimDef] = (),
        revocable: Optional[int] = None,
        type_id: int = 0,
    ):
        """
        Initialize a credential type.

        Args:
            claims: The claim definitions, in circuit order
            revocable: The revocation tree height, or None if not revocable
            type_id: The registered type id

        """
        self.claims: Tuple[ClaimDef, ...] = tuple(claims)
        self.revocable = revocable
        self.type_id = type_id
        names = set()
        for claim in self.claims:
            if claim.name in names:
                raise DuplicateClaimName(f"Duplicate claim name: {claim.name}")
            names.add(claim.name)

    @property
    def is_revocable(self) -> bool:
        """Check whether credentials of this type can be revoked."""
        return self.revocable is not None

    @property
    def claim_names(self) -> List[str]:
        """Accessor for the claim names, in order."""
        return [c.name for c in self.claims]

    def index_of(self, name: str) -> int:
        """Find the position of a claim by name."""
        for index, claim in enumerate(self.claims):
            if claim.name == name:
                return index
        raise UnknownClaim(f"Unknown claim: {name}")

    def claim(self, name: str) -> ClaimDef:
        """Find a claim definition by name."""
        return self.claims[self.index_of(name)]

    def with_type_id(self, type_id: int) -> "CredentialType":
        """Copy of this type carrying another type id."""
        return CredentialType(self.claims, self.revocable, type_id)

    def definition(self) -> str:
        """Render in definition syntax; parses back to an equal type."""
        parts = [str(c) for c in self.claims]
        if self.is_revocable:
            parts.append(f"@revocable({self.revocable})")
        return ";".join(parts)

    def __eq__(self, other) -> bool:
        """Compare claims, revocability and id."""
        if not isinstance(other, CredentialType):
            return NotImplemented
        return (
            self.type_id == other.type_id
            and self.revocable == other.revocable
            and len(self.claims) == len(other.claims)
            and all(
                a.name == b.name and type(a.type) is type(b.type) and a.type == b.type
                for a, b in zip(self.claims, other.claims)
            )
        )

    __hash__ = None

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return (
            f"<{self.__class__.__name__}(type_id={self.type_id}, "
            f"definition={self.definition()!r})>"
        )


class Pragma(NamedTuple):
    """A `@name(args)` directive in a type definition."""

    name: str
    values: Tuple[str, ...]


def parse_pragma(text: str) -> Pragma:
    """Parse a `@name(v1, v2)` pragma."""
    match = PRAGMA_PATTERN.match(text)
    if not match:
        raise InvalidPragma(f"Invalid pragma: {text}")
    name, values = match.group(1), match.group(2)
    return Pragma(name, tuple(v.strip() for v in values.split(",")))


def _apply_revocable(pragma: Pragma, current: Optional[int]) -> int:
    values = pragma.values
    if len(values) != 1 or not re.match(r"^[0-9]+$", values[0]):
        raise InvalidPragma(
            f"Parameter is not an unsigned integer: @revocable({','.join(values)})"
        )
    height = int(values[0])
    if height > MAX_REVOCABLE_TREE_DEPTH:
        raise InvalidPragma(
            f"Revocable tree too large, max {MAX_REVOCABLE_TREE_DEPTH}, got {height}"
        )
    if height < MIN_REVOCABLE_TREE_DEPTH:
        raise InvalidPragma(
            f"Revocable tree too small, min {MIN_REVOCABLE_TREE_DEPTH}, got {height}"
        )
    if current is not None:
        raise InvalidPragma(f"Duplicate revocable pragma: @revocable({height})")
    return height


def parse_cred_type(definition: str) -> CredentialType:
    """
    Parse a `;`-separated list of claim definitions and pragmas.

    An empty definition yields the zero-claim unit type. The returned type has
    type id 0 until one is assigned.

    Raises:
        ParseError: On any malformed claim, name or pragma

    """
    items = [s.strip() for s in definition.split(";")]
    items = [s for s in items if s]

    revocable = None
    for pragma in (parse_pragma(s) for s in items if s.startswith("@")):
        if pragma.name == "revocable":
            revocable = _apply_revocable(pragma, revocable)
        else:
            raise InvalidPragma(f"Unknown pragma: {pragma.name}")
    claims = [parse_claim_def(s) for s in items if not s.startswith("@")]
    return CredentialType(claims, revocable)


def compute_type_id(creator: str, name: str) -> int:
    """
    Compute the registry id of a type from its creator address and name.

    The low 160 bits of `keccak256(abi.encodePacked(address, string))`.
    """
    return solidity_keccak160(
        ["address", "string"], [Web3.to_checksum_address(creator), name]
    )
