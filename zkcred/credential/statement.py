"""Disclosure statements over single claims, and proof-wide options."""

from typing import Dict, List, Sequence

from marshmallow import EXCLUDE

from ..core.error import RangeError, TypeMismatch
from ..models.base import BaseModel, BaseModelSchema
from ..models.valid import BigIntStr
from .claim_type import BoolType, ClaimDef, ClaimKind, PropType, ScalarType
from .claim_value import BoolValue, PropValue, ScalarValue

EXPIRATION_WIDTH = 64
EXTERNAL_NULLIFIER_WIDTH = 160
EQUAL_CHECK_ID_WIDTH = 248
PSEUDONYM_WIDTH = 248


def compress_equality(value: int, expected: int) -> int:
    """Pack an equality check result: `expected` shifted left, result in bit 0."""
    return (expected << 1) | (1 if value == expected else 0)


class ScalarStatement:
    """Prove `lower_bound <= value <= upper_bound`, revealing both bounds."""

    kind = ClaimKind.SCALAR

    def __init__(self, claim: str, type: ScalarType, lower_bound: int, upper_bound: int):
        """Initialize the statement."""
        self.claim = claim
        self.type = type
        self.lower_bound = lower_bound
        self.upper_bound = upper_bound

    def validate(self):
        """
        Check the bounds against the statement type.

        Raises:
            RangeError: If a bound does not fit the width or the range is empty

        """
        ceiling = self.type.ceiling
        for bound in (self.lower_bound, self.upper_bound):
            if isinstance(bound, bool) or not isinstance(bound, int):
                raise RangeError(f"Bound {bound!r} of {self.claim} is not an integer")
            if bound < 0 or bound >= ceiling:
                raise RangeError(f"Out of range bound {bound} for {self.claim}:{self.type}")
        if self.lower_bound > self.upper_bound:
            raise RangeError(
                f"Lower bound {self.lower_bound} of {self.claim} "
                f"exceeds upper bound {self.upper_bound}"
            )

    def operation_signals(self) -> Dict[str, int]:
        """Private inputs of the range check."""
        return {
            f"{self.claim}_lb": self.lower_bound,
            f"{self.claim}_ub": self.upper_bound,
        }

    def outputs(self, value: ScalarValue) -> List[int]:
        """Public signals: the bounds."""
        return [self.lower_bound, self.upper_bound]

    def holds(self, value: ScalarValue) -> bool:
        """Evaluate the range predicate."""
        return self.lower_bound <= value.value <= self.upper_bound

    def __eq__(self, other) -> bool:
        """Compare statements."""
        if type(other) is not type(self):
            return NotImplemented
        return (self.claim, self.type, self.lower_bound, self.upper_bound) == (
            other.claim,
            other.type,
            other.lower_bound,
            other.upper_bound,
        )

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return (
            f"<ScalarStatement({self.claim}:{self.type} "
            f"in [{self.lower_bound}, {self.upper_bound}])>"
        )


class PropStatement:
    """
    Check a property's hash against `equals_to`.

    Each check reveals its expected value and whether it matched, packed
    together by `compress_equality`.
    """

    kind = ClaimKind.PROPERTY

    def __init__(self, claim: str, type: PropType, equals_to: Sequence[int]):
        """Initialize the statement."""
        self.claim = claim
        self.type = type
        self.equals_to = tuple(equals_to)

    def validate(self):
        """
        Check the expected values against the statement type.

        Raises:
            TypeMismatch: If the number of values is not the type's check count
            RangeError: If a value does not fit the width

        """
        if len(self.equals_to) != self.type.equal_check_count:
            raise TypeMismatch(
                f"Expected {self.type.equal_check_count} values for {self.claim}, "
                f"got {len(self.equals_to)}"
            )
        for expected in self.equals_to:
            if isinstance(expected, bool) or not isinstance(expected, int):
                raise RangeError(f"Value {expected!r} of {self.claim} is not an integer")
            if expected < 0 or expected >= self.type.ceiling:
                raise RangeError(
                    f"Out of range value {expected} for {self.claim}:{self.type}"
                )

    def operation_signals(self) -> Dict[str, int]:
        """Private inputs of the equality checks."""
        return {
            f"{self.claim}_eq_check{i}": expected
            for i, expected in enumerate(self.equals_to)
        }

    def outputs(self, value: PropValue) -> List[int]:
        """Public signals: one packed result per expected value."""
        return [compress_equality(value.hash, expected) for expected in self.equals_to]

    def holds(self, value: PropValue) -> bool:
        """Equality checks always evaluate; the result is in the outputs."""
        return True

    def __eq__(self, other) -> bool:
        """Compare statements."""
        if type(other) is not type(self):
            return NotImplemented
        return (self.claim, self.type, self.equals_to) == (
            other.claim,
            other.type,
            other.equals_to,
        )

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return f"<PropStatement({self.claim}:{self.type} in {list(self.equals_to)})>"


class BoolStatement:
    """Reveal or hide a boolean claim."""

    kind = ClaimKind.BOOLEAN

    # Output encoding: bit 0 is set when revealed, bit 1 carries the value
    HIDDEN = 0

    def __init__(self, claim: str, reveal: bool, type: BoolType = None):
        """Initialize the statement."""
        self.claim = claim
        self.type = type if type is not None else BoolType()
        self.reveal = reveal

    def validate(self):
        """Check the reveal flag."""
        if not isinstance(self.reveal, bool):
            raise TypeMismatch(f"Reveal flag of {self.claim} must be a boolean")

    def operation_signals(self) -> Dict[str, int]:
        """Private input of the reveal check."""
        return {f"{self.claim}_hide": 0 if self.reveal else 1}

    def outputs(self, value: BoolValue) -> List[int]:
        """Public signal: `value * 2 + 1` when revealed, `HIDDEN` otherwise."""
        if not self.reveal:
            return [self.HIDDEN]
        return [(2 if value.value else 0) + 1]

    def holds(self, value: BoolValue) -> bool:
        """Revealing never fails."""
        return True

    def __eq__(self, other) -> bool:
        """Compare statements."""
        if type(other) is not type(self):
            return NotImplemented
        return (self.claim, self.type, self.reveal) == (
            other.claim,
            other.type,
            other.reveal,
        )

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return f"<BoolStatement({self.claim} reveal={self.reveal})>"


STATEMENT_CLASSES = (ScalarStatement, PropStatement, BoolStatement)


def hiding_statement(claim: ClaimDef):
    """The statement disclosing nothing about a claim."""
    tp = claim.type
    if isinstance(tp, ScalarType):
        return ScalarStatement(claim.name, tp, 0, tp.ceiling - 1)
    if isinstance(tp, PropType):
        return PropStatement(claim.name, tp, [0] * tp.equal_check_count)
    if isinstance(tp, BoolType):
        return BoolStatement(claim.name, False)
    raise TypeMismatch(f"Unsupported claim type {tp!r}")


class ProofOptions(BaseModel):
    """Proof-wide disclosure options."""

    class Meta:
        """ProofOptions metadata."""

        schema_class = "ProofOptionsSchema"

    def __init__(
        self,
        *,
        expired_at_lower_bound: int = 0,
        external_nullifier: int = 0,
        equal_check_id: int = 0,
        pseudonym: int = 0,
    ):
        """
        Initialize the options.

        Args:
            expired_at_lower_bound: Proven lower bound of the signature expiry
            external_nullifier: Event the nullifier is scoped to
            equal_check_id: Subject id the credential is checked against
            pseudonym: Revealed identity, authenticated by the identity secret

        """
        super().__init__()
        self.expired_at_lower_bound = expired_at_lower_bound
        self.external_nullifier = external_nullifier
        self.equal_check_id = equal_check_id
        self.pseudonym = pseudonym

    def validate(self):
        """
        Check every option fits its public signal.

        Raises:
            RangeError: If an option is negative or too wide

        """
        for name, width in (
            ("expired_at_lower_bound", EXPIRATION_WIDTH),
            ("external_nullifier", EXTERNAL_NULLIFIER_WIDTH),
            ("equal_check_id", EQUAL_CHECK_ID_WIDTH),
            ("pseudonym", PSEUDONYM_WIDTH),
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise RangeError(f"Option {name} must be an integer")
            if value < 0 or value >= 1 << width:
                raise RangeError(f"Option {name} does not fit in {width} bits: {value}")


class ProofOptionsSchema(BaseModelSchema):
    """ProofOptions schema."""

    class Meta:
        """ProofOptionsSchema metadata."""

        model_class = ProofOptions
        unknown = EXCLUDE

    expired_at_lower_bound = BigIntStr(required=False, data_key="expiredAtLowerBound")
    external_nullifier = BigIntStr(required=False, data_key="externalNullifier")
    equal_check_id = BigIntStr(required=False, data_key="equalCheckId")
    pseudonym = BigIntStr(required=False)
