"""JSON disclosure queries and their conversion to statements."""

import logging
from enum import Enum
from typing import List, Sequence, Tuple

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from ..core.error import QueryParseError, TypeMismatch
from ..models.base import BaseModel, BaseModelError, BaseModelSchema
from ..models.valid import CLAIM_NAME, DIGITS, BigIntStr
from .claim_type import BoolType, PropType, ScalarType
from .cred_type import CredentialType
from .statement import (
    BoolStatement,
    PropStatement,
    ProofOptions,
    ProofOptionsSchema,
    ScalarStatement,
    hiding_statement,
)

LOGGER = logging.getLogger(__name__)


class Operation(str, Enum):
    """Condition operations."""

    IN = "IN"
    IS = "IS"
    REVEAL = "REVEAL"
    HIDE = "HIDE"


class RangeSchema(Schema):
    """Inclusive `{from, to}` range of an IN condition."""

    class Meta:
        """RangeSchema metadata."""

        ordered = True
        unknown = EXCLUDE

    lower = BigIntStr(required=True, data_key="from")
    upper = BigIntStr(required=True, data_key="to")


class Condition(BaseModel):
    """A condition on one claim."""

    class Meta:
        """Condition metadata."""

        schema_class = "ConditionSchema"

    def __init__(self, *, identifier: str, operation: str, value=None):
        """Initialize the condition."""
        super().__init__()
        self.identifier = identifier
        self.operation = operation
        self.value = value

    @property
    def bounds(self) -> Tuple[int, int]:
        """Accessor for the inclusive range of an IN condition."""
        return int(self.value["from"]), int(self.value["to"])

    @property
    def values(self) -> List[int]:
        """Accessor for the expected values of an IS condition."""
        return [int(v) for v in self.value]


class ConditionSchema(BaseModelSchema):
    """Condition schema."""

    class Meta:
        """ConditionSchema metadata."""

        model_class = Condition
        unknown = EXCLUDE

    identifier = fields.Str(required=True, **CLAIM_NAME)
    operation = fields.Str(
        required=True, validate=validate.OneOf([op.value for op in Operation])
    )
    value = fields.Raw(required=False, allow_none=True)

    @validates_schema
    def validate_value(self, data, **kwargs):
        """Check the value has the shape its operation needs."""
        operation = data.get("operation")
        value = data.get("value")
        if operation == Operation.IN.value:
            if not isinstance(value, dict):
                raise ValidationError("IN requires a {from, to} range", "value")
            errors = RangeSchema().validate(value)
            if errors:
                raise ValidationError(errors, "value")
        elif operation == Operation.IS.value:
            if not isinstance(value, list) or not all(
                isinstance(v, str) and DIGITS.match(v) for v in value
            ):
                raise ValidationError("IS requires a list of decimal strings", "value")


class Query(BaseModel):
    """Conditions on claims plus proof options."""

    class Meta:
        """Query metadata."""

        schema_class = "QuerySchema"

    def __init__(
        self,
        *,
        conditions: Sequence[Condition] = (),
        options: ProofOptions = None,
    ):
        """Initialize the query."""
        super().__init__()
        self.conditions = list(conditions)
        self.options = options or ProofOptions()


class QueryOptionsSchema(ProofOptionsSchema):
    """Query options; every option is mandatory."""

    class Meta:
        """QueryOptionsSchema metadata."""

        model_class = ProofOptions
        unknown = EXCLUDE

    expired_at_lower_bound = BigIntStr(required=True, data_key="expiredAtLowerBound")
    external_nullifier = BigIntStr(required=True, data_key="externalNullifier")
    equal_check_id = BigIntStr(required=True, data_key="equalCheckId")
    pseudonym = BigIntStr(required=True)


class QuerySchema(BaseModelSchema):
    """Query schema."""

    class Meta:
        """QuerySchema metadata."""

        model_class = Query
        unknown = EXCLUDE

    conditions = fields.List(fields.Nested(ConditionSchema()), required=False)
    options = fields.Nested(QueryOptionsSchema(), required=True)

    @validates_schema
    def validate_identifiers(self, data, **kwargs):
        """Reject conditions naming the same claim twice."""
        seen = set()
        for condition in data.get("conditions") or ():
            if condition.identifier in seen:
                raise ValidationError(
                    f"Duplicated identifier {condition.identifier}", "conditions"
                )
            seen.add(condition.identifier)


def parse(text: str) -> Query:
    """
    Parse a JSON query.

    Raises:
        QueryParseError: On malformed JSON, missing options, unsupported
            operations, malformed values or duplicated identifiers

    """
    try:
        return Query.from_json(text)
    except BaseModelError as err:
        raise QueryParseError(f"Invalid query: {err.roll_up}") from err


def _to_statement(cred_type: CredentialType, condition: Condition):
    claim = cred_type.claim(condition.identifier)
    tp = claim.type
    operation = Operation(condition.operation)
    if operation is Operation.HIDE:
        return hiding_statement(claim)
    if isinstance(tp, ScalarType) and operation is Operation.IN:
        lower, upper = condition.bounds
        return ScalarStatement(claim.name, tp, lower, upper)
    if isinstance(tp, PropType) and operation is Operation.IS:
        values = condition.values
        if not values or len(values) > tp.equal_check_count:
            raise TypeMismatch(
                f"IS on {claim.name} takes 1 to {tp.equal_check_count} values"
            )
        # repeating a value leaves the checked set unchanged
        values += [values[-1]] * (tp.equal_check_count - len(values))
        return PropStatement(claim.name, tp, values)
    if isinstance(tp, BoolType) and operation is Operation.REVEAL:
        return BoolStatement(claim.name, True)
    raise TypeMismatch(f"Operation {operation.value} does not apply to {claim}")


def to_statements(cred_type: CredentialType, query: Query) -> List:
    """
    Convert a query to one statement per claim, in claim order.

    Claims without a condition are hidden.

    Raises:
        UnknownClaim: If a condition names no claim of the type
        TypeMismatch: If an operation does not apply to the claim's kind

    """
    by_name = {c.identifier: c for c in query.conditions}
    for name in by_name:
        cred_type.index_of(name)
    statements = []
    for claim in cred_type.claims:
        condition = by_name.get(claim.name)
        if condition is None:
            statements.append(hiding_statement(claim))
        else:
            statements.append(_to_statement(cred_type, condition))
    LOGGER.debug("Query converted to %d statements", len(statements))
    return statements
