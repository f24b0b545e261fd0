"""Validators and fields for schema definitions."""

import re

from marshmallow.exceptions import ValidationError
from marshmallow.fields import Field
from marshmallow.validate import Regexp

from ..utils.encoding import b64_to_bytes, bytes_to_b64

MAX_UINT256 = (1 << 256) - 1
DIGITS = re.compile(r"^[0-9]+$")


class BigIntStr(Field):
    """Unsigned 256-bit integer serialized as a decimal string."""

    default_error_messages = {
        "invalid": "Value {input} is not a decimal integer string",
        "range": "Value {input} does not fit in 256 bits",
    }

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return str(value)

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise self.make_error("invalid", input=value)
        if isinstance(value, str) and not DIGITS.match(value):
            raise self.make_error("invalid", input=value)
        value = int(value)
        if value < 0 or value > MAX_UINT256:
            raise self.make_error("range", input=value)
        return value


class Base64Bytes(Field):
    """Bytes serialized as standard padded base64."""

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return bytes_to_b64(value)

    def _deserialize(self, value, attr, data, **kwargs):
        if not isinstance(value, str):
            raise ValidationError("Field should be a base64 string")
        Base64()(value)
        return b64_to_bytes(value)


class Base64(Regexp):
    """Validate base64 value."""

    EXAMPLE = "ey4uLn0="
    PATTERN = r"^[a-zA-Z0-9+/]*={0,2}$"

    def __init__(self):
        """Initializer."""

        super().__init__(
            Base64.PATTERN,
            error="Value {input} is not a valid base64 encoding",
        )


class ClaimName(Regexp):
    """Validate a claim or attachment identifier."""

    EXAMPLE = "birthdate"
    PATTERN = r"^[a-zA-Z_][a-zA-Z0-9_]*$"

    def __init__(self):
        """Initializer."""

        super().__init__(
            ClaimName.PATTERN,
            error="Value {input} is not a valid claim name",
        )


CLAIM_NAME = {"validate": ClaimName(), "metadata": {"example": ClaimName.EXAMPLE}}
