"""Common exception classes."""

import re


class BaseError(Exception):
    """Generic exception class which other exceptions should inherit from."""

    def __init__(self, *args, error_code: str = None, **kwargs):
        """Initialize a BaseError instance."""
        super().__init__(*args, **kwargs)
        self.error_code = error_code if error_code else self.default_code()

    @classmethod
    def default_code(cls) -> str:
        """Error code used when none is given, the class name."""
        return cls.__name__

    @property
    def message(self) -> str:
        """Accessor for the error message."""
        return str(self.args[0]).strip() if self.args else ""

    @property
    def roll_up(self) -> str:
        """
        Accessor for nested error messages rolled into one line.

        For display: nested causes are appended in order.
        """

        def flatten(exc: Exception):
            return ".".join(
                (
                    re.sub(
                        r"\n\s*",
                        ". ",
                        (
                            str(exc.args[0]).strip()
                            if exc.args
                            else exc.__class__.__name__
                        ),
                    ).strip()
                ).rsplit(".", 1)
            )

        line = flatten(self)
        err = self
        while err.__cause__:
            err = err.__cause__
            line += ". {}".format(flatten(err))
        return f"{line.strip()}."


class NotPrepared(BaseError):
    """Cryptographic parameters were used before `prepare()` was called."""


class CredentialError(BaseError):
    """Base error for claim types, values and credentials."""


class ParseError(CredentialError):
    """A textual definition could not be parsed."""


class InvalidTypeName(ParseError):
    """Unknown claim kind."""


class InvalidTypeParameter(ParseError):
    """Malformed or out of range claim type parameter."""


class InvalidTypeDef(ParseError):
    """Malformed claim definition."""


class InvalidClaimName(ParseError):
    """Claim name is not an identifier or is reserved."""


class DuplicateClaimName(ParseError):
    """The same claim name is declared twice."""


class InvalidPragma(ParseError):
    """Unknown, malformed or duplicated pragma."""


class QueryParseError(ParseError):
    """A disclosure query could not be parsed."""


class UnknownClaim(CredentialError):
    """A claim name does not exist in the credential type."""


class TypeMismatch(CredentialError):
    """A value or statement type disagrees with the declared claim type."""


class RangeError(CredentialError):
    """A value or bound does not fit the claim width."""


class InvalidClaimValue(CredentialError):
    """A raw claim input is malformed."""


class InvalidCredential(CredentialError):
    """A marshaled credential is malformed or inconsistent with its type."""


class CredentialImmutable(CredentialError):
    """Attempt to modify a signed credential."""


class AlreadySigned(CredentialImmutable):
    """The credential already carries a signature."""


class NotSigned(CredentialError):
    """The operation requires a signed credential."""


class DuplicateStatement(CredentialError):
    """More than one statement names the same claim."""


class UnknownIdentity(BaseError):
    """No identity slice matches the requested commitment or domain."""


class RevocationError(BaseError):
    """Base error for revocation tree operations."""


class InvalidSignatureID(RevocationError):
    """Signature id is outside the range addressable by the tree."""


class SignatureRevoked(RevocationError):
    """The signature id is present in the revocation tree."""


class MissingRevocationProof(BaseError):
    """A revocable credential was proven without a matching fresh SMT proof."""


class ProofGenerationFailed(BaseError):
    """The proving backend failed to produce a proof."""


class ProofInvalid(BaseError):
    """The proving backend rejected a proof."""


class PolicyRejected(BaseError):
    """A statically valid proof failed a verifier cross-check."""

    def __init__(self, *args, reason=None, **kwargs):
        """Initialize a PolicyRejected instance with its reason code."""
        super().__init__(*args, **kwargs)
        self.reason = reason
