"""Registry interface for types, issuer keys and revocation roots."""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, NamedTuple, Optional

from ..core.error import BaseError
from ..credential.primitive_types import TypeSpec
from ..crypto.signer import VerificationStack


class RegistryError(BaseError):
    """Registry lookup failure."""


class RevocationRoot(NamedTuple):
    """A revocation tree root accepted by the registry, and when."""

    root: int
    published_at: float


class BaseRegistry(ABC):
    """Base class for the public registries a verifier consults."""

    BACKEND_NAME: str = None

    async def __aenter__(self) -> "BaseRegistry":
        """
        Context manager entry.

        Returns:
            The current instance

        """
        return self

    async def __aexit__(self, exc_type, exc, tb):
        """Context manager exit."""

    @property
    def backend(self) -> str:
        """Accessor for the registry backend name."""
        return self.__class__.BACKEND_NAME

    @abstractmethod
    async def get_type(self, type_id: int) -> Optional[TypeSpec]:
        """Fetch a registered type.

        Args:
            type_id: The type id to look up
        """

    @abstractmethod
    async def get_verifier(
        self, type_id: int, stack: VerificationStack = VerificationStack.BABYZK
    ) -> Optional[Mapping[str, Any]]:
        """Fetch the verifying key of a type for a verification stack.

        Args:
            type_id: The type id to look up
            stack: The verification stack
        """

    @abstractmethod
    async def is_public_key_active_for_stack(
        self,
        issuer_id: int,
        key_id: int,
        stack: VerificationStack = VerificationStack.BABYZK,
    ) -> bool:
        """Check whether an issuer key is active for a verification stack.

        Args:
            issuer_id: The issuer
            key_id: The key id, as exposed in proofs
            stack: The verification stack
        """

    @abstractmethod
    async def get_revocation_roots(
        self, type_id: int, issuer_id: int
    ) -> List[RevocationRoot]:
        """Fetch the accepted revocation roots of an issuer for a type, newest first.

        Args:
            type_id: The credential type
            issuer_id: The issuer
        """

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return f"<{self.__class__.__name__}>"
