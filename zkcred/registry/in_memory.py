"""In-memory registry."""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from ..credential.primitive_types import PRIMITIVE_TYPES, TypeSpec
from ..crypto.signer import VerificationStack
from .base import BaseRegistry, RegistryError, RevocationRoot

LOGGER = logging.getLogger(__name__)


class InMemoryRegistry(BaseRegistry):
    """Registry kept in process memory, preloaded with the primitive types."""

    BACKEND_NAME = "in_memory"

    def __init__(self):
        """Initialize an `InMemoryRegistry` instance."""
        self._types: Dict[int, TypeSpec] = dict(PRIMITIVE_TYPES)
        self._verifiers: Dict[Tuple[int, int], Mapping[str, Any]] = {}
        self._keys: Set[Tuple[int, int, int]] = set()
        self._roots: Dict[Tuple[int, int], List[RevocationRoot]] = {}

    def register_type(self, spec: TypeSpec):
        """Register a type spec under its id."""
        existing = self._types.get(spec.type_id)
        if existing:
            if existing != spec:
                raise RegistryError(f"Type {spec.type_id} is already registered")
            return
        self._types[spec.type_id] = spec
        LOGGER.debug("Registered type %s (%s)", spec.type_id, spec.name)

    def set_verifier(
        self,
        type_id: int,
        vkey: Mapping[str, Any],
        stack: VerificationStack = VerificationStack.BABYZK,
    ):
        """Set the verifying key of a type."""
        if type_id not in self._types:
            raise RegistryError(f"Type {type_id} is not registered")
        self._verifiers[(type_id, int(stack))] = dict(vkey)

    def set_public_key(
        self,
        issuer_id: int,
        key_id: int,
        stack: VerificationStack = VerificationStack.BABYZK,
        active: bool = True,
    ):
        """Activate or deactivate an issuer key."""
        entry = (issuer_id, key_id, int(stack))
        if active:
            self._keys.add(entry)
        else:
            self._keys.discard(entry)
        LOGGER.debug(
            "Issuer %s key %s %s", issuer_id, key_id, "active" if active else "inactive"
        )

    def publish_revocation_root(
        self, type_id: int, issuer_id: int, root: int, published_at: float = None
    ):
        """Record a newly accepted revocation root, replacing the current one."""
        entry = RevocationRoot(
            root, time.time() if published_at is None else published_at
        )
        roots = self._roots.setdefault((type_id, issuer_id), [])
        # stable sort: of roots published at the same time, the latest stays first
        roots.insert(0, entry)
        roots.sort(key=lambda r: r.published_at, reverse=True)

    async def get_type(self, type_id: int) -> Optional[TypeSpec]:
        """Fetch a registered type."""
        return self._types.get(type_id)

    async def get_verifier(
        self, type_id: int, stack: VerificationStack = VerificationStack.BABYZK
    ) -> Optional[Mapping[str, Any]]:
        """Fetch the verifying key of a type."""
        return self._verifiers.get((type_id, int(stack)))

    async def is_public_key_active_for_stack(
        self,
        issuer_id: int,
        key_id: int,
        stack: VerificationStack = VerificationStack.BABYZK,
    ) -> bool:
        """Check whether an issuer key is active."""
        return (issuer_id, key_id, int(stack)) in self._keys

    async def get_revocation_roots(
        self, type_id: int, issuer_id: int
    ) -> List[RevocationRoot]:
        """Fetch accepted revocation roots, newest first."""
        return list(self._roots.get((type_id, issuer_id), ()))
