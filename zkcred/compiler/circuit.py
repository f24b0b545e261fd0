"""Circuit descriptions of credential types, and their setup."""

import json
import logging
from typing import Dict, List, NamedTuple

from ..backend.base import BaseCircuitCompiler, CompiledCircuit
from ..core.error import InvalidTypeParameter
from ..credential.claim_type import BoolType, ClaimDef, PropType, ScalarType
from ..credential.cred_type import CredentialType
from ..credential.credential import CURRENT_VERSION
from ..credential.statement import (
    EQUAL_CHECK_ID_WIDTH,
    EXPIRATION_WIDTH,
    PSEUDONYM_WIDTH,
)
from ..crypto.field import FIELD_MODULUS
from .signals import REVOCATION_ROOT, intrinsic_names

LOGGER = logging.getLogger(__name__)

MAX_PUBLIC_SIGNALS = 256

INTRINSIC_CEILINGS = {
    "context": 1 << 160,
    "type": 1 << 160,
    "issuer_id": 1 << 160,
    "key_id": FIELD_MODULUS,
    "expiration_lb": 1 << EXPIRATION_WIDTH,
    "nullifier": FIELD_MODULUS,
    "equal_check_id": 1 << (EQUAL_CHECK_ID_WIDTH + 1),
    "pseudonym": 1 << PSEUDONYM_WIDTH,
    REVOCATION_ROOT: FIELD_MODULUS,
}


class PublicSignalDef(NamedTuple):
    """A public signal and the smallest value it cannot take."""

    name: str
    ceiling: int


class FieldDef(NamedTuple):
    """Circuit signals of one claim."""

    claim: ClaimDef
    inputs: List[str]
    operations: List[str]
    outputs: List[PublicSignalDef]


def gen_field_def(claim: ClaimDef) -> FieldDef:
    """Map a claim to its input, operation and output signals."""
    name, tp = claim.name, claim.type
    if isinstance(tp, ScalarType):
        return FieldDef(
            claim,
            [name],
            [f"{name}_lb", f"{name}_ub"],
            [
                PublicSignalDef(f"out_{name}_lb", tp.ceiling),
                PublicSignalDef(f"out_{name}_ub", tp.ceiling),
            ],
        )
    if isinstance(tp, PropType):
        n = tp.equal_check_count
        return FieldDef(
            claim,
            [name],
            [f"{name}_eq_check{i}" for i in range(n)],
            [PublicSignalDef(f"out_{name}_eq{i}", tp.ceiling << 1) for i in range(n)],
        )
    if isinstance(tp, BoolType):
        return FieldDef(claim, [name], [f"{name}_hide"], [PublicSignalDef(f"out_{name}", 4)])
    raise InvalidTypeParameter(f"Unsupported claim type {tp!r}")


class Circuit:
    """The circuit description of a credential type."""

    def __init__(self, cred_type: CredentialType, version: int = CURRENT_VERSION):
        """
        Describe the circuit of a credential type.

        Raises:
            InvalidTypeParameter: If the type needs too many public signals

        """
        self.type = cred_type
        self.version = version
        self.fields = [gen_field_def(c) for c in cred_type.claims]
        self.intrinsic_signal_defs = [
            PublicSignalDef(name, INTRINSIC_CEILINGS[name])
            for name in intrinsic_names(version, cred_type.is_revocable)
        ]
        self.public_signal_defs = self.intrinsic_signal_defs + [
            out for field in self.fields for out in field.outputs
        ]
        if len(self.public_signal_defs) > MAX_PUBLIC_SIGNALS:
            raise InvalidTypeParameter(
                f"Too many public signals: {len(self.public_signal_defs)}"
            )

    @property
    def intrinsic_signal_indexes(self) -> Dict[str, int]:
        """Accessor for the positions of the intrinsic signals."""
        return {d.name: i for i, d in enumerate(self.intrinsic_signal_defs)}

    def check_public_signals(self, signals) -> bool:
        """Check a public signal vector's length and per-signal ceilings."""
        if len(signals) != len(self.public_signal_defs):
            return False
        return all(
            0 <= int(value) < d.ceiling
            for value, d in zip(signals, self.public_signal_defs)
        )

    def source(self) -> str:
        """Render the description submitted to the circuit compiler."""
        return json.dumps(
            {
                "version": self.version,
                "type_id": str(self.type.type_id),
                "revocable": self.type.revocable,
                "claims": [
                    {
                        "name": f.claim.name,
                        "type": str(f.claim.type),
                        "inputs": f.inputs,
                        "operations": f.operations,
                        "outputs": [o.name for o in f.outputs],
                    }
                    for f in self.fields
                ],
                "public_signals": [
                    {"name": d.name, "ceiling": str(d.ceiling)}
                    for d in self.public_signal_defs
                ],
            },
            indent=2,
        )

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return (
            f"<{self.__class__.__name__}(type_id={self.type.type_id}, "
            f"public_signals={len(self.public_signal_defs)})>"
        )


def gen_circuit(cred_type: CredentialType) -> Circuit:
    """Describe the circuit of a credential type."""
    return Circuit(cred_type)


async def setup_type(
    cred_type: CredentialType, compiler: BaseCircuitCompiler
) -> CompiledCircuit:
    """Generate a type's circuit and hand it to the external compiler."""
    circuit = gen_circuit(cred_type)
    LOGGER.info(
        "Setting up type %s with %d public signals",
        cred_type.type_id,
        len(circuit.public_signal_defs),
    )
    compiled = await compiler.compile(circuit.source())
    LOGGER.debug(
        "Type %s compiled to %d constraints",
        cred_type.type_id,
        compiled.constraint_count,
    )
    return compiled
