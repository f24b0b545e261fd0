"""Proving backend and circuit compiler interfaces."""

from abc import ABC, abstractmethod
from typing import Any, Mapping, NamedTuple, Optional, Sequence

from marshmallow import EXCLUDE, fields

from ..models.base import BaseModel, BaseModelSchema
from ..models.valid import BigIntStr


class ProofGadgets(NamedTuple):
    """Proving artifacts of one credential type."""

    type_id: int
    witness_wasm: Optional[bytes] = None
    zkey: Optional[bytes] = None


class WholeProof(BaseModel):
    """A proof and the public signals it commits to."""

    class Meta:
        """WholeProof metadata."""

        schema_class = "WholeProofSchema"

    def __init__(self, *, proof: Mapping[str, Any], public_signals: Sequence[int]):
        """Initialize the proof."""
        super().__init__()
        self.proof = dict(proof)
        self.public_signals = [int(s) for s in public_signals]


class WholeProofSchema(BaseModelSchema):
    """WholeProof schema."""

    class Meta:
        """WholeProofSchema metadata."""

        model_class = WholeProof
        unknown = EXCLUDE

    proof = fields.Dict(required=True)
    public_signals = fields.List(BigIntStr(), required=True)


class CompiledCircuit(BaseModel):
    """Output of circuit compilation and trusted setup."""

    class Meta:
        """CompiledCircuit metadata."""

        schema_class = "CompiledCircuitSchema"

    def __init__(
        self,
        *,
        constraint_count: int,
        verifying_key: Mapping[str, Any],
        proving_key_artifact: str,
    ):
        """Initialize the compiled circuit."""
        super().__init__()
        self.constraint_count = constraint_count
        self.verifying_key = dict(verifying_key)
        self.proving_key_artifact = proving_key_artifact


class CompiledCircuitSchema(BaseModelSchema):
    """CompiledCircuit schema."""

    class Meta:
        """CompiledCircuitSchema metadata."""

        model_class = CompiledCircuit
        unknown = EXCLUDE

    constraint_count = fields.Int(required=True, data_key="constraintCount")
    verifying_key = fields.Dict(required=True, data_key="verifyingKey")
    proving_key_artifact = fields.Str(required=True, data_key="provingKeyArtifact")


class BaseProvingBackend(ABC):
    """Produces and checks zero-knowledge proofs over signal plans."""

    @abstractmethod
    def prove(self, plan, gadgets: ProofGadgets) -> WholeProof:
        """
        Generate a proof. May block for a long time.

        Args:
            plan: The `SignalPlan` to prove
            gadgets: The proving artifacts of the plan's type

        Raises:
            ProofGenerationFailed: If no proof can be produced

        """

    @abstractmethod
    async def verify(self, vkey: Mapping[str, Any], proof: WholeProof) -> bool:
        """Check a proof against a verifying key."""


class BaseCircuitCompiler(ABC):
    """Compiles circuit sources and runs their trusted setup."""

    @abstractmethod
    async def compile(self, source: str) -> CompiledCircuit:
        """Compile a circuit description."""
