import json
from unittest import IsolatedAsyncioTestCase

from ...compiler.circuit import gen_circuit
from ...compiler.signals import compile_signals
from ...core.error import ProofGenerationFailed
from ...credential.claim_type import ScalarType
from ...credential.cred_type import parse_cred_type
from ...credential.credential import Credential
from ...credential.statement import ProofOptions, ScalarStatement
from ...crypto.identity import IdentitySlice
from ...crypto.signer import Ed25519Signer
from ...crypto.smt import RevocationTree
from ...roles.issuer import Issuer
from ..base import ProofGadgets, WholeProof
from ..in_memory import PROTOCOL, InMemoryCircuitCompiler, InMemoryProvingBackend

EXPIRY = 2000000000


class TestInMemoryProvingBackend(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.backend = InMemoryProvingBackend()
        self.identity = IdentitySlice.create()
        self.issuer = Issuer(Ed25519Signer.generate(), issuer_id=7, chain_id=1)
        self.cred_type = parse_cred_type("val:uint<248>").with_type_id(3)
        self.credential = Credential.create(self.cred_type, 5, 99, {"val": 1200})
        self.issuer.sign(self.credential, 100, EXPIRY, self.identity.commitment)
        self.gadgets = ProofGadgets(3, b"wasm", b"zkey")

    def plan(self, lower, upper, options=None, identity=None):
        return compile_signals(
            self.credential,
            [ScalarStatement("val", ScalarType(248), lower, upper)],
            options or ProofOptions(expired_at_lower_bound=1700000000),
            identity or self.identity,
        )

    async def test_prove_verify(self):
        proof = self.backend.prove(self.plan(500, 5000), self.gadgets)
        assert proof.proof["protocol"] == PROTOCOL
        assert proof.public_signals[-2:] == [500, 5000]
        assert await self.backend.verify(self.backend.verifying_key(3), proof)
        assert await self.backend.verify(self.backend.verifying_key(), proof)

    async def test_proof_serde(self):
        proof = self.backend.prove(self.plan(500, 5000), self.gadgets)
        doc = json.loads(proof.to_json())
        assert doc["public_signals"][-1] == "5000"
        parsed = WholeProof.from_json(proof.to_json())
        assert await self.backend.verify(self.backend.verifying_key(3), parsed)

    async def test_false_statement(self):
        with self.assertRaises(ProofGenerationFailed):
            self.backend.prove(self.plan(5000, 6000), self.gadgets)

    async def test_expiry_bound_too_high(self):
        plan = self.plan(0, 5000, ProofOptions(expired_at_lower_bound=EXPIRY + 1))
        with self.assertRaises(ProofGenerationFailed):
            self.backend.prove(plan, self.gadgets)

    async def test_wrong_identity(self):
        with self.assertRaises(ProofGenerationFailed):
            self.backend.prove(self.plan(0, 5000, identity=IdentitySlice.create()), self.gadgets)

    async def test_gadgets_type_mismatch(self):
        with self.assertRaises(ProofGenerationFailed):
            self.backend.prove(self.plan(500, 5000), ProofGadgets(4))

    async def test_tampered_proof(self):
        proof = self.backend.prove(self.plan(500, 5000), self.gadgets)
        tampered = WholeProof(
            proof=proof.proof, public_signals=proof.public_signals[:-1] + [4999]
        )
        assert not await self.backend.verify(self.backend.verifying_key(), tampered)

    async def test_verify_rejects(self):
        proof = self.backend.prove(self.plan(500, 5000), self.gadgets)
        other = InMemoryProvingBackend()
        assert not await self.backend.verify(other.verifying_key(), proof)
        assert not await self.backend.verify(self.backend.verifying_key(4), proof)
        assert not await self.backend.verify({"protocol": "groth16"}, proof)
        assert not await self.backend.verify({"protocol": PROTOCOL}, proof)
        short = WholeProof(proof=proof.proof, public_signals=proof.public_signals[:3])
        assert not await self.backend.verify(self.backend.verifying_key(3), short)

    async def test_revocable(self):
        cred_type = parse_cred_type("val:uint<248>;@revocable(16)").with_type_id(30)
        credential = Credential.create(cred_type, 5, 99, {"val": 1200})
        self.issuer.sign(credential, 100, EXPIRY, self.identity.commitment)
        tree = RevocationTree(16)
        tree.add(3)
        plan = compile_signals(
            credential,
            [],
            ProofOptions(),
            self.identity,
            tree.generate_unrevoked_proof(100),
            tree.root(),
        )
        proof = self.backend.prove(plan, ProofGadgets(30))
        assert proof.public_signals[8] == tree.root()


class TestInMemoryCircuitCompiler(IsolatedAsyncioTestCase):
    async def test_compile(self):
        backend = InMemoryProvingBackend()
        compiler = InMemoryCircuitCompiler(backend)
        circuit = gen_circuit(parse_cred_type("ok:bool").with_type_id(2))
        compiled = await compiler.compile(circuit.source())
        assert compiled.constraint_count == 9
        assert compiled.verifying_key == backend.verifying_key(2)
        assert compiled.proving_key_artifact == "memory://2"
        assert compiled.serialize()["constraintCount"] == 9
