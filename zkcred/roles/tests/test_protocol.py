import json
import time
from unittest import IsolatedAsyncioTestCase

from ...backend.base import ProofGadgets
from ...backend.in_memory import InMemoryCircuitCompiler, InMemoryProvingBackend
from ...compiler.circuit import setup_type
from ...core.error import ProofGenerationFailed, SignatureRevoked
from ...credential import query
from ...credential.claim_type import ScalarType
from ...credential.cred_type import compute_type_id, parse_cred_type
from ...credential.credential import Credential, compute_context_id
from ...credential.primitive_types import SCALAR, TypeSpec, create_type_from_spec
from ...credential.statement import ProofOptions, ScalarStatement
from ...crypto.signer import Ed25519Signer
from ...crypto.smt import RevocationTree
from ...registry.in_memory import InMemoryRegistry
from ..holder import Holder
from ..issuer import Issuer
from ..verifier import Verifier

DAY = 24 * 3600
ISSUER_ID = 1373315977952188719538328827245433171644805209404


class TestScalarProtocol(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.now = int(time.time())
        self.backend = InMemoryProvingBackend()
        self.registry = InMemoryRegistry()
        self.registry.set_verifier(SCALAR.type_id, self.backend.verifying_key(SCALAR.type_id))
        self.issuer = Issuer(Ed25519Signer.generate(), ISSUER_ID, chain_id=1)
        self.registry.set_public_key(ISSUER_ID, self.issuer.key_id)
        self.holder = Holder(self.backend)
        self.verifier = Verifier(self.backend, self.registry)

        commitment = self.holder.create_identity_slice().commitment
        self.context = compute_context_id("context")
        self.credential = Credential.create(
            create_type_from_spec(SCALAR), self.context, 1, {"val": 1200}
        )
        self.issuer.sign(self.credential, 100, self.now + 7 * DAY, commitment)
        self.commitment = commitment

    async def prove(self, lower, upper):
        return await self.holder.prove(
            self.commitment,
            self.credential,
            ProofOptions(expired_at_lower_bound=self.now + DAY),
            ProofGadgets(SCALAR.type_id),
            [ScalarStatement("val", ScalarType(248), lower, upper)],
        )

    async def test_true_statement_accepted(self):
        proof = await self.prove(500, 5000)
        verified = await self.verifier.check(
            proof, self.context, ISSUER_ID, SCALAR.type_id
        )
        assert verified.outputs == (500, 5000)
        assert verified.type_id == SCALAR.type_id

    async def test_false_statement_fails_in_backend(self):
        with self.assertRaises(ProofGenerationFailed):
            await self.prove(5000, 6000)

    async def test_query_driven_proof(self):
        parsed = query.parse(
            json.dumps(
                {
                    "conditions": [
                        {
                            "identifier": "val",
                            "operation": "IN",
                            "value": {"from": "1000", "to": "2000"},
                        }
                    ],
                    "options": {
                        "expiredAtLowerBound": str(self.now + DAY),
                        "externalNullifier": "42",
                        "equalCheckId": "1",
                        "pseudonym": "0",
                    },
                }
            )
        )
        proof = await self.holder.prove(
            self.commitment,
            self.credential,
            parsed.options,
            ProofGadgets(SCALAR.type_id),
            query.to_statements(self.credential.type, parsed),
        )
        verified = await self.verifier.check(
            proof, self.context, ISSUER_ID, SCALAR.type_id
        )
        assert verified.outputs == (1000, 2000)
        assert verified.id_equals
        assert verified.id_checked_against == 1


class TestRevocationProtocol(IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.now = int(time.time())
        self.backend = InMemoryProvingBackend()
        self.registry = InMemoryRegistry()
        type_id = compute_type_id(
            "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4", "RevocableScore"
        )
        self.spec = TypeSpec(
            type_id=type_id,
            name="RevocableScore",
            definition="score:uint<64>;@revocable(16)",
        )
        self.registry.register_type(self.spec)
        self.cred_type = create_type_from_spec(self.spec)
        compiled = await setup_type(
            self.cred_type, InMemoryCircuitCompiler(self.backend)
        )
        self.registry.set_verifier(type_id, compiled.verifying_key)

        self.issuer = Issuer(Ed25519Signer.generate(), ISSUER_ID, chain_id=1)
        self.registry.set_public_key(ISSUER_ID, self.issuer.key_id)
        self.holder = Holder(self.backend)
        self.verifier = Verifier(self.backend, self.registry)
        self.tree = RevocationTree(16)

        self.commitment = self.holder.create_identity_slice().commitment
        self.context = compute_context_id("context")
        self.credential = Credential.create(
            self.cred_type, self.context, 1, {"score": 77}
        )
        self.issuer.sign(self.credential, 100, self.now + 7 * DAY, self.commitment)

    async def prove(self):
        return await self.holder.prove_with_tree(
            self.commitment,
            self.credential,
            ProofOptions(expired_at_lower_bound=self.now),
            ProofGadgets(self.spec.type_id),
            [],
            self.tree,
        )

    def publish(self, root):
        self.registry.publish_revocation_root(
            self.spec.type_id, ISSUER_ID, root, self.now
        )

    async def test_revoke_and_restore(self):
        self.publish(self.tree.root())
        proof = await self.prove()
        await self.verifier.check(
            proof, self.context, ISSUER_ID, self.spec.type_id, now=self.now
        )

        self.publish(self.issuer.revoke(self.tree, 100))
        with self.assertRaises(SignatureRevoked):
            await self.prove()

        self.publish(self.issuer.unrevoke(self.tree, 100))
        proof = await self.prove()
        verified = await self.verifier.check(
            proof, self.context, ISSUER_ID, self.spec.type_id, now=self.now
        )
        assert verified.revocation_root == self.tree.root()
        assert verified.outputs == (0, (1 << 64) - 1)

    async def test_other_revocations_do_not_block(self):
        for sig_id in (1, 2, 3, 99, 101):
            self.issuer.revoke(self.tree, sig_id)
        self.publish(self.tree.root())
        proof = await self.prove()
        verified = await self.verifier.check(
            proof, self.context, ISSUER_ID, self.spec.type_id, now=self.now
        )
        assert verified.revocation_root == self.tree.root()

    async def test_parse_type_matches_registry(self):
        assert self.cred_type == parse_cred_type(self.spec.definition).with_type_id(
            self.spec.type_id
        )
