from unittest import TestCase

from ...core.error import (
    AlreadySigned,
    InvalidSignatureID,
    NotPrepared,
    RangeError,
    SignatureRevoked,
)
from ...credential.cred_type import parse_cred_type
from ...credential.credential import Credential
from ...crypto import field
from ...crypto.signer import Ed25519Signer, VerificationStack
from ...crypto.smt import RevocationTree
from ..issuer import Issuer

SEED = "testseed000000000000000000000001"


class TestIssuer(TestCase):
    def setUp(self):
        self.signer = Ed25519Signer.generate(SEED)
        self.issuer = Issuer(self.signer, issuer_id=7, chain_id=1)
        self.cred_type = parse_cred_type("val:uint<248>;@revocable(8)").with_type_id(3)

    def credential(self):
        return Credential.create(self.cred_type, 5, 99, {"val": 1200})

    def test_sign(self):
        cred = self.credential()
        signature = self.issuer.sign(cred, 255, 2000000000, 1234)
        metadata = signature.metadata
        assert metadata.verification_stack == int(VerificationStack.BABYZK)
        assert metadata.signature_id == 255
        assert metadata.expired_at == 2000000000
        assert metadata.identity_commitment == 1234
        assert metadata.chain_id == 1
        assert metadata.public_key == self.signer.public_key
        assert cred.verify_signature()

    def test_sign_deterministic(self):
        a, b = self.credential(), self.credential()
        self.issuer.sign(a, 5, 2000000000, 1234)
        self.issuer.sign(b, 5, 2000000000, 1234)
        assert a.signature.signature == b.signature.signature

    def test_already_signed(self):
        cred = self.credential()
        self.issuer.sign(cred, 1, 2000000000, 1234)
        with self.assertRaises(AlreadySigned):
            self.issuer.sign(cred, 2, 2000000000, 1234)

    def test_invalid_signature_id(self):
        with self.assertRaises(InvalidSignatureID):
            self.issuer.sign(self.credential(), 256, 2000000000, 1234)
        with self.assertRaises(InvalidSignatureID):
            self.issuer.sign(self.credential(), 0, 2000000000, 1234)
        for sig_id in ("1", 1.0, True):
            with self.assertRaises(InvalidSignatureID):
                self.issuer.sign(self.credential(), sig_id, 2000000000, 1234)

    def test_unbounded_signature_id(self):
        cred_type = parse_cred_type("val:uint<248>").with_type_id(3)
        cred = Credential.create(cred_type, 5, 99, {"val": 1})
        self.issuer.sign(cred, 1 << 200, 2000000000, 1234)
        assert cred.signature.metadata.signature_id == 1 << 200

    def test_range(self):
        with self.assertRaises(RangeError):
            self.issuer.sign(self.credential(), 1, -1, 1234)
        with self.assertRaises(RangeError):
            self.issuer.sign(self.credential(), 1, 2000000000, 1 << 256)
        with self.assertRaises(RangeError):
            self.issuer.sign(self.credential(), 1, "2000000000", 1234)
        with self.assertRaises(RangeError):
            self.issuer.sign(self.credential(), 1, 2000000000, 1234.5)

    def test_not_prepared(self):
        cred = self.credential()
        field.reset()
        with self.assertRaises(NotPrepared):
            self.issuer.sign(cred, 1, 2000000000, 1234)

    def test_revoke_unrevoke(self):
        tree = RevocationTree(8)
        empty = tree.root()
        root = self.issuer.revoke(tree, 100)
        assert root == tree.root() != empty
        assert 100 in tree
        with self.assertRaises(SignatureRevoked):
            tree.generate_unrevoked_proof(100)
        assert self.issuer.unrevoke(tree, 100) == empty
        assert tree.generate_unrevoked_proof(100).root == empty

    def test_repr(self):
        assert "issuer_id=7" in repr(self.issuer)
        assert self.signer.verkey in repr(self.signer)
