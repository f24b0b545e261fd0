import threading
from unittest import mock

import pytest

from ...core.error import InvalidSignatureID, NotPrepared, SignatureRevoked
from .. import field
from ..smt import (
    EMPTY,
    FNC_EXCLUSION,
    FNC_INCLUSION,
    REVOKED,
    RevocationTree,
    SMTProof,
    leaf_hash,
    middle_hash,
    verify_smt_proof,
)


@pytest.fixture()
def tree():
    tree = RevocationTree(16)
    for sig_id in (1, 2, 3):
        tree.add(sig_id)
    yield tree


class TestRevocationTree:
    def test_empty(self):
        tree = RevocationTree(16)
        assert tree.root() == EMPTY
        assert len(tree) == 0
        proof = tree.generate_unrevoked_proof(5)
        assert proof.is_old0
        assert proof.siblings == (EMPTY,) * 16
        assert tree.verify_proof(proof)

    def test_single_leaf_is_root(self):
        tree = RevocationTree(16)
        tree.add(5)
        assert tree.root() == leaf_hash(5, REVOKED)

    def test_layout(self, tree):
        # 2 is alone under bit0 == 0, 1 and 3 split at bit1
        left = leaf_hash(2, REVOKED)
        right = middle_hash(leaf_hash(1, REVOKED), leaf_hash(3, REVOKED))
        assert tree.root() == middle_hash(left, right)
        assert tree.leaves == (1, 2, 3)
        assert 2 in tree
        assert 4 not in tree

    def test_unrevoked_proof(self, tree):
        proof = tree.generate_unrevoked_proof(4)
        assert proof.old_key == 2
        assert proof.old_value == 1
        assert not proof.is_old0
        assert proof.key == 4
        assert proof.fnc == FNC_EXCLUSION
        assert proof.root == tree.root()
        assert len(proof.siblings) == 16
        assert proof.height == 16
        assert tree.verify_proof(proof)
        assert verify_smt_proof(proof, 16)
        assert not verify_smt_proof(proof, 17)

    def test_proof_through_middle(self, tree):
        proof = tree.generate_unrevoked_proof(7)
        assert proof.old_key == 3
        assert tree.verify_proof(proof)

    def test_revoked(self, tree):
        with pytest.raises(SignatureRevoked):
            tree.generate_unrevoked_proof(1)

    def test_add_idempotent(self, tree):
        root = tree.root()
        tree.add(2)
        assert tree.root() == root
        assert len(tree) == 3

    def test_delete_restores_root(self, tree):
        root = tree.root()
        tree.add(100)
        assert tree.root() != root
        tree.delete(100)
        assert tree.root() == root
        tree.delete(100)
        assert tree.root() == root

    def test_delete_collapses(self, tree):
        tree.delete(1)
        expected = RevocationTree.from_leaves(16, [2, 3])
        assert tree.root() == expected.root()
        tree.delete(2)
        tree.delete(3)
        assert tree.root() == EMPTY

    def test_order_independent(self):
        a = RevocationTree(16)
        b = RevocationTree(16)
        for sig_id in (9, 300, 17, 4):
            a.add(sig_id)
        for sig_id in (4, 17, 300, 9):
            b.add(sig_id)
        assert a.root() == b.root()

    def test_many(self):
        tree = RevocationTree.from_leaves(8, range(1, 256, 3))
        for sig_id in range(2, 256, 3):
            assert tree.verify_proof(tree.generate_unrevoked_proof(sig_id))

    def test_tampered_proofs(self, tree):
        proof = tree.generate_unrevoked_proof(4)
        fields = proof.serialize()
        fields["oldKey"] = "4"
        assert not verify_smt_proof(SMTProof.deserialize(fields))
        fields = proof.serialize()
        fields["root"] = "1"
        assert not verify_smt_proof(SMTProof.deserialize(fields))
        fields = proof.serialize()
        fields["fnc"] = 5
        assert not verify_smt_proof(SMTProof.deserialize(fields))

    def test_inclusion_proof(self):
        tree = RevocationTree(16)
        tree.add(5)
        proof = SMTProof(
            root=tree.root(),
            old_key=0,
            old_value=0,
            is_old0=True,
            key=5,
            value=REVOKED,
            fnc=FNC_INCLUSION,
            siblings=[EMPTY] * 16,
        )
        assert verify_smt_proof(proof)

    @pytest.mark.parametrize("sig_id", [0, -1, 1 << 16, True, "1"])
    def test_invalid_add(self, sig_id):
        with pytest.raises(InvalidSignatureID):
            RevocationTree(16).add(sig_id)

    def test_invalid_proof_key(self, tree):
        tree.generate_unrevoked_proof(0)
        with pytest.raises(InvalidSignatureID):
            tree.generate_unrevoked_proof(1 << 16)

    @pytest.mark.parametrize("height", [1, 249, True, "16"])
    def test_invalid_height(self, height):
        with pytest.raises(ValueError):
            RevocationTree(height)

    def test_not_prepared(self):
        tree = RevocationTree(16)
        field.reset()
        with pytest.raises(NotPrepared):
            tree.add(1)

    def test_nodes_pruned(self, tree):
        nodes = dict(tree._nodes)
        for _ in range(5):
            tree.add(100)
            tree.delete(100)
        assert tree._nodes == nodes

        tree.add(7)
        tree.add(64)
        for sig_id in (4, 5, 6, 8):
            assert tree.verify_proof(tree.generate_unrevoked_proof(sig_id))
        for sig_id in (1, 2, 3, 7, 64):
            tree.delete(sig_id)
        assert tree.root() == EMPTY
        assert tree._nodes == {}

    def test_proof_restarts_on_pruned_snapshot(self, tree):
        walk = tree._unrevoked_proof
        snapshots = []

        def racing_walk(snapshot, sig_id):
            snapshots.append(snapshot)
            if len(snapshots) == 1:
                tree.add(5)
                raise KeyError(snapshot.root)
            return walk(snapshot, sig_id)

        with mock.patch.object(tree, "_unrevoked_proof", racing_walk):
            proof = tree.generate_unrevoked_proof(4)
        assert len(snapshots) == 2
        assert proof.root == tree.root()
        assert tree.verify_proof(proof)

    def test_snapshot_reads_during_writes(self):
        tree = RevocationTree.from_leaves(16, range(1, 64, 2))
        errors = []

        def write():
            for sig_id in range(64, 200, 2):
                tree.add(sig_id)

        def read():
            for _ in range(50):
                proof = tree.generate_unrevoked_proof(2)
                if not verify_smt_proof(proof, 16):
                    errors.append(proof)

        threads = [threading.Thread(target=write), threading.Thread(target=read)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert not errors


class TestSMTProof:
    def test_immutable(self, tree):
        proof = tree.generate_unrevoked_proof(4)
        with pytest.raises(AttributeError):
            proof.root = 0

    def test_serde(self, tree):
        proof = tree.generate_unrevoked_proof(4)
        serialized = proof.serialize()
        assert serialized["oldKey"] == "2"
        assert serialized["isOld0"] is False
        assert len(serialized["siblings"]) == 16
        assert SMTProof.deserialize(serialized) == proof

    def test_circuit_input(self, tree):
        proof = tree.generate_unrevoked_proof(4)
        inputs = proof.to_circuit_input()
        assert inputs["sig_revocation_smt_root"] == tree.root()
        assert inputs["sig_revocation_smt_old_key"] == 2
        assert inputs["sig_revocation_smt_old_value"] == 1
        assert inputs["sig_revocation_smt_is_old0"] == 0
        assert inputs["sig_revocation_smt_value"] == 1
        assert len(inputs["sig_revocation_smt_siblings"]) == 16
