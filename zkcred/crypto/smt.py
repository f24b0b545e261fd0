"""Sparse Merkle tree of revoked signature ids.

The tree follows the compressed layout used by iden3 circuits: a leaf sits at
the first level where it is alone in its subtree, path bits are taken from the
key starting at the least significant bit, and

    leaf   = H(key, value, 1)
    middle = H(left, right)
    empty  = 0

Every revoked signature id is stored with value 1.
"""

import logging
import threading
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Sequence, Set, Tuple

from marshmallow import EXCLUDE, fields

from ..core.error import InvalidSignatureID, SignatureRevoked
from ..models.base import BaseModel, BaseModelSchema
from ..models.valid import BigIntStr
from .field import ensure_prepared, field_hash

LOGGER = logging.getLogger(__name__)

MIN_TREE_HEIGHT = 2
MAX_TREE_HEIGHT = 248

EMPTY = 0
REVOKED = 1

# proof function selector of iden3 circuits
FNC_INCLUSION = 0
FNC_EXCLUSION = 1


def _bit(key: int, level: int) -> int:
    return (key >> level) & 1


def leaf_hash(key: int, value: int) -> int:
    """Hash of a leaf node."""
    return field_hash([key, value, 1])


def middle_hash(left: int, right: int) -> int:
    """Hash of a middle node."""
    return field_hash([left, right])


class SMTProof(BaseModel):
    """A (non-)membership proof against one tree root, in circuit input form."""

    class Meta:
        """SMTProof metadata."""

        schema_class = "SMTProofSchema"
        repr_exclude = ["_frozen"]

    def __init__(
        self,
        *,
        root: int,
        old_key: int,
        old_value: int,
        is_old0: bool,
        key: int,
        value: int,
        fnc: int,
        siblings: Sequence[int],
    ):
        """Initialize the proof."""
        super().__init__()
        object.__setattr__(self, "_frozen", False)
        self.root = root
        self.old_key = old_key
        self.old_value = old_value
        self.is_old0 = is_old0
        self.key = key
        self.value = value
        self.fnc = fnc
        self.siblings = tuple(siblings)
        self._frozen = True

    def __setattr__(self, name, value):
        """Refuse modification once constructed."""
        if getattr(self, "_frozen", False):
            raise AttributeError(f"{self.__class__.__name__} is immutable")
        object.__setattr__(self, name, value)

    @property
    def height(self) -> int:
        """Accessor for the height of the tree the proof was taken from."""
        return len(self.siblings)

    def to_circuit_input(self) -> Dict[str, object]:
        """Render the revocation inputs of the proving circuit."""
        return {
            "sig_revocation_smt_root": self.root,
            "sig_revocation_smt_old_key": self.old_key,
            "sig_revocation_smt_old_value": self.old_value,
            "sig_revocation_smt_is_old0": 1 if self.is_old0 else 0,
            "sig_revocation_smt_value": self.value,
            "sig_revocation_smt_siblings": list(self.siblings),
        }


class SMTProofSchema(BaseModelSchema):
    """SMTProof schema."""

    class Meta:
        """SMTProofSchema metadata."""

        model_class = SMTProof
        unknown = EXCLUDE

    root = BigIntStr(required=True)
    old_key = BigIntStr(required=True, data_key="oldKey")
    old_value = BigIntStr(required=True, data_key="oldValue")
    is_old0 = fields.Bool(required=True, data_key="isOld0")
    key = BigIntStr(required=True)
    value = BigIntStr(required=True)
    fnc = fields.Int(required=True)
    siblings = fields.List(BigIntStr(), required=True)


class _Leaf(NamedTuple):
    key: int


class _Middle(NamedTuple):
    left: int
    right: int


class _Snapshot(NamedTuple):
    root: int
    leaves: FrozenSet[int]


class RevocationTree:
    """
    Revocation registry of one credential type and issuer.

    Writers are serialized by a lock. Each mutation publishes a new immutable
    snapshot of (root, leaves), then drops the nodes only the previous root
    reached, so the node store holds the current tree alone. A reader walks
    from the snapshot it took; if a writer prunes a node under it, the reader
    starts over from the newer snapshot.
    """

    def __init__(self, height: int):
        """
        Initialize an empty tree.

        Args:
            height: Number of levels, signature ids range over `[1, 2^height)`

        """
        if (
            isinstance(height, bool)
            or not isinstance(height, int)
            or not MIN_TREE_HEIGHT <= height <= MAX_TREE_HEIGHT
        ):
            raise ValueError(
                f"Tree height must be in [{MIN_TREE_HEIGHT}, {MAX_TREE_HEIGHT}]"
            )
        self._height = height
        self._lock = threading.Lock()
        self._nodes: Dict[int, object] = {}
        self._snapshot = _Snapshot(EMPTY, frozenset())

    @classmethod
    def from_leaves(cls, height: int, leaves: Iterable[int]) -> "RevocationTree":
        """Build a tree holding the given revoked signature ids."""
        tree = cls(height)
        for sig_id in sorted(set(leaves)):
            tree.add(sig_id)
        return tree

    @property
    def height(self) -> int:
        """Accessor for the tree height."""
        return self._height

    @property
    def leaves(self) -> Tuple[int, ...]:
        """Accessor for the revoked signature ids, ascending."""
        return tuple(sorted(self._snapshot.leaves))

    def root(self) -> int:
        """Fetch the current root."""
        return self._snapshot.root

    def contains(self, sig_id: int) -> bool:
        """Check whether a signature id is revoked."""
        return sig_id in self._snapshot.leaves

    def __contains__(self, sig_id) -> bool:
        """Define 'in' operator."""
        return self.contains(sig_id)

    def __len__(self) -> int:
        """Count the revoked signature ids."""
        return len(self._snapshot.leaves)

    def _check_key(self, sig_id: int, minimum: int):
        if isinstance(sig_id, bool) or not isinstance(sig_id, int):
            raise InvalidSignatureID(f"Signature ID must be an integer: {sig_id!r}")
        if sig_id < minimum or sig_id >= (1 << self._height):
            raise InvalidSignatureID(
                f"Signature ID {sig_id} out of range for tree of height {self._height}"
            )

    def _put(self, node) -> int:
        if isinstance(node, _Leaf):
            digest = leaf_hash(node.key, REVOKED)
        else:
            digest = middle_hash(node.left, node.right)
        self._nodes.setdefault(digest, node)
        return digest

    def _is_leaf(self, digest: int) -> bool:
        return digest != EMPTY and isinstance(self._nodes[digest], _Leaf)

    def _join(self, level: int, key: int, own: int, other: int) -> int:
        """Place `own` on the side of `key` at `level` and `other` opposite."""
        if _bit(key, level):
            return self._put(_Middle(other, own))
        return self._put(_Middle(own, other))

    def _push_leaf(self, old: int, old_key: int, new_key: int, level: int) -> int:
        if level >= self._height:
            raise InvalidSignatureID(f"Tree too shallow to hold key {new_key}")
        if _bit(old_key, level) == _bit(new_key, level):
            child = self._push_leaf(old, old_key, new_key, level + 1)
            return self._join(level, new_key, child, EMPTY)
        return self._join(level, new_key, self._put(_Leaf(new_key)), old)

    def _insert(self, digest: int, key: int, level: int) -> int:
        if digest == EMPTY:
            return self._put(_Leaf(key))
        node = self._nodes[digest]
        if isinstance(node, _Leaf):
            if node.key == key:
                return digest
            return self._push_leaf(digest, node.key, key, level)
        if _bit(key, level):
            return self._put(_Middle(node.left, self._insert(node.right, key, level + 1)))
        return self._put(_Middle(self._insert(node.left, key, level + 1), node.right))

    def _remove(self, digest: int, key: int, level: int) -> int:
        if digest == EMPTY:
            return EMPTY
        node = self._nodes[digest]
        if isinstance(node, _Leaf):
            return EMPTY if node.key == key else digest
        left, right = node.left, node.right
        if _bit(key, level):
            right = self._remove(right, key, level + 1)
        else:
            left = self._remove(left, key, level + 1)
        # a lone leaf moves up to the first level where it is alone
        if left == EMPTY and (right == EMPTY or self._is_leaf(right)):
            return right
        if right == EMPTY and self._is_leaf(left):
            return left
        return self._put(_Middle(left, right))

    def _path(self, root: int, key: int) -> Set[int]:
        """Nodes on the path of `key` from `root`, and their siblings."""
        digests = set()
        digest = root
        level = 0
        while digest != EMPTY:
            digests.add(digest)
            node = self._nodes[digest]
            if isinstance(node, _Leaf):
                break
            if _bit(key, level):
                digests.add(node.left)
                digest = node.right
            else:
                digests.add(node.right)
                digest = node.left
            level += 1
        return digests

    def _prune(self, old_root: int, new_root: int, key: int):
        # a mutation only rewrites the path of its key; leaves it displaces
        # stay beside the new path
        for digest in self._path(old_root, key) - self._path(new_root, key):
            self._nodes.pop(digest, None)

    def add(self, sig_id: int):
        """
        Revoke a signature id. Adding an already revoked id is a no-op.

        Raises:
            InvalidSignatureID: If `sig_id` is not in `[1, 2^height)`

        """
        self._check_key(sig_id, 1)
        ensure_prepared()
        with self._lock:
            snapshot = self._snapshot
            if sig_id in snapshot.leaves:
                return
            root = self._insert(snapshot.root, sig_id, 0)
            self._snapshot = _Snapshot(root, snapshot.leaves | {sig_id})
            self._prune(snapshot.root, root, sig_id)
        LOGGER.debug("Revoked signature %s, root %s", sig_id, root)

    def delete(self, sig_id: int):
        """Un-revoke a signature id, restoring the root it would have without it."""
        self._check_key(sig_id, 1)
        ensure_prepared()
        with self._lock:
            snapshot = self._snapshot
            if sig_id not in snapshot.leaves:
                return
            root = self._remove(snapshot.root, sig_id, 0)
            self._snapshot = _Snapshot(root, snapshot.leaves - {sig_id})
            self._prune(snapshot.root, root, sig_id)
        LOGGER.debug("Unrevoked signature %s, root %s", sig_id, root)

    def generate_unrevoked_proof(self, sig_id: int) -> SMTProof:
        """
        Prove that a signature id is not revoked.

        Raises:
            InvalidSignatureID: If `sig_id` is not in `[0, 2^height)`
            SignatureRevoked: If `sig_id` is in the tree

        """
        self._check_key(sig_id, 0)
        ensure_prepared()
        while True:
            snapshot = self._snapshot
            try:
                return self._unrevoked_proof(snapshot, sig_id)
            except KeyError:
                # a node of a superseded snapshot was pruned by a writer
                if self._snapshot is snapshot:
                    raise

    def _unrevoked_proof(self, snapshot: _Snapshot, sig_id: int) -> SMTProof:
        siblings: List[int] = []
        digest = snapshot.root
        old_key = old_value = EMPTY
        is_old0 = True
        for level in range(self._height + 1):
            if digest == EMPTY:
                break
            node = self._nodes[digest]
            if isinstance(node, _Leaf):
                if node.key == sig_id:
                    raise SignatureRevoked(f"Signature {sig_id} is revoked")
                old_key, old_value, is_old0 = node.key, REVOKED, False
                break
            if _bit(sig_id, level):
                siblings.append(node.left)
                digest = node.right
            else:
                siblings.append(node.right)
                digest = node.left
        siblings.extend([EMPTY] * (self._height - len(siblings)))
        return SMTProof(
            root=snapshot.root,
            old_key=old_key,
            old_value=old_value,
            is_old0=is_old0,
            key=sig_id,
            value=old_value,
            fnc=FNC_EXCLUSION,
            siblings=siblings,
        )

    def verify_proof(self, proof: SMTProof) -> bool:
        """Re-derive the root from a proof's path. For tooling and tests."""
        return verify_smt_proof(proof, self._height)

    def __repr__(self) -> str:
        """Human readable representation of this instance."""
        return (
            f"<{self.__class__.__name__} height={self._height} "
            f"leaves={len(self)} root={self.root()}>"
        )


def verify_smt_proof(proof: SMTProof, height: int = None) -> bool:
    """
    Check a proof by recomputing its root.

    Args:
        proof: The proof to check
        height: The expected tree height, if known

    Returns:
        True if the path hashes up to `proof.root`

    """
    ensure_prepared()
    siblings = list(proof.siblings)
    if height is not None and len(siblings) != height:
        return False
    depth = 0
    for index, sibling in enumerate(siblings):
        if sibling != EMPTY:
            depth = index + 1

    mask = (1 << depth) - 1
    if proof.fnc == FNC_INCLUSION:
        digest = leaf_hash(proof.key, proof.value)
    elif proof.fnc == FNC_EXCLUSION:
        if proof.is_old0:
            digest = EMPTY
        else:
            if proof.old_key == proof.key or (proof.old_key & mask) != (
                proof.key & mask
            ):
                return False
            digest = leaf_hash(proof.old_key, proof.old_value)
    else:
        return False

    for level in reversed(range(depth)):
        if _bit(proof.key, level):
            digest = middle_hash(siblings[level], digest)
        else:
            digest = middle_hash(digest, siblings[level])
    return digest == proof.root
