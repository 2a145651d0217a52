"""Merkle commitments over the audit trail.

Leaves are audit entry hashes in log order. Order is part of the
commitment: two logs holding the same entries in a different sequence
produce different roots. An odd node at any level is paired with itself.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass


NULL_ROOT = "sha256:" + hashlib.sha256(b"").hexdigest()


@dataclass(frozen=True)
class MerkleProof:
    """Inclusion proof for the leaf at ``index``."""
    leaf_hash: str
    index: int
    path: list[tuple[str, str]]  # (sibling_hash, "L" | "R")
    root: str


class MerkleTree:
    """An ordered SHA-256 Merkle tree.

    Usage:
        tree = MerkleTree()
        tree.add_leaf(entry.entry_hash)
        root = tree.compute_root()
        proof = tree.inclusion_proof(0)
        assert verify_proof(proof)
    """

    def __init__(self) -> None:
        self._leaves: list[str] = []
        self._levels: list[list[str]] = []

    def add_leaf(self, leaf_hash: str) -> None:
        if self._levels:
            raise RuntimeError("Tree already computed. Create a new tree.")
        self._leaves.append(leaf_hash)

    @property
    def leaf_count(self) -> int:
        return len(self._leaves)

    def compute_root(self) -> str:
        if not self._leaves:
            return NULL_ROOT
        if not self._levels:
            level = [_strip(leaf) for leaf in self._leaves]
            self._levels = [level]
            while len(level) > 1:
                level = [
                    _hash_pair(level[i], level[i + 1] if i + 1 < len(level) else level[i])
                    for i in range(0, len(level), 2)
                ]
                self._levels.append(level)
        return f"sha256:{self._levels[-1][0]}"

    def inclusion_proof(self, index: int) -> MerkleProof:
        """Proof that the leaf at ``index`` is committed by the root."""
        if not 0 <= index < len(self._leaves):
            raise IndexError(f"No leaf at index {index}")
        root = self.compute_root()

        path: list[tuple[str, str]] = []
        position = index
        for level in self._levels[:-1]:
            if position % 2 == 0:
                sibling = level[position + 1] if position + 1 < len(level) else level[position]
                path.append((sibling, "R"))
            else:
                path.append((level[position - 1], "L"))
            position //= 2

        return MerkleProof(
            leaf_hash=self._leaves[index], index=index, path=path, root=root,
        )


def verify_proof(proof: MerkleProof) -> bool:
    """Recompute the root from a proof and compare."""
    current = _strip(proof.leaf_hash)
    for sibling, side in proof.path:
        current = _hash_pair(sibling, current) if side == "L" else _hash_pair(current, sibling)
    return f"sha256:{current}" == proof.root


def _strip(value: str) -> str:
    return value.removeprefix("sha256:")


def _hash_pair(left: str, right: str) -> str:
    return hashlib.sha256(f"{left}{right}".encode("utf-8")).hexdigest()
