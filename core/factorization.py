# core/factorization.py
"""
Read-only containers for a hierarchical factorization: one FactorNode per
block elimination step, kept in elimination order (leaves to root), and the
Factorization that owns them together with the tree level boundaries.

Nothing in the apply engine mutates these objects; every kernel reads the
factor blocks and writes only into its own working buffer.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

from core.exceptions import InvalidArgumentError
from core.structure import Structure


def _as_index(values) -> np.ndarray:
    return np.asarray(values if values is not None else [], dtype=np.intp).ravel()


def _as_block(values, name: str, shape: Tuple[int, int]) -> Optional[np.ndarray]:
    if values is None:
        return None
    arr = np.asarray(values)
    if arr.ndim != 2 or arr.shape != shape:
        raise InvalidArgumentError(
            f"Factor block '{name}' has shape {arr.shape}, expected {shape}"
        )
    return arr


@dataclass(frozen=True, slots=True, eq=False)
class FactorNode:
    """
    One step of block elimination.

    ``skeleton`` dofs are passed on to later nodes, ``redundant`` dofs are
    eliminated here. ``L``/``U`` hold the local triangular (or LDL diagonal)
    factors of the redundant block, ``perm`` its pivoting, ``E``/``G`` the
    couplings between skeleton and redundant rows and ``T`` the interpolation
    matrix of a compressed (skeletonized) step.
    """
    skeleton: np.ndarray
    redundant: np.ndarray
    L: Optional[np.ndarray] = None
    U: Optional[np.ndarray] = None
    perm: Optional[np.ndarray] = None
    E: Optional[np.ndarray] = None
    G: Optional[np.ndarray] = None
    T: Optional[np.ndarray] = None

    def __post_init__(self):
        sk = _as_index(self.skeleton)
        rd = _as_index(self.redundant)
        ns, nr = sk.size, rd.size
        object.__setattr__(self, "skeleton", sk)
        object.__setattr__(self, "redundant", rd)

        if nr and self.L is None:
            raise InvalidArgumentError("Factor node with redundant dofs requires an 'L' factor")
        object.__setattr__(self, "L", _as_block(self.L, "L", (nr, nr)))
        object.__setattr__(self, "U", _as_block(self.U, "U", (nr, nr)))
        object.__setattr__(self, "E", _as_block(self.E, "E", (ns, nr)))
        object.__setattr__(self, "G", _as_block(self.G, "G", (nr, ns)))
        object.__setattr__(self, "T", _as_block(self.T, "T", (ns, nr)))

        if self.perm is not None:
            perm = _as_index(self.perm)
            if perm.size != nr or not np.array_equal(np.sort(perm), np.arange(nr)):
                raise InvalidArgumentError(
                    f"'perm' must be a permutation of range({nr}), got {perm.tolist()}"
                )
            object.__setattr__(self, "perm", perm)

        if np.intersect1d(sk, rd).size:
            raise InvalidArgumentError("Skeleton and redundant index sets overlap")
        if np.unique(sk).size != ns or np.unique(rd).size != nr:
            raise InvalidArgumentError("Skeleton and redundant index sets must not repeat dofs")

    @property
    def n_skeleton(self) -> int:
        return self.skeleton.size

    @property
    def n_redundant(self) -> int:
        return self.redundant.size

    @property
    def local_indices(self) -> np.ndarray:
        """The node's full local index set, skeleton first."""
        return np.concatenate([self.skeleton, self.redundant])

    def blocks(self):
        return [b for b in (self.L, self.U, self.E, self.G, self.T) if b is not None]

    def __repr__(self) -> str:
        return (f"<FactorNode sk={self.n_skeleton} rd={self.n_redundant} "
                f"interp={'yes' if self.T is not None else 'no'}>")


@dataclass(frozen=True, eq=False)
class Factorization:
    """
    A precomputed hierarchical factorization of a ``size x size`` operator.

    Attributes:
        size: Number of degrees of freedom.
        structure: General, symmetric, Hermitian or positive-definite tag.
        nodes: Factor nodes in elimination order.
        level_ptr: Offsets into ``nodes`` delimiting the tree levels. Defaults
            to a single level holding every node.
    """
    size: int
    structure: Structure
    nodes: Tuple[FactorNode, ...]
    level_ptr: Tuple[int, ...] = ()
    dtype: np.dtype = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "size", int(self.size))
        object.__setattr__(self, "structure", Structure.parse(self.structure))
        object.__setattr__(self, "nodes", tuple(self.nodes))
        if self.size < 0:
            raise InvalidArgumentError(f"Factorization size must be non-negative, got {self.size}")

        ptr = tuple(int(p) for p in self.level_ptr) or (0, len(self.nodes))
        if ptr[0] != 0 or ptr[-1] != len(self.nodes) or any(b < a for a, b in zip(ptr, ptr[1:])):
            raise InvalidArgumentError(
                f"level_ptr {list(ptr)} must increase from 0 to {len(self.nodes)}"
            )
        object.__setattr__(self, "level_ptr", ptr)

        for i, node in enumerate(self.nodes):
            self._check_structure(i, node)
        self._check_elimination_order()

        dtypes = {b.dtype for node in self.nodes for b in node.blocks()}
        object.__setattr__(self, "dtype", np.result_type(np.float64, *dtypes))

    def _check_structure(self, i: int, node: FactorNode) -> None:
        s = self.structure
        if not node.n_redundant:
            return
        if s is Structure.POSITIVE_DEFINITE:
            if node.U is not None or node.G is not None or node.perm is not None:
                raise InvalidArgumentError(
                    f"Node {i}: positive-definite nodes carry only 'L', 'E' and 'T'"
                )
            return
        if node.U is None:
            raise InvalidArgumentError(f"Node {i}: structure '{s.value}' requires a 'U' factor")
        if s is Structure.HERMITIAN and node.G is not None:
            raise InvalidArgumentError(f"Node {i}: Hermitian nodes must not carry 'G'")

    def _check_elimination_order(self) -> None:
        eliminated = np.zeros(self.size, dtype=bool)
        for i, node in enumerate(self.nodes):
            local = node.local_indices
            if local.size and (local.min() < 0 or local.max() >= self.size):
                raise InvalidArgumentError(
                    f"Node {i} references dofs outside [0, {self.size})"
                )
            if eliminated[local].any():
                bad = local[eliminated[local]].tolist()
                raise InvalidArgumentError(
                    f"Node {i} references dofs {bad} already eliminated by an earlier node"
                )
            eliminated[node.redundant] = True

    # ------------------------------------------------------------------
    # Level helpers
    # ------------------------------------------------------------------
    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_levels(self) -> int:
        return len(self.level_ptr) - 1

    @property
    def is_complex(self) -> bool:
        return np.issubdtype(self.dtype, np.complexfloating)

    def level_of(self, node: int) -> int:
        if not 0 <= node < self.n_nodes:
            raise InvalidArgumentError(f"Node {node} out of range [0, {self.n_nodes})")
        return int(np.searchsorted(self.level_ptr, node, side="right")) - 1

    def nodes_in_level(self, level: int) -> range:
        if not 0 <= level < self.n_levels:
            raise InvalidArgumentError(f"Level {level} out of range [0, {self.n_levels})")
        return range(self.level_ptr[level], self.level_ptr[level + 1])

    def __repr__(self) -> str:
        return (f"<Factorization size={self.size} structure={self.structure.value} "
                f"nodes={self.n_nodes} levels={self.n_levels}>")


def build_factorization(size: int, structure, nodes: Sequence, level_ptr: Sequence[int] = ()) -> Factorization:
    """
    Assemble a Factorization from node records given either as FactorNode
    instances or as mappings of FactorNode field names.
    """
    records = [n if isinstance(n, FactorNode) else FactorNode(**n) for n in nodes]
    return Factorization(size, structure, tuple(records), tuple(level_ptr))
