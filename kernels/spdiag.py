# kernels/spdiag.py
"""
Selected diagonal entries of a factorization or of its inverse.

Each requested block (a factor node) is processed on its own: the nodes that
can touch the block's dofs are swept over a small dense buffer seeded with the
identity on the block's local index set. The buffer is renumbered through one
arena array of length ``F.size`` that is rebound for every block, so no
full-size vector is ever allocated per block. The diagonal is recovered as
the column-wise bilinear form ``diag(Z^H Y)`` of the eliminated buffer ``Z``
and its diagonally scaled copy ``Y``.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from core.config import DEFAULT_CONFIG, EngineConfig
from core.elimination_tree import EliminationTree
from core.exceptions import InvalidArgumentError
from core.factorization import Factorization
from kernels.multiply import multiply_up
from kernels.plans import node_step
from kernels.solve import solve_up
from utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiagonalBlock:
    node: int
    visit: Tuple[int, ...]   # elimination order


class DiagonalSelection:
    """
    The blocks whose diagonal entries are wanted, each with the nodes that
    have to be visited to evaluate them. Build with one of the ``from_*``
    constructors.
    """
    def __init__(self, F: Factorization, nodes: Iterable[int] = (), untouched: Iterable[int] = (),
                 tree: Optional[EliminationTree] = None):
        self.size = F.size
        self.n_nodes = F.n_nodes
        tree = tree or EliminationTree(F)
        blocks: List[DiagonalBlock] = []
        for node in sorted({int(n) for n in nodes}):
            visit = tree.upward_closure(tree.subtree(node))
            blocks.append(DiagonalBlock(node, tuple(visit)))
        self.blocks: Tuple[DiagonalBlock, ...] = tuple(blocks)
        self.untouched = np.unique(np.asarray(list(untouched), dtype=np.intp))

    @classmethod
    def from_nodes(cls, F: Factorization, nodes: Iterable[int]) -> "DiagonalSelection":
        nodes = [int(n) for n in nodes]
        bad = [n for n in nodes if not 0 <= n < F.n_nodes]
        if bad:
            raise InvalidArgumentError(f"Nodes {bad} out of range [0, {F.n_nodes})")
        return cls(F, nodes)

    @classmethod
    def from_indices(cls, F: Factorization, dofs) -> "DiagonalSelection":
        """One block per home node of the requested dofs."""
        dofs = np.asarray(dofs, dtype=np.intp).ravel()
        tree = EliminationTree(F)
        owners = tree.home_nodes(dofs)
        return cls(F, owners[owners >= 0], dofs[owners < 0], tree=tree)

    @classmethod
    def from_level(cls, F: Factorization, level: int) -> "DiagonalSelection":
        return cls(F, F.nodes_in_level(level))

    @classmethod
    def full(cls, F: Factorization) -> "DiagonalSelection":
        return cls.from_indices(F, np.arange(F.size))

    def check(self, F: Factorization) -> None:
        if self.size != F.size or self.n_nodes != F.n_nodes:
            raise InvalidArgumentError(
                f"Selection built for size {self.size} / {self.n_nodes} nodes, "
                f"factorization has size {F.size} / {F.n_nodes} nodes"
            )

    def __len__(self) -> int:
        return len(self.blocks)

    def __repr__(self) -> str:
        return f"<DiagonalSelection blocks={len(self.blocks)} untouched={self.untouched.size}>"


def spdiag_kernel(F: Factorization, selection: DiagonalSelection, inverse: bool = False,
                  config: EngineConfig = DEFAULT_CONFIG) -> np.ndarray:
    """
    Diagonal entries of ``F`` (or ``F^-1`` when ``inverse``) on the dofs of
    every selected block; all other entries of the result are zero.
    """
    selfadj = F.structure.self_adjoint
    out = np.zeros(F.size, dtype=F.dtype)
    out[selection.untouched] = 1.0
    arena = np.full(F.size, -1, dtype=np.intp)

    for block in selection.blocks:
        nodes = [F.nodes[i] for i in block.visit]
        active = np.unique(np.concatenate([n.local_indices for n in nodes]))
        arena[active] = np.arange(active.size)

        slf = F.nodes[block.node].local_indices
        Y = np.zeros((active.size, slf.size), dtype=F.dtype)
        Y[arena[slf], np.arange(slf.size)] = 1.0
        Z = None if selfadj else Y.copy()
        logger.debug("spdiag block %d: %d nodes, buffer %s", block.node, len(nodes), Y.shape)

        # eliminate
        steps = []
        for node in nodes:
            sk, rd = arena[node.skeleton], arena[node.redundant]
            step = node_step(F.structure, node)
            steps.append((step, rd))
            if inverse:
                solve_up(step, Y, sk, rd, config, with_diag=False)
            else:
                multiply_up(step, Y, sk, rd, with_diag=False)
            if Z is not None:
                adj = node_step(F.structure, node, adjoint=True)
                if inverse:
                    solve_up(adj, Z, sk, rd, config, with_diag=False)
                else:
                    multiply_up(adj, Z, sk, rd, with_diag=False)
        if Z is None:
            Z = Y.copy()

        # diagonal scaling
        for step, rd in steps:
            if step.D is None or not rd.size:
                continue
            if inverse:
                Y[rd] = step.D.solve(Y[rd], config.pivot_tol, config.check_finite)
            else:
                Y[rd] = step.D @ Y[rd]

        out[slf] = np.einsum("ij,ij->j", Z.conj(), Y)
        arena[active] = -1
    return out
