# kernels/plans.py
"""
Per-node sweep steps for the four structural variants.

Every node of every structure factors its local operator as

    QL . Lop . D . Rop . QR

acting on the (redundant, skeleton) rows of the node, where

    QR  : x[sk] += TR x[rd]                     (interpolation, right side)
    Rop : x[rd]  = R x[rd][perm_r] + RC x[sk]   (upper / right factor)
    D   : x[rd]  = D x[rd]                      (block diagonal, may be absent)
    Lop : x[sk] += LC x[rd]; x[rd][perm_l] = L x[rd]
    QL  : x[rd] += TL x[sk]                     (interpolation, left side)

A structure only has to say how its stored blocks fill these slots for the
untransposed operator. The conjugate-transposed operator of a general or
symmetric factorization is the adjoint step (Rop and Lop trade places);
Hermitian and positive-definite factorizations reuse the untransposed step.
"""
from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

import numpy as np

from core.factorization import Factorization, FactorNode
from core.structure import Structure, Transpose
from kernels.blocks import BlockView, DenseView, TriangularView, dense, triangular, view


@dataclass(frozen=True, slots=True)
class NodeStep:
    sk: np.ndarray
    rd: np.ndarray
    TR: Optional[BlockView]
    R: Optional[TriangularView]
    perm_r: Optional[np.ndarray]
    RC: Optional[BlockView]
    D: Optional[DenseView]
    LC: Optional[BlockView]
    L: Optional[TriangularView]
    perm_l: Optional[np.ndarray]
    TL: Optional[BlockView]

    @property
    def H(self) -> "NodeStep":
        """Step of the conjugate-transposed local operator."""
        return NodeStep(
            sk=self.sk, rd=self.rd,
            TR=_adj(self.TL), R=_adj(self.L), perm_r=self.perm_l, RC=_adj(self.LC),
            D=_adj(self.D),
            LC=_adj(self.RC), L=_adj(self.R), perm_l=self.perm_r, TL=_adj(self.TR),
        )


def _adj(op):
    return None if op is None else op.H


# ----------------------------------------------------------------------
# Structure specific steps for the untransposed operator
# ----------------------------------------------------------------------
def _general_step(node: FactorNode) -> NodeStep:
    # rows[perm] of the redundant block = L U
    return NodeStep(
        sk=node.skeleton, rd=node.redundant,
        TR=view(node.T),
        R=triangular(node.U, lower=False), perm_r=None, RC=view(node.G),
        D=None,
        LC=view(node.E), L=triangular(node.L, lower=True), perm_l=node.perm,
        TL=view(node.T, trans=True, conj=True),
    )


def _symmetric_step(node: FactorNode) -> NodeStep:
    if node.G is not None:
        # unsymmetric LU storage of a symmetric operator
        return replace(_general_step(node), TL=view(node.T, trans=True))
    # rows/cols[perm] of the redundant block = L D L^T
    return NodeStep(
        sk=node.skeleton, rd=node.redundant,
        TR=view(node.T),
        R=triangular(node.L, lower=True, trans=True), perm_r=node.perm,
        RC=view(node.E, trans=True),
        D=dense(node.U),
        LC=view(node.E), L=triangular(node.L, lower=True), perm_l=node.perm,
        TL=view(node.T, trans=True),
    )


def _hermitian_step(node: FactorNode) -> NodeStep:
    # rows/cols[perm] of the redundant block = L D L^H
    return NodeStep(
        sk=node.skeleton, rd=node.redundant,
        TR=view(node.T),
        R=triangular(node.L, lower=True, trans=True, conj=True), perm_r=node.perm,
        RC=view(node.E, trans=True, conj=True),
        D=dense(node.U),
        LC=view(node.E), L=triangular(node.L, lower=True), perm_l=node.perm,
        TL=view(node.T, trans=True, conj=True),
    )


def _posdef_step(node: FactorNode) -> NodeStep:
    # redundant block = L L^H
    return NodeStep(
        sk=node.skeleton, rd=node.redundant,
        TR=view(node.T),
        R=triangular(node.L, lower=True, trans=True, conj=True), perm_r=None,
        RC=view(node.E, trans=True, conj=True),
        D=None,
        LC=view(node.E), L=triangular(node.L, lower=True), perm_l=None,
        TL=view(node.T, trans=True, conj=True),
    )


_STEP_BUILDERS: Dict[Structure, Callable[[FactorNode], NodeStep]] = {
    Structure.GENERAL: _general_step,
    Structure.SYMMETRIC: _symmetric_step,
    Structure.HERMITIAN: _hermitian_step,
    Structure.POSITIVE_DEFINITE: _posdef_step,
}


def node_step(structure: Structure, node: FactorNode, adjoint: bool = False) -> NodeStep:
    step = _STEP_BUILDERS[structure](node)
    if adjoint and not structure.self_adjoint:
        step = step.H
    return step


def sweep_plan(F: Factorization, trans: Transpose) -> List[NodeStep]:
    """
    Steps for ``op(F)`` with ``trans`` in {NONE, CONJUGATE}, in elimination order.
    TRANSPOSE never reaches this level; the dispatcher rewrites it by conjugation.
    """
    if trans is Transpose.TRANSPOSE:
        raise ValueError("TRANSPOSE must be resolved by conjugation before planning")
    adjoint = trans is Transpose.CONJUGATE
    return [node_step(F.structure, node, adjoint) for node in F.nodes]
