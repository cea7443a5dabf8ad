# kernels/multiply.py
"""
Forward application of a factorization: one upward sweep over the nodes in
elimination order followed by one downward sweep in reverse order.
"""
from __future__ import annotations
from typing import Optional, Sequence

import numpy as np

from kernels.plans import NodeStep
from utils.logging_config import get_logger

logger = get_logger(__name__)


def rows(rd: np.ndarray, perm: Optional[np.ndarray]) -> np.ndarray:
    return rd if perm is None else rd[perm]


def multiply_up(step: NodeStep, Y: np.ndarray, sk: np.ndarray, rd: np.ndarray,
                with_diag: bool = True) -> None:
    """Apply ``D . Rop . QR`` of one node in place."""
    if not rd.size:
        return
    if step.TR is not None:
        Y[sk] += step.TR @ Y[rd]
    Y[rd] = step.R @ Y[rows(rd, step.perm_r)]
    if step.RC is not None:
        Y[rd] += step.RC @ Y[sk]
    if with_diag and step.D is not None:
        Y[rd] = step.D @ Y[rd]


def multiply_down(step: NodeStep, Y: np.ndarray, sk: np.ndarray, rd: np.ndarray) -> None:
    """Apply ``QL . Lop`` of one node in place."""
    if not rd.size:
        return
    if step.LC is not None:
        Y[sk] += step.LC @ Y[rd]
    Y[rows(rd, step.perm_l)] = step.L @ Y[rd]
    if step.TL is not None:
        Y[rd] += step.TL @ Y[sk]


def upward_sweep(steps: Sequence[NodeStep], Y: np.ndarray) -> np.ndarray:
    for step in steps:
        multiply_up(step, Y, step.sk, step.rd)
    return Y


def downward_sweep(steps: Sequence[NodeStep], Y: np.ndarray) -> np.ndarray:
    for step in reversed(steps):
        multiply_down(step, Y, step.sk, step.rd)
    return Y


def multiply_kernel(steps: Sequence[NodeStep], Y: np.ndarray) -> np.ndarray:
    """Overwrite the working buffer ``Y`` with ``op(F) @ Y``."""
    logger.debug("multiply sweep over %d nodes, buffer %s", len(steps), Y.shape)
    upward_sweep(steps, Y)
    downward_sweep(steps, Y)
    return Y
