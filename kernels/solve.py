# kernels/solve.py
"""
Inverse application of a factorization. The sweeps mirror kernels.multiply
with the roles reversed: the upward sweep undoes the left factors by forward
substitution, the downward sweep undoes the right factors by back substitution.
"""
from __future__ import annotations
from typing import Sequence

import numpy as np

from core.config import DEFAULT_CONFIG, EngineConfig
from kernels.multiply import rows
from kernels.plans import NodeStep
from utils.logging_config import get_logger

logger = get_logger(__name__)


def solve_up(step: NodeStep, Y: np.ndarray, sk: np.ndarray, rd: np.ndarray,
             config: EngineConfig = DEFAULT_CONFIG, with_diag: bool = True) -> None:
    """Apply ``D^-1 . Lop^-1 . QL^-1`` of one node in place."""
    if not rd.size:
        return
    tol, finite = config.pivot_tol, config.check_finite
    if step.TL is not None:
        Y[rd] -= step.TL @ Y[sk]
    Y[rd] = step.L.solve(Y[rows(rd, step.perm_l)], tol, finite)
    if step.LC is not None:
        Y[sk] -= step.LC @ Y[rd]
    if with_diag and step.D is not None:
        Y[rd] = step.D.solve(Y[rd], tol, finite)


def solve_down(step: NodeStep, Y: np.ndarray, sk: np.ndarray, rd: np.ndarray,
               config: EngineConfig = DEFAULT_CONFIG) -> None:
    """Apply ``QR^-1 . Rop^-1`` of one node in place."""
    if not rd.size:
        return
    if step.RC is not None:
        Y[rd] -= step.RC @ Y[sk]
    Y[rows(rd, step.perm_r)] = step.R.solve(Y[rd], config.pivot_tol, config.check_finite)
    if step.TR is not None:
        Y[sk] -= step.TR @ Y[rd]


def upward_solve_sweep(steps: Sequence[NodeStep], Y: np.ndarray,
                       config: EngineConfig = DEFAULT_CONFIG) -> np.ndarray:
    for step in steps:
        solve_up(step, Y, step.sk, step.rd, config)
    return Y


def downward_solve_sweep(steps: Sequence[NodeStep], Y: np.ndarray,
                         config: EngineConfig = DEFAULT_CONFIG) -> np.ndarray:
    for step in reversed(steps):
        solve_down(step, Y, step.sk, step.rd, config)
    return Y


def solve_kernel(steps: Sequence[NodeStep], Y: np.ndarray,
                 config: EngineConfig = DEFAULT_CONFIG) -> np.ndarray:
    """Overwrite the working buffer ``Y`` with ``op(F)^-1 @ Y``."""
    logger.debug("solve sweep over %d nodes, buffer %s", len(steps), Y.shape)
    upward_solve_sweep(steps, Y, config)
    downward_solve_sweep(steps, Y, config)
    return Y
