# kernels/blocks.py
"""
Lazy views of the small dense factor blocks stored on a FactorNode.

A view remembers whether the stored matrix is used transposed and/or
conjugated so that the per-node steps of every structure can be described
without copying factor data. Triangular views solve through
scipy.linalg.solve_triangular, general (LDL diagonal) views through
scipy.linalg.lu_factor. Both refuse to divide by a vanishing pivot.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import warnings

import numpy as np
import scipy.linalg as la

from core.exceptions import SingularFactorError
from utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class BlockView:
    """``op(M)`` where op is a combination of transpose and conjugation."""
    M: np.ndarray
    trans: bool = False
    conj: bool = False

    @property
    def H(self) -> "BlockView":
        return BlockView(self.M, not self.trans, not self.conj)

    @property
    def shape(self):
        m, n = self.M.shape
        return (n, m) if self.trans else (m, n)

    def dense(self) -> np.ndarray:
        A = self.M.T if self.trans else self.M
        return A.conj() if self.conj else A

    def __matmul__(self, x: np.ndarray) -> np.ndarray:
        A = self.M.T if self.trans else self.M
        if self.conj:
            return (A @ x.conj()).conj()
        return A @ x


@dataclass(frozen=True, slots=True)
class TriangularView(BlockView):
    """Triangular ``op(M)``; ``lower`` describes the stored matrix ``M``."""
    lower: bool = True

    @property
    def H(self) -> "TriangularView":
        return TriangularView(self.M, not self.trans, not self.conj, self.lower)

    def solve(self, b: np.ndarray, pivot_tol: float = 0.0, check_finite: bool = False) -> np.ndarray:
        if not self.M.size:
            return b
        check_pivots(np.diagonal(self.M), pivot_tol, "triangular")
        if self.conj and not self.trans:
            # conj(M) y = b  <=>  M conj(y) = conj(b)
            return la.solve_triangular(self.M, b.conj(), lower=self.lower,
                                       check_finite=check_finite).conj()
        code = 0 if not self.trans else (2 if self.conj else 1)
        return la.solve_triangular(self.M, b, trans=code, lower=self.lower,
                                   check_finite=check_finite)


@dataclass(frozen=True, slots=True)
class DenseView(BlockView):
    """General square ``op(M)``, used for the block diagonal of an LDL factorization."""

    @property
    def H(self) -> "DenseView":
        return DenseView(self.M, not self.trans, not self.conj)

    def solve(self, b: np.ndarray, pivot_tol: float = 0.0, check_finite: bool = False) -> np.ndarray:
        if not self.M.size:
            return b
        with warnings.catch_warnings():
            # exact singularity is reported by check_pivots below
            warnings.simplefilter("ignore", la.LinAlgWarning)
            lu_piv = la.lu_factor(self.M, check_finite=check_finite)
        check_pivots(np.diagonal(lu_piv[0]), pivot_tol, "diagonal block")
        if self.conj and not self.trans:
            return la.lu_solve(lu_piv, b.conj(), check_finite=check_finite).conj()
        code = 0 if not self.trans else (2 if self.conj else 1)
        return la.lu_solve(lu_piv, b, trans=code, check_finite=check_finite)


def check_pivots(pivots: np.ndarray, pivot_tol: float, kind: str) -> None:
    """Raise SingularFactorError when a pivot vanishes relative to the largest one."""
    mags = np.abs(pivots)
    scale = mags.max()
    bad = np.flatnonzero(mags <= pivot_tol * scale) if scale > 0 else np.arange(mags.size)
    if bad.size:
        logger.error("Zero pivot in %s factor at local position(s) %s", kind, bad.tolist())
        raise SingularFactorError(
            f"Local {kind} factor is singular: pivot {int(bad[0])} is "
            f"{pivots[bad[0]]!r} (largest pivot magnitude {scale:.3e})"
        )


def view(M: Optional[np.ndarray], *, trans: bool = False, conj: bool = False) -> Optional[BlockView]:
    return None if M is None else BlockView(M, trans, conj)


def triangular(M: Optional[np.ndarray], *, lower: bool, trans: bool = False,
               conj: bool = False) -> Optional[TriangularView]:
    return None if M is None else TriangularView(M, trans, conj, lower)


def dense(M: Optional[np.ndarray], *, trans: bool = False, conj: bool = False) -> Optional[DenseView]:
    return None if M is None else DenseView(M, trans, conj)
