# utils/linops.py
from __future__ import annotations
from typing import Optional

import numpy as np
import scipy.sparse.linalg as sla

from core.config import EngineConfig
from core.dispatcher import multiply, solve
from core.factorization import Factorization


class FactorizationOperator(sla.LinearOperator):
    """
    Wraps a Factorization as a scipy LinearOperator so that iterative solvers
    can use it either as the system operator (``inverse=False``) or as a
    preconditioner (``inverse=True``). Also exposes a .solve(b) method that
    always applies the inverse of the wrapped operator.
    """

    def __init__(self, F: Factorization, inverse: bool = False,
                 config: Optional[EngineConfig] = None):
        self.factorization = F
        self.inverse = inverse
        self.config = config
        self._forward = solve if inverse else multiply
        self._backward = multiply if inverse else solve
        super().__init__(dtype=np.dtype(F.dtype), shape=(F.size, F.size))

    def _matvec(self, x):
        return self._forward(self.factorization, x, "n", self.config)

    def _matmat(self, X):
        return self._forward(self.factorization, X, "n", self.config)

    def _rmatvec(self, x):
        return self._forward(self.factorization, x, "c", self.config)

    def _rmatmat(self, X):
        return self._forward(self.factorization, X, "c", self.config)

    def _adjoint(self):
        if self.factorization.structure.self_adjoint:
            return self
        return super()._adjoint()

    def solve(self, rhs: np.ndarray, trans: str = "n") -> np.ndarray:
        """Apply the inverse of this operator to ``rhs``."""
        return self._backward(self.factorization, rhs, trans, self.config)
