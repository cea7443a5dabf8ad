# core/dispatcher.py
"""
Public apply operations on a Factorization.

The dispatcher validates arguments, allocates the working buffer, rewrites a
plain transpose as a conjugated conjugate-transpose and hands the buffer to
the kernel of the factorization's structure. It adds no recovery logic:
kernel errors reach the caller unchanged.
"""
from __future__ import annotations
from typing import Callable, Optional, Tuple, Union

import numpy as np

from core.config import DEFAULT_CONFIG, EngineConfig
from core.exceptions import InvalidArgumentError
from core.factorization import Factorization
from core.structure import Structure, Transpose
from kernels.multiply import downward_sweep, multiply_kernel, upward_sweep
from kernels.plans import sweep_plan
from kernels.solve import downward_solve_sweep, solve_kernel, upward_solve_sweep
from kernels.spdiag import DiagonalSelection, spdiag_kernel
from utils.logging_config import get_logger

logger = get_logger(__name__)

TransLike = Union[Transpose, str]


def _check_factorization(F) -> None:
    if not isinstance(F, Factorization):
        raise InvalidArgumentError(f"Expected a Factorization, got {type(F).__name__}")


def _working_buffer(F: Factorization, X) -> Tuple[np.ndarray, bool]:
    """Fresh 2-D copy of ``X`` in the common dtype, and whether ``X`` was a vector."""
    X = np.asarray(X)
    if X.ndim not in (1, 2):
        raise InvalidArgumentError(f"Argument must be a vector or matrix, got {X.ndim} dimensions")
    if X.shape[0] != F.size:
        raise InvalidArgumentError(
            f"Argument has {X.shape[0]} rows, factorization has size {F.size}"
        )
    dtype = np.result_type(X.dtype, F.dtype)
    Y = np.array(X, dtype=dtype, copy=True)
    vector = Y.ndim == 1
    return (Y.reshape(-1, 1) if vector else Y), vector


def _run(F: Factorization, X, trans: TransLike,
         kernel: Callable[[Factorization, np.ndarray, Transpose], np.ndarray]) -> np.ndarray:
    _check_factorization(F)
    trans = Transpose.parse(trans)
    Y, vector = _working_buffer(F, X)

    conjugate = trans is Transpose.TRANSPOSE and np.iscomplexobj(Y)
    if trans is Transpose.TRANSPOSE:
        trans = Transpose.CONJUGATE
    if conjugate:
        np.conjugate(Y, out=Y)
    Y = kernel(F, Y, trans)
    if conjugate:
        np.conjugate(Y, out=Y)
    return Y.ravel() if vector else Y


# ----------------------------------------------------------------------
# multiply / solve
# ----------------------------------------------------------------------
def multiply(F: Factorization, X, trans: TransLike = "n",
             config: Optional[EngineConfig] = None) -> np.ndarray:
    """
    Apply the factored operator: ``F @ X``, ``F.T @ X`` or ``F.conj().T @ X``
    for ``trans`` = 'n', 't', 'c'. ``X`` may be a vector or a matrix whose
    columns are treated independently; it is never modified.
    """
    def kernel(F, Y, trans):
        return multiply_kernel(sweep_plan(F, trans), Y)
    return _run(F, X, trans, kernel)


def solve(F: Factorization, X, trans: TransLike = "n",
          config: Optional[EngineConfig] = None) -> np.ndarray:
    """
    Apply the inverse of the factored operator to ``X``.

    Raises:
        SingularFactorError: If a local factor has a vanishing pivot.
    """
    config = config or DEFAULT_CONFIG

    def kernel(F, Y, trans):
        return solve_kernel(sweep_plan(F, trans), Y, config)
    return _run(F, X, trans, kernel)


# ----------------------------------------------------------------------
# Cholesky halves of a positive-definite factorization, F = C C^H
# ----------------------------------------------------------------------
def _require_posdef(F: Factorization, what: str) -> None:
    _check_factorization(F)
    if F.structure is not Structure.POSITIVE_DEFINITE:
        raise InvalidArgumentError(
            f"{what} requires a positive-definite factorization, got structure "
            f"'{F.structure.value}'"
        )


def cholmv(F: Factorization, X, trans: TransLike = "n",
           config: Optional[EngineConfig] = None) -> np.ndarray:
    """Apply the Cholesky half ``C`` (or ``C.T``, ``C^H``) of ``F = C C^H``."""
    _require_posdef(F, "cholmv")

    def kernel(F, Y, trans):
        steps = sweep_plan(F, Transpose.NONE)
        if trans is Transpose.NONE:
            return downward_sweep(steps, Y)
        return upward_sweep(steps, Y)
    return _run(F, X, trans, kernel)


def cholsv(F: Factorization, X, trans: TransLike = "n",
           config: Optional[EngineConfig] = None) -> np.ndarray:
    """Apply the inverse of the Cholesky half ``C`` (or ``C.T``, ``C^H``)."""
    _require_posdef(F, "cholsv")
    config = config or DEFAULT_CONFIG

    def kernel(F, Y, trans):
        steps = sweep_plan(F, Transpose.NONE)
        if trans is Transpose.NONE:
            return upward_solve_sweep(steps, Y, config)
        return downward_solve_sweep(steps, Y, config)
    return _run(F, X, trans, kernel)


# ----------------------------------------------------------------------
# selected diagonal
# ----------------------------------------------------------------------
def extract_selected_diagonal(F: Factorization, selection, inverse: bool = False,
                              config: Optional[EngineConfig] = None) -> np.ndarray:
    """
    Diagonal entries of ``F`` (``inverse=False``) or of ``F^-1`` on the dofs
    covered by ``selection``; entries outside the selection are zero.

    Args:
        F: The factorization.
        selection: A DiagonalSelection, or an array of dofs whose home blocks
            should be evaluated.
        inverse: Extract from the inverse operator instead.
    """
    _check_factorization(F)
    if not isinstance(selection, DiagonalSelection):
        selection = DiagonalSelection.from_indices(F, selection)
    selection.check(F)
    logger.debug("extracting %s diagonal over %d block(s)",
                 "inverse" if inverse else "forward", len(selection))
    return spdiag_kernel(F, selection, inverse, config or DEFAULT_CONFIG)


def diagonal(F: Factorization, inverse: bool = False,
             config: Optional[EngineConfig] = None) -> np.ndarray:
    """Full diagonal of ``F`` or ``F^-1``."""
    _check_factorization(F)
    return spdiag_kernel(F, DiagonalSelection.full(F), inverse, config or DEFAULT_CONFIG)


# ----------------------------------------------------------------------
# determinants and dense references
# ----------------------------------------------------------------------
def _perm_sign(perm: Optional[np.ndarray]) -> int:
    if perm is None:
        return 1
    seen = np.zeros(perm.size, dtype=bool)
    sign = 1
    for start in range(perm.size):
        if seen[start]:
            continue
        length, j = 0, start
        while not seen[j]:
            seen[j] = True
            j = perm[j]
            length += 1
        if length % 2 == 0:
            sign = -sign
    return sign


def _tri_slogdet(M: np.ndarray) -> Tuple[complex, float]:
    d = np.diagonal(M)
    mags = np.abs(d)
    if not mags.all():
        return 0.0, -np.inf
    return np.prod(d / mags), float(np.sum(np.log(mags)))


def logdet(F: Factorization) -> Tuple[Union[float, complex], float]:
    """
    ``(sign, logabsdet)`` of the factored operator, in the convention of
    ``numpy.linalg.slogdet``. Interpolation transforms are unimodular and do
    not contribute.
    """
    _check_factorization(F)
    sign: Union[float, complex] = 1.0
    logabs = 0.0
    for node in F.nodes:
        if not node.n_redundant:
            continue
        sL, lL = _tri_slogdet(node.L)
        if F.structure is Structure.POSITIVE_DEFINITE:
            s, l = abs(sL) ** 2, 2.0 * lL
        elif F.structure is Structure.HERMITIAN:
            sD, lD = np.linalg.slogdet(node.U)
            s, l = abs(sL) ** 2 * sD, 2.0 * lL + lD
        elif F.structure is Structure.SYMMETRIC and node.G is None:
            sD, lD = np.linalg.slogdet(node.U)
            s, l = sL ** 2 * sD, 2.0 * lL + lD
        else:
            sU, lU = _tri_slogdet(node.U)
            s, l = _perm_sign(node.perm) * sL * sU, lL + lU
        sign = sign * s
        logabs += float(l)
    if not F.is_complex:
        sign = float(np.real(sign))
    return sign, logabs


def to_dense(F: Factorization, inverse: bool = False,
             config: Optional[EngineConfig] = None) -> np.ndarray:
    """Dense matrix of ``F`` (or ``F^-1``), for small operators only."""
    _check_factorization(F)
    eye = np.eye(F.size, dtype=F.dtype)
    return solve(F, eye, config=config) if inverse else multiply(F, eye, config=config)
