import numpy as np
import pytest
import scipy.sparse.linalg as sla

from core.dispatcher import multiply, solve
from utils.linops import FactorizationOperator

from factor_builders import BINARY_TREE, dense_operator, random_factorization


def test_operator_applies_factorization(compressed_binary, rng):
    F = compressed_binary
    op = FactorizationOperator(F)
    x = rng.standard_normal(16)
    assert op.shape == (16, 16)
    np.testing.assert_allclose(op.matvec(x), multiply(F, x), rtol=1e-13, atol=1e-13)
    np.testing.assert_allclose(op.rmatvec(x), multiply(F, x, "c"), rtol=1e-13, atol=1e-13)
    X = rng.standard_normal((16, 3))
    np.testing.assert_allclose(op.matmat(X), multiply(F, X), rtol=1e-13, atol=1e-13)
    np.testing.assert_allclose(op.H.matmat(X), multiply(F, X, "c"), rtol=1e-13, atol=1e-13)


def test_inverse_operator(compressed_binary, rng):
    F = compressed_binary
    op = FactorizationOperator(F, inverse=True)
    x = rng.standard_normal(16)
    np.testing.assert_allclose(op @ x, solve(F, x), rtol=1e-13, atol=1e-13)
    np.testing.assert_allclose(op.solve(x), multiply(F, x), rtol=1e-13, atol=1e-13)


@pytest.mark.parametrize("structure", ["h", "p"])
def test_self_adjoint_operator_is_its_adjoint(rng, structure):
    op = FactorizationOperator(random_factorization(BINARY_TREE, 16, structure, rng))
    assert op.H is op


def test_conjugate_gradient_with_operator(rng):
    F = random_factorization(BINARY_TREE, 16, "p", rng, interp=True)
    b = rng.standard_normal(16)
    x, info = sla.cg(FactorizationOperator(F), b, maxiter=200)
    assert info == 0
    np.testing.assert_allclose(multiply(F, x), b, rtol=1e-4, atol=1e-4)


def test_inverse_as_preconditioner(rng):
    F = random_factorization(BINARY_TREE, 16, "n", rng, interp=True)
    A = dense_operator(F)
    b = rng.standard_normal(16)
    x, info = sla.gmres(A, b, M=FactorizationOperator(F, inverse=True))
    assert info == 0
    np.testing.assert_allclose(A @ x, b, rtol=1e-4, atol=1e-4)
