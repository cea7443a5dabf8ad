import numpy as np
import pytest

from core.config import EngineConfig
from core.dispatcher import multiply, solve, to_dense
from core.exceptions import HFApplyError, SingularFactorError
from core.factorization import FactorNode, Factorization

from factor_builders import dense_operator


def test_chain_solve_inverts_unit_vectors(spd_chain):
    _, F = spd_chain
    for k in range(8):
        e = np.zeros(8)
        e[k] = 1.0
        np.testing.assert_allclose(solve(F, multiply(F, e)), e, atol=1e-12)


def test_exact_factorization_solve(exact_binary, rng):
    A, F = exact_binary
    B = rng.standard_normal((16, 3))
    np.testing.assert_allclose(A @ solve(F, B), B, rtol=1e-10, atol=1e-10)


@pytest.mark.parametrize("trans", ["n", "t", "c"])
def test_solve_round_trip(compressed_binary, rng, trans):
    F = compressed_binary
    X = rng.standard_normal((16, 2)) + 1j * rng.standard_normal((16, 2))
    np.testing.assert_allclose(solve(F, multiply(F, X, trans), trans), X, rtol=1e-10, atol=1e-10)
    np.testing.assert_allclose(multiply(F, solve(F, X, trans), trans), X, rtol=1e-10, atol=1e-10)


def test_inverse_matches_dense_inverse(compressed_binary):
    F = compressed_binary
    np.testing.assert_allclose(
        to_dense(F, inverse=True), np.linalg.inv(dense_operator(F)), rtol=1e-9, atol=1e-9
    )


def test_solve_transpose_is_conjugated_adjoint(compressed_binary, rng):
    F = compressed_binary
    X = rng.standard_normal((16, 2)) + 1j * rng.standard_normal((16, 2))
    np.testing.assert_array_equal(solve(F, X, "t"), np.conj(solve(F, np.conj(X), "c")))


def _singular_general(u_last):
    U = np.array([[1.0, 2.0], [0.0, u_last]])
    return Factorization(2, "n", [FactorNode([], [0, 1], L=np.eye(2), U=U)])


def test_zero_pivot_raises(dummy_logger):
    F = _singular_general(0.0)
    X = np.ones((2, 1))
    before = X.copy()
    with pytest.raises(SingularFactorError, match="singular"):
        solve(F, X)
    np.testing.assert_array_equal(X, before)
    assert "Zero pivot" in dummy_logger.text


def test_multiply_of_singular_factor_succeeds():
    F = _singular_general(0.0)
    np.testing.assert_allclose(multiply(F, [1.0, 1.0]), [3.0, 0.0])


def test_relative_pivot_tolerance():
    F = _singular_general(1e-17)
    with pytest.raises(SingularFactorError):
        solve(F, np.ones(2))
    x = solve(F, np.array([0.0, 1e-17]), config=EngineConfig(pivot_tol=0.0))
    np.testing.assert_allclose(x, [-2.0, 1.0])


def test_singular_ldl_diagonal_raises(dummy_logger):
    F = Factorization(2, "h", [FactorNode([], [0, 1], L=np.eye(2), U=np.zeros((2, 2)))])
    with pytest.raises(SingularFactorError) as info:
        solve(F, np.ones(2))
    assert isinstance(info.value, HFApplyError)
    assert isinstance(info.value, np.linalg.LinAlgError)
    assert "Zero pivot in diagonal block" in dummy_logger.text


def test_singular_error_propagates_from_late_node():
    nodes = [
        FactorNode([2], [0, 1], L=np.eye(2), E=np.ones((1, 2))),
        FactorNode([], [2], L=np.zeros((1, 1))),
    ]
    F = Factorization(3, "p", nodes)
    with pytest.raises(SingularFactorError):
        solve(F, np.ones(3))
