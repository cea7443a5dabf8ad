import numpy as np
import pytest

from factor_builders import (
    BINARY_LEVELS, BINARY_TREE, CHAIN_LEVELS, CHAIN_TREE,
    eliminate, random_factorization, tree_matrix,
)

STRUCTURES = ["n", "s", "h", "p"]


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def spd_chain(rng):
    """Real SPD 8x8 matrix and its exact three-node factorization."""
    A = tree_matrix(CHAIN_TREE, 8, "p", rng).real
    return A, eliminate(A, CHAIN_TREE, "p", CHAIN_LEVELS)


@pytest.fixture(params=STRUCTURES)
def exact_binary(request, rng):
    """16x16 matrix of every structure with its exact seven-node factorization."""
    A = tree_matrix(BINARY_TREE, 16, request.param, rng)
    return A, eliminate(A, BINARY_TREE, request.param, BINARY_LEVELS)


@pytest.fixture(params=[
    ("n", False), ("n", True),
    ("s", False), ("s", True),
    ("h", True), ("p", False), ("p", True),
])
def compressed_binary(request, rng):
    """Random factorization with interpolation blocks on the seven-node tree."""
    structure, cplx = request.param
    return random_factorization(BINARY_TREE, 16, structure, rng, cplx=cplx, interp=True,
                                level_ptr=BINARY_LEVELS)


@pytest.fixture
def dummy_logger(caplog):
    caplog.set_level("DEBUG")
    return caplog
