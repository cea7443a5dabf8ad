import numpy as np
import pytest

from core.exceptions import InvalidArgumentError
from core.factorization import FactorNode, Factorization, build_factorization
from core.structure import Structure

from factor_builders import BINARY_LEVELS, BINARY_TREE, random_factorization


def _node(sk, rd, **blocks):
    nr = len(rd)
    blocks.setdefault("L", np.eye(nr))
    return FactorNode(sk, rd, **blocks)


def test_factor_node_normalizes_indices():
    node = _node([3, 4], [0], U=np.eye(1), E=np.ones((2, 1)))
    assert node.skeleton.dtype == np.intp
    assert node.n_skeleton == 2 and node.n_redundant == 1
    np.testing.assert_array_equal(node.local_indices, [3, 4, 0])


def test_factor_node_requires_l_for_redundant_dofs():
    with pytest.raises(InvalidArgumentError, match="'L'"):
        FactorNode([1], [0])


def test_factor_node_without_redundant_dofs_is_allowed():
    node = FactorNode([0, 1], [])
    assert node.n_redundant == 0 and node.blocks() == []


@pytest.mark.parametrize("name, shape", [
    ("L", (2, 1)), ("U", (1, 2)), ("E", (2, 1)), ("G", (1, 1)), ("T", (2, 2)),
])
def test_factor_node_rejects_bad_block_shapes(name, shape):
    with pytest.raises(InvalidArgumentError, match=f"'{name}'"):
        _node([2], [0, 1], **{name: np.ones(shape)})


def test_factor_node_rejects_overlapping_sets():
    with pytest.raises(InvalidArgumentError, match="overlap"):
        _node([0, 1], [1])


def test_factor_node_rejects_repeated_dofs():
    with pytest.raises(InvalidArgumentError, match="repeat"):
        _node([2, 2], [0])


@pytest.mark.parametrize("perm", [[0, 0], [0, 2], [1]])
def test_factor_node_rejects_bad_permutation(perm):
    with pytest.raises(InvalidArgumentError, match="permutation"):
        _node([], [0, 1], U=np.eye(2), perm=perm)


def test_factorization_defaults_to_single_level():
    F = Factorization(2, "n", [_node([], [0, 1], U=np.eye(2))])
    assert F.structure is Structure.GENERAL
    assert F.level_ptr == (0, 1)
    assert F.n_levels == 1
    assert F.dtype == np.float64 and not F.is_complex


def test_factorization_dtype_follows_blocks():
    F = Factorization(2, "h", [_node([], [0, 1], U=np.eye(2) * (1 + 0j))])
    assert F.is_complex


def test_factorization_rejects_unknown_structure():
    with pytest.raises(InvalidArgumentError, match="structure"):
        Factorization(1, "q", [])


def test_factorization_rejects_out_of_range_dofs():
    with pytest.raises(InvalidArgumentError, match="outside"):
        Factorization(2, "n", [_node([], [0, 2], U=np.eye(2))])


def test_factorization_rejects_use_after_elimination():
    nodes = [
        _node([1], [0], U=np.eye(1)),
        _node([0], [1], U=np.eye(1)),
    ]
    with pytest.raises(InvalidArgumentError, match="already eliminated"):
        Factorization(2, "n", nodes)


@pytest.mark.parametrize("level_ptr", [(1, 2), (0, 1), (0, 2, 1, 2)])
def test_factorization_rejects_bad_level_ptr(level_ptr):
    nodes = [_node([], [0], U=np.eye(1)), _node([], [1], U=np.eye(1))]
    with pytest.raises(InvalidArgumentError, match="level_ptr"):
        Factorization(2, "n", nodes, level_ptr)


def test_structure_requirements():
    with pytest.raises(InvalidArgumentError, match="requires a 'U'"):
        Factorization(2, "n", [_node([], [0, 1])])
    with pytest.raises(InvalidArgumentError, match="positive-definite"):
        Factorization(2, "p", [_node([], [0, 1], U=np.eye(2))])
    with pytest.raises(InvalidArgumentError, match="Hermitian"):
        Factorization(2, "h", [_node([1], [0], U=np.eye(1), G=np.ones((1, 1)))])


def test_level_helpers(rng):
    F = random_factorization(BINARY_TREE, 16, "n", rng, level_ptr=BINARY_LEVELS)
    assert F.n_levels == 3
    assert list(F.nodes_in_level(1)) == [4, 5]
    assert [F.level_of(i) for i in range(F.n_nodes)] == [0, 0, 0, 0, 1, 1, 2]
    with pytest.raises(InvalidArgumentError):
        F.nodes_in_level(3)
    with pytest.raises(InvalidArgumentError):
        F.level_of(7)


def test_build_factorization_from_mappings():
    F = build_factorization(3, "p", [
        {"skeleton": [2], "redundant": [0, 1], "L": 2 * np.eye(2), "E": np.ones((1, 2))},
        {"skeleton": [], "redundant": [2], "L": [[3.0]]},
    ])
    assert F.n_nodes == 2
    assert isinstance(F.nodes[0], FactorNode)
    assert "nodes=2" in repr(F)
