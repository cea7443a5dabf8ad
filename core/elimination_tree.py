# core/elimination_tree.py
"""
Elimination tree of a Factorization, recovered from the index sets alone.

Node ``c`` is a child of node ``p`` when ``p`` is the next node in elimination
order to touch one of ``c``'s dofs. Edges point from child to parent, the
direction in which skeleton dofs travel during the upward sweep.
"""
from typing import Dict, Iterable, List, Set

import networkx as nx
import numpy as np

from core.exceptions import InvalidArgumentError
from core.factorization import Factorization


class EliminationTree:
    def __init__(self, F: Factorization):
        self.size = F.size
        self.n_nodes = F.n_nodes
        self._graph = nx.DiGraph()
        self._graph.add_nodes_from(range(F.n_nodes))

        # last node to touch each dof so far; -1 for untouched
        last = np.full(F.size, -1, dtype=np.intp)
        home = np.full(F.size, -1, dtype=np.intp)
        for i, node in enumerate(F.nodes):
            local = node.local_indices
            for child in np.unique(last[local]):
                if child >= 0:
                    self._graph.add_edge(int(child), i)
            fresh = local[home[local] < 0]
            home[fresh] = i
            last[local] = i
        self._home = home

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    def parents(self, node: int) -> List[int]:
        return sorted(self._graph.successors(node))

    def children(self, node: int) -> List[int]:
        return sorted(self._graph.predecessors(node))

    def roots(self) -> List[int]:
        return [n for n in self._graph.nodes if self._graph.out_degree(n) == 0]

    def is_tree(self) -> bool:
        """True when every node hands its skeleton to at most one parent."""
        return all(d <= 1 for _, d in self._graph.out_degree())

    def subtree(self, node: int) -> Set[int]:
        """``node`` and every node whose dofs flow into it."""
        self._check_node(node)
        return nx.ancestors(self._graph, node) | {node}

    def upward_closure(self, nodes: Iterable[int]) -> List[int]:
        """
        ``nodes`` plus every node reachable from them along child -> parent
        edges, sorted in elimination order.
        """
        seen: Set[int] = set()
        stack = list(nodes)
        while stack:
            n = stack.pop()
            if n in seen:
                continue
            seen.add(n)
            stack.extend(self._graph.successors(n))
        return sorted(seen)

    def home_node(self, dof: int) -> int:
        """First node touching ``dof``, or -1 when no node does."""
        if not 0 <= dof < self.size:
            raise InvalidArgumentError(f"dof {dof} out of range [0, {self.size})")
        return int(self._home[dof])

    def home_nodes(self, dofs) -> np.ndarray:
        dofs = np.asarray(dofs, dtype=np.intp).ravel()
        if dofs.size and (dofs.min() < 0 or dofs.max() >= self.size):
            raise InvalidArgumentError(f"dofs must lie in [0, {self.size})")
        return self._home[dofs]

    def depths(self) -> Dict[int, int]:
        """Distance of each node from its root (0 for roots)."""
        depth: Dict[int, int] = {}
        for n in reversed(list(nx.topological_sort(self._graph))):
            ups = [depth[p] for p in self._graph.successors(n)]
            depth[n] = 1 + max(ups) if ups else 0
        return depth

    def _check_node(self, node: int) -> None:
        if not 0 <= node < self.n_nodes:
            raise InvalidArgumentError(f"Node {node} out of range [0, {self.n_nodes})")

    def __repr__(self) -> str:
        return (f"<EliminationTree nodes={self.n_nodes} "
                f"edges={self._graph.number_of_edges()} roots={len(self.roots())}>")
