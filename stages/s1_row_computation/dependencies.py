"""Formula dependency graph between item table columns."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from core.models import Column
from .expression import build_label_map, extract_tags, resolve_label


@dataclass
class FormulaGraph:
    """Which formula columns read which columns.

    Edges run from a referenced column to the formula column reading it.
    Only formula columns are nodes; plain columns are inputs and never part
    of a cycle.
    """

    nodes: List[str] = field(default_factory=list)
    adjacency: Dict[str, Set[str]] = field(default_factory=dict)
    reverse_adjacency: Dict[str, Set[str]] = field(default_factory=dict)
    execution_order: List[str] = field(default_factory=list)
    depths: Dict[str, int] = field(default_factory=dict)
    circular: Set[str] = field(default_factory=set)

    @classmethod
    def build(cls, columns: Iterable[Column]) -> "FormulaGraph":
        columns = list(columns)
        label_to_key = build_label_map(columns)
        nodes = [col.key for col in columns if col.is_formula]
        node_set = set(nodes)

        adjacency: Dict[str, Set[str]] = {node: set() for node in nodes}
        reverse_adjacency: Dict[str, Set[str]] = {node: set() for node in nodes}
        for col in columns:
            if col.key not in node_set:
                continue
            for tag in extract_tags(col.formula):
                source = resolve_label(tag, label_to_key)
                if source in node_set:
                    adjacency[source].add(col.key)
                    reverse_adjacency[col.key].add(source)

        graph = cls(nodes=nodes, adjacency=adjacency, reverse_adjacency=reverse_adjacency)
        graph.execution_order = graph._topological_sort()
        graph.circular = graph._find_cycles()
        graph.depths = graph._compute_depths()
        return graph

    @property
    def max_depth(self) -> int:
        return max(self.depths.values(), default=0)

    def _topological_sort(self) -> List[str]:
        in_degree = {node: len(self.reverse_adjacency[node]) for node in self.nodes}
        queue = deque([node for node in self.nodes if in_degree[node] == 0])
        order: List[str] = []

        while queue:
            node = queue.popleft()
            order.append(node)
            for neighbor in sorted(self.adjacency.get(node, set())):
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)

        return order

    def _find_cycles(self) -> Set[str]:
        # Nodes left out of the topological order are on a cycle or downstream of one
        remaining = [node for node in self.nodes if node not in set(self.execution_order)]
        return {node for node in remaining if self._reaches(node, node)}

    def _reaches(self, start: str, target: str) -> bool:
        stack = list(self.adjacency.get(start, set()))
        seen: Set[str] = set()
        while stack:
            node = stack.pop()
            if node == target:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self.adjacency.get(node, set()))
        return False

    def _compute_depths(self) -> Dict[str, int]:
        depth_map: Dict[str, int] = {}
        for node in self.execution_order:
            parents = self.reverse_adjacency.get(node, set())
            if not parents:
                depth_map[node] = 0
            else:
                depth_map[node] = max(depth_map.get(p, 0) for p in parents) + 1
        return depth_map
