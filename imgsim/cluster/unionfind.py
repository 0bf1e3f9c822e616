"""Union-find over an arena of integer nodes."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List


class UnionFind:
    """Disjoint set union structure with path compression and union by rank.

    Nodes are the integers ``0 .. size - 1``.
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("size must be non-negative")
        self._parent: List[int] = list(range(size))
        self._rank: List[int] = [0] * size

    def __len__(self) -> int:
        return len(self._parent)

    def find(self, item: int) -> int:
        """Return the canonical representative for *item*."""
        parent = self._parent
        root = item
        while parent[root] != root:
            root = parent[root]
        while parent[item] != root:
            parent[item], item = root, parent[item]
        return root

    def union(self, a: int, b: int) -> bool:
        """Merge the sets containing *a* and *b*; return False if already joined."""
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return False
        rank_a = self._rank[root_a]
        rank_b = self._rank[root_b]
        if rank_a < rank_b:
            self._parent[root_a] = root_b
        elif rank_a > rank_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_b] = root_a
            self._rank[root_a] += 1
        return True

    def roots(self) -> List[int]:
        """Return the representative of every node, indexed by node."""
        return [self.find(item) for item in range(len(self._parent))]

    def groups(self) -> Dict[int, List[int]]:
        """Return the current partitioning as a mapping of roots to members."""
        buckets: Dict[int, List[int]] = defaultdict(list)
        for item in range(len(self._parent)):
            buckets[self.find(item)].append(item)
        return dict(buckets)
