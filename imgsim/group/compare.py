"""Pairwise comparison of every image in a run."""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List, Mapping, Sequence

from tqdm import tqdm

from ..cluster.clusters import get_clusters
from ..cluster.unionfind import UnionFind
from ..io.config import ImgsimOptions
from ..io.errors import ClusteringFailure, InsufficientInput
from ..io.models import ClusterSet, PixelGrid, SimilarityRanking, SimilarityScore
from .similarity import get_similarity

logger = logging.getLogger(__name__)


class PairwiseComparator:
    """Cluster each image once, then score every unordered pair of images."""

    def __init__(self, options: ImgsimOptions, progress: bool = False) -> None:
        self.options = options
        self.progress = progress
        self.cluster_sets: Dict[str, ClusterSet] = {}
        self.failures: Dict[str, ClusteringFailure] = {}

    def cluster_all(self, grids: Sequence[PixelGrid]) -> Dict[str, ClusterSet]:
        """Return the ClusterSet of every grid that clusters cleanly, in input order.

        Results are cached by image name; an image that fails to cluster is
        logged and left out.
        """
        names = [grid.name for grid in grids]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate image names: {', '.join(duplicates)}")

        pending = [grid for grid in grids if grid.name not in self.cluster_sets]
        if pending:
            with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
                futures = {pool.submit(get_clusters, grid, self.options): grid.name for grid in pending}
                for future in tqdm(
                    as_completed(futures),
                    total=len(futures),
                    desc="Clustering images",
                    unit="image",
                    leave=False,
                    disable=not self.progress,
                ):
                    name = futures[future]
                    try:
                        self.cluster_sets[name] = future.result()
                    except ClusteringFailure as exc:
                        logger.warning("Excluding %s from comparison: %s", name, exc.reason)
                        self.failures[name] = exc

        return {name: self.cluster_sets[name] for name in names if name in self.cluster_sets}

    def compare_all(self, cluster_sets: Mapping[str, ClusterSet]) -> SimilarityRanking:
        """Score every unordered pair of *cluster_sets* and rank them."""
        names = list(cluster_sets)
        if len(names) < 2:
            raise InsufficientInput(len(names))

        pairs = list(itertools.combinations(names, 2))
        scores: List[SimilarityScore] = []
        with ThreadPoolExecutor(max_workers=self.options.workers) as pool:
            futures = {
                pool.submit(get_similarity, cluster_sets[left], cluster_sets[right], self.options): (
                    left,
                    right,
                )
                for left, right in pairs
            }
            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Scoring similarities",
                unit="pair",
                leave=False,
                disable=not self.progress,
            ):
                left, right = futures[future]
                scores.append(SimilarityScore(left, right, future.result()))
        return SimilarityRanking(scores, order=names)

    def run(self, grids: Iterable[PixelGrid]) -> SimilarityRanking:
        """Cluster and compare *grids*, failing fast when there is nothing to compare."""
        grid_list = list(grids)
        if len(grid_list) < 2:
            raise InsufficientInput(len(grid_list))
        return self.compare_all(self.cluster_all(grid_list))


def group_similar(
    ranking: SimilarityRanking, names: Sequence[str], link_threshold: float
) -> List[List[str]]:
    """Link images whose pair scores at least *link_threshold*; return groups, largest first."""
    index = {name: position for position, name in enumerate(names)}
    forest = UnionFind(len(names))
    for item in ranking:
        if item.score >= link_threshold:
            forest.union(index[item.image_a], index[item.image_b])

    groups = [[names[member] for member in members] for members in forest.groups().values()]
    return sorted(groups, key=lambda members: (-len(members), index[members[0]]))
