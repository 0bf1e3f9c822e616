"""Similarity scoring between the cluster sets of two images."""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, List, Sequence, Tuple

import numpy as np

from ..features.pixeldist import PixeldistFn, get_pixeldist
from ..io.errors import ComparisonFailure
from ..io.models import Cluster, ClusterSet

if TYPE_CHECKING:
    from ..io.config import ImgsimOptions

logger = logging.getLogger(__name__)

DEFAULT_SIZE_WEIGHT: float = 0.5

_MAX_CENTROID_DISTANCE = math.sqrt(2.0)
_SCORE_TOLERANCE = 1e-9


class SimilarityAlg(Enum):
    """Algorithm used to score the similarity of two images."""

    COLOURSIM = "Coloursim"
    CLUSTERSIZE = "Clustersize"

    @classmethod
    def from_name(cls, value: str) -> "SimilarityAlg":
        key = str(value).strip().lower().replace("-", "").replace("_", "")
        aliases = {
            "coloursim": cls.COLOURSIM,
            "colorsim": cls.COLOURSIM,
            "clustersize": cls.CLUSTERSIZE,
        }
        try:
            return aliases[key]
        except KeyError:
            raise ValueError(f"Unknown similarity algorithm: {value!r}") from None


def dominant_clusters(cluster_set: ClusterSet, cutoff: float) -> List[Cluster]:
    """Return clusters holding at least *cutoff* of the image, largest first.

    Falls back to the single largest cluster when none reaches the cutoff.
    """
    if not 0.0 <= cutoff < 1.0:
        raise ValueError(f"cluster cutoff must lie in [0, 1), got {cutoff}")
    ranked = sorted(cluster_set.clusters, key=lambda item: (-item.size, item.cluster_id))
    dominant = [cluster for cluster in ranked if cluster.fraction >= cutoff]
    if not dominant and ranked:
        logger.warning(
            "%s has no clusters above %.1f%% of the image; using its largest cluster",
            cluster_set.name,
            cutoff * 100.0,
        )
        dominant = ranked[:1]
    return dominant


def greedy_match(distances: np.ndarray, tiebreak: np.ndarray | None = None) -> List[Tuple[int, int]]:
    """Pair rows with columns by repeatedly taking the closest unmatched pair.

    Equal distances are ordered by *tiebreak* (same shape), then row, then column.
    """
    rows_count, cols_count = distances.shape
    if rows_count == 0 or cols_count == 0:
        return []
    rows, cols = np.indices(distances.shape)
    secondary = np.zeros(distances.shape) if tiebreak is None else tiebreak
    order = np.lexsort((cols.ravel(), rows.ravel(), secondary.ravel(), distances.ravel()))

    limit = min(rows_count, cols_count)
    used_rows: set[int] = set()
    used_cols: set[int] = set()
    pairs: List[Tuple[int, int]] = []
    for flat in order.tolist():
        row, col = divmod(flat, cols_count)
        if row in used_rows or col in used_cols:
            continue
        used_rows.add(row)
        used_cols.add(col)
        pairs.append((row, col))
        if len(pairs) == limit:
            break
    return pairs


def colour_similarity(
    set_a: ClusterSet,
    set_b: ClusterSet,
    cutoff: float,
    pixeldist: PixeldistFn,
) -> float:
    """Score two images by the mean colours of their dominant clusters."""
    dominant_a, dominant_b = _canonical_order(
        dominant_clusters(set_a, cutoff), dominant_clusters(set_b, cutoff)
    )
    colours_a = np.array([cluster.mean_colour for cluster in dominant_a], dtype=np.float64)
    distances = np.stack(
        [
            np.atleast_1d(np.asarray(pixeldist(colours_a, cluster.mean_colour)))
            for cluster in dominant_b
        ],
        axis=1,
    )
    pairs = greedy_match(distances, _fraction_gaps(dominant_a, dominant_b))
    matched = [
        (dominant_a[i].fraction + dominant_b[j].fraction, 1.0 - float(distances[i, j]))
        for i, j in pairs
    ]
    return _aggregate(matched, _unmatched_mass(dominant_a, dominant_b, pairs))


def size_similarity(
    set_a: ClusterSet,
    set_b: ClusterSet,
    cutoff: float,
    size_weight: float = DEFAULT_SIZE_WEIGHT,
) -> float:
    """Score two images by the relative size and location of their dominant clusters."""
    if not 0.0 <= size_weight <= 1.0:
        raise ValueError(f"size_weight must lie in [0, 1], got {size_weight}")
    dominant_a, dominant_b = _canonical_order(
        dominant_clusters(set_a, cutoff), dominant_clusters(set_b, cutoff)
    )
    centroids_a = np.array([cluster.centroid for cluster in dominant_a], dtype=np.float64)
    centroids_b = np.array([cluster.centroid for cluster in dominant_b], dtype=np.float64)
    delta = centroids_a[:, None, :] - centroids_b[None, :, :]
    distances = np.hypot(delta[..., 0], delta[..., 1])
    pairs = greedy_match(distances, _fraction_gaps(dominant_a, dominant_b))

    matched = []
    for i, j in pairs:
        fraction_a, fraction_b = dominant_a[i].fraction, dominant_b[j].fraction
        size_score = 1.0 - abs(fraction_a - fraction_b)
        location_score = 1.0 - min(1.0, float(distances[i, j]) / _MAX_CENTROID_DISTANCE)
        pair_score = size_weight * size_score + (1.0 - size_weight) * location_score
        matched.append((fraction_a + fraction_b, pair_score))
    return _aggregate(matched, _unmatched_mass(dominant_a, dominant_b, pairs))


def get_similarity(set_a: ClusterSet, set_b: ClusterSet, options: "ImgsimOptions") -> float:
    """Return the similarity of two cluster sets in [0, 1] under *options*."""
    if not set_a.clusters or not set_b.clusters:
        raise ComparisonFailure(set_a.name, set_b.name, "cluster set without clusters")
    try:
        if options.similarity_alg is SimilarityAlg.COLOURSIM:
            score = colour_similarity(
                set_a,
                set_b,
                options.coloursim_cutoff,
                get_pixeldist(options.pixeldist_alg),
            )
        elif options.similarity_alg is SimilarityAlg.CLUSTERSIZE:
            score = size_similarity(
                set_a, set_b, options.clustersize_cutoff, options.size_weight
            )
        else:
            raise ComparisonFailure(
                set_a.name, set_b.name, f"unsupported similarity algorithm {options.similarity_alg!r}"
            )
    except (ValueError, IndexError) as exc:
        raise ComparisonFailure(set_a.name, set_b.name, str(exc)) from exc

    if not math.isfinite(score) or score < -_SCORE_TOLERANCE or score > 1.0 + _SCORE_TOLERANCE:
        raise ComparisonFailure(set_a.name, set_b.name, f"score {score!r} outside [0, 1]")
    return float(max(0.0, min(1.0, score)))


def _canonical_order(
    dominant_a: List[Cluster], dominant_b: List[Cluster]
) -> Tuple[List[Cluster], List[Cluster]]:
    # both argument orders must produce the same matching
    key_a = _canonical_key(dominant_a)
    key_b = _canonical_key(dominant_b)
    return (dominant_a, dominant_b) if key_a <= key_b else (dominant_b, dominant_a)


def _canonical_key(clusters: Sequence[Cluster]) -> tuple:
    return tuple((-c.fraction, c.mean_colour, c.centroid) for c in clusters)


def _fraction_gaps(dominant_a: Sequence[Cluster], dominant_b: Sequence[Cluster]) -> np.ndarray:
    fractions_a = np.array([cluster.fraction for cluster in dominant_a], dtype=np.float64)
    fractions_b = np.array([cluster.fraction for cluster in dominant_b], dtype=np.float64)
    return np.abs(fractions_a[:, None] - fractions_b[None, :])


def _unmatched_mass(
    dominant_a: Sequence[Cluster],
    dominant_b: Sequence[Cluster],
    pairs: Sequence[Tuple[int, int]],
) -> float:
    matched_a = {i for i, _ in pairs}
    matched_b = {j for _, j in pairs}
    mass = sum(c.fraction for index, c in enumerate(dominant_a) if index not in matched_a)
    mass += sum(c.fraction for index, c in enumerate(dominant_b) if index not in matched_b)
    return mass


def _aggregate(matched: Sequence[Tuple[float, float]], unmatched_mass: float) -> float:
    weight_total = 0.0
    score = 0.0
    for weight, pair_score in matched:
        weight_total += weight
        score += weight * pair_score
    denominator = weight_total + unmatched_mass
    if denominator <= 0.0:
        return 0.0
    return score / denominator
