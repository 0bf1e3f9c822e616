"""Output helpers for persisting run results."""

from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import pandas as pd

from ..features.perceptual import hamming_distance_hex
from .models import ClusterSet, RunReport, SimilarityRanking


def write_ranking(path: Path, ranking: SimilarityRanking) -> Path:
    """Write every scored pair to *path* as JSON, strongest first, and return the path."""
    serialised = [asdict(item) for item in ranking]
    path.write_text(json.dumps(serialised, indent=2), encoding="utf-8")
    return path


def write_pairs_csv(
    path: Path, ranking: SimilarityRanking, phashes: Mapping[str, str] | None = None
) -> Path:
    """Write the ranking as CSV with the perceptual hash distance of each pair."""
    phashes = phashes or {}
    with path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(["left", "right", "score", "phash_distance"])
        for item in ranking:
            hash_a = phashes.get(item.image_a)
            hash_b = phashes.get(item.image_b)
            distance = hamming_distance_hex(hash_a, hash_b) if hash_a and hash_b else ""
            writer.writerow([item.image_a, item.image_b, f"{item.score:.6f}", distance])
    return path


def write_cluster_table(
    path: Path, cluster_sets: Mapping[str, ClusterSet], phashes: Mapping[str, str] | None = None
) -> Path:
    """Write one row per clustered image to a Parquet table."""
    phashes = phashes or {}
    rows: List[Dict[str, Any]] = []
    for name, cluster_set in cluster_sets.items():
        fractions = [cluster.fraction for cluster in cluster_set.clusters]
        rows.append(
            {
                "image": name,
                "width": cluster_set.width,
                "height": cluster_set.height,
                "clusters": len(cluster_set),
                "largest_fraction": max(fractions, default=0.0),
                "phash": phashes.get(name),
            }
        )
    df = pd.DataFrame(
        rows, columns=["image", "width", "height", "clusters", "largest_fraction", "phash"]
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, index=False, engine="pyarrow")
    return path


def write_groups(path: Path, groups: Sequence[Sequence[str]]) -> Path:
    """Write *groups* to *path* as JSON and return the path."""
    serialised = [
        {"group_id": index, "members": list(members)} for index, members in enumerate(groups)
    ]
    path.write_text(json.dumps(serialised, indent=2), encoding="utf-8")
    return path


def write_report(path: Path, report: RunReport) -> Path:
    """Write a run report to *path* as JSON and return the path."""
    path.write_text(json.dumps(asdict(report), indent=2), encoding="utf-8")
    return path
