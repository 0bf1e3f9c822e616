"""Command-line interface for the imgsim project."""

from __future__ import annotations

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from .extract.load_images import load_images
from .features.perceptual import compute_phash
from .group.compare import PairwiseComparator, group_similar
from .io.config import (
    DEFAULT_CONFIG_PATH,
    ImgsimOptions,
    apply_overrides,
    describe,
    load_options,
)
from .io.debug_export import save_debug_images
from .io.errors import ComparisonFailure, InsufficientInput, InvalidConfiguration
from .io.models import ClusterSet, PixelGrid, RunReport, SimilarityRanking
from .io.outputs import (
    write_cluster_table,
    write_groups,
    write_pairs_csv,
    write_ranking,
    write_report,
)

DEFAULT_LINK_THRESHOLD = 0.9
DEFAULT_TOP = 10

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_COMPARISON_ERROR = 3


def _package_version() -> str:
    try:
        return version("imgsim")
    except PackageNotFoundError:
        return "unknown"


def _unit_interval(value: str) -> float:
    number = float(value)
    if not 0.0 <= number <= 1.0:
        raise argparse.ArgumentTypeError(f"{value} is not within [0, 1]")
    return number


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the image similarity pipeline."""
    parser = argparse.ArgumentParser(
        prog="imgsim",
        description="Find visually similar images in a directory by comparing their colour clusters.",
    )
    parser.add_argument(
        "input_dir",
        nargs="?",
        default=None,
        help="Directory holding the images to compare (default: the config's input_dir, else the current directory).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"YAML configuration file (default: {DEFAULT_CONFIG_PATH} when present).",
    )
    parser.add_argument("--pixeldist", dest="pixeldist_alg", help="Euclidean or Redmean.")
    parser.add_argument("--clustering", dest="clustering_alg", help="Agglomerative or KMeans.")
    parser.add_argument("--similarity", dest="similarity_alg", help="Coloursim or Clustersize.")
    parser.add_argument(
        "--tolerance",
        type=float,
        help="Agglomerative: percentile of neighbour distances below which pixels merge.",
    )
    parser.add_argument("--max-k", type=int, help="KMeans: largest number of clusters to try.")
    parser.add_argument(
        "--silhouette-threshold",
        type=float,
        help="KMeans: stop once the silhouette reaches this value (1.0 never stops early).",
    )
    parser.add_argument(
        "--coloursim-cutoff",
        type=float,
        help="Coloursim: ignore clusters smaller than this fraction of the image.",
    )
    parser.add_argument(
        "--clustersize-cutoff",
        type=float,
        help="Clustersize: ignore clusters smaller than this fraction of the image.",
    )
    parser.add_argument(
        "--size-weight",
        type=float,
        help="Clustersize: weight of size against location when scoring a cluster pair.",
    )
    parser.add_argument("--max-width", type=int, help="Shrink wider images to this width.")
    parser.add_argument("--max-height", type=int, help="Shrink taller images to this height.")
    parser.add_argument("--workers", type=int, help="Number of worker threads.")
    parser.add_argument(
        "--out",
        default=None,
        help="Directory where ranking, pair, cluster and group reports are written.",
    )
    parser.add_argument(
        "--debug-images",
        default=None,
        metavar="DIR",
        help="Write cluster visualizations for every image to DIR.",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=DEFAULT_TOP,
        metavar="N",
        help=f"Show the top N most similar pairs (default {DEFAULT_TOP}).",
    )
    parser.add_argument(
        "--link-threshold",
        type=_unit_interval,
        default=DEFAULT_LINK_THRESHOLD,
        help=f"Group images whose similarity reaches this score (default {DEFAULT_LINK_THRESHOLD}).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Show detailed log messages.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    return parser.parse_args(list(argv) if argv is not None else None)


def _resolve_options(args: argparse.Namespace) -> ImgsimOptions:
    """Load the configuration file and apply command-line overrides."""
    config_path = args.config
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    options = load_options(config_path)
    overrides: Dict[str, Any] = {
        "pixeldist_alg": args.pixeldist_alg,
        "clustering_alg": args.clustering_alg,
        "similarity_alg": args.similarity_alg,
        "tolerance": args.tolerance,
        "max_k": args.max_k,
        "silhouette_threshold": args.silhouette_threshold,
        "coloursim_cutoff": args.coloursim_cutoff,
        "clustersize_cutoff": args.clustersize_cutoff,
        "size_weight": args.size_weight,
        "max_width": args.max_width,
        "max_height": args.max_height,
        "workers": args.workers,
        "debug": args.debug,
    }
    return apply_overrides(options, overrides)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _print_top_pairs(ranking: SimilarityRanking, limit: int) -> None:
    top_pairs = ranking.top(limit)
    if not top_pairs:
        return
    print(f"[pairs] showing top {len(top_pairs)} of {len(ranking)} pairs")
    for index, item in enumerate(top_pairs, start=1):
        print(f"  {index}. {item.image_a} <-> {item.image_b} score={item.score:.3f}")


def _compute_phashes(grids: Iterable[PixelGrid], cluster_sets: Mapping[str, ClusterSet]) -> Dict[str, str]:
    return {grid.name: compute_phash(grid) for grid in grids if grid.name in cluster_sets}


def _write_outputs(
    out_dir: Path,
    ranking: SimilarityRanking,
    cluster_sets: Mapping[str, ClusterSet],
    groups: List[List[str]],
    phashes: Mapping[str, str],
    report: RunReport,
) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    for path in (
        write_ranking(out_dir / "ranking.json", ranking),
        write_pairs_csv(out_dir / "pairs.csv", ranking, phashes),
        write_cluster_table(out_dir / "clusters.parquet", cluster_sets, phashes),
        write_groups(out_dir / "groups.json", groups),
        write_report(out_dir / "metrics.json", report),
    ):
        print(f"[saved] {path}")


def main(argv: Iterable[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = parse_args(argv)
    _configure_logging(bool(args.debug))
    try:
        options = _resolve_options(args)
    except InvalidConfiguration as exc:
        print(f"[error] invalid configuration: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    if options.debug:
        _configure_logging(True)

    input_dir = Path(args.input_dir or options.input_dir or Path.cwd())
    try:
        grids = load_images(input_dir, options.max_width, options.max_height)
    except (FileNotFoundError, NotADirectoryError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    print(f"[load] {len(grids)} images from {input_dir}")

    comparator = PairwiseComparator(options, progress=True)
    try:
        ranking = comparator.run(grids)
    except InsufficientInput as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR
    except ComparisonFailure as exc:
        print(f"[error] comparison failed: {exc}", file=sys.stderr)
        return EXIT_COMPARISON_ERROR
    cluster_sets = comparator.cluster_sets
    for name, failure in comparator.failures.items():
        print(f"[cluster] {name}: excluded ({failure.reason})")
    print(f"[cluster] {len(cluster_sets)} images clustered")

    if args.debug_images:
        written = save_debug_images(cluster_sets.values(), Path(args.debug_images))
        print(f"[debug] wrote {len(written)} cluster images to {args.debug_images}")

    names = [grid.name for grid in grids if grid.name in cluster_sets]
    groups = group_similar(ranking, names, args.link_threshold)
    largest_group = max((len(members) for members in groups), default=0)
    _print_top_pairs(ranking, args.top)

    if args.out:
        report = RunReport(
            total_images=len(grids),
            clustered=len(cluster_sets),
            pairs=len(ranking),
            groups=len(groups),
            largest_group=largest_group,
            link_threshold=float(args.link_threshold),
            options=describe(options),
            failures={name: failure.reason for name, failure in comparator.failures.items()},
        )
        ordered_sets = {name: cluster_sets[name] for name in names}
        phashes = _compute_phashes(grids, cluster_sets)
        _write_outputs(Path(args.out), ranking, ordered_sets, groups, phashes, report)

    print(f"Images: {len(grids)}")
    print(f"Clustered: {len(cluster_sets)}")
    print(f"Pairs: {len(ranking)}")
    print(f"Groups: {len(groups)}")
    print(f"Largest group: {largest_group} images")
    print(f"Threshold: {args.link_threshold:.2f}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
