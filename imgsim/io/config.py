"""Configuration loading and validation.

Options come from a YAML file laid out like ``config/config.yaml`` and may be
overridden from the command line. Everything is validated before any image
is touched.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml

from ..cluster.clusters import ClusteringAlg
from ..features.pixeldist import PixeldistAlg
from ..group.similarity import DEFAULT_SIZE_WEIGHT, SimilarityAlg
from .errors import InvalidConfiguration

DEFAULT_CONFIG_PATH = Path("config") / "config.yaml"

# (section, key) -> option attribute
_FILE_LAYOUT: Dict[Tuple[str, str], str] = {
    ("args", "input_dir"): "input_dir",
    ("args", "pixeldist_alg"): "pixeldist_alg",
    ("args", "clustering_alg"): "clustering_alg",
    ("args", "similarity_alg"): "similarity_alg",
    ("settings", "debug"): "debug",
    ("settings", "max_width"): "max_width",
    ("settings", "max_height"): "max_height",
    ("settings", "workers"): "workers",
    ("agglomerative_options", "tolerance"): "tolerance",
    ("kmeans_options", "max_k"): "max_k",
    ("kmeans_options", "silhouette_threshold"): "silhouette_threshold",
    ("coloursim_options", "coloursim_cluster_cutoff"): "coloursim_cutoff",
    ("clustersize_options", "clustersize_cluster_cutoff"): "clustersize_cutoff",
    ("clustersize_options", "size_weight"): "size_weight",
}

# options that only mean something for one algorithm choice
_ALGORITHM_OPTIONS: Dict[str, Tuple[str, Any]] = {
    "tolerance": ("clustering_alg", ClusteringAlg.AGGLOMERATIVE),
    "max_k": ("clustering_alg", ClusteringAlg.KMEANS),
    "silhouette_threshold": ("clustering_alg", ClusteringAlg.KMEANS),
    "coloursim_cutoff": ("similarity_alg", SimilarityAlg.COLOURSIM),
    "clustersize_cutoff": ("similarity_alg", SimilarityAlg.CLUSTERSIZE),
    "size_weight": ("similarity_alg", SimilarityAlg.CLUSTERSIZE),
}


@dataclass(frozen=True, slots=True)
class ImgsimOptions:
    """Validated settings for one imgsim run."""

    input_dir: str = ""
    pixeldist_alg: PixeldistAlg = PixeldistAlg.EUCLIDEAN
    clustering_alg: ClusteringAlg = ClusteringAlg.AGGLOMERATIVE
    similarity_alg: SimilarityAlg = SimilarityAlg.CLUSTERSIZE
    debug: bool = False
    max_width: int = 1000
    max_height: int = 1000
    workers: int = 4
    tolerance: float = 0.6
    max_k: int = 10
    silhouette_threshold: float = 0.7
    coloursim_cutoff: float = 0.1
    clustersize_cutoff: float = 0.05
    size_weight: float = DEFAULT_SIZE_WEIGHT

    def validate(self) -> "ImgsimOptions":
        """Return self if every value is in range, else raise InvalidConfiguration."""
        _require_positive_int("max_width", self.max_width)
        _require_positive_int("max_height", self.max_height)
        _require_positive_int("workers", self.workers)
        _require_int("max_k", self.max_k)
        if self.max_k < 2:
            raise InvalidConfiguration(f"max_k must be at least 2, got {self.max_k}")
        _require_range("tolerance", self.tolerance, 0.0, 1.0, low_open=True)
        _require_range("silhouette_threshold", self.silhouette_threshold, 0.0, 1.0)
        _require_range("coloursim_cutoff", self.coloursim_cutoff, 0.0, 1.0, high_open=True)
        _require_range("clustersize_cutoff", self.clustersize_cutoff, 0.0, 1.0, high_open=True)
        _require_range("size_weight", self.size_weight, 0.0, 1.0)
        if not isinstance(self.debug, bool):
            raise InvalidConfiguration(f"debug must be true or false, got {self.debug!r}")
        if not isinstance(self.input_dir, str):
            raise InvalidConfiguration(f"input_dir must be a path, got {self.input_dir!r}")
        return self


def load_yaml_config(config_path: str | Path) -> Dict[str, Any]:
    """Load a YAML configuration file into a mapping."""
    config_file = Path(config_path)
    if not config_file.exists():
        raise InvalidConfiguration(f"Configuration file not found: {config_file}")
    try:
        with open(config_file, "r", encoding="utf-8") as file:
            data = yaml.safe_load(file)
    except yaml.YAMLError as exc:
        raise InvalidConfiguration(f"Could not parse {config_file}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"{config_file}: top level must be a mapping")
    return data


def options_from_mapping(data: Mapping[str, Any]) -> ImgsimOptions:
    """Build validated options from a nested mapping laid out like the config file."""
    values: Dict[str, Any] = {}
    known_sections = {section for section, _ in _FILE_LAYOUT}
    for section, entries in data.items():
        if section not in known_sections:
            raise InvalidConfiguration(f"Unknown configuration section: {section!r}")
        if entries is None:
            continue
        if not isinstance(entries, Mapping):
            raise InvalidConfiguration(f"Section {section!r} must be a mapping")
        for key, value in entries.items():
            attribute = _FILE_LAYOUT.get((section, key))
            if attribute is None:
                raise InvalidConfiguration(f"Unknown option {key!r} in section {section!r}")
            values[attribute] = value
    return _build(values)


def load_options(config_path: str | Path | None = None) -> ImgsimOptions:
    """Return options from *config_path*, or the defaults when no path is given."""
    if config_path is None:
        return ImgsimOptions().validate()
    return options_from_mapping(load_yaml_config(config_path))


def apply_overrides(options: ImgsimOptions, overrides: Mapping[str, Any]) -> ImgsimOptions:
    """Return *options* updated with explicit *overrides* (``None`` values are ignored).

    An override for an option of an algorithm that is not selected is an
    invalid combination.
    """
    given = {key: value for key, value in overrides.items() if value is not None}
    unknown = set(given) - set(ImgsimOptions.__dataclass_fields__)
    if unknown:
        raise InvalidConfiguration(f"Unknown option(s): {', '.join(sorted(unknown))}")

    current = {name: getattr(options, name) for name in ImgsimOptions.__dataclass_fields__}
    current.update(given)
    updated = _build(current)
    for name in given:
        requirement = _ALGORITHM_OPTIONS.get(name)
        if requirement is None:
            continue
        selector, expected = requirement
        selected = getattr(updated, selector)
        if selected is not expected:
            raise InvalidConfiguration(
                f"Option {name!r} only applies to {expected.value}, "
                f"but {selector} is {selected.value}"
            )
    return updated


def describe(options: ImgsimOptions) -> Dict[str, Any]:
    """Return a JSON-friendly view of *options* with only the active algorithm settings."""
    active = {
        "pixeldist_alg": options.pixeldist_alg.value,
        "clustering_alg": options.clustering_alg.value,
        "similarity_alg": options.similarity_alg.value,
        "max_width": options.max_width,
        "max_height": options.max_height,
    }
    for name, (selector, expected) in _ALGORITHM_OPTIONS.items():
        if getattr(options, selector) is expected:
            active[name] = getattr(options, name)
    return active


def _build(values: Mapping[str, Any]) -> ImgsimOptions:
    parsed = dict(values)
    # an empty input_dir means the current directory
    if "input_dir" in parsed and parsed["input_dir"] is None:
        parsed["input_dir"] = ""
    try:
        if "pixeldist_alg" in parsed:
            parsed["pixeldist_alg"] = _as_enum(PixeldistAlg, parsed["pixeldist_alg"])
        if "clustering_alg" in parsed:
            parsed["clustering_alg"] = _as_enum(ClusteringAlg, parsed["clustering_alg"])
        if "similarity_alg" in parsed:
            parsed["similarity_alg"] = _as_enum(SimilarityAlg, parsed["similarity_alg"])
    except ValueError as exc:
        raise InvalidConfiguration(str(exc)) from exc
    return replace(ImgsimOptions(), **parsed).validate()


def _as_enum(enum_type: Any, value: Any) -> Any:
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected an algorithm name, got {value!r}")
    return enum_type.from_name(value)


def _require_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")


def _require_positive_int(name: str, value: Any) -> None:
    _require_int(name, value)
    if value < 1:
        raise InvalidConfiguration(f"{name} must be positive, got {value}")


def _require_range(
    name: str,
    value: Any,
    low: float,
    high: float,
    low_open: bool = False,
    high_open: bool = False,
) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise InvalidConfiguration(f"{name} must be a number, got {value!r}")
    below = value <= low if low_open else value < low
    above = value >= high if high_open else value > high
    if below or above:
        left = "(" if low_open else "["
        right = ")" if high_open else "]"
        raise InvalidConfiguration(f"{name} must lie in {left}{low}, {high}{right}, got {value}")
