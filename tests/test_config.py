"""Tests for YAML configuration loading, validation and overrides."""

from pathlib import Path

import pytest

from imgsim.cluster.clusters import ClusteringAlg
from imgsim.features.pixeldist import PixeldistAlg
from imgsim.group.similarity import SimilarityAlg
from imgsim.io.config import (
    ImgsimOptions,
    apply_overrides,
    describe,
    load_options,
    load_yaml_config,
    options_from_mapping,
)
from imgsim.io.errors import InvalidConfiguration

SHIPPED_CONFIG = Path(__file__).resolve().parents[1] / "config" / "config.yaml"


@pytest.fixture
def write_config(tmp_path):
    def _write(text):
        path = tmp_path / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


class TestLoading:
    def test_defaults(self):
        options = load_options()
        assert options == ImgsimOptions()
        assert options.tolerance == 0.6
        assert options.max_k == 10
        assert options.silhouette_threshold == 0.7
        assert options.coloursim_cutoff == 0.1
        assert options.clustersize_cutoff == 0.05
        assert (options.max_width, options.max_height) == (1000, 1000)

    def test_shipped_config_matches_defaults(self):
        assert load_options(SHIPPED_CONFIG) == ImgsimOptions()

    def test_aliases_and_partial_sections(self, write_config):
        path = write_config(
            "args:\n"
            "  pixeldist_alg: redmean\n"
            "  clustering_alg: agglo\n"
            "  similarity_alg: colorsim\n"
            "agglomerative_options:\n"
            "  tolerance: 0.25\n"
        )
        options = load_options(path)
        assert options.pixeldist_alg is PixeldistAlg.REDMEAN
        assert options.clustering_alg is ClusteringAlg.AGGLOMERATIVE
        assert options.similarity_alg is SimilarityAlg.COLOURSIM
        assert options.tolerance == 0.25
        assert options.max_k == 10

    @pytest.mark.parametrize("value,expected", [('""', ""), ("", ""), ("photos", "photos")])
    def test_input_dir(self, write_config, value, expected):
        path = write_config(f"args:\n  input_dir: {value}\n  pixeldist_alg: Euclidean\n")
        assert load_options(path).input_dir == expected

    def test_input_dir_must_be_a_path(self):
        with pytest.raises(InvalidConfiguration, match="input_dir"):
            options_from_mapping({"args": {"input_dir": 5}})

    def test_empty_file_gives_defaults(self, write_config):
        assert load_options(write_config("")) == ImgsimOptions()

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidConfiguration, match="not found"):
            load_yaml_config(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, write_config):
        with pytest.raises(InvalidConfiguration, match="Could not parse"):
            load_yaml_config(write_config("args: [unclosed\n"))

    def test_top_level_must_be_mapping(self, write_config):
        with pytest.raises(InvalidConfiguration, match="mapping"):
            load_yaml_config(write_config("- 1\n- 2\n"))


class TestValidation:
    @pytest.mark.parametrize("data,message", [
        ({"extras": {"x": 1}}, "Unknown configuration section"),
        ({"args": {"colour": "red"}}, "Unknown option"),
        ({"args": {"clustering_alg": "dbscan"}}, "Unknown clustering"),
        ({"args": {"pixeldist_alg": 3}}, "algorithm name"),
        ({"args": "Euclidean"}, "must be a mapping"),
        ({"agglomerative_options": {"tolerance": 0.0}}, "tolerance"),
        ({"agglomerative_options": {"tolerance": 1.2}}, "tolerance"),
        ({"agglomerative_options": {"tolerance": "high"}}, "tolerance"),
        ({"kmeans_options": {"max_k": 1}}, "max_k"),
        ({"kmeans_options": {"max_k": 2.5}}, "max_k"),
        ({"kmeans_options": {"max_k": True}}, "max_k"),
        ({"kmeans_options": {"silhouette_threshold": -0.1}}, "silhouette_threshold"),
        ({"coloursim_options": {"coloursim_cluster_cutoff": 1.0}}, "coloursim_cutoff"),
        ({"clustersize_options": {"clustersize_cluster_cutoff": -0.01}}, "clustersize_cutoff"),
        ({"clustersize_options": {"size_weight": 2}}, "size_weight"),
        ({"settings": {"max_width": 0}}, "max_width"),
        ({"settings": {"workers": 0}}, "workers"),
        ({"settings": {"debug": "yes"}}, "debug"),
    ])
    def test_rejected(self, data, message):
        with pytest.raises(InvalidConfiguration, match=message):
            options_from_mapping(data)

    @pytest.mark.parametrize("data", [
        {"agglomerative_options": {"tolerance": 1.0}},
        {"kmeans_options": {"silhouette_threshold": 1.0}},
        {"kmeans_options": {"max_k": 2}},
        {"coloursim_options": {"coloursim_cluster_cutoff": 0.0}},
        {"agglomerative_options": None},
    ])
    def test_accepted_edges(self, data):
        options_from_mapping(data)


class TestOverrides:
    def test_none_values_are_ignored(self):
        options = apply_overrides(ImgsimOptions(), {"tolerance": None, "max_k": None})
        assert options == ImgsimOptions()

    def test_override_for_active_algorithm(self):
        options = apply_overrides(ImgsimOptions(), {"tolerance": 0.3})
        assert options.tolerance == 0.3

    def test_switching_algorithm_with_its_options(self):
        options = apply_overrides(ImgsimOptions(), {"clustering_alg": "KMeans", "max_k": 4})
        assert options.clustering_alg is ClusteringAlg.KMEANS
        assert options.max_k == 4

    @pytest.mark.parametrize("overrides", [
        {"max_k": 4},
        {"silhouette_threshold": 0.5},
        {"clustering_alg": "KMeans", "tolerance": 0.5},
        {"coloursim_cutoff": 0.2},
        {"similarity_alg": "Coloursim", "size_weight": 0.3},
    ])
    def test_inactive_algorithm_option_rejected(self, overrides):
        with pytest.raises(InvalidConfiguration, match="only applies"):
            apply_overrides(ImgsimOptions(), overrides)

    def test_unknown_override(self):
        with pytest.raises(InvalidConfiguration, match="Unknown option"):
            apply_overrides(ImgsimOptions(), {"colour": "red"})

    def test_out_of_range_override(self):
        with pytest.raises(InvalidConfiguration, match="tolerance"):
            apply_overrides(ImgsimOptions(), {"tolerance": 0.0})


class TestDescribe:
    def test_only_active_options(self):
        described = describe(ImgsimOptions())
        assert described["clustering_alg"] == "Agglomerative"
        assert described["similarity_alg"] == "Clustersize"
        assert "tolerance" in described
        assert "clustersize_cutoff" in described
        assert "max_k" not in described
        assert "coloursim_cutoff" not in described
