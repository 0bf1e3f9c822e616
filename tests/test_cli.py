"""End-to-end tests for the command-line entry point."""

import json

import numpy as np
import pytest
from PIL import Image

from imgsim.cli import (
    EXIT_COMPARISON_ERROR,
    EXIT_CONFIG_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_OK,
    main,
    parse_args,
)
from imgsim.io.errors import ComparisonFailure


def _write_png(path, pixels):
    Image.fromarray(np.asarray(pixels, dtype=np.uint8)).save(path)


@pytest.fixture
def image_dir(tmp_path, monkeypatch):
    """Two identical split images and one quartered image, run from an empty cwd."""
    monkeypatch.chdir(tmp_path)
    images = tmp_path / "images"
    images.mkdir()
    split = np.zeros((20, 20, 3), dtype=np.uint8)
    split[:, :10] = (255, 0, 0)
    split[:, 10:] = (0, 0, 255)
    quartered = np.zeros((20, 20, 3), dtype=np.uint8)
    quartered[:10, :10] = (255, 0, 0)
    quartered[:10, 10:] = (0, 255, 0)
    quartered[10:, :10] = (0, 0, 255)
    quartered[10:, 10:] = (255, 255, 0)
    _write_png(images / "a.png", split)
    _write_png(images / "b.png", split)
    _write_png(images / "c.png", quartered)
    (images / "readme.txt").write_text("not an image", encoding="utf-8")
    return images


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.input_dir is None
        assert args.top == 10
        assert args.link_threshold == 0.9
        assert args.debug is None
        assert args.max_k is None

    def test_link_threshold_range(self):
        with pytest.raises(SystemExit):
            parse_args(["--link-threshold", "1.5"])


class TestMain:
    def test_full_run(self, image_dir, tmp_path, capsys):
        out_dir = tmp_path / "out"
        debug_dir = tmp_path / "debug"
        code = main([str(image_dir), "--workers", "1", "--out", str(out_dir), "--debug-images", str(debug_dir)])
        assert code == EXIT_OK

        ranking = json.loads((out_dir / "ranking.json").read_text(encoding="utf-8"))
        assert len(ranking) == 3
        assert (ranking[0]["image_a"], ranking[0]["image_b"]) == ("a.png", "b.png")
        assert ranking[0]["score"] == 1.0
        assert ranking[1]["score"] < 1.0

        groups = json.loads((out_dir / "groups.json").read_text(encoding="utf-8"))
        assert groups[0]["members"] == ["a.png", "b.png"]
        metrics = json.loads((out_dir / "metrics.json").read_text(encoding="utf-8"))
        assert metrics["total_images"] == 3
        assert metrics["largest_group"] == 2
        for name in ("pairs.csv", "clusters.parquet"):
            assert (out_dir / name).exists()
        assert len(list(debug_dir.glob("*.png"))) == 6

        output = capsys.readouterr().out
        assert "[load] 3 images" in output
        assert "1. a.png <-> b.png score=1.000" in output
        assert "Threshold: 0.90" in output

    @pytest.mark.parametrize("flags", [
        ["--clustering", "KMeans", "--max-k", "4"],
        ["--similarity", "Coloursim", "--pixeldist", "Redmean"],
        ["--tolerance", "0.9"],
    ])
    def test_algorithm_choices(self, image_dir, flags):
        assert main([str(image_dir), "--workers", "1", *flags]) == EXIT_OK

    def test_config_file(self, image_dir, tmp_path):
        config = tmp_path / "custom.yaml"
        config.write_text("args:\n  clustering_alg: KMeans\nkmeans_options:\n  max_k: 3\n", encoding="utf-8")
        assert main([str(image_dir), "--config", str(config), "--workers", "1"]) == EXIT_OK

    def test_option_for_inactive_algorithm(self, image_dir, capsys):
        assert main([str(image_dir), "--max-k", "5"]) == EXIT_CONFIG_ERROR
        assert "invalid configuration" in capsys.readouterr().err

    def test_out_of_range_option(self, image_dir):
        assert main([str(image_dir), "--tolerance", "0"]) == EXIT_CONFIG_ERROR

    def test_missing_config(self, image_dir, tmp_path):
        assert main([str(image_dir), "--config", str(tmp_path / "nope.yaml")]) == EXIT_CONFIG_ERROR

    def test_missing_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main([str(tmp_path / "missing")]) == EXIT_INPUT_ERROR

    def test_single_image(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        _write_png(tmp_path / "only.png", np.zeros((4, 4, 3)))
        assert main([str(tmp_path)]) == EXIT_INPUT_ERROR
        assert "at least 2 images" in capsys.readouterr().err

    def test_defaults_to_current_directory(self, image_dir, monkeypatch):
        monkeypatch.chdir(image_dir)
        assert main(["--workers", "1"]) == EXIT_OK

    def test_input_dir_from_config(self, image_dir, tmp_path, capsys):
        config = tmp_path / "custom.yaml"
        config.write_text(f"args:\n  input_dir: {image_dir.as_posix()}\n", encoding="utf-8")
        assert main(["--config", str(config), "--workers", "1"]) == EXIT_OK
        assert f"[load] 3 images from {image_dir}" in capsys.readouterr().out

    def test_positional_input_dir_wins_over_config(self, image_dir, tmp_path):
        config = tmp_path / "custom.yaml"
        config.write_text(f"args:\n  input_dir: {(tmp_path / 'missing').as_posix()}\n", encoding="utf-8")
        assert main([str(image_dir), "--config", str(config), "--workers", "1"]) == EXIT_OK

    def test_comparison_failure_is_reported(self, image_dir, monkeypatch, capsys):
        def broken(set_a, set_b, options):
            raise ComparisonFailure(set_a.name, set_b.name, "score nan outside [0, 1]")

        monkeypatch.setattr("imgsim.group.compare.get_similarity", broken)
        assert main([str(image_dir), "--workers", "1"]) == EXIT_COMPARISON_ERROR
        err = capsys.readouterr().err
        assert "[error] comparison failed:" in err
        assert "score nan outside [0, 1]" in err


class TestVersion:
    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            parse_args(["--version"])
        assert excinfo.value.code == 0
        assert capsys.readouterr().out.startswith("imgsim ")
