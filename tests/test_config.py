import json

import pytest
import yaml

from trackcal.pipeline import (
    CalibrationConfig,
    get_default_config,
    get_stereo_config,
    get_tooltip_config,
)
from trackcal.pipeline.config import RansacConfig


def test_dict_round_trip():
    config = get_stereo_config()
    restored = CalibrationConfig.from_dict(config.to_dict())
    assert restored == config


def test_partial_dict_keeps_defaults():
    config = CalibrationConfig.from_dict({"tooltip": {"ransac": {"threshold": 0.25}}})
    assert config.tooltip.ransac.threshold == 0.25
    assert config.tooltip.ransac.max_iterations == 300
    assert config.fundamental == get_default_config().fundamental


def test_presets_differ_from_defaults():
    default = get_default_config()
    assert get_tooltip_config().tooltip.ransac.min_inlier == 20
    assert get_stereo_config().fundamental.use_ransac
    assert not default.fundamental.use_ransac
    assert default.reconstruction.max_cost is None


def test_to_parameters_fixed_iterations():
    params = RansacConfig(threshold=0.5, set_size=3, min_inlier=5, max_iterations=42).to_parameters()
    assert params.max_iterations == 42
    assert params.threshold == 0.5
    assert not params.stop_on_consensus


def test_to_parameters_from_outlier_ratio():
    rc = RansacConfig(set_size=8, min_inlier=16, outlier_ratio=0.5, confidence=0.99, stop_on_consensus=True)
    params = rc.to_parameters()
    assert params.max_iterations == 1177
    assert params.stop_on_consensus


def test_invalid_ransac_config_fails_on_conversion():
    with pytest.raises(ValueError):
        RansacConfig(set_size=0).to_parameters()


def test_from_json_file(tmp_path):
    path = tmp_path / "calib.json"
    path.write_text(json.dumps({"triangulation": {"refine": True}, "verbose": False}))
    config = CalibrationConfig.from_file(path)
    assert config.triangulation.refine
    assert not config.verbose


def test_from_yaml_file(tmp_path):
    path = tmp_path / "calib.yaml"
    path.write_text(yaml.safe_dump({
        "fundamental": {"step_size": 2, "ransac": {"seed": 7, "set_size": 8}},
        "reconstruction": {"max_cost": 2.5},
    }))
    config = CalibrationConfig.from_file(path)
    assert config.fundamental.step_size == 2
    assert config.fundamental.ransac.seed == 7
    assert config.reconstruction.max_cost == 2.5


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "calib.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(ValueError):
        CalibrationConfig.from_file(path)


def test_unknown_key_is_rejected():
    with pytest.raises(TypeError):
        CalibrationConfig.from_dict({"triangulation": {"refine": True, "bogus": 1}})
