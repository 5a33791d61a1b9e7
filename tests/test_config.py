import json

import pytest

from gifloop.config.loader import (
	load_pipeline_config,
	load_service_settings,
	pipeline_config_from_dict,
	read_config_file,
)
from gifloop.config.schema import DEFAULT_DEVICES, PipelineConfig, ServiceSettings


def _write(tmp_path, payload):
	path = tmp_path / "config.json"
	path.write_text(json.dumps(payload), encoding="utf-8")
	return path


def test_defaults_without_file_or_environment(tmp_path):
	config = load_pipeline_config(tmp_path / "missing.json", environ={})

	assert config == PipelineConfig()
	assert config.width is None and config.height is None
	assert config.frame_delay_ms == 120
	assert config.stabilize is True
	assert config.max_shift_px == 6
	assert config.crop_percent == 0.05
	assert config.auto_border_detect is True
	assert (config.alpha_threshold, config.black_threshold, config.auto_border_margin_px) == (8, 8, 0)


def test_file_wins_over_environment(tmp_path):
	path = _write(tmp_path, {"frameDelayMs": 200, "width": 320})

	config = load_pipeline_config(path, environ={"FRAME_DELAY_MS": "300", "GIF_HEIGHT": "240"})

	assert config.frame_delay_ms == 200
	assert config.width == 320
	assert config.height == 240


def test_invalid_file_value_falls_back_to_environment(tmp_path):
	path = _write(tmp_path, {"maxShiftPx": 99, "cropPercent": "lots"})

	config = load_pipeline_config(path, environ={"MAX_SHIFT_PX": "10", "CROP_PERCENT": "0.1"})

	assert config.max_shift_px == 10
	assert config.crop_percent == 0.1


def test_invalid_everywhere_uses_default(tmp_path):
	path = _write(tmp_path, {"frameDelayMs": 0})

	config = load_pipeline_config(path, environ={"FRAME_DELAY_MS": "-5"})

	assert config.frame_delay_ms == 120


def test_environment_booleans(tmp_path):
	env = {"STABILIZE": "false", "AUTO_BORDER_DETECT": "yes"}

	config = load_pipeline_config(tmp_path / "missing.json", environ=env)

	assert config.stabilize is False
	assert config.auto_border_detect is True


def test_file_booleans_must_be_json_booleans(tmp_path):
	path = _write(tmp_path, {"stabilize": "false", "autoBorderDetect": False})

	config = load_pipeline_config(path, environ={})

	assert config.stabilize is True
	assert config.auto_border_detect is False


def test_malformed_file_is_ignored(tmp_path):
	path = tmp_path / "config.json"
	path.write_text("{not json", encoding="utf-8")

	assert read_config_file(path) == {}
	assert load_pipeline_config(path, environ={}) == PipelineConfig()


def test_non_object_file_is_ignored(tmp_path):
	path = _write(tmp_path, [1, 2, 3])

	assert read_config_file(path) == {}


def test_out_of_range_values_are_clamped():
	config = PipelineConfig(max_shift_px=80, crop_percent=0.5, alpha_threshold=300, auto_border_margin_px=-3)

	assert config.max_shift_px == 50
	assert config.crop_percent == 0.30
	assert config.alpha_threshold == 255
	assert config.auto_border_margin_px == 0


@pytest.mark.parametrize("kwargs", [{"frame_delay_ms": 0}, {"width": 0}, {"height": -1}])
def test_non_positive_sizes_are_rejected(kwargs):
	with pytest.raises(ValueError):
		PipelineConfig(**kwargs)


def test_config_from_dict_ignores_unknown_keys():
	config = pipeline_config_from_dict({"frame_delay_ms": 80, "stabilize": False, "quality": "high"})

	assert config.frame_delay_ms == 80
	assert config.stabilize is False


def test_service_settings_from_environment():
	settings = load_service_settings(
		{"OUTPUT_DIR": "/tmp/gifs", "CONFIG_PATH": "/etc/gif.json", "TIMEOUT_MS": "2500", "LOG_LEVEL": "DEBUG"}
	)

	assert settings.output_dir == "/tmp/gifs"
	assert settings.config_path == "/etc/gif.json"
	assert settings.timeout_ms == 2500
	assert settings.log_level == "debug"
	assert settings.devices == DEFAULT_DEVICES


def test_service_settings_defaults():
	assert load_service_settings({"TIMEOUT_MS": "soon"}) == ServiceSettings()
