"""Resolve pipeline and service configuration from file, environment and defaults."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from gifloop.config.schema import (
	BORDER_MARGIN_LIMIT,
	CHANNEL_MAX,
	CROP_PERCENT_LIMIT,
	MAX_SHIFT_LIMIT,
	PipelineConfig,
	ServiceSettings,
)


DEFAULT_CONFIG_PATH = Path("config.json")

# field name -> (config.json key, environment variable)
_KEYS: Dict[str, Tuple[str, str]] = {
	"width": ("width", "GIF_WIDTH"),
	"height": ("height", "GIF_HEIGHT"),
	"frame_delay_ms": ("frameDelayMs", "FRAME_DELAY_MS"),
	"stabilize": ("stabilize", "STABILIZE"),
	"max_shift_px": ("maxShiftPx", "MAX_SHIFT_PX"),
	"crop_percent": ("cropPercent", "CROP_PERCENT"),
	"auto_border_detect": ("autoBorderDetect", "AUTO_BORDER_DETECT"),
	"alpha_threshold": ("alphaThreshold", "ALPHA_THRESHOLD"),
	"black_threshold": ("blackThreshold", "BLACK_THRESHOLD"),
	"auto_border_margin_px": ("autoBorderMarginPx", "AUTO_BORDER_MARGIN_PX"),
}


def read_config_file(path: Optional[Path]) -> Dict[str, Any]:
	"""Return the JSON object stored at path, or {} when missing or unreadable."""

	if path is None or not path.exists():
		return {}
	try:
		with path.open("r", encoding="utf-8") as f:
			payload = json.load(f)
	except (OSError, ValueError):
		return {}
	return payload if isinstance(payload, dict) else {}


def _to_number(value: Any) -> Optional[float]:
	if value is None or isinstance(value, bool):
		return None
	try:
		number = float(value)
	except (TypeError, ValueError):
		return None
	if number != number:  # NaN
		return None
	return number


def _in_range(low: float, high: float) -> Callable[[Any], Optional[float]]:
	def parse(value: Any) -> Optional[float]:
		number = _to_number(value)
		if number is None or number < low or number > high:
			return None
		return number
	return parse


def _positive(value: Any) -> Optional[float]:
	# whole-unit quantities: anything under 1 would truncate to 0
	number = _to_number(value)
	if number is None or number < 1:
		return None
	return number


def _file_bool(value: Any) -> Optional[bool]:
	return value if isinstance(value, bool) else None


def _env_bool(value: Any) -> Optional[bool]:
	if value in ("1", "true"):
		return True
	if value in ("0", "false"):
		return False
	return None


_NUMERIC_PARSERS: Dict[str, Callable[[Any], Optional[float]]] = {
	"width": _positive,
	"height": _positive,
	"frame_delay_ms": _positive,
	"max_shift_px": _in_range(0, MAX_SHIFT_LIMIT),
	"crop_percent": _in_range(0.0, CROP_PERCENT_LIMIT),
	"alpha_threshold": _in_range(0, CHANNEL_MAX),
	"black_threshold": _in_range(0, CHANNEL_MAX),
	"auto_border_margin_px": _in_range(0, BORDER_MARGIN_LIMIT),
}

_BOOL_FIELDS = ("stabilize", "auto_border_detect")


def _resolve_field(name: str, file_values: Mapping[str, Any], environ: Mapping[str, str]) -> Any:
	file_key, env_key = _KEYS[name]
	if name in _BOOL_FIELDS:
		from_file = _file_bool(file_values.get(file_key))
		if from_file is not None:
			return from_file
		return _env_bool(environ.get(env_key))
	parse = _NUMERIC_PARSERS[name]
	number = parse(file_values.get(file_key))
	if number is None:
		number = parse(environ.get(env_key))
	if number is None:
		return None
	return number if name == "crop_percent" else int(number)


def load_pipeline_config(
	config_path: Optional[Path] = DEFAULT_CONFIG_PATH,
	environ: Optional[Mapping[str, str]] = None,
) -> PipelineConfig:
	"""
	Build a PipelineConfig with preference config.json > environment > built-in default.
	A value only counts for a source if it is valid there; otherwise the next source is tried.
	"""

	env = os.environ if environ is None else environ
	file_values = read_config_file(Path(config_path) if config_path is not None else None)
	resolved: Dict[str, Any] = {}
	for name in _KEYS:
		value = _resolve_field(name, file_values, env)
		if value is not None:
			resolved[name] = value
	return PipelineConfig(**resolved)


def pipeline_config_from_dict(payload: Mapping[str, Any]) -> PipelineConfig:
	"""Reconstruct a PipelineConfig from a plain dictionary keyed by field name."""

	known = {k: v for k, v in payload.items() if k in _KEYS}
	return PipelineConfig(**known)


def load_service_settings(environ: Optional[Mapping[str, str]] = None) -> ServiceSettings:
	"""Read the ingestion service options from the environment."""

	env = os.environ if environ is None else environ
	timeout = _positive(env.get("TIMEOUT_MS"))
	return ServiceSettings(
		output_dir=env.get("OUTPUT_DIR") or ServiceSettings.output_dir,
		config_path=env.get("CONFIG_PATH") or ServiceSettings.config_path,
		timeout_ms=int(timeout) if timeout is not None else ServiceSettings.timeout_ms,
		log_level=(env.get("LOG_LEVEL") or ServiceSettings.log_level).lower(),
	)
