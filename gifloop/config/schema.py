"""Dataclass-based configuration schema for gifloop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


MAX_SHIFT_LIMIT = 50
CROP_PERCENT_LIMIT = 0.30
BORDER_MARGIN_LIMIT = 20
CHANNEL_MAX = 255

DEFAULT_DEVICES: Tuple[str, ...] = (
	"esp32s3cam-01",
	"esp32s3cam-02",
	"esp32s3cam-03",
	"esp32s3cam-04",
)


def _clamp(value, low, high):
	return min(max(value, low), high)


@dataclass(frozen=True)
class PipelineConfig:
	"""Per-invocation GIF build options. Resolved once by the caller and passed in."""

	width: Optional[int] = None
	height: Optional[int] = None
	frame_delay_ms: int = 120
	stabilize: bool = True
	max_shift_px: int = 6
	crop_percent: float = 0.05
	auto_border_detect: bool = True
	alpha_threshold: int = 8
	black_threshold: int = 8
	auto_border_margin_px: int = 0

	def __post_init__(self) -> None:
		if self.frame_delay_ms <= 0:
			raise ValueError(f"frame_delay_ms must be positive, got {self.frame_delay_ms}")
		for name in ("width", "height"):
			value = getattr(self, name)
			if value is not None and value <= 0:
				raise ValueError(f"{name} must be positive, got {value}")
		# frozen: normalise through object.__setattr__
		object.__setattr__(self, "max_shift_px", int(_clamp(int(self.max_shift_px), 0, MAX_SHIFT_LIMIT)))
		object.__setattr__(self, "crop_percent", float(_clamp(float(self.crop_percent), 0.0, CROP_PERCENT_LIMIT)))
		object.__setattr__(self, "alpha_threshold", int(_clamp(int(self.alpha_threshold), 0, CHANNEL_MAX)))
		object.__setattr__(self, "black_threshold", int(_clamp(int(self.black_threshold), 0, CHANNEL_MAX)))
		object.__setattr__(
			self, "auto_border_margin_px", int(_clamp(int(self.auto_border_margin_px), 0, BORDER_MARGIN_LIMIT))
		)


@dataclass(frozen=True)
class ServiceSettings:
	"""Options of the capture-ingestion service around the GIF builder."""

	output_dir: str = "output"
	config_path: str = "config.json"
	timeout_ms: int = 5000
	log_level: str = "info"
	devices: Tuple[str, ...] = DEFAULT_DEVICES
	error_window_s: float = 60.0
	error_alert_threshold: int = 3
	sweep_interval_s: float = 0.5
