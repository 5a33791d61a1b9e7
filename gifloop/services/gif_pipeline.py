from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from gifloop.config.schema import PipelineConfig
from gifloop.observability.logging import get_logger, log_event
from gifloop.services.alignment import StabilizationPlan, estimate_offsets
from gifloop.services.borders import auto_crop
from gifloop.services.encoding import assemble_sequence, encode_gif
from gifloop.services.errors import InputCountError
from gifloop.services.image_utils import PixelBuffer
from gifloop.services.normalization import normalize_frames
from gifloop.services.stabilization import CropWindow, crop_window, pad_and_crop


FRAME_COUNT = 4

logger = get_logger("gifloop.pipeline")


@dataclass(frozen=True)
class BuildResult:
	target_size: Tuple[int, int]
	window: CropWindow
	plan: Optional[StabilizationPlan]
	frames: List[PixelBuffer]
	sequence: List[PixelBuffer]

	@property
	def final_size(self) -> Tuple[int, int]:
		return (self.sequence[0].width, self.sequence[0].height)


def build_frames(images: Sequence[bytes], config: PipelineConfig, workers: int = 4) -> BuildResult:
	"""
	Run every stage up to (not including) encoding:
	normalize -> estimate motion -> pad/crop -> border crop -> ping-pong sequence.
	"""
	if len(images) != FRAME_COUNT:
		raise InputCountError(len(images), FRAME_COUNT)

	frames, (target_w, target_h) = normalize_frames(images, config.width, config.height, workers=workers)

	plan = estimate_offsets(frames, config.max_shift_px) if config.stabilize else None
	window = crop_window(target_w, target_h, config.crop_percent, plan)
	cropped = pad_and_crop(frames, window, plan)

	if config.auto_border_detect:
		cropped = auto_crop(
			cropped,
			config.alpha_threshold,
			config.black_threshold,
			config.auto_border_margin_px,
		)

	sequence = assemble_sequence(cropped)
	return BuildResult(
		target_size=(target_w, target_h),
		window=window,
		plan=plan,
		frames=cropped,
		sequence=sequence,
	)


def build_gif_ping_pong(images: Sequence[bytes], config: PipelineConfig, workers: int = 4) -> bytes:
	"""
	Turn exactly four encoded images (device order) into a looping 0,1,2,3,2,1 GIF.
	Raises a GifBuildError subclass on any failure; nothing partial is returned.
	"""
	result = build_frames(images, config, workers=workers)
	gif = encode_gif(result.sequence, config.frame_delay_ms)
	final_w, final_h = result.final_size
	log_event(
		logger,
		"gif.built",
		level=logging.DEBUG,
		frames=len(result.sequence),
		target=f"{result.target_size[0]}x{result.target_size[1]}",
		final=f"{final_w}x{final_h}",
		bytes=len(gif),
	)
	return gif
