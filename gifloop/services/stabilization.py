from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from gifloop.observability.logging import get_logger, log_event
from gifloop.services.alignment import Offset, StabilizationPlan
from gifloop.services.errors import StabilizationError
from gifloop.services.image_utils import PixelBuffer, round_half_up


MIN_CROPPED_SIZE = 16

logger = get_logger("gifloop.stabilization")


@dataclass(frozen=True)
class Padding:
	left: int = 0
	top: int = 0
	right: int = 0
	bottom: int = 0


@dataclass(frozen=True)
class CropWindow:
	"""Square inset origin shared by every frame plus the size extracted from it."""
	origin: int
	width: int
	height: int


def crop_window(target_w: int, target_h: int, crop_percent: float, plan: Optional[StabilizationPlan] = None) -> CropWindow:
	base_crop = max(0, round_half_up(min(target_w, target_h) * crop_percent))
	final_crop = base_crop + (max(plan.pad_x, plan.pad_y) if plan is not None else 0)
	cropped_w = max(MIN_CROPPED_SIZE, target_w - 2 * final_crop)
	cropped_h = max(MIN_CROPPED_SIZE, target_h - 2 * final_crop)
	return CropWindow(origin=final_crop, width=cropped_w, height=cropped_h)


def padding_for(offset: Offset, pad_x: int, pad_y: int) -> Padding:
	"""Extend opposite to the frame's offset so the extracted window lines up with frame 0."""
	return Padding(
		left=max(0, pad_x + offset.dx),
		top=max(0, pad_y + offset.dy),
		right=max(0, pad_x - offset.dx),
		bottom=max(0, pad_y - offset.dy),
	)


def extend_canvas(arr: np.ndarray, padding: Padding) -> np.ndarray:
	h, w = arr.shape[:2]
	out = np.zeros((h + padding.top + padding.bottom, w + padding.left + padding.right, arr.shape[2]), dtype=np.uint8)
	out[padding.top:padding.top + h, padding.left:padding.left + w] = arr
	return out


def _extract(index: int, arr: np.ndarray, window: CropWindow) -> PixelBuffer:
	region = arr[window.origin:window.origin + window.height, window.origin:window.origin + window.width]
	expected = window.width * window.height * 4
	if region.shape[0] != window.height or region.shape[1] != window.width:
		raise StabilizationError(index, expected, int(region.size))
	out = PixelBuffer.from_array(region)
	if not out.is_complete() or len(out.data) != expected:
		raise StabilizationError(index, expected, len(out.data))
	return out


def pad_and_crop(
	frames: Sequence[PixelBuffer],
	window: CropWindow,
	plan: Optional[StabilizationPlan] = None,
) -> List[PixelBuffer]:
	"""
	Without a plan, cut the window straight out of each frame.
	With a plan, first extend each frame with transparent fill by its asymmetric padding.
	"""
	out: List[PixelBuffer] = []
	for i, frame in enumerate(frames):
		if not frame.is_complete():
			raise StabilizationError(i, frame.expected_size, len(frame.data))
		arr = frame.as_array()
		if plan is not None:
			padding = padding_for(plan.offsets[i], plan.pad_x, plan.pad_y)
			arr = extend_canvas(arr, padding)
			log_event(
				logger,
				"crop.extend",
				level=logging.DEBUG,
				frame=i,
				left=padding.left,
				top=padding.top,
				right=padding.right,
				bottom=padding.bottom,
				extended=f"{arr.shape[1]}x{arr.shape[0]}",
				origin=window.origin,
				size=f"{window.width}x{window.height}",
			)
		out.append(_extract(i, arr, window))
	return out
