from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import reduce
from typing import List, Optional, Sequence

import numpy as np

from gifloop.observability.logging import get_logger, log_event
from gifloop.services.image_utils import PixelBuffer


MIN_BORDER_CROP = 8

logger = get_logger("gifloop.borders")


@dataclass(frozen=True)
class BoundingBox:
	"""Inclusive pixel bounds. An empty box has right < left or bottom < top."""
	left: int
	top: int
	right: int
	bottom: int

	@property
	def width(self) -> int:
		return self.right - self.left + 1

	@property
	def height(self) -> int:
		return self.bottom - self.top + 1

	def is_empty(self) -> bool:
		return self.right < self.left or self.bottom < self.top


def content_mask(arr: np.ndarray, alpha_threshold: int, black_threshold: int) -> np.ndarray:
	"""
	True where a pixel is neither transparent nor black:
	alpha > alpha_threshold and at least one of R, G, B > black_threshold.
	"""
	rgb_max = arr[..., :3].max(axis=2)
	return (arr[..., 3] > alpha_threshold) & (rgb_max > black_threshold)


def _first(flags: np.ndarray, default: int) -> int:
	hits = np.flatnonzero(flags)
	return int(hits[0]) if hits.size else default


def _last(flags: np.ndarray, default: int) -> int:
	hits = np.flatnonzero(flags)
	return int(hits[-1]) if hits.size else default


def detect_content_box(frame: PixelBuffer, alpha_threshold: int, black_threshold: int) -> BoundingBox:
	"""
	Scan inward from each edge for the first row / column holding a content pixel.
	A frame without content yields top=H, bottom=-1, left=W, right=-1.
	"""
	mask = content_mask(frame.as_array(), alpha_threshold, black_threshold)
	rows = mask.any(axis=1)
	cols = mask.any(axis=0)
	return BoundingBox(
		left=_first(cols, frame.width),
		top=_first(rows, frame.height),
		right=_last(cols, -1),
		bottom=_last(rows, -1),
	)


def intersect_boxes(boxes: Sequence[BoundingBox], width: int, height: int) -> BoundingBox:
	"""Most conservative bound per side across frames, folded from the full canvas."""
	start = BoundingBox(left=0, top=0, right=width - 1, bottom=height - 1)
	return reduce(
		lambda acc, b: BoundingBox(
			left=max(acc.left, b.left),
			top=max(acc.top, b.top),
			right=min(acc.right, b.right),
			bottom=min(acc.bottom, b.bottom),
		),
		boxes,
		start,
	)


def apply_margin(box: BoundingBox, margin: int, width: int, height: int) -> BoundingBox:
	return BoundingBox(
		left=max(0, box.left + margin),
		top=max(0, box.top + margin),
		right=min(width - 1, box.right - margin),
		bottom=min(height - 1, box.bottom - margin),
	)


def crop_box(frame: PixelBuffer, box: BoundingBox) -> PixelBuffer:
	arr = frame.as_array()
	return PixelBuffer.from_array(arr[box.top:box.bottom + 1, box.left:box.right + 1])


def plan_border_crop(
	frames: Sequence[PixelBuffer],
	alpha_threshold: int,
	black_threshold: int,
	margin: int = 0,
) -> Optional[BoundingBox]:
	"""
	Common crop box for all frames, or None when the crop should be skipped
	(no shared content, result under 8x8, or no reduction of the canvas).
	"""
	width, height = frames[0].width, frames[0].height
	boxes = [detect_content_box(f, alpha_threshold, black_threshold) for f in frames]
	common = intersect_boxes(boxes, width, height)
	if common.is_empty():
		return None
	inner = apply_margin(common, margin, width, height)
	crop_w = max(1, inner.width)
	crop_h = max(1, inner.height)
	if crop_w < MIN_BORDER_CROP or crop_h < MIN_BORDER_CROP:
		return None
	if crop_w == width and crop_h == height:
		return None
	return inner


def auto_crop(
	frames: Sequence[PixelBuffer],
	alpha_threshold: int,
	black_threshold: int,
	margin: int = 0,
) -> List[PixelBuffer]:
	box = plan_border_crop(frames, alpha_threshold, black_threshold, margin)
	if box is None:
		return list(frames)
	log_event(
		logger,
		"border.crop",
		level=logging.DEBUG,
		left=box.left,
		top=box.top,
		right=box.right,
		bottom=box.bottom,
		size=f"{box.width}x{box.height}",
	)
	return [crop_box(f, box) for f in frames]
