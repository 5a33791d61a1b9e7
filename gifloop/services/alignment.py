from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from gifloop.observability.logging import get_logger, log_event
from gifloop.services.image_utils import PixelBuffer, round_half_up, to_gray_work


WORK_WIDTH = 320
MIN_WORK_HEIGHT = 120
EDGE_MARGIN = 0.1

logger = get_logger("gifloop.alignment")


@dataclass(frozen=True)
class Offset:
	dx: int = 0
	dy: int = 0


@dataclass(frozen=True)
class ShiftResult:
	dx: int
	dy: int
	score: float


@dataclass(frozen=True)
class StabilizationPlan:
	"""
	Outcome of motion estimation for one 4-frame set.
	work_offsets are in working-resolution pixels, offsets in target pixels.
	"""
	work_size: Tuple[int, int]
	scale_x: float
	scale_y: float
	work_offsets: List[Offset]
	offsets: List[Offset]
	scores: List[float]
	pad_x: int
	pad_y: int
	max_shift: int = 0


def work_size_for(target_w: int, target_h: int) -> Tuple[int, int]:
	work_h = max(MIN_WORK_HEIGHT, round_half_up((WORK_WIDTH / target_w) * target_h))
	return (WORK_WIDTH, work_h)


def _mean_abs_diff(ref: np.ndarray, mov: np.ndarray, dx: int, dy: int, margin_x: int, margin_y: int) -> float:
	"""
	Mean |ref[y, x] - mov[y - dy, x - dx]| over the overlap left after trimming the margins.
	Returns +inf when the overlap is empty.
	"""
	h_ref, w_ref = ref.shape[:2]
	h_mov, w_mov = mov.shape[:2]
	x0 = max(margin_x, margin_x + dx)
	y0 = max(margin_y, margin_y + dy)
	x1 = min(w_ref - margin_x, w_mov - margin_x + dx)
	y1 = min(h_ref - margin_y, h_mov - margin_y + dy)
	if x1 <= x0 or y1 <= y0:
		return math.inf
	a = ref[y0:y1, x0:x1]
	b = mov[y0 - dy:y1 - dy, x0 - dx:x1 - dx]
	total = int(np.abs(a - b).sum())
	return total / float((x1 - x0) * (y1 - y0))


def estimate_translation(ref_gray: np.ndarray, mov_gray: np.ndarray, max_shift: int) -> ShiftResult:
	"""
	Exhaustive integer search of (dx, dy) in [-max_shift, max_shift]^2.
	Scan order is dy ascending, then dx ascending; the first minimum wins.
	"""
	ref = ref_gray.astype(np.int32)
	mov = mov_gray.astype(np.int32)
	margin_x = int(math.floor(ref.shape[1] * EDGE_MARGIN))
	margin_y = int(math.floor(ref.shape[0] * EDGE_MARGIN))

	best_score = math.inf
	best_dx = 0
	best_dy = 0
	for dy in range(-max_shift, max_shift + 1):
		for dx in range(-max_shift, max_shift + 1):
			score = _mean_abs_diff(ref, mov, dx, dy, margin_x, margin_y)
			if score < best_score:
				best_score = score
				best_dx = dx
				best_dy = dy
	return ShiftResult(dx=best_dx, dy=best_dy, score=best_score)


def estimate_offsets(frames: Sequence[PixelBuffer], max_shift: int) -> StabilizationPlan:
	"""
	Estimate per-frame translation of frames 1..n against frame 0 on downsampled grayscale,
	then scale the offsets to target resolution and derive the per-axis pad magnitude.
	"""
	target_w, target_h = frames[0].width, frames[0].height
	work_w, work_h = work_size_for(target_w, target_h)
	scale_x = target_w / work_w
	scale_y = target_h / work_h
	log_event(
		logger,
		"stabilize.scales",
		level=logging.DEBUG,
		work=f"{work_w}x{work_h}",
		target=f"{target_w}x{target_h}",
		scale_x=round(scale_x, 2),
		scale_y=round(scale_y, 2),
	)

	grays = [to_gray_work(f, work_w, work_h) for f in frames]
	ref = grays[0]

	work_offsets: List[Offset] = [Offset(0, 0)]
	scores: List[float] = [0.0]
	for i in range(1, len(grays)):
		shift = estimate_translation(ref, grays[i], max_shift)
		work_offsets.append(Offset(shift.dx, shift.dy))
		scores.append(shift.score)
		log_event(logger, "stabilize.frame", level=logging.DEBUG, frame=i, dx=shift.dx, dy=shift.dy, score=shift.score)

	offsets = [Offset(0, 0)]
	for o in work_offsets[1:]:
		offsets.append(Offset(round_half_up(o.dx * scale_x), round_half_up(o.dy * scale_y)))

	max_abs_x = max(abs(o.dx) for o in offsets)
	max_abs_y = max(abs(o.dy) for o in offsets)
	pad_x = max(int(math.ceil(max_shift * scale_x)), max_abs_x)
	pad_y = max(int(math.ceil(max_shift * scale_y)), max_abs_y)
	log_event(
		logger,
		"stabilize.offsets",
		level=logging.DEBUG,
		offsets=[(o.dx, o.dy) for o in offsets],
		pad_x=pad_x,
		pad_y=pad_y,
	)

	return StabilizationPlan(
		work_size=(work_w, work_h),
		scale_x=scale_x,
		scale_y=scale_y,
		work_offsets=work_offsets,
		offsets=offsets,
		scores=scores,
		pad_x=pad_x,
		pad_y=pad_y,
		max_shift=max_shift,
	)
