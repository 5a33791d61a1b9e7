import math

import numpy as np

from gifloop.services.alignment import (
	Offset,
	_mean_abs_diff,
	estimate_offsets,
	estimate_translation,
	work_size_for,
)

from imaging import make_pattern, shift_viewport, solid, to_buffer


def test_work_size_keeps_aspect_with_minimum_height():
	assert work_size_for(640, 480) == (320, 240)
	assert work_size_for(320, 240) == (320, 240)
	assert work_size_for(640, 100) == (320, 120)


def test_recovers_known_shift_on_every_frame():
	ref = make_pattern(320, 240, seed=1)
	shifted = shift_viewport(ref, 3, -2)
	frames = [to_buffer(ref)] + [to_buffer(shifted) for _ in range(3)]

	plan = estimate_offsets(frames, max_shift=6)

	assert plan.work_size == (320, 240)
	assert plan.offsets[0] == Offset(0, 0)
	for i in range(1, 4):
		assert plan.work_offsets[i] == Offset(3, -2)
		assert plan.offsets[i] == Offset(3, -2)
		assert plan.scores[i] == 0.0


def test_offsets_scale_to_target_resolution():
	ref = make_pattern(640, 480, seed=2, block=16)
	shifted = shift_viewport(ref, 4, 2)
	frames = [to_buffer(ref)] + [to_buffer(shifted) for _ in range(3)]

	plan = estimate_offsets(frames, max_shift=6)

	assert plan.scale_x == 2.0 and plan.scale_y == 2.0
	for i in range(1, 4):
		assert plan.work_offsets[i] == Offset(2, 1)
		assert plan.offsets[i] == Offset(4, 2)
	# ceil(6 * 2) dominates the observed shifts
	assert plan.pad_x == 12
	assert plan.pad_y == 12


def test_search_stays_within_radius():
	frames = [to_buffer(make_pattern(320, 240, seed=s)) for s in range(4)]

	plan = estimate_offsets(frames, max_shift=4)

	for o in plan.work_offsets:
		assert -4 <= o.dx <= 4
		assert -4 <= o.dy <= 4


def test_ties_keep_first_candidate_in_scan_order():
	flat = np.full((100, 100), 128, dtype=np.uint8)

	result = estimate_translation(flat, flat.copy(), max_shift=3)

	# every candidate scores 0; dy is the outer loop, dx the inner one
	assert (result.dx, result.dy) == (-3, -3)
	assert result.score == 0.0


def test_zero_radius_only_checks_identity():
	a = make_pattern(64, 64, seed=3)[..., 0]
	b = make_pattern(64, 64, seed=4)[..., 0]

	result = estimate_translation(a, b, max_shift=0)

	assert (result.dx, result.dy) == (0, 0)


def test_empty_overlap_scores_infinite():
	ref = np.zeros((10, 10), dtype=np.int32)

	assert _mean_abs_diff(ref, ref, 20, 0, 1, 1) == math.inf
	assert _mean_abs_diff(ref, ref, 0, 0, 1, 1) == 0.0


def test_identical_frames_need_no_shift():
	frame = to_buffer(make_pattern(320, 240, seed=5))

	plan = estimate_offsets([frame, frame, frame, frame], max_shift=6)

	assert plan.offsets == [Offset(0, 0)] * 4
	assert plan.pad_x == 6
	assert plan.pad_y == 6


def test_identical_solid_frames_are_deterministic():
	frame = to_buffer(solid(320, 240, (90, 90, 90)))

	first = estimate_offsets([frame] * 4, max_shift=2)
	second = estimate_offsets([frame] * 4, max_shift=2)

	assert first.offsets == second.offsets
	assert first.work_offsets[1] == Offset(-2, -2)
