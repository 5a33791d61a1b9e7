import numpy as np
import pytest

from gifloop.services.encoding import assemble_sequence, encode_gif, ping_pong_order
from gifloop.services.errors import EncodeError, FrameShapeError

from imaging import gif_frames, make_pattern, solid, to_buffer


RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)


def test_ping_pong_order():
	assert ping_pong_order() == [0, 1, 2, 3, 2, 1]


def test_sequence_reuses_frames():
	frames = [to_buffer(make_pattern(16, 16, seed=s)) for s in range(4)]

	seq = assemble_sequence(frames)

	assert len(seq) == 6
	assert [frames.index(f) for f in seq] == [0, 1, 2, 3, 2, 1]
	assert seq[4] is seq[2]
	assert seq[5] is seq[1]


def test_mismatched_frame_reports_its_source_index():
	frames = [to_buffer(make_pattern(16, 16, seed=s)) for s in range(4)]
	frames[2] = to_buffer(make_pattern(18, 16, seed=9))

	with pytest.raises(FrameShapeError) as err:
		assemble_sequence(frames)

	assert err.value.index == 2
	assert err.value.expected == (16, 16, 16 * 16 * 4)
	assert err.value.actual == (18, 16, 18 * 16 * 4)


def test_gif_plays_ping_pong_with_delay_and_loop():
	colors = [RED, GREEN, BLUE, WHITE]
	frames = [to_buffer(solid(32, 24, c)) for c in colors]

	data = encode_gif(assemble_sequence(frames), 120)

	assert data[:6] == b"GIF89a"
	assert data[-1:] == b";"
	decoded, durations, loop = gif_frames(data)
	assert len(decoded) == 6
	assert loop == 0
	assert durations == [120] * 6
	expected = [RED, GREEN, BLUE, WHITE, BLUE, GREEN]
	for arr, color in zip(decoded, expected):
		assert arr.shape == (24, 32, 3)
		assert (arr == np.array(color, dtype=np.uint8)).all()


def test_identical_frames_are_not_merged():
	frame = to_buffer(solid(20, 20, (120, 60, 30)))

	decoded, _, _ = gif_frames(encode_gif([frame] * 6, 80))

	assert len(decoded) == 6


def test_transparent_pixels_render_black():
	arr = solid(16, 16, WHITE)
	arr[:, :4] = 0
	frame = to_buffer(arr)

	decoded, _, _ = gif_frames(encode_gif([frame] * 6, 100))

	assert (decoded[0][:, :4] == 0).all()
	assert (decoded[0][:, 4:] == 255).all()


def test_encoding_is_deterministic():
	frames = [to_buffer(make_pattern(48, 32, seed=s)) for s in range(4)]
	seq = assemble_sequence(frames)

	assert encode_gif(seq, 120) == encode_gif(seq, 120)


def test_empty_sequence_is_an_encode_error():
	with pytest.raises(EncodeError):
		encode_gif([], 120)
