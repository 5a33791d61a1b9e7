from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import numpy as np
from PIL import GifImagePlugin, Image

from gifloop.observability.logging import get_logger, log_event
from gifloop.services.errors import EncodeError, FrameShapeError
from gifloop.services.image_utils import PixelBuffer


PING_PONG_ORDER: Tuple[int, ...] = (0, 1, 2, 3, 2, 1)

# Fixed quality tier: one 256-colour median-cut palette shared by every frame.
PALETTE_COLORS = 256
PALETTE_METHOD = Image.Quantize.MEDIANCUT
PALETTE_DITHER = Image.Dither.FLOYDSTEINBERG
LOOP_FOREVER = 0
# Disposal 1 (leave in place) keeps a graphic-control block on every frame.
FRAME_DISPOSAL = 1

logger = get_logger("gifloop.encoding")


def ping_pong_order() -> List[int]:
	return list(PING_PONG_ORDER)


def assemble_sequence(frames: Sequence[PixelBuffer]) -> List[PixelBuffer]:
	"""
	Order frames as 0,1,2,3,2,1 after checking each entry against the common final size.
	"""
	enc_w, enc_h = frames[0].width, frames[0].height
	expected = (enc_w, enc_h, enc_w * enc_h * 4)
	sequence: List[PixelBuffer] = []
	for idx in PING_PONG_ORDER:
		frame = frames[idx]
		actual = (frame.width, frame.height, len(frame.data))
		if frame.channels != 4 or actual != expected:
			raise FrameShapeError(idx, expected, actual)
		sequence.append(frame)
	return sequence


def _to_rgb(frame: PixelBuffer) -> np.ndarray:
	# Alpha is dropped, so transparent fill renders as black.
	return np.ascontiguousarray(frame.as_array()[..., :3])


def build_palette(frames: Sequence[PixelBuffer]) -> Image.Image:
	"""Quantize all distinct frames stacked together into one palette image."""
	distinct: List[PixelBuffer] = []
	for f in frames:
		if not any(f is d for d in distinct):
			distinct.append(f)
	mosaic = np.vstack([_to_rgb(f) for f in distinct])
	return Image.fromarray(mosaic).quantize(colors=PALETTE_COLORS, method=PALETTE_METHOD)


def encode_gif(sequence: Sequence[PixelBuffer], delay_ms: int) -> bytes:
	"""
	Encode frames as a looping GIF89a: global palette, NETSCAPE loop block,
	then one graphic-control block plus LZW image data per entry.
	Identical consecutive frames are written as separate records.
	"""
	if not sequence:
		raise EncodeError("no frames to encode")
	try:
		palette_img = build_palette(sequence)
	except (OSError, ValueError) as exc:
		raise EncodeError(str(exc)) from exc

	chunks: List[bytes] = []
	for i, frame in enumerate(sequence):
		try:
			indexed = Image.fromarray(_to_rgb(frame)).quantize(palette=palette_img, dither=PALETTE_DITHER)
			if i == 0:
				header, _ = GifImagePlugin.getheader(indexed, info={"loop": LOOP_FOREVER, "duration": delay_ms})
				chunks.extend(header)
			chunks.extend(GifImagePlugin.getdata(indexed, duration=delay_ms, disposal=FRAME_DISPOSAL))
		except (OSError, ValueError) as exc:
			raise EncodeError(str(exc), index=i) from exc
		log_event(logger, "encode.frame", level=logging.DEBUG, position=i, size=len(frame.data))
	chunks.append(b";")

	gif = b"".join(chunks)
	if not gif:
		raise EncodeError("encoder produced empty GIF buffer")
	return gif
