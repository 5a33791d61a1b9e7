from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import List, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from gifloop.services.errors import DecodeError
from gifloop.services.image_utils import PixelBuffer, resolve_target_size, rotate_and_cover


def _open_image(index: int, data: bytes) -> Image.Image:
	# Header only; pixel data is decoded in _normalize_one.
	if not data:
		raise DecodeError(index, "empty input buffer")
	try:
		return Image.open(BytesIO(data))
	except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
		raise DecodeError(index, str(exc)) from exc


def _normalize_one(index: int, img: Image.Image, target_w: int, target_h: int) -> PixelBuffer:
	try:
		img.load()
		fitted = rotate_and_cover(img, target_w, target_h)
	except (Image.DecompressionBombError, OSError, ValueError) as exc:
		raise DecodeError(index, str(exc)) from exc
	return PixelBuffer.from_image(fitted)


def normalize_frames(
	images: Sequence[bytes],
	width: Optional[int] = None,
	height: Optional[int] = None,
	workers: int = 4,
) -> Tuple[List[PixelBuffer], Tuple[int, int]]:
	"""
	Decode, rotate 180 degrees and cover-fit every image onto a common W x H RGBA canvas.
	W/H default to the first image's native size.
	Returns (frames, (W, H)); frames keep input order.
	"""
	opened = [_open_image(i, data) for i, data in enumerate(images)]
	target_w, target_h = resolve_target_size([img.size for img in opened], width, height)

	if workers <= 1:
		frames = [_normalize_one(i, img, target_w, target_h) for i, img in enumerate(opened)]
	else:
		# Each task decodes its own image and allocates its own buffer.
		with ThreadPoolExecutor(max_workers=workers) as ex:
			futures = [ex.submit(_normalize_one, i, img, target_w, target_h) for i, img in enumerate(opened)]
			frames = [f.result() for f in futures]
	return frames, (target_w, target_h)
