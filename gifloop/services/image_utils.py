from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageOps


CHANNELS = 4


@dataclass(frozen=True)
class PixelBuffer:
	"""
	Raw RGBA samples in row-major order with a fixed stride of width * 4.
	Never modified after construction; stages allocate new buffers.
	"""
	data: bytes
	width: int
	height: int
	channels: int = CHANNELS

	@property
	def stride(self) -> int:
		return self.width * self.channels

	@property
	def expected_size(self) -> int:
		return self.width * self.height * self.channels

	def is_complete(self) -> bool:
		return len(self.data) > 0 and len(self.data) == self.expected_size

	def as_array(self) -> np.ndarray:
		"""
		Read-only HxWx4 uint8 view over the buffer bytes.
		Raises ValueError when the byte length does not match the geometry.
		"""
		if not self.is_complete():
			raise ValueError(
				f"Buffer holds {len(self.data)} bytes, expected {self.expected_size} for {self.width}x{self.height}"
			)
		return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, self.channels)

	@classmethod
	def from_array(cls, arr: np.ndarray) -> "PixelBuffer":
		if arr.ndim != 3 or arr.shape[2] != CHANNELS:
			raise ValueError("Expected HxWx4 RGBA array")
		h, w = arr.shape[:2]
		return cls(data=np.ascontiguousarray(arr, dtype=np.uint8).tobytes(), width=int(w), height=int(h))

	@classmethod
	def from_image(cls, img: Image.Image) -> "PixelBuffer":
		if img.mode != "RGBA":
			img = img.convert("RGBA")
		return cls(data=img.tobytes(), width=img.width, height=img.height)


def round_half_up(value: float) -> int:
	# Halves round towards +inf, so -1.5 -> -1 and 1.5 -> 2.
	return int(math.floor(value + 0.5))


def resolve_target_size(
	sizes: List[Tuple[int, int]],
	width: Optional[int] = None,
	height: Optional[int] = None,
) -> Tuple[int, int]:
	"""
	Pick the common canvas: explicit width/height win, otherwise the first image's native size.
	"""
	first_w, first_h = sizes[0] if sizes else (640, 480)
	target_w = int(width) if width else int(first_w)
	target_h = int(height) if height else int(first_h)
	return (target_w, target_h)


def rotate_and_cover(img: Image.Image, target_w: int, target_h: int) -> Image.Image:
	# Cameras are mounted upside down.
	img = img.rotate(180, expand=True)
	if img.mode != "RGBA":
		img = img.convert("RGBA")
	if img.size == (target_w, target_h):
		return img
	return ImageOps.fit(img, (target_w, target_h), method=Image.LANCZOS, centering=(0.5, 0.5))


def to_gray_work(frame: PixelBuffer, work_w: int, work_h: int) -> np.ndarray:
	"""
	Grayscale uint8 [work_h, work_w] copy of an RGBA buffer, area-resampled to the working size.
	"""
	gray = cv2.cvtColor(np.array(frame.as_array()), cv2.COLOR_RGBA2GRAY)
	if gray.shape[1] != work_w or gray.shape[0] != work_h:
		gray = cv2.resize(gray, (work_w, work_h), interpolation=cv2.INTER_AREA)
	return gray
