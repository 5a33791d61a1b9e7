from __future__ import annotations

from typing import Optional, Tuple


class GifBuildError(Exception):
	"""Base class for every failure of a ping-pong GIF build."""


class InputCountError(GifBuildError):
	def __init__(self, count: int, expected: int = 4) -> None:
		super().__init__(f"GIF build requires exactly {expected} frames, got {count}")
		self.count = count
		self.expected = expected


class DecodeError(GifBuildError):
	def __init__(self, index: int, reason: str) -> None:
		super().__init__(f"Frame {index} could not be decoded: {reason}")
		self.index = index
		self.reason = reason


class StabilizationError(GifBuildError):
	def __init__(self, index: int, expected: int, actual: int) -> None:
		super().__init__(
			f"Stabilization produced a short buffer for frame {index}: got {actual} bytes, expected {expected}"
		)
		self.index = index
		self.expected = expected
		self.actual = actual


class FrameShapeError(GifBuildError):
	def __init__(self, index: int, expected: Tuple[int, int, int], actual: Tuple[int, int, int]) -> None:
		"""
		expected / actual are (width, height, byte_length) triples.
		"""
		super().__init__(
			"Unexpected frame shape for index {}: {}x{} ({} bytes), expected {}x{} ({} bytes)".format(
				index, actual[0], actual[1], actual[2], expected[0], expected[1], expected[2]
			)
		)
		self.index = index
		self.expected = expected
		self.actual = actual


class EncodeError(GifBuildError):
	def __init__(self, reason: str, index: Optional[int] = None) -> None:
		prefix = f"Encoding failed for frame {index}" if index is not None else "Encoding failed"
		super().__init__(f"{prefix}: {reason}")
		self.reason = reason
		self.index = index
