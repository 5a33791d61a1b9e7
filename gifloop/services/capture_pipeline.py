from __future__ import annotations

import logging
import threading
import time
import traceback
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

from gifloop.config.schema import PipelineConfig, ServiceSettings
from gifloop.observability.logging import get_logger, log_event
from gifloop.services.capture_groups import CaptureGroup, CaptureRecord
from gifloop.services.gif_pipeline import build_gif_ping_pong
from gifloop.services.result_store import ResultStore, save_unique_gif


logger = get_logger("gifloop.captures")


class ErrorTracker:
	"""Sliding-window failure counter that flags persistent errors."""

	def __init__(self, window_s: float = 60.0, threshold: int = 3, clock: Callable[[], float] = time.monotonic) -> None:
		self.window_s = window_s
		self.threshold = threshold
		self.clock = clock
		self._events: Deque[float] = deque()
		self._lock = threading.Lock()

	def record(self) -> bool:
		"""Register one failure; True when the window now holds threshold or more."""
		now = self.clock()
		with self._lock:
			self._events.append(now)
			while self._events and now - self._events[0] > self.window_s:
				self._events.popleft()
			return len(self._events) >= self.threshold


def gif_base_name(first_ts: datetime) -> str:
	"""gif_<YYYYMMDDHHMMSS>_<YYYYMMDD_HHMMSS> from the group's opening timestamp."""
	return "gif_{}_{}".format(first_ts.strftime("%Y%m%d%H%M%S"), first_ts.strftime("%Y%m%d_%H%M%S"))


def _ids(records: Sequence[CaptureRecord]) -> Dict[str, List[str]]:
	return {
		"record_ids": [r.id for r in records],
		"device_ids": [r.device_id for r in records],
	}


def process_group(
	group: CaptureGroup,
	records: Sequence[CaptureRecord],
	config: PipelineConfig,
	settings: ServiceSettings,
	store: ResultStore,
	errors: Optional[ErrorTracker] = None,
) -> Dict[str, Any]:
	"""
	Build, persist and log the GIF for one complete group (records in device order).
	Failures are recorded as an "error" entry and never raised.
	"""
	ts = group.first_ts.isoformat()
	try:
		log_event(logger, "group.build", key=group.key, records=len(records))
		images = []
		for r in records:
			if not r.image:
				raise ValueError(f"Empty buffer for record {r.id}")
			images.append(r.image)

		gif = build_gif_ping_pong(images, config)
		if not gif:
			raise ValueError("GIF build produced empty buffer")

		path = save_unique_gif(gif, gif_base_name(group.first_ts), settings.output_dir)
		entry: Dict[str, Any] = {
			"timestamp_group": ts,
			**_ids(records),
			"gif_path": str(path),
			"status": "created",
		}
		store.append(entry)
		log_event(logger, "group.created", key=group.key, gif_path=str(path), bytes=len(gif))
		return entry
	except Exception as e:
		if errors is not None and errors.record():
			log_event(
				logger,
				"alert.persistent_failures",
				level=logging.WARNING,
				threshold=errors.threshold,
				window_s=errors.window_s,
			)
		entry = {
			"timestamp_group": ts,
			**_ids(records),
			"gif_path": None,
			"status": "error",
			"error": {"message": str(e), "type": type(e).__name__, "stack": traceback.format_exc()},
		}
		store.append(entry)
		log_event(logger, "group.error", level=logging.ERROR, key=group.key, error=str(e))
		return entry


def record_timeouts(groups: Sequence[CaptureGroup], store: ResultStore, expected: int = 4) -> List[Dict[str, Any]]:
	entries: List[Dict[str, Any]] = []
	for group in groups:
		records = [group.records_by_device[d] for d in group.arrival_order]
		entry = {
			"timestamp_group": group.first_ts.isoformat(),
			**_ids(records),
			"gif_path": None,
			"status": "timeout",
		}
		store.append(entry)
		log_event(
			logger,
			"group.timeout",
			level=logging.WARNING,
			key=group.key,
			received=len(records),
			expected=expected,
		)
		entries.append(entry)
	return entries
