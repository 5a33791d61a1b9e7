from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class CaptureRecord:
	"""One image upload from one camera."""
	id: str
	device_id: str
	created: datetime
	image: bytes = b""


@dataclass
class CaptureGroup:
	key: str
	first_ts: datetime
	deadline: float
	records_by_device: Dict[str, CaptureRecord] = field(default_factory=dict)
	arrival_order: List[str] = field(default_factory=list)

	def window_contains(self, ts: datetime, timeout_s: float) -> bool:
		delta = (ts - self.first_ts).total_seconds()
		return 0 <= delta <= timeout_s


def _as_utc(ts: datetime) -> datetime:
	if ts.tzinfo is None:
		return ts.replace(tzinfo=timezone.utc)
	return ts.astimezone(timezone.utc)


class CaptureGrouper:
	"""
	Time-windowed grouping of captures from a fixed device set.

	A group opens on the first unmatched capture and accepts one capture per device whose
	timestamp falls within timeout_ms of the opening capture. Deadlines run on the local
	clock from the moment the group opens. Not thread-safe: drive it from one event loop.
	"""

	def __init__(
		self,
		devices: Sequence[str],
		timeout_ms: int = 5000,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.devices: Tuple[str, ...] = tuple(devices)
		self.timeout_s = timeout_ms / 1000.0
		self.clock = clock
		self.groups: Dict[str, CaptureGroup] = {}

	def _new_group(self, key: str, record: CaptureRecord) -> CaptureGroup:
		created = _as_utc(record.created)
		return CaptureGroup(key=key, first_ts=created, deadline=self.clock() + self.timeout_s)

	def _find_assignable(self, record: CaptureRecord) -> Optional[str]:
		created = _as_utc(record.created)
		for key, group in self.groups.items():
			if group.window_contains(created, self.timeout_s) and record.device_id not in group.records_by_device:
				return key
		return None

	def assign(self, record: CaptureRecord) -> Optional[CaptureGroup]:
		"""Place record in a group and return it; None for unknown devices."""
		if record.device_id not in self.devices:
			return None
		key = self._find_assignable(record)
		if key is None:
			key = f"time:{_as_utc(record.created).isoformat()}"
			if key not in self.groups:
				self.groups[key] = self._new_group(key, record)
		group = self.groups[key]
		if self.clock() > group.deadline:
			# expired but not yet swept: restart the window on this record
			group = self._new_group(key, record)
			self.groups[key] = group
		group.records_by_device[record.device_id] = record
		if record.device_id not in group.arrival_order:
			group.arrival_order.append(record.device_id)
		return group

	def is_complete(self, group: CaptureGroup) -> bool:
		return all(d in group.records_by_device for d in self.devices)

	def pop(self, key: str) -> Optional[CaptureGroup]:
		return self.groups.pop(key, None)

	def ordered_records(self, group: CaptureGroup) -> List[CaptureRecord]:
		return [group.records_by_device[d] for d in self.devices]

	def expire(self) -> List[CaptureGroup]:
		"""Remove and return incomplete groups whose deadline has passed."""
		now = self.clock()
		expired: List[CaptureGroup] = []
		for key, group in list(self.groups.items()):
			if now > group.deadline and not self.is_complete(group):
				expired.append(group)
				del self.groups[key]
		return expired
