from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Union


RESULTS_FILE = "results.log"


class ResultStore:
	"""Append-only JSON-lines log of per-group outcomes under output_dir."""

	def __init__(self, output_dir: Union[str, Path]) -> None:
		self.output_dir = Path(output_dir)
		self.path = self.output_dir / RESULTS_FILE
		self._lock = threading.Lock()

	def append(self, entry: Dict[str, Any]) -> None:
		line = json.dumps(entry, default=str)
		with self._lock:
			self.output_dir.mkdir(parents=True, exist_ok=True)
			with self.path.open("a", encoding="utf-8") as f:
				f.write(line + "\n")

	def read(self, limit: int = 50) -> List[Dict[str, Any]]:
		"""Latest entries first; unparseable lines are skipped."""
		if not self.path.exists():
			return []
		with self._lock:
			with self.path.open("r", encoding="utf-8") as f:
				lines = f.read().splitlines()
		entries: List[Dict[str, Any]] = []
		for line in reversed(lines):
			if not line.strip():
				continue
			try:
				entries.append(json.loads(line))
			except ValueError:
				continue
			if len(entries) >= limit:
				break
		return entries


def save_unique_gif(data: bytes, base_name: str, out_dir: Union[str, Path]) -> Path:
	"""
	Write data as <base_name>.gif in out_dir, falling back to <base_name>_1.gif, _2, ...
	so an existing file is never overwritten.
	"""
	if not out_dir:
		raise ValueError("Output directory is required")
	out = Path(out_dir)
	out.mkdir(parents=True, exist_ok=True)

	path = out / f"{base_name}.gif"
	suffix = 1
	while True:
		try:
			# exclusive create
			with path.open("xb") as f:
				f.write(data)
			return path
		except FileExistsError:
			path = out / f"{base_name}_{suffix}.gif"
			suffix += 1
