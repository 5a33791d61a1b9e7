"""JSON-lines logging for the gifloop stages and services."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from typing import IO, Any, Dict, Optional


ROOT_LOGGER = "gifloop"

# log_event stores its keyword fields under this LogRecord attribute, so
# names such as "frame", "key" or "filename" never clash with LogRecord's own.
FIELDS_ATTR = "gifloop_fields"


class EventFormatter(logging.Formatter):
	"""
	One JSON object per record: ts, level, logger, event and the event's fields.
	Plain logger calls (no event) keep their text under "message".
	"""

	def format(self, record: logging.LogRecord) -> str:
		fields: Dict[str, Any] = getattr(record, FIELDS_ATTR, None) or {}
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
		}
		event = getattr(record, "event", None)
		if event is not None:
			payload["event"] = event
		else:
			payload["message"] = record.getMessage()
		for key, value in fields.items():
			payload.setdefault(key, value)
		if record.exc_info:
			payload["stack"] = self.formatException(record.exc_info)
		return json.dumps(payload, sort_keys=True, default=str)


def configure_logging(level: str = "info", stream: Optional[IO[str]] = None) -> logging.Logger:
	"""
	Attach the JSON handler to the gifloop logger once; later calls only adjust the level.
	Passing a stream replaces the handler's output (used by tests).
	"""

	logger = logging.getLogger(ROOT_LOGGER)
	logger.setLevel(level.upper())
	logger.propagate = False
	if logger.handlers and stream is None:
		return logger

	for old in list(logger.handlers):
		logger.removeHandler(old)
	handler = logging.StreamHandler(stream)
	handler.setFormatter(EventFormatter())
	logger.addHandler(handler)
	return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
	if not logging.getLogger(ROOT_LOGGER).handlers:
		configure_logging()
	return logging.getLogger(name)


def log_event(
	logger: logging.Logger,
	event: str,
	*,
	level: int = logging.INFO,
	**fields: Any,
) -> None:
	"""Emit `event` with its fields, e.g. log_event(logger, "stabilize.frame", frame=1, dx=3)."""

	if not logger.isEnabledFor(level):
		return
	logger.log(level, event, extra={"event": event, FIELDS_ATTR: fields})
