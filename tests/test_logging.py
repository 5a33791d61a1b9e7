import io
import json
import logging

import pytest

from gifloop.observability.logging import configure_logging, get_logger, log_event


@pytest.fixture
def stream():
	buf = io.StringIO()
	configure_logging("debug", stream=buf)
	yield buf
	configure_logging("info", stream=io.StringIO())


def _lines(buf):
	return [json.loads(line) for line in buf.getvalue().splitlines()]


def test_event_fields_are_top_level(stream):
	log_event(get_logger("gifloop.test"), "stabilize.frame", level=logging.DEBUG, frame=2, dx=3, dy=-2)

	(line,) = _lines(stream)
	assert line["event"] == "stabilize.frame"
	assert line["level"] == "debug"
	assert line["logger"] == "gifloop.test"
	assert (line["frame"], line["dx"], line["dy"]) == (2, 3, -2)
	assert "message" not in line


def test_logrecord_names_are_allowed_as_fields(stream):
	log_event(get_logger("gifloop.test"), "group.created", key="time:x", filename="a.gif", module="cli")

	(line,) = _lines(stream)
	assert line["filename"] == "a.gif"
	assert line["module"] == "cli"
	assert line["key"] == "time:x"


def test_plain_messages_and_exceptions(stream):
	logger = get_logger("gifloop.test")
	try:
		raise ValueError("boom")
	except ValueError:
		logger.exception("failed %s", "here")

	(line,) = _lines(stream)
	assert line["message"] == "failed here"
	assert "ValueError: boom" in line["stack"]


def test_events_below_level_are_dropped(stream):
	configure_logging("warning", stream=stream)

	log_event(get_logger("gifloop.test"), "encode.frame", level=logging.DEBUG, position=0)

	assert stream.getvalue() == ""
