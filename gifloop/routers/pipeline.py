from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from gifloop.config.loader import load_pipeline_config
from gifloop.observability.logging import get_logger, log_event
from gifloop.services.capture_groups import CaptureRecord
from gifloop.services.capture_pipeline import process_group
from gifloop.services.errors import DecodeError, GifBuildError, InputCountError
from gifloop.services.gif_pipeline import build_gif_ping_pong


router = APIRouter(prefix="/pipeline", tags=["gif"])

logger = get_logger("gifloop.api")


def _parse_created(created: Optional[str]) -> datetime:
	if not created:
		return datetime.now(timezone.utc)
	try:
		ts = datetime.fromisoformat(created.replace("Z", "+00:00"))
	except ValueError:
		raise HTTPException(status_code=400, detail=f"Invalid created timestamp: {created}")
	return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


@router.post("/gif", summary="Build a ping-pong GIF from four images in device order")
async def build_gif(request: Request, files: List[UploadFile] = File(...)):
	images = [await f.read() for f in files]
	settings = request.app.state.settings
	config = load_pipeline_config(Path(settings.config_path))
	try:
		gif = await run_in_threadpool(build_gif_ping_pong, images, config)
	except (InputCountError, DecodeError) as e:
		raise HTTPException(status_code=400, detail=str(e))
	except GifBuildError as e:
		raise HTTPException(status_code=422, detail=str(e))
	log_event(logger, "api.gif", frames=len(images), bytes=len(gif))
	return Response(content=gif, media_type="image/gif")


@router.post("/captures", summary="Register one capture and build a GIF once all devices reported")
async def add_capture(
	request: Request,
	background_tasks: BackgroundTasks,
	device_id: str = Form(...),
	file: UploadFile = File(...),
	created: Optional[str] = Form(None),
	record_id: Optional[str] = Form(None),
):
	state = request.app.state
	data = await file.read()
	if not data:
		raise HTTPException(status_code=400, detail="Empty image upload")
	record = CaptureRecord(
		id=record_id or uuid.uuid4().hex,
		device_id=device_id,
		created=_parse_created(created),
		image=data,
	)
	grouper = state.grouper
	group = grouper.assign(record)
	if group is None:
		raise HTTPException(status_code=400, detail=f"Unknown device: {device_id}")
	log_event(logger, "api.capture", key=group.key, device=device_id, devices=sorted(group.records_by_device))

	status = "waiting"
	if grouper.is_complete(group):
		# take the group out now so a late duplicate cannot trigger a second build
		grouper.pop(group.key)
		config = load_pipeline_config(Path(state.settings.config_path))
		background_tasks.add_task(
			process_group,
			group,
			grouper.ordered_records(group),
			config,
			state.settings,
			state.store,
			state.errors,
		)
		status = "queued"
	return {
		"group": group.key,
		"record_id": record.id,
		"devices": sorted(group.records_by_device),
		"status": status,
	}


@router.get("/results", summary="Latest group results")
def results(request: Request, limit: int = 50):
	return {"results": request.app.state.store.read(limit=limit)}
