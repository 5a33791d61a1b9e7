import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gifloop.config.loader import load_service_settings
from gifloop.config.schema import ServiceSettings
from gifloop.observability.logging import configure_logging
from gifloop.routers.pipeline import router as pipeline_router
from gifloop.services.capture_groups import CaptureGrouper
from gifloop.services.capture_pipeline import ErrorTracker, record_timeouts
from gifloop.services.result_store import ResultStore


async def _sweep_timeouts(app: FastAPI) -> None:
	state = app.state
	while True:
		await asyncio.sleep(state.settings.sweep_interval_s)
		expired = state.grouper.expire()
		if expired:
			record_timeouts(expired, state.store, expected=len(state.settings.devices))


@asynccontextmanager
async def lifespan(app: FastAPI):
	task = asyncio.create_task(_sweep_timeouts(app))
	try:
		yield
	finally:
		task.cancel()
		try:
			await task
		except asyncio.CancelledError:
			pass


def create_app(settings: Optional[ServiceSettings] = None) -> FastAPI:
	if settings is None:
		load_dotenv()
		settings = load_service_settings()
	configure_logging(settings.log_level)

	app = FastAPI(title="gifloop - ping-pong GIF API", version="0.1.0", lifespan=lifespan)

	# CORS (adjust origins in production)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=False,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	app.state.settings = settings
	app.state.grouper = CaptureGrouper(settings.devices, timeout_ms=settings.timeout_ms)
	app.state.store = ResultStore(settings.output_dir)
	app.state.errors = ErrorTracker(settings.error_window_s, settings.error_alert_threshold)

	# Routers
	app.include_router(pipeline_router)

	return app


app = create_app()


if __name__ == "__main__":
	# Local dev server: uvicorn gifloop.main:app --reload
	import uvicorn

	uvicorn.run("gifloop.main:app", host="0.0.0.0", port=8000, reload=True)
