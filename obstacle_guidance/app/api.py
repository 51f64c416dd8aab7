"""HTTP control surface: session statistics, repeat-last-cue and session reset."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request

from .services.frame_controller import FrameController

logger = logging.getLogger(__name__)


def get_controller(request: Request) -> FrameController:
    return request.app.state.controller


def create_app(controller: FrameController, *, manage_uploader: bool = False) -> FastAPI:
    """Build the API around a running controller.

    With ``manage_uploader`` the app owns the telemetry worker lifecycle;
    otherwise the caller starts and closes it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_uploader:
            controller.uploader.start()
        try:
            yield
        finally:
            if manage_uploader:
                controller.uploader.close()

    app = FastAPI(title="Obstacle Guidance", version="0.1.0", lifespan=lifespan)
    app.state.controller = controller

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/stats")
    async def stats(service: FrameController = Depends(get_controller)) -> dict:
        body = service.stats.to_dict()
        body.update(
            {
                "telemetry_enabled": service.uploader.enabled,
                "telemetry_pending": service.uploader.pending,
                "session_id": service.uploader.session_id,
            }
        )
        return body

    @app.post("/cue/repeat")
    async def repeat_cue(service: FrameController = Depends(get_controller)) -> dict:
        if not service.repeat_last_cue():
            raise HTTPException(status_code=404, detail="No cue to repeat")
        last_token = service.dispatcher.state.last_token
        return {"token": last_token.value if last_token else None}

    @app.post("/stats/reset", status_code=204)
    async def reset_stats(service: FrameController = Depends(get_controller)) -> None:
        service.reset_session()
        logger.info("Session reset requested over HTTP")

    return app
