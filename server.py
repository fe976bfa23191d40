from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from mdpdf_core.config import DISCONNECT_POLL_SECONDS, HOST, LOG_LEVEL, MAX_CONCURRENT_RENDERS, PORT
from mdpdf_core.conversion import ConversionService
from mdpdf_core.errors import ConversionError, ValidationError
from mdpdf_core.limiter import RenderLimiter
from mdpdf_core.models import ConversionRequest, PdfArtifact, parse_request
from mdpdf_core.render_engine import RenderEngineController
from mdpdf_core.security import content_disposition


logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_default_service() -> ConversionService:
    limiter = RenderLimiter(MAX_CONCURRENT_RENDERS) if MAX_CONCURRENT_RENDERS > 0 else None
    return ConversionService(RenderEngineController(), limiter)


def _invalid_request(errors: list[dict]) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": "Invalid request data", "errors": errors})


def _render_failed(description: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"message": "Failed to generate PDF", "error": description})


async def _convert_unless_disconnected(
    request: Request, service: ConversionService, conversion: ConversionRequest
) -> Optional[PdfArtifact]:
    """Run a conversion, cancelling it if the client goes away first.

    Returns None when the client disconnected; the render session has been torn
    down by then.
    """
    task = asyncio.ensure_future(service.convert(conversion))
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.warning("Client disconnected, cancelling conversion of %s", conversion.filename)
                task.cancel()
                await asyncio.wait({task})
                return None
    finally:
        if not task.done():
            task.cancel()
            await asyncio.wait({task})


def create_app(service: Optional[ConversionService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Built inside the running loop so the limiter's semaphore binds to it.
        if getattr(app.state, "service", None) is None:
            app.state.service = build_default_service()
        logger.info("PDF service ready")
        yield

    app = FastAPI(title="Markdown PDF Service", lifespan=lifespan)
    app.state.service = service

    # Allow the editor to call the API even when its page is opened from disk
    # (file:// pages send Origin: null, which otherwise fails CORS).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/generate-pdf")
    async def generate_pdf(request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return _invalid_request([{"path": [], "message": "Request body must be valid JSON", "code": "json_invalid"}])

        try:
            conversion = parse_request(payload)
        except ValidationError as exc:
            logger.info("Rejected PDF request: %s", exc)
            return _invalid_request(exc.errors)

        svc: ConversionService = request.app.state.service
        try:
            artifact = await _convert_unless_disconnected(request, svc, conversion)
        except ValidationError as exc:
            return _invalid_request(exc.errors)
        except ConversionError as exc:
            logger.error("PDF generation error: %s", exc)
            return _render_failed(str(exc))

        if artifact is None:
            # Nobody is listening any more; the status is for the access log.
            return Response(status_code=499)

        headers = {
            "Content-Disposition": content_disposition(conversion.filename),
            "Content-Length": str(artifact.byte_length),
            "Cache-Control": "no-store",
        }
        return Response(content=artifact.data, media_type="application/pdf", headers=headers)

    @app.get("/api/health")
    async def health(request: Request) -> JSONResponse:
        svc: Optional[ConversionService] = request.app.state.service
        limiter = svc.limiter if svc is not None else None
        return JSONResponse({
            "status": "healthy",
            "active_renders": svc.controller.active_sessions if svc is not None else 0,
            "max_concurrent": limiter.capacity if limiter is not None else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    return app


app = create_app()


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    uvicorn.run("server:app", host=HOST, port=PORT, reload=False)
