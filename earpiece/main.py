"""
FastAPI app: live-conversation assistant.

WebSocket /ws/assist: client sends binary frames [1-byte source tag][PCM 16-bit LE mono 24kHz]
(tag 0 = interviewer / system audio, 1 = interviewee / microphone). Server pushes JSON events:
{ "type": "status" | "transcription" | "response" | "response_complete" | "audio_source"
  | "turn_saved" | "initializing" | "context_reset" | "screenshot_requested", ... }

HTTP API: session lifecycle, text/image input, manual response, transcript and router queries.
Every operation answers { "success": bool, "error"?: str, "kind"?: str, ... }.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect

from earpiece.config import get_settings
from earpiece.controller import AssistantController
from earpiece.logging_setup import configure_logging
from earpiece.schemas.session import (
    ImageRequest,
    MicrophoneRequest,
    OperationResponse,
    ProcessRequest,
    StartSessionRequest,
    TextRequest,
)
from earpiece.session.backend import LiveSession, SessionCallbacks, SessionConnector, SessionParams
from earpiece.transcript.writer import create_conversation_writer
from earpiece.websocket_manager import AppConsumer, WebSocketManager

logger = logging.getLogger(__name__)


async def _no_backend(params: SessionParams, system_prompt: str, callbacks: SessionCallbacks) -> LiveSession:
    raise RuntimeError("no live backend configured")


def get_connector() -> SessionConnector:
    """Connector for LIVE_BACKEND. google-genai is only imported when a session connects."""
    settings = get_settings()
    if settings.LIVE_BACKEND == "gemini":
        from earpiece.session.gemini_live import connect_gemini

        return connect_gemini
    return _no_backend


def _respond(result) -> OperationResponse:
    return OperationResponse.from_result(result.to_dict())


def create_app(connector: SessionConnector | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_logging(settings.LOG_LEVEL, settings.LOG_FILE)
        writer = create_conversation_writer()
        await writer.start()
        consumer = AppConsumer(writer)
        app.state.consumer = consumer
        app.state.controller = AssistantController(connector or get_connector(), consumer=consumer)
        logger.info("Assistant ready (backend=%s)", settings.LIVE_BACKEND if connector is None else "custom")
        yield
        await app.state.controller.shutdown()
        await writer.close()
        app.state.controller = None
        app.state.consumer = None

    app = FastAPI(
        title="Earpiece",
        description="Live conversation assistant: dual-source audio routing, transcript context, manual responses",
        lifespan=lifespan,
    )

    def controller(request: Request) -> AssistantController:
        return request.app.state.controller

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/api/session", response_model=OperationResponse)
    async def start_session(body: StartSessionRequest, request: Request) -> OperationResponse:
        result = await controller(request).initialize(
            body.api_key, body.custom_prompt, body.profile, body.language
        )
        return _respond(result)

    @app.delete("/api/session", response_model=OperationResponse)
    async def close_session(request: Request) -> OperationResponse:
        return _respond(await controller(request).close())

    @app.get("/api/session", response_model=OperationResponse)
    async def current_session(request: Request) -> OperationResponse:
        return _respond(controller(request).get_current_session())

    @app.post("/api/session/new", response_model=OperationResponse)
    async def new_session(request: Request) -> OperationResponse:
        return _respond(controller(request).start_new_session())

    @app.post("/api/session/reset", response_model=OperationResponse)
    async def reset_session(request: Request) -> OperationResponse:
        return _respond(await controller(request).reset_context())

    @app.post("/api/text", response_model=OperationResponse)
    async def send_text(body: TextRequest, request: Request) -> OperationResponse:
        return _respond(await controller(request).send_text(body.text))

    @app.post("/api/image", response_model=OperationResponse)
    async def send_image(body: ImageRequest, request: Request) -> OperationResponse:
        return _respond(await controller(request).send_image(body.data))

    @app.post("/api/process", response_model=OperationResponse)
    async def process_context(request: Request, body: ProcessRequest | None = None) -> OperationResponse:
        with_screenshot = body.with_screenshot if body is not None else False
        return _respond(await controller(request).process_context(with_screenshot))

    @app.get("/api/transcriptions", response_model=OperationResponse)
    async def transcriptions(request: Request) -> OperationResponse:
        return _respond(controller(request).get_recent_transcriptions())

    @app.post("/api/microphone", response_model=OperationResponse)
    async def microphone(body: MicrophoneRequest, request: Request) -> OperationResponse:
        return _respond(controller(request).set_microphone_enabled(body.enabled))

    @app.get("/api/router", response_model=OperationResponse)
    async def router_stats(request: Request) -> OperationResponse:
        return _respond(controller(request).router_stats())

    @app.websocket("/ws/assist")
    async def websocket_assist(websocket: WebSocket) -> None:
        # Subscribe before accept: every event after the handshake reaches this client
        manager = WebSocketManager(websocket, websocket.app.state.controller, websocket.app.state.consumer)
        await websocket.accept()
        try:
            await manager.run()
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WebSocket session failed")
            try:
                await websocket.close()
            except Exception:
                pass
        finally:
            manager.detach()

    return app


app = create_app()
