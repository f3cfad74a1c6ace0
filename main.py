"""
FastAPI backend for haze.

Serves the WebSocket the browser-side Bokeh runtime connects to. Plots
built in-process with ``haze.ui_plot`` (or ``haze.plot_sync`` from worker
threads) are streamed over that connection.
"""

from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, ORJSONResponse
from fastapi.staticfiles import StaticFiles

from haze import __version__
from haze.config import get_settings
from haze.shared.logger import get_logger, setup_logging

settings = get_settings()
setup_logging(settings.log_level)
logger = get_logger(__name__)

from haze.api import router as system_router
from haze.session import plot_session

# Create FastAPI app
app = FastAPI(
    title="haze",
    description="Streams plots built in Python to a browser Bokeh runtime",
    version=__version__,
    default_response_class=ORJSONResponse,
)


# ============= Exception Handlers for Error Logging =============


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Log unexpected exceptions and return JSON response."""
    logger.error(
        "Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# The browser page may be served from a dev server on another port
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when using allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(system_router, prefix="/api", tags=["system"])


# ============= WebSocket Endpoint =============


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, client_id: str = None):
    """
    The plot session WebSocket.

    The newest connection becomes the session plots are streamed to.
    Server to browser: ``msg`` and ``call`` text frames, and raw binary
    column frames. Browser to server: ``{"type": "ping"}`` keep-alives.
    """
    await plot_session.connect(websocket, client_id)

    try:
        while True:
            message_text = await websocket.receive_text()
            response = await plot_session.handle_message(message_text)
            if response:
                await websocket.send_text(response.to_json())

    except WebSocketDisconnect:
        await plot_session.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error: %s", e)
        await plot_session.disconnect(websocket)


# Serve the browser runtime if it has been built next to this file
dist_path = Path(__file__).parent / "dist"

if dist_path.exists():
    app.mount("/static", StaticFiles(directory=str(dist_path)), name="static")


@app.get("/")
async def serve_index():
    """Serve the browser runtime page."""
    index_file = dist_path / "index.html"
    if index_file.exists():
        return FileResponse(str(index_file))
    return {"message": "dist/index.html not found"}


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="haze plot streaming server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port to run the server on (default: 8000 or HAZE_PORT env var)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=settings.host,
        help="Host to bind to (default: 127.0.0.1 or HAZE_HOST env var)",
    )
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=settings.reload,
        help="Enable auto-reload (default: off unless HAZE_RELOAD is set)",
    )
    args = parser.parse_args()

    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
