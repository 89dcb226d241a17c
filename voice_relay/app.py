from __future__ import annotations

# Voice message STT relay
import logging
import os
import time

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

import voice_relay.logger  # noqa: E402,F401
from voice_relay.presentation.http.stt_router import router as stt_router  # noqa: E402
from voice_relay.settings import get_settings  # noqa: E402

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("voice_relay.access")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Voice Relay — Speech-to-Text API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def access_log(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        access_logger.info(
            "%s %s %s %.1fms", request.method, request.url.path, response.status_code, elapsed_ms
        )
        return response

    app.include_router(stt_router)
    logger.info("stt relay ready provider=%s dry_run=%s", settings.provider, settings.pipeline.dry_run)
    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3000")))


if __name__ == "__main__":
    main()
