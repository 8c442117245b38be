import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from runehelp.api_client import HiscoresAPIClient
from runehelp.config import Settings, configure_logging
from runehelp.database import Database
from runehelp.exceptions import (
    PersistenceError,
    PlayerNotFoundError,
    UpstreamError,
    ValidationError,
)
from runehelp.report_builder import DeltaReportBuilder

logger = logging.getLogger(__name__)

SERVER_ERROR = {"error": "Server error"}


def create_app(builder: Optional[DeltaReportBuilder] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI app.

    With no builder, the store and hiscores client are opened in the
    lifespan from settings (or RUNEHELP_* env vars) and closed at shutdown.
    Passing a builder skips that and uses it as-is.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if builder is not None:
            app.state.builder = builder
            yield
            return

        cfg = settings or Settings.from_env()
        configure_logging(cfg.log_level)
        db = Database(cfg.db_path)
        logger.info("Using database at: %s", os.path.abspath(db.db_path))
        client = HiscoresAPIClient.from_settings(cfg)
        app.state.builder = DeltaReportBuilder(db, client)
        try:
            yield
        finally:
            db.close()
            logger.info("Database connection closed")

    app = FastAPI(title="RuneHelp", lifespan=lifespan)

    @app.get("/")
    async def root() -> PlainTextResponse:
        return PlainTextResponse("RuneHelp backend is running")

    @app.get("/api/rate-status")
    async def rate_status(request: Request) -> dict:
        return request.app.state.builder.client.rate_status()

    @app.get("/api/player/{username}")
    async def player_report(username: str, request: Request):
        report_builder: DeltaReportBuilder = request.app.state.builder
        try:
            # The worker thread runs to completion even if the client goes
            # away, so store writes are never cut off half way.
            report = await asyncio.to_thread(report_builder.get_player_report, username)
            return report.to_dict()
        except ValidationError as e:
            logger.info("Rejected lookup: %s", e)
            return JSONResponse(status_code=400, content={"error": e.user_message})
        except PlayerNotFoundError as e:
            logger.info("Player lookup failed: %s", e)
            return JSONResponse(status_code=404, content={"error": e.user_message})
        except (UpstreamError, PersistenceError) as e:
            logger.error("Report for '%s' failed: %s", username, e)
            return JSONResponse(status_code=500, content=SERVER_ERROR)
        except Exception:
            logger.exception("Unexpected failure building report for '%s'", username)
            return JSONResponse(status_code=500, content=SERVER_ERROR)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    print("Starting RuneHelp Web Server...")
    print(f"Open http://{settings.host}:{settings.port} in your browser")
    uvicorn.run(app, host=settings.host, port=settings.port)
