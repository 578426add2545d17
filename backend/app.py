import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.routes import router
from soup_sleuth.llm import Judge
from soup_sleuth.pipeline import SessionLocks
from soup_sleuth.storage import Storage

load_dotenv(Path(__file__).parent.parent / ".env")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(
    data_dir: Path | None = None,
    judge: Judge | None = None,
    presets_dir: Path | None = None,
) -> FastAPI:
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))

    app = FastAPI(title="Soup Sleuth")
    app.state.storage = Storage(resolved, presets_dir=presets_dir)
    app.state.judge = judge  # None: built from settings on each request
    app.state.locks = SessionLocks()
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
