from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import get_settings
from db import init_db, session_scope
from matching.logic.adapter import load_active_models
from matching.logic.model_store import model_store
from matching.logic.training_jobs import training_runner
from matching.routes import router as matching_router

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.info("App starting with DATABASE_URL")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    try:
        with session_scope() as db:
            model_store.load(load_active_models(db))
    except Exception as e:
        # Serving still works without a model: predictions report "unavailable"
        logging.error(f"Failed to load active models: {e}")
    yield
    training_runner.shutdown()


app = FastAPI(title="Scholarship Matching", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(matching_router)


@app.get("/health", tags=["meta"], summary="Health check")
def health():
    return {"status": "ok"}
