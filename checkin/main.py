import argparse
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from checkin.config import config
from checkin.database import init_db
from checkin.routers import admin, mentor, students, tasks
from checkin.utils.error_utils import register_exception_handlers
from checkin.utils.log_utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_file = setup_logging(config.server.log_dir)
    logger.info(f"Application starting (log file: {log_file})")

    init_db()

    if not config.auth.mentor_key:
        logger.warning("MENTOR_KEY is not configured; mentor endpoints will answer 500")
    if not config.auth.manager_key:
        logger.warning("MANAGER_KEY is not configured; roster endpoints will answer 500")

    yield

    logger.info("Application stopped")


app = FastAPI(title="Team check-in", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.server.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(students.router, prefix="/api")
app.include_router(mentor.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


@app.get("/health")
def health():
    return {"ok": True}


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Team attendance and task tracker")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="server port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="reload on code changes (development)")
    return parser.parse_args()


if __name__ == "__main__":
    import uvicorn

    args = parse_args()

    uvicorn.run(
        "checkin.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )
