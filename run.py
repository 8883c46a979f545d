"""
run.py - Helper script to run the server
"""

import logging
import os

import uvicorn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger("campus_timetable.run")

APP = "campus_timetable.main:app"


def server_options(env: str, port: int, workers: int = 4) -> dict:
    """uvicorn.run keyword arguments: auto-reload in development, worker processes otherwise."""
    options = {"host": "0.0.0.0", "port": port, "log_level": "info"}
    if env == "development":
        options["reload"] = True
    else:
        options["workers"] = workers
    return options


def main():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", 8000))
    env = os.getenv("ENV", "development")

    logger.info(f"Starting Campus Timetable Backend ({env}) on http://localhost:{port}")
    logger.info(f"Docs: http://localhost:{port}/docs")

    uvicorn.run(APP, **server_options(env, port, int(os.getenv("WORKERS", 4))))


if __name__ == "__main__":
    main()
