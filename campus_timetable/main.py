"""
Main FastAPI application
Campus Timetable Backend
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from campus_timetable.models.database import init_db
from campus_timetable.routes import auth, courses, instructors, rooms, timetables

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized successfully!")
    yield
    # Shutdown
    logger.info("Shutting down...")


app = FastAPI(
    title="Campus Timetable",
    description="University timetable management with automatic timetable generation",
    version="1.0.0",
    lifespan=lifespan
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(instructors.router)
app.include_router(rooms.router)
app.include_router(timetables.router)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "OK",
        "message": "Campus Timetable Backend is running"
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API info"""
    return {
        "name": "Campus Timetable",
        "version": "1.0.0",
        "description": "University timetable management with automatic timetable generation",
        "endpoints": {
            "health": "/health",
            "users": "/api/v1/users",
            "courses": "/api/v1/courses",
            "instructors": "/api/v1/instructors",
            "rooms": "/api/v1/rooms",
            "generate_timetable": "POST /api/v1/timetables/generate",
            "get_timetable": "GET /api/v1/timetables?department=&semester=&shift=",
            "edit_entry": "PATCH /api/v1/timetables/entries/{entry_id}",
            "download": "GET /api/v1/timetables/download",
            "docs": "/docs",
            "openapi": "/openapi.json"
        }
    }


# 404 handler
@app.exception_handler(404)
async def not_found_handler(request, exc):
    detail = getattr(exc, "detail", None)
    return JSONResponse(
        status_code=404,
        content={"detail": detail if detail and detail != "Not Found" else "Endpoint not found"}
    )


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
