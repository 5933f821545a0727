"""
api/server.py
-------------
FastAPI application entry point.

Run dev server:
    cd backend
    uvicorn api.server:app --reload --port 8000

Endpoints:
    GET    /v1/health
    POST   /v1/schedule/conflicts
    POST   /v1/schedule/segments
    POST   /v1/schedule/layout
    POST   /v1/schedule/free-time
    POST   /v1/schedule/efficiency
    POST   /v1/schedule/optimize
    POST   /v1/schedule/optimize/apply
    POST   /v1/schedule/analyze
    DELETE /v1/schedule/analyze/{itinerary_id}
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from api.routes import health, schedule

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Day Planner Scheduling API",
    version="1.0.0",
    description=(
        "Itinerary scheduling and travel-conflict engine: conflicts, commute "
        "segments, overlap layout, free time, efficiency and route options."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# Allow the web frontend (any origin during development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router,    prefix="/v1",          tags=["Health"])
app.include_router(schedule.router,  prefix="/v1/schedule", tags=["Schedule"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
