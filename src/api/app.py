"""FastAPI application entry point."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes import data_health, matrix
from src.config import settings

logging.basicConfig(level=settings.log_level)

app = FastAPI(
    title="Rate Matrix",
    description="Lending product rate matrix and data-health service",
    version="0.1.0",
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(matrix.router)
app.include_router(data_health.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
