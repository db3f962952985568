"""
FastAPI Health Server

Uptime probe endpoints served next to the polling bot.
"""

import logging
from datetime import datetime

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from config import Config

logger = logging.getLogger(__name__)

app = FastAPI(
    title="SMM Storefront Bot",
    description="Health endpoints for the storefront bot",
)


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "OK - bot is alive"


@app.get("/health")
async def health_check():
    """Health check endpoint for deployment probes"""
    return {"ok": True, "time": datetime.utcnow().isoformat()}


def create_health_server(port: int = None) -> uvicorn.Server:
    """uvicorn server bound to PORT, served inside the bot's event loop"""
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port or Config.PORT,
        log_level="warning",
        lifespan="off",
    )
    return uvicorn.Server(config)
