"""
LabQueue Server - Main FastAPI Application

This module contains the main FastAPI application for the LabQueue server.
It exposes REST API endpoints for queueing students for shared lab
workstations, checking in, and tracking workstation usage sessions.
"""

import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from managers.database_manager import DatabaseManager
from lab_service import LabService

# Server defaults
DEFAULT_DB_PATH = "database/labqueue.db"
DEFAULT_LOG_DIR = "logs"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8000

logger = logging.getLogger(__name__)

# Import database module for shared db_manager and lab_service instances
import database


# ==================== Logging ====================

def ConfigureLogging(log_dir: str = DEFAULT_LOG_DIR) -> None:
    """
    Configure logging to write to both console and a rotating daily file

    Args:
        log_dir: Directory for log files (created if missing)
    """
    logs_dir = Path(log_dir)
    logs_dir.mkdir(exist_ok=True)

    # Create log filename with timestamp
    log_filename = logs_dir / f"labqueue-server-{datetime.now().strftime('%Y-%m-%d')}.log"

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            # Console handler
            logging.StreamHandler(),
            # File handler with rotation (max 10MB per file, keep 10 backup files)
            RotatingFileHandler(
                log_filename,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=10,
                encoding='utf-8'
            )
        ]
    )


# ==================== Lifespan Events ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler for startup and shutdown
    Manages database initialization and the shared LabService
    """
    # Startup
    ConfigureLogging()
    logger.info("LabQueue Server starting up...")

    database.db_manager = DatabaseManager(DEFAULT_DB_PATH)
    database.db_manager.InitializeDatabase()
    logger.info("Database initialized successfully")

    database.lab_service = LabService(database.db_manager)

    # Apply anything that became due while the server was down
    transitioned = database.lab_service.SweepExpired()
    logger.info(f"Startup sweep transitioned {transitioned} entries/sessions")

    logger.info("Server startup complete")

    yield

    # Shutdown
    logger.info("LabQueue Server shutting down...")
    database.db_manager.Dispose()
    logger.info("Shutdown complete")


# ==================== FastAPI Application ====================

app = FastAPI(
    title="LabQueue Server",
    description="Queue and usage tracking for shared lab workstations",
    version="1.0.0",
    lifespan=lifespan
)

# ==================== CORS Middleware ====================

# Kiosk and staff pages are served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== Import Routers ====================

from routes import status, queue, sessions, resources, maintenance


# ==================== Include Routers ====================

app.include_router(status.router)
app.include_router(queue.router)
app.include_router(sessions.router)
app.include_router(resources.router)
app.include_router(maintenance.router)


# ==================== Main Entry Point ====================

if __name__ == "__main__":
    """
    Run the server using uvicorn
    """
    logger.info("Starting LabQueue Server...")

    # host="0.0.0.0" allows connections from other machines on the network
    uvicorn.run(
        "server:app",
        host=DEFAULT_HOST,
        port=DEFAULT_PORT,
        reload=False,
        log_level="info"
    )
