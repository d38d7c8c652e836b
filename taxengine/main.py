#!/usr/bin/env python
"""
taxengine/main.py

Sets up the FastAPI application around the crypto tax engine.

Key Roles:
 - Loads environment variables and configures logging from LOG_LEVEL
 - Adds CORS middleware for frontend integration
 - Creates the stored-transaction table at startup
 - Includes the 'transactions' and 'reports' routers
"""

import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from a .env file at the project root
load_dotenv()

# ---------------------------------------------------------
# Logging
# ---------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Default CORS origins if none specified (dev environment)
default_origins = (
    "http://127.0.0.1:3000,"
    "http://localhost:3000,"
    "http://127.0.0.1:5173,"
    "http://localhost:5173"
)
raw_origins = os.getenv("CORS_ALLOW_ORIGINS", default_origins)
ALLOWED_ORIGINS = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

from taxengine.database import create_tables
from taxengine.routers import transaction, reports


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Ensures tables exist when the app starts. Idempotent.
    """
    create_tables()
    yield


# ---------------------------------------------------------
# Initialize the FastAPI application
# ---------------------------------------------------------
app = FastAPI(
    title="Crypto Tax Engine API",
    description=(
        "Tax-lot accounting (FIFO / LIFO / HIFO), wash-sale tracking and "
        "capital-gains reporting over stored crypto transactions."
    ),
    version="1.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------
# CORS Middleware
# ---------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------
# Routers
# ---------------------------------------------------------
app.include_router(transaction.router, prefix="/api/transactions", tags=["transactions"])
app.include_router(reports.reports_router, prefix="/api/reports", tags=["reports"])


# ---------------------------------------------------------
# Root Route
# ---------------------------------------------------------
@app.get("/")
def read_root():
    """
    Basic root path to confirm the API is running.
    """
    return {"message": "Crypto Tax Engine - ready"}


# ---------------------------------------------------------
# Local Development
# ---------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taxengine.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )
