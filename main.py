# main.py
# Role: Application entry point for the finance tracker.
#       Initializes logging and the FastAPI app, creates database tables,
#       and registers all route modules.

"""
Main FastAPI app for the personal finance tracker.

Here we only:
- set up logging
- create the FastAPI app
- create DB tables
- include route modules
"""

from fastapi import FastAPI

from config import get_settings
from db import Base, engine
from log import get_logger, init_logging
import models  # noqa: F401  (registers the ORM tables on Base.metadata)
from app.routes_root import router as root_router
from app.routes_transactions import router as transactions_router
from app.routes_upload import router as upload_router
from app.routes_dashboard import router as dashboard_router
from app.routes_portfolio import router as portfolio_router
from app.routes_settings import router as settings_router


# -------------------------------------------------------------------
# Logging, app & DB setup
# -------------------------------------------------------------------

init_logging(level=get_settings().log_level)
logger = get_logger(__name__)

# Create database tables (only if they don't exist yet).
# This is safe to run on startup for SQLite and development usage.
Base.metadata.create_all(bind=engine)

# FastAPI application instance
app = FastAPI(title="Finance Tracker")

# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Health
app.include_router(root_router)

# Transactions list, filters, single and bulk edits
app.include_router(transactions_router)

# CSV upload → preview → review → save flow
app.include_router(upload_router)

# Dashboard and insights (all chart series)
app.include_router(dashboard_router)

# Holdings, allocations, existing balances, market values
app.include_router(portfolio_router)

# Categories, accounts, trips, family members
app.include_router(settings_router)

logger.info("Finance Tracker started (database: %s)", engine.url.render_as_string(hide_password=True))
