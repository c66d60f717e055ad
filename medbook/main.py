"""MedBook API entry point.

Run with:
    uvicorn medbook.main:app --reload

Or:
    python -m medbook.main
"""

import logging
import os
from contextlib import asynccontextmanager

from medbook.api.app import create_app
from medbook.storage.database import MedbookDB

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    """Make sure the schema exists at startup, close the database on shutdown."""
    db: MedbookDB = app.state.db
    db.init_schema()
    logger.info(f"✅ Database initialized: {db.db_path}")

    yield

    db.close()
    logger.info("✅ Database closed")


# Create app with lifespan
app = create_app()
app.router.lifespan_context = lifespan


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "medbook.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
