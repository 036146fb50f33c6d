import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pharmacy_orders.presentation.api import router
from pharmacy_orders.database import create_tables

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Tables ready")

    yield

    logger.info("Shutting down")

app = FastAPI(
    title="Pharmacy Order Service",
    description="Order placement and inventory consistency for the pharmacy marketplace",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "healthy"}
