# backend/main.py
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from config import settings
from database import SessionLocal, init_db
from services.sweeper import CartSweeper
from utils.error_handlers import register_error_handlers

load_dotenv()

# Routers
from routes.cart import router as cart_router
from routes.stock import router as stock_router
from routes.payments import router as payments_router
from routes.orders import router as orders_router
from routes.cron import router as cron_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Tables are managed by Alembic in production; create_all covers local runs
    if settings.AUTO_CREATE_TABLES:
        init_db()

    sweeper_task = None
    if settings.sweep_is_scheduled:
        sweeper_task = asyncio.create_task(CartSweeper(SessionLocal).run_forever())

    yield

    if sweeper_task is not None:
        sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper_task


app = FastAPI(title="Cart Reservation API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Router registration
app.include_router(cart_router)
app.include_router(stock_router)
app.include_router(payments_router)
app.include_router(orders_router)
app.include_router(cron_router)

@app.get("/")
def read_root():
    return {"message": "Cart Reservation API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
