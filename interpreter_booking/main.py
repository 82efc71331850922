import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import models  # noqa: F401 - registers all models with Base
from .config import FRONTEND_URL
from .database import Base, engine
from .domain.bookings.router import router as bookings_router
from .errors import BookingError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# OneSignal and Twilio calls go through httpx
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Interpreter booking API starting")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Booking tables ready")
    except Exception as e:
        # Parallel uvicorn workers race on create_all
        if "already exists" in str(e) or "duplicate key" in str(e):
            logger.info("Booking tables were created by another worker")
        else:
            logger.error(f"❌ Could not create booking tables: {e}")
    yield
    logger.info("👋 Interpreter booking API stopped")


app = FastAPI(title="Interpreter Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Booking errors become {"status": "fail", "message": ..., "field_name": ...}"""
    logger.warning(f"⚠️ {request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bookings_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
