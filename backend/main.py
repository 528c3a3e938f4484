# backend/main.py
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from services.errors import ShopError
from services.otp import OtpGate
from utils.cache import TTLCache
from utils.notifications import NotificationSink

load_dotenv()

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Routers
from routes.auth import router as auth_router
from routes.shop import router as shop_router
from routes.cart import router as cart_router
from routes.checkout import router as checkout_router
from routes.orders import router as orders_router
from routes.admin import router as admin_router
from routes.products import router as products_router
from routes.stock import router as stock_router
from routes.reports import router as reports_router
from routes.logs import router as logs_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    # One cache per process: holds OTP codes and parked checkouts
    cache = TTLCache()
    app.state.cache = cache
    app.state.otp_gate = OtpGate(cache, ttl_seconds=settings.OTP_TTL_SECONDS, length=settings.OTP_LENGTH)
    app.state.notifier = NotificationSink()
    logger.info("Snack Shop API started")
    yield
    cache.clear()


app = FastAPI(title="Snack Shop API", version="1.0.0", lifespan=lifespan)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth_router)
app.include_router(shop_router)
app.include_router(cart_router)
app.include_router(checkout_router)
app.include_router(orders_router)
app.include_router(admin_router)
app.include_router(products_router)
app.include_router(stock_router)
app.include_router(reports_router)
app.include_router(logs_router)


@app.get("/")
def read_root():
    return {"message": "Snack Shop API is running"}
