import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_booking,  # noqa: F401
    models_catalog,  # noqa: F401
    models_commerce,  # noqa: F401
)
from .config import ALLOWED_ORIGINS, RATE_LIMIT_ENABLED
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.cart.router import router as cart_router
from .domain.memberships.router import router as memberships_router
from .domain.orders.router import router as orders_router
from .error_handlers import register_exception_handlers
from .rate_limiter import get_redis_client
from .routes.addresses import router as addresses_router
from .routes.admin import router as admin_router
from .routes.auth import router as auth_router
from .routes.enquiries import router as enquiries_router
from .routes.gallery import router as gallery_router
from .routes.packages import router as packages_router
from .routes.products import router as products_router
from .routes.profile import router as profile_router
from .routes.reviews import router as reviews_router
from .routes.services import router as services_router
from .routes.stylists import router as stylists_router
from .routes.whatsapp import router as whatsapp_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database tables created successfully")

    if RATE_LIMIT_ENABLED and get_redis_client() is None:
        logger.warning("Redis unavailable - rate limiting will operate in fail-open mode")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Salon API", version="1.0.0", lifespan=lifespan)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
# Credentials (refresh cookie) require explicit origins
allowed_origins = [origin.strip() for origin in ALLOWED_ORIGINS.split(",") if origin.strip()]
logger.info(f"CORS allowed origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(addresses_router)
app.include_router(services_router)
app.include_router(stylists_router)
app.include_router(appointments_router)
app.include_router(products_router)
app.include_router(reviews_router)
app.include_router(cart_router)
app.include_router(orders_router)
app.include_router(packages_router)
app.include_router(memberships_router)
app.include_router(gallery_router)
app.include_router(enquiries_router)
app.include_router(admin_router)
app.include_router(whatsapp_router)


@app.get("/")
async def root():
    return {"message": "Salon API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
