# labdesk/main.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from labdesk.config import settings
from labdesk.db.session import init_db
from labdesk.admin import catalog as admin_catalog_routes
from labdesk.admin import routes as admin_routes
from labdesk.admin import walkin as walkin_routes
from labdesk.auth import routes as auth_routes
from labdesk.bookings import routes as booking_routes
from labdesk.catalog import routes as catalog_routes
from labdesk.notifications import routes as notification_routes
from labdesk.reports import routes as report_routes

# Configure logging (this uses uvicorn's logger)
logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("%s started", settings.APP_NAME)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Enable CORS for all origins (adjust for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers; every route lives under /api
for module in (
    auth_routes,
    catalog_routes,
    booking_routes,
    report_routes,
    notification_routes,
    admin_routes,
    walkin_routes,
    admin_catalog_routes,
):
    app.include_router(module.router, prefix="/api")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )
