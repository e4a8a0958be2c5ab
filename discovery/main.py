from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from discovery.core.config import get_settings
from discovery.core.errors import DiscoveryError, MAX_DIAGNOSTIC_LEN
from discovery.core.lifespan import lifespan
from discovery.api.v1.routers.products import router as products_router
from discovery.api.v1.routers.similar import router as similar_router
from discovery.api.v1.routers.viewed import router as viewed_router
from discovery.api.v1.routers.admin import router as admin_router
from discovery.api.v1.routers.health import router as health_router
from discovery.api.v1.schemas.envelope import failed
from discovery.core.logging import configure_logging

from fastapi.middleware.cors import CORSMiddleware
import logging, os

settings = get_settings()
configure_logging(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# ------- CORS -------
# ALLOWED_ORIGINS is a CSV list, e.g. "https://shop.example.com,https://admin.example.com"
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "")
allowed_origins = [o.strip() for o in allowed_origins_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)


# ------- Errors -> failed envelope -------
@app.exception_handler(DiscoveryError)
async def discovery_error_handler(request: Request, exc: DiscoveryError):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s %s -> %s %s (%s)", request.method, request.url.path,
               exc.status_code, exc.message, exc.diagnostic)
    return JSONResponse(status_code=exc.status_code, content=failed(exc.message, exc.diagnostic))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    diagnostic = f"{where}: {first.get('msg', 'invalid value')}"[:MAX_DIAGNOSTIC_LEN]
    return JSONResponse(status_code=400, content=failed("Invalid request parameters", diagnostic))


# ------- Routes -------
app.include_router(health_router)
app.include_router(products_router, prefix=settings.api_prefix)   # listing, lookup, search, suggestions, facets
app.include_router(similar_router, prefix=settings.api_prefix)    # similar
app.include_router(viewed_router, prefix=settings.api_prefix)     # view tracking + history
app.include_router(admin_router, prefix=settings.api_prefix)      # index admin + global stats
