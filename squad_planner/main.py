import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from squad_planner.config import settings
from squad_planner.core.identity import IdentityCache
from squad_planner.core.middleware import SecurityHeadersMiddleware
from squad_planner.database.supabase_client import SupabaseClient
from squad_planner.modules.auth import routes as auth_routes
from squad_planner.modules.pages import routes as pages_routes
from squad_planner.modules.profiles import routes as profiles_routes
from squad_planner.modules.sessions import routes as sessions_routes
from squad_planner.modules.squads import routes as squads_routes

API_PREFIX = "/api/v1"

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def supabase_configured() -> bool:
    return bool(settings.supabase_url and settings.supabase_key)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.environment})")
    if not supabase_configured():
        logger.warning("SUPABASE_URL / SUPABASE_KEY are not set; data routes will fail until they are")
    yield
    SupabaseClient.reset_client()
    logger.info("Application shutdown")


limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    redirect_slashes=False,
    lifespan=lifespan,
)
app.state.limiter = limiter
# Shares one identity check between the concurrent loaders of a request
app.state.identity_cache = IdentityCache()
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    detail = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content={"detail": detail})


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module_routes in (auth_routes, squads_routes, sessions_routes, profiles_routes, pages_routes):
    app.include_router(module_routes.router, prefix=API_PREFIX)


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.app_name}", "status": "healthy"}


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "healthy"}


@app.get("/ready")
@limiter.exempt
async def ready():
    """Readiness probe: not ready until Supabase credentials are configured."""
    if not supabase_configured():
        return JSONResponse(status_code=503, content={"status": "not ready", "detail": "Supabase is not configured"})
    return {"status": "ready"}
