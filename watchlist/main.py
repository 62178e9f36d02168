import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError

from watchlist import config
from watchlist.database import Base, engine
from watchlist.limiter import limiter
from watchlist.models import movie_model, user_model  # noqa: F401  (register tables)
from watchlist.routes import admin_routes, auth, movies_routes, public_routes

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title="Watchlist API", version=config.APP_VERSION)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please slow down."}
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/auth")
app.include_router(movies_routes.router)
app.include_router(admin_routes.router)
app.include_router(public_routes.router)


@app.get("/")
async def root():
    return {
        "message": "Watchlist API",
        "docs": "/docs",
        "version": config.APP_VERSION,
    }


@app.on_event("startup")
async def on_startup():
    # One retry so a momentary DB disconnect doesn't crash the app.
    for attempt in range(2):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            break
        except (SQLAlchemyError, OSError):
            if attempt == 0:
                logger.warning("DB init failed, retrying once", exc_info=True)
                await asyncio.sleep(0.5)
            else:
                logger.exception("Skipping DB init; check DATABASE_URL")
