import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.auth import router as auth_router
from app.api.v1.me import router as me_router
from app.api.v1.rbac import router as rbac_router
from app.api.v1.requests import router as requests_router
from app.api.v1.stock_movements import router as stock_movements_router
from app.api.v1.units import router as units_router
from app.core.config import settings
from app.db import models
from app.db.immutability import register_immutability_listeners
from app.db.init_db import seed_initial_data
from app.db.session import engine
from app.services.realtime import InProcessEventBus

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("gtmi")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="GTMI - Requisicoes, inventario e equipamentos municipais",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    register_immutability_listeners()
    models.Base.metadata.create_all(bind=engine)
    seed_initial_data()
    app.state.event_bus = InProcessEventBus()
    if settings.ENV.lower() == "production":
        if settings.SECRET_KEY == "dev-secret-change-me":
            logger.warning("SECRET_KEY esta a usar valor padrao em producao.")
        if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            logger.warning("SQLALCHEMY_DATABASE_URI aponta para SQLite em producao.")


app.include_router(auth_router, prefix="/api")
app.include_router(me_router, prefix="/api")
app.include_router(rbac_router, prefix="/api")
app.include_router(requests_router, prefix="/api")
app.include_router(units_router, prefix="/api")
app.include_router(stock_movements_router, prefix="/api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health")
def health():
    return {"status": "ok"}
