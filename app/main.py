import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import LOG_LEVEL
from .database import Base, engine
from . import models  # noqa: F401  registra las tablas en Base.metadata

from app.routers.payment_receipts import router as payment_receipts_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Bufete - Comprobantes de Pago", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def body_invalido(request: Request, exc: RequestValidationError):
    logger.warning(f"Request inválido en {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": {"error": "Datos inválidos", "codigo": "BODY_INVALIDO"}},
    )


# --- RUTAS ---
app.include_router(payment_receipts_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
