"""
Punto de entrada de la aplicación de registro de estudiantes.
Arranque: uvicorn app.main:app --reload  (o el script `estudiantes`)
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

import app.models  # noqa: F401 — registra los modelos en Base.metadata
from app.config import Settings, settings
from app.database import create_engine, create_sessionmaker, create_tables
from app.routers import estudiantes
from app.storage import PhotoStorage

logger = logging.getLogger(__name__)

FOTOS_DIR = Path(__file__).resolve().parent / "public" / "fotos"


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """Construye la aplicación; los clientes externos se crean en el lifespan."""
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Crea el motor SQL y el cliente S3 al arrancar y los libera al parar."""
        engine = create_engine(config.async_database_url)
        storage = None
        try:
            if config.CREATE_TABLES:
                await create_tables(engine)
            app.state.sessionmaker = create_sessionmaker(engine)
            storage = app.state.storage = PhotoStorage.from_settings(config)
            logger.info("Clientes de base de datos y S3 (bucket %s) listos", config.AWS_BUCKET_NAME)
            yield
        finally:
            if storage is not None:
                storage.close()
            await engine.dispose()
            logger.info("Clientes de base de datos y S3 cerrados")

    app = FastAPI(
        title="Registro de estudiantes",
        description="Alta, edición, búsqueda y borrado de estudiantes con foto en S3",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = config

    app.include_router(estudiantes.router)
    app.mount("/fotos", StaticFiles(directory=FOTOS_DIR, check_dir=False), name="fotos")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        """Los errores HTTP se devuelven como texto plano, como el resto de respuestas de error."""
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        logger.info("Petición rechazada en %s: %s", request.url.path, exc.errors())
        return PlainTextResponse("Datos del formulario no válidos.", status_code=422)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        """Cualquier excepción no prevista termina en un 500 con el detalle solo en el log."""
        logger.error("Excepción no controlada: %s", exc, exc_info=True)
        return PlainTextResponse("Se produjo un error interno.", status_code=500)

    @app.get("/health", tags=["Salud"])
    def health_check():
        """Comprueba que la aplicación responde."""
        return {"status": "ok", "service": "Registro de estudiantes", "version": "0.1.0"}

    return app


app = create_app()


def run() -> None:
    """Arranca el servidor en el puerto configurado (PORT, 3000 por defecto)."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Aplicación escuchando en http://localhost:%d", settings.PORT)
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
