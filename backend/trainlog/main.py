"""
Application FastAPI principale pour trainlog
Point d'entrée de l'API backend
"""
import logging
from logging.handlers import RotatingFileHandler
import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.requests import Request
import sentry_sdk

from trainlog.core.settings import get_settings
from trainlog.api.routers import router
from trainlog.core.database import create_db_and_tables, engine
from trainlog.core.schema_guard import verify_schema_or_raise

settings = get_settings()

# Initialiser Sentry (uniquement si SENTRY_DSN est configure)
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
        send_default_pii=False,
    )

# Configuration du logging conditionnée par ENVIRONMENT
_log_level = getattr(logging, settings.LOG_LEVEL, logging.INFO)

_handler = logging.StreamHandler(sys.stdout)

if settings.ENVIRONMENT == "production":
    from pythonjsonlogger import jsonlogger
    _handler.setFormatter(jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    ))
else:
    _handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

_handlers: list[logging.Handler] = [_handler]
if settings.ENVIRONMENT not in ("production", "test"):
    _handlers.append(RotatingFileHandler(
        'trainlog.log', maxBytes=5_000_000, backupCount=3,
    ))

logging.basicConfig(
    level=_log_level,
    handlers=_handlers,
)

# En production, réduire le bruit des modules tiers
if settings.ENVIRONMENT == "production":
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Gestionnaire de cycle de vie de l'application"""
    logger.info("Démarrage de trainlog API v1.0.0")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Politique de reconciliation par defaut: {settings.RECONCILIATION_POLICY}")

    create_db_and_tables()
    verify_schema_or_raise(engine)
    logger.info("Base de données initialisée")

    yield

    logger.info("Arret de trainlog API")

app = FastAPI(
    title="trainlog API",
    description="Suivi d'entrainement velo : reconciliation des sorties Strava avec le plan",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan
)

# Configuration CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Inclure les routes
app.include_router(router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Point de santé de l'API"""
    return JSONResponse(
        content={
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc):
    """Gestionnaire global des exceptions"""
    logger.error(f"Erreur non gérée: {type(exc).__name__}: {str(exc)}", exc_info=True)
    if settings.DEBUG:
        content = {
            "detail": "Erreur interne du serveur",
            "type": type(exc).__name__,
            "message": str(exc),
        }
    else:
        content = {
            "detail": "Erreur interne du serveur",
            "message": "Une erreur s'est produite",
        }
    return JSONResponse(status_code=500, content=content)

if __name__ == "__main__":
    import uvicorn
    logger.info("Lancement de l'application sur le port 8000")
    uvicorn.run(
        "trainlog.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
