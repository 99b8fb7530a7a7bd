"""
Configuration centralisee pour le backend trainlog
Utilise pydantic-settings pour la gestion des variables d'environnement
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import List
from functools import lru_cache


RECONCILIATION_POLICIES = ("adaptive", "legacy")


class Settings(BaseSettings):
    """Configuration de l'application"""

    # Database
    DATABASE_URL: str = Field(
        default="sqlite:///./trainlog.db",
        description="URL de la base de données (PostgreSQL en production)"
    )

    # Reconciliation Strava -> plan
    RECONCILIATION_POLICY: str = Field(
        default="adaptive",
        description="Politique de tolerance par defaut: 'adaptive' (J0 45% / J±1 25%) ou 'legacy' (J0 20%)"
    )

    # URLs de l'application
    FRONTEND_URL: str = Field(
        default="http://localhost:3000",
        description="URL du frontend (CORS)"
    )

    # CORS
    ALLOWED_ORIGINS: List[str] = Field(
        default=[],
        description="Origines autorisées pour CORS (configuré automatiquement selon ENVIRONMENT si vide)"
    )

    # Monitoring (Sentry)
    SENTRY_DSN: str = Field(
        default="",
        description="DSN Sentry pour le error tracking (vide = Sentry desactive)"
    )

    # Application
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(
        default="",
        description="Niveau de logging (auto-configuré selon ENVIRONMENT si vide)"
    )

    @field_validator("RECONCILIATION_POLICY")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in RECONCILIATION_POLICIES:
            raise ValueError(
                f"RECONCILIATION_POLICY invalide: {value!r} (attendu: {', '.join(RECONCILIATION_POLICIES)})"
            )
        return value

    @model_validator(mode="after")
    def _configure_environment(self) -> "Settings":
        """Configure DEBUG et LOG_LEVEL selon ENVIRONMENT."""
        is_prod = self.ENVIRONMENT == "production"
        # En production, forcer DEBUG=False
        if is_prod:
            self.DEBUG = False
        # LOG_LEVEL par défaut selon ENVIRONMENT
        if not self.LOG_LEVEL:
            self.LOG_LEVEL = "WARNING" if is_prod else "INFO"
        return self

    @model_validator(mode="after")
    def _set_default_origins(self) -> "Settings":
        """Définit les origines CORS par défaut selon ENVIRONMENT si non configurées."""
        if not self.ALLOWED_ORIGINS:
            if self.ENVIRONMENT == "production":
                self.ALLOWED_ORIGINS = []
            else:
                self.ALLOWED_ORIGINS = [
                    "http://localhost:3000",
                    "http://127.0.0.1:3000",
                    "http://localhost:5173",
                    "http://127.0.0.1:5173",
                ]
        # Toujours inclure FRONTEND_URL dans les origines autorisees
        frontend = self.FRONTEND_URL.rstrip("/")
        if frontend and frontend not in self.ALLOWED_ORIGINS:
            self.ALLOWED_ORIGINS.append(frontend)
        return self

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Récupère la configuration (mise en cache)"""
    return Settings()
