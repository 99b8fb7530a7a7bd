"""
Configuration de la base de données avec SQLModel
"""
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import create_engine, SQLModel, Session
from trainlog.core.settings import get_settings

settings = get_settings()


def enable_sqlite_savepoints(target: Engine) -> Engine:
    """
    Rend les SAVEPOINT fiables avec pysqlite.

    Le driver n'emet pas BEGIN lui-meme : sans ce reglage, un RELEASE SAVEPOINT
    commit toute la transaction et la reconciliation perd son atomicite.
    """
    @event.listens_for(target, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return target


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return enable_sqlite_savepoints(create_engine(
            url,
            echo=settings.DEBUG,
            connect_args={"check_same_thread": False},
        ))
    return create_engine(
        url,
        echo=settings.DEBUG,
        pool_pre_ping=True
    )


# Créer l'engine de base de données
engine = _build_engine(settings.DATABASE_URL)


def create_db_and_tables():
    """Créer toutes les tables de la base de données"""
    # Enregistre les tables dans SQLModel.metadata
    from trainlog.domain import entities  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session():
    """Générateur de session de base de données pour l'injection de dépendance"""
    with Session(engine) as session:
        yield session
