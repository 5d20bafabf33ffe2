"""
Configuración de la base de datos - SQLAlchemy 2.0 Async
Proyecto: Control de Formatos (SGV)

Define engine y session factory del motor SQLite. No hay engine global:
el SqlStore los construye al abrirse y los libera al cerrarse.
"""

import logging
from pathlib import Path

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from control_formatos.core.config import Settings
from control_formatos.models import Base

# Logger para este módulo
logger = logging.getLogger(__name__)


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite no aplica las claves foráneas si no se activan por conexión."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Crea el engine async para ``settings.database_url``.

    Una base en memoria usa StaticPool: todas las sesiones comparten
    la misma conexión, si no cada conexión vería una base vacía.
    Para una base en archivo se crea la carpeta contenedora.
    """
    url = make_url(settings.database_url)
    options = {
        "echo": settings.debug,  # Log de las consultas en modo debug
    }

    if settings.is_memory_database:
        options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
    elif url.database:
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        options["pool_pre_ping"] = True  # Verifica la conexión antes de usarla

    engine = create_async_engine(url, **options)
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory: una sesión por unidad de trabajo."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Inicializa la base de datos.

    Crea las tablas que falten y ejecuta una prueba de conexión para
    verificar que la base es accesible.
    """
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
            # Prueba de conexión
            await conn.execute(text("SELECT 1"))
        logger.info("Conexión a la base de datos establecida: %s", engine.url.render_as_string(hide_password=True))
    except Exception as e:
        logger.error("Error de conexión a la base de datos: %s", e)
        raise


async def close_db(engine: AsyncEngine) -> None:
    """
    Cierra las conexiones a la base de datos.

    Se llama durante el cierre de la aplicación.
    """
    await engine.dispose()
    logger.info("Conexiones a la base de datos cerradas")


async def reset_db(engine: AsyncEngine) -> None:
    """
    Elimina y vuelve a crear todas las tablas.

    Borra todos los datos: solo para desarrollo y pruebas.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        logger.warning("Tablas eliminadas: %s", engine.url.render_as_string(hide_password=True))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tablas creadas nuevamente")
